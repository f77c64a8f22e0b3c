"""
Tests unitaires des clients hôte (registre local et API HTTP).
"""
import httpx
import pytest

from context_gateway.core.exceptions import HostQueryError
from context_gateway.services.host import HttpHostClient, SessionRegistry


def _http_host(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://hote.test")
    return HttpHostClient("http://hote.test", client=client)


class TestSessionRegistry:
    """Tests du registre en mémoire."""

    @pytest.mark.asyncio
    async def test_observe_stores_copy(self):
        registry = SessionRegistry()
        body = {"messages": [{"role": "user", "content": "x"}]}
        registry.observe("s1", body, parent_id="p")
        body["messages"].clear()

        assert (await registry.get_conversation("s1"))["messages"] == [{"role": "user", "content": "x"}]
        assert await registry.get_parent_id("s1") == "p"
        assert await registry.list_sessions() == ["s1"]

    @pytest.mark.asyncio
    async def test_parent_kept_when_later_request_has_none(self):
        registry = SessionRegistry()
        registry.observe("s1", parent_id="p")
        registry.observe("s1", {"messages": []})
        assert await registry.get_parent_id("s1") == "p"

    @pytest.mark.asyncio
    async def test_forget(self):
        registry = SessionRegistry()
        registry.observe("s1", {"messages": []})
        registry.forget("s1")
        assert await registry.get_conversation("s1") is None


class TestHttpHostClient:
    """Tests du client HTTP de l'hôte."""

    @pytest.mark.asyncio
    async def test_parent_id(self):
        def handler(request):
            assert request.url.path == "/session/s1"
            return httpx.Response(200, json={"id": "s1", "parentID": "p"})

        host = _http_host(handler)
        assert await host.get_parent_id("s1") == "p"

    @pytest.mark.asyncio
    async def test_conversation_and_list(self):
        def handler(request):
            if request.url.path == "/session":
                return httpx.Response(200, json=[{"id": "a"}, {"id": "b"}, {"nom": "c"}])
            return httpx.Response(200, json={"messages": []})

        host = _http_host(handler)
        assert await host.list_sessions() == ["a", "b"]
        assert await host.get_conversation("a") == {"messages": []}

    @pytest.mark.asyncio
    async def test_not_found_is_none(self):
        host = _http_host(lambda request: httpx.Response(404))
        assert await host.get_parent_id("s1") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("handler", [
        lambda request: httpx.Response(500),
        lambda request: httpx.Response(200, content=b"<html>"),
    ])
    async def test_errors_raise_host_query_error(self, handler):
        host = _http_host(handler)
        with pytest.raises(HostQueryError):
            await host.get_parent_id("s1")

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("refusé", request=request)

        with pytest.raises(HostQueryError):
            await _http_host(handler).get_conversation("s1")
