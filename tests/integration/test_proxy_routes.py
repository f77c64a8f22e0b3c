"""Tests d'intégration: proxy /v1 et API de gestion des sessions.

Stratégie:
- Application complète via `create_app(service=...)`.
- Provider amont simulé par `httpx.MockTransport` (aucun réseau).
- Client de test via `httpx.ASGITransport`.
"""

from __future__ import annotations

import json
from typing import AsyncGenerator

import httpx
import pytest

from context_gateway.config.settings import Settings, StorageConfig, UpstreamConfig
from context_gateway.core.constants import REDACTION_MARKER
from context_gateway.main import create_app
from context_gateway.services.pruning_service import PruningService

DUPLICATES = [
    ("r1", "read", {"filePath": "a.txt"}, "A" * 40),
    ("r2", "read", {"filePath": "a.txt"}, "A" * 40),
    ("r3", "read", {"filePath": "a.txt"}, "A" * 40),
]


class FakeProvider:
    """Provider amont: mémorise les bodies reçus."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.fail = False
        self.stream = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if self.fail:
            raise httpx.ConnectError("provider hors ligne", request=request)
        self.requests.append(request)
        if self.stream:
            return httpx.Response(
                200,
                headers={"content-type": "text/event-stream"},
                content=b"data: {\"delta\": 1}\n\ndata: [DONE]\n\n",
            )
        return httpx.Response(200, json={"id": "msg_1", "content": []})

    @property
    def last_body(self) -> dict:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def service(provider: FakeProvider) -> PruningService:
    settings = Settings(
        storage=StorageConfig(enabled=False),
        upstream=UpstreamConfig(base_url="http://provider.test", max_retries=0),
    )
    return PruningService(settings, upstream_transport=httpx.MockTransport(provider))


@pytest.fixture
async def async_client(service: PruningService) -> AsyncGenerator[httpx.AsyncClient, None]:
    app = create_app(service=service)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    await service.shutdown()


def _results(body: dict) -> dict[str, object]:
    return {
        block["tool_use_id"]: block["content"]
        for message in body["messages"]
        if isinstance(message.get("content"), list)
        for block in message["content"]
        if block.get("type") == "tool_result"
    }


@pytest.mark.asyncio
async def test_unrecognized_body_forwarded_byte_identical(async_client, provider):
    raw = b'{"prompt": "bonjour",  "max_tokens": 5}'
    response = await async_client.post("/v1/complete", content=raw, headers={"content-type": "application/json"})

    assert response.status_code == 200
    assert provider.requests[-1].content == raw
    assert provider.requests[-1].url == "http://provider.test/v1/complete"


@pytest.mark.asyncio
async def test_idle_analysis_then_redaction(async_client, provider, service, make_body):
    """Doublons détectés à l'inactivité, puis expurgés à la requête suivante."""
    body = make_body("anthropic", DUPLICATES)
    headers = {"x-session-id": "s1"}

    await async_client.post("/v1/messages", json=body, headers=headers)
    assert "<prunable-tools>" in provider.last_body["system"][-1]["text"]
    assert _results(provider.last_body)["r1"] == "A" * 40

    response = await async_client.post("/api/sessions/s1/idle")
    assert response.json() == {"session_id": "s1", "scheduled": True}
    await service.scheduler.drain()

    summary = (await async_client.get("/api/sessions/s1")).json()
    assert summary["pruned_count"] == 2
    assert summary["total_tokens_saved"] == 20

    await async_client.post("/v1/messages", json=body, headers=headers)
    results = _results(provider.last_body)
    assert results["r1"] == REDACTION_MARKER
    assert results["r2"] == REDACTION_MARKER
    assert results["r3"] == "A" * 40


@pytest.mark.asyncio
async def test_child_session_idle_not_scheduled(async_client, make_body):
    await async_client.post(
        "/v1/messages",
        json=make_body("anthropic", DUPLICATES),
        headers={"x-session-id": "enfant", "x-parent-session-id": "parent"},
    )
    response = await async_client.post("/api/sessions/enfant/idle")
    assert response.json()["scheduled"] is False


@pytest.mark.asyncio
async def test_explicit_prune_flow(async_client, provider, make_body):
    body = make_body("openai-chat", [
        ("c1", "bash", {"command": "ls"}, "x" * 80),
        ("c2", "read", {"filePath": "b.txt"}, "contenu"),
    ])
    await async_client.post("/v1/chat/completions", json=body, headers={"x-session-id": "s1"})

    prunable = (await async_client.get("/api/sessions/s1/prunable")).json()
    assert prunable["numeric_ids"] == [0, 1]
    assert "0: bash, ls" in prunable["list"]

    response = await async_client.post("/api/sessions/s1/prune", json={"ids": ["noise", "0"]})
    assert response.status_code == 200
    data = response.json()
    assert data["pruned"] == ["c1"]
    assert data["message"].startswith("Pruned 1 tool output(s) (~20 tokens):")

    await async_client.post("/v1/chat/completions", json=body, headers={"x-session-id": "s1"})
    tool_messages = [m for m in provider.last_body["messages"] if m.get("role") == "tool"]
    assert tool_messages[0]["content"] == REDACTION_MARKER
    assert tool_messages[1]["content"] == "contenu"


@pytest.mark.asyncio
async def test_prune_invalid_input_returns_400(async_client):
    response = await async_client.post("/api/sessions/s1/prune", json={"ids": []})
    assert response.status_code == 400
    assert response.json()["message"].startswith("No IDs provided")

    response = await async_client.post("/api/sessions/s1/prune", json={"reason": "urgent", "ids": ["1"]})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_streaming_response_relayed(async_client, provider, make_body):
    provider.stream = True
    body = make_body("anthropic", DUPLICATES)
    body["stream"] = True

    response = await async_client.post("/v1/messages", json=body)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.content == b"data: {\"delta\": 1}\n\ndata: [DONE]\n\n"


@pytest.mark.asyncio
async def test_upstream_unreachable_returns_502(async_client, provider):
    provider.fail = True
    response = await async_client.post("/v1/messages", json={"messages": [], "system": "S"})
    assert response.status_code == 502
    assert response.json()["error"]["type"] == "upstream_error"


@pytest.mark.asyncio
async def test_health(async_client, make_body):
    await async_client.post("/v1/messages", json=make_body("anthropic", DUPLICATES), headers={"x-session-id": "s1"})
    data = (await async_client.get("/health")).json()
    assert data["status"] == "ok"
    assert data["cached_tool_calls"] == 3
    assert data["upstream"] == "http://provider.test"


@pytest.mark.asyncio
async def test_session_headers_not_forwarded(async_client, provider, make_body):
    await async_client.post(
        "/v1/messages",
        json=make_body("anthropic", DUPLICATES),
        headers={"x-session-id": "s1", "x-parent-session-id": "p1", "x-api-key": "secret"},
    )

    forwarded = provider.requests[-1].headers
    assert "x-session-id" not in forwarded
    assert "x-parent-session-id" not in forwarded
    assert forwarded["x-api-key"] == "secret"


class ChildAwareHost:
    """Hôte externe simulé qui déclare `enfant` comme sous-agent de `s1`."""

    async def get_parent_id(self, session_id):
        return "s1" if session_id == "enfant" else None

    async def get_conversation(self, session_id):
        return None

    async def list_sessions(self):
        return ["s1", "enfant"]

    async def close(self):
        pass


@pytest.mark.asyncio
async def test_host_declared_child_is_neither_pruned_nor_rewritten(provider, make_body):
    settings = Settings(
        storage=StorageConfig(enabled=False),
        upstream=UpstreamConfig(base_url="http://provider.test", max_retries=0),
    )
    service = PruningService(settings, host=ChildAwareHost(), upstream_transport=httpx.MockTransport(provider))
    app = create_app(service=service)
    body = make_body("anthropic", DUPLICATES)

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        await client.post("/v1/messages", json=body, headers={"x-session-id": "s1"})
        service.store.get_or_assign_numeric_id("enfant", "r1")
        response = await client.post("/api/sessions/enfant/prune", json={"ids": ["noise", "0"]})
        assert response.status_code == 200
        assert response.json()["pruned"] == []
        assert service.store.union_pruned_ids() == set()

        service.store.add_pruned_ids("s1", ["r1"])
        await client.post("/v1/messages", json=body, headers={"x-session-id": "enfant"})
        assert _results(provider.last_body)["r1"] == "A" * 40
    await service.shutdown()
