"""
Tests unitaires du cache des métadonnées d'outils.
"""
from concurrent.futures import ThreadPoolExecutor

from context_gateway.core.models import ToolCallRecord
from context_gateway.proxy.formats import detect_format
from context_gateway.proxy.tool_cache import ToolMetadataCache


class TestToolMetadataCache:
    """Tests du cache call id -> outil/paramètres."""

    def test_record_unseen_only(self):
        cache = ToolMetadataCache()
        assert cache.record(ToolCallRecord("Call_1", "read", {"filePath": "a"}))
        assert not cache.record(ToolCallRecord("call_1", "write", {"filePath": "b"}))
        assert cache.get("CALL_1").tool_name == "read"
        assert len(cache) == 1

    def test_lookup_is_case_insensitive(self):
        cache = ToolMetadataCache()
        cache.record(ToolCallRecord("AbC", "bash", {"command": "ls"}))
        assert "abc" in cache
        assert "ABC" in cache
        assert 42 not in cache

    def test_update_from_messages(self, make_body, wire_format):
        body = make_body(wire_format, [
            ("c1", "read", {"filePath": "a"}, "A"),
            ("c2", "glob", {"pattern": "*.py"}, "x.py"),
        ])
        descriptor = detect_format(body)
        cache = ToolMetadataCache()

        assert cache.update_from_messages(descriptor, descriptor.locate_messages(body)) == 2
        # Second passage: rien de nouveau
        assert cache.update_from_messages(descriptor, descriptor.locate_messages(body)) == 0
        assert cache.get("c2").parameters == {"pattern": "*.py"}

    def test_snapshot_is_a_copy(self):
        cache = ToolMetadataCache()
        cache.record(ToolCallRecord("c1", "read", {}))
        snapshot = cache.snapshot()
        snapshot.clear()
        assert len(cache) == 1

    def test_concurrent_record_first_write_wins(self):
        cache = ToolMetadataCache()
        shared = [f"call_{n}" for n in range(300)]

        def writer(tool_name):
            return sum(cache.record(ToolCallRecord(call_id, tool_name, {})) for call_id in shared)

        tools = ["read", "write", "bash", "glob"]
        with ThreadPoolExecutor(max_workers=len(tools)) as pool:
            accepted = list(pool.map(writer, tools))

        assert sum(accepted) == len(shared)
        assert len(cache) == len(shared)
        snapshot = cache.snapshot()
        assert all(snapshot[call_id].tool_name in tools for call_id in shared)
