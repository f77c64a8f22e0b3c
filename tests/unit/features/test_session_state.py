"""
Tests unitaires du store des états de session et de sa persistance.
"""
import json
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from context_gateway.core.exceptions import PersistenceError
from context_gateway.features.session_state import JsonSessionStorage, SessionStateStore


class TestSessionStateStore:
    """Tests du store en mémoire."""

    def test_unknown_session_is_empty(self):
        store = SessionStateStore()
        assert store.get_pruned_ids("inconnue") == frozenset()
        assert store.get_state("inconnue").pruned_call_ids == set()

    def test_add_pruned_ids_normalizes_and_reports_new(self):
        store = SessionStateStore()
        assert store.add_pruned_ids("s1", ["AbC", "def", "  "]) == ["abc", "def"]
        assert store.add_pruned_ids("s1", ["ABC", "ghi"]) == ["ghi"]
        assert store.get_pruned_ids("s1") == {"abc", "def", "ghi"}

    def test_numeric_ids_are_stable_and_unique(self):
        store = SessionStateStore()
        first = store.get_or_assign_numeric_id("s1", "call_a")
        second = store.get_or_assign_numeric_id("s1", "call_b")
        assert store.get_or_assign_numeric_id("s1", "CALL_A") == first
        assert (first, second) == (0, 1)

    def test_numeric_ids_survive_pruning(self):
        store = SessionStateStore()
        store.get_or_assign_numeric_id("s1", "call_a")
        store.add_pruned_ids("s1", ["call_a"])
        assert store.get_or_assign_numeric_id("s1", "call_b") == 1
        assert store.get_or_assign_numeric_id("s1", "call_a") == 0

    def test_numeric_ids_are_per_session(self):
        store = SessionStateStore()
        store.get_or_assign_numeric_id("s1", "call_a")
        assert store.get_or_assign_numeric_id("s2", "call_z") == 0

    def test_numeric_id_base(self):
        store = SessionStateStore(numeric_id_base=1)
        assert store.get_or_assign_numeric_id("s1", "call_a") == 1

    def test_resolve_numeric_ids_skips_unknown(self):
        store = SessionStateStore()
        store.get_or_assign_numeric_id("s1", "call_a")
        store.get_or_assign_numeric_id("s1", "call_b")
        assert store.resolve_numeric_ids("s1", [1, 7, 0, 1]) == ["call_b", "call_a"]
        assert store.resolve_numeric_ids("absente", [0]) == []

    def test_token_counters(self):
        store = SessionStateStore()
        assert store.record_tokens_saved("s1", 100) == 100
        assert store.record_tokens_saved("s1", 50) == 150
        assert store.consume_tokens_counter("s1") == 150
        assert store.consume_tokens_counter("s1") == 0
        assert store.get_state("s1").total_tokens_saved == 150

    def test_nudge_counter(self):
        store = SessionStateStore()
        store.increment_nudge_counter("s1")
        assert store.increment_nudge_counter("s1") == 2
        store.reset_nudge_counter("s1")
        assert store.get_state("s1").nudge_counter == 0

    def test_union_excludes_children(self):
        store = SessionStateStore()
        store.add_pruned_ids("racine", ["a"])
        store.add_pruned_ids("autre", ["b"])
        store.set_parent("enfant", "racine")
        store.add_pruned_ids("enfant", ["c"])
        assert store.union_pruned_ids() == {"a", "b"}

    def test_get_state_returns_copy(self):
        store = SessionStateStore()
        store.add_pruned_ids("s1", ["a"])
        state = store.get_state("s1")
        state.pruned_call_ids.add("z")
        assert store.get_pruned_ids("s1") == {"a"}


class TestConcurrentAccess:
    """Écritures parallèles sur des sessions distinctes pendant la lecture de l'union."""

    def test_parallel_writers_and_union_reader(self):
        store = SessionStateStore()
        sessions = [f"s{i}" for i in range(6)]
        per_session = 200
        stop = threading.Event()
        reader_errors = []

        def writer(session_id):
            numeric = []
            for n in range(per_session):
                call_id = f"{session_id}_call_{n}"
                numeric.append(store.get_or_assign_numeric_id(session_id, call_id))
                store.add_pruned_ids(session_id, [call_id])
            return numeric

        def reader():
            try:
                while not stop.is_set():
                    store.union_pruned_ids()
            except Exception as e:
                reader_errors.append(e)

        reader_thread = threading.Thread(target=reader)
        reader_thread.start()
        try:
            with ThreadPoolExecutor(max_workers=len(sessions)) as pool:
                results = dict(zip(sessions, pool.map(writer, sessions)))
        finally:
            stop.set()
            reader_thread.join()

        assert reader_errors == []
        for session_id, numeric in results.items():
            assert sorted(numeric) == list(range(per_session))
        union = store.union_pruned_ids()
        assert len(union) == len(sessions) * per_session
        assert all(f"{s}_call_{n}" in union for s in sessions for n in range(per_session))


class TestPersistence:
    """Tests de la persistance JSON."""

    @pytest.mark.asyncio
    async def test_mutation_is_flushed(self, tmp_path):
        storage = JsonSessionStorage(str(tmp_path))
        store = SessionStateStore(storage)

        store.add_pruned_ids("s1", ["Call_A"])
        store.get_or_assign_numeric_id("s1", "call_b")
        await store.flush_all()

        data = json.loads(storage.path_for("s1").read_text(encoding="utf-8"))
        assert data["pruned_call_ids"] == ["call_a"]
        assert data["numeric_ids"] == {"call_b": 0}

    @pytest.mark.asyncio
    async def test_reload_restores_state(self, tmp_path):
        store = SessionStateStore(JsonSessionStorage(str(tmp_path)))
        store.add_pruned_ids("s1", ["a"])
        store.get_or_assign_numeric_id("s1", "a")
        store.record_tokens_saved("s1", 42)
        await store.flush_all()

        reloaded = SessionStateStore(JsonSessionStorage(str(tmp_path)))
        assert await reloaded.load_all() == 1
        assert reloaded.get_pruned_ids("s1") == {"a"}
        # Le prochain alias ne réutilise pas 0
        assert reloaded.get_or_assign_numeric_id("s1", "b") == 1
        assert reloaded.get_state("s1").total_tokens_saved == 42

    @pytest.mark.asyncio
    async def test_load_missing_session_is_empty(self, tmp_path):
        store = SessionStateStore(JsonSessionStorage(str(tmp_path)))
        state = await store.load("jamais-vue")
        assert state.pruned_call_ids == set()

    @pytest.mark.asyncio
    async def test_corrupt_file_is_treated_as_empty(self, tmp_path):
        storage = JsonSessionStorage(str(tmp_path))
        storage.path_for("s1").write_text("{corrompu", encoding="utf-8")
        store = SessionStateStore(storage)

        state = await store.load("s1")

        assert state.pruned_call_ids == set()
        with pytest.raises(PersistenceError):
            await storage.load("s1")

    @pytest.mark.asyncio
    async def test_flush_failure_keeps_memory_and_retries(self, tmp_path, monkeypatch):
        """Un flush échoué ne perd rien: le suivant réécrit l'état."""
        storage = JsonSessionStorage(str(tmp_path))
        store = SessionStateStore(storage)
        original_save = storage.save

        async def failing_save(session_id, data):
            raise PersistenceError("disque plein", session_id, "save")

        monkeypatch.setattr(storage, "save", failing_save)
        store.add_pruned_ids("s1", ["a"])
        await store.flush_all()
        assert store.get_pruned_ids("s1") == {"a"}
        assert not storage.path_for("s1").exists()

        monkeypatch.setattr(storage, "save", original_save)
        assert await store.flush_all() == 1
        assert storage.path_for("s1").exists()

    def test_unsafe_session_ids_get_distinct_files(self, tmp_path):
        storage = JsonSessionStorage(str(tmp_path))
        first = storage.path_for("a/b")
        second = storage.path_for("a_b")
        assert first != second
        assert first.parent == tmp_path
