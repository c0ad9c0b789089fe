"""Tests for sessions, statistics and export/import on the MemoryStore."""

import json

import pytest

from agent_memory.cache import LRUCache
from agent_memory.exceptions import NotFoundError, StorageError, ValidationError
from agent_memory.storage.embeddings import HashEmbeddingProvider
from agent_memory.workspace import WorkspaceMode


class TestSessions:
    async def test_create_keeps_only_existing_ids(self, store, storage):
        a = await store.create_memory("a")
        b = await store.create_memory("b")

        session = await store.create_session("morning", [a.id, "missing", b.id], summary="standup")

        assert session.memory_ids == [a.id, b.id]
        assert session.memory_count == 2
        assert session.workspace_id == store.workspace_id
        assert await storage.sismember(f"ws:{store.workspace_id}:sessions:all", session.session_id)

    async def test_round_trip(self, store):
        a = await store.create_memory("a")
        created = await store.create_session("morning", [a.id], summary="standup")

        loaded = await store.get_session(created.session_id)
        assert loaded == created

    async def test_session_memories(self, store):
        a = await store.create_memory("a")
        b = await store.create_memory("b")
        session = await store.create_session("s", [b.id, a.id])
        await store.delete_memory(b.id)

        assert [m.id for m in await store.get_session_memories(session.session_id)] == [a.id]

    async def test_unknown_session(self, store):
        assert await store.get_session("missing") is None
        with pytest.raises(NotFoundError):
            await store.get_session_memories("missing")

    async def test_all_sessions_newest_first(self, store):
        first = await store.create_session("first", [])
        second = await store.create_session("second", [])
        sessions = await store.get_all_sessions()
        assert [s.session_id for s in sessions] == [second.session_id, first.session_id]
        assert len(await store.get_all_sessions(limit=1)) == 1

    async def test_name_required(self, store):
        with pytest.raises(ValidationError):
            await store.create_session("  ", [])


class TestSummaryStats:
    async def test_counts(self, store):
        await store.create_memory("a")
        await store.create_memory("b")
        decision = await store.create_memory("c", context_type="decision", importance=9)
        await store.create_memory("shared", is_global=True)
        await store.create_session("s", [decision.id])

        stats = await store.get_summary_stats()

        assert stats["total_memories"] == 3
        assert stats["by_type"] == {"information": 2, "decision": 1}
        assert stats["important_count"] == 1
        assert stats["total_sessions"] == 1
        assert stats["global_memories"] == 1
        assert stats["workspace_id"] == store.workspace_id
        assert stats["workspace_path"] == "/work/project"
        assert stats["mode"] == "isolated"

    async def test_empty_workspace(self, store):
        stats = await store.get_summary_stats()
        assert stats["total_memories"] == 0
        assert stats["by_type"] == {}

    async def test_embedding_cache_figures(self, make_store, config):
        cache = LRUCache(maxsize=10)
        store = make_store(embedding_provider=HashEmbeddingProvider(config, cache))
        await store.create_memory("cats")
        await store.search_memories("cats")

        stats = await store.get_summary_stats()

        assert stats["embedding_cache"]["size"] == 1
        assert stats["embedding_cache"]["hits"] == 1
        assert stats["embedding_cache"]["misses"] == 1

    async def test_no_cache_figures_without_cache(self, store):
        assert (await store.get_summary_stats())["embedding_cache"] is None


class TestExport:
    async def test_newest_first_without_embeddings(self, store, clock):
        older = await store.create_memory("cats")
        clock.advance()
        newer = await store.create_memory("dogs")

        exported = await store.export_memories()

        assert exported["version"] == "1.2.0"
        assert exported["memory_count"] == 2
        assert [m["id"] for m in exported["memories"]] == [newer.id, older.id]
        assert "embedding" not in exported["memories"][0]
        json.dumps(exported)

    async def test_filters(self, store):
        await store.create_memory("a", importance=2)
        await store.create_memory("b", importance=9, context_type="decision")

        by_type = await store.export_memories(filter_by_type=["decision"])
        by_importance = await store.export_memories(min_importance=5)
        with_vectors = await store.export_memories(include_embeddings=True, limit=1)

        assert [m["content"] for m in by_type["memories"]] == ["b"]
        assert [m["content"] for m in by_importance["memories"]] == ["b"]
        assert with_vectors["memory_count"] == 1
        assert "embedding" in with_vectors["memories"][0]


class TestImport:
    async def test_into_another_workspace_keeps_ids(self, store, make_store, embeddings):
        original = await store.create_memory("cats", tags=["pets"], importance=7)
        exported = await store.export_memories(include_embeddings=True)

        other = make_store("/work/other")
        calls = embeddings.calls
        result = await other.import_memories(json.dumps(exported))

        assert result == {"imported": 1, "overwritten": 0, "skipped": 0, "errors": []}
        copy = await other.get_memory(original.id)
        assert copy.timestamp == original.timestamp
        assert copy.workspace_id == other.workspace_id
        assert copy.embedding == [1.0, 0.0]
        assert embeddings.calls == calls

    async def test_regenerate_embeddings(self, store, make_store, embeddings):
        await store.create_memory("cats")
        exported = await store.export_memories()

        other = make_store("/work/other")
        calls = embeddings.calls
        await other.import_memories(exported, regenerate_embeddings=True)
        assert embeddings.calls == calls + 1

    async def test_existing_records_are_skipped(self, store):
        await store.create_memory("cats")
        exported = await store.export_memories()

        result = await store.import_memories(exported)
        assert result["skipped"] == 1
        assert result["imported"] == 0

    async def test_overwrite_records_a_version(self, store):
        memory = await store.create_memory("cats")
        exported = await store.export_memories()
        exported["memories"][0]["content"] = "dogs"

        result = await store.import_memories(exported, overwrite_existing=True)

        assert result["overwritten"] == 1
        assert (await store.get_memory(memory.id)).content == "dogs"
        history = await store.get_memory_history(memory.id)
        assert history[0].change_reason == "Overwritten by import"

    async def test_bad_records_are_reported(self, store):
        data = {"memories": [{"id": "x1", "content": ""}, "not a record", {"content": "fine"}]}
        result = await store.import_memories(data)

        assert result["imported"] == 1
        assert len(result["errors"]) == 2
        assert "x1" in result["errors"][0]

    async def test_out_of_range_importance_is_rejected(self, store):
        result = await store.import_memories({"memories": [{"content": "hello", "importance": 0}]})

        assert result["imported"] == 0
        assert len(result["errors"]) == 1
        assert await store.get_recent_memories() == []

    async def test_store_outage_propagates(self, store, monkeypatch):
        async def refuse(key):
            raise StorageError("hgetall", "connection refused")

        monkeypatch.setattr(store.repository.store, "hgetall", refuse)
        with pytest.raises(StorageError):
            await store.import_memories({"memories": [{"id": "X1", "content": "hello", "importance": 5}]})

    @pytest.mark.parametrize("data", ["{not json", json.dumps({"items": []}), json.dumps([1, 2])])
    async def test_invalid_payload(self, store, data):
        with pytest.raises(ValidationError):
            await store.import_memories(data)

    async def test_import_always_lands_in_workspace(self, make_store):
        source = make_store(mode=WorkspaceMode.HYBRID)
        shared = await source.create_memory("shared", is_global=True)
        exported = await source.export_memories()
        await source.delete_memory(shared.id)

        await source.import_memories(exported)
        assert (await source.get_memory(shared.id)).is_global is False
