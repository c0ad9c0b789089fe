"""Tests for ids, summaries, tags, error logging, caching and configuration."""

from agent_memory.cache import LRUCache
from agent_memory.config import load_config
from agent_memory.utils import (
    ERROR_LOG_LIMIT,
    generate_summary,
    log_error,
    ms_to_iso,
    new_id,
    normalize_tags,
)


class TestIds:
    def test_length_and_alphabet(self):
        memory_id = new_id(1_700_000_000_000)
        assert len(memory_id) == 26
        assert set(memory_id) <= set("0123456789ABCDEFGHJKMNPQRSTVWXYZ")

    def test_sorted_in_generation_order(self):
        ids = [new_id(1_700_000_000_000) for _ in range(50)]
        assert ids == sorted(ids)
        assert len(set(ids)) == 50

    def test_clock_going_backwards(self):
        later = new_id(1_800_000_000_000)
        earlier = new_id(1_700_000_000_000)
        assert earlier > later

    def test_time_prefix_orders_across_milliseconds(self):
        first = new_id(1_900_000_000_000)
        second = new_id(1_900_000_000_001)
        assert first < second


class TestSummary:
    def test_short_content_unchanged(self):
        assert generate_summary("short") == "short"

    def test_truncated_with_ellipsis(self):
        summary = generate_summary("x" * 150)
        assert summary == "x" * 100 + "..."


class TestTags:
    def test_normalize(self):
        assert normalize_tags([" a ", "b", "", "a", "c"]) == ["a", "b", "c"]
        assert normalize_tags(None) == []


class TestTimestamps:
    def test_iso_is_utc(self):
        assert ms_to_iso(0) == "1970-01-01T00:00:00+00:00"


class TestErrorLog:
    def test_entry_fields(self):
        errors = []
        try:
            raise RuntimeError("boom")
        except RuntimeError as e:
            log_error(errors, "generate_embedding", e)
        entry = errors[0]
        assert entry["operation"] == "generate_embedding"
        assert entry["error_type"] == "RuntimeError"
        assert entry["error_msg"] == "boom"
        assert "RuntimeError" in entry["traceback"]

    def test_capped(self):
        errors = []
        for i in range(ERROR_LOG_LIMIT + 20):
            log_error(errors, f"op{i}", ValueError(str(i)))
        assert len(errors) == ERROR_LOG_LIMIT
        assert errors[0]["operation"] == "op20"


class TestLRUCache:
    def test_evicts_least_recently_used(self):
        cache = LRUCache(maxsize=2)
        cache["a"] = 1
        cache["b"] = 2
        assert cache["a"] == 1
        cache["c"] = 3
        assert list(cache) == ["a", "c"]

    def test_lookup_counts(self):
        cache = LRUCache(maxsize=2)
        cache["a"] = 1
        assert cache.lookup("a") == 1
        assert cache.lookup("z") is None
        assert cache.stats() == {"size": 1, "maxsize": 2, "hits": 1, "misses": 1, "hit_rate": 0.5}


class TestConfig:
    def test_defaults(self, monkeypatch):
        for name in ("BACKEND_TYPE", "WORKSPACE_MODE", "MAX_SCAN", "VERSION_RETENTION", "EMBEDDING_PROVIDER"):
            monkeypatch.delenv(name, raising=False)
        config = load_config()
        assert config["backend_type"] == "redis"
        assert config["workspace_mode"] == "isolated"
        assert config["max_scan"] == 1000
        assert config["version_retention"] == 0
        assert config["embedding_provider"] == "sentence-transformers"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("BACKEND_TYPE", "VALKEY")
        monkeypatch.setenv("VERSION_RETENTION", "5")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        config = load_config()
        assert config["backend_type"] == "valkey"
        assert config["version_retention"] == 5
        assert config["log_level"] == "DEBUG"

    def test_invalid_scan_limit_falls_back(self, monkeypatch):
        monkeypatch.setenv("MAX_SCAN", "0")
        assert load_config()["max_scan"] == 1000
