"""Tests for the storage adapters, backend factory and embedding providers."""

import numpy
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from agent_memory.cache import LRUCache
from agent_memory.exceptions import AgentMemoryError, StorageError, ValidationError
from agent_memory.storage import embeddings as embeddings_module
from agent_memory.storage.embeddings import HashEmbeddingProvider, SentenceTransformerProvider, create_embedding_provider
from agent_memory.storage.factory import build_storage_client
from agent_memory.storage.redis_store import RedisStore


class TestRedisStore:
    async def test_scalars_and_hashes(self, storage):
        await storage.set("k", "v")
        assert await storage.get("k") == "v"
        assert await storage.setnx("k", "other") is False
        assert await storage.setnx("k2", "v2") is True

        await storage.hset("h", {"a": "1", "b": "2"})
        assert await storage.hgetall("h") == {"a": "1", "b": "2"}
        assert await storage.hincrby("h", "a", 2) == 3
        assert await storage.hdel("h", "b") == 1
        assert await storage.hgetall("missing") == {}

    async def test_sets(self, storage):
        await storage.sadd("s1", "a", "b")
        await storage.sadd("s2", "b", "c")
        assert sorted(await storage.smembers("s1")) == ["a", "b"]
        assert sorted(await storage.sunion(["s1", "s2"])) == ["a", "b", "c"]
        assert await storage.sunion([]) == []
        assert await storage.scard("s1") == 2
        assert await storage.srem("s1", "a") == 1
        assert await storage.sismember("s1", "a") is False

    async def test_sorted_sets(self, storage):
        for score, member in enumerate(["a", "b", "c", "d"]):
            await storage.zadd("z", score, member)

        assert await storage.zrange("z", 0, 1) == ["a", "b"]
        assert await storage.zrevrange("z", 0, 1) == ["d", "c"]
        assert await storage.zrangebyscore("z", 1, 3) == ["b", "c", "d"]
        assert await storage.zrevrangebyscore("z", 3, 0, offset=1, count=2) == ["c", "b"]
        assert await storage.zcount("z", 1, 2) == 2
        assert await storage.zscore("z", "c") == 2
        assert await storage.zremrangebyrank("z", 0, 0) == 1
        assert await storage.zcard("z") == 3

    async def test_empty_variadic_calls_are_noops(self, storage):
        assert await storage.delete() == 0
        assert await storage.sadd("s") == 0
        assert await storage.zrem("z") == 0
        await storage.hset("h", {})
        assert await storage.exists("h") is False

    async def test_pipeline(self, storage):
        pipe = storage.pipeline()
        pipe.set("k", "v").sadd("s", "a").zadd("z", 1, "m").hset("h", {"f": "1"}).expire("k", 60)
        results = await pipe.execute()

        assert len(results) == 5
        assert await storage.get("k") == "v"
        assert await storage.sismember("s", "a")
        assert await storage.pipeline().execute() == []

    async def test_ping(self, storage):
        assert await storage.ping() is True


class BrokenClient:
    """Client whose every command fails with a connection error"""

    async def get(self, key):
        raise RedisConnectionError("connection refused")

    async def ping(self):
        raise RedisConnectionError("connection refused")


class TestErrorTranslation:
    async def test_client_errors_become_storage_errors(self):
        store = RedisStore(BrokenClient())
        with pytest.raises(StorageError) as exc:
            await store.get("k")
        assert exc.value.operation == "get"
        assert isinstance(exc.value.__cause__, RedisConnectionError)

    async def test_storage_error_is_agent_memory_error(self):
        with pytest.raises(AgentMemoryError):
            await RedisStore(BrokenClient()).ping()


class TestFactory:
    def test_unknown_backend(self, config):
        with pytest.raises(ValidationError) as exc:
            build_storage_client(dict(config, backend_type="memcached"))
        assert exc.value.field == "backend_type"

    def test_redis_backend(self, config):
        store = build_storage_client(config)
        assert isinstance(store, RedisStore)
        assert store.backend_name == "redis"


class TestEmbeddingProviders:
    def test_none_disables(self, config):
        assert create_embedding_provider(dict(config, embedding_provider="none")) is None

    def test_unknown_provider(self, config):
        with pytest.raises(ValidationError):
            create_embedding_provider(dict(config, embedding_provider="word2vec"))

    def test_missing_sentence_transformers(self, config, monkeypatch):
        monkeypatch.setattr(embeddings_module, "EMBEDDINGS_AVAILABLE", False)
        with pytest.raises(AgentMemoryError):
            create_embedding_provider(dict(config, embedding_provider="sentence-transformers"))

    async def test_hash_provider_is_deterministic(self, config):
        cfg = dict(config, vector_size=48)
        provider = create_embedding_provider(dict(cfg, embedding_provider="hash"))
        assert isinstance(provider, HashEmbeddingProvider)

        first = await provider.generate_embedding("hello")
        again = await HashEmbeddingProvider(cfg, LRUCache()).generate_embedding("hello")
        other = await provider.generate_embedding("world")

        assert len(first) == 48
        assert first == again
        assert first != other
        assert all(0.0 <= x <= 1.0 for x in first)

    async def test_hash_provider_uses_cache(self, config):
        cache = LRUCache()
        provider = HashEmbeddingProvider(config, cache)
        await provider.generate_embedding("hello")
        await provider.generate_embedding("hello")
        assert cache.hits == 1
        assert cache.misses == 1

    async def test_batch(self, config):
        provider = HashEmbeddingProvider(config, LRUCache())
        vectors = await provider.generate_embeddings(["a", "b"])
        assert vectors == [await provider.generate_embedding("a"), await provider.generate_embedding("b")]


class StubEncoder:
    """Encodes each text as its length, in the sentence-transformers shape"""

    def __init__(self):
        self.batches = []

    def encode(self, texts):
        self.batches.append(list(texts))
        return numpy.array([[float(len(t)), 1.0] for t in texts])


class TestSentenceTransformerBatch:
    def provider(self, config, cache):
        provider = SentenceTransformerProvider(config, cache, lazy_load=True)
        provider.encoder = StubEncoder()
        return provider

    async def test_batch_larger_than_cache(self, config):
        provider = self.provider(config, LRUCache(maxsize=2))
        vectors = await provider.generate_embeddings(["a", "bb", "ccc"])
        assert vectors == [[1.0, 1.0], [2.0, 1.0], [3.0, 1.0]]

    async def test_batch_encodes_only_misses(self, config):
        cache = LRUCache(maxsize=10)
        provider = self.provider(config, cache)
        await provider.generate_embeddings(["a"])
        vectors = await provider.generate_embeddings(["a", "bb", "bb"])

        assert vectors == [[1.0, 1.0], [2.0, 1.0], [2.0, 1.0]]
        assert provider.encoder.batches == [["a"], ["bb"]]
        assert cache.hits == 1
