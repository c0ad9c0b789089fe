"""Pytest configuration and shared fixtures."""

from typing import Dict, List, Optional

import fakeredis
import pytest

from agent_memory.memory_store import MemoryStore
from agent_memory.storage.embeddings import EmbeddingProvider
from agent_memory.storage.redis_store import RedisStore
from agent_memory.workspace import WorkspaceMode

START_MS = 1_700_000_000_000


# ============================================================================
# Test doubles
# ============================================================================

class FakeClock:
    """Controllable epoch-ms clock."""

    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int = 1000) -> int:
        self.now += ms
        return self.now


class FakeEmbeddingProvider(EmbeddingProvider):
    """2-d vectors looked up by exact text; unknown text maps to [1, 1]."""

    name = "fake"

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None):
        self.vectors = vectors or {}
        self.fail = False
        self.calls = 0

    @property
    def dimensions(self) -> int:
        return 2

    async def generate_embedding(self, text: str) -> List[float]:
        self.calls += 1
        if self.fail:
            raise RuntimeError("embedding backend unavailable")
        return list(self.vectors.get(text, [1.0, 1.0]))


# ============================================================================
# Configuration
# ============================================================================

@pytest.fixture
def config():
    """Runtime configuration independent of the environment."""
    return {
        "backend_type": "redis",
        "redis_url": "redis://localhost:6379/15",
        "valkey_url": "valkey://localhost:6379/15",
        "workspace_mode": "isolated",
        "embedding_provider": "none",
        "embedding_model": "all-mpnet-base-v2",
        "vector_size": 2,
        "cache_maxsize": 100,
        "max_scan": 1000,
        "search_candidate_cap": 1000,
        "version_retention": 0,
        "log_level": "INFO",
    }


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def embeddings():
    return FakeEmbeddingProvider({
        "cats": [1.0, 0.0],
        "dogs": [0.0, 1.0],
        "kittens": [0.9, 0.1],
    })


# ============================================================================
# Storage
# ============================================================================

@pytest.fixture
def redis_client():
    """Async fake Redis on a private server."""
    return fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
async def storage(redis_client):
    store = RedisStore(redis_client)
    yield store
    await redis_client.flushall()


@pytest.fixture
def make_store(storage, config, clock, embeddings):
    """Factory for MemoryStores sharing one backend."""
    def _make(workspace_path: str = "/work/project", mode: WorkspaceMode = WorkspaceMode.ISOLATED, **overrides):
        provider = overrides.pop("embedding_provider", embeddings)
        cfg = dict(config, **overrides)
        return MemoryStore(storage, workspace_path, config=cfg, embedding_provider=provider, clock=clock, mode=mode)
    return _make


@pytest.fixture
def store(make_store):
    return make_store()
