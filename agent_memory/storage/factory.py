"""
Backend selection for Agent Memory System
Copyright 2025 Jurden Bruce
"""

import time
import logging
from typing import Any, Dict

from ..exceptions import ValidationError
from .base import KeyValueStore

logger = logging.getLogger("agent-memory.storage")

SUPPORTED_BACKENDS = ("redis", "valkey")


def build_storage_client(config: Dict[str, Any]) -> KeyValueStore:
    """Instantiate the configured backend without touching the network"""
    backend = config.get("backend_type", "redis")
    if backend == "redis":
        from .redis_store import RedisStore
        return RedisStore.from_url(config["redis_url"])
    if backend == "valkey":
        # Import only when selected; valkey is an optional extra
        from .valkey_store import ValkeyStore
        return ValkeyStore.from_url(config["valkey_url"])
    raise ValidationError(
        f"Unsupported backend '{backend}', expected one of {', '.join(SUPPORTED_BACKENDS)}",
        field="backend_type",
        value=backend,
    )


async def create_storage_client(config: Dict[str, Any]) -> KeyValueStore:
    """Build the configured backend and verify it answers"""
    start = time.perf_counter()
    store = build_storage_client(config)
    await store.ping()
    logger.info(f"[TIMING] {store.backend_name} backend ready in {(time.perf_counter() - start)*1000:.2f}ms")
    return store
