"""
Valkey storage backend for Agent Memory System
Copyright 2025 Jurden Bruce
"""

import logging

import valkey.asyncio as valkey
from valkey.exceptions import ValkeyError

from .redis_store import RedisProtocolStore

logger = logging.getLogger("agent-memory.storage")


class ValkeyStore(RedisProtocolStore):
    """Valkey backend (valkey-py asyncio client, wire compatible with Redis)"""

    backend_name = "valkey"
    client_errors = (ValkeyError,)

    @classmethod
    def from_url(cls, url: str) -> "ValkeyStore":
        client = valkey.from_url(url, encoding="utf-8", decode_responses=True)
        logger.info(f"Valkey client created for {url}")
        return cls(client)
