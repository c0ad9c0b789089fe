"""
Version ledger for Agent Memory System
Copyright 2025 Jurden Bruce

Append-only snapshots of a memory's mutable fields. Each snapshot is a hash
at ``<ns>:memory:<id>:version:<vid>`` indexed by the sorted set
``<ns>:memory:<id>:versions`` (score = snapshot time in ms). Version ids are
monotonic, so equal scores still order by creation.
"""

import logging
from typing import Callable, List, Optional

from .exceptions import ValidationError
from .models import CREATED_BY_SYSTEM, CREATED_BY_USER, MemoryEntry, MemoryVersion
from .storage.base import KeyValueStore
from .storage.codec import decode_version, encode_version
from .utils import ms_to_iso, new_id, now_ms
from .workspace import KeySpace, WorkspaceResolver

logger = logging.getLogger("agent-memory.versions")

CREATED_BY_VALUES = (CREATED_BY_USER, CREATED_BY_SYSTEM)


class VersionLedger:
    """Per-memory version history"""

    def __init__(
        self,
        store: KeyValueStore,
        resolver: WorkspaceResolver,
        clock: Callable[[], int] = now_ms,
        retention: int = 0,
        max_scan: int = 1000,
    ):
        self.store = store
        self.resolver = resolver
        self._clock = clock
        self.retention = retention
        self.max_scan = max_scan

    async def snapshot(
        self,
        memory: MemoryEntry,
        created_by: str = CREATED_BY_USER,
        change_reason: Optional[str] = None,
    ) -> MemoryVersion:
        """Persist the current state of ``memory`` as a new version"""
        if created_by not in CREATED_BY_VALUES:
            raise ValidationError("created_by must be 'user' or 'system'", field="created_by", value=created_by)

        timestamp = self._clock()
        version = MemoryVersion(
            version_id=new_id(timestamp),
            memory_id=memory.id,
            content=memory.content,
            context_type=memory.context_type,
            importance=memory.importance,
            tags=list(memory.tags),
            summary=memory.summary,
            created_at=ms_to_iso(timestamp),
            created_by=created_by,
            change_reason=change_reason,
        )

        keys = self.resolver.keys_for(memory.is_global)
        versions_key = keys.memory_versions(memory.id)
        pipe = self.store.pipeline()
        pipe.hset(keys.memory_version(memory.id, version.version_id), encode_version(version))
        pipe.zadd(versions_key, timestamp, version.version_id)
        await pipe.execute()

        if self.retention > 0:
            await self._prune(keys, memory.id)

        logger.debug(f"Version {version.version_id} recorded for {memory.id} ({created_by})")
        return version

    async def _prune(self, keys: KeySpace, memory_id: str):
        """Drop everything but the newest ``retention`` versions"""
        versions_key = keys.memory_versions(memory_id)
        stale = await self.store.zrange(versions_key, 0, -(self.retention + 1))
        if not stale:
            return
        pipe = self.store.pipeline()
        pipe.delete(*[keys.memory_version(memory_id, vid) for vid in stale])
        pipe.zremrangebyrank(versions_key, 0, -(self.retention + 1))
        await pipe.execute()
        logger.info(f"Pruned {len(stale)} old versions of {memory_id}")

    async def _scope_for(self, memory_id: str, is_global: Optional[bool]) -> Optional[KeySpace]:
        if is_global is not None:
            return self.resolver.keys_for(is_global)
        # the memory itself may be gone; find whichever namespace holds its history
        for keys in self.resolver.lookup_scopes():
            if await self.store.zcard(keys.memory_versions(memory_id)):
                return keys
        return None

    async def get_memory_history(
        self,
        memory_id: str,
        limit: int = 50,
        is_global: Optional[bool] = None,
    ) -> List[MemoryVersion]:
        """Up to ``limit`` versions, newest first"""
        if limit < 1:
            raise ValidationError("limit must be at least 1", field="limit", value=limit)
        limit = min(limit, self.max_scan)

        keys = await self._scope_for(memory_id, is_global)
        if keys is None:
            return []

        version_ids = await self.store.zrevrange(keys.memory_versions(memory_id), 0, limit - 1)
        history = []
        for version_id in version_ids:
            version = decode_version(await self.store.hgetall(keys.memory_version(memory_id, version_id)))
            if version is not None:
                history.append(version)
        return history

    async def get_version(
        self,
        memory_id: str,
        version_id: str,
        is_global: Optional[bool] = None,
    ) -> Optional[MemoryVersion]:
        if is_global is not None:
            scopes = [self.resolver.keys_for(is_global)]
        else:
            scopes = self.resolver.lookup_scopes()
        for keys in scopes:
            version = decode_version(await self.store.hgetall(keys.memory_version(memory_id, version_id)))
            if version is not None:
                return version
        return None
