"""
Memory repository for Agent Memory System
Copyright 2025 Jurden Bruce

CRUD over memory hashes plus the secondary indices kept beside them:
the all/type/tag sets, the timeline and importance sorted sets and the
category keys. Expired entries are filtered on every read, whether or not
the store has evicted them yet.
"""

import math
import logging
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, List, Optional

from .config import DEFAULT_LIMIT, IMPORTANT_THRESHOLD, MIN_TTL_SECONDS
from .exceptions import ValidationError
from .hooks import MemoryHooks
from .models import CREATED_BY_USER, ContextType, MemoryEntry
from .storage.base import KeyValueStore, Pipeline
from .storage.codec import decode_memory, encode_memory
from .storage.embeddings import EmbeddingProvider
from .utils import generate_summary, log_error, new_id, normalize_tags, now_ms
from .versions import VersionLedger
from .workspace import KeySpace, WorkspaceResolver, workspace_keys

logger = logging.getLogger("agent-memory.repository")

MEMORY_FIELDS = (
    "content", "context_type", "tags", "importance", "summary",
    "session_id", "ttl_seconds", "is_global", "category",
)
PATCH_FIELDS = ("content", "context_type", "tags", "importance", "summary", "session_id", "category")


def validate_content(content: Any) -> str:
    if not isinstance(content, str) or not content.strip():
        raise ValidationError("content must be a non-empty string", field="content", value=content)
    return content


def validate_importance(importance: Any) -> int:
    if isinstance(importance, bool) or not isinstance(importance, int) or not 1 <= importance <= 10:
        raise ValidationError("importance must be an integer between 1 and 10", field="importance", value=importance)
    return importance


def validate_context_type(context_type: Any) -> str:
    try:
        return ContextType(context_type).value
    except ValueError:
        raise ValidationError(f"Unknown context type '{context_type}'", field="context_type", value=context_type)


def validate_tags(tags: Any) -> List[str]:
    if tags is None:
        return []
    if isinstance(tags, str) or not isinstance(tags, (list, tuple, set)):
        raise ValidationError("tags must be a list of strings", field="tags", value=tags)
    return normalize_tags(tags)


def validate_ttl(ttl_seconds: Any) -> Optional[int]:
    if ttl_seconds is None:
        return None
    if isinstance(ttl_seconds, bool) or not isinstance(ttl_seconds, int) or ttl_seconds < MIN_TTL_SECONDS:
        raise ValidationError(
            f"ttl_seconds must be an integer of at least {MIN_TTL_SECONDS}",
            field="ttl_seconds",
            value=ttl_seconds,
        )
    return ttl_seconds


def _optional_text(value: Any, field: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field=field, value=value)
    return value or None


def validate_memory_fields(
    content: Any,
    context_type: Any = ContextType.INFORMATION.value,
    tags: Any = None,
    importance: Any = 5,
    summary: Any = None,
    session_id: Any = None,
    ttl_seconds: Any = None,
    is_global: Any = False,
    category: Any = None,
) -> Dict[str, Any]:
    """Normalized creation fields; raises ValidationError on the first bad value"""
    return {
        "content": validate_content(content),
        "context_type": validate_context_type(context_type),
        "tags": validate_tags(tags),
        "importance": validate_importance(importance),
        "summary": _optional_text(summary, "summary"),
        "session_id": _optional_text(session_id, "session_id"),
        "ttl_seconds": validate_ttl(ttl_seconds),
        "is_global": bool(is_global),
        "category": _optional_text(category, "category"),
    }


def validate_patch(**patch) -> Dict[str, Any]:
    """Validated subset of PATCH_FIELDS; None means 'leave unchanged'"""
    unknown = set(patch) - set(PATCH_FIELDS)
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}", field=sorted(unknown)[0])
    changes = {}
    for field, value in patch.items():
        if value is None:
            continue
        if field == "content":
            changes[field] = validate_content(value)
        elif field == "context_type":
            changes[field] = validate_context_type(value)
        elif field == "tags":
            changes[field] = validate_tags(value)
        elif field == "importance":
            changes[field] = validate_importance(value)
        else:
            changes[field] = _optional_text(value, field)
    return changes


class MemoryRepository:
    """Memory entries and their indices in the key-value store"""

    def __init__(
        self,
        store: KeyValueStore,
        resolver: WorkspaceResolver,
        config: Dict[str, Any],
        versions: VersionLedger,
        embedding_provider: Optional[EmbeddingProvider] = None,
        hooks: Optional[MemoryHooks] = None,
        clock: Callable[[], int] = now_ms,
        error_log: Optional[List[Dict[str, Any]]] = None,
    ):
        self.store = store
        self.resolver = resolver
        self.config = config
        self.versions = versions
        self.embedding_provider = embedding_provider
        self.hooks = hooks or MemoryHooks()
        self._clock = clock
        self.error_log = error_log if error_log is not None else []

    # ------------------------------------------------------------------
    # embeddings

    def check_dimensions(self, vector: Optional[List[float]], label: str = "") -> Optional[List[float]]:
        """The vector as floats, or None when its length is not vector_size"""
        if vector is None:
            return None
        expected = self.config["vector_size"]
        if len(vector) != expected:
            logger.warning(f"Dropping embedding {label} with dimension {len(vector)} (expected {expected})")
            return None
        return [float(x) for x in vector]

    async def embed(self, text: str, label: str = "") -> Optional[List[float]]:
        if self.embedding_provider is None:
            return None
        try:
            vector = await self.embedding_provider.generate_embedding(text)
        except Exception as e:
            logger.warning(f"Embedding generation failed {label}: {e}")
            log_error(self.error_log, "generate_embedding", e)
            return None
        return self.check_dimensions(vector, label)

    # ------------------------------------------------------------------
    # index maintenance

    def _queue_category(self, pipe: Pipeline, keys: KeySpace, memory_id: str, category: str):
        pipe.set(keys.memory_category(memory_id), category)
        pipe.sadd(keys.category(category), memory_id)
        pipe.zadd(keys.categories(), self._clock(), category)

    def _queue_indices(self, pipe: Pipeline, keys: KeySpace, memory: MemoryEntry):
        pipe.sadd(keys.memories(), memory.id)
        pipe.zadd(keys.timeline(), memory.timestamp, memory.id)
        pipe.sadd(keys.by_type(memory.context_type), memory.id)
        for tag in memory.tags:
            pipe.sadd(keys.by_tag(tag), memory.id)
        if memory.importance >= IMPORTANT_THRESHOLD:
            pipe.zadd(keys.important(), memory.importance, memory.id)
        if memory.category:
            self._queue_category(pipe, keys, memory.id, memory.category)

    def _queue_index_removal(self, pipe: Pipeline, keys: KeySpace, memory: MemoryEntry):
        pipe.srem(keys.memories(), memory.id)
        pipe.zrem(keys.timeline(), memory.id)
        pipe.srem(keys.by_type(memory.context_type), memory.id)
        for tag in memory.tags:
            pipe.srem(keys.by_tag(tag), memory.id)
        pipe.zrem(keys.important(), memory.id)
        if memory.category:
            pipe.srem(keys.category(memory.category), memory.id)
        pipe.delete(keys.memory_category(memory.id))

    def _remaining_ttl(self, memory: MemoryEntry) -> Optional[int]:
        if memory.expires_at is None:
            return None
        return max(1, math.ceil((memory.expires_at - self._clock()) / 1000))

    # ------------------------------------------------------------------
    # create

    async def create_memory(
        self,
        content: str,
        context_type: str = ContextType.INFORMATION.value,
        tags: Optional[List[str]] = None,
        importance: int = 5,
        summary: Optional[str] = None,
        session_id: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
        is_global: bool = False,
        category: Optional[str] = None,
    ) -> MemoryEntry:
        fields = validate_memory_fields(
            content=content,
            context_type=context_type,
            tags=tags,
            importance=importance,
            summary=summary,
            session_id=session_id,
            ttl_seconds=ttl_seconds,
            is_global=is_global,
            category=category,
        )
        return await self.insert(fields)

    async def batch_create_memories(self, items: Iterable[Dict[str, Any]]) -> List[MemoryEntry]:
        """Create several memories; nothing is written unless every item is valid"""
        validated = []
        for index, item in enumerate(items):
            unknown = set(item) - set(MEMORY_FIELDS)
            if unknown:
                raise ValidationError(
                    f"Item {index} has unknown fields: {', '.join(sorted(unknown))}",
                    field=sorted(unknown)[0],
                )
            if "content" not in item:
                raise ValidationError(f"Item {index} is missing content", field="content")
            validated.append(validate_memory_fields(**item))

        created = []
        for fields in validated:
            created.append(await self.insert(fields))
        logger.info(f"Batch stored {len(created)} memories")
        return created

    async def insert(
        self,
        fields: Dict[str, Any],
        memory_id: Optional[str] = None,
        timestamp: Optional[int] = None,
        embedding: Optional[List[float]] = None,
    ) -> MemoryEntry:
        """Persist already-validated fields as a new memory in one pipeline"""
        now = self._clock()
        memory_id = memory_id or new_id(now)
        if embedding is None:
            embedding = await self.embed(fields["content"], label=memory_id)

        ttl = fields["ttl_seconds"]
        memory = MemoryEntry(
            id=memory_id,
            content=fields["content"],
            context_type=fields["context_type"],
            importance=fields["importance"],
            timestamp=timestamp if timestamp is not None else now,
            workspace_id="" if fields["is_global"] else self.resolver.workspace_id,
            tags=list(fields["tags"]),
            summary=fields["summary"] or generate_summary(fields["content"]),
            embedding=embedding,
            session_id=fields["session_id"],
            ttl_seconds=ttl,
            expires_at=now + ttl * 1000 if ttl else None,
            is_global=fields["is_global"],
            category=fields["category"],
        )

        keys = self.resolver.keys_for(memory.is_global)
        context = await self.hooks.prepare(memory)

        pipe = self.store.pipeline()
        pipe.hset(keys.memory(memory.id), encode_memory(memory))
        if ttl:
            pipe.expire(keys.memory(memory.id), ttl)
        self._queue_indices(pipe, keys, memory)
        self.hooks.apply(pipe, memory, context)
        await pipe.execute()

        logger.info(f"Stored memory {memory.id} ({memory.context_type}, importance {memory.importance}, {keys.prefix})")
        return memory

    # ------------------------------------------------------------------
    # read

    async def _read(self, keys: KeySpace, memory_id: str) -> Optional[MemoryEntry]:
        return decode_memory(await self.store.hgetall(keys.memory(memory_id)))

    async def get_memory(
        self,
        memory_id: str,
        is_global: Optional[bool] = None,
        include_expired: bool = False,
    ) -> Optional[MemoryEntry]:
        """Workspace namespace first, then global; None when absent or expired"""
        if is_global is None:
            scopes = self.resolver.lookup_scopes()
        else:
            scopes = [self.resolver.keys_for(is_global)]

        for keys in scopes:
            memory = await self._read(keys, memory_id)
            if memory is None:
                continue
            if not include_expired and memory.is_expired(self._clock()):
                logger.debug(f"Memory {memory_id} expired at {memory.expires_at}")
                return None
            return memory
        return None

    async def get_memories(self, memory_ids: Iterable[str]) -> List[MemoryEntry]:
        """Load in order, skipping duplicates and ids that no longer resolve"""
        memories = []
        seen = set()
        for memory_id in memory_ids:
            if memory_id in seen:
                continue
            seen.add(memory_id)
            memory = await self.get_memory(memory_id)
            if memory is not None:
                memories.append(memory)
        return memories

    def clamp_limit(self, limit: int) -> int:
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ValidationError("limit must be a positive integer", field="limit", value=limit)
        return min(limit, self.config["max_scan"])

    async def _newest_members(self, set_keys: List[str], limit: int) -> List[MemoryEntry]:
        # ids are time-prefixed, so lexical order is creation order
        ids = sorted(await self.store.sunion(set_keys), reverse=True)[:limit]
        return await self.get_memories(ids)

    async def get_recent_memories(self, limit: int = DEFAULT_LIMIT) -> List[MemoryEntry]:
        limit = self.clamp_limit(limit)
        ids = []
        for keys in self.resolver.read_scopes():
            ids.extend(await self.store.zrevrange(keys.timeline(), 0, limit - 1))
        memories = await self.get_memories(ids)
        memories.sort(key=lambda m: (m.timestamp, m.id), reverse=True)
        return memories[:limit]

    async def get_memories_by_type(self, context_type: str, limit: int = DEFAULT_LIMIT) -> List[MemoryEntry]:
        context_type = validate_context_type(context_type)
        limit = self.clamp_limit(limit)
        return await self._newest_members([k.by_type(context_type) for k in self.resolver.read_scopes()], limit)

    async def get_memories_by_tag(self, tag: str, limit: int = DEFAULT_LIMIT) -> List[MemoryEntry]:
        limit = self.clamp_limit(limit)
        return await self._newest_members([k.by_tag(tag) for k in self.resolver.read_scopes()], limit)

    async def get_memories_by_category(self, category: str, limit: int = DEFAULT_LIMIT) -> List[MemoryEntry]:
        limit = self.clamp_limit(limit)
        return await self._newest_members([k.category(category) for k in self.resolver.read_scopes()], limit)

    async def get_memories_by_time_window(
        self,
        start_ms: int,
        end_ms: int,
        limit: int = DEFAULT_LIMIT,
    ) -> List[MemoryEntry]:
        """Memories created in [start_ms, end_ms], oldest first"""
        if start_ms > end_ms:
            raise ValidationError("start_ms must not be after end_ms", field="start_ms", value=start_ms)
        limit = self.clamp_limit(limit)
        ids = []
        for keys in self.resolver.read_scopes():
            ids.extend(await self.store.zrangebyscore(keys.timeline(), start_ms, end_ms, offset=0, count=limit))
        memories = await self.get_memories(ids)
        memories.sort(key=lambda m: (m.timestamp, m.id))
        return memories[:limit]

    async def get_important_memories(self, min_importance: int = IMPORTANT_THRESHOLD, limit: int = DEFAULT_LIMIT) -> List[MemoryEntry]:
        validate_importance(min_importance)
        limit = self.clamp_limit(limit)
        ids = []
        for keys in self.resolver.read_scopes():
            ids.extend(await self.store.zrevrangebyscore(keys.important(), 10, min_importance, offset=0, count=limit))
        memories = await self.get_memories(ids)
        memories.sort(key=lambda m: (m.importance, m.timestamp), reverse=True)
        return memories[:limit]

    async def candidate_ids(self, context_types: Optional[List[str]] = None, cap: int = 1000) -> List[str]:
        """Newest ``cap`` memory ids visible to search"""
        scopes = self.resolver.read_scopes()
        if context_types:
            set_keys = [k.by_type(ct) for k in scopes for ct in context_types]
        else:
            set_keys = [k.memories() for k in scopes]
        return sorted(await self.store.sunion(set_keys), reverse=True)[:cap]

    # ------------------------------------------------------------------
    # update

    async def update_memory(
        self,
        memory_id: str,
        content: Optional[str] = None,
        context_type: Optional[str] = None,
        tags: Optional[List[str]] = None,
        importance: Optional[int] = None,
        summary: Optional[str] = None,
        session_id: Optional[str] = None,
        category: Optional[str] = None,
        created_by: str = CREATED_BY_USER,
        change_reason: Optional[str] = None,
    ) -> Optional[MemoryEntry]:
        """Snapshot the current state, then apply the patch"""
        changes = validate_patch(
            content=content,
            context_type=context_type,
            tags=tags,
            importance=importance,
            summary=summary,
            session_id=session_id,
            category=category,
        )

        existing = await self.get_memory(memory_id)
        if existing is None:
            logger.warning(f"Memory {memory_id} not found, nothing to update")
            return None

        await self.versions.snapshot(existing, created_by=created_by, change_reason=change_reason or "Memory updated")
        updated = await self.apply_changes(existing, changes)
        logger.info(f"Memory {memory_id} updated ({', '.join(sorted(changes)) or 'no field changes'})")
        return updated

    async def apply_changes(self, existing: MemoryEntry, changes: Dict[str, Any]) -> MemoryEntry:
        """Write validated field changes and keep the indices in step.

        Does not record a version; callers snapshot first.
        """
        updated = replace(existing, **changes)
        updated.tags = list(updated.tags)
        if updated.content != existing.content:
            updated.embedding = await self.embed(updated.content, label=existing.id)
            if "summary" not in changes:
                updated.summary = generate_summary(updated.content)

        keys = self.resolver.keys_for(existing.is_global)
        context = await self.hooks.prepare(updated)

        pipe = self.store.pipeline()
        pipe.hset(keys.memory(existing.id), encode_memory(updated))

        if updated.context_type != existing.context_type:
            pipe.srem(keys.by_type(existing.context_type), existing.id)
            pipe.sadd(keys.by_type(updated.context_type), existing.id)

        for tag in existing.tags:
            if tag not in updated.tags:
                pipe.srem(keys.by_tag(tag), existing.id)
        for tag in updated.tags:
            if tag not in existing.tags:
                pipe.sadd(keys.by_tag(tag), existing.id)

        if updated.importance >= IMPORTANT_THRESHOLD:
            pipe.zadd(keys.important(), updated.importance, existing.id)
        elif existing.importance >= IMPORTANT_THRESHOLD:
            pipe.zrem(keys.important(), existing.id)

        if updated.category != existing.category:
            if existing.category:
                pipe.srem(keys.category(existing.category), existing.id)
            if updated.category:
                self._queue_category(pipe, keys, existing.id, updated.category)

        self.hooks.apply(pipe, updated, context)
        await pipe.execute()
        return updated

    # ------------------------------------------------------------------
    # delete

    async def delete_memory(self, memory_id: str) -> bool:
        """Hard delete; relationships and versions stay behind"""
        memory = await self.get_memory(memory_id, include_expired=True)
        if memory is None:
            return False

        keys = self.resolver.keys_for(memory.is_global)
        pipe = self.store.pipeline()
        pipe.delete(keys.memory(memory_id))
        self._queue_index_removal(pipe, keys, memory)
        await pipe.execute()

        logger.info(f"Deleted memory {memory_id} from {keys.prefix}")
        return True

    # ------------------------------------------------------------------
    # categories

    async def set_memory_category(self, memory_id: str, category: str) -> Optional[MemoryEntry]:
        category = _optional_text(category, "category")
        if not category:
            raise ValidationError("category must be a non-empty string", field="category", value=category)

        memory = await self.get_memory(memory_id)
        if memory is None:
            return None

        keys = self.resolver.keys_for(memory.is_global)
        pipe = self.store.pipeline()
        if memory.category and memory.category != category:
            pipe.srem(keys.category(memory.category), memory_id)
        self._queue_category(pipe, keys, memory_id, category)
        pipe.hset(keys.memory(memory_id), {"category": category})
        await pipe.execute()

        memory.category = category
        return memory

    async def get_all_categories(self) -> List[Dict[str, Any]]:
        categories = {}
        for keys in self.resolver.read_scopes():
            names = await self.store.zrevrange(keys.categories(), 0, self.config["max_scan"] - 1)
            for name in names:
                count = await self.store.scard(keys.category(name))
                last_used = await self.store.zscore(keys.categories(), name)
                entry = categories.setdefault(name, {"category": name, "memory_count": 0, "last_used": 0})
                entry["memory_count"] += count
                entry["last_used"] = max(entry["last_used"], int(last_used or 0))
        return sorted(categories.values(), key=lambda c: c["last_used"], reverse=True)

    # ------------------------------------------------------------------
    # scope conversion

    async def _move(self, memory: MemoryEntry, source: KeySpace, target: KeySpace, moved: MemoryEntry) -> MemoryEntry:
        pipe = self.store.pipeline()
        pipe.delete(source.memory(memory.id))
        self._queue_index_removal(pipe, source, memory)
        pipe.hset(target.memory(moved.id), encode_memory(moved))
        ttl = self._remaining_ttl(moved)
        if ttl:
            pipe.expire(target.memory(moved.id), ttl)
        self._queue_indices(pipe, target, moved)
        await pipe.execute()
        logger.info(f"Moved memory {memory.id} from {source.prefix} to {target.prefix}")
        return moved

    async def convert_to_global(self, memory_id: str) -> Optional[MemoryEntry]:
        memory = await self.get_memory(memory_id)
        if memory is None or memory.is_global:
            return memory
        moved = replace(memory, is_global=True, workspace_id="", tags=list(memory.tags))
        return await self._move(memory, self.resolver.workspace, self.resolver.global_, moved)

    async def convert_to_workspace(self, memory_id: str, workspace_id: Optional[str] = None) -> Optional[MemoryEntry]:
        memory = await self.get_memory(memory_id, is_global=True)
        if memory is None:
            return None
        target_id = workspace_id or self.resolver.workspace_id
        moved = replace(memory, is_global=False, workspace_id=target_id, tags=list(memory.tags))
        return await self._move(memory, self.resolver.global_, workspace_keys(target_id), moved)
