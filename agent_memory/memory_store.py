"""
Memory Store for Agent Memory System
Copyright 2025 Jurden Bruce

Entry point for callers. One MemoryStore serves one workspace path; it wires
the resolver, repository, search engine, relationship graph, version ledger
and hooks over a shared key-value store and embedding provider.
"""

import time
import logging
from typing import Any, Callable, Dict, List, Optional, Union

from .backup import export_memories, import_memories
from .cache import LRUCache
from .config import DEFAULT_LIMIT, DEFAULT_SEARCH_LIMIT, IMPORTANT_THRESHOLD, load_config
from .consolidation import MemoryMerger
from .exceptions import NotFoundError, ValidationError
from .graph_ops import RelationshipGraph
from .hooks import MemoryHooks
from .models import (
    CREATED_BY_SYSTEM,
    ContextType,
    MemoryEntry,
    MemoryGraph,
    MemoryVersion,
    RelatedMemory,
    Relationship,
    SearchResult,
    Session,
    Workflow,
)
from .repository import MemoryRepository
from .search import SearchEngine
from .storage.base import KeyValueStore
from .storage.codec import decode_session, encode_session
from .storage.embeddings import EmbeddingProvider, create_embedding_provider
from .storage.factory import create_storage_client
from .utils import log_error, new_id, now_ms
from .versions import VersionLedger
from .workflows import WorkflowStore
from .workspace import WorkspaceMode, WorkspaceResolver, get_workspace_mode

logger = logging.getLogger("agent-memory.store")


class MemoryStore:
    def __init__(
        self,
        storage: KeyValueStore,
        workspace_path: str,
        config: Optional[Dict[str, Any]] = None,
        embedding_provider: Optional[EmbeddingProvider] = None,
        clock: Optional[Callable[[], int]] = None,
        mode: Optional[WorkspaceMode] = None,
    ):
        self.config = config if config is not None else load_config()
        self.storage = storage
        self.clock = clock or now_ms
        self.error_log: List[Dict[str, Any]] = []

        if mode is None:
            mode = get_workspace_mode(self.config.get("workspace_mode"))
        self.resolver = WorkspaceResolver(workspace_path, mode)
        self.embedding_provider = embedding_provider

        self.workflows = WorkflowStore(storage, self.resolver, self.clock)
        self.hooks = MemoryHooks(self.workflows, self.error_log)
        self.versions = VersionLedger(
            storage,
            self.resolver,
            self.clock,
            retention=self.config.get("version_retention", 0),
            max_scan=self.config.get("max_scan", 1000),
        )
        self.repository = MemoryRepository(
            storage,
            self.resolver,
            self.config,
            self.versions,
            embedding_provider=embedding_provider,
            hooks=self.hooks,
            clock=self.clock,
            error_log=self.error_log,
        )
        self.search = SearchEngine(self.repository, embedding_provider, self.config)
        self.graph = RelationshipGraph(
            storage,
            self.resolver,
            self.repository,
            self.clock,
            max_nodes_cap=self.config.get("max_scan", 1000),
        )
        self.merger = MemoryMerger(self.repository, self.graph, self.resolver)

    @classmethod
    async def create(cls, workspace_path: str, config: Optional[Dict[str, Any]] = None) -> "MemoryStore":
        """Build backend and embedding provider from configuration"""
        start = time.perf_counter()
        config = config if config is not None else load_config()

        storage = await create_storage_client(config)
        step_start = time.perf_counter()
        provider = create_embedding_provider(config, LRUCache(maxsize=config["cache_maxsize"]))
        logger.info(f"[TIMING] Embedding provider ready in {(time.perf_counter() - step_start)*1000:.2f}ms")

        store = cls(storage, workspace_path, config=config, embedding_provider=provider)
        logger.info(f"[TIMING] MemoryStore initialized in {(time.perf_counter() - start)*1000:.2f}ms total")
        return store

    @property
    def workspace_id(self) -> str:
        return self.resolver.workspace_id

    def _log_error(self, operation: str, error: Exception):
        log_error(self.error_log, operation, error)

    async def shutdown(self):
        """Gracefully shutdown the memory store"""
        logger.info("Shutting down MemoryStore...")
        try:
            await self.storage.close()
        except Exception as e:
            logger.error(f"Error closing storage: {e}")
            self._log_error("shutdown", e)
        logger.info("MemoryStore shutdown complete")

    # ------------------------------------------------------------------
    # memories

    async def create_memory(self, content: str, **fields) -> MemoryEntry:
        return await self.repository.create_memory(content, **fields)

    async def batch_create_memories(self, items: List[Dict[str, Any]]) -> List[MemoryEntry]:
        return await self.repository.batch_create_memories(items)

    async def get_memory(self, memory_id: str) -> Optional[MemoryEntry]:
        return await self.repository.get_memory(memory_id)

    async def update_memory(self, memory_id: str, **patch) -> Optional[MemoryEntry]:
        return await self.repository.update_memory(memory_id, **patch)

    async def delete_memory(self, memory_id: str) -> bool:
        return await self.repository.delete_memory(memory_id)

    async def get_recent_memories(self, limit: int = DEFAULT_LIMIT) -> List[MemoryEntry]:
        return await self.repository.get_recent_memories(limit)

    async def get_memories_by_type(self, context_type: str, limit: int = DEFAULT_LIMIT) -> List[MemoryEntry]:
        return await self.repository.get_memories_by_type(context_type, limit)

    async def get_memories_by_tag(self, tag: str, limit: int = DEFAULT_LIMIT) -> List[MemoryEntry]:
        return await self.repository.get_memories_by_tag(tag, limit)

    async def get_memories_by_time_window(self, start_ms: int, end_ms: int, limit: int = DEFAULT_LIMIT) -> List[MemoryEntry]:
        return await self.repository.get_memories_by_time_window(start_ms, end_ms, limit)

    async def get_important_memories(self, min_importance: int = IMPORTANT_THRESHOLD, limit: int = DEFAULT_LIMIT) -> List[MemoryEntry]:
        return await self.repository.get_important_memories(min_importance, limit)

    async def search_memories(
        self,
        query: str,
        limit: int = DEFAULT_SEARCH_LIMIT,
        min_importance: Optional[int] = None,
        context_types: Optional[List[str]] = None,
        category: Optional[str] = None,
    ) -> List[SearchResult]:
        return await self.search.search_memories(query, limit, min_importance, context_types, category)

    # ------------------------------------------------------------------
    # categories and scope

    async def set_memory_category(self, memory_id: str, category: str) -> Optional[MemoryEntry]:
        return await self.repository.set_memory_category(memory_id, category)

    async def get_memories_by_category(self, category: str, limit: int = DEFAULT_LIMIT) -> List[MemoryEntry]:
        return await self.repository.get_memories_by_category(category, limit)

    async def get_all_categories(self) -> List[Dict[str, Any]]:
        return await self.repository.get_all_categories()

    async def convert_to_global(self, memory_id: str) -> Optional[MemoryEntry]:
        return await self.repository.convert_to_global(memory_id)

    async def convert_to_workspace(self, memory_id: str, workspace_id: Optional[str] = None) -> Optional[MemoryEntry]:
        return await self.repository.convert_to_workspace(memory_id, workspace_id)

    # ------------------------------------------------------------------
    # relationships

    async def create_relationship(
        self,
        from_memory_id: str,
        to_memory_id: str,
        relationship_type: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Relationship:
        return await self.graph.create_relationship(from_memory_id, to_memory_id, relationship_type, metadata)

    async def delete_relationship(self, relationship_id: str) -> bool:
        return await self.graph.delete_relationship(relationship_id)

    async def get_memory_relationships(self, memory_id: str, direction: str = "both") -> List[Relationship]:
        return await self.graph.get_memory_relationships(memory_id, direction)

    async def get_related_memories(
        self,
        memory_id: str,
        relationship_types: Optional[List[str]] = None,
        depth: int = 1,
        direction: str = "both",
    ) -> List[RelatedMemory]:
        return await self.graph.get_related_memories(memory_id, relationship_types, depth, direction)

    async def get_memory_graph(self, root_memory_id: str, max_depth: int = 2, max_nodes: int = 50) -> MemoryGraph:
        return await self.graph.get_memory_graph(root_memory_id, max_depth, max_nodes)

    # ------------------------------------------------------------------
    # versions

    async def get_memory_history(self, memory_id: str, limit: int = 50) -> List[MemoryVersion]:
        return await self.versions.get_memory_history(memory_id, limit)

    async def rollback_memory(
        self,
        memory_id: str,
        version_id: str,
        preserve_relationships: bool = True,
    ) -> MemoryEntry:
        """Restore a memory to a recorded version; records one new version"""
        memory = await self.repository.get_memory(memory_id)
        if memory is None:
            raise NotFoundError("Memory", memory_id)
        version = await self.versions.get_version(memory_id, version_id, is_global=memory.is_global)
        if version is None:
            raise NotFoundError("Version", version_id)

        await self.versions.snapshot(
            memory,
            created_by=CREATED_BY_SYSTEM,
            change_reason=f"Before rollback to version {version_id}",
        )
        changes = {
            "content": version.content,
            "context_type": version.context_type,
            "importance": version.importance,
            "tags": list(version.tags),
        }
        if version.summary:
            changes["summary"] = version.summary
        restored = await self.repository.apply_changes(memory, changes)

        if not preserve_relationships:
            await self.graph.delete_memory_relationships(memory_id)

        logger.info(f"Memory {memory_id} rolled back to version {version_id}")
        return restored

    # ------------------------------------------------------------------
    # consolidation

    async def merge_memories(self, memory_ids: List[str], keep_id: Optional[str] = None) -> MemoryEntry:
        return await self.merger.merge_memories(memory_ids, keep_id)

    # ------------------------------------------------------------------
    # sessions

    async def create_session(
        self,
        session_name: str,
        memory_ids: List[str],
        summary: Optional[str] = None,
    ) -> Session:
        if not isinstance(session_name, str) or not session_name.strip():
            raise ValidationError("session_name must be a non-empty string", field="session_name", value=session_name)

        existing = [m.id for m in await self.repository.get_memories(memory_ids or [])]
        now = self.clock()
        session = Session(
            session_id=new_id(now),
            session_name=session_name.strip(),
            memory_ids=existing,
            created_at=now,
            workspace_id=self.workspace_id,
            summary=summary,
        )

        keys = self.resolver.workspace
        pipe = self.storage.pipeline()
        pipe.hset(keys.session(session.session_id), encode_session(session))
        pipe.sadd(keys.sessions(), session.session_id)
        await pipe.execute()

        dropped = len(memory_ids or []) - len(existing)
        logger.info(f"Session {session.session_id} created with {len(existing)} memories ({dropped} ids skipped)")
        return session

    async def get_session(self, session_id: str) -> Optional[Session]:
        return decode_session(await self.storage.hgetall(self.resolver.workspace.session(session_id)))

    async def get_all_sessions(self, limit: int = DEFAULT_LIMIT) -> List[Session]:
        limit = self.repository.clamp_limit(limit)
        # session ids are time-prefixed
        ids = sorted(await self.storage.smembers(self.resolver.workspace.sessions()), reverse=True)[:limit]
        sessions = []
        for session_id in ids:
            session = await self.get_session(session_id)
            if session is not None:
                sessions.append(session)
        return sessions

    async def get_session_memories(self, session_id: str) -> List[MemoryEntry]:
        session = await self.get_session(session_id)
        if session is None:
            raise NotFoundError("Session", session_id)
        return await self.repository.get_memories(session.memory_ids)

    # ------------------------------------------------------------------
    # workflows

    async def start_workflow(self, name: str, description: Optional[str] = None) -> Workflow:
        return await self.workflows.start_workflow(name, description)

    async def complete_workflow(self, workflow_id: Optional[str] = None, summary: Optional[str] = None) -> Workflow:
        return await self.workflows.complete_workflow(workflow_id, summary)

    async def pause_workflow(self, workflow_id: Optional[str] = None) -> Workflow:
        return await self.workflows.pause_workflow(workflow_id)

    async def resume_workflow(self, workflow_id: str) -> Workflow:
        return await self.workflows.resume_workflow(workflow_id)

    async def get_active_workflow(self) -> Optional[Workflow]:
        state = await self.workflows.get_active_state()
        if state is None:
            return None
        return await self.workflows.get_workflow(state.workflow_id)

    async def list_workflows(self, status: Optional[str] = None, limit: int = 20) -> List[Workflow]:
        return await self.workflows.list_workflows(status, self.repository.clamp_limit(limit))

    async def get_workflow_memories(self, workflow_id: str, limit: int = DEFAULT_LIMIT) -> List[MemoryEntry]:
        if await self.workflows.get_workflow(workflow_id) is None:
            raise NotFoundError("Workflow", workflow_id)
        ids = await self.workflows.get_workflow_memory_ids(workflow_id, self.repository.clamp_limit(limit))
        return await self.repository.get_memories(ids)

    # ------------------------------------------------------------------
    # export / import

    async def export_memories(
        self,
        filter_by_type: Optional[List[str]] = None,
        min_importance: Optional[int] = None,
        include_embeddings: bool = False,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        return await export_memories(self.repository, filter_by_type, min_importance, include_embeddings, limit)

    async def import_memories(
        self,
        data: Union[str, Dict[str, Any]],
        overwrite_existing: bool = False,
        regenerate_embeddings: bool = False,
    ) -> Dict[str, Any]:
        return await import_memories(self.repository, data, overwrite_existing, regenerate_embeddings)

    # ------------------------------------------------------------------
    # stats

    async def get_summary_stats(self) -> Dict[str, Any]:
        keys = self.resolver.workspace
        by_type = {}
        for context_type in ContextType:
            count = await self.storage.scard(keys.by_type(context_type.value))
            if count:
                by_type[context_type.value] = count

        return {
            "total_memories": await self.storage.scard(keys.memories()),
            "by_type": by_type,
            "total_sessions": await self.storage.scard(keys.sessions()),
            "important_count": await self.storage.zcard(keys.important()),
            "workspace_path": self.resolver.workspace_path,
            "workspace_id": self.workspace_id,
            "global_memories": await self.storage.scard(self.resolver.global_.memories()),
            "mode": self.resolver.mode.value,
            "embedding_cache": self._embedding_cache_stats(),
        }

    def _embedding_cache_stats(self) -> Optional[Dict[str, Any]]:
        cache = getattr(self.embedding_provider, "cache", None)
        return cache.stats() if isinstance(cache, LRUCache) else None
