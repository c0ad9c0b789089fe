"""
Memory consolidation for Agent Memory System
Copyright 2025 Jurden Bruce
"""

import logging
from typing import List, Optional

from .exceptions import NotFoundError, ValidationError
from .graph_ops import RelationshipGraph
from .models import CONSOLIDATED_TAG, CREATED_BY_SYSTEM, MemoryEntry, RelationshipType
from .repository import MemoryRepository, validate_memory_fields
from .workspace import WorkspaceResolver

logger = logging.getLogger("agent-memory.consolidation")


def pick_survivor(memories: List[MemoryEntry], keep_id: Optional[str] = None) -> MemoryEntry:
    """``keep_id`` if given, else the most important memory (first on ties)"""
    if keep_id is not None:
        for memory in memories:
            if memory.id == keep_id:
                return memory
    survivor = memories[0]
    for memory in memories[1:]:
        if memory.importance > survivor.importance:
            survivor = memory
    return survivor


def union_tags(memories: List[MemoryEntry]) -> List[str]:
    tags = []
    for memory in memories:
        for tag in memory.tags:
            if tag not in tags:
                tags.append(tag)
    if CONSOLIDATED_TAG not in tags:
        tags.append(CONSOLIDATED_TAG)
    return tags


class MemoryMerger:
    """Folds several memories into one new memory that supersedes them"""

    def __init__(self, repository: MemoryRepository, graph: RelationshipGraph, resolver: WorkspaceResolver):
        self.repository = repository
        self.graph = graph
        self.resolver = resolver

    async def merge_memories(self, memory_ids: List[str], keep_id: Optional[str] = None) -> MemoryEntry:
        if not isinstance(memory_ids, (list, tuple)):
            raise ValidationError("memory_ids must be a list", field="memory_ids", value=memory_ids)
        ids = list(dict.fromkeys(memory_ids))
        if len(ids) < 2:
            raise ValidationError("At least two distinct memories are required to merge", field="memory_ids", value=memory_ids)
        if keep_id is not None and keep_id not in ids:
            raise ValidationError("keep_id must be one of the merged memories", field="keep_id", value=keep_id)

        memories = []
        for memory_id in ids:
            memory = await self.repository.get_memory(memory_id)
            if memory is None:
                raise NotFoundError("Memory", memory_id)
            memories.append(memory)

        scopes = {m.is_global for m in memories}
        if len(scopes) > 1 and not self.resolver.allows_mixed_scope():
            raise ValidationError(
                "Cannot merge global and workspace memories in isolated mode",
                field="memory_ids",
                value=ids,
            )

        survivor = pick_survivor(memories, keep_id)
        fields = validate_memory_fields(
            content=survivor.content,
            context_type=survivor.context_type,
            tags=union_tags(memories),
            importance=max(m.importance for m in memories),
            summary=survivor.summary,
            session_id=survivor.session_id,
            is_global=survivor.is_global,
            category=survivor.category,
        )
        merged = await self.repository.insert(fields, embedding=survivor.embedding)

        for memory in memories:
            await self.graph.create_relationship(
                merged.id,
                memory.id,
                RelationshipType.SUPERSEDES.value,
                metadata={"reason": "merge"},
            )
            tags = memory.tags if CONSOLIDATED_TAG in memory.tags else memory.tags + [CONSOLIDATED_TAG]
            await self.repository.update_memory(
                memory.id,
                tags=tags,
                created_by=CREATED_BY_SYSTEM,
                change_reason=f"Merged into {merged.id}",
            )

        logger.info(f"Merged {len(memories)} memories into {merged.id} (survivor {survivor.id})")
        return merged
