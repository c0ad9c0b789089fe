"""
Graph operations for Agent Memory System
Copyright 2025 Jurden Bruce
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from .config import MAX_TRAVERSAL_DEPTH
from .exceptions import NotFoundError, ValidationError
from .models import GraphNode, MemoryEntry, MemoryGraph, RelatedMemory, Relationship, RelationshipType
from .repository import MemoryRepository
from .storage.base import KeyValueStore
from .storage.codec import decode_relationship, encode_relationship
from .utils import ms_to_iso, new_id, now_ms
from .workspace import KeySpace, WorkspaceResolver

logger = logging.getLogger("agent-memory.graph")

DIRECTIONS = ("outgoing", "incoming", "both")


def validate_relationship_type(relationship_type: Any) -> str:
    try:
        return RelationshipType(relationship_type).value
    except ValueError:
        raise ValidationError(
            f"Unknown relationship type '{relationship_type}'",
            field="relationship_type",
            value=relationship_type,
        )


def validate_direction(direction: str) -> str:
    if direction not in DIRECTIONS:
        raise ValidationError(f"direction must be one of {', '.join(DIRECTIONS)}", field="direction", value=direction)
    return direction


def validate_depth(depth: Any, field: str = "depth") -> int:
    if isinstance(depth, bool) or not isinstance(depth, int) or not 1 <= depth <= MAX_TRAVERSAL_DEPTH:
        raise ValidationError(f"{field} must be between 1 and {MAX_TRAVERSAL_DEPTH}", field=field, value=depth)
    return depth


class RelationshipGraph:
    """Directed typed edges between memories.

    Edges are hashes at ``<ns>:relationship:<id>`` with adjacency sets
    ``<ns>:memory:<id>:relationships:out`` / ``:in``. An edge lives in the
    global namespace only when both endpoints are global. Edges whose
    endpoint has been deleted are left in place and skipped on read.
    """

    def __init__(
        self,
        store: KeyValueStore,
        resolver: WorkspaceResolver,
        repository: MemoryRepository,
        clock: Callable[[], int] = now_ms,
        max_nodes_cap: int = 1000,
    ):
        self.store = store
        self.resolver = resolver
        self.repository = repository
        self._clock = clock
        self.max_nodes_cap = max_nodes_cap

    # ------------------------------------------------------------------
    # edge storage

    async def _read(self, keys: KeySpace, relationship_id: str) -> Optional[Relationship]:
        return decode_relationship(await self.store.hgetall(keys.relationship(relationship_id)))

    async def _find(self, relationship_id: str) -> Tuple[Optional[Relationship], Optional[KeySpace]]:
        for keys in self.resolver.lookup_scopes():
            relationship = await self._read(keys, relationship_id)
            if relationship is not None:
                return relationship, keys
        return None, None

    async def _edges(self, memory_id: str, direction: str, scopes: Optional[List[KeySpace]] = None) -> List[Relationship]:
        """Edges touching ``memory_id`` in the given namespaces, oldest first"""
        found: Dict[str, Relationship] = {}
        for keys in scopes or self.resolver.read_scopes():
            set_keys = []
            if direction in ("outgoing", "both"):
                set_keys.append(keys.memory_relationships_out(memory_id))
            if direction in ("incoming", "both"):
                set_keys.append(keys.memory_relationships_in(memory_id))
            for relationship_id in sorted(await self.store.sunion(set_keys)):
                if relationship_id in found:
                    continue
                relationship = await self._read(keys, relationship_id)
                if relationship is not None:
                    found[relationship_id] = relationship
        return [found[rid] for rid in sorted(found)]

    async def get_memory_relationships(self, memory_id: str, direction: str = "both") -> List[Relationship]:
        return await self._edges(memory_id, validate_direction(direction))

    async def _find_existing(self, from_id: str, to_id: str, relationship_type: str) -> Optional[Relationship]:
        for relationship in await self._edges(from_id, "outgoing", self.resolver.lookup_scopes()):
            if relationship.to_memory_id == to_id and relationship.relationship_type == relationship_type:
                return relationship
        return None

    # ------------------------------------------------------------------
    # create / delete

    async def create_relationship(
        self,
        from_memory_id: str,
        to_memory_id: str,
        relationship_type: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Relationship:
        relationship_type = validate_relationship_type(relationship_type)
        if from_memory_id == to_memory_id:
            raise ValidationError("A memory cannot be related to itself", field="to_memory_id", value=to_memory_id)
        if metadata is not None and not isinstance(metadata, dict):
            raise ValidationError("metadata must be a mapping", field="metadata", value=metadata)

        from_memory = await self.repository.get_memory(from_memory_id)
        if from_memory is None:
            raise NotFoundError("Memory", from_memory_id)
        to_memory = await self.repository.get_memory(to_memory_id)
        if to_memory is None:
            raise NotFoundError("Memory", to_memory_id)

        existing = await self._find_existing(from_memory_id, to_memory_id, relationship_type)
        if existing is not None:
            logger.debug(f"Relationship {existing.id} already links {from_memory_id} -> {to_memory_id}")
            return existing

        now = self._clock()
        relationship = Relationship(
            id=new_id(now),
            from_memory_id=from_memory_id,
            to_memory_id=to_memory_id,
            relationship_type=relationship_type,
            created_at=ms_to_iso(now),
            metadata=dict(metadata or {}),
        )

        keys = self.resolver.keys_for(from_memory.is_global and to_memory.is_global)
        pipe = self.store.pipeline()
        pipe.hset(keys.relationship(relationship.id), encode_relationship(relationship))
        pipe.sadd(keys.relationships(), relationship.id)
        pipe.sadd(keys.memory_relationships(from_memory_id), relationship.id)
        pipe.sadd(keys.memory_relationships_out(from_memory_id), relationship.id)
        pipe.sadd(keys.memory_relationships_in(to_memory_id), relationship.id)
        await pipe.execute()

        logger.info(f"Created {relationship_type} relationship {relationship.id}: {from_memory_id} -> {to_memory_id}")
        return relationship

    async def _remove(self, keys: KeySpace, relationship: Relationship):
        pipe = self.store.pipeline()
        pipe.delete(keys.relationship(relationship.id))
        pipe.srem(keys.relationships(), relationship.id)
        pipe.srem(keys.memory_relationships(relationship.from_memory_id), relationship.id)
        pipe.srem(keys.memory_relationships_out(relationship.from_memory_id), relationship.id)
        pipe.srem(keys.memory_relationships_in(relationship.to_memory_id), relationship.id)
        await pipe.execute()

    async def delete_relationship(self, relationship_id: str) -> bool:
        relationship, keys = await self._find(relationship_id)
        if relationship is None:
            return False
        await self._remove(keys, relationship)
        logger.info(f"Deleted relationship {relationship_id}")
        return True

    async def delete_memory_relationships(self, memory_id: str) -> int:
        """Remove every edge touching ``memory_id`` in either namespace"""
        removed = 0
        for keys in self.resolver.lookup_scopes():
            for relationship in await self._edges(memory_id, "both", [keys]):
                await self._remove(keys, relationship)
                removed += 1
        if removed:
            logger.info(f"Removed {removed} relationships of {memory_id}")
        return removed

    # ------------------------------------------------------------------
    # traversal

    def _scope_allowed(self, root: MemoryEntry, neighbor: MemoryEntry) -> bool:
        return self.resolver.allows_mixed_scope() or root.is_global == neighbor.is_global

    async def get_related_memories(
        self,
        memory_id: str,
        relationship_types: Optional[List[str]] = None,
        depth: int = 1,
        direction: str = "both",
    ) -> List[RelatedMemory]:
        """Breadth-first walk up to ``depth`` hops; each memory appears once"""
        depth = validate_depth(depth)
        direction = validate_direction(direction)
        types = {validate_relationship_type(t) for t in relationship_types} if relationship_types else None

        root = await self.repository.get_memory(memory_id)
        if root is None:
            return []

        visited = {memory_id}
        results = []
        frontier = [memory_id]
        for level in range(1, depth + 1):
            next_frontier = []
            for current_id in frontier:
                for relationship in await self._edges(current_id, direction):
                    if types is not None and relationship.relationship_type not in types:
                        continue
                    neighbor_id = relationship.other_end(current_id)
                    if neighbor_id in visited:
                        continue
                    neighbor = await self.repository.get_memory(neighbor_id)
                    if neighbor is None or not self._scope_allowed(root, neighbor):
                        continue
                    visited.add(neighbor_id)
                    results.append(RelatedMemory(memory=neighbor, relationship=relationship, depth=level))
                    next_frontier.append(neighbor_id)
            if not next_frontier:
                break
            frontier = next_frontier

        return results

    async def get_memory_graph(self, root_memory_id: str, max_depth: int = 2, max_nodes: int = 50) -> MemoryGraph:
        """Breadth-first node map around a root.

        Nodes are admitted first-come until ``max_nodes``. Nodes on the last
        level still have their edges inspected so the result can tell whether
        the depth bound hid anything.
        """
        max_depth = validate_depth(max_depth, field="max_depth")
        if isinstance(max_nodes, bool) or not isinstance(max_nodes, int) or max_nodes < 1:
            raise ValidationError("max_nodes must be a positive integer", field="max_nodes", value=max_nodes)
        max_nodes = min(max_nodes, self.max_nodes_cap)

        graph = MemoryGraph(root_memory_id=root_memory_id)
        root = await self.repository.get_memory(root_memory_id)
        if root is None:
            return graph

        loaded: Dict[str, Optional[MemoryEntry]] = {root_memory_id: root}

        async def load(memory_id: str) -> Optional[MemoryEntry]:
            if memory_id not in loaded:
                loaded[memory_id] = await self.repository.get_memory(memory_id)
            return loaded[memory_id]

        graph.nodes[root_memory_id] = GraphNode(memory=root, depth=0)
        depth_limited = False
        node_limited = False
        frontier = [root_memory_id]
        level = 0

        while frontier:
            next_frontier = []
            for current_id in frontier:
                live_edges = []
                for relationship in await self._edges(current_id, "both"):
                    neighbor_id = relationship.other_end(current_id)
                    neighbor = await load(neighbor_id)
                    if neighbor is None or not self._scope_allowed(root, neighbor):
                        continue
                    live_edges.append(relationship)
                    if neighbor_id in graph.nodes:
                        continue
                    if level >= max_depth:
                        depth_limited = True
                        continue
                    if len(graph.nodes) >= max_nodes:
                        node_limited = True
                        continue
                    graph.nodes[neighbor_id] = GraphNode(memory=neighbor, depth=level + 1)
                    next_frontier.append(neighbor_id)
                graph.nodes[current_id].relationships = live_edges
            frontier = next_frontier
            level += 1

        graph.deepest_level = max(node.depth for node in graph.nodes.values())
        graph.node_limit_reached = node_limited
        graph.max_depth_reached = depth_limited and not node_limited
        logger.info(
            f"Graph around {root_memory_id}: {graph.total_nodes} nodes, depth {graph.deepest_level}"
            f" (depth limited={graph.max_depth_reached}, node limited={graph.node_limit_reached})"
        )
        return graph
