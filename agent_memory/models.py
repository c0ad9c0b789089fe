"""
Data models for Agent Memory System
Copyright 2025 Jurden Bruce
"""

from dataclasses import dataclass, asdict, field
from enum import Enum
from typing import Any, List, Dict, Optional

import networkx as nx


class ContextType(str, Enum):
    DIRECTIVE = "directive"
    INFORMATION = "information"
    HEADING = "heading"
    DECISION = "decision"
    CODE_PATTERN = "code_pattern"
    REQUIREMENT = "requirement"
    ERROR = "error"
    TODO = "todo"
    INSIGHT = "insight"
    PREFERENCE = "preference"


class RelationshipType(str, Enum):
    RELATES_TO = "relates_to"
    PARENT_OF = "parent_of"
    CHILD_OF = "child_of"
    REFERENCES = "references"
    SUPERSEDES = "supersedes"
    IMPLEMENTS = "implements"
    EXAMPLE_OF = "example_of"


class WorkflowStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


CREATED_BY_USER = "user"
CREATED_BY_SYSTEM = "system"
CONSOLIDATED_TAG = "consolidated"


@dataclass
class MemoryEntry:
    id: str
    content: str
    context_type: str
    importance: int
    timestamp: int  # epoch ms
    workspace_id: str
    tags: List[str] = None
    summary: Optional[str] = None
    embedding: Optional[List[float]] = None
    session_id: Optional[str] = None
    ttl_seconds: Optional[int] = None
    expires_at: Optional[int] = None  # epoch ms
    is_global: bool = False
    category: Optional[str] = None

    def __post_init__(self):
        if self.tags is None:
            self.tags = []
        if isinstance(self.context_type, ContextType):
            self.context_type = self.context_type.value

    def is_expired(self, now: int) -> bool:
        """Expiry is exclusive: an entry is gone at expires_at, not after it"""
        return self.expires_at is not None and now >= self.expires_at

    def to_dict(self, include_embedding: bool = False) -> Dict[str, Any]:
        data = asdict(self)
        if not include_embedding:
            data.pop("embedding", None)
        return data


@dataclass
class Relationship:
    """Directed, typed edge between two memories"""
    id: str
    from_memory_id: str
    to_memory_id: str
    relationship_type: str
    created_at: str  # ISO-8601
    metadata: Dict[str, Any] = None

    def __post_init__(self):
        if self.metadata is None:
            self.metadata = {}
        if isinstance(self.relationship_type, RelationshipType):
            self.relationship_type = self.relationship_type.value

    def other_end(self, memory_id: str) -> str:
        return self.to_memory_id if self.from_memory_id == memory_id else self.from_memory_id

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MemoryVersion:
    """Snapshot of a memory's mutable fields"""
    version_id: str
    memory_id: str
    content: str
    context_type: str
    importance: int
    tags: List[str]
    created_at: str  # ISO-8601
    created_by: str = CREATED_BY_USER
    summary: Optional[str] = None
    change_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Session:
    session_id: str
    session_name: str
    memory_ids: List[str]
    created_at: int
    workspace_id: str
    summary: Optional[str] = None

    @property
    def memory_count(self) -> int:
        return len(self.memory_ids)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["memory_count"] = self.memory_count
        return data


@dataclass
class SearchResult:
    memory: MemoryEntry
    similarity: float

    def to_dict(self) -> Dict[str, Any]:
        data = self.memory.to_dict()
        data["similarity"] = round(self.similarity, 6)
        return data


@dataclass
class RelatedMemory:
    memory: MemoryEntry
    relationship: Relationship
    depth: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "memory": self.memory.to_dict(),
            "relationship": self.relationship.to_dict(),
            "depth": self.depth,
        }


@dataclass
class GraphNode:
    memory: MemoryEntry
    depth: int
    relationships: List[Relationship] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "memory": self.memory.to_dict(),
            "depth": self.depth,
            "relationships": [r.to_dict() for r in self.relationships],
        }


@dataclass
class MemoryGraph:
    """Breadth-first neighbourhood of a root memory.

    ``max_depth_reached`` is set only when the depth bound cut the walk short;
    ``node_limit_reached`` records truncation by the node cap instead. The two
    are never both true.
    """
    root_memory_id: str
    nodes: Dict[str, GraphNode] = field(default_factory=dict)
    deepest_level: int = 0
    max_depth_reached: bool = False
    node_limit_reached: bool = False

    @property
    def total_nodes(self) -> int:
        return len(self.nodes)

    def edges(self) -> List[Relationship]:
        """Relationships whose endpoints are both inside the graph"""
        seen = {}
        for node in self.nodes.values():
            for rel in node.relationships:
                if rel.from_memory_id in self.nodes and rel.to_memory_id in self.nodes:
                    seen[rel.id] = rel
        return list(seen.values())

    def to_networkx(self) -> "nx.DiGraph":
        graph = nx.DiGraph()
        for memory_id, node in self.nodes.items():
            graph.add_node(
                memory_id,
                depth=node.depth,
                context_type=node.memory.context_type,
                importance=node.memory.importance,
                summary=node.memory.summary,
                is_global=node.memory.is_global,
            )
        for rel in self.edges():
            graph.add_edge(
                rel.from_memory_id,
                rel.to_memory_id,
                id=rel.id,
                relationship_type=rel.relationship_type,
            )
        return graph

    def to_dict(self) -> Dict[str, Any]:
        return {
            "root_memory_id": self.root_memory_id,
            "nodes": {mid: node.to_dict() for mid, node in self.nodes.items()},
            "total_nodes": self.total_nodes,
            "deepest_level": self.deepest_level,
            "max_depth_reached": self.max_depth_reached,
            "node_limit_reached": self.node_limit_reached,
        }


@dataclass
class Workflow:
    id: str
    name: str
    status: str
    created_at: int
    updated_at: int
    workspace_id: str
    description: Optional[str] = None
    completed_at: Optional[int] = None
    memory_count: int = 0
    summary: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ActiveWorkflow:
    """Per-workspace pointer to the workflow new memories are linked to"""
    workflow_id: str
    workspace_id: str
