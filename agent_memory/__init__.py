"""
Agent Memory System
Copyright 2025 Jurden Bruce
"""

from .exceptions import AgentMemoryError, NotFoundError, StorageError, ValidationError, WorkflowError
from .memory_store import MemoryStore
from .models import (
    ContextType,
    MemoryEntry,
    MemoryGraph,
    MemoryVersion,
    RelatedMemory,
    Relationship,
    RelationshipType,
    SearchResult,
    Session,
    Workflow,
)
from .workspace import WorkspaceMode, WorkspaceResolver, create_workspace_id

__version__ = "1.2.0"

__all__ = [
    'MemoryStore',
    'AgentMemoryError',
    'ValidationError',
    'NotFoundError',
    'StorageError',
    'WorkflowError',
    'ContextType',
    'RelationshipType',
    'MemoryEntry',
    'Relationship',
    'MemoryVersion',
    'Session',
    'SearchResult',
    'RelatedMemory',
    'MemoryGraph',
    'Workflow',
    'WorkspaceMode',
    'WorkspaceResolver',
    'create_workspace_id',
]
