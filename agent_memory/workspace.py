"""
Workspace scoping for Agent Memory System
Copyright 2025 Jurden Bruce

Every persisted key lives under one of two namespaces: ``ws:<workspace_id>``
for memories owned by a workspace, or ``global`` for memories shared across
all workspaces. The key layout is the on-disk format and must not change.
"""

import os
import hashlib
import logging
from enum import Enum
from typing import List, Optional

logger = logging.getLogger("agent-memory.workspace")

GLOBAL_PREFIX = "global"


class WorkspaceMode(str, Enum):
    ISOLATED = "isolated"
    GLOBAL = "global"
    HYBRID = "hybrid"


def create_workspace_id(path: str) -> str:
    """Stable identifier for a workspace path (first 16 hex chars of SHA-256)"""
    return hashlib.sha256(path.encode("utf-8")).hexdigest()[:16]


def get_workspace_mode(value: Optional[str] = None) -> WorkspaceMode:
    """Resolve the scope mode from an explicit value or WORKSPACE_MODE"""
    raw = (value if value is not None else os.getenv("WORKSPACE_MODE", "isolated")).lower()
    try:
        return WorkspaceMode(raw)
    except ValueError:
        logger.warning(f"Unknown workspace mode '{raw}', falling back to isolated")
        return WorkspaceMode.ISOLATED


class KeySpace:
    """Builds every key of one namespace"""

    def __init__(self, prefix: str):
        self.prefix = prefix

    @property
    def is_global(self) -> bool:
        return self.prefix == GLOBAL_PREFIX

    def __repr__(self) -> str:
        return f"KeySpace({self.prefix!r})"

    # memories
    def memory(self, memory_id: str) -> str:
        return f"{self.prefix}:memory:{memory_id}"

    def memories(self) -> str:
        return f"{self.prefix}:memories:all"

    def by_type(self, context_type: str) -> str:
        return f"{self.prefix}:memories:type:{context_type}"

    def by_tag(self, tag: str) -> str:
        return f"{self.prefix}:memories:tag:{tag}"

    def timeline(self) -> str:
        return f"{self.prefix}:memories:timeline"

    def important(self) -> str:
        return f"{self.prefix}:memories:important"

    # versions
    def memory_versions(self, memory_id: str) -> str:
        return f"{self.prefix}:memory:{memory_id}:versions"

    def memory_version(self, memory_id: str, version_id: str) -> str:
        return f"{self.prefix}:memory:{memory_id}:version:{version_id}"

    # sessions
    def session(self, session_id: str) -> str:
        return f"{self.prefix}:session:{session_id}"

    def sessions(self) -> str:
        return f"{self.prefix}:sessions:all"

    # relationships
    def relationship(self, relationship_id: str) -> str:
        return f"{self.prefix}:relationship:{relationship_id}"

    def relationships(self) -> str:
        return f"{self.prefix}:relationships:all"

    def memory_relationships(self, memory_id: str) -> str:
        return f"{self.prefix}:memory:{memory_id}:relationships"

    def memory_relationships_out(self, memory_id: str) -> str:
        return f"{self.prefix}:memory:{memory_id}:relationships:out"

    def memory_relationships_in(self, memory_id: str) -> str:
        return f"{self.prefix}:memory:{memory_id}:relationships:in"

    # categories
    def memory_category(self, memory_id: str) -> str:
        return f"{self.prefix}:memory:{memory_id}:category"

    def category(self, category: str) -> str:
        return f"{self.prefix}:category:{category}"

    def categories(self) -> str:
        return f"{self.prefix}:categories:all"

    # workflows (workspace namespace only)
    def workflow(self, workflow_id: str) -> str:
        return f"{self.prefix}:workflow:{workflow_id}"

    def workflows(self) -> str:
        return f"{self.prefix}:workflows:all"

    def workflow_active(self) -> str:
        return f"{self.prefix}:workflow:active"

    def workflow_memories(self, workflow_id: str) -> str:
        return f"{self.prefix}:workflow:{workflow_id}:memories"


GLOBAL_KEYS = KeySpace(GLOBAL_PREFIX)


def workspace_keys(workspace_id: str) -> KeySpace:
    return KeySpace(f"ws:{workspace_id}")


class WorkspaceResolver:
    """Maps a caller-supplied path to its workspace and picks key namespaces"""

    def __init__(self, workspace_path: str, mode: Optional[WorkspaceMode] = None):
        self.workspace_path = workspace_path
        self.workspace_id = create_workspace_id(workspace_path)
        self.mode = mode if mode is not None else get_workspace_mode()
        self.workspace = workspace_keys(self.workspace_id)
        self.global_ = GLOBAL_KEYS
        logger.info(f"Workspace {self.workspace_id} resolved for {workspace_path} (mode={self.mode.value})")

    def keys_for(self, is_global: bool) -> KeySpace:
        return self.global_ if is_global else self.workspace

    def read_scopes(self) -> List[KeySpace]:
        """Namespaces blended by list and search reads, workspace first"""
        if self.mode == WorkspaceMode.ISOLATED:
            return [self.workspace]
        if self.mode == WorkspaceMode.GLOBAL:
            return [self.global_]
        return [self.workspace, self.global_]

    def lookup_scopes(self) -> List[KeySpace]:
        """Namespaces probed by direct id lookups"""
        return [self.workspace, self.global_]

    def allows_mixed_scope(self) -> bool:
        """Whether global and workspace memories may meet in one traversal"""
        return self.mode != WorkspaceMode.ISOLATED
