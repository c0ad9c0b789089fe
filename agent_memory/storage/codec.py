"""
Hash record encoding for Agent Memory System
Copyright 2025 Jurden Bruce

Stored hashes hold strings only. Lists, vectors and metadata maps are JSON,
booleans are 'true'/'false', absent optionals are empty strings. Nothing
outside this module reads or writes the encoded form.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from ..models import MemoryEntry, MemoryVersion, Relationship, Session, Workflow

logger = logging.getLogger("agent-memory.codec")


def _opt_str(value: Optional[Any]) -> str:
    return "" if value is None else str(value)


def _opt_int(value: Optional[str]) -> Optional[int]:
    return int(value) if value else None


def _load_json(value: Optional[str], default, field: str, record_id: str):
    if not value:
        return default
    try:
        return json.loads(value)
    except ValueError as e:
        logger.warning(f"Corrupt {field} on {record_id}: {e}")
        return default


def encode_memory(memory: MemoryEntry) -> Dict[str, str]:
    return {
        "id": memory.id,
        "timestamp": str(memory.timestamp),
        "context_type": memory.context_type,
        "content": memory.content,
        "summary": memory.summary or "",
        "tags": json.dumps(memory.tags),
        "importance": str(memory.importance),
        "session_id": memory.session_id or "",
        "embedding": json.dumps(memory.embedding or []),
        "ttl_seconds": _opt_str(memory.ttl_seconds),
        "expires_at": _opt_str(memory.expires_at),
        "is_global": "true" if memory.is_global else "false",
        "workspace_id": memory.workspace_id or "",
        "category": memory.category or "",
    }


def decode_memory(data: Dict[str, str]) -> Optional[MemoryEntry]:
    if not data or not data.get("id"):
        return None
    embedding = _load_json(data.get("embedding"), [], "embedding", data["id"])
    return MemoryEntry(
        id=data["id"],
        content=data.get("content", ""),
        context_type=data.get("context_type", "information"),
        importance=int(data.get("importance") or 5),
        timestamp=int(data.get("timestamp") or 0),
        workspace_id=data.get("workspace_id", ""),
        tags=_load_json(data.get("tags"), [], "tags", data["id"]),
        summary=data.get("summary") or None,
        embedding=[float(x) for x in embedding] if embedding else None,
        session_id=data.get("session_id") or None,
        ttl_seconds=_opt_int(data.get("ttl_seconds")),
        expires_at=_opt_int(data.get("expires_at")),
        is_global=data.get("is_global") == "true",
        category=data.get("category") or None,
    )


def encode_relationship(relationship: Relationship) -> Dict[str, str]:
    return {
        "id": relationship.id,
        "from_memory_id": relationship.from_memory_id,
        "to_memory_id": relationship.to_memory_id,
        "relationship_type": relationship.relationship_type,
        "created_at": relationship.created_at,
        "metadata": json.dumps(relationship.metadata) if relationship.metadata else "",
    }


def decode_relationship(data: Dict[str, str]) -> Optional[Relationship]:
    if not data or not data.get("id"):
        return None
    return Relationship(
        id=data["id"],
        from_memory_id=data["from_memory_id"],
        to_memory_id=data["to_memory_id"],
        relationship_type=data["relationship_type"],
        created_at=data.get("created_at", ""),
        metadata=_load_json(data.get("metadata"), {}, "metadata", data["id"]),
    )


def encode_version(version: MemoryVersion) -> Dict[str, str]:
    return {
        "version_id": version.version_id,
        "memory_id": version.memory_id,
        "content": version.content,
        "context_type": version.context_type,
        "importance": str(version.importance),
        "tags": json.dumps(version.tags),
        "summary": version.summary or "",
        "created_at": version.created_at,
        "created_by": version.created_by,
        "change_reason": version.change_reason or "",
    }


def decode_version(data: Dict[str, str]) -> Optional[MemoryVersion]:
    if not data or not data.get("version_id"):
        return None
    return MemoryVersion(
        version_id=data["version_id"],
        memory_id=data["memory_id"],
        content=data.get("content", ""),
        context_type=data.get("context_type", "information"),
        importance=int(data.get("importance") or 5),
        tags=_load_json(data.get("tags"), [], "tags", data["version_id"]),
        created_at=data.get("created_at", ""),
        created_by=data.get("created_by") or "user",
        summary=data.get("summary") or None,
        change_reason=data.get("change_reason") or None,
    )


def encode_session(session: Session) -> Dict[str, str]:
    return {
        "session_id": session.session_id,
        "session_name": session.session_name,
        "created_at": str(session.created_at),
        "memory_count": str(session.memory_count),
        "summary": session.summary or "",
        "memory_ids": json.dumps(session.memory_ids),
        "workspace_id": session.workspace_id,
    }


def decode_session(data: Dict[str, str]) -> Optional[Session]:
    if not data or not data.get("session_id"):
        return None
    memory_ids: List[str] = _load_json(data.get("memory_ids"), [], "memory_ids", data["session_id"])
    return Session(
        session_id=data["session_id"],
        session_name=data.get("session_name", ""),
        memory_ids=memory_ids,
        created_at=int(data.get("created_at") or 0),
        workspace_id=data.get("workspace_id", ""),
        summary=data.get("summary") or None,
    )


def encode_workflow(workflow: Workflow) -> Dict[str, str]:
    return {
        "id": workflow.id,
        "name": workflow.name,
        "description": workflow.description or "",
        "status": workflow.status,
        "created_at": str(workflow.created_at),
        "updated_at": str(workflow.updated_at),
        "completed_at": _opt_str(workflow.completed_at),
        "memory_count": str(workflow.memory_count),
        "summary": workflow.summary or "",
        "workspace_id": workflow.workspace_id,
    }


def decode_workflow(data: Dict[str, str]) -> Optional[Workflow]:
    if not data or not data.get("id"):
        return None
    return Workflow(
        id=data["id"],
        name=data.get("name", ""),
        status=data.get("status", "active"),
        created_at=int(data.get("created_at") or 0),
        updated_at=int(data.get("updated_at") or 0),
        workspace_id=data.get("workspace_id", ""),
        description=data.get("description") or None,
        completed_at=_opt_int(data.get("completed_at")),
        memory_count=int(data.get("memory_count") or 0),
        summary=data.get("summary") or None,
    )
