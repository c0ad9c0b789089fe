"""
Export and import for Agent Memory System
Copyright 2025 Jurden Bruce

Exports are plain JSON-able dicts:
``{"version", "exported_at", "memory_count", "memories"}``. Imports keep the
original ids, timestamps and (unless regenerated) embeddings, and always land
in the current workspace.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Union

from .exceptions import NotFoundError, ValidationError
from .repository import MemoryRepository, validate_context_type, validate_importance, validate_memory_fields
from .utils import now_ms

logger = logging.getLogger("agent-memory.backup")

EXPORT_FORMAT_VERSION = "1.2.0"
EXPORT_SCAN_LIMIT = 10000


async def export_memories(
    repository: MemoryRepository,
    filter_by_type: Optional[List[str]] = None,
    min_importance: Optional[int] = None,
    include_embeddings: bool = False,
    limit: Optional[int] = None,
) -> Dict[str, Any]:
    """Snapshot the visible memories, newest first"""
    if min_importance is not None:
        validate_importance(min_importance)
    scan = min(limit or EXPORT_SCAN_LIMIT, EXPORT_SCAN_LIMIT)

    if filter_by_type:
        types = [validate_context_type(t) for t in filter_by_type]
        ids = await repository.candidate_ids(types, cap=scan)
        memories = await repository.get_memories(ids)
    else:
        # bypass clamp_limit: an export wants everything, not one page
        ids = []
        for keys in repository.resolver.read_scopes():
            ids.extend(await repository.store.zrevrange(keys.timeline(), 0, scan - 1))
        memories = await repository.get_memories(ids)
        memories.sort(key=lambda m: (m.timestamp, m.id), reverse=True)

    if min_importance is not None:
        memories = [m for m in memories if m.importance >= min_importance]
    if limit is not None:
        memories = memories[:limit]

    exported = [m.to_dict(include_embedding=include_embeddings) for m in memories]
    logger.info(f"Exported {len(exported)} memories")
    return {
        "version": EXPORT_FORMAT_VERSION,
        "exported_at": now_ms(),
        "memory_count": len(exported),
        "memories": exported,
    }


def _load(data: Union[str, Dict[str, Any]]) -> List[Dict[str, Any]]:
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid JSON data: {e}", field="data")
    if not isinstance(data, dict) or not isinstance(data.get("memories"), list):
        raise ValidationError("Invalid import format: missing memories array", field="memories")
    return data["memories"]


async def import_memories(
    repository: MemoryRepository,
    data: Union[str, Dict[str, Any]],
    overwrite_existing: bool = False,
    regenerate_embeddings: bool = False,
) -> Dict[str, Any]:
    """Load an export; per-record failures are counted, not raised"""
    records = _load(data)
    results = {"imported": 0, "overwritten": 0, "skipped": 0, "errors": []}

    for index, record in enumerate(records):
        record_id = record.get("id") if isinstance(record, dict) else None
        try:
            if not isinstance(record, dict):
                raise ValidationError(f"Record {index} is not an object", field="memories")

            fields = validate_memory_fields(
                content=record.get("content"),
                context_type=record.get("context_type", "information"),
                tags=record.get("tags") or [],
                importance=record.get("importance", 5),
                summary=record.get("summary"),
                session_id=record.get("session_id"),
                ttl_seconds=record.get("ttl_seconds"),
                is_global=False,
                category=record.get("category"),
            )

            existing = await repository.get_memory(record_id) if record_id else None
            if existing is not None and not overwrite_existing:
                results["skipped"] += 1
                continue

            if existing is not None:
                await repository.update_memory(
                    record_id,
                    content=fields["content"],
                    context_type=fields["context_type"],
                    tags=fields["tags"],
                    importance=fields["importance"],
                    summary=fields["summary"],
                    session_id=fields["session_id"],
                    category=fields["category"],
                    change_reason="Overwritten by import",
                )
                results["overwritten"] += 1
                continue

            timestamp = record.get("timestamp")
            if isinstance(timestamp, bool) or not isinstance(timestamp, int):
                timestamp = None
            embedding = None
            if not regenerate_embeddings:
                embedding = repository.check_dimensions(record.get("embedding"), label=record_id or "")
            await repository.insert(
                fields,
                memory_id=record_id,
                timestamp=timestamp,
                embedding=embedding,
            )
            results["imported"] += 1
        except (ValidationError, NotFoundError) as e:
            results["errors"].append(f"Failed to import memory {record_id}: {e}")

    logger.info(
        f"Import completed: {results['imported']} imported, {results['overwritten']} overwritten, "
        f"{results['skipped']} skipped, {len(results['errors'])} errors"
    )
    return results
