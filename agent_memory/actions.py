"""
Action payloads for Agent Memory System
Copyright 2025 Jurden Bruce

Grouped operations arrive as ``{"action": <name>, ...}`` payloads in one of
four families: graph, category, workflow and maintain. ``parse_action``
turns a payload into a typed variant and ``dispatch_action`` runs it against
a MemoryStore, returning a JSON-able dict.
"""

import logging
from dataclasses import MISSING, dataclass, fields
from typing import Any, Dict, List, Optional, Type

from .exceptions import NotFoundError, ValidationError
from .memory_store import MemoryStore

logger = logging.getLogger("agent-memory.actions")


# graph family

@dataclass
class LinkAction:
    from_memory_id: str
    to_memory_id: str
    relationship_type: str
    metadata: Optional[Dict[str, Any]] = None


@dataclass
class UnlinkAction:
    relationship_id: str


@dataclass
class RelatedAction:
    memory_id: str
    relationship_types: Optional[List[str]] = None
    depth: int = 1
    direction: str = "both"


@dataclass
class GraphAction:
    memory_id: str
    max_depth: int = 2
    max_nodes: int = 50


@dataclass
class HistoryAction:
    memory_id: str
    limit: int = 50


@dataclass
class RollbackAction:
    memory_id: str
    version_id: str
    preserve_relationships: bool = True


# category family

@dataclass
class SetCategoryAction:
    memory_id: str
    category: str


@dataclass
class ListCategoriesAction:
    include_counts: bool = True


@dataclass
class GetCategoryAction:
    category: str
    limit: int = 50


# workflow family

@dataclass
class StartWorkflowAction:
    name: str
    description: Optional[str] = None


@dataclass
class CompleteWorkflowAction:
    workflow_id: Optional[str] = None
    summary: Optional[str] = None


@dataclass
class PauseWorkflowAction:
    workflow_id: Optional[str] = None


@dataclass
class ResumeWorkflowAction:
    workflow_id: str


@dataclass
class ActiveWorkflowAction:
    pass


@dataclass
class ListWorkflowsAction:
    status: Optional[str] = None
    limit: int = 20


# maintain family

@dataclass
class MergeAction:
    memory_ids: List[str]
    keep_id: Optional[str] = None


@dataclass
class ExportAction:
    filter_by_type: Optional[List[str]] = None
    min_importance: Optional[int] = None
    include_embeddings: bool = False
    limit: Optional[int] = None


@dataclass
class ImportAction:
    data: Any
    overwrite_existing: bool = False
    regenerate_embeddings: bool = False


ACTION_FAMILIES: Dict[str, Dict[str, Type]] = {
    "graph": {
        "link": LinkAction,
        "unlink": UnlinkAction,
        "related": RelatedAction,
        "graph": GraphAction,
        "history": HistoryAction,
        "rollback": RollbackAction,
    },
    "category": {
        "set": SetCategoryAction,
        "list": ListCategoriesAction,
        "get": GetCategoryAction,
    },
    "workflow": {
        "start": StartWorkflowAction,
        "complete": CompleteWorkflowAction,
        "pause": PauseWorkflowAction,
        "resume": ResumeWorkflowAction,
        "active": ActiveWorkflowAction,
        "list": ListWorkflowsAction,
    },
    "maintain": {
        "merge": MergeAction,
        "export": ExportAction,
        "import": ImportAction,
    },
}


def parse_action(family: str, payload: Dict[str, Any]):
    """Build the typed variant for ``payload["action"]`` within ``family``"""
    variants = ACTION_FAMILIES.get(family)
    if variants is None:
        raise ValidationError(f"Unknown action family '{family}'", field="family", value=family)
    if not isinstance(payload, dict):
        raise ValidationError("Action payload must be an object", field="payload", value=payload)

    args = dict(payload)
    name = args.pop("action", None)
    action_cls = variants.get(name)
    if action_cls is None:
        raise ValidationError(
            f"Unknown {family} action '{name}', expected one of {', '.join(variants)}",
            field="action",
            value=name,
        )

    known = {f.name: f for f in fields(action_cls)}
    unknown = set(args) - set(known)
    if unknown:
        raise ValidationError(f"Unexpected fields for {family}.{name}: {', '.join(sorted(unknown))}", field=sorted(unknown)[0])
    for f in known.values():
        if f.default is MISSING and f.default_factory is MISSING and f.name not in args:
            raise ValidationError(f"Missing required field '{f.name}' for {family}.{name}", field=f.name)

    return action_cls(**args)


async def _dispatch_graph(store: MemoryStore, action) -> Dict[str, Any]:
    if isinstance(action, LinkAction):
        rel = await store.create_relationship(
            action.from_memory_id, action.to_memory_id, action.relationship_type, action.metadata
        )
        return {"success": True, "relationship": rel.to_dict()}
    if isinstance(action, UnlinkAction):
        if not await store.delete_relationship(action.relationship_id):
            raise NotFoundError("Relationship", action.relationship_id)
        return {"success": True, "relationship_id": action.relationship_id}
    if isinstance(action, RelatedAction):
        results = await store.get_related_memories(
            action.memory_id, action.relationship_types, action.depth, action.direction
        )
        return {"success": True, "count": len(results), "memories": [r.to_dict() for r in results]}
    if isinstance(action, GraphAction):
        graph = await store.get_memory_graph(action.memory_id, action.max_depth, action.max_nodes)
        return {"success": True, "graph": graph.to_dict()}
    if isinstance(action, HistoryAction):
        versions = await store.get_memory_history(action.memory_id, action.limit)
        return {"success": True, "count": len(versions), "versions": [v.to_dict() for v in versions]}
    if isinstance(action, RollbackAction):
        memory = await store.rollback_memory(action.memory_id, action.version_id, action.preserve_relationships)
        return {"success": True, "memory": memory.to_dict()}
    raise ValidationError(f"Not a graph action: {type(action).__name__}")


async def _dispatch_category(store: MemoryStore, action) -> Dict[str, Any]:
    if isinstance(action, SetCategoryAction):
        memory = await store.set_memory_category(action.memory_id, action.category)
        if memory is None:
            raise NotFoundError("Memory", action.memory_id)
        return {"success": True, "memory_id": memory.id, "category": memory.category}
    if isinstance(action, ListCategoriesAction):
        categories = await store.get_all_categories()
        if not action.include_counts:
            categories = [{"category": c["category"], "last_used": c["last_used"]} for c in categories]
        return {"success": True, "categories": categories, "total_categories": len(categories)}
    if isinstance(action, GetCategoryAction):
        memories = await store.get_memories_by_category(action.category, action.limit)
        return {
            "success": True,
            "category": action.category,
            "memories": [m.to_dict() for m in memories],
            "returned": len(memories),
        }
    raise ValidationError(f"Not a category action: {type(action).__name__}")


async def _dispatch_workflow(store: MemoryStore, action) -> Dict[str, Any]:
    if isinstance(action, StartWorkflowAction):
        workflow = await store.start_workflow(action.name, action.description)
    elif isinstance(action, CompleteWorkflowAction):
        workflow = await store.complete_workflow(action.workflow_id, action.summary)
    elif isinstance(action, PauseWorkflowAction):
        workflow = await store.pause_workflow(action.workflow_id)
    elif isinstance(action, ResumeWorkflowAction):
        workflow = await store.resume_workflow(action.workflow_id)
    elif isinstance(action, ActiveWorkflowAction):
        active = await store.get_active_workflow()
        return {"success": True, "active_workflow": active.to_dict() if active else None}
    elif isinstance(action, ListWorkflowsAction):
        workflows = await store.list_workflows(action.status, action.limit)
        return {"success": True, "workflows": [w.to_dict() for w in workflows], "count": len(workflows)}
    else:
        raise ValidationError(f"Not a workflow action: {type(action).__name__}")
    return {"success": True, **workflow.to_dict()}


async def _dispatch_maintain(store: MemoryStore, action) -> Dict[str, Any]:
    if isinstance(action, MergeAction):
        merged = await store.merge_memories(action.memory_ids, action.keep_id)
        return {
            "success": True,
            "memory_id": merged.id,
            "content": merged.summary or merged.content[:100],
            "merged_count": len(set(action.memory_ids)),
        }
    if isinstance(action, ExportAction):
        return await store.export_memories(
            action.filter_by_type, action.min_importance, action.include_embeddings, action.limit
        )
    if isinstance(action, ImportAction):
        results = await store.import_memories(action.data, action.overwrite_existing, action.regenerate_embeddings)
        return {"success": True, **results}
    raise ValidationError(f"Not a maintain action: {type(action).__name__}")


_DISPATCHERS = {
    "graph": _dispatch_graph,
    "category": _dispatch_category,
    "workflow": _dispatch_workflow,
    "maintain": _dispatch_maintain,
}


def family_of(action) -> str:
    for family, variants in ACTION_FAMILIES.items():
        if type(action) in variants.values():
            return family
    raise ValidationError(f"Unknown action type: {type(action).__name__}")


async def dispatch_action(store: MemoryStore, action) -> Dict[str, Any]:
    family = family_of(action)
    logger.debug(f"Dispatching {family} action {type(action).__name__}")
    return await _DISPATCHERS[family](store, action)
