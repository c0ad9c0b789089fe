"""
Workflow state store for Agent Memory System
Copyright 2025 Jurden Bruce

Only the state the auto-tag hook depends on lives here: the workflow
records, the per-workspace active pointer and the linked-memory sets.
Workflows are always workspace scoped.
"""

import logging
from typing import Callable, List, Optional

from .exceptions import NotFoundError, ValidationError, WorkflowError
from .models import ActiveWorkflow, Workflow, WorkflowStatus
from .storage.base import KeyValueStore, Pipeline
from .storage.codec import decode_workflow, encode_workflow
from .utils import new_id, now_ms
from .workspace import WorkspaceResolver

logger = logging.getLogger("agent-memory.workflows")

MAX_WORKFLOW_NAME = 200
MAX_WORKFLOW_SCAN = 1000


class WorkflowStore:
    """Workflow records, active pointer and memory links for one workspace"""

    def __init__(self, store: KeyValueStore, resolver: WorkspaceResolver, clock: Callable[[], int] = now_ms):
        self.store = store
        self.resolver = resolver
        self.keys = resolver.workspace
        self._clock = clock

    async def create_workflow(self, name: str, description: Optional[str] = None) -> Workflow:
        name = (name or "").strip()
        if not name or len(name) > MAX_WORKFLOW_NAME:
            raise ValidationError(f"workflow name must be 1-{MAX_WORKFLOW_NAME} characters", field="name", value=name)

        now = self._clock()
        workflow = Workflow(
            id=new_id(now),
            name=name,
            status=WorkflowStatus.ACTIVE.value,
            created_at=now,
            updated_at=now,
            workspace_id=self.resolver.workspace_id,
            description=description,
        )
        pipe = self.store.pipeline()
        pipe.hset(self.keys.workflow(workflow.id), encode_workflow(workflow))
        pipe.zadd(self.keys.workflows(), now, workflow.id)
        await pipe.execute()
        return workflow

    async def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        return decode_workflow(await self.store.hgetall(self.keys.workflow(workflow_id)))

    async def get_active_state(self) -> Optional[ActiveWorkflow]:
        """The active-workflow record for this workspace, if any"""
        workflow_id = await self.store.get(self.keys.workflow_active())
        if not workflow_id:
            return None
        return ActiveWorkflow(workflow_id=workflow_id, workspace_id=self.resolver.workspace_id)

    async def set_active(self, workflow_id: str) -> bool:
        """Claim the active pointer; False when another workflow holds it"""
        return await self.store.setnx(self.keys.workflow_active(), workflow_id)

    async def clear_active(self):
        await self.store.delete(self.keys.workflow_active())

    async def _update_fields(self, workflow_id: str, **fields) -> Optional[Workflow]:
        # field-level HSET so concurrent memory_count increments are not overwritten
        mapping = {k: str(v) for k, v in fields.items() if v is not None}
        mapping["updated_at"] = str(self._clock())
        await self.store.hset(self.keys.workflow(workflow_id), mapping)
        return await self.get_workflow(workflow_id)

    async def _resolve(self, workflow_id: Optional[str]) -> Workflow:
        if workflow_id is None:
            state = await self.get_active_state()
            if state is None:
                raise NotFoundError("Active workflow", self.resolver.workspace_id)
            workflow_id = state.workflow_id
        workflow = await self.get_workflow(workflow_id)
        if workflow is None:
            raise NotFoundError("Workflow", workflow_id)
        return workflow

    async def start_workflow(self, name: str, description: Optional[str] = None) -> Workflow:
        active = await self.get_active_state()
        if active is not None:
            raise WorkflowError(
                "Another workflow is already active",
                context={"active_workflow_id": active.workflow_id},
            )
        workflow = await self.create_workflow(name, description)
        if not await self.set_active(workflow.id):
            # lost the race to a concurrent start
            await self._update_fields(workflow.id, status=WorkflowStatus.PAUSED.value)
            raise WorkflowError("Another workflow became active concurrently", context={"workflow_id": workflow.id})
        logger.info(f"Workflow {workflow.id} started: {workflow.name}")
        return workflow

    async def complete_workflow(self, workflow_id: Optional[str] = None, summary: Optional[str] = None) -> Workflow:
        workflow = await self._resolve(workflow_id)
        if workflow.status == WorkflowStatus.COMPLETED.value:
            raise WorkflowError("Workflow is already completed", context={"workflow_id": workflow.id})
        await self._release_active(workflow.id)
        return await self._update_fields(
            workflow.id,
            status=WorkflowStatus.COMPLETED.value,
            completed_at=self._clock(),
            summary=summary,
        )

    async def pause_workflow(self, workflow_id: Optional[str] = None) -> Workflow:
        workflow = await self._resolve(workflow_id)
        if workflow.status != WorkflowStatus.ACTIVE.value:
            raise WorkflowError(f"Cannot pause a {workflow.status} workflow", context={"workflow_id": workflow.id})
        await self._release_active(workflow.id)
        return await self._update_fields(workflow.id, status=WorkflowStatus.PAUSED.value)

    async def resume_workflow(self, workflow_id: str) -> Workflow:
        workflow = await self._resolve(workflow_id)
        if workflow.status != WorkflowStatus.PAUSED.value:
            raise WorkflowError(f"Cannot resume a {workflow.status} workflow", context={"workflow_id": workflow.id})
        if not await self.set_active(workflow.id):
            raise WorkflowError("Another workflow is already active", context={"workflow_id": workflow.id})
        return await self._update_fields(workflow.id, status=WorkflowStatus.ACTIVE.value)

    async def _release_active(self, workflow_id: str):
        state = await self.get_active_state()
        if state is not None and state.workflow_id == workflow_id:
            await self.clear_active()

    async def is_linked(self, workflow_id: str, memory_id: str) -> bool:
        return await self.store.sismember(self.keys.workflow_memories(workflow_id), memory_id)

    def queue_link(self, pipe: Pipeline, workflow_id: str, memory_id: str):
        pipe.sadd(self.keys.workflow_memories(workflow_id), memory_id)
        pipe.hincrby(self.keys.workflow(workflow_id), "memory_count", 1)

    async def get_workflow_memory_ids(self, workflow_id: str, limit: int = 50) -> List[str]:
        """Linked ids, newest first; may include ids of deleted memories"""
        ids = await self.store.smembers(self.keys.workflow_memories(workflow_id))
        return sorted(ids, reverse=True)[:limit]

    async def list_workflows(self, status: Optional[str] = None, limit: int = 20) -> List[Workflow]:
        if status is not None and status not in {s.value for s in WorkflowStatus}:
            raise ValidationError(f"Unknown workflow status '{status}'", field="status", value=status)
        ids = await self.store.zrevrange(self.keys.workflows(), 0, (MAX_WORKFLOW_SCAN if status else limit) - 1)
        workflows = []
        for workflow_id in ids:
            workflow = await self.get_workflow(workflow_id)
            if workflow and (status is None or workflow.status == status):
                workflows.append(workflow)
                if len(workflows) >= limit:
                    break
        return workflows
