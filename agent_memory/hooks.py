"""
Write hooks for Agent Memory System
Copyright 2025 Jurden Bruce

Hooks run in two phases around a memory write. ``prepare`` reads whatever
state the hook needs before the pipeline is built; ``apply`` queues the
hook's own commands into the same pipeline as the memory, so both reach the
store in one round trip. Global memories never trigger hooks.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .models import ActiveWorkflow, MemoryEntry
from .storage.base import Pipeline
from .utils import log_error
from .workflows import WorkflowStore

logger = logging.getLogger("agent-memory.hooks")


@dataclass
class HookContext:
    workflow: Optional[ActiveWorkflow] = None
    already_linked: bool = False


def queue_workflow_auto_tag(
    pipe: Pipeline,
    workflows: WorkflowStore,
    memory: MemoryEntry,
    state: Optional[ActiveWorkflow],
    already_linked: bool = False,
) -> bool:
    """Link ``memory`` to the active workflow inside ``pipe``.

    Returns True when link commands were queued. Re-linking is a no-op so the
    workflow's memory_count is incremented once per memory.
    """
    if state is None or memory.is_global or already_linked:
        return False
    workflows.queue_link(pipe, state.workflow_id, memory.id)
    return True


class MemoryHooks:
    """Hooks fired from create and update"""

    def __init__(self, workflows: Optional[WorkflowStore] = None, error_log: Optional[List[Dict[str, Any]]] = None):
        self.workflows = workflows
        self.error_log = error_log if error_log is not None else []

    async def prepare(self, memory: MemoryEntry) -> HookContext:
        if memory.is_global or self.workflows is None:
            return HookContext()
        try:
            state = await self.workflows.get_active_state()
            if state is None:
                return HookContext()
            linked = await self.workflows.is_linked(state.workflow_id, memory.id)
        except Exception as e:
            # best effort: the memory is written even when the hook cannot run
            logger.warning(f"Workflow auto-tag skipped for {memory.id}: {e}")
            log_error(self.error_log, "workflow_hook", e)
            return HookContext()
        return HookContext(workflow=state, already_linked=linked)

    def apply(self, pipe: Pipeline, memory: MemoryEntry, context: HookContext):
        if self.workflows is None:
            return
        if queue_workflow_auto_tag(pipe, self.workflows, memory, context.workflow, context.already_linked):
            logger.debug(f"Memory {memory.id} linked to workflow {context.workflow.workflow_id}")
