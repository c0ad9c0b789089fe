"""
Exception hierarchy for Agent Memory System
Copyright 2025 Jurden Bruce
"""

from typing import Any, Dict, Optional


class AgentMemoryError(Exception):
    """
    Base exception for all memory system errors.

    Attributes:
        message: Human-readable error message
        context: Additional context for debugging
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message


class ValidationError(AgentMemoryError):
    """Input rejected before any write was issued."""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        context = {}
        if field is not None:
            context["field"] = field
            context["value"] = value
        super().__init__(message, context=context)
        self.field = field


class NotFoundError(AgentMemoryError):
    """An entity required by the operation does not exist."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            f"{entity} not found: {entity_id}",
            context={"entity": entity, "id": entity_id}
        )
        self.entity = entity
        self.entity_id = entity_id


class StorageError(AgentMemoryError):
    """The key-value store is unreachable or the command failed."""

    def __init__(self, operation: str, reason: str):
        super().__init__(
            f"Storage operation '{operation}' failed: {reason}",
            context={"operation": operation}
        )
        self.operation = operation


class WorkflowError(AgentMemoryError):
    """Workflow state transition is not allowed."""
    pass
