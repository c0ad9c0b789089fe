"""Tests for the exception hierarchy."""

import pytest

from agent_memory.exceptions import AgentMemoryError, NotFoundError, StorageError, ValidationError, WorkflowError


class TestExceptions:
    @pytest.mark.parametrize("error", [
        ValidationError("bad", field="importance", value=11),
        NotFoundError("Memory", "m1"),
        StorageError("get", "connection refused"),
        WorkflowError("not paused"),
    ])
    def test_hierarchy(self, error):
        assert isinstance(error, AgentMemoryError)

    def test_validation_context(self):
        error = ValidationError("importance out of range", field="importance", value=11)
        assert error.field == "importance"
        assert str(error) == "importance out of range (field=importance, value=11)"

    def test_validation_without_field(self):
        assert str(ValidationError("bad input")) == "bad input"

    def test_not_found(self):
        error = NotFoundError("Version", "v1")
        assert error.entity == "Version"
        assert error.entity_id == "v1"
        assert str(error).startswith("Version not found: v1")

    def test_storage(self):
        error = StorageError("hgetall", "timeout")
        assert error.operation == "hgetall"
        assert "timeout" in str(error)
