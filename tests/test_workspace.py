"""Tests for workspace ids, key layout and scope modes."""

import hashlib

import pytest

from agent_memory.workspace import GLOBAL_KEYS, WorkspaceMode, WorkspaceResolver, create_workspace_id, get_workspace_mode


class TestWorkspaceId:
    def test_sixteen_hex_chars_of_sha256(self):
        workspace_id = create_workspace_id("/work/project")
        assert workspace_id == hashlib.sha256(b"/work/project").hexdigest()[:16]
        assert len(workspace_id) == 16

    def test_stable_and_distinct(self):
        assert create_workspace_id("/a") == create_workspace_id("/a")
        assert create_workspace_id("/a") != create_workspace_id("/b")


class TestKeyLayout:
    def test_workspace_keys(self):
        resolver = WorkspaceResolver("/work/project", WorkspaceMode.ISOLATED)
        keys = resolver.workspace
        prefix = f"ws:{resolver.workspace_id}"

        assert keys.memory("m1") == f"{prefix}:memory:m1"
        assert keys.memories() == f"{prefix}:memories:all"
        assert keys.by_type("decision") == f"{prefix}:memories:type:decision"
        assert keys.by_tag("api") == f"{prefix}:memories:tag:api"
        assert keys.timeline() == f"{prefix}:memories:timeline"
        assert keys.important() == f"{prefix}:memories:important"
        assert keys.memory_versions("m1") == f"{prefix}:memory:m1:versions"
        assert keys.memory_relationships_out("m1") == f"{prefix}:memory:m1:relationships:out"
        assert keys.workflow_active() == f"{prefix}:workflow:active"

    def test_global_keys(self):
        assert GLOBAL_KEYS.memory("m1") == "global:memory:m1"
        assert GLOBAL_KEYS.is_global is True
        assert WorkspaceResolver("/x", WorkspaceMode.ISOLATED).keys_for(True) is GLOBAL_KEYS


class TestModes:
    @pytest.mark.parametrize("mode, expected", [
        (WorkspaceMode.ISOLATED, ["ws"]),
        (WorkspaceMode.GLOBAL, ["global"]),
        (WorkspaceMode.HYBRID, ["ws", "global"]),
    ])
    def test_read_scopes(self, mode, expected):
        resolver = WorkspaceResolver("/work/project", mode)
        assert [k.prefix.split(":")[0] for k in resolver.read_scopes()] == expected
        assert len(resolver.lookup_scopes()) == 2

    def test_mixed_scope_only_outside_isolated(self):
        assert not WorkspaceResolver("/x", WorkspaceMode.ISOLATED).allows_mixed_scope()
        assert WorkspaceResolver("/x", WorkspaceMode.HYBRID).allows_mixed_scope()

    def test_mode_parsing(self, monkeypatch):
        assert get_workspace_mode("HYBRID") is WorkspaceMode.HYBRID
        assert get_workspace_mode("bogus") is WorkspaceMode.ISOLATED
        monkeypatch.setenv("WORKSPACE_MODE", "global")
        assert get_workspace_mode() is WorkspaceMode.GLOBAL
