"""Tests for action payload parsing and dispatch."""

import pytest

from agent_memory.actions import (
    GraphAction,
    LinkAction,
    ListCategoriesAction,
    MergeAction,
    dispatch_action,
    family_of,
    parse_action,
)
from agent_memory.exceptions import NotFoundError, ValidationError


class TestParseAction:
    def test_builds_typed_variant(self):
        action = parse_action("graph", {"action": "link", "from_memory_id": "a", "to_memory_id": "b", "relationship_type": "references"})
        assert action == LinkAction("a", "b", "references")

    def test_defaults_apply(self):
        assert parse_action("graph", {"action": "graph", "memory_id": "a"}) == GraphAction("a", 2, 50)
        assert parse_action("category", {"action": "list"}) == ListCategoriesAction(include_counts=True)

    def test_unknown_family(self):
        with pytest.raises(ValidationError) as exc:
            parse_action("search", {"action": "run"})
        assert exc.value.field == "family"

    def test_unknown_action(self):
        with pytest.raises(ValidationError) as exc:
            parse_action("workflow", {"action": "restart"})
        assert exc.value.field == "action"

    def test_unexpected_field(self):
        with pytest.raises(ValidationError) as exc:
            parse_action("graph", {"action": "unlink", "relationship_id": "r", "force": True})
        assert exc.value.field == "force"

    def test_missing_required_field(self):
        with pytest.raises(ValidationError) as exc:
            parse_action("maintain", {"action": "merge"})
        assert exc.value.field == "memory_ids"

    def test_payload_must_be_mapping(self):
        with pytest.raises(ValidationError):
            parse_action("graph", ["link"])

    def test_family_of(self):
        assert family_of(MergeAction(["a", "b"])) == "maintain"
        with pytest.raises(ValidationError):
            family_of(object())


class TestDispatch:
    async def run(self, store, family, **payload):
        return await dispatch_action(store, parse_action(family, payload))

    async def test_link_related_unlink(self, store):
        a = await store.create_memory("a")
        b = await store.create_memory("b")

        linked = await self.run(store, "graph", action="link", from_memory_id=a.id, to_memory_id=b.id, relationship_type="relates_to")
        related = await self.run(store, "graph", action="related", memory_id=a.id)
        unlinked = await self.run(store, "graph", action="unlink", relationship_id=linked["relationship"]["id"])

        assert linked["success"] is True
        assert related["count"] == 1
        assert related["memories"][0]["memory"]["id"] == b.id
        assert unlinked["success"] is True

    async def test_unlink_missing(self, store):
        with pytest.raises(NotFoundError):
            await self.run(store, "graph", action="unlink", relationship_id="missing")

    async def test_history_and_rollback(self, store):
        memory = await store.create_memory("v1")
        await store.update_memory(memory.id, content="v2")

        history = await self.run(store, "graph", action="history", memory_id=memory.id)
        version_id = history["versions"][0]["version_id"]
        restored = await self.run(store, "graph", action="rollback", memory_id=memory.id, version_id=version_id)

        assert history["count"] == 1
        assert restored["memory"]["content"] == "v1"

    async def test_graph(self, store):
        a = await store.create_memory("a")
        result = await self.run(store, "graph", action="graph", memory_id=a.id)
        assert result["graph"]["total_nodes"] == 1

    async def test_categories(self, store):
        memory = await store.create_memory("a")

        assigned = await self.run(store, "category", action="set", memory_id=memory.id, category="notes")
        listed = await self.run(store, "category", action="list", include_counts=False)
        fetched = await self.run(store, "category", action="get", category="notes")

        assert assigned["category"] == "notes"
        assert listed["total_categories"] == 1
        assert "memory_count" not in listed["categories"][0]
        assert [m["id"] for m in fetched["memories"]] == [memory.id]

    async def test_set_category_on_missing_memory(self, store):
        with pytest.raises(NotFoundError):
            await self.run(store, "category", action="set", memory_id="missing", category="notes")

    async def test_workflow_family(self, store):
        started = await self.run(store, "workflow", action="start", name="task")
        active = await self.run(store, "workflow", action="active")
        completed = await self.run(store, "workflow", action="complete", summary="done")
        listed = await self.run(store, "workflow", action="list")

        assert active["active_workflow"]["id"] == started["id"]
        assert completed["status"] == "completed"
        assert listed["count"] == 1

    async def test_merge(self, store):
        a = await store.create_memory("a", importance=2)
        b = await store.create_memory("b", importance=6)
        result = await self.run(store, "maintain", action="merge", memory_ids=[a.id, b.id])

        assert result["merged_count"] == 2
        assert result["content"] == "b"
        assert (await store.get_memory(result["memory_id"])).importance == 6

    async def test_export_then_import(self, store, make_store):
        await store.create_memory("a")
        exported = await self.run(store, "maintain", action="export")
        other = make_store("/work/other")
        imported = await self.run(other, "maintain", action="import", data=exported)

        assert exported["memory_count"] == 1
        assert imported["success"] is True
        assert imported["imported"] == 1
