"""Tests for hash record encoding."""

from agent_memory.models import MemoryEntry, Relationship, Session
from agent_memory.storage.codec import (
    decode_memory,
    decode_relationship,
    decode_session,
    encode_memory,
    encode_relationship,
)


def make_memory(**overrides):
    fields = dict(
        id="m1",
        content="text",
        context_type="insight",
        importance=7,
        timestamp=1_700_000_000_000,
        workspace_id="abc",
        tags=["a", "b"],
        summary="text",
        embedding=[0.5, 0.25],
        ttl_seconds=120,
        expires_at=1_700_000_120_000,
        category="notes",
    )
    fields.update(overrides)
    return MemoryEntry(**fields)


class TestMemoryCodec:
    def test_encoded_values_are_strings(self):
        encoded = encode_memory(make_memory())
        assert all(isinstance(v, str) for v in encoded.values())
        assert encoded["is_global"] == "false"
        assert encoded["session_id"] == ""

    def test_round_trip(self):
        memory = make_memory()
        assert decode_memory(encode_memory(memory)) == memory

    def test_absent_optionals_decode_to_none(self):
        decoded = decode_memory(encode_memory(make_memory(embedding=None, ttl_seconds=None, expires_at=None, category=None)))
        assert decoded.embedding is None
        assert decoded.ttl_seconds is None
        assert decoded.category is None

    def test_missing_hash(self):
        assert decode_memory({}) is None

    def test_corrupt_json_falls_back(self):
        encoded = encode_memory(make_memory())
        encoded["tags"] = "[not json"
        encoded["embedding"] = "{"
        decoded = decode_memory(encoded)
        assert decoded.tags == []
        assert decoded.embedding is None


class TestRelationshipCodec:
    def test_empty_metadata(self):
        rel = Relationship("r1", "a", "b", "relates_to", "2025-01-01T00:00:00+00:00")
        encoded = encode_relationship(rel)
        assert encoded["metadata"] == ""
        assert decode_relationship(encoded).metadata == {}

    def test_corrupt_metadata(self):
        rel = Relationship("r1", "a", "b", "relates_to", "2025-01-01T00:00:00+00:00", {"k": 1})
        encoded = encode_relationship(rel)
        assert decode_relationship(encoded).metadata == {"k": 1}
        encoded["metadata"] = "{broken"
        assert decode_relationship(encoded).metadata == {}


class TestSessionCodec:
    def test_corrupt_member_list(self):
        data = {"session_id": "s1", "session_name": "n", "created_at": "5", "memory_ids": "oops", "workspace_id": "w"}
        assert decode_session(data) == Session("s1", "n", [], 5, "w")
