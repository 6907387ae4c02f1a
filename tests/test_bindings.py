"""JSON binding surface tests."""

from __future__ import annotations

import json

import pytest

from memory import bindings
from memory.errors import DecodeError, QueryError
from memory.event import memory_to_event
from memory.types import Memory


def claim(memory_id: str, **overrides: object) -> Memory:
    fields: dict[str, object] = {
        "id": memory_id,
        "topic": "nostr/nip44",
        "summary": "NIP-44 uses XChaCha20",
        "source": "npub_alice",
        "model": "anthropic/claude-opus-4",
        "confidence": 0.8,
        "created_at": 1_700_000_000,
    }
    fields.update(overrides)
    return Memory(**fields)


def as_json(memories: list[Memory]) -> str:
    return json.dumps([memory.to_json_dict() for memory in memories])


def test_parse_memory_event_returns_claim_json() -> None:
    memory = claim("m1", tags=["crypto"])
    event_json = memory_to_event(memory).model_dump_json()
    parsed = json.loads(bindings.parse_memory_event(event_json))
    assert Memory.model_validate(parsed) == memory


def test_parse_memory_event_reports_decode_errors() -> None:
    payload = memory_to_event(claim("m1")).model_dump()
    payload["kind"] = 1
    with pytest.raises(DecodeError):
        bindings.parse_memory_event(json.dumps(payload))


@pytest.mark.parametrize("raw", ["{not json", "[1, 2]"])
def test_parse_memory_event_rejects_bad_input(raw: str) -> None:
    with pytest.raises(QueryError):
        bindings.parse_memory_event(raw)


def test_rank_memories_with_source_list_uses_builtin_tiers() -> None:
    results = [
        {"memory": claim("unlisted", model="someone/x").to_json_dict(), "relevance": 0.5},
        {"memory": claim("tier1").to_json_dict(), "relevance": 0.5},
    ]
    ranked = json.loads(bindings.rank_memories(json.dumps(results), "[]"))
    assert [item["memory"]["id"] for item in ranked] == ["tier1", "unlisted"]
    assert [item["rank"] for item in ranked] == [1, 2]
    assert ranked[0]["model_tier"] == 1


def test_rank_memories_with_config_document() -> None:
    results = [
        {"memory": claim("a", source="npub_a").to_json_dict(), "relevance": 0.5},
        {"memory": claim("b", source="npub_b").to_json_dict(), "relevance": 0.5},
    ]
    config = {"sources": [{"npub": "npub_b", "trust": 0.9}]}
    ranked = json.loads(bindings.rank_memories(json.dumps(results), json.dumps(config)))
    assert ranked[0]["memory"]["id"] == "b"
    assert ranked[0]["model_tier"] == 5


def test_rank_memories_rejects_schema_violations() -> None:
    with pytest.raises(QueryError):
        bindings.rank_memories(json.dumps([{"relevance": 0.5}]), "[]")
    with pytest.raises(QueryError):
        bindings.rank_memories("[]", json.dumps([{"trust": 0.5}]))
    with pytest.raises(QueryError):
        bindings.rank_memories("[]", "42")


def test_detect_conflicts_round_trip() -> None:
    memories = [
        claim("alice"),
        claim("bob", source="npub_bob"),
        claim("v2", source="npub_carol", topic="rust", supersedes="v1", version=2),
        claim("v1", source="npub_carol", topic="rust"),
    ]
    conflicts = json.loads(bindings.detect_conflicts(as_json(memories)))
    assert [c["topic"] for c in conflicts] == ["nostr/nip44"]
    assert [m["id"] for m in conflicts[0]["memories"]] == ["alice", "bob"]


def test_resolve_conflict_returns_index() -> None:
    conflict = {
        "topic": "nostr/nip44",
        "memories": [
            claim("alice", model="local/phi").to_json_dict(),
            claim("bob", source="npub_bob").to_json_dict(),
        ],
    }
    assert json.loads(bindings.resolve_conflict(json.dumps(conflict), "[]")) == 1


def test_resolve_empty_conflict_returns_null() -> None:
    assert bindings.resolve_conflict(json.dumps({"topic": "t", "memories": []}), "{}") == "null"


def test_resolve_conflict_rejects_malformed_conflict() -> None:
    with pytest.raises(QueryError):
        bindings.resolve_conflict(json.dumps({"memories": []}), "[]")
