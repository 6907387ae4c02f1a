"""TTL cache tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from memory.errors import DecodeError
from memory.event import memory_to_event
from memory.stores.cache import MemoryCache
from memory.stores.memory_index import InMemoryIndex
from memory.types import Memory, MemoryConfig

NOW = 1_700_000_000
TTL = 3600


def build_cache(tmp_path: Path) -> MemoryCache:
    return MemoryCache.open(tmp_path / "cache.db", ttl_secs=TTL)


def remote_claim(memory_id: str, created_at: int = NOW, **overrides: object) -> Memory:
    fields: dict[str, object] = {
        "id": memory_id,
        "topic": "relays/latency",
        "summary": "relay.damus.io answers within 200ms",
        "source": "npub_remote",
        "model": "openai/gpt-5",
        "confidence": 0.6,
        "created_at": created_at,
    }
    fields.update(overrides)
    return Memory(**fields)


def test_ingest_event_decodes_and_keeps_payload(tmp_path: Path) -> None:
    cache = build_cache(tmp_path)
    event = memory_to_event(remote_claim("r1"))

    memory = cache.ingest_event(event)

    assert memory == remote_claim("r1")
    assert cache.get("r1") == memory
    assert json.loads(cache.index.raw_payload("r1") or "{}")["kind"] == 30078


def test_ingest_event_accepts_raw_mapping(tmp_path: Path) -> None:
    cache = build_cache(tmp_path)
    payload = memory_to_event(remote_claim("r1")).model_dump()
    assert cache.ingest_event(payload).id == "r1"
    assert json.loads(cache.index.raw_payload("r1") or "{}") == payload


def test_ingest_invalid_event_raises_decode_error(tmp_path: Path) -> None:
    cache = build_cache(tmp_path)
    payload = memory_to_event(remote_claim("r1")).model_dump()
    payload["kind"] = 1
    with pytest.raises(DecodeError):
        cache.ingest_event(payload)
    assert cache.count() == 0


def test_evict_stale_only_touches_remote_copies(tmp_path: Path) -> None:
    cache = build_cache(tmp_path)
    cache.index.upsert(remote_claim("local-old", created_at=NOW - TTL - 100))
    cache.cache_memory(remote_claim("remote-old", created_at=NOW - TTL - 100))
    cache.cache_memory(remote_claim("remote-new", created_at=NOW - 10))

    assert cache.evict_stale(now=NOW) == 1
    assert cache.count() == 2
    assert cache.get("remote-old") is None
    assert cache.get("local-old") is not None
    assert cache.get("remote-new") is not None


def test_superseding_copy_is_cached_next_to_predecessor() -> None:
    cache = MemoryCache(InMemoryIndex(), ttl_secs=TTL)
    cache.cache_memory(remote_claim("v1"))
    cache.cache_memory(remote_claim("v2", supersedes="v1", version=2, summary="now 150ms"))

    assert cache.count() == 2
    results = cache.ranked_search("latency", None, MemoryConfig.default())
    assert [result.memory.id for result in results] == ["v2", "v1"]
    assert results[1].superseded


def test_search_passes_through(tmp_path: Path) -> None:
    cache = build_cache(tmp_path)
    cache.cache_memory(remote_claim("r1"))
    assert [memory.id for memory, _ in cache.search("damus")] == ["r1"]


def test_negative_ttl_rejected() -> None:
    with pytest.raises(ValueError):
        MemoryCache(InMemoryIndex(), ttl_secs=-1)
