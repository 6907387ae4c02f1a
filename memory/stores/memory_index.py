"""Pure-Python claim index for embedded targets and tests."""

from __future__ import annotations

import logging
import math
import threading
from collections import Counter
from dataclasses import dataclass

from memory.stores.base import ClaimStore, check_supersedes, stale_cutoff
from memory.types.claim import Memory, normalize_tier_filter

logger = logging.getLogger("cm.index")


def _tokenize(text: str) -> list[str]:
    return [t for t in "".join(ch.lower() if ch.isalnum() else " " for ch in text).split() if t]


def _sparse_embedding(memory: Memory) -> Counter[str]:
    return Counter(_tokenize(" ".join([memory.topic, memory.summary, memory.detail, *memory.tags])))


def _cosine_sparse(a: Counter[str], b: Counter[str]) -> float:
    dot = sum(a[k] * b[k] for k in a.keys() & b.keys())
    norm_a = math.sqrt(sum(v * v for v in a.values()))
    norm_b = math.sqrt(sum(v * v for v in b.values()))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


@dataclass
class _Row:
    memory: Memory
    embedding: Counter[str]
    raw_payload: str | None = None
    remote: bool = False


class InMemoryIndex(ClaimStore):
    """Dictionary-backed claim index with cosine relevance over term counts."""

    def __init__(self) -> None:
        self._rows: dict[str, _Row] = {}
        self._lock = threading.RLock()

    def upsert(self, memory: Memory, raw_payload: str | None = None, *, remote: bool = False) -> None:
        with self._lock:
            predecessor = self._rows.get(memory.supersedes) if memory.supersedes else None
            successor_versions = [
                row.memory.version
                for row in self._rows.values()
                if row.memory.supersedes == memory.id
            ]
            check_supersedes(
                memory,
                predecessor.memory.version if predecessor else None,
                min(successor_versions) if successor_versions else None,
            )
            self._rows[memory.id] = _Row(
                memory=memory,
                embedding=_sparse_embedding(memory),
                raw_payload=raw_payload,
                remote=remote,
            )
        logger.debug("Upserted memory %s (topic=%s, remote=%s)", memory.id, memory.topic, remote)

    def get(self, memory_id: str) -> Memory | None:
        with self._lock:
            row = self._rows.get(memory_id)
        return None if row is None else row.memory

    def raw_payload(self, memory_id: str) -> str | None:
        with self._lock:
            row = self._rows.get(memory_id)
        return None if row is None else row.raw_payload

    def search(
        self,
        query: str,
        tier_filter: str | None = None,
        limit: int = 10,
    ) -> list[tuple[Memory, float]]:
        tier_filter = normalize_tier_filter(tier_filter)
        query_emb = Counter(_tokenize(query))
        if not query_emb or limit <= 0:
            return []

        scored: list[tuple[float, str, Memory]] = []
        for row in self._snapshot():
            if not row.memory.tier.matches_filter(tier_filter):
                continue
            score = _cosine_sparse(query_emb, row.embedding)
            if score > 0:
                scored.append((score, row.memory.id, row.memory))
        scored.sort(key=lambda item: (-item[0], item[1]))
        return [(memory, score) for score, _, memory in scored[:limit]]

    def memories(self, topic: str | None = None, tier_filter: str | None = None) -> list[Memory]:
        tier_filter = normalize_tier_filter(tier_filter)
        selected = [
            row.memory
            for row in self._snapshot()
            if (topic is None or row.memory.topic == topic)
            and row.memory.tier.matches_filter(tier_filter)
        ]
        return sorted(selected, key=lambda memory: (memory.created_at, memory.id))

    def evict_stale(self, ttl_secs: int, *, now: int | None = None, remote_only: bool = False) -> int:
        cutoff = stale_cutoff(ttl_secs, now)
        with self._lock:
            stale = [
                memory_id
                for memory_id, row in self._rows.items()
                if row.memory.created_at < cutoff and (row.remote or not remote_only)
            ]
            for memory_id in stale:
                del self._rows[memory_id]
        logger.info("Evicted %d stale memories (ttl=%ss, remote_only=%s)", len(stale), ttl_secs, remote_only)
        return len(stale)

    def count(self) -> int:
        with self._lock:
            return len(self._rows)

    def _snapshot(self) -> list[_Row]:
        with self._lock:
            return list(self._rows.values())
