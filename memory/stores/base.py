"""Claim store interface shared by the SQLite and in-memory indexes."""

from __future__ import annotations

import re
import time
from abc import ABC, abstractmethod

from memory.conflicts import detect_conflicts
from memory.errors import InvalidMemoryError
from memory.ranking import rank_memories
from memory.types.claim import Conflict, Memory, SearchResult
from memory.types.config import MemoryConfig

# Candidate pool multiplier for ranked search.
RANKED_CANDIDATES = 3

_TERM = re.compile(r"\w+", re.UNICODE)


def query_terms(query: str) -> list[str]:
    """Lowercased word tokens of a free-text query, deduplicated."""
    return list(dict.fromkeys(token.lower() for token in _TERM.findall(query)))


def stale_cutoff(ttl_secs: int, now: int | None = None) -> int:
    """Unix time before which a claim is stale."""
    if ttl_secs < 0:
        raise ValueError(f"ttl_secs must be non-negative, got {ttl_secs}")
    current = int(time.time()) if now is None else now
    return current - ttl_secs


def check_supersedes(
    memory: Memory,
    predecessor_version: int | None,
    successor_version: int | None,
) -> None:
    """Keep versions strictly increasing along every supersedes hop.

    ``predecessor_version`` is the stored version of ``memory.supersedes``
    (None when it is not stored yet); ``successor_version`` is the lowest
    stored version among claims that supersede ``memory.id``.
    """
    if predecessor_version is not None and predecessor_version >= memory.version:
        raise InvalidMemoryError(
            f"memory {memory.id!r} (version {memory.version}) must have a higher version "
            f"than the memory it supersedes {memory.supersedes!r} (version {predecessor_version})"
        )
    if successor_version is not None and successor_version <= memory.version:
        raise InvalidMemoryError(
            f"memory {memory.id!r} (version {memory.version}) is superseded by a memory "
            f"with version {successor_version}"
        )


class ClaimStore(ABC):
    """Queryable store of memory claims."""

    @abstractmethod
    def upsert(self, memory: Memory, raw_payload: str | None = None, *, remote: bool = False) -> None:
        """Insert or replace a claim by id."""

    @abstractmethod
    def get(self, memory_id: str) -> Memory | None:
        """Exact lookup by id."""

    @abstractmethod
    def search(
        self,
        query: str,
        tier_filter: str | None = None,
        limit: int = 10,
    ) -> list[tuple[Memory, float]]:
        """Full-text search; relevance in [0, 1], best first."""

    @abstractmethod
    def memories(self, topic: str | None = None, tier_filter: str | None = None) -> list[Memory]:
        """Snapshot of stored claims, optionally restricted by topic and tier."""

    @abstractmethod
    def raw_payload(self, memory_id: str) -> str | None:
        """Transport payload retained with a claim, if any."""

    @abstractmethod
    def evict_stale(self, ttl_secs: int, *, now: int | None = None, remote_only: bool = False) -> int:
        """Delete claims older than ``ttl_secs``; returns the number removed."""

    @abstractmethod
    def count(self) -> int:
        """Number of stored claims."""

    def ranked_search(
        self,
        query: str,
        tier_filter: str | None,
        config: MemoryConfig,
        limit: int = 10,
    ) -> list[SearchResult]:
        """Search, then order by trust, model tier, relevance and recency."""
        if limit <= 0:
            return []
        candidates = self.search(query, tier_filter, limit * RANKED_CANDIDATES)
        return rank_memories(candidates, config)[:limit]

    def conflicts(self, topic: str | None = None) -> list[Conflict]:
        """Conflicts among stored claims."""
        return detect_conflicts(self.memories(topic=topic))
