"""TTL cache over a claim store for memories learned from relays."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from memory.event import MemoryEvent, memory_from_event, memory_from_event_json
from memory.stores.base import ClaimStore
from memory.stores.sql_index import SqlMemoryIndex
from memory.types.claim import Memory, SearchResult
from memory.types.config import MemoryConfig

logger = logging.getLogger("cm.cache")

DEFAULT_TTL_SECS = 7 * 24 * 3600


class MemoryCache:
    """Time-bounded view of remote claims sharing an index with local ones.

    Claims written through the cache are marked remote; ``evict_stale`` only
    ever removes those, so locally authored claims in the same index keep
    their own lifetime. A superseding claim is stored next to its predecessor;
    ranking and conflict grouping decide which one surfaces.
    """

    def __init__(self, index: ClaimStore, ttl_secs: int = DEFAULT_TTL_SECS) -> None:
        if ttl_secs < 0:
            raise ValueError(f"ttl_secs must be non-negative, got {ttl_secs}")
        self._index = index
        self.ttl_secs = ttl_secs

    @classmethod
    def open(cls, db_path: Path, ttl_secs: int = DEFAULT_TTL_SECS) -> MemoryCache:
        return cls(SqlMemoryIndex.open(db_path), ttl_secs)

    @property
    def index(self) -> ClaimStore:
        return self._index

    def cache_memory(self, memory: Memory, raw_payload: str | None = None) -> None:
        self._index.upsert(memory, raw_payload, remote=True)

    def ingest_event(self, event: MemoryEvent | dict[str, Any]) -> Memory:
        """Decode an inbound event and cache it with its raw JSON."""
        if isinstance(event, MemoryEvent):
            memory = memory_from_event(event)
            raw_payload = event.model_dump_json()
        else:
            memory = memory_from_event_json(event)
            raw_payload = json.dumps(event)
        self.cache_memory(memory, raw_payload)
        logger.debug("Cached memory %s from %s", memory.id, memory.source)
        return memory

    def get(self, memory_id: str) -> Memory | None:
        return self._index.get(memory_id)

    def search(
        self,
        query: str,
        tier_filter: str | None = None,
        limit: int = 10,
    ) -> list[tuple[Memory, float]]:
        return self._index.search(query, tier_filter, limit)

    def ranked_search(
        self,
        query: str,
        tier_filter: str | None,
        config: MemoryConfig,
        limit: int = 10,
    ) -> list[SearchResult]:
        return self._index.ranked_search(query, tier_filter, config, limit)

    def evict_stale(self, now: int | None = None) -> int:
        """Drop remote claims older than the configured TTL."""
        removed = self._index.evict_stale(self.ttl_secs, now=now, remote_only=True)
        if removed:
            logger.info("Cache evicted %d remote memories older than %ss", removed, self.ttl_secs)
        return removed

    def count(self) -> int:
        return self._index.count()
