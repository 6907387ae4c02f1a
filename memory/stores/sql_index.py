"""SQLite memory index with FTS5 full-text search."""

from __future__ import annotations

import logging
import threading
from contextlib import nullcontext
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from sqlalchemy import func, text

from memory.errors import StorageError
from memory.schemas import MemoryRecord
from memory.stores.base import ClaimStore, check_supersedes, query_terms, stale_cutoff
from memory.stores.sql_store import SQLStore
from memory.types.claim import (
    GROUP_LABEL,
    PUBLIC_LABEL,
    Memory,
    MemoryTier,
    normalize_tier_filter,
    unix_now,
)

logger = logging.getLogger("cm.index")

_SEARCH_SQL = (
    "SELECT m.id AS id, bm25(memories_fts) AS score "
    "FROM memories_fts JOIN memories AS m ON m.rowid = memories_fts.rowid "
    "WHERE memories_fts MATCH :match{tier_clause} "
    "ORDER BY score, m.id LIMIT :limit"
)


def _match_expression(terms: list[str]) -> str:
    return " OR ".join(f'"{term}"' for term in terms)


def _tier_clause(tier_filter: str | None) -> tuple[str, dict[str, Any]]:
    if tier_filter is None:
        return "", {}
    if tier_filter == PUBLIC_LABEL:
        return " AND m.tier = :tier", {"tier": PUBLIC_LABEL}
    if tier_filter == GROUP_LABEL:
        return " AND m.tier LIKE :tier", {"tier": f"{GROUP_LABEL}:%"}
    return " AND m.tier = :tier", {"tier": tier_filter}


def _relevance(bm25_score: float) -> float:
    # bm25() is negative, more negative is better.
    strength = max(0.0, -bm25_score)
    return strength / (1.0 + strength)


class SqlMemoryIndex(ClaimStore):
    """Durable claim index backed by SQLite.

    Writes are serialized through a single lock. Reads run on their own
    connections (WAL), except for the in-memory database which shares one
    connection and therefore serializes everything.
    """

    def __init__(self, sql_store: SQLStore) -> None:
        self.sql_store = sql_store
        self.sql_store.create_all()
        self._write_lock = threading.RLock()
        self._read_lock = self._write_lock if sql_store.shared_connection else nullcontext()

    @classmethod
    def open(cls, db_path: Path) -> SqlMemoryIndex:
        return cls(SQLStore(db_path))

    @classmethod
    def open_in_memory(cls) -> SqlMemoryIndex:
        return cls(SQLStore(None))

    def upsert(self, memory: Memory, raw_payload: str | None = None, *, remote: bool = False) -> None:
        """Insert or replace a claim, checking supersedes chain integrity."""
        with self._write_lock, self.sql_store.session() as sess:
            predecessor_version = None
            if memory.supersedes is not None:
                predecessor_version = (
                    sess.query(MemoryRecord.version)
                    .filter(MemoryRecord.id == memory.supersedes)
                    .scalar()
                )
            successor_version = (
                sess.query(func.min(MemoryRecord.version))
                .filter(MemoryRecord.supersedes == memory.id)
                .scalar()
            )
            check_supersedes(memory, predecessor_version, successor_version)

            row = sess.get(MemoryRecord, memory.id)
            if row is None:
                row = MemoryRecord(id=memory.id)
                sess.add(row)
            row.tier = memory.tier.label()
            row.topic = memory.topic
            row.summary = memory.summary
            row.detail = memory.detail
            row.context = memory.context
            row.source = memory.source
            row.model = memory.model
            row.confidence = memory.confidence
            row.supersedes = memory.supersedes
            row.version = memory.version
            row.tags = list(memory.tags)
            row.created_at = memory.created_at
            row.event_json = raw_payload
            row.remote = remote
            row.cached_at = unix_now()
        logger.debug("Upserted memory %s (topic=%s, remote=%s)", memory.id, memory.topic, remote)

    def get(self, memory_id: str) -> Memory | None:
        with self._read_lock, self.sql_store.session() as sess:
            row = sess.get(MemoryRecord, memory_id)
            return None if row is None else self._row_to_memory(row)

    def raw_payload(self, memory_id: str) -> str | None:
        with self._read_lock, self.sql_store.session() as sess:
            return (
                sess.query(MemoryRecord.event_json)
                .filter(MemoryRecord.id == memory_id)
                .scalar()
            )

    def search(
        self,
        query: str,
        tier_filter: str | None = None,
        limit: int = 10,
    ) -> list[tuple[Memory, float]]:
        """Full-text search over topic, summary, detail and tags."""
        tier_filter = normalize_tier_filter(tier_filter)
        terms = query_terms(query)
        if not terms or limit <= 0:
            return []

        tier_clause, params = _tier_clause(tier_filter)
        statement = text(_SEARCH_SQL.format(tier_clause=tier_clause))
        params.update({"match": _match_expression(terms), "limit": limit})

        with self._read_lock, self.sql_store.session() as sess:
            hits = sess.execute(statement, params).all()
            ids = [hit.id for hit in hits]
            rows = {
                row.id: row
                for row in sess.query(MemoryRecord).filter(MemoryRecord.id.in_(ids)).all()
            }
            return [
                (self._row_to_memory(rows[hit.id]), _relevance(hit.score))
                for hit in hits
                if hit.id in rows
            ]

    def memories(self, topic: str | None = None, tier_filter: str | None = None) -> list[Memory]:
        tier_filter = normalize_tier_filter(tier_filter)
        with self._read_lock, self.sql_store.session() as sess:
            query = sess.query(MemoryRecord)
            if topic is not None:
                query = query.filter(MemoryRecord.topic == topic)
            if tier_filter == GROUP_LABEL:
                query = query.filter(MemoryRecord.tier.like(f"{GROUP_LABEL}:%"))
            elif tier_filter is not None:
                query = query.filter(MemoryRecord.tier == tier_filter)
            rows = query.order_by(MemoryRecord.created_at.asc(), MemoryRecord.id.asc()).all()
            return [self._row_to_memory(row) for row in rows]

    def evict_stale(self, ttl_secs: int, *, now: int | None = None, remote_only: bool = False) -> int:
        """Delete claims created before ``now - ttl_secs`` in one transaction."""
        cutoff = stale_cutoff(ttl_secs, now)
        with self._write_lock, self.sql_store.session() as sess:
            query = sess.query(MemoryRecord).filter(MemoryRecord.created_at < cutoff)
            if remote_only:
                query = query.filter(MemoryRecord.remote.is_(True))
            removed = query.delete(synchronize_session=False)
        logger.info("Evicted %d stale memories (ttl=%ss, remote_only=%s)", removed, ttl_secs, remote_only)
        return removed

    def count(self) -> int:
        with self._read_lock, self.sql_store.session() as sess:
            return int(sess.query(func.count(MemoryRecord.id)).scalar() or 0)

    @staticmethod
    def _row_to_memory(row: MemoryRecord) -> Memory:
        try:
            return Memory(
                id=row.id,
                tier=MemoryTier.parse(row.tier),
                topic=row.topic,
                summary=row.summary,
                detail=row.detail or "",
                context=row.context,
                source=row.source,
                model=row.model or "",
                confidence=row.confidence,
                supersedes=row.supersedes,
                version=row.version,
                tags=list(row.tags or []),
                created_at=row.created_at,
            )
        except (ValidationError, ValueError) as exc:
            raise StorageError(f"corrupt memory row {row.id!r}: {exc}") from exc
