"""SQLAlchemy schemas for the persistent memory index."""

from __future__ import annotations

from sqlalchemy import DDL, JSON, Boolean, Float, Integer, String, Text, event
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from memory.types.claim import unix_now


class Base(DeclarativeBase):
    """Declarative base."""


class MemoryRecord(Base):
    """Memory claims table, one row per claim id."""

    __tablename__ = "memories"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    tier: Mapped[str] = mapped_column(String(160), index=True)  # public / group:<name>
    topic: Mapped[str] = mapped_column(Text, index=True)
    summary: Mapped[str] = mapped_column(Text)
    detail: Mapped[str] = mapped_column(Text, default="")
    context: Mapped[str | None] = mapped_column(Text, nullable=True)
    source: Mapped[str] = mapped_column(String(128), index=True)
    model: Mapped[str] = mapped_column(String(128), default="")
    confidence: Mapped[float] = mapped_column(Float, default=0.5)
    supersedes: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    version: Mapped[int] = mapped_column(Integer, default=1)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list)
    created_at: Mapped[int] = mapped_column(Integer, index=True)
    event_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    remote: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    cached_at: Mapped[int] = mapped_column(Integer, default=unix_now, onupdate=unix_now)


# External-content FTS5 index over the searchable columns, kept in sync by triggers.
FTS_DDL = (
    "CREATE VIRTUAL TABLE IF NOT EXISTS memories_fts USING fts5("
    "topic, summary, detail, tags, content='memories', content_rowid='rowid')",
    "CREATE TRIGGER IF NOT EXISTS memories_ai AFTER INSERT ON memories BEGIN "
    "INSERT INTO memories_fts(rowid, topic, summary, detail, tags) "
    "VALUES (new.rowid, new.topic, new.summary, new.detail, new.tags); END",
    "CREATE TRIGGER IF NOT EXISTS memories_ad AFTER DELETE ON memories BEGIN "
    "INSERT INTO memories_fts(memories_fts, rowid, topic, summary, detail, tags) "
    "VALUES ('delete', old.rowid, old.topic, old.summary, old.detail, old.tags); END",
    "CREATE TRIGGER IF NOT EXISTS memories_au AFTER UPDATE ON memories BEGIN "
    "INSERT INTO memories_fts(memories_fts, rowid, topic, summary, detail, tags) "
    "VALUES ('delete', old.rowid, old.topic, old.summary, old.detail, old.tags); "
    "INSERT INTO memories_fts(rowid, topic, summary, detail, tags) "
    "VALUES (new.rowid, new.topic, new.summary, new.detail, new.tags); END",
)

for _statement in FTS_DDL:
    event.listen(MemoryRecord.__table__, "after_create", DDL(_statement).execute_if(dialect="sqlite"))
