"""Typer command handlers."""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError

from core.orchestrator import Orchestrator, RuntimeBundle
from core.policy_runtime import load_effective_config
from memory.conflicts import resolve_conflict
from memory.errors import MemoryEngineError
from memory.stores.cache import MemoryCache
from memory.types.claim import Memory, MemoryTier

logger = logging.getLogger("cm.cli")


def _runtime(root: Path | None = None) -> RuntimeBundle:
    bundle = Orchestrator(root=root).build()
    return bundle


def configure_logging() -> None:
    """Apply ``logging.level`` from the effective config."""
    with _reported_errors():
        config = load_effective_config(Orchestrator().root)
        level = str(config.get("logging", {}).get("level", "WARNING"))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@contextmanager
def _reported_errors() -> Iterator[None]:
    try:
        yield
    except (MemoryEngineError, ValidationError, ValueError, OSError) as exc:
        logger.warning("Command failed: %s", exc)
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _echo(payload: object) -> None:
    typer.echo(json.dumps(_json_safe(payload), indent=2))


def memory_add(
    topic: str,
    summary: str,
    source: str,
    detail: str = "",
    context: str | None = None,
    model: str = "",
    confidence: float = 1.0,
    tier: str = "public",
    supersedes: str | None = None,
    version: int = 1,
    tags: list[str] | None = None,
    memory_id: str | None = None,
) -> None:
    """Store a locally authored claim."""
    with _reported_errors():
        bundle = _runtime()
        memory = Memory(
            id=memory_id or uuid.uuid4().hex,
            tier=MemoryTier.parse(tier),
            topic=topic,
            summary=summary,
            detail=detail,
            context=context,
            source=source,
            model=model,
            confidence=confidence,
            supersedes=supersedes,
            version=version,
            tags=tags or [],
        )
        bundle.index.upsert(memory)
        _echo(memory.to_json_dict())


def memory_get(memory_id: str) -> None:
    with _reported_errors():
        bundle = _runtime()
        memory = bundle.index.get(memory_id)
    if memory is None:
        typer.echo(f"error: no memory with id {memory_id!r}", err=True)
        raise typer.Exit(code=1)
    _echo(memory.to_json_dict())


def memory_search(query: str, tier: str | None, limit: int | None, ranked: bool) -> None:
    """Full-text search, optionally ordered by trust and model tier."""
    with _reported_errors():
        bundle = _runtime()
        limit = bundle.default_limit if limit is None else limit
        if ranked:
            results = bundle.index.ranked_search(query, tier, bundle.memory_config, limit)
            _echo([result.model_dump(mode="json", exclude_none=True) for result in results])
            return
        hits = bundle.index.search(query, tier, limit)
        _echo([{"memory": memory.to_json_dict(), "relevance": score} for memory, score in hits])


def memory_ingest(path: Path) -> None:
    """Cache events read from a JSON file holding one event or a list."""
    with _reported_errors():
        bundle = _runtime()
        payload = json.loads(path.read_text(encoding="utf-8"))
        events = payload if isinstance(payload, list) else [payload]
        ingested = [bundle.cache.ingest_event(event).id for event in events]
        _echo({"ingested": ingested, "count": bundle.cache.count()})


def memory_conflicts(topic: str | None, resolve: bool) -> None:
    with _reported_errors():
        bundle = _runtime()
        found = bundle.index.conflicts(topic=topic)
        output: list[dict[str, Any]] = []
        for conflict in found:
            item = conflict.model_dump(mode="json", exclude_none=True)
            if resolve:
                winner = resolve_conflict(conflict, bundle.memory_config)
                item["winner"] = None if winner is None else winner.id
            output.append(item)
        _echo(output)


def memory_evict(ttl: int | None, include_local: bool) -> None:
    """Evict stale claims; remote copies only unless ``include_local``."""
    with _reported_errors():
        bundle = _runtime()
        if include_local:
            removed = bundle.index.evict_stale(
                bundle.cache.ttl_secs if ttl is None else ttl
            )
        else:
            cache = bundle.cache if ttl is None else MemoryCache(bundle.index, ttl_secs=ttl)
            removed = cache.evict_stale()
        _echo({"evicted": removed, "count": bundle.index.count()})


def memory_count() -> None:
    with _reported_errors():
        bundle = _runtime()
        _echo({"count": bundle.index.count()})


def config_show() -> None:
    """Show effective runtime config."""
    with _reported_errors():
        bundle = _runtime()
    _echo(bundle.config)


def _json_safe(payload: object) -> object:
    """Convert datetimes and paths to strings for JSON output."""
    if isinstance(payload, dict):
        return {k: _json_safe(v) for k, v in payload.items()}
    if isinstance(payload, list):
        return [_json_safe(v) for v in payload]
    if isinstance(payload, Path):
        return str(payload)
    if hasattr(payload, "isoformat"):
        return payload.isoformat()
    return payload
