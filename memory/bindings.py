"""JSON-in/JSON-out entry points for embedding hosts.

Every function takes and returns JSON text so a sandboxed UI (or any foreign
runtime) can call into the engine without sharing Python objects.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, TypeAdapter, ValidationError

from memory import conflicts, ranking
from memory.errors import QueryError
from memory.event import memory_from_event_json
from memory.types.claim import Conflict, Memory
from memory.types.config import MemoryConfig, SourcePreference


class RankInput(BaseModel):
    """One ``(memory, relevance)`` pair as sent by the host."""

    memory: Memory
    relevance: float = 0.0


_RANK_INPUTS = TypeAdapter(list[RankInput])
_MEMORIES = TypeAdapter(list[Memory])
_SOURCES = TypeAdapter(list[SourcePreference])
_CONFIG = TypeAdapter(MemoryConfig)
_CONFLICT = TypeAdapter(Conflict)


def _loads(payload: str, what: str) -> Any:
    try:
        return json.loads(payload)
    except (TypeError, json.JSONDecodeError) as exc:
        raise QueryError(f"invalid {what} JSON: {exc}") from exc


def _validate(adapter: Any, data: Any, what: str) -> Any:
    try:
        return adapter.validate_python(data)
    except ValidationError as exc:
        raise QueryError(f"invalid {what}: {exc.errors()[0]['msg']}") from exc


def _config(config_json: str) -> MemoryConfig:
    data = _loads(config_json, "config")
    if isinstance(data, list):
        sources = _validate(_SOURCES, data, "source preferences")
        return MemoryConfig.default().model_copy(update={"sources": sources})
    if data is None or isinstance(data, dict):
        return _validate(_CONFIG, data or {}, "config")
    raise QueryError("config must be an object or a list of source preferences")


def parse_memory_event(event_json: str) -> str:
    """Decode a raw event into claim JSON; raises DecodeError on bad events."""
    data = _loads(event_json, "event")
    if not isinstance(data, dict):
        raise QueryError("event must be a JSON object")
    return json.dumps(memory_from_event_json(data).to_json_dict())


def rank_memories(results_json: str, config_json: str) -> str:
    """Rank ``[{"memory", "relevance"}]`` into ordered search results."""
    inputs = _validate(_RANK_INPUTS, _loads(results_json, "results"), "results")
    ranked = ranking.rank_memories(
        ((item.memory, item.relevance) for item in inputs),
        _config(config_json),
    )
    return json.dumps([result.model_dump(mode="json", exclude_none=True) for result in ranked])


def detect_conflicts(memories_json: str) -> str:
    memories = _validate(_MEMORIES, _loads(memories_json, "memories"), "memories")
    found = conflicts.detect_conflicts(memories)
    return json.dumps([conflict.model_dump(mode="json", exclude_none=True) for conflict in found])


def resolve_conflict(conflict_json: str, config_json: str) -> str:
    """Index of the winning claim within the conflict, or ``null``."""
    conflict = _validate(_CONFLICT, _loads(conflict_json, "conflict"), "conflict")
    return json.dumps(conflicts.winner_index(conflict, _config(config_json)))
