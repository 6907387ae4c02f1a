"""Relay wire frames: parsing inbound messages and building outbound ones.

Frames are JSON arrays; transport (websockets, reconnects) belongs to the
caller::

    ["EVENT", <sub_id>, <event>]    ["EOSE", <sub_id>]
    ["NOTICE", <message>]           ["OK", <event_id>, <accepted>, <message>]
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Union

from pydantic import BaseModel

from memory.errors import DecodeError
from memory.event import KIND_APP_SPECIFIC, KIND_METADATA, memory_from_event_json
from memory.types.claim import Memory

logger = logging.getLogger("cm.relay")

DEFAULT_DEDUP_SIZE = 10_000


@dataclass(frozen=True)
class MemoryEventMessage:
    sub_id: str
    memory: Memory


@dataclass(frozen=True)
class ProfileEventMessage:
    sub_id: str
    event_json: str


@dataclass(frozen=True)
class OtherEventMessage:
    sub_id: str
    kind: int


@dataclass(frozen=True)
class EndOfStoredEvents:
    sub_id: str


@dataclass(frozen=True)
class Notice:
    message: str


@dataclass(frozen=True)
class OkMessage:
    event_id: str
    accepted: bool
    message: str


@dataclass(frozen=True)
class UnknownMessage:
    raw: str


RelayMessage = Union[
    MemoryEventMessage,
    ProfileEventMessage,
    OtherEventMessage,
    EndOfStoredEvents,
    Notice,
    OkMessage,
    UnknownMessage,
]


def _str_at(frame: list[Any], index: int) -> str:
    value = frame[index] if len(frame) > index else None
    return value if isinstance(value, str) else ""


def _parse_event(frame: list[Any], raw: str) -> RelayMessage:
    if len(frame) < 3 or not isinstance(frame[2], dict):
        return UnknownMessage(raw)
    sub_id = _str_at(frame, 1)
    event = frame[2]
    kind = event.get("kind")
    if not isinstance(kind, int) or isinstance(kind, bool):
        return UnknownMessage(raw)

    if kind == KIND_APP_SPECIFIC:
        try:
            return MemoryEventMessage(sub_id=sub_id, memory=memory_from_event_json(event))
        except DecodeError as exc:
            logger.debug("Ignoring undecodable kind %d event on %s: %s", kind, sub_id, exc)
            return OtherEventMessage(sub_id=sub_id, kind=kind)
    if kind == KIND_METADATA:
        return ProfileEventMessage(sub_id=sub_id, event_json=json.dumps(event))
    return OtherEventMessage(sub_id=sub_id, kind=kind)


def parse_relay_message(raw: str) -> RelayMessage:
    """Classify one relay frame; anything unparseable becomes UnknownMessage."""
    try:
        frame = json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        return UnknownMessage(raw)
    if not isinstance(frame, list) or not frame:
        return UnknownMessage(raw)

    label = frame[0]
    if label == "EVENT":
        return _parse_event(frame, raw)
    if label == "EOSE":
        return EndOfStoredEvents(sub_id=_str_at(frame, 1))
    if label == "NOTICE":
        return Notice(message=_str_at(frame, 1))
    if label == "OK":
        accepted = frame[2] if len(frame) > 2 and isinstance(frame[2], bool) else False
        return OkMessage(event_id=_str_at(frame, 1), accepted=accepted, message=_str_at(frame, 3))
    return UnknownMessage(raw)


class EventDedup:
    """Bounded set of seen event ids.

    At capacity the oldest half is forgotten, so a very old event may be
    reported as new again.
    """

    def __init__(self, max_size: int = DEFAULT_DEDUP_SIZE) -> None:
        if max_size < 1:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self.max_size = max_size
        self._seen: dict[str, None] = {}

    def check_and_insert(self, event_id: str) -> bool:
        """True when ``event_id`` has not been seen before."""
        if event_id in self._seen:
            return False
        if len(self._seen) >= self.max_size:
            for stale in list(self._seen)[: max(1, self.max_size // 2)]:
                del self._seen[stale]
        self._seen[event_id] = None
        return True

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._seen

    def __len__(self) -> int:
        return len(self._seen)


def build_memory_subscription(sub_id: str, since: int | None = None) -> str:
    """``REQ`` frame for memory events, optionally only those after ``since``."""
    # Relays match "#d" values exactly, so topic prefixes are filtered on decode.
    query: dict[str, Any] = {"kinds": [KIND_APP_SPECIFIC]}
    if since is not None:
        query["since"] = since
    return json.dumps(["REQ", sub_id, query])


def build_profile_subscription(sub_id: str, pubkeys: Sequence[str] | None = None) -> str:
    query: dict[str, Any] = {"kinds": [KIND_METADATA]}
    if pubkeys is not None:
        query["authors"] = list(pubkeys)
    return json.dumps(["REQ", sub_id, query])


def to_relay_message(event: BaseModel | Mapping[str, Any]) -> str:
    """``EVENT`` frame submitting a signed event."""
    payload = event.model_dump(mode="json") if isinstance(event, BaseModel) else dict(event)
    return json.dumps(["EVENT", payload])
