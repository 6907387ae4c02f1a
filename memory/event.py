"""Conversion between claims and NIP-78 transport events.

Indexable attributes travel as tags so relays can filter without parsing the
body; everything else travels in a JSON content object::

    tags:    ["d", "snow:memory:<topic>"], ["snow:id", <id>],
             ["snow:tier", "public"] | ["snow:tier", "group", <name>],
             ["snow:model", <model>], ["snow:supersedes", <id>]?, ["t", <tag>]*
    content: {"summary", "detail", "context"?, "confidence", "version", "tags"}

Signing is not done here; ``UnsignedEvent.compute_id`` gives the NIP-01 id a
signer would commit to.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr
from pydantic import ValidationError

from memory.errors import DecodeError
from memory.types.claim import Memory, MemoryTier, unix_now
from memory.types.profile import AgentProfile

KIND_METADATA = 0
KIND_APP_SPECIFIC = 30078
D_TAG_PREFIX = "snow:memory:"

TAG_D = "d"
TAG_ID = "snow:id"
TAG_TIER = "snow:tier"
TAG_MODEL = "snow:model"
TAG_SUPERSEDES = "snow:supersedes"
TAG_HASHTAG = "t"

PROFILE_MODEL = "snow:model"
PROFILE_VERSION = "snow:version"
PROFILE_CAPABILITIES = "snow:capabilities"
PROFILE_OPERATOR = "snow:operator"


class MemoryEvent(BaseModel):
    """Transport-neutral event shape; integrators map it to their event type."""

    id: str = ""
    kind: int
    pubkey: str
    created_at: int
    tags: list[list[str]] = Field(default_factory=list)
    content: str

    def get_tag(self, key: str) -> list[str] | None:
        for tag in self.tags:
            if tag and tag[0] == key:
                return tag
        return None

    def tag_value(self, key: str) -> str | None:
        tag = self.get_tag(key)
        if tag is None or len(tag) < 2:
            return None
        return tag[1]

    def require_tag(self, key: str) -> str:
        value = self.tag_value(key)
        if value is None:
            raise DecodeError(f"missing required tag: {key}")
        return value


class MemoryContent(BaseModel):
    """JSON body of a memory event."""

    model_config = ConfigDict(extra="ignore")

    summary: StrictStr
    detail: StrictStr
    context: StrictStr | None = None
    confidence: StrictFloat | StrictInt
    version: StrictInt
    tags: list[StrictStr] = Field(default_factory=list)


class UnsignedEvent(BaseModel):
    """Event ready for a signer."""

    pubkey: str
    created_at: int
    kind: int
    tags: list[list[str]]
    content: str

    def compute_id(self) -> str:
        """SHA-256 of the NIP-01 canonical serialization."""
        canonical = [0, self.pubkey, self.created_at, self.kind, self.tags, self.content]
        serialized = json.dumps(canonical, separators=(",", ":"), ensure_ascii=False)
        return hashlib.sha256(serialized.encode("utf-8")).hexdigest()

    def with_signature(self, sig: str) -> SignedEvent:
        """Attach a signature produced externally over ``compute_id()``."""
        return SignedEvent(id=self.compute_id(), sig=sig, **self.model_dump())


class SignedEvent(UnsignedEvent):
    """Event ready for relay submission."""

    id: str
    sig: str


def memory_to_event(memory: Memory) -> MemoryEvent:
    """Encode a claim as a memory event."""
    content = MemoryContent(
        summary=memory.summary,
        detail=memory.detail,
        context=memory.context,
        confidence=memory.confidence,
        version=memory.version,
        tags=list(memory.tags),
    )

    tier_tag = [TAG_TIER, memory.tier.as_tag_value()]
    if memory.tier.is_group:
        tier_tag.append(memory.tier.value or "")

    tags = [
        [TAG_D, f"{D_TAG_PREFIX}{memory.topic}"],
        [TAG_ID, memory.id],
        tier_tag,
        [TAG_MODEL, memory.model],
    ]
    if memory.supersedes is not None:
        tags.append([TAG_SUPERSEDES, memory.supersedes])
    tags.extend([TAG_HASHTAG, tag] for tag in memory.tags)

    return MemoryEvent(
        id=memory.id,
        kind=KIND_APP_SPECIFIC,
        pubkey=memory.source,
        created_at=memory.created_at,
        tags=tags,
        content=content.model_dump_json(exclude_none=True),
    )


def _decode_tier(event: MemoryEvent) -> MemoryTier:
    tag = event.get_tag(TAG_TIER)
    if tag is None or len(tag) < 2:
        raise DecodeError(f"missing required tag: {TAG_TIER}")
    if tag[1] == "public":
        return MemoryTier.public()
    if tag[1] == "group":
        if len(tag) < 3 or not tag[2]:
            raise DecodeError("group tier without group name", tag=TAG_TIER)
        return MemoryTier.group(tag[2])
    raise DecodeError(f"unknown tier: {tag[1]}", tag=TAG_TIER)


def _decode_content(raw: str) -> MemoryContent:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise DecodeError(f"invalid content: {exc}") from exc
    if not isinstance(payload, dict):
        raise DecodeError("invalid content: expected a JSON object")
    try:
        return MemoryContent.model_validate(payload)
    except ValidationError as exc:
        raise DecodeError(f"invalid content: {_first_error(exc)}") from exc


def _first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error["loc"])
    return f"{location}: {error['msg']}" if location else str(error["msg"])


def memory_from_event(event: MemoryEvent) -> Memory:
    """Decode a memory event; raises DecodeError instead of returning partial data."""
    if event.kind != KIND_APP_SPECIFIC:
        raise DecodeError(f"wrong event kind: {event.kind}, expected {KIND_APP_SPECIFIC}")

    d_tag = event.require_tag(TAG_D)
    if not d_tag.startswith(D_TAG_PREFIX):
        raise DecodeError(f"invalid d-tag: {d_tag!r}, expected prefix {D_TAG_PREFIX!r}")
    topic = d_tag[len(D_TAG_PREFIX) :]

    tier = _decode_tier(event)
    model = event.require_tag(TAG_MODEL)
    content = _decode_content(event.content)

    if not 0.0 <= content.confidence <= 1.0:
        raise DecodeError(f"out of range [0.0, 1.0]: {content.confidence}", tag="confidence")
    if content.version < 1:
        raise DecodeError(f"not a positive integer: {content.version}", tag="version")

    memory_id = event.tag_value(TAG_ID) or event.id
    if not memory_id:
        raise DecodeError(f"missing required tag: {TAG_ID}")
    if not event.pubkey:
        raise DecodeError("missing event pubkey")

    try:
        return Memory(
            id=memory_id,
            tier=tier,
            topic=topic,
            summary=content.summary,
            detail=content.detail,
            context=content.context,
            source=event.pubkey,
            model=model,
            confidence=float(content.confidence),
            supersedes=event.tag_value(TAG_SUPERSEDES),
            version=content.version,
            tags=content.tags,
            created_at=event.created_at,
        )
    except ValidationError as exc:
        raise DecodeError(f"invalid memory: {_first_error(exc)}") from exc


def memory_from_event_json(payload: Any) -> Memory:
    """Decode a raw event mapping (or JSON text) as received from a relay."""
    try:
        if isinstance(payload, (str, bytes)):
            event = MemoryEvent.model_validate_json(payload)
        else:
            event = MemoryEvent.model_validate(payload)
    except ValidationError as exc:
        raise DecodeError(f"invalid event: {_first_error(exc)}") from exc
    return memory_from_event(event)


def build_memory_event(memory: Memory, pubkey: str) -> UnsignedEvent:
    """Unsigned NIP-78 memory event authored by ``pubkey``."""
    event = memory_to_event(memory)
    return UnsignedEvent(
        pubkey=pubkey,
        created_at=event.created_at,
        kind=event.kind,
        tags=event.tags,
        content=event.content,
    )


def profile_to_metadata(profile: AgentProfile) -> str:
    """Kind-0 metadata JSON for an agent profile."""
    metadata: dict[str, Any] = {
        "name": profile.name,
        "about": profile.about,
        PROFILE_MODEL: profile.model,
        PROFILE_VERSION: profile.version,
        PROFILE_CAPABILITIES: list(profile.capabilities),
    }
    if profile.operator is not None:
        metadata[PROFILE_OPERATOR] = profile.operator
    return json.dumps(metadata)


def profile_from_metadata(raw: str) -> AgentProfile:
    """Parse kind-0 metadata JSON; ``snow:model`` is required."""
    try:
        metadata = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise DecodeError(f"invalid content: {exc}") from exc
    if not isinstance(metadata, dict):
        raise DecodeError("invalid content: expected a JSON object")

    model = metadata.get(PROFILE_MODEL)
    if not isinstance(model, str):
        raise DecodeError(f"missing required tag: {PROFILE_MODEL}")

    capabilities = metadata.get(PROFILE_CAPABILITIES)
    operator = metadata.get(PROFILE_OPERATOR)
    return AgentProfile(
        name=str(metadata.get("name") or ""),
        about=str(metadata.get("about") or ""),
        model=model,
        version=str(metadata.get(PROFILE_VERSION) or "0.0.0"),
        capabilities=[item for item in capabilities if isinstance(item, str)]
        if isinstance(capabilities, list)
        else [],
        operator=operator if isinstance(operator, str) else None,
    )


def build_profile_event(
    profile: AgentProfile, pubkey: str, created_at: int | None = None
) -> UnsignedEvent:
    """Unsigned kind-0 profile event."""
    return UnsignedEvent(
        pubkey=pubkey,
        created_at=unix_now() if created_at is None else created_at,
        kind=KIND_METADATA,
        tags=[],
        content=profile_to_metadata(profile),
    )
