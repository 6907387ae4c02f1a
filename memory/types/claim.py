"""Claim models: tiers, memories, ranked results and conflicts."""

from __future__ import annotations

import time
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from memory.errors import QueryError

PUBLIC_LABEL = "public"
GROUP_LABEL = "group"


def unix_now() -> int:
    """Return current unix time in whole seconds."""
    return int(time.time())


class MemoryTier(BaseModel):
    """Visibility scope of a claim: Public or Group(name)."""

    model_config = ConfigDict(frozen=True)

    type: Literal["Public", "Group"]
    value: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _accept_label(cls, data: Any) -> Any:
        if isinstance(data, str):
            return cls._label_to_dict(data)
        return data

    @model_validator(mode="after")
    def _check_group_name(self) -> MemoryTier:
        if self.type == "Group" and not self.value:
            raise ValueError("group tier requires a group name")
        if self.type == "Public" and self.value is not None:
            raise ValueError("public tier takes no value")
        return self

    @staticmethod
    def _label_to_dict(label: str) -> dict[str, Any]:
        if label == PUBLIC_LABEL:
            return {"type": "Public"}
        prefix = f"{GROUP_LABEL}:"
        if label.startswith(prefix) and len(label) > len(prefix):
            return {"type": "Group", "value": label[len(prefix) :]}
        raise ValueError(f"unknown tier label: {label!r}")

    @classmethod
    def public(cls) -> MemoryTier:
        return cls(type="Public")

    @classmethod
    def group(cls, name: str) -> MemoryTier:
        return cls(type="Group", value=name)

    @classmethod
    def parse(cls, label: str) -> MemoryTier:
        """Parse a storage label such as ``public`` or ``group:dev-team``."""
        return cls.model_validate(cls._label_to_dict(label))

    @property
    def is_group(self) -> bool:
        return self.type == "Group"

    @property
    def group_name(self) -> str | None:
        return self.value if self.is_group else None

    def as_tag_value(self) -> str:
        """Filterable wire value: ``public`` or ``group``."""
        return GROUP_LABEL if self.is_group else PUBLIC_LABEL

    def label(self) -> str:
        return f"{GROUP_LABEL}:{self.value}" if self.is_group else PUBLIC_LABEL

    def matches_filter(self, tier_filter: str | None) -> bool:
        """Check visibility under a ``public``/``group``/``group:<name>`` filter."""
        tier_filter = normalize_tier_filter(tier_filter)
        if tier_filter is None:
            return True
        if tier_filter == PUBLIC_LABEL:
            return not self.is_group
        if tier_filter == GROUP_LABEL:
            return self.is_group
        return self.label() == tier_filter

    def __str__(self) -> str:
        return self.label()


def normalize_tier_filter(tier_filter: str | None) -> str | None:
    """Validate a tier filter; raises QueryError for unknown filters."""
    if tier_filter is None:
        return None
    value = tier_filter.strip()
    if value.lower() in {PUBLIC_LABEL, GROUP_LABEL}:
        return value.lower()
    if value.startswith(f"{GROUP_LABEL}:") and len(value) > len(GROUP_LABEL) + 1:
        return value
    raise QueryError(f"unknown tier filter: {tier_filter!r}")


class Memory(BaseModel):
    """A single claim contributed by an agent."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    tier: MemoryTier = Field(default_factory=MemoryTier.public)
    topic: str
    summary: str
    detail: str = ""
    context: str | None = None
    source: str
    model: str = ""
    confidence: float = Field(ge=0.0, le=1.0)
    supersedes: str | None = None
    version: int = Field(default=1, ge=1)
    tags: list[str] = Field(default_factory=list)
    created_at: int = Field(default_factory=unix_now, ge=0)

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, tags: list[str]) -> list[str]:
        return list(dict.fromkeys(tags))

    @model_validator(mode="after")
    def _check_supersedes(self) -> Memory:
        if self.supersedes is not None and self.supersedes == self.id:
            raise ValueError("a memory cannot supersede itself")
        return self

    def to_json_dict(self) -> dict[str, Any]:
        """JSON-ready mapping without unset optional fields."""
        return self.model_dump(mode="json", exclude_none=True)


class SearchResult(BaseModel):
    """Claim with its scoring breakdown and final rank position."""

    memory: Memory
    relevance: float
    source_trust: float
    model_tier: int
    effective_score: float
    rank: int = 0
    superseded: bool = False


class Conflict(BaseModel):
    """Independent claims on the same topic."""

    topic: str
    memories: list[Memory] = Field(default_factory=list)
