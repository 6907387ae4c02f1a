"""Trust and model-tier configuration models."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator

from memory.types.claim import Memory

WILDCARD = "*"


class SourcePreference(BaseModel):
    """Trust weight for one contributor (npub) or one group."""

    npub: str | None = None
    group: str | None = None
    trust: float = Field(ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _exactly_one_target(self) -> SourcePreference:
        if (self.npub is None) == (self.group is None):
            raise ValueError("source preference needs exactly one of npub or group")
        return self

    @classmethod
    def for_npub(cls, npub: str, trust: float) -> SourcePreference:
        return cls(npub=npub, trust=trust)

    @classmethod
    def for_group(cls, group: str, trust: float) -> SourcePreference:
        return cls(group=group, trust=trust)

    def matches(self, memory: Memory) -> bool:
        """Exact match on contributor, or on group name for group-scoped claims."""
        if self.npub is not None:
            return self.npub == memory.source
        return memory.tier.group_name == self.group


@dataclass(frozen=True)
class ModelMatcher:
    """Exact model name, or a prefix when the pattern ends in a single ``*``."""

    pattern: str

    @property
    def is_prefix(self) -> bool:
        return self.pattern.endswith(WILDCARD)

    def matches(self, model: str) -> bool:
        if self.is_prefix:
            return model.startswith(self.pattern[:-1])
        return model == self.pattern


class MemoryConfig(BaseModel):
    """Source trust list, model capability tiers and relay endpoints.

    Parsing a document never fills in built-in tiers: an absent field is an
    empty list. Use ``MemoryConfig.default()`` for the built-in tier lists.
    """

    sources: list[SourcePreference] = Field(default_factory=list)
    tier1: list[str] = Field(default_factory=list)
    tier2: list[str] = Field(default_factory=list)
    tier3: list[str] = Field(default_factory=list)
    tier4: list[str] = Field(default_factory=list)
    relays_public: list[str] = Field(default_factory=list)
    relays_group: list[str] = Field(default_factory=list)

    @classmethod
    def default(cls) -> MemoryConfig:
        """Built-in model tiers with no trusted sources and no relays."""
        return cls(
            tier1=[
                "anthropic/claude-opus-4",
                "anthropic/claude-opus-4-6",
                "openai/o3",
                "openai/gpt-5",
            ],
            tier2=[
                "anthropic/claude-sonnet-4",
                "anthropic/claude-sonnet-4-6",
                "openai/gpt-4.1",
                "google/gemini-2.5-pro",
            ],
            tier3=["anthropic/claude-haiku", "openai/gpt-4.1-mini"],
            tier4=["meta/llama-*", "mistral/*", "local/*"],
        )

    @classmethod
    def from_document(cls, data: dict[str, Any] | None) -> MemoryConfig:
        """Build from a parsed mapping; ``None`` is an empty document."""
        return cls.model_validate(data or {})

    @classmethod
    def from_yaml(cls, text: str) -> MemoryConfig:
        data = yaml.safe_load(text) or {}
        if not isinstance(data, dict):
            raise ValueError("memory configuration must be a mapping")
        return cls.from_document(data)

    @classmethod
    def load(cls, path: Path) -> MemoryConfig:
        """Load from a YAML file; a missing file is an empty document."""
        if not path.exists():
            return cls.from_document(None)
        with path.open("r", encoding="utf-8") as fh:
            return cls.from_yaml(fh.read())

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_document(), sort_keys=False)

    def tiers(self) -> list[tuple[int, list[ModelMatcher]]]:
        """Tier number and matchers, highest capability first."""
        return [
            (number, [ModelMatcher(pattern) for pattern in patterns])
            for number, patterns in enumerate(
                (self.tier1, self.tier2, self.tier3, self.tier4), start=1
            )
        ]
