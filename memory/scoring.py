"""Scoring helpers for memory ranking."""

from __future__ import annotations

from collections.abc import Sequence

from memory.types.claim import Memory
from memory.types.config import MemoryConfig, SourcePreference

# Trust applied when no source preference matches.
DEFAULT_TRUST = 0.5

UNRANKED_TIER = 5
TIER_WEIGHTS = {1: 1.0, 2: 0.8, 3: 0.6, 4: 0.4, UNRANKED_TIER: 0.2}

TRUST_WEIGHT = 100.0
TIER_WEIGHT = 10.0
RELEVANCE_WEIGHT = 1.0


def source_trust(memory: Memory, sources: Sequence[SourcePreference]) -> float:
    """Trust of the first matching preference, else the neutral default."""
    for preference in sources:
        if preference.matches(memory):
            return preference.trust
    return DEFAULT_TRUST


def model_tier(model: str, config: MemoryConfig) -> int:
    """Capability tier 1-4 for a model name, or UNRANKED_TIER."""
    for number, matchers in config.tiers():
        if any(matcher.matches(model) for matcher in matchers):
            return number
    return UNRANKED_TIER


def tier_weight(tier: int) -> float:
    return TIER_WEIGHTS.get(tier, TIER_WEIGHTS[UNRANKED_TIER])


def final_score(trust: float, tier: int, relevance: float) -> float:
    """Weighted composite reported with ranked results."""
    return TRUST_WEIGHT * trust + TIER_WEIGHT * tier_weight(tier) + RELEVANCE_WEIGHT * relevance
