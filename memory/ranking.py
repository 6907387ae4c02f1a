"""Trust and tier aware ranking of memory claims.

Ordering precedence, strongest first:

1. a claim whose superseding version is in the same set sorts after it
2. source trust (higher first)
3. model capability tier (tier 1 first, unranked last)
4. textual relevance (higher first)
5. recency, ``created_at`` (newer first)
6. claim id (ascending), so the order is total and deterministic

The functions here only take and return value types, so they can be shared by
every store implementation and by the JSON binding surface.
"""

from __future__ import annotations

from collections.abc import Iterable

from memory.scoring import final_score, model_tier, source_trust
from memory.types.claim import Memory, SearchResult
from memory.types.config import MemoryConfig


def superseded_ids(memories: Iterable[Memory]) -> set[str]:
    """Ids referenced as ``supersedes`` by some claim in the collection."""
    return {memory.supersedes for memory in memories if memory.supersedes is not None}


def rank_memories(
    memories: Iterable[tuple[Memory, float]],
    config: MemoryConfig,
) -> list[SearchResult]:
    """Rank ``(memory, relevance)`` pairs into ordered search results."""
    pairs = list(memories)
    replaced = superseded_ids(memory for memory, _ in pairs)

    results: list[SearchResult] = []
    for memory, relevance in pairs:
        trust = source_trust(memory, config.sources)
        tier = model_tier(memory.model, config)
        results.append(
            SearchResult(
                memory=memory,
                relevance=relevance,
                source_trust=trust,
                model_tier=tier,
                effective_score=final_score(trust, tier, relevance),
                superseded=memory.id in replaced,
            )
        )

    results.sort(
        key=lambda result: (
            result.superseded,
            -result.source_trust,
            result.model_tier,
            -result.relevance,
            -result.memory.created_at,
            result.memory.id,
        )
    )
    for position, result in enumerate(results, start=1):
        result.rank = position
    return results
