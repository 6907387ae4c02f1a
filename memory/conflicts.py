"""Conflict detection and resolution for independently sourced claims."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable

from memory.ranking import rank_memories
from memory.types.claim import Conflict, Memory
from memory.types.config import MemoryConfig


class _DisjointSet:
    """Union-find over claim ids."""

    def __init__(self, ids: Iterable[str]) -> None:
        self._parent = {item: item for item in ids}

    def find(self, item: str) -> str:
        root = item
        while self._parent[root] != root:
            root = self._parent[root]
        while self._parent[item] != root:
            self._parent[item], item = root, self._parent[item]
        return root

    def union(self, a: str, b: str) -> None:
        root_a, root_b = self.find(a), self.find(b)
        if root_a != root_b:
            self._parent[max(root_a, root_b)] = min(root_a, root_b)


def _head_key(memory: Memory) -> tuple[int, int, str]:
    return (memory.version, memory.created_at, memory.id)


def collapse_chains(memories: Iterable[Memory]) -> list[Memory]:
    """Collapse supersedes chains to their most-superseding member.

    Claims linked through ``supersedes`` (transitively, within the given
    collection) form one chain; the member with the highest version, then the
    newest, then the greatest id represents it. Output keeps first-seen order
    of the chains. Duplicate ids keep their last occurrence.
    """
    by_id: dict[str, Memory] = {}
    for memory in memories:
        by_id.pop(memory.id, None)
        by_id[memory.id] = memory

    chains = _DisjointSet(by_id)
    for memory in by_id.values():
        if memory.supersedes is not None and memory.supersedes in by_id:
            chains.union(memory.id, memory.supersedes)

    heads: dict[str, Memory] = {}
    for memory in by_id.values():
        root = chains.find(memory.id)
        current = heads.get(root)
        if current is None or _head_key(memory) > _head_key(current):
            heads[root] = memory

    ordered: list[Memory] = []
    emitted: set[str] = set()
    for memory in by_id.values():
        root = chains.find(memory.id)
        if root not in emitted:
            emitted.add(root)
            ordered.append(heads[root])
    return ordered


def detect_conflicts(memories: Iterable[Memory]) -> list[Conflict]:
    """Group chain heads by topic; a topic conflicts when two or more sources disagree."""
    by_topic: dict[str, list[Memory]] = defaultdict(list)
    for memory in collapse_chains(memories):
        by_topic[memory.topic].append(memory)

    return [
        Conflict(topic=topic, memories=members)
        for topic, members in sorted(by_topic.items())
        if len({member.source for member in members}) >= 2
    ]


def resolve_conflict(conflict: Conflict, config: MemoryConfig) -> Memory | None:
    """Pick the preferred claim using ranking precedence with zero relevance."""
    if not conflict.memories:
        return None
    ranked = rank_memories(((memory, 0.0) for memory in conflict.memories), config)
    return ranked[0].memory


def winner_index(conflict: Conflict, config: MemoryConfig) -> int | None:
    """Position of the resolved winner within ``conflict.memories``."""
    winner = resolve_conflict(conflict, config)
    if winner is None:
        return None
    for position, memory in enumerate(conflict.memories):
        if memory.id == winner.id:
            return position
    return None
