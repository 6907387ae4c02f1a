"""Typed memory payload models."""

from memory.types.claim import Conflict, Memory, MemoryTier, SearchResult
from memory.types.config import MemoryConfig, ModelMatcher, SourcePreference
from memory.types.profile import AgentProfile

__all__ = [
    "AgentProfile",
    "Conflict",
    "Memory",
    "MemoryConfig",
    "MemoryTier",
    "ModelMatcher",
    "SearchResult",
    "SourcePreference",
]
