"""Error taxonomy for the collective memory engine."""

from __future__ import annotations


class MemoryEngineError(Exception):
    """Base class for engine errors."""


class StorageError(MemoryEngineError):
    """Storage-layer fault (I/O, corruption, schema mismatch)."""


class DecodeError(MemoryEngineError, ValueError):
    """Transport event could not be converted to a claim."""

    def __init__(self, reason: str, tag: str | None = None) -> None:
        self.reason = reason
        self.tag = tag
        message = f"invalid tag '{tag}': {reason}" if tag else reason
        super().__init__(message)


class InvalidMemoryError(MemoryEngineError, ValueError):
    """Claim violates an index invariant (supersedes chain integrity)."""


class QueryError(MemoryEngineError, ValueError):
    """Malformed query or binding input."""
