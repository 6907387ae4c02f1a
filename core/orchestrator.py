"""Top-level runtime wiring."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from core.policy_runtime import ensure_runtime_dirs, load_effective_config
from memory.stores.cache import DEFAULT_TTL_SECS, MemoryCache
from memory.stores.sql_index import SqlMemoryIndex
from memory.types.config import MemoryConfig

HOME_ENV = "CM_HOME"


@dataclass
class RuntimeBundle:
    """Holds initialized runtime components."""

    config: dict[str, Any]
    memory_config: MemoryConfig
    index: SqlMemoryIndex
    cache: MemoryCache

    @property
    def default_limit(self) -> int:
        return int(self.config.get("search", {}).get("default_limit", 10))


class Orchestrator:
    """Creates and wires runtime components for CLI use."""

    def __init__(self, root: Path | None = None) -> None:
        default_root = Path(__file__).resolve().parents[1]
        env_root = os.environ.get(HOME_ENV)
        self.root = (root or (Path(env_root) if env_root else default_root)).resolve()

    def build(self) -> RuntimeBundle:
        config = load_effective_config(self.root)
        paths = ensure_runtime_dirs(self.root, config)

        memory_config = MemoryConfig.from_document(config.get("memory"))
        index = SqlMemoryIndex.open(paths["db_path"])
        ttl_secs = int(config.get("cache", {}).get("ttl_secs", DEFAULT_TTL_SECS))
        cache = MemoryCache(index, ttl_secs=ttl_secs)

        return RuntimeBundle(
            config=config,
            memory_config=memory_config,
            index=index,
            cache=cache,
        )
