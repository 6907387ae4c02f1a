"""Configuration loading and runtime path bootstrapping."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

DEFAULT_DB_PATH = "workspace/memory.db"


def load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML from file, returning empty mapping when missing."""
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as fh:
        try:
            data = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


def merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge dictionaries."""
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def ensure_runtime_dirs(root: Path, config: dict[str, Any]) -> dict[str, Path]:
    """Ensure the database directory exists and return resolved paths."""
    paths_cfg = config.get("paths", {})
    db_path = (root / paths_cfg.get("db_path", DEFAULT_DB_PATH)).resolve()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return {"db_path": db_path}


def load_effective_config(root: Path) -> dict[str, Any]:
    """Load runtime settings with the memory document under ``memory``."""
    config_dir = root / "config"
    default_cfg = load_yaml(config_dir / "default.yaml")
    memory_cfg = load_yaml(config_dir / "memory.yaml")
    return merge_dicts(default_cfg, {"memory": memory_cfg})
