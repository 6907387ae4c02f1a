"""Configuration layering and runtime wiring tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from core.orchestrator import Orchestrator
from core.policy_runtime import ensure_runtime_dirs, load_effective_config, load_yaml, merge_dicts
from memory.types import MemoryConfig

REPO_ROOT = Path(__file__).resolve().parents[1]


def write_config(root: Path, default: str, memory: str | None = None) -> None:
    config_dir = root / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "default.yaml").write_text(default, encoding="utf-8")
    if memory is not None:
        (config_dir / "memory.yaml").write_text(memory, encoding="utf-8")


def test_load_yaml_missing_file(tmp_path: Path) -> None:
    assert load_yaml(tmp_path / "missing.yaml") == {}


def test_load_yaml_rejects_non_mapping(tmp_path: Path) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_yaml(path)


def test_load_yaml_reports_syntax_errors(tmp_path: Path) -> None:
    path = tmp_path / "broken.yaml"
    path.write_text("paths: [unclosed\n", encoding="utf-8")
    with pytest.raises(ValueError, match="Invalid YAML"):
        load_yaml(path)


def test_merge_dicts_is_recursive() -> None:
    merged = merge_dicts({"a": {"x": 1, "y": 2}, "b": 1}, {"a": {"y": 3}, "c": 4})
    assert merged == {"a": {"x": 1, "y": 3}, "b": 1, "c": 4}


def test_effective_config_nests_memory_document(tmp_path: Path) -> None:
    write_config(tmp_path, "cache:\n  ttl_secs: 60\n", "tier1:\n  - custom/model\n")
    config = load_effective_config(tmp_path)
    assert config["cache"]["ttl_secs"] == 60
    assert config["memory"] == {"tier1": ["custom/model"]}


def test_ensure_runtime_dirs_creates_db_parent(tmp_path: Path) -> None:
    paths = ensure_runtime_dirs(tmp_path, {"paths": {"db_path": "data/nested/memory.db"}})
    assert paths["db_path"] == (tmp_path / "data/nested/memory.db").resolve()
    assert paths["db_path"].parent.is_dir()


def test_shipped_config_matches_builtin_tiers() -> None:
    config = load_effective_config(REPO_ROOT)
    assert MemoryConfig.from_document(config["memory"]) == MemoryConfig.default()
    assert config["cache"]["ttl_secs"] > 0


def test_orchestrator_builds_runtime(tmp_path: Path) -> None:
    write_config(
        tmp_path,
        "paths:\n  db_path: state/memory.db\ncache:\n  ttl_secs: 120\nsearch:\n  default_limit: 7\n",
    )
    bundle = Orchestrator(root=tmp_path).build()
    assert bundle.cache.ttl_secs == 120
    assert bundle.default_limit == 7
    assert bundle.memory_config == MemoryConfig()
    assert bundle.index.count() == 0
    assert (tmp_path / "state" / "memory.db").exists()


def test_orchestrator_root_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CM_HOME", str(tmp_path))
    assert Orchestrator().root == tmp_path.resolve()
