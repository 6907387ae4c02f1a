"""CLI smoke tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from memory.event import memory_to_event
from memory.types import Memory
from ui.cli.cli import app

runner = CliRunner()


@pytest.fixture
def cm_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "default.yaml").write_text(
        "paths:\n  db_path: workspace/memory.db\ncache:\n  ttl_secs: 3600\n", encoding="utf-8"
    )
    (config_dir / "memory.yaml").write_text("tier1:\n  - openai/o3\n", encoding="utf-8")
    monkeypatch.setenv("CM_HOME", str(tmp_path))
    return tmp_path


def add(*args: str) -> dict[str, object]:
    result = runner.invoke(app, ["memory", "add", *args])
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


def test_add_get_and_count(cm_home: Path) -> None:
    created = add("nostr/nip44", "NIP-44 uses XChaCha20", "--source", "npub_alice", "--id", "m1", "--tag", "crypto")
    assert created["id"] == "m1"
    assert created["tags"] == ["crypto"]

    fetched = runner.invoke(app, ["memory", "get", "m1"])
    assert fetched.exit_code == 0
    assert json.loads(fetched.stdout)["summary"] == "NIP-44 uses XChaCha20"

    counted = runner.invoke(app, ["memory", "count"])
    assert json.loads(counted.stdout) == {"count": 1}


def test_get_missing_fails(cm_home: Path) -> None:
    result = runner.invoke(app, ["memory", "get", "nope"])
    assert result.exit_code == 1


@pytest.mark.parametrize("body", ["- not\n- a mapping\n", "paths: [unclosed\n"])
def test_malformed_config_exits_with_error(cm_home: Path, body: str) -> None:
    (cm_home / "config" / "default.yaml").write_text(body, encoding="utf-8")
    result = runner.invoke(app, ["config", "show"])
    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    assert "error:" in result.output


def test_search_ranked_and_tier_filter(cm_home: Path) -> None:
    add("relays", "damus relay is fast", "--source", "npub_a", "--id", "weak", "--model", "x/y")
    add("relays", "damus relay is fast", "--source", "npub_b", "--id", "strong", "--model", "openai/o3")
    add("relays", "damus relay group note", "--source", "npub_c", "--id", "grp", "--tier", "group:ops")

    ranked = runner.invoke(app, ["memory", "search", "damus", "--ranked", "--tier", "public"])
    assert ranked.exit_code == 0, ranked.output
    assert [item["memory"]["id"] for item in json.loads(ranked.stdout)] == ["strong", "weak"]

    scoped = runner.invoke(app, ["memory", "search", "damus", "--tier", "group:ops"])
    assert [item["memory"]["id"] for item in json.loads(scoped.stdout)] == ["grp"]


def test_search_with_bad_tier_reports_error(cm_home: Path) -> None:
    result = runner.invoke(app, ["memory", "search", "damus", "--tier", "secret"])
    assert result.exit_code == 1


def test_supersedes_violation_reports_error(cm_home: Path) -> None:
    add("t", "first", "--source", "npub_a", "--id", "v1", "--version", "2")
    result = runner.invoke(
        app, ["memory", "add", "t", "second", "--source", "npub_a", "--id", "v2", "--supersedes", "v1"]
    )
    assert result.exit_code == 1


def test_ingest_and_evict(cm_home: Path) -> None:
    old = Memory(
        id="remote-old",
        topic="relays",
        summary="stale claim",
        source="npub_remote",
        model="openai/o3",
        confidence=0.5,
        created_at=1_000,
    )
    event_file = cm_home / "events.json"
    event_file.write_text(json.dumps([memory_to_event(old).model_dump()]), encoding="utf-8")

    ingested = runner.invoke(app, ["memory", "ingest", str(event_file)])
    assert ingested.exit_code == 0, ingested.output
    assert json.loads(ingested.stdout)["ingested"] == ["remote-old"]

    add("relays", "local claim", "--source", "npub_me", "--id", "local")
    evicted = runner.invoke(app, ["memory", "evict"])
    assert json.loads(evicted.stdout) == {"evicted": 1, "count": 1}


def test_conflicts_with_resolution(cm_home: Path) -> None:
    add("nostr/nip44", "uses XChaCha20", "--source", "npub_a", "--id", "a", "--model", "openai/o3")
    add("nostr/nip44", "uses AES", "--source", "npub_b", "--id", "b")

    result = runner.invoke(app, ["memory", "conflicts", "--resolve"])
    assert result.exit_code == 0, result.output
    conflicts = json.loads(result.stdout)
    assert len(conflicts) == 1
    assert conflicts[0]["winner"] == "a"


def test_config_show(cm_home: Path) -> None:
    result = runner.invoke(app, ["config", "show"])
    assert result.exit_code == 0
    config = json.loads(result.stdout)
    assert config["cache"]["ttl_secs"] == 3600
    assert config["memory"]["tier1"] == ["openai/o3"]
