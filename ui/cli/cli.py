"""CLI entrypoint for collective-memory."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from ui.cli import commands

app = typer.Typer(help="Collective memory engine for AI agents")
memory_app = typer.Typer(help="Memory commands")
config_app = typer.Typer(help="Configuration commands")


@app.callback()
def main_callback() -> None:
    commands.configure_logging()


@memory_app.command("add")
def memory_add_cmd(
    topic: str = typer.Argument(..., help="Topic the claim is about"),
    summary: str = typer.Argument(..., help="One-line claim summary"),
    source: str = typer.Option(..., "--source", help="Contributor public key"),
    detail: str = typer.Option("", help="Longer claim body"),
    context: Optional[str] = typer.Option(None, help="Where the claim came from"),
    model: str = typer.Option("", help="Model that produced the claim"),
    confidence: float = typer.Option(1.0, min=0.0, max=1.0),
    tier: str = typer.Option("public", help="public or group:<name>"),
    supersedes: Optional[str] = typer.Option(None, help="Id of the claim this replaces"),
    version: int = typer.Option(1, min=1),
    tag: list[str] = typer.Option([], "--tag", help="Tag, repeatable"),
    memory_id: Optional[str] = typer.Option(None, "--id", help="Claim id (random when omitted)"),
) -> None:
    """Store a locally authored claim."""
    commands.memory_add(
        topic=topic,
        summary=summary,
        source=source,
        detail=detail,
        context=context,
        model=model,
        confidence=confidence,
        tier=tier,
        supersedes=supersedes,
        version=version,
        tags=tag,
        memory_id=memory_id,
    )


@memory_app.command("get")
def memory_get_cmd(memory_id: str = typer.Argument(..., help="Claim id")) -> None:
    """Show one claim by id."""
    commands.memory_get(memory_id=memory_id)


@memory_app.command("search")
def memory_search_cmd(
    query: str = typer.Argument(..., help="Free-text query"),
    tier: Optional[str] = typer.Option(None, help="public, group or group:<name>"),
    limit: Optional[int] = typer.Option(None, min=1, max=100),
    ranked: bool = typer.Option(False, "--ranked", help="Order by trust and model tier"),
) -> None:
    """Search stored claims."""
    commands.memory_search(query=query, tier=tier, limit=limit, ranked=ranked)


@memory_app.command("ingest")
def memory_ingest_cmd(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Event JSON file"),
) -> None:
    """Cache memory events received from a relay."""
    commands.memory_ingest(path=path)


@memory_app.command("conflicts")
def memory_conflicts_cmd(
    topic: Optional[str] = typer.Option(None, help="Only this topic"),
    resolve: bool = typer.Option(False, "--resolve", help="Report the preferred claim"),
) -> None:
    """List topics with independent competing claims."""
    commands.memory_conflicts(topic=topic, resolve=resolve)


@memory_app.command("evict")
def memory_evict_cmd(
    ttl: Optional[int] = typer.Option(None, min=0, help="Override cache.ttl_secs"),
    include_local: bool = typer.Option(False, "--all", help="Also evict local claims"),
) -> None:
    """Evict stale cached claims."""
    commands.memory_evict(ttl=ttl, include_local=include_local)


@memory_app.command("count")
def memory_count_cmd() -> None:
    """Number of stored claims."""
    commands.memory_count()


@config_app.command("show")
def config_show_cmd() -> None:
    """Show effective configuration."""
    commands.config_show()


app.add_typer(memory_app, name="memory")
app.add_typer(config_app, name="config")


def main() -> None:
    """Console script entrypoint."""
    app()


if __name__ == "__main__":
    main()
