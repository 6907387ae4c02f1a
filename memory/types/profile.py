"""Agent profile models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class AgentProfile(BaseModel):
    """Agent metadata published alongside its memories."""

    name: str
    about: str = ""
    model: str
    version: str = "0.0.0"
    capabilities: list[str] = Field(default_factory=list)
    operator: str | None = None
