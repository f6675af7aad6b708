"""Pydantic request schemas for the local match API."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


PlayerType = Literal["human", "random"]


class CreateMatchRequest(BaseModel):
    """Request body for creating a new match session."""

    seed: int | None = None
    config: dict[str, Any] = Field(default_factory=dict)
    players: dict[str, PlayerType | dict[str, Any]] = Field(default_factory=dict)
    human_player_id: str | None = None
    viewer_player_id: str | None = None


class SubmitMoveRequest(BaseModel):
    """Request body for submitting a local intent on behalf of a human seat."""

    player_id: str
    move: dict[str, Any]


class AdvanceRequest(BaseModel):
    """Request body for moving the simulated match clock forward."""

    seconds: float = Field(default=1.0, ge=0.0, le=3600.0)
    step: float | None = Field(default=None, gt=0.0)
