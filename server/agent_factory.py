"""Factory for building automated seats from session player configuration."""

from __future__ import annotations

from typing import Any

from framework.agents.random_agent import RandomAgent
from framework.player import Agent

HUMAN_PLAYER_TYPE = "human"
RANDOM_PLAYER_TYPE = "random"
SUPPORTED_PLAYER_TYPES = {HUMAN_PLAYER_TYPE, RANDOM_PLAYER_TYPE}


def normalize_player_config(raw: Any) -> dict[str, Any]:
    """Normalize a player configuration into a typed dictionary."""
    if isinstance(raw, str):
        data: dict[str, Any] = {"type": raw.strip().lower()}
    elif isinstance(raw, dict):
        data = dict(raw)
        data["type"] = str(data.get("type", RANDOM_PLAYER_TYPE)).strip().lower()
    else:
        data = {"type": RANDOM_PLAYER_TYPE}
    if data["type"] not in SUPPORTED_PLAYER_TYPES:
        raise ValueError(f"Unsupported player type {data['type']!r}; expected one of {sorted(SUPPORTED_PLAYER_TYPES)}.")
    return data


def player_label(config: dict[str, Any]) -> str:
    """Return a short label shown next to each seat."""
    player_type = str(config.get("type", RANDOM_PLAYER_TYPE)).lower()
    if player_type == RANDOM_PLAYER_TYPE and config.get("pass_probability"):
        return f"{player_type}:{float(config['pass_probability']):.2f}"
    return player_type


def create_agent_for_player(*, player_id: str, config: dict[str, Any]) -> Agent | None:
    """Instantiate the agent for one seat; human seats return None."""
    player_type = str(config.get("type", RANDOM_PLAYER_TYPE)).lower()
    if player_type == HUMAN_PLAYER_TYPE:
        return None
    if player_type == RANDOM_PLAYER_TYPE:
        return RandomAgent(
            agent_id=f"random-{player_id.lower()}",
            pass_probability=float(config.get("pass_probability", 0.0)),
        )
    raise ValueError(f"Unsupported player type: {player_type!r}")
