"""Agent interface for automated seats driven by a simulation loop."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Sequence

from .events import MatchEvent
from .move import Move
from .result import MatchResult


class Agent(ABC):
    """Base interface for scripted or random players.

    Agents never touch replicated state; they return an intent which the
    driving loop hands to the seat's match coordinator.
    """

    def __init__(self, agent_id: str):
        self.agent_id = agent_id

    def reset(self, match_id: str, player_id: str, seed: int, config: dict[str, Any] | None) -> None:
        """Reset internal state before a new match."""

    @abstractmethod
    def act(self, observation: Any, legal_moves: Sequence[Move]) -> Move | None:
        """Return the next intent, or None to pass this tick."""

    def on_match_end(self, result: MatchResult, history: Sequence[MatchEvent]) -> None:
        """Optional callback invoked when the match ends."""
