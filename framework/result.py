"""Match result models and termination metadata."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Self

from .serialize import to_serializable


class TerminationReason(str, Enum):
    """Standardized reasons for match termination."""

    SOLUTION_FOUND = "solution_found"
    BOARD_COMPLETED = "board_completed"
    GUESSES_EXHAUSTED = "guesses_exhausted"


@dataclass(frozen=True)
class MatchResult:
    """Structured outcome for a completed match; `winner` is None on a draw."""

    match_id: str
    winner: str | None
    termination_reason: TerminationReason
    scores: dict[str, int] = field(default_factory=dict)
    time_spent: dict[str, float] = field(default_factory=dict)
    turns: int = 0
    details: str | None = None

    @property
    def is_draw(self) -> bool:
        return self.winner is None

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable result object."""
        return {
            "match_id": self.match_id,
            "winner": self.winner,
            "termination_reason": self.termination_reason.value,
            "scores": to_serializable(self.scores),
            "time_spent": to_serializable(self.time_spent),
            "turns": self.turns,
            "details": self.details,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Build result from serialized data."""
        winner = data.get("winner")
        return cls(
            match_id=str(data["match_id"]),
            winner=None if winner is None else str(winner),
            termination_reason=TerminationReason(str(data["termination_reason"])),
            scores={str(key): int(value) for key, value in dict(data.get("scores", {})).items()},
            time_spent={str(key): float(value) for key, value in dict(data.get("time_spent", {})).items()},
            turns=int(data.get("turns", 0)),
            details=data.get("details"),
        )
