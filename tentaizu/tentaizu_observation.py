"""Per-peer view of a match for renderers and agents."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from framework.state import Snapshot

from .tentaizu_state import Cell, Phase


@dataclass(frozen=True)
class TentaizuObservation(Snapshot):
    """What one peer can show; the solution appears only once the match ended."""

    player_id: str
    is_authority: bool
    phase: Phase
    grid_size: int
    clues: tuple[tuple[str, ...], ...]
    marks: frozenset[Cell]
    my_guesses: tuple[Cell, ...]
    guess_counts: dict[str, int]
    guesses_remaining: int
    current_player: str | None
    is_my_turn: bool
    input_enabled: bool
    turn_number: int
    remaining_seconds: float
    countdown_seconds: float
    time_spent: dict[str, float]
    move_count: int
    can_undo: bool
    can_redo: bool
    result: dict[str, Any] | None = None
    solution: frozenset[Cell] | None = None


@dataclass(frozen=True)
class ReplicatedState(Snapshot):
    """State every peer must agree on; local marks and history are excluded."""

    match_id: str
    phase: Phase
    board: dict[str, Any] | None
    players: tuple[str, ...]
    guesses: dict[str, tuple[Cell, ...]]
    turn: dict[str, Any] | None
    time_spent: dict[str, float]
    result: dict[str, Any] | None
