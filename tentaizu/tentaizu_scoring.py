"""Score comparison used when no player solved the board alone."""

from __future__ import annotations

from typing import Mapping, Sequence

from .tentaizu_ledger import GuessLedger
from .tentaizu_state import PlayerId


def scores(ledger: GuessLedger, players: Sequence[PlayerId]) -> dict[PlayerId, int]:
    """Correct cells per player."""
    return {player_id: ledger.correct_count(player_id) for player_id in players}


def decide_by_score(
    players: Sequence[PlayerId],
    correct: Mapping[PlayerId, int],
    time_spent: Mapping[PlayerId, float],
) -> PlayerId | None:
    """More correct cells wins; then less cumulative time; otherwise a draw."""
    first, second = players
    first_score = correct.get(first, 0)
    second_score = correct.get(second, 0)
    if first_score != second_score:
        return first if first_score > second_score else second

    first_time = time_spent.get(first, 0.0)
    second_time = time_spent.get(second, 0.0)
    if first_time != second_time:
        return first if first_time < second_time else second
    return None
