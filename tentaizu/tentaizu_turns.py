"""Turn ownership, deadlines and the authority's rotation policy."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Sequence

from framework.errors import MatchConfigurationError, ProtocolError

from .tentaizu_ledger import GuessLedger
from .tentaizu_state import Phase, PlayerId, TurnRecord


class TransitionReason(str, Enum):
    """Why the authority is starting a new turn."""

    FIRST_TURN = "first_turn"
    TIMEOUT = "timeout"
    QUOTA = "quota"
    END_REQUESTED = "end_requested"


@dataclass(frozen=True)
class TurnTransition:
    """A rotation the authority should broadcast; computed, never applied here."""

    reason: TransitionReason
    outgoing: PlayerId | None
    incoming: PlayerId
    elapsed: float
    record: TurnRecord
    time_spent: dict[PlayerId, float] = field(default_factory=dict)


def choose_first_player(players: Sequence[PlayerId], rng: random.Random) -> PlayerId:
    """Unbiased coin flip between the two session members."""
    if len(players) != 2:
        raise MatchConfigurationError(f"Exactly two players are required, got {len(players)}.")
    return players[rng.randrange(2)]


def validate_players(players: Sequence[PlayerId]) -> tuple[PlayerId, PlayerId]:
    if len(players) != 2 or players[0] == players[1]:
        raise MatchConfigurationError(f"A match needs exactly two distinct players, got {list(players)!r}.")
    return players[0], players[1]


class TurnStateMachine:
    """Holds the single active turn record and the time-spent ledger.

    Every peer applies records through `begin`, `apply_turn` and `end`. Only
    the authority calls `tick`, which evaluates the rotation triggers
    without mutating anything.
    """

    def __init__(self, turn_duration: float):
        if turn_duration <= 0:
            raise MatchConfigurationError("turn_duration must be > 0.")
        self.turn_duration = float(turn_duration)
        self.phase = Phase.IDLE
        self.players: tuple[PlayerId, PlayerId] | None = None
        self.first_player: PlayerId | None = None
        self.start_time: float | None = None
        self.record: TurnRecord | None = None
        self._time_spent: dict[PlayerId, float] = {}
        self._pending_turn: int | None = None

    def reset(self) -> None:
        self.phase = Phase.IDLE
        self.players = None
        self.first_player = None
        self.start_time = None
        self.record = None
        self._time_spent = {}
        self._pending_turn = None

    def begin(self, players: Sequence[PlayerId], first_player: PlayerId, start_time: float) -> None:
        """Enter the pre-match countdown."""
        if len(players) != 2 or players[0] == players[1]:
            raise ProtocolError(f"A match needs exactly two distinct players, got {list(players)!r}.")
        pair = (players[0], players[1])
        if first_player not in pair:
            raise ProtocolError(f"First player {first_player!r} is not in the session.")
        self.reset()
        self.players = pair
        self.first_player = first_player
        self.start_time = float(start_time)
        self._time_spent = {player_id: 0.0 for player_id in pair}
        self.phase = Phase.COUNTDOWN

    def apply_turn(self, record: TurnRecord, time_spent: Mapping[PlayerId, float]) -> None:
        """Replace the active turn record with one computed by the authority."""
        if self.phase not in (Phase.COUNTDOWN, Phase.TURN_ACTIVE) or self.players is None:
            raise ProtocolError(f"Cannot start a turn in phase {self.phase.value}.")
        if record.player_id not in self.players:
            raise ProtocolError(f"Turn owner {record.player_id!r} is not in the session.")
        current_number = self.record.turn_number if self.record is not None else 0
        if record.turn_number <= current_number:
            raise ProtocolError(f"Stale turn {record.turn_number}; current turn is {current_number}.")
        self._apply_time_spent(time_spent)
        self.record = record
        self.phase = Phase.TURN_ACTIVE
        if self._pending_turn is not None and record.turn_number >= self._pending_turn:
            self._pending_turn = None

    def end(self, time_spent: Mapping[PlayerId, float] | None = None) -> None:
        if time_spent is not None:
            self._apply_time_spent(time_spent)
        self.phase = Phase.MATCH_ENDED
        self._pending_turn = None

    def _apply_time_spent(self, time_spent: Mapping[PlayerId, float]) -> None:
        updated = dict(self._time_spent)
        for player_id, seconds in time_spent.items():
            if self.players is not None and player_id not in self.players:
                raise ProtocolError(f"Time spent reported for unknown player {player_id!r}.")
            value = float(seconds)
            if value < 0 or value < self._time_spent.get(player_id, 0.0):
                raise ProtocolError(f"Time spent for {player_id!r} cannot decrease or be negative.")
            updated[player_id] = value
        self._time_spent = updated

    # Authority-side evaluation

    def mark_pending(self, turn_number: int) -> None:
        """Suppress further transitions until `turn_number` has been delivered back."""
        self._pending_turn = turn_number

    @property
    def pending(self) -> bool:
        return self._pending_turn is not None

    def tick(self, now: float, ledger: GuessLedger) -> TurnTransition | None:
        """Return the transition due at `now`, if any."""
        if self._pending_turn is not None:
            return None
        if self.phase is Phase.COUNTDOWN:
            if self.first_player is None or self.start_time is None or now < self.start_time:
                return None
            return TurnTransition(
                reason=TransitionReason.FIRST_TURN,
                outgoing=None,
                incoming=self.first_player,
                elapsed=0.0,
                record=TurnRecord(self.first_player, now, self.turn_duration, 1),
                time_spent=self.time_spent,
            )
        if self.phase is not Phase.TURN_ACTIVE or self.record is None:
            return None
        if now - self.record.start_time >= self.record.duration:
            return self.close_turn(now, TransitionReason.TIMEOUT)
        if ledger.quota_exhausted(self.record.player_id):
            return self.close_turn(now, TransitionReason.QUOTA)
        return None

    def close_turn(self, now: float, reason: TransitionReason) -> TurnTransition:
        """Build the rotation away from the current owner at `now`."""
        if self.record is None:
            raise ProtocolError("No active turn to close.")
        outgoing = self.record.player_id
        elapsed = self.record.elapsed(now)
        time_spent = self.time_spent
        time_spent[outgoing] = time_spent.get(outgoing, 0.0) + elapsed
        incoming = self.other_player(outgoing)
        return TurnTransition(
            reason=reason,
            outgoing=outgoing,
            incoming=incoming,
            elapsed=elapsed,
            record=TurnRecord(incoming, now, self.turn_duration, self.record.turn_number + 1),
            time_spent=time_spent,
        )

    # Queries

    def other_player(self, player_id: PlayerId) -> PlayerId:
        if self.players is None or player_id not in self.players:
            raise ProtocolError(f"Unknown player {player_id!r}.")
        first, second = self.players
        return second if player_id == first else first

    def current_player(self) -> PlayerId | None:
        if self.phase is not Phase.TURN_ACTIVE or self.record is None:
            return None
        return self.record.player_id

    def is_turn_owner(self, player_id: PlayerId) -> bool:
        return self.current_player() == player_id

    def remaining(self, now: float) -> float:
        if self.phase is not Phase.TURN_ACTIVE or self.record is None:
            return 0.0
        return self.record.remaining(now)

    def countdown_remaining(self, now: float) -> float:
        if self.phase is not Phase.COUNTDOWN or self.start_time is None:
            return 0.0
        return max(0.0, self.start_time - now)

    @property
    def turn_number(self) -> int:
        return self.record.turn_number if self.record is not None else 0

    @property
    def time_spent(self) -> dict[PlayerId, float]:
        return dict(self._time_spent)
