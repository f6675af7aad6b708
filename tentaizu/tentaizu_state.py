"""Value types and enums for Tentaizu matches."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator, Mapping, Sequence

from framework.errors import ProtocolError

PlayerId = str


def is_index(value: Any) -> bool:
    """True for plain ints; bools and floats are not board coordinates."""
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True, order=True)
class Cell:
    """Board coordinate, 0-indexed."""

    row: int
    col: int

    def in_bounds(self, grid_size: int) -> bool:
        if not (is_index(self.row) and is_index(self.col)):
            return False
        return 0 <= self.row < grid_size and 0 <= self.col < grid_size

    def neighbors(self, grid_size: int) -> Iterator["Cell"]:
        """Yield the up-to-8 surrounding cells that lie on the board."""
        for dr in (-1, 0, 1):
            for dc in (-1, 0, 1):
                if dr == 0 and dc == 0:
                    continue
                neighbor = Cell(self.row + dr, self.col + dc)
                if neighbor.in_bounds(grid_size):
                    yield neighbor

    def to_dict(self) -> list[int]:
        return [self.row, self.col]

    @classmethod
    def from_value(cls, value: Any) -> "Cell":
        """Parse `[row, col]`, `(row, col)` or `{"row": .., "col": ..}`."""
        try:
            if isinstance(value, Mapping):
                return cls(int(value["row"]), int(value["col"]))
            if isinstance(value, Sequence) and not isinstance(value, (str, bytes)) and len(value) == 2:
                return cls(int(value[0]), int(value[1]))
        except (KeyError, TypeError, ValueError) as exc:
            raise ProtocolError(f"Invalid cell: {value!r}") from exc
        raise ProtocolError(f"Invalid cell: {value!r}")


class ClueKind(str, Enum):
    """Whether a board position hides a star or shows a neighbour count."""

    HIDDEN = "HIDDEN"
    CLUE = "CLUE"


@dataclass(frozen=True)
class ClueValue:
    """Clue grid entry.

    `HIDDEN` marks a solution cell. `CLUE` carries the neighbour star count,
    which may be zero; zero renders exactly like a hidden cell.
    """

    kind: ClueKind
    count: int = 0

    @classmethod
    def hidden(cls) -> "ClueValue":
        return cls(ClueKind.HIDDEN, 0)

    @classmethod
    def clue(cls, count: int) -> "ClueValue":
        if not 0 <= count <= 8:
            raise ValueError("Clue count must be between 0 and 8.")
        return cls(ClueKind.CLUE, count)

    @property
    def shows_number(self) -> bool:
        return self.kind is ClueKind.CLUE and self.count > 0

    def render(self) -> str:
        return str(self.count) if self.shows_number else ""


class Phase(str, Enum):
    """Turn state machine phases."""

    IDLE = "IDLE"
    COUNTDOWN = "COUNTDOWN"
    TURN_ACTIVE = "TURN_ACTIVE"
    MATCH_ENDED = "MATCH_ENDED"


@dataclass(frozen=True)
class TurnRecord:
    """The single active turn: owner, start on the shared clock, duration."""

    player_id: PlayerId
    start_time: float
    duration: float
    turn_number: int

    @property
    def deadline(self) -> float:
        return self.start_time + self.duration

    def elapsed(self, now: float) -> float:
        return max(0.0, now - self.start_time)

    def remaining(self, now: float) -> float:
        return min(self.duration, max(0.0, self.deadline - now))

    def to_dict(self) -> dict[str, Any]:
        return {
            "player_id": self.player_id,
            "start_time": self.start_time,
            "duration": self.duration,
            "turn_number": self.turn_number,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TurnRecord":
        try:
            return cls(
                player_id=str(data["player_id"]),
                start_time=float(data["start_time"]),
                duration=float(data["duration"]),
                turn_number=int(data["turn_number"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ProtocolError(f"Invalid turn record: {exc}") from exc
