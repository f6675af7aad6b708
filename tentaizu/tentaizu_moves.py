"""Local intents a player (or agent) can issue to its match coordinator."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from framework.move import Move

from .tentaizu_state import Cell, is_index


class MoveType(str, Enum):
    """Supported intent discriminators."""

    SUBMIT_GUESS = "SubmitGuess"
    END_TURN = "EndTurn"
    UNDO = "Undo"
    REDO = "Redo"
    UNMARK = "Unmark"


def _check_coordinates(move_name: str, row: Any, col: Any) -> None:
    if not (is_index(row) and is_index(col)):
        raise ValueError(f"{move_name} row/col must be integers, got {row!r}, {col!r}.")
    if row < 0 or col < 0:
        raise ValueError(f"{move_name} row/col must be >= 0.")


@dataclass(frozen=True)
class SubmitGuess(Move):
    """Claim a cell as a star during your turn."""

    row: int
    col: int
    move_type = MoveType.SUBMIT_GUESS.value

    def __post_init__(self) -> None:
        _check_coordinates("SubmitGuess", self.row, self.col)

    @property
    def cell(self) -> Cell:
        return Cell(self.row, self.col)

    @classmethod
    def at(cls, cell: Cell) -> "SubmitGuess":
        return cls(row=cell.row, col=cell.col)


@dataclass(frozen=True)
class EndTurn(Move):
    """Give up the remainder of the current turn."""

    move_type = MoveType.END_TURN.value


@dataclass(frozen=True)
class Undo(Move):
    """Undo the last local board-mark action."""

    move_type = MoveType.UNDO.value


@dataclass(frozen=True)
class Redo(Move):
    """Redo the last undone board-mark action."""

    move_type = MoveType.REDO.value


@dataclass(frozen=True)
class Unmark(Move):
    """Clear a local board mark without touching accepted guesses."""

    row: int
    col: int
    move_type = MoveType.UNMARK.value

    def __post_init__(self) -> None:
        _check_coordinates("Unmark", self.row, self.col)

    @property
    def cell(self) -> Cell:
        return Cell(self.row, self.col)


def move_from_dict(data: Mapping[str, Any]) -> Move:
    """Parse an intent from a JSON payload."""
    move_type = data.get("type") or data.get("move_type")
    if move_type in (MoveType.SUBMIT_GUESS.value, MoveType.UNMARK.value):
        translated = dict(data)
        if "cell" in translated and ("row" not in translated or "col" not in translated):
            cell = Cell.from_value(translated.pop("cell"))
            translated["row"], translated["col"] = cell.row, cell.col
        move_cls = SubmitGuess if move_type == MoveType.SUBMIT_GUESS.value else Unmark
        try:
            return move_cls.from_dict(translated)
        except TypeError as exc:
            raise ValueError(f"Invalid {move_type} payload: {exc}") from exc
    if move_type == MoveType.END_TURN.value:
        return EndTurn()
    if move_type == MoveType.UNDO.value:
        return Undo()
    if move_type == MoveType.REDO.value:
        return Redo()
    raise ValueError(f"Unknown Tentaizu move type: {move_type!r}")
