"""Per-player guess bookkeeping plus the local board-mark undo/redo history."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .tentaizu_board import Board
from .tentaizu_state import Cell, PlayerId


class GuessVerdict(str, Enum):
    """Outcome of submitting or applying a guess."""

    ACCEPTED = "ACCEPTED"
    REJECTED_QUOTA_EXCEEDED = "REJECTED_QUOTA_EXCEEDED"
    REJECTED_CLUE_CELL = "REJECTED_CLUE_CELL"
    REJECTED_DUPLICATE = "REJECTED_DUPLICATE"
    REJECTED_OUT_OF_BOUNDS = "REJECTED_OUT_OF_BOUNDS"
    REJECTED_NOT_YOUR_TURN = "REJECTED_NOT_YOUR_TURN"
    REJECTED_MATCH_NOT_ACTIVE = "REJECTED_MATCH_NOT_ACTIVE"

    @property
    def accepted(self) -> bool:
        return self is GuessVerdict.ACCEPTED


class ActionKind(str, Enum):
    """History entry kinds for the local board marks."""

    MARK = "mark"
    UNMARK = "unmark"


@dataclass(frozen=True)
class HistoryEntry:
    action: ActionKind
    cell: Cell


class GuessLedger:
    """Accepted guesses per player, and this peer's rendered marks.

    Player guess sets are replicated: they change only through `submit` (driven
    by delivered guess events) and `reset`. Board marks, the move counter and
    the undo/redo stacks are local rendering state; `undo`, `redo` and
    `unmark` touch only those.
    """

    def __init__(self, board: Board, max_guesses_per_player: int):
        if max_guesses_per_player < 1:
            raise ValueError("max_guesses_per_player must be >= 1.")
        self.board = board
        self.max_guesses_per_player = max_guesses_per_player
        self._player_guesses: dict[PlayerId, list[Cell]] = {}
        self._marks: set[Cell] = set()
        self._history: list[HistoryEntry] = []
        self._redo: list[HistoryEntry] = []
        self._move_count = 0

    @property
    def solution(self) -> frozenset[Cell]:
        return self.board.solution

    @property
    def star_count(self) -> int:
        return len(self.board.solution)

    def check(self, player_id: PlayerId, cell: Cell) -> GuessVerdict:
        """Return the verdict `submit` would produce, without mutating."""
        if not self.board.in_bounds(cell):
            return GuessVerdict.REJECTED_OUT_OF_BOUNDS
        if self.board.is_clue_cell(cell):
            return GuessVerdict.REJECTED_CLUE_CELL
        guesses = self._player_guesses.get(player_id, [])
        if cell in guesses:
            return GuessVerdict.REJECTED_DUPLICATE
        if len(guesses) >= self.max_guesses_per_player:
            return GuessVerdict.REJECTED_QUOTA_EXCEEDED
        return GuessVerdict.ACCEPTED

    def submit(self, player_id: PlayerId, cell: Cell) -> GuessVerdict:
        verdict = self.check(player_id, cell)
        if not verdict.accepted:
            return verdict

        self._player_guesses.setdefault(player_id, []).append(cell)
        self._marks.add(cell)
        self._history.append(HistoryEntry(ActionKind.MARK, cell))
        self._redo.clear()
        self._move_count += 1
        return verdict

    def unmark(self, cell: Cell) -> bool:
        """Remove a local board mark; returns False when the cell was not marked."""
        if cell not in self._marks:
            return False
        self._marks.discard(cell)
        self._history.append(HistoryEntry(ActionKind.UNMARK, cell))
        self._redo.clear()
        self._move_count = max(0, self._move_count - 1)
        return True

    def undo(self) -> HistoryEntry | None:
        if not self._history:
            return None
        entry = self._history.pop()
        self._redo.append(entry)
        if entry.action is ActionKind.MARK:
            self._remove_mark(entry.cell)
        else:
            self._add_mark(entry.cell)
        return entry

    def redo(self) -> HistoryEntry | None:
        if not self._redo:
            return None
        entry = self._redo.pop()
        self._history.append(entry)
        if entry.action is ActionKind.MARK:
            self._add_mark(entry.cell)
        else:
            self._remove_mark(entry.cell)
        return entry

    def reset(self) -> None:
        """Clear everything; used between matches, never mid-turn."""
        self._player_guesses.clear()
        self._marks.clear()
        self._history.clear()
        self._redo.clear()
        self._move_count = 0

    def _add_mark(self, cell: Cell) -> None:
        self._marks.add(cell)
        self._move_count += 1

    def _remove_mark(self, cell: Cell) -> None:
        self._marks.discard(cell)
        self._move_count = max(0, self._move_count - 1)

    # Queries

    def guesses_for(self, player_id: PlayerId) -> tuple[Cell, ...]:
        return tuple(self._player_guesses.get(player_id, ()))

    def guess_count(self, player_id: PlayerId) -> int:
        return len(self._player_guesses.get(player_id, ()))

    def guesses_remaining(self, player_id: PlayerId) -> int:
        return max(0, self.max_guesses_per_player - self.guess_count(player_id))

    def quota_exhausted(self, player_id: PlayerId) -> bool:
        return self.guess_count(player_id) >= self.max_guesses_per_player

    def correct_count(self, player_id: PlayerId) -> int:
        return sum(1 for cell in self._player_guesses.get(player_id, ()) if cell in self.board.solution)

    def has_solved(self, player_id: PlayerId) -> bool:
        """True only when the player's guesses are exactly the solution."""
        guesses = self._player_guesses.get(player_id, [])
        return len(guesses) == self.star_count and set(guesses) == self.board.solution

    def claimed_cells(self) -> frozenset[Cell]:
        """Union of every player's accepted guesses."""
        claimed: set[Cell] = set()
        for guesses in self._player_guesses.values():
            claimed.update(guesses)
        return frozenset(claimed)

    def all_guesses(self) -> dict[PlayerId, tuple[Cell, ...]]:
        return {player_id: tuple(guesses) for player_id, guesses in self._player_guesses.items()}

    def reveal_solution(self) -> frozenset[Cell]:
        return self.board.solution

    @property
    def marks(self) -> frozenset[Cell]:
        return frozenset(self._marks)

    @property
    def move_count(self) -> int:
        return self._move_count

    @property
    def history(self) -> tuple[HistoryEntry, ...]:
        return tuple(self._history)

    @property
    def redo_history(self) -> tuple[HistoryEntry, ...]:
        return tuple(self._redo)
