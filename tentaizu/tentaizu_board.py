"""Board generation: seeded solution sampling and clue grid derivation."""

from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import Any, Iterable, Iterator

from framework.errors import ProtocolError

from .tentaizu_config import validate_board_shape
from .tentaizu_state import Cell, ClueValue


def new_seed() -> int:
    """Return a positive time-derived seed."""
    seed = int(time.time_ns() & 0x7FFFFFFF)
    return seed if seed != 0 else 1


@dataclass(frozen=True)
class Board:
    """Hidden solution plus the clue grid every player sees."""

    grid_size: int
    solution: frozenset[Cell]
    clues: tuple[tuple[ClueValue, ...], ...]

    def in_bounds(self, cell: Cell) -> bool:
        return cell.in_bounds(self.grid_size)

    def clue_at(self, cell: Cell) -> ClueValue:
        return self.clues[cell.row][cell.col]

    def is_clue_cell(self, cell: Cell) -> bool:
        """True for cells showing a neighbour count; those are never guessable."""
        return self.clue_at(cell).shows_number

    def is_guessable(self, cell: Cell) -> bool:
        return self.in_bounds(cell) and not self.is_clue_cell(cell)

    def neighbors(self, cell: Cell) -> list[Cell]:
        return list(cell.neighbors(self.grid_size))

    def cells(self) -> Iterator[Cell]:
        for row in range(self.grid_size):
            for col in range(self.grid_size):
                yield Cell(row, col)

    def guessable_cells(self) -> list[Cell]:
        return [cell for cell in self.cells() if not self.is_clue_cell(cell)]

    def rendered_rows(self) -> list[list[str]]:
        """Clue text per cell, empty for hidden and zero-count cells."""
        return [[value.render() for value in row] for row in self.clues]

    def render(self, marks: Iterable[Cell] = ()) -> str:
        """Render the board as text: digits for clues, `*` for marks, `.` otherwise."""
        marked = set(marks)
        lines = []
        for row in range(self.grid_size):
            chars = []
            for col in range(self.grid_size):
                cell = Cell(row, col)
                if cell in marked:
                    chars.append("*")
                else:
                    chars.append(self.clue_at(cell).render() or ".")
            lines.append(" ".join(chars))
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "grid_size": self.grid_size,
            "solution": sorted(self.solution),
            "clues": self.rendered_rows(),
        }


class BoardGenerator:
    """Builds boards for one grid size and star count."""

    def __init__(self, grid_size: int, star_count: int):
        validate_board_shape(grid_size, star_count)
        self.grid_size = grid_size
        self.star_count = star_count

    def generate(self, seed: int) -> Board:
        """Draw a solution by rejection sampling from a seeded RNG."""
        rng = random.Random(seed)
        solution: set[Cell] = set()
        while len(solution) < self.star_count:
            solution.add(Cell(rng.randrange(self.grid_size), rng.randrange(self.grid_size)))
        return self.build(solution)

    def build(self, solution: Iterable[Cell]) -> Board:
        """Derive the clue grid from a solution received from the authority."""
        stars = frozenset(solution)
        if len(stars) != self.star_count:
            raise ProtocolError(f"Solution must contain {self.star_count} cells, got {len(stars)}.")
        outside = sorted(cell for cell in stars if not cell.in_bounds(self.grid_size))
        if outside:
            raise ProtocolError(f"Solution cells outside the board: {outside}")

        rows = []
        for row in range(self.grid_size):
            values = []
            for col in range(self.grid_size):
                cell = Cell(row, col)
                if cell in stars:
                    values.append(ClueValue.hidden())
                else:
                    values.append(ClueValue.clue(sum(1 for n in cell.neighbors(self.grid_size) if n in stars)))
            rows.append(tuple(values))
        return Board(grid_size=self.grid_size, solution=stars, clues=tuple(rows))
