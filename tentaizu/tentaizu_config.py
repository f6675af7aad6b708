"""Match rule configuration."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any, Mapping

from framework.errors import MatchConfigurationError

DEFAULT_GRID_SIZE = 7
DEFAULT_STAR_COUNT = 10
DEFAULT_TURN_DURATION = 30.0
DEFAULT_MAX_GUESSES_PER_PLAYER = 5
DEFAULT_COUNTDOWN = 2.0


def validate_board_shape(grid_size: int, star_count: int) -> None:
    """Reject grids that cannot hold `star_count` stars plus at least one clue."""
    if grid_size < 1:
        raise MatchConfigurationError("grid_size must be >= 1.")
    if star_count < 1:
        raise MatchConfigurationError("star_count must be >= 1.")
    if star_count >= grid_size * grid_size:
        raise MatchConfigurationError(
            f"star_count ({star_count}) must be smaller than grid_size^2 ({grid_size * grid_size})."
        )


@dataclass(frozen=True)
class MatchConfig:
    """Rules shared by every peer of a match."""

    grid_size: int = DEFAULT_GRID_SIZE
    star_count: int = DEFAULT_STAR_COUNT
    turn_duration: float = DEFAULT_TURN_DURATION
    max_guesses_per_player: int = DEFAULT_MAX_GUESSES_PER_PLAYER
    countdown: float = DEFAULT_COUNTDOWN

    def __post_init__(self) -> None:
        validate_board_shape(self.grid_size, self.star_count)
        if self.turn_duration <= 0:
            raise MatchConfigurationError("turn_duration must be > 0.")
        if self.max_guesses_per_player < 1:
            raise MatchConfigurationError("max_guesses_per_player must be >= 1.")
        if self.countdown < 0:
            raise MatchConfigurationError("countdown must be >= 0.")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None = None) -> "MatchConfig":
        """Merge overrides over the defaults; unknown keys are rejected."""
        overrides = dict(data or {})
        known = {field.name for field in fields(cls)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise MatchConfigurationError(f"Unknown config keys: {unknown}")
        try:
            return cls(
                grid_size=int(overrides.get("grid_size", DEFAULT_GRID_SIZE)),
                star_count=int(overrides.get("star_count", DEFAULT_STAR_COUNT)),
                turn_duration=float(overrides.get("turn_duration", DEFAULT_TURN_DURATION)),
                max_guesses_per_player=int(
                    overrides.get("max_guesses_per_player", DEFAULT_MAX_GUESSES_PER_PLAYER)
                ),
                countdown=float(overrides.get("countdown", DEFAULT_COUNTDOWN)),
            )
        except (TypeError, ValueError) as exc:
            raise MatchConfigurationError(f"Invalid config value: {exc}") from exc
