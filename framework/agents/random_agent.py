"""Random baseline agent."""

from __future__ import annotations

import hashlib
import random
from collections.abc import Sequence
from typing import Any

from ..errors import AgentExecutionError
from ..move import Move
from ..player import Agent


class RandomAgent(Agent):
    """Chooses uniformly from the enumerated legal intents.

    `pass_probability` lets the agent idle on some ticks so that turns can run
    into their deadline during simulations.
    """

    def __init__(self, agent_id: str, pass_probability: float = 0.0):
        super().__init__(agent_id=agent_id)
        if not 0.0 <= pass_probability < 1.0:
            raise ValueError("pass_probability must be in [0, 1).")
        self.pass_probability = pass_probability
        self._rng = random.Random()

    def reset(self, match_id: str, player_id: str, seed: int, config: dict[str, Any] | None) -> None:
        """Reset deterministic RNG state per match and seat."""
        material = f"{seed}:{match_id}:{self.agent_id}:{player_id}".encode("utf-8")
        derived_seed = int.from_bytes(hashlib.sha256(material).digest()[:8], byteorder="big", signed=False)
        self._rng.seed(derived_seed)

    def act(self, observation: Any, legal_moves: Sequence[Move]) -> Move | None:
        """Pick a random legal intent."""
        options = list(legal_moves)
        if not options:
            raise AgentExecutionError(self.agent_id, "No legal moves available.")
        if self.pass_probability and self._rng.random() < self.pass_probability:
            return None
        return self._rng.choice(options)
