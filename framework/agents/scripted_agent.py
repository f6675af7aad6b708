"""Scripted agents for deterministic simulations and tests."""

from __future__ import annotations

from collections import deque
from typing import Any, Callable, Iterable, Sequence

from ..move import Move
from ..player import Agent


class ScriptedAgent(Agent):
    """Runs a user-provided policy callable."""

    def __init__(self, agent_id: str, policy: Callable[[Any, Sequence[Move]], Move | None] | None = None):
        super().__init__(agent_id=agent_id)
        self.policy = policy

    def act(self, observation: Any, legal_moves: Sequence[Move]) -> Move | None:
        """Delegate to the configured scripted policy."""
        if self.policy is None:
            raise NotImplementedError("ScriptedAgent requires a policy(observation, legal_moves) callable.")
        return self.policy(observation, legal_moves)


class QueueAgent(Agent):
    """Plays a fixed sequence of intents, one per call, then passes."""

    def __init__(self, agent_id: str, moves: Iterable[Move]):
        super().__init__(agent_id=agent_id)
        self._moves = deque(moves)

    @property
    def remaining(self) -> int:
        return len(self._moves)

    def act(self, observation: Any, legal_moves: Sequence[Move]) -> Move | None:
        if not self._moves:
            return None
        return self._moves.popleft()
