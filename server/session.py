"""In-memory match sessions hosting both peers of a match in one process."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from uuid import uuid4

from framework.env_utils import getenv_any
from framework.events import MatchEvent, write_jsonl
from framework.player import Agent
from framework.result import MatchResult
from framework.serialize import to_serializable
from server.agent_factory import create_agent_for_player, normalize_player_config, player_label
from tentaizu.tentaizu_config import MatchConfig
from tentaizu.tentaizu_ledger import GuessVerdict
from tentaizu.tentaizu_moves import move_from_dict
from tentaizu.tentaizu_simulation import DEFAULT_PLAYERS, LocalMatch

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL = 0.25


def _default_view_player_id(
    *,
    player_ids: tuple[str, ...],
    human_players: set[str],
    human_player_id: str | None,
    viewer_player_id: str | None,
) -> str:
    if viewer_player_id is not None:
        return viewer_player_id
    if human_player_id is not None:
        return human_player_id
    for player_id in player_ids:
        if player_id in human_players:
            return player_id
    return player_ids[0]


@dataclass
class MatchSession:
    """Single in-memory match: a `LocalMatch` plus the agents driving automated seats."""

    match_id: str
    seed: int
    config: MatchConfig
    match: LocalMatch
    player_configs: dict[str, dict[str, Any]]
    agent_labels: dict[str, str]
    agents: dict[str, Agent]
    human_players: set[str]
    default_view_player_id: str
    tick_interval: float = DEFAULT_TICK_INTERVAL
    event_log_dir: Path | None = None
    _finalized: bool = field(default=False, repr=False)

    @classmethod
    def create(
        cls,
        *,
        seed: int,
        config: dict[str, Any] | None,
        players: dict[str, Any] | None,
        human_player_id: str | None,
        viewer_player_id: str | None,
        event_log_dir: Path | None = None,
    ) -> "MatchSession":
        match_config = MatchConfig.from_dict(config)
        match_id = f"match-{uuid4().hex[:10]}"
        player_ids = DEFAULT_PLAYERS

        unknown = sorted(set(players or {}) - set(player_ids))
        if unknown:
            raise ValueError(f"Unknown player ids: {unknown}; expected {list(player_ids)}")

        player_configs: dict[str, dict[str, Any]] = {}
        for player_id in player_ids:
            player_configs[player_id] = normalize_player_config((players or {}).get(player_id, "random"))

        if human_player_id is not None:
            if human_player_id not in player_configs:
                raise ValueError(f"Unknown human_player_id: {human_player_id}")
            player_configs[human_player_id]["type"] = "human"
        if viewer_player_id is not None and viewer_player_id not in player_configs:
            raise ValueError(f"Unknown viewer_player_id: {viewer_player_id}")

        agents: dict[str, Agent] = {}
        human_players: set[str] = set()
        for player_id, player_config in player_configs.items():
            agent = create_agent_for_player(player_id=player_id, config=player_config)
            if agent is None:
                human_players.add(player_id)
                continue
            agent.reset(match_id, player_id, seed, match_config.to_dict())
            agents[player_id] = agent

        session = cls(
            match_id=match_id,
            seed=seed,
            config=match_config,
            match=LocalMatch(match_config, players=player_ids, match_id=match_id, seed=seed),
            player_configs=player_configs,
            agent_labels={player_id: player_label(player_config) for player_id, player_config in player_configs.items()},
            agents=agents,
            human_players=human_players,
            default_view_player_id=_default_view_player_id(
                player_ids=player_ids,
                human_players=human_players,
                human_player_id=human_player_id,
                viewer_player_id=viewer_player_id,
            ),
            event_log_dir=event_log_dir,
        )
        first_player = session.match.setup()
        logger.info("session %s created (seed=%d, first player %s)", match_id, seed, first_player)
        return session

    @property
    def result(self) -> MatchResult | None:
        return self.match.result

    @property
    def events(self) -> list[MatchEvent]:
        return self.match.authority.events

    def is_terminal(self) -> bool:
        return self.result is not None

    def selected_player(self, requested_player_id: str | None = None) -> str:
        if requested_player_id and requested_player_id in self.match.peers:
            return requested_player_id
        return self.default_view_player_id

    def view(self, player_id: str) -> dict[str, Any]:
        """Serialize one peer's observation, legal intents and desync status."""
        if player_id not in self.match.peers:
            raise ValueError(f"Unknown player_id: {player_id}")
        peer = self.match.peer(player_id)
        observation = peer.observation()
        board_text = peer.board.render(observation.marks) if peer.board is not None else None
        return {
            "match_id": self.match_id,
            "seed": self.seed,
            "config": self.config.to_dict(),
            "player_id": player_id,
            "players": dict(self.agent_labels),
            "human_players": sorted(self.human_players),
            "clock": self.match.clock.now(),
            "observation": observation.to_dict(),
            "legal_moves": [move.to_dict() for move in peer.legal_moves()],
            "board_text": board_text,
            "state_digest": peer.state_digest(),
            "converged": self.match.converged(),
            "is_terminal": self.is_terminal(),
            "result": self.result.to_dict() if self.result is not None else None,
        }

    def submit_human_move(self, *, player_id: str, move_payload: dict[str, Any]) -> dict[str, Any]:
        """Apply a human seat's intent, then let automated seats respond."""
        if player_id not in self.match.peers:
            raise ValueError(f"Unknown player_id: {player_id}")
        if player_id not in self.human_players:
            raise PermissionError(f"Player {player_id} is not controlled by a human.")
        if self.is_terminal():
            raise ValueError("Match is already complete.")

        move = move_from_dict(move_payload)
        outcome = self.match.apply_move(player_id, move)
        if isinstance(outcome, GuessVerdict) and not outcome.accepted:
            raise ValueError(f"Guess rejected: {outcome.value}")

        self.step_agents()
        self._finalize_if_terminal()
        payload = self.view(player_id)
        payload["outcome"] = to_serializable(outcome)
        return payload

    def advance(self, seconds: float, step: float | None = None) -> dict[str, Any]:
        """Advance the simulated clock, letting automated seats act after each step."""
        increment = step or self.tick_interval
        remaining = float(seconds)
        while remaining > 1e-9 and not self.is_terminal():
            delta = min(increment, remaining)
            self.match.advance(delta)
            remaining -= delta
            self.step_agents()
        if seconds <= 0:
            self.match.tick()
            self.step_agents()
        self._finalize_if_terminal()
        return self.view(self.default_view_player_id)

    def step_agents(self) -> None:
        """Give each automated seat that currently holds input one intent."""
        for player_id, agent in self.agents.items():
            if self.is_terminal():
                return
            peer = self.match.peer(player_id)
            if not peer.input_enabled:
                continue
            move = agent.act(peer.observation(), peer.legal_moves())
            if move is not None:
                peer.apply_move(move)

    def _finalize_if_terminal(self) -> None:
        if self._finalized or self.result is None:
            return
        self._finalized = True
        for agent in self.agents.values():
            agent.on_match_end(self.result, self.events)
        if self.event_log_dir is not None:
            path = self.event_log_dir / f"{self.match_id}.jsonl"
            write_jsonl(path, self.events)
            logger.info("session %s: event log written to %s", self.match_id, path)


class SessionStore:
    """In-memory session dictionary keyed by match ID."""

    def __init__(self, event_log_dir: str | Path | None = None) -> None:
        self._sessions: dict[str, MatchSession] = {}
        configured = event_log_dir if event_log_dir is not None else getenv_any("TENTAIZU_EVENT_LOG_DIR")
        self.event_log_dir = Path(configured) if configured else None

    def create_match(
        self,
        *,
        seed: int,
        config: dict[str, Any] | None,
        players: dict[str, Any] | None,
        human_player_id: str | None,
        viewer_player_id: str | None,
    ) -> MatchSession:
        session = MatchSession.create(
            seed=seed,
            config=config,
            players=players,
            human_player_id=human_player_id,
            viewer_player_id=viewer_player_id,
            event_log_dir=self.event_log_dir,
        )
        self._sessions[session.match_id] = session
        return session

    def get(self, match_id: str) -> MatchSession:
        if match_id not in self._sessions:
            raise KeyError(match_id)
        return self._sessions[match_id]

    def all_events(self, match_id: str) -> list[dict[str, Any]]:
        session = self.get(match_id)
        return [event.to_dict() for event in session.events]
