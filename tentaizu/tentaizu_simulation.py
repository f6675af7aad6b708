"""In-process two-peer matches for tests, the local API and the CLI."""

from __future__ import annotations

import argparse
import logging
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Sequence
from uuid import uuid4

from framework.agents.random_agent import RandomAgent
from framework.channel import LoopbackHub
from framework.clock import ManualClock, NetworkClock, SkewedClock
from framework.env_utils import getenv_any
from framework.events import MatchEvent, write_jsonl
from framework.logging_utils import configure_logging
from framework.move import Move
from framework.player import Agent
from framework.result import MatchResult
from framework.serialize import json_dumps

from .tentaizu_config import MatchConfig
from .tentaizu_game import MatchCoordinator, MatchListener, PeerContext
from .tentaizu_state import Cell, PlayerId

logger = logging.getLogger(__name__)

DEFAULT_PLAYERS: tuple[PlayerId, PlayerId] = ("1", "2")


@dataclass(frozen=True)
class SimulationConfig:
    """Runtime settings for driving a simulated match."""

    tick_interval: float = 0.25
    max_seconds: float = 3600.0
    event_log_dir: str | Path | None = None


@dataclass(frozen=True)
class SimulationRun:
    """Outcome of one simulated match."""

    match_id: str
    result: MatchResult | None
    events: list[MatchEvent]
    digests: dict[PlayerId, str]

    @property
    def converged(self) -> bool:
        return len(set(self.digests.values())) == 1

    def to_dict(self) -> dict:
        return {
            "match_id": self.match_id,
            "result": self.result.to_dict() if self.result is not None else None,
            "events": len(self.events),
            "converged": self.converged,
            "digests": dict(self.digests),
        }


class LocalMatch:
    """Two coordinators wired to one loopback hub and one manual clock.

    The first player is the authority. `skews` offsets individual peers'
    clocks from the shared one to exercise drift.
    """

    def __init__(
        self,
        config: MatchConfig | None = None,
        *,
        players: Sequence[PlayerId] = DEFAULT_PLAYERS,
        match_id: str | None = None,
        seed: int | None = None,
        skews: Mapping[PlayerId, float] | None = None,
        listeners: Mapping[PlayerId, MatchListener] | None = None,
        start_time: float = 0.0,
    ):
        self.config = config or MatchConfig()
        self.players = tuple(players)
        self.match_id = match_id or f"tentaizu-{uuid4().hex[:8]}"
        self.clock = ManualClock(start_time)
        self.hub = LoopbackHub()
        rng = random.Random(seed)
        skews = skews or {}
        listeners = listeners or {}

        self.peers: dict[PlayerId, MatchCoordinator] = {}
        for index, player_id in enumerate(self.players):
            clock: NetworkClock = self.clock
            if skews.get(player_id):
                clock = SkewedClock(self.clock, skews[player_id])
            coordinator = MatchCoordinator(
                self.config,
                PeerContext(local_player_id=player_id, is_authority=index == 0, clock=clock),
                match_id=self.match_id,
                listener=listeners.get(player_id),
                seed_source=(lambda: rng.randrange(1, 2**31)) if index == 0 else None,
            )
            coordinator.attach(self.hub.connect(player_id, coordinator.receive))
            self.peers[player_id] = coordinator

    @property
    def authority(self) -> MatchCoordinator:
        return self.peers[self.players[0]]

    def peer(self, player_id: PlayerId) -> MatchCoordinator:
        if player_id not in self.peers:
            raise KeyError(f"Unknown player {player_id!r}.")
        return self.peers[player_id]

    def setup(self, solution: Iterable[Cell] | None = None) -> PlayerId:
        """Build the board and start the countdown; returns the first player."""
        self.authority.generate_board(solution)
        return self.authority.request_host_start_match()

    def tick(self) -> None:
        for coordinator in self.peers.values():
            coordinator.tick()

    def advance(self, seconds: float, step: float | None = None) -> None:
        """Move the shared clock forward, ticking every peer after each step."""
        remaining = float(seconds)
        increment = float(step) if step else remaining
        while remaining > 1e-9:
            delta = min(increment, remaining)
            self.clock.advance(delta)
            remaining -= delta
            self.tick()
        if seconds <= 0:
            self.tick()

    def apply_move(self, player_id: PlayerId, move: Move):
        return self.peer(player_id).apply_move(move)

    def digests(self) -> dict[PlayerId, str]:
        return {player_id: coordinator.state_digest() for player_id, coordinator in self.peers.items()}

    def converged(self) -> bool:
        return len(set(self.digests().values())) == 1

    @property
    def result(self) -> MatchResult | None:
        return self.authority.result

    @property
    def events(self) -> list[MatchEvent]:
        return list(self.hub.delivered)


def run_simulated_match(
    seed: int,
    config: MatchConfig | None = None,
    agents: Mapping[PlayerId, Agent] | None = None,
    *,
    sim_config: SimulationConfig | None = None,
    match_id: str | None = None,
    log_path: str | Path | None = None,
) -> SimulationRun:
    """Play a full match between agents on the simulated clock."""
    settings = sim_config or SimulationConfig()
    match_config = config or MatchConfig()
    resolved_match_id = match_id or f"tentaizu-{seed}-{uuid4().hex[:8]}"
    match = LocalMatch(match_config, match_id=resolved_match_id, seed=seed)
    seats = dict(agents or {player_id: RandomAgent(f"random-{player_id}") for player_id in match.players})
    missing = [player_id for player_id in match.players if player_id not in seats]
    if missing:
        raise ValueError(f"Missing agents for players: {missing}")

    for player_id, agent in seats.items():
        agent.reset(resolved_match_id, player_id, seed, match_config.to_dict())

    match.setup()
    elapsed = 0.0
    while match.result is None and elapsed < settings.max_seconds:
        match.advance(settings.tick_interval)
        elapsed += settings.tick_interval
        for player_id in match.players:
            peer = match.peer(player_id)
            if not peer.input_enabled:
                continue
            move = seats[player_id].act(peer.observation(), peer.legal_moves())
            if move is not None:
                peer.apply_move(move)

    if match.result is None:
        logger.warning("match %s: no result after %.1f simulated seconds", resolved_match_id, elapsed)
    else:
        for agent in seats.values():
            agent.on_match_end(match.result, match.events)

    run = SimulationRun(
        match_id=resolved_match_id,
        result=match.result,
        events=match.authority.events,
        digests=match.digests(),
    )
    output = log_path
    if output is None and settings.event_log_dir is not None:
        output = Path(settings.event_log_dir) / f"{resolved_match_id}.jsonl"
    if output is not None:
        write_jsonl(output, run.events)
        logger.info("match %s: wrote %d events to %s", resolved_match_id, len(run.events), output)
    return run


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Simulate a Tentaizu match between two random agents.")
    parser.add_argument("--seed", type=int, default=1)
    parser.add_argument("--grid-size", type=int, default=None)
    parser.add_argument("--star-count", type=int, default=None)
    parser.add_argument("--turn-duration", type=float, default=None)
    parser.add_argument("--max-guesses", type=int, default=None)
    parser.add_argument("--countdown", type=float, default=None)
    parser.add_argument("--pass-probability", type=float, default=0.0)
    parser.add_argument("--tick", type=float, default=0.25, help="Simulated seconds per tick.")
    parser.add_argument("--log-path", type=str, default=None, help="Write the event log as JSONL.")
    parser.add_argument("--log-level", type=str, default=None)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level or getenv_any("TENTAIZU_LOG_LEVEL", default="WARNING"))

    overrides = {
        "grid_size": args.grid_size,
        "star_count": args.star_count,
        "turn_duration": args.turn_duration,
        "max_guesses_per_player": args.max_guesses,
        "countdown": args.countdown,
    }
    config = MatchConfig.from_dict({key: value for key, value in overrides.items() if value is not None})
    agents = {
        player_id: RandomAgent(f"random-{player_id}", pass_probability=args.pass_probability)
        for player_id in DEFAULT_PLAYERS
    }
    run = run_simulated_match(
        args.seed,
        config,
        agents,
        sim_config=SimulationConfig(
            tick_interval=args.tick,
            event_log_dir=getenv_any("TENTAIZU_EVENT_LOG_DIR"),
        ),
        log_path=args.log_path,
    )
    print(json_dumps(run.to_dict(), indent=2))
    return 0 if run.result is not None else 1


if __name__ == "__main__":
    raise SystemExit(main())
