"""Match coordinator: turns local intents into broadcasts and applies deliveries.

Every peer runs one `MatchCoordinator`. State changes only inside `receive`,
which every peer (the sender included) calls for each delivered event in the
same order, so identical logic over identical inputs keeps replicas equal.
The authority additionally generates the board, starts the match and, from
`tick`, rotates turns and declares exhaustion outcomes.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, Protocol

from framework.channel import Channel
from framework.clock import NetworkClock
from framework.errors import MatchConfigurationError, NotAuthorityError, ProtocolError
from framework.events import AUTHORITY_EVENT_TYPES, EventType, MatchEvent, write_jsonl
from framework.move import Move
from framework.result import MatchResult, TerminationReason
from framework.serialize import to_serializable

from .tentaizu_board import Board, BoardGenerator, new_seed
from .tentaizu_config import MatchConfig
from .tentaizu_ledger import GuessLedger, GuessVerdict, HistoryEntry
from .tentaizu_moves import EndTurn, Redo, SubmitGuess, Undo, Unmark
from .tentaizu_observation import ReplicatedState, TentaizuObservation
from .tentaizu_scoring import decide_by_score, scores
from .tentaizu_state import Cell, Phase, PlayerId, TurnRecord
from .tentaizu_turns import TransitionReason, TurnStateMachine, TurnTransition, choose_first_player, validate_players

logger = logging.getLogger(__name__)


class MatchListener(Protocol):
    """Rendering collaborator notified after state changes are applied."""

    def on_board_built(self, board: Board) -> None:
        ...

    def on_match_started(self, players: tuple[PlayerId, PlayerId], first_player: PlayerId, start_time: float) -> None:
        ...

    def on_turn_started(self, record: TurnRecord) -> None:
        ...

    def on_guess_applied(self, player_id: PlayerId, cell: Cell) -> None:
        ...

    def on_match_ended(self, result: MatchResult) -> None:
        ...

    def on_input_enabled_changed(self, enabled: bool) -> None:
        ...


@dataclass
class PeerContext:
    """What the surrounding application provides to the engine."""

    local_player_id: PlayerId
    is_authority: bool
    clock: NetworkClock
    channel: Channel | None = None


class MatchCoordinator:
    """One peer's replica of a two-player Tentaizu match."""

    def __init__(
        self,
        config: MatchConfig,
        context: PeerContext,
        *,
        match_id: str = "match",
        listener: MatchListener | None = None,
        seed_source: Callable[[], int] | None = None,
    ):
        self.config = config
        self.context = context
        self.match_id = match_id
        self.listener = listener
        self._seed_source = seed_source or new_seed
        self.generator = BoardGenerator(config.grid_size, config.star_count)
        self.turns = TurnStateMachine(config.turn_duration)
        self.board: Board | None = None
        self.ledger: GuessLedger | None = None
        self.authority_id: PlayerId | None = None
        self.result: MatchResult | None = None
        self.input_enabled = False
        self.last_verdict: GuessVerdict | None = None
        self.events: list[MatchEvent] = []
        self._warned_missing: set[str] = set()

    @property
    def local_player_id(self) -> PlayerId:
        return self.context.local_player_id

    @property
    def phase(self) -> Phase:
        return self.turns.phase

    def attach(self, channel: Channel) -> None:
        self.context.channel = channel

    def now(self) -> float:
        return self.context.clock.now()

    # Local intents

    def generate_board(self, solution: Iterable[Cell] | None = None) -> Board:
        """Authority: draw a fresh solution, or take a fixed one, and broadcast it.

        Only the solution goes on the wire, never the seed.
        """
        self._require_authority("generate the board")
        if solution is not None:
            board = self.generator.build(solution)
        else:
            board = self.generator.generate(self._seed_source())
        logger.info("match %s: generated %dx%d board with %d stars", self.match_id, board.grid_size, board.grid_size, len(board.solution))
        self._broadcast(
            EventType.BOARD_BUILT,
            {
                "grid_size": board.grid_size,
                "star_count": len(board.solution),
                "solution": sorted(board.solution),
            },
        )
        return board

    def request_host_start_match(self) -> PlayerId:
        """Authority: flip for the first player and announce the countdown.

        All checks happen before anything is broadcast.
        """
        self._require_authority("start the match")
        if self.board is None:
            raise MatchConfigurationError("The board has not been built yet.")
        if self.turns.phase in (Phase.COUNTDOWN, Phase.TURN_ACTIVE):
            raise MatchConfigurationError("A match is already running.")
        if self.turns.phase is not Phase.IDLE:
            raise MatchConfigurationError("Build a new board before starting another match.")
        players = validate_players(list(self._channel().members()))
        if self.local_player_id not in players:
            raise MatchConfigurationError("The authority must be one of the two players.")

        first_player = choose_first_player(players, random.Random(self._seed_source()))
        start_time = self.now() + self.config.countdown
        self._broadcast(
            EventType.MATCH_STARTED,
            {
                "players": list(players),
                "first_player": first_player,
                "start_time": start_time,
            },
        )
        return first_player

    def request_submit_guess(self, cell: Cell) -> GuessVerdict:
        """Pre-validate a local guess and broadcast it when acceptable.

        The returned verdict is this peer's view at submission time; the
        authoritative outcome is decided when the event is delivered.
        """
        verdict = self._verdict_for(self.local_player_id, self.local_player_id, cell)
        if not verdict.accepted:
            logger.debug("match %s: local guess %s rejected: %s", self.match_id, cell, verdict.value)
            return verdict
        self._broadcast(EventType.GUESS_APPLIED, {"player_id": self.local_player_id, "cell": cell})
        return verdict

    def request_end_turn(self) -> bool:
        """Give up the rest of the local player's turn."""
        if not self.turns.is_turn_owner(self.local_player_id):
            return False
        if self.context.is_authority:
            if self.turns.pending:
                return False
            self._rotate(self.turns.close_turn(self.now(), TransitionReason.END_REQUESTED))
            return True
        self._broadcast(EventType.TURN_END_REQUESTED, {"turn_number": self.turns.turn_number})
        return True

    def undo(self) -> HistoryEntry | None:
        return self.ledger.undo() if self.ledger is not None else None

    def redo(self) -> HistoryEntry | None:
        return self.ledger.redo() if self.ledger is not None else None

    def unmark(self, cell: Cell) -> bool:
        return self.ledger.unmark(cell) if self.ledger is not None else False

    def apply_move(self, move: Move) -> Any:
        """Dispatch an agent or API intent to the matching request method."""
        if isinstance(move, SubmitGuess):
            return self.request_submit_guess(move.cell)
        if isinstance(move, EndTurn):
            return self.request_end_turn()
        if isinstance(move, Undo):
            return self.undo()
        if isinstance(move, Redo):
            return self.redo()
        if isinstance(move, Unmark):
            return self.unmark(move.cell)
        raise ValueError(f"Unsupported move: {move!r}")

    def tick(self) -> TurnTransition | None:
        """Called once per frame by the surrounding loop.

        Only the authority acts on the clock; other peers just refresh their
        local input gating.
        """
        transition = None
        if self.context.is_authority and self.ledger is not None:
            transition = self.turns.tick(self.now(), self.ledger)
            if transition is not None:
                self._rotate(transition)
        self._refresh_input()
        return transition

    # Event application

    def receive(self, event: MatchEvent) -> None:
        """Apply one delivered event; malformed or unauthorised events are dropped."""
        try:
            self._apply(event)
        except ProtocolError as exc:
            logger.warning(
                "match %s: peer %s dropped %s from %s: %s",
                self.match_id,
                self.local_player_id,
                event.event_type.value,
                event.sender,
                exc,
            )
            return
        self.events.append(event)

    def _apply(self, event: MatchEvent) -> None:
        if event.match_id != self.match_id:
            raise ProtocolError(f"Event for match {event.match_id!r}", event_type=event.event_type.value, sender=event.sender)
        if event.event_type in AUTHORITY_EVENT_TYPES and event.event_type is not EventType.BOARD_BUILT:
            if event.sender != self.authority_id:
                raise ProtocolError("Only the authority may send this event.", event_type=event.event_type.value, sender=event.sender)

        try:
            if event.event_type is EventType.BOARD_BUILT:
                self._apply_board_built(event)
            elif event.event_type is EventType.MATCH_STARTED:
                self._apply_match_started(event)
            elif event.event_type is EventType.TURN_STARTED:
                self._apply_turn_started(event)
            elif event.event_type is EventType.GUESS_APPLIED:
                self._apply_guess(event)
            elif event.event_type is EventType.TURN_END_REQUESTED:
                self._apply_end_request(event)
            elif event.event_type is EventType.MATCH_ENDED:
                self._apply_match_ended(event)
        except (KeyError, TypeError, ValueError) as exc:
            raise ProtocolError(f"Malformed payload: {exc}", event_type=event.event_type.value, sender=event.sender) from exc

    def _apply_board_built(self, event: MatchEvent) -> None:
        if self.authority_id is not None and event.sender != self.authority_id:
            raise ProtocolError("Board sent by a non-authority peer.", sender=event.sender)
        if self.context.is_authority and event.sender != self.local_player_id:
            raise ProtocolError("Only this peer may build boards for its match.", sender=event.sender)
        payload = event.payload
        if int(payload["grid_size"]) != self.config.grid_size or int(payload["star_count"]) != self.config.star_count:
            raise ProtocolError("Board dimensions do not match the local config.", sender=event.sender)
        board = self.generator.build(Cell.from_value(value) for value in payload["solution"])

        self.board = board
        self.ledger = GuessLedger(board, self.config.max_guesses_per_player)
        self.authority_id = event.sender
        self.turns.reset()
        self.result = None
        logger.info("match %s: peer %s built board from %s", self.match_id, self.local_player_id, event.sender)
        self._notify("on_board_built", board)
        self._refresh_input()

    def _apply_match_started(self, event: MatchEvent) -> None:
        ledger = self._require_ledger()
        payload = event.payload
        players = [str(player_id) for player_id in payload["players"]]
        first_player = str(payload["first_player"])
        self.turns.begin(players, first_player, float(payload["start_time"]))
        ledger.reset()
        self.result = None
        logger.info("match %s: starting at %.3f, %s moves first", self.match_id, self.turns.start_time, first_player)
        self._notify("on_match_started", self.turns.players, first_player, self.turns.start_time)
        self._refresh_input()

    def _apply_turn_started(self, event: MatchEvent) -> None:
        record = TurnRecord.from_dict(event.payload["record"])
        time_spent = {str(key): float(value) for key, value in dict(event.payload.get("time_spent", {})).items()}
        self.turns.apply_turn(record, time_spent)
        logger.info("match %s: turn %d -> player %s", self.match_id, record.turn_number, record.player_id)
        self._notify("on_turn_started", record)
        self._refresh_input()

    def _apply_guess(self, event: MatchEvent) -> None:
        ledger = self._require_ledger()
        player_id = str(event.payload["player_id"])
        cell = Cell.from_value(event.payload["cell"])
        verdict = self._verdict_for(event.sender, player_id, cell)
        if verdict.accepted:
            verdict = ledger.submit(player_id, cell)
        self.last_verdict = verdict
        if not verdict.accepted:
            logger.info("match %s: guess %s by %s rejected: %s", self.match_id, cell, player_id, verdict.value)
            return

        self._notify("on_guess_applied", player_id, cell)
        self._check_win(player_id)
        self._refresh_input()

    def _apply_end_request(self, event: MatchEvent) -> None:
        if not self.context.is_authority:
            return
        if not self.turns.is_turn_owner(event.sender) or int(event.payload["turn_number"]) != self.turns.turn_number:
            logger.info("match %s: ignoring stale end-turn request from %s", self.match_id, event.sender)
            return
        if self.turns.pending:
            return
        self._rotate(self.turns.close_turn(self.now(), TransitionReason.END_REQUESTED))

    def _apply_match_ended(self, event: MatchEvent) -> None:
        if self.turns.phase is Phase.MATCH_ENDED:
            logger.debug("match %s: already ended; ignoring result from %s", self.match_id, event.sender)
            return
        result = MatchResult.from_dict(event.payload["result"])
        self._finish(result, time_spent=result.time_spent)

    # Rules

    def _verdict_for(self, sender: PlayerId, player_id: PlayerId, cell: Cell) -> GuessVerdict:
        if self.ledger is None or self.turns.phase is not Phase.TURN_ACTIVE:
            return GuessVerdict.REJECTED_MATCH_NOT_ACTIVE
        if sender != player_id or not self.turns.is_turn_owner(player_id):
            return GuessVerdict.REJECTED_NOT_YOUR_TURN
        return self.ledger.check(player_id, cell)

    def _check_win(self, player_id: PlayerId) -> None:
        ledger = self._require_ledger()
        if ledger.has_solved(player_id):
            self._finish(self._build_result(player_id, TerminationReason.SOLUTION_FOUND, self.turns.time_spent))
            return
        if ledger.claimed_cells() == ledger.solution:
            time_spent = self.turns.time_spent
            winner = decide_by_score(self._players(), scores(ledger, self._players()), time_spent)
            self._finish(self._build_result(winner, TerminationReason.BOARD_COMPLETED, time_spent))

    def _rotate(self, transition: TurnTransition) -> None:
        ledger = self._require_ledger()
        outgoing = transition.outgoing
        if outgoing is not None and ledger.quota_exhausted(outgoing) and ledger.quota_exhausted(transition.incoming):
            players = self._players()
            winner = decide_by_score(players, scores(ledger, players), transition.time_spent)
            result = self._build_result(winner, TerminationReason.GUESSES_EXHAUSTED, transition.time_spent)
            self.turns.mark_pending(transition.record.turn_number)
            logger.info("match %s: both quotas spent; winner %s", self.match_id, winner)
            self._broadcast(EventType.MATCH_ENDED, {"result": result.to_dict()})
            return

        self.turns.mark_pending(transition.record.turn_number)
        logger.info(
            "match %s: rotating (%s) %s -> %s after %.2fs",
            self.match_id,
            transition.reason.value,
            outgoing,
            transition.incoming,
            transition.elapsed,
        )
        self._broadcast(
            EventType.TURN_STARTED,
            {
                "record": transition.record,
                "time_spent": transition.time_spent,
                "reason": transition.reason,
                "outgoing": outgoing,
                "elapsed": transition.elapsed,
            },
        )

    def _build_result(
        self,
        winner: PlayerId | None,
        reason: TerminationReason,
        time_spent: dict[PlayerId, float],
    ) -> MatchResult:
        ledger = self._require_ledger()
        return MatchResult(
            match_id=self.match_id,
            winner=winner,
            termination_reason=reason,
            scores=scores(ledger, self._players()),
            time_spent=dict(time_spent),
            turns=self.turns.turn_number,
        )

    def _finish(self, result: MatchResult, *, time_spent: dict[PlayerId, float] | None = None) -> None:
        self.result = result
        self.turns.end(time_spent)
        logger.info(
            "match %s: ended (%s), winner %s",
            self.match_id,
            result.termination_reason.value,
            result.winner if result.winner is not None else "none (draw)",
        )
        self._notify("on_match_ended", result)
        self._refresh_input()

    def _refresh_input(self) -> None:
        enabled = (
            self.ledger is not None
            and self.turns.is_turn_owner(self.local_player_id)
            and not self.ledger.quota_exhausted(self.local_player_id)
        )
        if enabled != self.input_enabled:
            self.input_enabled = enabled
            self._notify("on_input_enabled_changed", enabled)

    # Plumbing

    def _broadcast(self, event_type: EventType, payload: dict[str, Any]) -> None:
        event = MatchEvent.create(
            event_type=event_type,
            match_id=self.match_id,
            sender=self.local_player_id,
            turn=self.turns.turn_number,
            sent_at=self.now(),
            payload=to_serializable(payload),
        )
        self._channel().broadcast(event)

    def _channel(self) -> Channel:
        if self.context.channel is None:
            raise MatchConfigurationError(f"Peer {self.local_player_id} is not attached to a channel.")
        return self.context.channel

    def _require_authority(self, action: str) -> None:
        if not self.context.is_authority:
            raise NotAuthorityError(self.local_player_id, action)

    def _require_ledger(self) -> GuessLedger:
        if self.ledger is None:
            raise ProtocolError("No board has been built for this match.")
        return self.ledger

    def _players(self) -> tuple[PlayerId, PlayerId]:
        if self.turns.players is None:
            raise ProtocolError("The match has not started.")
        return self.turns.players

    def _notify(self, name: str, *args: Any) -> None:
        handler = getattr(self.listener, name, None) if self.listener is not None else None
        if handler is None:
            if name not in self._warned_missing:
                self._warned_missing.add(name)
                logger.warning("match %s: peer %s has no listener for %s; dropping", self.match_id, self.local_player_id, name)
            return
        handler(*args)

    # Views

    def legal_moves(self) -> list[Move]:
        """Intents the local player may issue right now."""
        if not self.input_enabled or self.ledger is None:
            return []
        moves: list[Move] = [
            SubmitGuess.at(cell)
            for cell in self.ledger.board.cells()
            if self.ledger.check(self.local_player_id, cell).accepted
        ]
        moves.append(EndTurn())
        return moves

    def observation(self) -> TentaizuObservation:
        now = self.now()
        ledger = self.ledger
        players = self.turns.players or ()
        ended = self.turns.phase is Phase.MATCH_ENDED
        return TentaizuObservation(
            player_id=self.local_player_id,
            is_authority=self.context.is_authority,
            phase=self.turns.phase,
            grid_size=self.config.grid_size,
            clues=tuple(tuple(row) for row in self.board.rendered_rows()) if self.board is not None else (),
            marks=ledger.marks if ledger is not None else frozenset(),
            my_guesses=ledger.guesses_for(self.local_player_id) if ledger is not None else (),
            guess_counts={player_id: ledger.guess_count(player_id) for player_id in players} if ledger is not None else {},
            guesses_remaining=(
                ledger.guesses_remaining(self.local_player_id)
                if ledger is not None
                else self.config.max_guesses_per_player
            ),
            current_player=self.turns.current_player(),
            is_my_turn=self.turns.is_turn_owner(self.local_player_id),
            input_enabled=self.input_enabled,
            turn_number=self.turns.turn_number,
            remaining_seconds=self.turns.remaining(now),
            countdown_seconds=self.turns.countdown_remaining(now),
            time_spent=self.turns.time_spent,
            move_count=ledger.move_count if ledger is not None else 0,
            can_undo=bool(ledger.history) if ledger is not None else False,
            can_redo=bool(ledger.redo_history) if ledger is not None else False,
            result=self.result.to_dict() if self.result is not None else None,
            solution=ledger.reveal_solution() if ended and ledger is not None else None,
        )

    def replicated_state(self) -> ReplicatedState:
        record = self.turns.record if self.turns.phase is not Phase.IDLE else None
        return ReplicatedState(
            match_id=self.match_id,
            phase=self.turns.phase,
            board=self.board.to_dict() if self.board is not None else None,
            players=tuple(self.turns.players or ()),
            guesses=self.ledger.all_guesses() if self.ledger is not None else {},
            turn=record.to_dict() if record is not None else None,
            time_spent=self.turns.time_spent,
            result=self.result.to_dict() if self.result is not None else None,
        )

    def state_digest(self) -> str:
        """Digest of the replicated state; equal on every peer after the same events."""
        return self.replicated_state().snapshot_digest()

    def write_event_log(self, path: str | Path) -> Path:
        output = Path(path)
        write_jsonl(output, self.events)
        return output
