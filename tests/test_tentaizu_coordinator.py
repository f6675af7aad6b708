"""Replicated match flow across two coordinators on a loopback hub."""

from __future__ import annotations

import logging

import pytest

from framework.channel import LoopbackHub
from framework.clock import ManualClock
from framework.errors import MatchConfigurationError, NotAuthorityError
from framework.events import EventType, MatchEvent, read_jsonl
from framework.result import TerminationReason
from tentaizu.tentaizu_config import MatchConfig
from tentaizu.tentaizu_game import MatchCoordinator, PeerContext
from tentaizu.tentaizu_ledger import GuessVerdict
from tentaizu.tentaizu_moves import EndTurn, SubmitGuess, Unmark
from tentaizu.tentaizu_simulation import LocalMatch
from tentaizu.tentaizu_state import Cell, Phase

SOLUTION = (
    Cell(0, 0),
    Cell(1, 2),
    Cell(2, 5),
    Cell(3, 0),
    Cell(3, 3),
    Cell(4, 6),
    Cell(5, 1),
    Cell(5, 4),
    Cell(6, 2),
    Cell(6, 6),
)
ZERO_CELLS = (Cell(0, 4), Cell(0, 5), Cell(0, 6))


class _RecordingListener:
    def __init__(self) -> None:
        self.calls: list[tuple[str, object]] = []

    def on_board_built(self, board) -> None:
        self.calls.append(("board_built", board.grid_size))

    def on_match_started(self, players, first_player, start_time) -> None:
        self.calls.append(("match_started", first_player))

    def on_turn_started(self, record) -> None:
        self.calls.append(("turn_started", record.player_id))

    def on_guess_applied(self, player_id, cell) -> None:
        self.calls.append(("guess_applied", (player_id, cell)))

    def on_match_ended(self, result) -> None:
        self.calls.append(("match_ended", result.winner))

    def on_input_enabled_changed(self, enabled) -> None:
        self.calls.append(("input_enabled", enabled))


def _started(config: MatchConfig | None = None, **kwargs) -> LocalMatch:
    match = LocalMatch(config or MatchConfig(), match_id="match-test", seed=11, **kwargs)
    match.setup(solution=SOLUTION)
    match.advance(match.config.countdown)
    return match


def _seats(match: LocalMatch) -> tuple[str, str]:
    owner = match.authority.turns.current_player()
    assert owner is not None
    return owner, match.authority.turns.other_player(owner)


def _forge(match: LocalMatch, event_type: EventType, sender: str, payload: dict) -> None:
    match.hub.publish(
        MatchEvent.create(
            event_type=event_type,
            match_id=match.match_id,
            sender=sender,
            turn=match.authority.turns.turn_number,
            sent_at=match.clock.now(),
            payload=payload,
        )
    )


def test_setup_replicates_board_and_first_turn_on_every_peer() -> None:
    match = _started()
    owner, other = _seats(match)

    for peer in match.peers.values():
        assert peer.phase is Phase.TURN_ACTIVE
        assert peer.board is not None and peer.board.solution == frozenset(SOLUTION)
        assert peer.turns.current_player() == owner
        assert peer.authority_id == "1"
    assert match.peer(owner).input_enabled
    assert not match.peer(other).input_enabled
    assert match.converged()


def test_countdown_keeps_input_disabled() -> None:
    match = LocalMatch(MatchConfig(), match_id="match-test", seed=11)
    match.setup(solution=SOLUTION)
    match.advance(1.0)

    for peer in match.peers.values():
        assert peer.phase is Phase.COUNTDOWN
        assert not peer.input_enabled
        assert peer.request_submit_guess(Cell(0, 0)) is GuessVerdict.REJECTED_MATCH_NOT_ACTIVE
        assert peer.observation().countdown_seconds == pytest.approx(1.0)


def test_player_submitting_full_solution_wins_on_every_peer() -> None:
    match = _started(MatchConfig(max_guesses_per_player=10))
    owner, _ = _seats(match)

    for cell in SOLUTION:
        assert match.apply_move(owner, SubmitGuess.at(cell)) is GuessVerdict.ACCEPTED

    for peer in match.peers.values():
        assert peer.phase is Phase.MATCH_ENDED
        assert peer.result is not None
        assert peer.result.winner == owner
        assert peer.result.termination_reason is TerminationReason.SOLUTION_FOUND
        assert not peer.input_enabled
        assert peer.observation().solution == frozenset(SOLUTION)
    assert match.converged()


def test_sixth_guess_is_rejected_and_count_stays_five() -> None:
    match = _started()
    owner, _ = _seats(match)
    peer = match.peer(owner)
    for cell in SOLUTION[:5]:
        assert peer.request_submit_guess(cell) is GuessVerdict.ACCEPTED
    events_before = len(match.hub.delivered)
    history_before = peer.ledger.history

    verdict = peer.request_submit_guess(SOLUTION[5])

    assert verdict is GuessVerdict.REJECTED_QUOTA_EXCEEDED
    assert len(match.hub.delivered) == events_before
    for coordinator in match.peers.values():
        assert coordinator.ledger.guess_count(owner) == 5
    assert peer.ledger.history == history_before
    assert not peer.input_enabled


def test_turn_timeout_rotates_and_updates_time_spent() -> None:
    match = _started()
    owner, other = _seats(match)
    first_record = match.authority.turns.record

    match.advance(30.0)

    for peer in match.peers.values():
        record = peer.turns.record
        assert record.player_id == other
        assert record.turn_number == first_record.turn_number + 1
        assert record.start_time == pytest.approx(first_record.start_time + 30.0)
        assert peer.turns.time_spent[owner] == pytest.approx(30.0)
        assert peer.turns.time_spent[other] == 0.0
    assert match.peer(other).input_enabled
    assert not match.peer(owner).input_enabled
    assert match.converged()


def test_rotation_is_not_repeated_while_transition_is_in_flight() -> None:
    match = _started()
    owner, other = _seats(match)
    match.hub.pause()

    match.advance(30.0)
    match.advance(1.0)
    match.advance(1.0)

    assert match.hub.pending == 1
    match.hub.resume()
    assert match.authority.turns.current_player() == other
    assert match.authority.turns.turn_number == 2


def test_guess_in_flight_across_rotation_is_rejected_everywhere() -> None:
    match = _started()
    owner, other = _seats(match)
    match.hub.pause()

    match.advance(30.0)
    # The owner has not seen the rotation yet, so the local pre-check passes.
    assert match.peer(owner).request_submit_guess(Cell(0, 0)) is GuessVerdict.ACCEPTED
    match.hub.resume()

    for peer in match.peers.values():
        assert peer.last_verdict is GuessVerdict.REJECTED_NOT_YOUR_TURN
        assert peer.ledger.guess_count(owner) == 0
        assert peer.turns.current_player() == other
    assert match.converged()


def test_out_of_turn_and_impersonated_guesses_are_rejected() -> None:
    match = _started()
    owner, other = _seats(match)

    assert match.peer(other).request_submit_guess(Cell(0, 0)) is GuessVerdict.REJECTED_NOT_YOUR_TURN
    _forge(match, EventType.GUESS_APPLIED, other, {"player_id": other, "cell": [0, 0]})
    for peer in match.peers.values():
        assert peer.last_verdict is GuessVerdict.REJECTED_NOT_YOUR_TURN

    _forge(match, EventType.GUESS_APPLIED, other, {"player_id": owner, "cell": [0, 0]})
    for peer in match.peers.values():
        assert peer.last_verdict is GuessVerdict.REJECTED_NOT_YOUR_TURN
        assert peer.ledger.all_guesses() == {}
    assert match.converged()


def test_authority_events_from_other_peers_are_dropped(caplog) -> None:
    match = _started()
    _, other = _seats(match)
    non_authority = "2"
    digests = match.digests()

    with caplog.at_level(logging.WARNING, logger="tentaizu.tentaizu_game"):
        _forge(
            match,
            EventType.TURN_STARTED,
            non_authority,
            {"record": {"player_id": other, "start_time": 0.0, "duration": 30.0, "turn_number": 9}},
        )
        _forge(match, EventType.GUESS_APPLIED, other, {"player_id": other, "cell": "not-a-cell"})

    assert match.digests() == digests
    assert "dropped turn_started" in caplog.text
    assert "dropped guess_applied" in caplog.text


def test_events_for_another_match_are_dropped() -> None:
    match = _started()
    owner, _ = _seats(match)
    digests = match.digests()

    match.hub.publish(
        MatchEvent.create(
            event_type=EventType.GUESS_APPLIED,
            match_id="other-match",
            sender=owner,
            turn=1,
            sent_at=0.0,
            payload={"player_id": owner, "cell": [0, 0]},
        )
    )

    assert match.digests() == digests


def test_end_turn_hands_the_turn_to_the_other_player() -> None:
    match = _started()
    owner, other = _seats(match)
    match.advance(3.0)

    assert match.apply_move(owner, EndTurn()) is True
    assert match.apply_move(owner, EndTurn()) is False

    for peer in match.peers.values():
        assert peer.turns.current_player() == other
        assert peer.turns.time_spent[owner] == pytest.approx(3.0)
    assert match.converged()


def test_guesses_exhausted_ends_match_with_score_tie_break() -> None:
    match = _started()
    owner, other = _seats(match)
    for cell in SOLUTION[:3] + ZERO_CELLS[:2]:
        match.apply_move(owner, SubmitGuess.at(cell))
    match.advance(1.0)
    assert match.authority.turns.current_player() == other

    for cell in SOLUTION[:5]:
        match.apply_move(other, SubmitGuess.at(cell))
    match.advance(1.0)

    for peer in match.peers.values():
        assert peer.result is not None
        assert peer.result.termination_reason is TerminationReason.GUESSES_EXHAUSTED
        assert peer.result.winner == other
        assert peer.result.scores == {owner: 3, other: 5}
    assert match.converged()


def test_shared_board_completion_prefers_faster_player_on_equal_scores() -> None:
    match = _started()
    owner, other = _seats(match)
    for cell in SOLUTION[:5]:
        match.apply_move(owner, SubmitGuess.at(cell))
    match.advance(2.0)

    for cell in SOLUTION[5:]:
        match.apply_move(other, SubmitGuess.at(cell))

    for peer in match.peers.values():
        assert peer.result is not None
        assert peer.result.termination_reason is TerminationReason.BOARD_COMPLETED
        assert peer.result.scores == {owner: 5, other: 5}
        assert peer.result.winner == other
    assert match.converged()


def test_skewed_peer_clock_does_not_break_convergence() -> None:
    match = _started(skews={"2": 0.75})
    owner, other = _seats(match)

    match.apply_move(owner, SubmitGuess.at(SOLUTION[0]))
    match.advance(30.0, step=0.5)
    match.apply_move(other, SubmitGuess.at(SOLUTION[1]))
    match.advance(10.0, step=0.5)

    assert match.converged()
    skewed = match.peer("2").observation().remaining_seconds
    exact = match.peer("1").observation().remaining_seconds
    assert skewed == pytest.approx(exact - 0.75)


def test_host_start_checks_happen_before_broadcast() -> None:
    hub = LoopbackHub()
    clock = ManualClock()
    host = MatchCoordinator(MatchConfig(), PeerContext("1", True, clock), match_id="solo")
    host.attach(hub.connect("1", host.receive))

    with pytest.raises(MatchConfigurationError):
        host.request_host_start_match()
    host.generate_board(SOLUTION)
    with pytest.raises(MatchConfigurationError):
        host.request_host_start_match()

    assert [event.event_type for event in hub.delivered] == [EventType.BOARD_BUILT]


def test_non_authority_cannot_generate_or_start() -> None:
    match = LocalMatch(MatchConfig(), match_id="match-test", seed=11)

    with pytest.raises(NotAuthorityError):
        match.peer("2").generate_board()
    with pytest.raises(NotAuthorityError):
        match.peer("2").request_host_start_match()
    assert match.hub.delivered == []


def test_late_joiner_receives_buffered_board() -> None:
    hub = LoopbackHub()
    clock = ManualClock()
    host = MatchCoordinator(MatchConfig(), PeerContext("1", True, clock), match_id="late")
    host.attach(hub.connect("1", host.receive))
    host.generate_board(SOLUTION)

    guest = MatchCoordinator(MatchConfig(), PeerContext("2", False, clock), match_id="late")
    guest.attach(hub.connect("2", guest.receive))

    assert guest.board is not None
    assert guest.board.solution == frozenset(SOLUTION)
    assert guest.authority_id == "1"
    assert guest.state_digest() == host.state_digest()


def test_listener_receives_notifications() -> None:
    listeners = {"1": _RecordingListener(), "2": _RecordingListener()}
    match = _started(listeners=listeners)
    owner, _ = _seats(match)
    match.apply_move(owner, SubmitGuess.at(SOLUTION[0]))

    calls = [name for name, _ in listeners[owner].calls]
    assert calls[:3] == ["board_built", "match_started", "turn_started"]
    assert ("input_enabled", True) in listeners[owner].calls
    assert ("guess_applied", (owner, SOLUTION[0])) in listeners["1"].calls
    assert ("guess_applied", (owner, SOLUTION[0])) in listeners["2"].calls


def test_missing_listener_is_logged_and_state_stays_consistent(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="tentaizu.tentaizu_game"):
        match = _started()

    assert "no listener for on_board_built" in caplog.text
    assert match.converged()
    assert match.authority.phase is Phase.TURN_ACTIVE


def test_local_marks_do_not_affect_replicated_digest() -> None:
    match = _started()
    owner, _ = _seats(match)
    match.apply_move(owner, SubmitGuess.at(SOLUTION[0]))
    digests = match.digests()

    peer = match.peer(owner)
    assert peer.undo() is not None
    assert SOLUTION[0] not in peer.observation().marks
    assert peer.observation().my_guesses == (SOLUTION[0],)
    assert match.digests() == digests
    assert peer.redo() is not None
    assert peer.observation().can_undo


def test_legal_moves_only_for_turn_owner() -> None:
    match = _started()
    owner, other = _seats(match)

    owner_moves = match.peer(owner).legal_moves()
    assert EndTurn() in owner_moves
    assert SubmitGuess.at(Cell(0, 1)) not in owner_moves
    assert SubmitGuess.at(Cell(0, 0)) in owner_moves
    assert match.peer(other).legal_moves() == []


def test_event_log_round_trip(tmp_path) -> None:
    match = _started()
    owner, _ = _seats(match)
    match.apply_move(owner, SubmitGuess.at(SOLUTION[0]))

    path = match.authority.write_event_log(tmp_path / "events" / "match.jsonl")
    loaded = read_jsonl(path)

    assert [event.event_type for event in loaded] == [
        EventType.BOARD_BUILT,
        EventType.MATCH_STARTED,
        EventType.TURN_STARTED,
        EventType.GUESS_APPLIED,
    ]
    assert loaded == match.authority.events


def test_finished_match_needs_a_new_board_before_restart() -> None:
    match = _started(MatchConfig(max_guesses_per_player=10))
    owner, _ = _seats(match)
    for cell in SOLUTION:
        match.apply_move(owner, SubmitGuess.at(cell))
    assert match.authority.phase is Phase.MATCH_ENDED
    delivered = len(match.hub.delivered)

    with pytest.raises(MatchConfigurationError, match="Build a new board"):
        match.authority.request_host_start_match()
    match.advance(match.config.countdown)

    assert len(match.hub.delivered) == delivered
    for peer in match.peers.values():
        assert peer.phase is Phase.MATCH_ENDED

    match.authority.generate_board(SOLUTION)
    match.authority.request_host_start_match()
    match.advance(match.config.countdown)

    for peer in match.peers.values():
        assert peer.phase is Phase.TURN_ACTIVE
        assert peer.result is None
        assert peer.ledger is not None and peer.ledger.claimed_cells() == frozenset()
    assert match.converged()


def test_host_drops_boards_built_by_other_peers(caplog) -> None:
    hub = LoopbackHub()
    clock = ManualClock()
    host = MatchCoordinator(MatchConfig(), PeerContext("1", True, clock), match_id="hijack")
    host.attach(hub.connect("1", host.receive))

    with caplog.at_level(logging.WARNING, logger="tentaizu.tentaizu_game"):
        hub.publish(
            MatchEvent.create(
                event_type=EventType.BOARD_BUILT,
                match_id="hijack",
                sender="2",
                turn=0,
                sent_at=clock.now(),
                payload={
                    "grid_size": 7,
                    "star_count": 10,
                    "solution": [[cell.row, cell.col] for cell in SOLUTION],
                },
            )
        )

    assert host.board is None
    assert host.authority_id is None
    assert "dropped board_built" in caplog.text

    host.generate_board(SOLUTION)
    assert host.authority_id == "1"


def test_fractional_cells_are_rejected_without_crashing() -> None:
    match = _started()
    owner, _ = _seats(match)
    digests = match.digests()

    assert match.peer(owner).request_submit_guess(Cell(2.5, 1)) is GuessVerdict.REJECTED_OUT_OF_BOUNDS
    assert match.peer(owner).unmark(Cell(2.5, 1)) is False
    with pytest.raises(ValueError):
        SubmitGuess(row=2.5, col=1)
    with pytest.raises(ValueError):
        SubmitGuess(row=True, col=1)
    with pytest.raises(ValueError):
        Unmark(row=0, col=1.0)
    assert match.digests() == digests
