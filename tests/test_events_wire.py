"""Wire encoding, JSONL logs and loopback delivery order."""

from __future__ import annotations

import pytest

from framework.channel import LoopbackHub
from framework.errors import ProtocolError
from framework.events import EventType, MatchEvent, decode_event, encode_event, read_jsonl, write_jsonl
from framework.serialize import digest, json_dumps


def _event(event_type: EventType = EventType.GUESS_APPLIED, sender: str = "1", **payload) -> MatchEvent:
    return MatchEvent.create(
        event_type=event_type,
        match_id="wire",
        sender=sender,
        turn=1,
        sent_at=2.5,
        payload=payload or {"player_id": sender, "cell": [1, 2]},
    )


def test_encode_decode_preserves_event() -> None:
    event = _event()

    assert decode_event(encode_event(event)) == event


def test_decode_rejects_malformed_input() -> None:
    with pytest.raises(ProtocolError):
        decode_event("{not json")
    with pytest.raises(ProtocolError):
        decode_event("[1, 2]")
    with pytest.raises(ProtocolError):
        decode_event('{"event_type": "guess_applied"}')
    with pytest.raises(ProtocolError):
        decode_event(json_dumps({**_event().to_dict(), "event_type": "teleport"}))


def test_serialization_is_deterministic_for_sets() -> None:
    assert digest({"cells": {(2, 1), (0, 3)}}) == digest({"cells": {(0, 3), (2, 1)}})


def test_hub_delivers_to_sender_and_peers_in_one_order() -> None:
    hub = LoopbackHub()
    seen: dict[str, list[str]] = {"1": [], "2": []}

    def _handler(peer_id: str):
        def _receive(event: MatchEvent) -> None:
            seen[peer_id].append(event.event_type.value)
            # Broadcasting while delivering queues behind the current event.
            if peer_id == "1" and event.event_type is EventType.TURN_END_REQUESTED:
                channels["1"].broadcast(_event(EventType.TURN_STARTED, record={}))

        return _receive

    channels = {peer_id: hub.connect(peer_id, _handler(peer_id)) for peer_id in ("1", "2")}
    channels["2"].broadcast(_event(EventType.TURN_END_REQUESTED, sender="2", turn_number=1))
    channels["2"].broadcast(_event(sender="2"))

    expected = ["turn_end_requested", "turn_started", "guess_applied"]
    assert seen["1"] == expected
    assert seen["2"] == expected
    assert [event.event_type.value for event in hub.delivered] == expected


def test_buffered_events_replay_to_late_joiners_only() -> None:
    hub = LoopbackHub()
    early: list[MatchEvent] = []
    hub.connect("1", early.append)
    hub.publish(_event(EventType.BOARD_BUILT, solution=[[0, 0]]))
    hub.publish(_event())

    late: list[MatchEvent] = []
    hub.connect("2", late.append)

    assert [event.event_type for event in early] == [EventType.BOARD_BUILT, EventType.GUESS_APPLIED]
    assert [event.event_type for event in late] == [EventType.BOARD_BUILT]
    assert hub.members() == ["1", "2"]


def test_duplicate_peer_ids_are_rejected() -> None:
    hub = LoopbackHub()
    hub.connect("1", lambda event: None)

    with pytest.raises(ValueError):
        hub.connect("1", lambda event: None)


def test_jsonl_round_trip(tmp_path) -> None:
    events = [_event(EventType.BOARD_BUILT, solution=[[0, 0]]), _event()]
    path = tmp_path / "logs" / "wire.jsonl"

    write_jsonl(path, events)

    assert read_jsonl(path) == events
    assert len(path.read_text(encoding="utf-8").splitlines()) == 2
