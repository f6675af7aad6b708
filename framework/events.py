"""Broadcast event schema, wire encoding and JSONL logging utilities."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Mapping

from .errors import ProtocolError
from .serialize import json_dumps, json_loads, to_serializable


class EventType(str, Enum):
    """Event kinds exchanged between peers of one match."""

    BOARD_BUILT = "board_built"
    MATCH_STARTED = "match_started"
    TURN_STARTED = "turn_started"
    GUESS_APPLIED = "guess_applied"
    TURN_END_REQUESTED = "turn_end_requested"
    MATCH_ENDED = "match_ended"


# Replayed to peers that connect after the event was first delivered.
BUFFERED_EVENT_TYPES = frozenset({EventType.BOARD_BUILT})

# Only the authority peer may originate these.
AUTHORITY_EVENT_TYPES = frozenset(
    {
        EventType.BOARD_BUILT,
        EventType.MATCH_STARTED,
        EventType.TURN_STARTED,
        EventType.MATCH_ENDED,
    }
)


@dataclass(frozen=True)
class MatchEvent:
    """Single broadcast event, applied identically by every peer."""

    event_type: EventType
    match_id: str
    sender: str
    turn: int
    sent_at: float
    payload: dict[str, Any]

    @property
    def buffered(self) -> bool:
        return self.event_type in BUFFERED_EVENT_TYPES

    def to_dict(self) -> dict[str, Any]:
        """Return JSON-serializable event data."""
        return {
            "event_type": self.event_type.value,
            "match_id": self.match_id,
            "sender": self.sender,
            "turn": self.turn,
            "sent_at": self.sent_at,
            "payload": to_serializable(self.payload),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MatchEvent":
        """Build an event from a dictionary payload."""
        try:
            return cls(
                event_type=EventType(str(data["event_type"])),
                match_id=str(data["match_id"]),
                sender=str(data["sender"]),
                turn=int(data["turn"]),
                sent_at=float(data["sent_at"]),
                payload=dict(data.get("payload", {})),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ProtocolError(f"Malformed event: {exc}") from exc

    @classmethod
    def create(
        cls,
        event_type: EventType,
        match_id: str,
        sender: str,
        turn: int,
        sent_at: float,
        payload: dict[str, Any],
    ) -> "MatchEvent":
        """Construct an event stamped with the sender's network time."""
        return cls(
            event_type=event_type,
            match_id=match_id,
            sender=sender,
            turn=turn,
            sent_at=sent_at,
            payload=payload,
        )


def encode_event(event: MatchEvent) -> str:
    """Encode an event for the wire."""
    return json_dumps(event.to_dict())


def decode_event(text: str | bytes) -> MatchEvent:
    """Decode a wire event, raising `ProtocolError` on malformed input."""
    try:
        data = json_loads(text)
    except ValueError as exc:
        raise ProtocolError(f"Event is not valid JSON: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ProtocolError("Event must be a JSON object.")
    return MatchEvent.from_dict(data)


def write_jsonl(path: str | Path, events: Iterable[MatchEvent]) -> None:
    """Persist events as JSONL to disk."""
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8") as handle:
        for event in events:
            handle.write(encode_event(event))
            handle.write("\n")


def read_jsonl(path: str | Path) -> list[MatchEvent]:
    """Load events written by `write_jsonl`."""
    events: list[MatchEvent] = []
    with Path(path).open("r", encoding="utf-8") as handle:
        for line in handle:
            if line.strip():
                events.append(decode_event(line))
    return events
