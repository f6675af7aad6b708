"""Broadcast primitive and an in-process, totally ordered loopback hub."""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Protocol, Sequence

from .events import MatchEvent, decode_event, encode_event

logger = logging.getLogger(__name__)

EventHandler = Callable[[MatchEvent], None]


class Channel(Protocol):
    """Reliable broadcast to every session member, the sender included.

    Implementations must deliver events to all members in one global order.
    """

    def broadcast(self, event: MatchEvent) -> None:
        ...

    def members(self) -> Sequence[str]:
        ...


class LoopbackHub:
    """Relays encoded events between in-process peers.

    Delivery is synchronous and FIFO: events broadcast while another event is
    being delivered are queued and delivered afterwards, so every peer sees
    the same sequence. Buffered events are replayed to late joiners.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, EventHandler] = {}
        self._queue: deque[str] = deque()
        self._buffered: list[str] = []
        self._draining = False
        self._paused = False
        self.delivered: list[MatchEvent] = []

    def connect(self, peer_id: str, handler: EventHandler) -> "LoopbackChannel":
        """Register a peer and replay buffered events to it."""
        if peer_id in self._handlers:
            raise ValueError(f"Peer {peer_id!r} is already connected.")
        self._handlers[peer_id] = handler
        logger.debug("peer %s connected; replaying %d buffered events", peer_id, len(self._buffered))
        for text in list(self._buffered):
            handler(decode_event(text))
        return LoopbackChannel(self, peer_id)

    def disconnect(self, peer_id: str) -> None:
        self._handlers.pop(peer_id, None)

    def members(self) -> list[str]:
        """Return connected peer ids in join order."""
        return list(self._handlers)

    def publish(self, event: MatchEvent) -> None:
        text = encode_event(event)
        if event.buffered:
            self._buffered.append(text)
        self._queue.append(text)
        if not self._paused:
            self._drain()

    @property
    def pending(self) -> int:
        return len(self._queue)

    def pause(self) -> None:
        """Hold queued events until `resume()`; models in-flight messages."""
        self._paused = True

    def resume(self) -> None:
        self._paused = False
        self._drain()

    def _drain(self) -> None:
        if self._draining:
            return
        self._draining = True
        try:
            while self._queue and not self._paused:
                text = self._queue.popleft()
                event = decode_event(text)
                self.delivered.append(event)
                for handler in list(self._handlers.values()):
                    handler(decode_event(text))
        finally:
            self._draining = False


class LoopbackChannel:
    """A peer's handle on a `LoopbackHub`."""

    def __init__(self, hub: LoopbackHub, peer_id: str):
        self.hub = hub
        self.peer_id = peer_id

    def broadcast(self, event: MatchEvent) -> None:
        self.hub.publish(event)

    def members(self) -> list[str]:
        return self.hub.members()
