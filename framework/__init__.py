"""Framework exports for replicated matches, agents, and event plumbing."""

from .channel import Channel, LoopbackChannel, LoopbackHub
from .clock import ManualClock, MonotonicClock, NetworkClock, SkewedClock
from .errors import MatchConfigurationError, NotAuthorityError, ProtocolError, TentaizuError
from .events import EventType, MatchEvent
from .move import Move
from .player import Agent
from .result import MatchResult, TerminationReason
from .state import Snapshot

__all__ = [
    "Agent",
    "Channel",
    "EventType",
    "LoopbackChannel",
    "LoopbackHub",
    "ManualClock",
    "MatchConfigurationError",
    "MatchEvent",
    "MatchResult",
    "MonotonicClock",
    "Move",
    "NetworkClock",
    "NotAuthorityError",
    "ProtocolError",
    "SkewedClock",
    "Snapshot",
    "TentaizuError",
    "TerminationReason",
]
