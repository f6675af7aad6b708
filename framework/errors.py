"""Structured exceptions used across the replication framework."""

from __future__ import annotations

from typing import Any


class TentaizuError(Exception):
    """Base class for framework-level exceptions."""

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable error payload."""
        return {"type": self.__class__.__name__, "message": str(self)}


class MatchConfigurationError(TentaizuError):
    """Raised when a match is configured incorrectly or cannot start."""


class NotAuthorityError(MatchConfigurationError):
    """Raised when an authority-only intent is issued on a non-authority peer."""

    def __init__(self, player_id: str, action: str):
        self.player_id = player_id
        self.action = action
        super().__init__(f"Peer {player_id} is not the authority and cannot {action}.")

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload.update({"player_id": self.player_id, "action": self.action})
        return payload


class ProtocolError(TentaizuError):
    """Raised when a delivered event is malformed or not allowed from its sender."""

    def __init__(self, message: str, *, event_type: str | None = None, sender: str | None = None):
        self.event_type = event_type
        self.sender = sender
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        if self.event_type is not None:
            payload["event_type"] = self.event_type
        if self.sender is not None:
            payload["sender"] = self.sender
        return payload


class AgentExecutionError(TentaizuError):
    """Raised when an automated agent fails to produce an intent."""

    def __init__(self, agent_id: str, message: str):
        self.agent_id = agent_id
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["agent_id"] = self.agent_id
        return payload
