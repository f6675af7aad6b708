"""Snapshot conventions for immutable, serializable views of match state."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .serialize import digest, to_serializable


@dataclass(frozen=True)
class Snapshot:
    """Base immutable snapshot with serialization helpers.

    Replicated snapshots must contain only state that every peer derives from
    delivered events, so their digests can be compared across peers.
    """

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable dictionary."""
        return {key: to_serializable(value) for key, value in vars(self).items()}

    def snapshot_digest(self) -> str:
        """Return a deterministic digest for desync detection and logging."""
        return digest(self.to_dict())
