"""Baseline agent implementations."""

from .random_agent import RandomAgent
from .scripted_agent import QueueAgent, ScriptedAgent

__all__ = [
    "QueueAgent",
    "RandomAgent",
    "ScriptedAgent",
]
