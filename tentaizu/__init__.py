"""Tentaizu package exports."""

from .tentaizu_board import Board, BoardGenerator, new_seed
from .tentaizu_config import MatchConfig
from .tentaizu_game import MatchCoordinator, MatchListener, PeerContext
from .tentaizu_ledger import GuessLedger, GuessVerdict, HistoryEntry
from .tentaizu_moves import EndTurn, MoveType, Redo, SubmitGuess, Undo, Unmark, move_from_dict
from .tentaizu_observation import ReplicatedState, TentaizuObservation
from .tentaizu_simulation import LocalMatch, SimulationConfig, SimulationRun, run_simulated_match
from .tentaizu_state import Cell, ClueKind, ClueValue, Phase, TurnRecord
from .tentaizu_turns import TransitionReason, TurnStateMachine, TurnTransition

__all__ = [
    "Board",
    "BoardGenerator",
    "Cell",
    "ClueKind",
    "ClueValue",
    "EndTurn",
    "GuessLedger",
    "GuessVerdict",
    "HistoryEntry",
    "LocalMatch",
    "MatchConfig",
    "MatchCoordinator",
    "MatchListener",
    "MoveType",
    "Phase",
    "PeerContext",
    "Redo",
    "ReplicatedState",
    "SimulationConfig",
    "SimulationRun",
    "SubmitGuess",
    "TentaizuObservation",
    "TransitionReason",
    "TurnRecord",
    "TurnStateMachine",
    "TurnTransition",
    "Undo",
    "Unmark",
    "move_from_dict",
    "new_seed",
    "run_simulated_match",
]
