"""
Chess Sparring - play practice games against a local UCI engine.

This package provides the match orchestration layer for sparring against
Stockfish: an asynchronous engine session over a python-chess UCI protocol,
a replay timeline, the game-phase state machine, and the orchestrator that
sequences player moves, engine replies, live analysis, take-back and
post-game scoring.
"""

__version__ = "0.1.0"
__license__ = "MIT"

# Core imports
from .core.models import Config, Settings, Evaluation, AnalysisInfo, MoveResult
from .core.engine import EngineSession, create_session
from .core.match import MatchState
from .core.timeline import Timeline
from .core.game import MatchOrchestrator

__all__ = [
    "Config",
    "Settings",
    "Evaluation",
    "AnalysisInfo",
    "MoveResult",
    "EngineSession",
    "create_session",
    "MatchState",
    "Timeline",
    "MatchOrchestrator",
]
