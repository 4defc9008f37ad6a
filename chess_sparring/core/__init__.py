"""
Core package for Chess Sparring.

This package contains the engine session, the rules collaborator, the
replay timeline, the match state machine, persistence, and the
orchestrator that ties them together.
"""

from .models import (
    AnalysisInfo,
    AnalysisResults,
    Config,
    DifficultyConfig,
    EngineState,
    Evaluation,
    GamePhase,
    MoveResult,
    Settings,
    Winner,
    get_difficulty_config,
)

from .engine import (
    EngineError,
    EngineSession,
    EngineStartupError,
    autodetect_stockfish,
    create_session,
    get_friendly_stockfish_hint,
    uci_connector,
)

from .rules import BoardRules, RulesEngine
from .timeline import Timeline, TimelineEntry
from .match import MatchState
from .storage import JsonFileStore, KeyValueStore, LoadError, MemoryStore
from .game import MatchOrchestrator

__all__ = [
    # Data models
    "AnalysisInfo",
    "AnalysisResults",
    "Config",
    "DifficultyConfig",
    "EngineState",
    "Evaluation",
    "GamePhase",
    "MoveResult",
    "Settings",
    "Winner",
    "get_difficulty_config",

    # Engine components
    "EngineError",
    "EngineSession",
    "EngineStartupError",
    "autodetect_stockfish",
    "create_session",
    "get_friendly_stockfish_hint",
    "uci_connector",

    # Game components
    "BoardRules",
    "RulesEngine",
    "Timeline",
    "TimelineEntry",
    "MatchState",
    "MatchOrchestrator",

    # Persistence
    "JsonFileStore",
    "KeyValueStore",
    "LoadError",
    "MemoryStore",
]
