"""
Core data models for Chess Sparring.

This module defines the fundamental data structures shared by the engine
session, the match state machine, the timeline and the orchestrator:
configuration, user settings, engine evaluations and move results.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import chess
import chess.engine as chess_engine


# Difficulty scale exposed to the player
MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 10
DIFFICULTY_OPTIONS = list(range(MIN_DIFFICULTY, MAX_DIFFICULTY + 1))

# Live analysis depth slider bounds
ANALYSIS_DEPTH_MIN = 16
ANALYSIS_DEPTH_MAX = 22

# Centipawn value used to place mate scores on the same axis as cp scores
MATE_SCORE = 10000


class GamePhase(str, Enum):
    """Lifecycle of a match."""
    SETUP = "setup"
    PLAYING = "playing"
    OVER = "over"


class Winner(str, Enum):
    """Final result of a finished match."""
    WHITE = "white"
    BLACK = "black"
    DRAW = "draw"

    @classmethod
    def from_color(cls, color: chess.Color) -> Winner:
        return cls.WHITE if color == chess.WHITE else cls.BLACK

    @property
    def display(self) -> str:
        if self is Winner.DRAW:
            return "Draw"
        return f"{self.value.title()} wins"


class EngineState(str, Enum):
    """Lifecycle of an engine session."""
    UNSTARTED = "unstarted"
    HANDSHAKING = "handshaking"
    READY = "ready"
    BUSY = "busy"
    FAILED = "failed"
    CLOSED = "closed"


@dataclass(frozen=True)
class DifficultyConfig:
    """Engine settings derived from a 1-10 difficulty level."""

    skill_level: int
    depth: int


def get_difficulty_config(level: int, native_max: int = 20, depth_cap: int = 15) -> DifficultyConfig:
    """
    Map the 1-10 difficulty scale to the engine's native skill scale.

    Args:
        level: Difficulty chosen by the player (clamped to 1..10)
        native_max: Highest skill level the engine accepts
        depth_cap: Hard upper bound on search depth

    Returns:
        DifficultyConfig with the skill level and search depth to use
    """
    level = max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, int(level)))
    skill = int(math.floor((level - 1) * native_max / 9 + 0.5))
    depth = min(level + 2, depth_cap)
    return DifficultyConfig(skill_level=skill, depth=depth)


def color_to_code(color: chess.Color) -> str:
    """Convert a python-chess colour to the 'w'/'b' code used in saved records."""
    return "w" if color == chess.WHITE else "b"


def code_to_color(code: str) -> chess.Color:
    """Convert a 'w'/'b' (or 'white'/'black') code to a python-chess colour."""
    normalized = str(code).strip().lower()
    if normalized in ("w", "white"):
        return chess.WHITE
    if normalized in ("b", "black"):
        return chess.BLACK
    raise ValueError(f"Unknown colour code: {code!r}")


def mate_to_centipawns(mate: int) -> int:
    """Place a mate-in-N score on the centipawn axis (mate 0 = side to move is mated)."""
    if mate > 0:
        return MATE_SCORE - abs(mate) * 100
    return -MATE_SCORE + abs(mate) * 100


@dataclass
class Evaluation:
    """Engine evaluation snapshot, relative to the side to move."""

    depth: int
    cp: Optional[int] = None
    mate: Optional[int] = None

    @property
    def is_mate(self) -> bool:
        return self.mate is not None

    def relative_centipawns(self) -> int:
        """Score from the side to move's perspective, mates mapped onto the cp axis."""
        if self.mate is not None:
            return mate_to_centipawns(self.mate)
        return self.cp or 0

    def pov(self, turn: chess.Color) -> chess_engine.PovScore:
        """Wrap the score as a python-chess PovScore for the given side to move."""
        return chess_engine.PovScore(chess_engine.Cp(self.relative_centipawns()), turn)

    def white_centipawns(self, turn: chess.Color) -> int:
        """Score from White's perspective given the side to move of the evaluated position."""
        return self.pov(turn).white().score()

    def format(self, turn: chess.Color) -> str:
        """Human readable score from White's perspective ("+0.35", "#3", "#-2")."""
        if self.mate is not None:
            mate = self.mate if turn == chess.WHITE else -self.mate
            return f"#{mate}"
        return f"{self.white_centipawns(turn) / 100:+.2f}"


@dataclass
class AnalysisInfo:
    """One parsed progress line streamed by the engine during a search."""

    depth: int
    cp: Optional[int] = None
    mate: Optional[int] = None
    pv: List[str] = field(default_factory=list)
    search_id: Optional[int] = None

    @classmethod
    def from_engine(cls, info: chess_engine.InfoDict, search_id: Optional[int] = None) -> Optional[AnalysisInfo]:
        """
        Build from a python-chess info dictionary.

        Returns:
            AnalysisInfo, or None for progress lines without a depth and score
        """
        score = info.get("score")
        depth = info.get("depth")
        if score is None or depth is None:
            return None

        relative = score.relative
        return cls(
            depth=depth,
            cp=relative.score(),
            mate=relative.mate(),
            pv=[move.uci() for move in info.get("pv", [])],
            search_id=search_id,
        )

    @property
    def best_move(self) -> Optional[str]:
        """First move of the principal variation, if any."""
        return self.pv[0] if self.pv else None

    @property
    def has_score(self) -> bool:
        return self.cp is not None or self.mate is not None

    def to_evaluation(self) -> Evaluation:
        return Evaluation(depth=self.depth, cp=self.cp, mate=self.mate)


@dataclass
class MoveResult:
    """Outcome of an accepted move."""

    move: chess.Move
    san: str
    fen: str
    color: chess.Color
    captured: Optional[chess.PieceType] = None
    is_check: bool = False

    @property
    def from_square(self) -> str:
        return chess.square_name(self.move.from_square)

    @property
    def to_square(self) -> str:
        return chess.square_name(self.move.to_square)

    @property
    def is_capture(self) -> bool:
        return self.captured is not None


@dataclass
class AnalysisResults:
    """Post-game evaluation series, one White-perspective score per recorded position."""

    evaluations: List[Optional[int]]
    movetime: int

    def to_dict(self) -> Dict[str, Any]:
        return {"evaluations": list(self.evaluations), "movetime": self.movetime}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> AnalysisResults:
        evaluations = data["evaluations"]
        if not isinstance(evaluations, list):
            raise ValueError("evaluations must be a list")
        values = [None if value is None else int(value) for value in evaluations]
        return cls(evaluations=values, movetime=int(data.get("movetime", 0)))


@dataclass
class Config:
    """Configuration settings for a sparring session."""

    # Engine settings
    stockfish_path: Optional[str] = None
    native_skill_max: int = 20
    depth_cap: int = 15

    # Timing (seconds)
    move_timeout: float = 15.0
    analysis_debounce: float = 0.05
    engine_move_delay: float = 0.2
    first_move_delay: float = 0.3

    # Analysis settings
    analysis_depth: int = 18
    scoring_movetime_ms: int = 300
    scoring_timeout_grace: float = 5.0

    # Persistence
    save_file: str = "~/.chess_sparring.json"

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return {
            field.name: getattr(self, field.name)
            for field in self.__dataclass_fields__.values()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Config:
        """Create config from dictionary."""
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class Settings:
    """User preferences remembered between sessions."""

    theme: str = "classic"
    volume: float = 0.5
    sound_enabled: bool = True
    player_color: str = "w"
    difficulty: int = 5

    def to_dict(self) -> Dict[str, Any]:
        return {
            "theme": self.theme,
            "volume": self.volume,
            "soundEnabled": self.sound_enabled,
            "playerColor": self.player_color,
            "difficulty": self.difficulty,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Settings:
        """Merge a stored record over the defaults, ignoring unusable values."""
        settings = cls()
        if isinstance(data.get("theme"), str):
            settings.theme = data["theme"]
        if isinstance(data.get("volume"), (int, float)):
            settings.volume = max(0.0, min(1.0, float(data["volume"])))
        if isinstance(data.get("soundEnabled"), bool):
            settings.sound_enabled = data["soundEnabled"]
        if data.get("playerColor") in ("w", "b"):
            settings.player_color = data["playerColor"]
        if isinstance(data.get("difficulty"), int) and MIN_DIFFICULTY <= data["difficulty"] <= MAX_DIFFICULTY:
            settings.difficulty = data["difficulty"]
        return settings
