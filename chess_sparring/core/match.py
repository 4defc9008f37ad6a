"""
Match state for Chess Sparring.

MatchState is the authoritative record of one game against the engine:
the live position (through the rules collaborator), the player's colour
and difficulty, the game phase, the latest engine evaluation and hint, the
winner, and the memoized post-game scoring series.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import chess

from .models import (
    AnalysisInfo,
    AnalysisResults,
    Config,
    Evaluation,
    GamePhase,
    MAX_DIFFICULTY,
    MIN_DIFFICULTY,
    MoveResult,
    Settings,
    Winner,
    code_to_color,
    color_to_code,
)
from .rules import BoardRules, MoveSpec, RulesEngine
from .storage import LoadError

logger = logging.getLogger(__name__)


class MatchState:
    """
    Game-phase state machine: Setup -> Playing -> Over, and Over -> Setup for a new game.

    Evaluations and hints are only ever held for the position they were
    computed for and are dropped as soon as a move is accepted.
    """

    def __init__(self, rules: Optional[RulesEngine] = None, config: Optional[Config] = None):
        self.rules = rules or BoardRules()
        self.config = config or Config()
        defaults = Settings()

        self.phase = GamePhase.SETUP
        self.player_color: chess.Color = code_to_color(defaults.player_color)
        self.difficulty: int = defaults.difficulty
        self.last_color: chess.Color = self.player_color
        self.last_difficulty: int = self.difficulty
        self.analysis_depth: int = self.config.analysis_depth

        self.winner: Optional[Winner] = None
        self.termination: Optional[str] = None

        self.evaluation: Optional[Evaluation] = None
        self.evaluation_fen: Optional[str] = None
        self.best_move_hint: Optional[chess.Move] = None
        self.showing_hint = False

        self.analysis_results: Optional[AnalysisResults] = None

    # ------------------------------------------------------------------
    # Read access

    @property
    def position(self) -> str:
        return self.rules.position

    @property
    def turn(self) -> chess.Color:
        return self.rules.turn

    @property
    def engine_color(self) -> chess.Color:
        return not self.player_color

    @property
    def is_player_turn(self) -> bool:
        return self.turn == self.player_color

    @property
    def is_playing(self) -> bool:
        return self.phase is GamePhase.PLAYING

    @property
    def is_over(self) -> bool:
        return self.phase is GamePhase.OVER

    # ------------------------------------------------------------------
    # Phase transitions

    def start_game(self, color: chess.Color, difficulty: int) -> None:
        """Setup -> Playing with the chosen colour and difficulty."""
        if self.phase is not GamePhase.SETUP:
            logger.debug(f"start_game called in phase {self.phase.value}; resetting board")
            self.rules.reset()
        self.player_color = color
        self.difficulty = max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, int(difficulty)))
        self.last_color = self.player_color
        self.last_difficulty = self.difficulty
        self._reset_game_fields()
        self.phase = GamePhase.PLAYING
        logger.info(f"Game started: player {'White' if color == chess.WHITE else 'Black'}, "
                    f"difficulty {self.difficulty}")

    def restart(self) -> None:
        """Rematch with the last used colour and difficulty."""
        self.rules.reset()
        self.player_color = self.last_color
        self.difficulty = self.last_difficulty
        self._reset_game_fields()
        self.phase = GamePhase.PLAYING
        logger.info("Game restarted")

    def new_game(self) -> None:
        """Return to Setup with the default colour and difficulty."""
        defaults = Settings()
        self.rules.reset()
        self.player_color = code_to_color(defaults.player_color)
        self.difficulty = defaults.difficulty
        self._reset_game_fields()
        self.phase = GamePhase.SETUP

    def _reset_game_fields(self) -> None:
        self.winner = None
        self.termination = None
        self.clear_evaluation()
        self.showing_hint = False
        self.analysis_results = None

    # ------------------------------------------------------------------
    # Moves

    def apply_move(self, move_spec: MoveSpec) -> Optional[MoveResult]:
        """
        Play a move through the rules collaborator.

        Returns:
            MoveResult, or None for illegal input or when no game is in progress
            (the state is left untouched)
        """
        if self.phase is not GamePhase.PLAYING:
            return None

        result = self.rules.apply_move(move_spec)
        if result is None:
            return None

        self.clear_evaluation()
        self.showing_hint = False
        self.detect_game_end()
        return result

    def detect_game_end(self) -> bool:
        """Move to Over if the position is terminal; the mover wins a checkmate, anything else is a draw."""
        if not self.rules.is_game_over():
            return False

        self.phase = GamePhase.OVER
        self.termination = self.rules.termination()
        if self.rules.is_checkmate():
            # The side to move is mated, so the side that just moved won
            self.winner = Winner.from_color(not self.rules.turn)
        else:
            self.winner = Winner.DRAW
        logger.info(f"Game over: {self.winner.display} ({self.termination})")
        return True

    def undo_last_ply(self) -> bool:
        """Take back one half-move. Only valid while Playing."""
        if self.phase is not GamePhase.PLAYING:
            return False
        if self.rules.undo() is None:
            return False
        self.clear_evaluation()
        self.showing_hint = False
        return True

    def resign(self, side: chess.Color) -> bool:
        """Playing -> Over with the other side as winner."""
        if self.phase is not GamePhase.PLAYING:
            return False
        self.phase = GamePhase.OVER
        self.winner = Winner.from_color(not side)
        self.termination = "resignation"
        self.clear_evaluation()
        logger.info(f"{'White' if side == chess.WHITE else 'Black'} resigned")
        return True

    # ------------------------------------------------------------------
    # Engine feedback

    def set_evaluation(self, info: AnalysisInfo, fen: str) -> bool:
        """
        Store an analysis snapshot computed for `fen`.

        Returns:
            False (and stores nothing) if the position has moved on since
        """
        if fen != self.position or self.phase not in (GamePhase.PLAYING, GamePhase.OVER):
            return False
        self.evaluation = info.to_evaluation()
        self.evaluation_fen = fen
        if info.best_move:
            try:
                self.best_move_hint = chess.Move.from_uci(info.best_move)
            except ValueError:
                logger.debug(f"Ignoring unparsable hint: {info.best_move}")
        return True

    def clear_evaluation(self) -> None:
        self.evaluation = None
        self.evaluation_fen = None
        self.best_move_hint = None

    def toggle_hint(self) -> bool:
        self.showing_hint = not self.showing_hint
        return self.showing_hint

    # ------------------------------------------------------------------
    # Persistence

    def serialize(self) -> Dict[str, Any]:
        return {
            "fen": self.position,
            "playerColor": color_to_code(self.player_color),
            "difficulty": self.difficulty,
            "analysisResults": self.analysis_results.to_dict() if self.analysis_results else None,
        }

    def deserialize(self, data: Dict[str, Any], start_fen: Optional[str] = None,
                    moves: Optional[list] = None) -> None:
        """
        Restore a saved match. The record is validated in full before anything changes.

        Args:
            data: Record produced by serialize()
            start_fen: Start position of the saved timeline, used with `moves`
                to rebuild the move stack so take-back works after loading
            moves: SAN moves of the saved timeline

        Raises:
            LoadError: If the record is incomplete or inconsistent
        """
        try:
            fen = BoardRules.validate_fen(data["fen"])
            color = code_to_color(data["playerColor"])
            difficulty = int(data["difficulty"])
            if not MIN_DIFFICULTY <= difficulty <= MAX_DIFFICULTY:
                raise ValueError(f"difficulty {difficulty} out of range")
            raw_results = data.get("analysisResults")
            results = AnalysisResults.from_dict(raw_results) if raw_results else None
        except (KeyError, TypeError, ValueError) as e:
            raise LoadError(f"Corrupt saved game: {e}") from e

        replayed = False
        if start_fen and moves:
            try:
                scratch = BoardRules()
                scratch.load(start_fen, moves)
                replayed = scratch.position == fen
            except ValueError as e:
                logger.warning(f"Saved move list does not replay, loading position only: {e}")
        if replayed:
            self.rules.load(start_fen, moves)
        else:
            self.rules.load(fen)

        self.player_color = color
        self.difficulty = difficulty
        self.last_color = color
        self.last_difficulty = difficulty
        self._reset_game_fields()
        self.analysis_results = results
        self.phase = GamePhase.PLAYING
        self.detect_game_end()
