"""
Rules-engine collaborator for Chess Sparring.

Move legality, move application, check/mate/draw detection, notation and
undo are delegated to python-chess. A BoardRules instance owns the live
board of one match; the move stack it keeps is what makes take-back possible.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Union

import chess

from .models import MoveResult

logger = logging.getLogger(__name__)

MoveSpec = Union[chess.Move, str]


class RulesEngine(ABC):
    """Contract the match state relies on for everything rule-related."""

    @property
    @abstractmethod
    def position(self) -> str:
        """FEN of the current position."""

    @property
    @abstractmethod
    def turn(self) -> chess.Color:
        """Side to move."""

    @property
    @abstractmethod
    def ply(self) -> int:
        """Number of half-moves played on this board."""

    @abstractmethod
    def legal_moves(self, square: Optional[str] = None) -> List[chess.Move]:
        ...

    @abstractmethod
    def apply_move(self, move_spec: MoveSpec) -> Optional[MoveResult]:
        ...

    @abstractmethod
    def undo(self) -> Optional[str]:
        ...

    @abstractmethod
    def is_check(self) -> bool:
        ...

    @abstractmethod
    def is_game_over(self) -> bool:
        ...

    @abstractmethod
    def is_checkmate(self) -> bool:
        ...

    @abstractmethod
    def termination(self) -> Optional[str]:
        ...

    @abstractmethod
    def load(self, fen: str, moves: Optional[Sequence[str]] = None) -> None:
        ...

    @abstractmethod
    def reset(self) -> None:
        ...


class BoardRules(RulesEngine):
    """python-chess backed rules engine."""

    def __init__(self, fen: Optional[str] = None):
        self._board = chess.Board(fen) if fen else chess.Board()

    @property
    def position(self) -> str:
        return self._board.fen()

    @property
    def turn(self) -> chess.Color:
        return self._board.turn

    @property
    def ply(self) -> int:
        return len(self._board.move_stack)

    @property
    def board(self) -> chess.Board:
        """A copy of the live board, safe to hand to renderers."""
        return self._board.copy()

    def legal_moves(self, square: Optional[str] = None) -> List[chess.Move]:
        moves = list(self._board.legal_moves)
        if square is None:
            return moves
        origin = chess.parse_square(square)
        return [move for move in moves if move.from_square == origin]

    def parse_move(self, move_spec: MoveSpec) -> Optional[chess.Move]:
        """Resolve a chess.Move, UCI string or SAN string to a legal move, or None."""
        if isinstance(move_spec, chess.Move):
            return move_spec if self._board.is_legal(move_spec) else None

        text = str(move_spec).strip()
        if not text:
            return None
        try:
            move = chess.Move.from_uci(text.lower())
            if self._board.is_legal(move):
                return move
        except ValueError:
            pass
        try:
            move = self._board.parse_san(text)
        except ValueError:
            return None
        # parse_san accepts "--" style null moves
        return move if move else None

    def apply_move(self, move_spec: MoveSpec) -> Optional[MoveResult]:
        move = self.parse_move(move_spec)
        if move is None:
            logger.debug(f"Rejected illegal move: {move_spec}")
            return None

        color = self._board.turn
        san = self._board.san(move)
        captured = None
        if self._board.is_capture(move):
            captured = chess.PAWN if self._board.is_en_passant(move) else self._board.piece_type_at(move.to_square)
        self._board.push(move)

        return MoveResult(
            move=move,
            san=san,
            fen=self._board.fen(),
            color=color,
            captured=captured,
            is_check=self._board.is_check(),
        )

    def undo(self) -> Optional[str]:
        if not self._board.move_stack:
            return None
        self._board.pop()
        return self._board.fen()

    def is_check(self) -> bool:
        return self._board.is_check()

    def is_game_over(self) -> bool:
        return self._board.is_game_over()

    def is_checkmate(self) -> bool:
        return self._board.is_checkmate()

    def termination(self) -> Optional[str]:
        """Lower-case termination reason ("checkmate", "stalemate", ...) or None."""
        outcome = self._board.outcome()
        if outcome is None:
            return None
        return outcome.termination.name.lower()

    def load(self, fen: str, moves: Optional[Sequence[str]] = None) -> None:
        """
        Load a position, optionally rebuilding the move stack.

        Args:
            fen: Position to load. When moves are given this is the start position
                they are replayed from.
            moves: SAN moves to replay from fen

        Raises:
            ValueError: If the FEN is invalid or a move does not replay
        """
        board = chess.Board(fen)
        for san in moves or []:
            board.push_san(san)
        self._board = board

    def reset(self) -> None:
        self._board.reset()

    @staticmethod
    def side_to_move(fen: str) -> chess.Color:
        """Colour to move encoded in a FEN string."""
        fields = fen.split()
        if len(fields) < 2 or fields[1] not in ("w", "b"):
            raise ValueError(f"Invalid FEN: {fen!r}")
        return chess.WHITE if fields[1] == "w" else chess.BLACK

    @staticmethod
    def validate_fen(fen: str) -> str:
        """Return the normalised FEN, raising ValueError when it does not describe a valid board."""
        board = chess.Board(fen)
        if not board.is_valid():
            raise ValueError(f"Illegal position: {fen!r}")
        return board.fen()
