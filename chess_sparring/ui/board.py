"""
Chess board visualization for Chess Sparring.

This module renders the live or replayed position with Unicode pieces and
themed square colours, plus the side panels of the terminal client: the
evaluation bar, the move list with the replay cursor, and the post-game
evaluation graph.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set, Union

import chess
from rich.align import Align
from rich.box import ROUNDED
from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..core.models import MATE_SCORE, Evaluation, Winner


@dataclass(frozen=True)
class BoardColors:
    """Color scheme for chess board rendering."""
    light_square: str
    dark_square: str
    white_piece: str = "bright_white"
    black_piece: str = "grey0"
    highlight_last_move: str = "#e6e62e"
    highlight_hint: str = "#00dc00"
    highlight_check: str = "red"
    border: str = "#4a7b9d"
    coordinates: str = "dim white"


THEMES: Dict[str, BoardColors] = {
    "classic": BoardColors("#d9d7c3", "#658047"),
    "modern": BoardColors("#f0f0f0", "#505050"),
    "forest": BoardColors("#e6e6c8", "#326432"),
    "lichess": BoardColors("#f0d9b5", "#b58863"),
    "ocean": BoardColors("#add8e6", "#006994"),
    "volcanic": BoardColors("#ff6666", "#323232"),
    "desert": BoardColors("#edc9af", "#bd9a7a"),
    "space": BoardColors("#dcdcdc", "#191970"),
    "sunset": BoardColors("#ffcc99", "#993366"),
    "neon": BoardColors("#6414fe", "#fe14ac"),
    "coffee": BoardColors("#d2b48c", "#654321"),
    "ice": BoardColors("#c8e6ff", "#325082"),
    "midnight": BoardColors("#646496", "#141428"),
    "royal": BoardColors("#ffdfba", "#4b0082"),
    "pastel": BoardColors("#ffdab9", "#ba55d3"),
    "steampunk": BoardColors("#bdb76b", "#581845"),
}

THEME_NAMES = list(THEMES)

# Scores beyond this are drawn as a full bar
EVAL_CLAMP = 1000


class ChessBoardRenderer:
    """
    Chess board renderer with Unicode pieces and themed colours.

    The board is drawn from the player's side: flipped when the player has Black.
    """

    UNICODE_PIECES = {
        chess.PAWN: {"white": "♙", "black": "♟"},
        chess.ROOK: {"white": "♖", "black": "♜"},
        chess.KNIGHT: {"white": "♘", "black": "♞"},
        chess.BISHOP: {"white": "♗", "black": "♝"},
        chess.QUEEN: {"white": "♕", "black": "♛"},
        chess.KING: {"white": "♔", "black": "♚"},
    }

    def __init__(self, theme: str = "classic", flip_board: bool = False, show_coordinates: bool = True):
        """
        Initialize the chess board renderer.

        Args:
            theme: Name of a board theme from THEMES
            flip_board: If True, display from Black's perspective
            show_coordinates: Whether to show file/rank labels

        Raises:
            ValueError: If the theme is unknown
        """
        self.theme = theme
        self.colors = self._lookup_theme(theme)
        self.flip_board = flip_board
        self.show_coordinates = show_coordinates

    @staticmethod
    def _lookup_theme(name: str) -> BoardColors:
        try:
            return THEMES[name]
        except KeyError:
            raise ValueError(f"Unknown theme {name!r}; choose from {', '.join(THEME_NAMES)}") from None

    def set_theme(self, name: str) -> None:
        self.colors = self._lookup_theme(name)
        self.theme = name

    def render_board(
        self,
        position: Union[chess.Board, str],
        last_move: Optional[chess.Move] = None,
        hint: Optional[chess.Move] = None,
        title: Optional[str] = None,
    ) -> Panel:
        """
        Render the board as a Rich Panel.

        Args:
            position: Board or FEN to render
            last_move: Last move to highlight
            hint: Suggested move to highlight
            title: Panel title (a status line is built when omitted)

        Returns:
            Rich Panel containing the rendered board
        """
        board = chess.Board(position) if isinstance(position, str) else position

        last_squares: Set[chess.Square] = set()
        if last_move:
            last_squares = {last_move.from_square, last_move.to_square}
        hint_squares: Set[chess.Square] = set()
        if hint:
            hint_squares = {hint.from_square, hint.to_square}
        check_square = board.king(board.turn) if board.is_check() else None

        table = Table.grid(padding=0)
        if self.show_coordinates:
            table.add_column(justify="center", width=2)
        for _ in range(8):
            table.add_column(justify="center", width=3)

        ranks = range(1, 9) if self.flip_board else range(8, 0, -1)
        files = range(7, -1, -1) if self.flip_board else range(8)

        for rank in ranks:
            row_parts = []
            if self.show_coordinates:
                row_parts.append(Text(str(rank), style=self.colors.coordinates))
            for file in files:
                square = chess.square(file, rank - 1)
                row_parts.append(self._render_square(board, square, last_squares, hint_squares, check_square))
            table.add_row(*row_parts)

        if self.show_coordinates:
            labels = "hgfedcba" if self.flip_board else "abcdefgh"
            table.add_row(" ", *[Text(c, style=self.colors.coordinates) for c in labels])

        return Panel(
            Align.center(table),
            title=title or self._create_board_title(board),
            border_style=self.colors.border,
            box=ROUNDED,
            padding=(0, 1),
        )

    def _render_square(
        self,
        board: chess.Board,
        square: chess.Square,
        last_squares: Set[chess.Square],
        hint_squares: Set[chess.Square],
        check_square: Optional[chess.Square],
    ) -> Text:
        """Render a single square with piece and background."""
        piece = board.piece_at(square)
        is_light_square = (chess.square_file(square) + chess.square_rank(square)) % 2 == 1

        if square == check_square:
            bg_color = self.colors.highlight_check
        elif square in hint_squares:
            bg_color = self.colors.highlight_hint
        elif square in last_squares:
            bg_color = self.colors.highlight_last_move
        elif is_light_square:
            bg_color = self.colors.light_square
        else:
            bg_color = self.colors.dark_square

        if piece:
            color_key = "white" if piece.color == chess.WHITE else "black"
            piece_char = self.UNICODE_PIECES[piece.piece_type][color_key]
            piece_color = self.colors.white_piece if piece.color == chess.WHITE else self.colors.black_piece
        else:
            piece_char = " "
            piece_color = "white"

        return Text(f" {piece_char} ", style=f"{piece_color} on {bg_color}")

    def _create_board_title(self, board: chess.Board) -> str:
        turn = "White" if board.turn == chess.WHITE else "Black"
        title_parts = [f"Move {board.fullmove_number}", f"To play: {turn}"]
        if board.is_checkmate():
            title_parts.append("Checkmate")
        elif board.is_check():
            title_parts.append("Check!")
        return " | ".join(title_parts)

    def render_eval_bar(self, evaluation: Optional[Evaluation], turn: chess.Color, width: int = 30) -> Text:
        """
        Render a horizontal evaluation bar from White's perspective.

        Args:
            evaluation: Latest evaluation (None while the engine is thinking)
            turn: Side to move in the evaluated position
            width: Bar width in cells
        """
        if evaluation is None:
            return Text("Eval: ...", style="dim")

        cp = evaluation.white_centipawns(turn)
        clamped = max(-EVAL_CLAMP, min(EVAL_CLAMP, cp))
        white_cells = round((clamped + EVAL_CLAMP) / (2 * EVAL_CLAMP) * width)

        bar = Text()
        bar.append("█" * white_cells, style="bright_white")
        bar.append("█" * (width - white_cells), style="grey23")
        bar.append(f" {evaluation.format(turn)}", style="bold")
        return bar

    def render_move_list(self, notations: Sequence[str], view_index: Optional[int] = None,
                         columns: int = 3) -> Panel:
        """
        Render the move history as numbered pairs.

        Args:
            notations: SAN of each recorded move
            view_index: Timeline index being shown in replay (None while live)
            columns: Move pairs per line
        """
        if not notations:
            return Panel("No moves yet", title="Moves", border_style=self.colors.border)

        text = Text()
        for i, san in enumerate(notations):
            if i % 2 == 0:
                if i and (i // 2) % columns == 0:
                    text.append("\n")
                text.append(f"{i // 2 + 1}. ", style="dim")
            # Timeline index of a move is its ply number
            style = "reverse" if view_index is not None and view_index == i + 1 else ""
            text.append(san, style=style)
            text.append(" ")

        return Panel(text, title="Moves", border_style=self.colors.border, padding=(0, 1))

    def render_analysis_graph(self, evaluations: List[Optional[int]], height: int = 8) -> Panel:
        """
        Render the post-game evaluation series as a column chart.

        White advantage is drawn above the centre line, Black's below.
        Positions without a score are left blank.
        """
        half = max(1, height // 2)
        rows: List[Text] = []
        for level in range(half, -half - 1, -1):
            row = Text()
            for value in evaluations:
                if level == 0:
                    row.append("─", style="dim")
                    continue
                if value is None:
                    row.append(" ")
                    continue
                clamped = max(-EVAL_CLAMP, min(EVAL_CLAMP, value))
                cells = round(abs(clamped) / EVAL_CLAMP * half)
                filled = (0 < level <= cells and clamped > 0) or (0 < -level <= cells and clamped < 0)
                row.append("█" if filled else " ", style="bright_white" if level > 0 else "grey50")
            rows.append(row)

        scored = [v for v in evaluations if v is not None]
        footer = Text(
            f"{len(evaluations)} positions, {len(evaluations) - len(scored)} unscored",
            style="dim",
        )
        return Panel(Group(*rows, footer), title="Evaluation graph", border_style=self.colors.border)


def describe_result(winner: Optional[Winner], termination: Optional[str]) -> str:
    """Human-readable game result line."""
    if winner is None:
        return "Game in progress"
    reason = f" by {termination.replace('_', ' ')}" if termination else ""
    return f"{winner.display}{reason}"


def format_centipawns(value: Optional[int]) -> str:
    """Format a White-perspective score from the scoring series."""
    if value is None:
        return "?"
    if abs(value) > MATE_SCORE - 1000:
        moves = (MATE_SCORE - abs(value)) // 100
        return f"#{moves}" if value > 0 else f"#-{moves}"
    return f"{value / 100:+.2f}"
