"""
UI package for Chess Sparring.

This package contains the Rich terminal renderers for the board, the
evaluation bar, the move list and the post-game evaluation graph.
"""

from .board import (
    THEMES,
    THEME_NAMES,
    BoardColors,
    ChessBoardRenderer,
    describe_result,
    format_centipawns,
)

__all__ = [
    "THEMES",
    "THEME_NAMES",
    "BoardColors",
    "ChessBoardRenderer",
    "describe_result",
    "format_centipawns",
]
