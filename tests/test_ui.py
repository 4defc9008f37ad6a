"""
Unit tests for terminal rendering and the command-line interface.
"""

import io
import unittest

import chess
from rich.console import Console

from chess_sparring.cli import SparringCLI, create_argument_parser
from chess_sparring.core.engine import EngineSession
from chess_sparring.core.game import MatchOrchestrator
from chess_sparring.core.models import Config, Evaluation, Winner
from chess_sparring.core.storage import MemoryStore
from chess_sparring.ui.board import (
    THEME_NAMES,
    THEMES,
    ChessBoardRenderer,
    describe_result,
    format_centipawns,
)
from tests.fakes import FakeEngine


def render_text(renderable) -> str:
    console = Console(width=100, record=True, file=io.StringIO())
    console.print(renderable)
    return console.export_text()


class BoardRendererTests(unittest.TestCase):
    """Test the board renderer."""

    def test_sixteen_themes(self):
        self.assertEqual(len(THEMES), 16)
        self.assertEqual(THEMES["lichess"].light_square, "#f0d9b5")
        self.assertIn("steampunk", THEME_NAMES)

    def test_unknown_theme(self):
        with self.assertRaises(ValueError):
            ChessBoardRenderer(theme="plaid")
        renderer = ChessBoardRenderer()
        with self.assertRaises(ValueError):
            renderer.set_theme("plaid")
        self.assertEqual(renderer.theme, "classic")

    def test_render_board_from_fen(self):
        renderer = ChessBoardRenderer()
        text = render_text(renderer.render_board(chess.STARTING_FEN, last_move=chess.Move.from_uci("e2e4")))
        self.assertIn("♔", text)
        self.assertIn("To play: White", text)

    def test_flipped_board_labels(self):
        text = render_text(ChessBoardRenderer(flip_board=True).render_board(chess.Board()))
        self.assertIn("h  g  f  e  d  c  b  a", text)

    def test_eval_bar(self):
        renderer = ChessBoardRenderer()
        self.assertIn("...", renderer.render_eval_bar(None, chess.WHITE).plain)
        bar = renderer.render_eval_bar(Evaluation(depth=18, cp=120), chess.BLACK, width=10)
        self.assertTrue(bar.plain.endswith("-1.20"))

    def test_move_list(self):
        text = render_text(ChessBoardRenderer().render_move_list(["e4", "e5", "Nf3"], view_index=2))
        self.assertIn("1. e4 e5", text)
        self.assertIn("2. Nf3", text)
        self.assertIn("No moves yet", render_text(ChessBoardRenderer().render_move_list([])))

    def test_analysis_graph(self):
        text = render_text(ChessBoardRenderer().render_analysis_graph([30, -200, None, 9800]))
        self.assertIn("4 positions, 1 unscored", text)


class FormattingTests(unittest.TestCase):
    """Test result and score formatting."""

    def test_describe_result(self):
        self.assertEqual(describe_result(Winner.BLACK, "checkmate"), "Black wins by checkmate")
        self.assertEqual(describe_result(Winner.DRAW, "threefold_repetition"), "Draw by threefold repetition")
        self.assertEqual(describe_result(None, None), "Game in progress")

    def test_format_centipawns(self):
        self.assertEqual(format_centipawns(None), "?")
        self.assertEqual(format_centipawns(-45), "-0.45")
        self.assertEqual(format_centipawns(9700), "#3")
        self.assertEqual(format_centipawns(-9800), "#-2")


class CommandLineTests(unittest.IsolatedAsyncioTestCase):
    """Test argument parsing and command handling."""

    def test_argument_defaults(self):
        args = create_argument_parser().parse_args([])
        self.assertEqual(args.depth, 18)
        self.assertEqual(args.movetime, 300)
        self.assertIsNone(args.color)
        self.assertFalse(args.verbose)

    def test_argument_validation(self):
        parser = create_argument_parser()
        args = parser.parse_args(["--color", "black", "--difficulty", "7", "--theme", "ocean"])
        self.assertEqual(args.difficulty, 7)
        with self.assertRaises(SystemExit):
            parser.parse_args(["--depth", "30"])

    async def test_commands_drive_the_match(self):
        orchestrator = MatchOrchestrator(None, Config(engine_move_delay=0.001), store=MemoryStore())
        cli = SparringCLI(orchestrator, ChessBoardRenderer())
        cli.render = lambda: None
        await cli.choose_and_start("white", 5)

        self.assertTrue(await cli.handle_command("e4"))
        self.assertEqual(orchestrator.timeline.notations(), ["e4"])
        self.assertEqual(cli.last_move, chess.Move.from_uci("e2e4"))

        await cli.handle_command("back")
        self.assertFalse(orchestrator.timeline.is_live)
        await cli.handle_command("end")
        await cli.handle_command("undo")
        self.assertEqual(orchestrator.timeline.ply_count, 0)

        await cli.handle_command("theme ocean")
        self.assertEqual(orchestrator.settings.theme, "ocean")

        await cli.handle_command("resign")
        self.assertTrue(orchestrator.state.is_over)
        self.assertFalse(await cli.handle_command("quit"))

    async def test_go_without_engine(self):
        orchestrator = MatchOrchestrator(None, Config(first_move_delay=0.001), store=MemoryStore())
        cli = SparringCLI(orchestrator, ChessBoardRenderer())
        cli.render = lambda: None

        await cli.choose_and_start("white", 5)
        await cli.handle_command("go")
        self.assertEqual(cli.message, "Not the engine's turn")

        await cli.choose_and_start("black", 5)
        await cli.handle_command("retry")
        self.assertEqual(cli.message, "Engine unavailable")

    async def test_go_retries_after_engine_timeout(self):
        """Test that the go command asks a silent engine again and plays its reply."""
        answers = []

        def respond(fen, go):
            return answers.pop(0) if answers and go == "go depth 7" else []

        config = Config(move_timeout=0.05, first_move_delay=0.001, analysis_debounce=0.001)
        engine = FakeEngine(respond)
        orchestrator = MatchOrchestrator(EngineSession(engine.connect, config), config, store=MemoryStore())
        await orchestrator.start_engine()
        self.addAsyncCleanup(orchestrator.close)
        cli = SparringCLI(orchestrator, ChessBoardRenderer())
        cli.render = lambda: None

        await cli.choose_and_start("black", 5)
        self.assertEqual(orchestrator.timeline.ply_count, 0)
        self.assertFalse(orchestrator.state.is_player_turn)

        await cli.handle_command("go")
        self.assertEqual(cli.message, "Engine still has no move; try go again")

        answers.append(["bestmove e2e4"])
        await cli.handle_command("go")

        self.assertEqual(cli.message, "Engine played e4")
        self.assertEqual(orchestrator.timeline.notations(), ["e4"])
        self.assertTrue(orchestrator.state.is_player_turn)


if __name__ == "__main__":
    unittest.main()
