"""
Unit tests for the match state machine.

Tests phase transitions, move application, game-end detection, take-back,
resignation, evaluation bookkeeping and save/restore validation.
"""

import unittest

import chess

from chess_sparring.core.models import AnalysisInfo, AnalysisResults, GamePhase, Winner
from chess_sparring.core.match import MatchState
from chess_sparring.core.storage import LoadError


class MatchPhaseTests(unittest.TestCase):
    """Test Setup -> Playing -> Over transitions."""

    def setUp(self):
        """Set up a fresh match."""
        self.state = MatchState()

    def test_initial_state(self):
        self.assertEqual(self.state.phase, GamePhase.SETUP)
        self.assertEqual(self.state.position, chess.STARTING_FEN)
        self.assertIsNone(self.state.winner)

    def test_moves_rejected_outside_playing(self):
        self.assertIsNone(self.state.apply_move("e4"))
        self.assertFalse(self.state.resign(chess.WHITE))
        self.assertFalse(self.state.undo_last_ply())

    def test_start_game(self):
        self.state.start_game(chess.BLACK, 8)

        self.assertTrue(self.state.is_playing)
        self.assertEqual(self.state.player_color, chess.BLACK)
        self.assertEqual(self.state.engine_color, chess.WHITE)
        self.assertFalse(self.state.is_player_turn)
        self.assertEqual(self.state.difficulty, 8)

    def test_difficulty_is_clamped(self):
        self.state.start_game(chess.WHITE, 15)
        self.assertEqual(self.state.difficulty, 10)

    def test_checkmate_ends_game(self):
        """Test that the side delivering mate is the winner."""
        self.state.start_game(chess.BLACK, 5)
        for san in ("f3", "e5", "g4", "Qh4#"):
            self.state.apply_move(san)

        self.assertTrue(self.state.is_over)
        self.assertEqual(self.state.winner, Winner.BLACK)
        self.assertEqual(self.state.termination, "checkmate")
        self.assertIsNone(self.state.apply_move("a3"))

    def test_stalemate_is_draw(self):
        self.state.start_game(chess.WHITE, 5)
        self.state.rules.load("7k/8/6K1/8/8/8/8/5Q2 w - - 0 1")

        self.state.apply_move("Qf7")

        self.assertTrue(self.state.is_over)
        self.assertEqual(self.state.winner, Winner.DRAW)
        self.assertEqual(self.state.termination, "stalemate")

    def test_resign(self):
        self.state.start_game(chess.WHITE, 5)
        self.assertTrue(self.state.resign(chess.WHITE))

        self.assertTrue(self.state.is_over)
        self.assertEqual(self.state.winner, Winner.BLACK)
        self.assertEqual(self.state.termination, "resignation")
        self.assertFalse(self.state.resign(chess.WHITE))

    def test_restart_keeps_last_settings(self):
        self.state.start_game(chess.BLACK, 3)
        self.state.apply_move("e4")
        self.state.resign(chess.BLACK)

        self.state.restart()

        self.assertTrue(self.state.is_playing)
        self.assertEqual(self.state.player_color, chess.BLACK)
        self.assertEqual(self.state.difficulty, 3)
        self.assertEqual(self.state.position, chess.STARTING_FEN)
        self.assertIsNone(self.state.winner)

    def test_new_game_returns_to_setup(self):
        self.state.start_game(chess.BLACK, 3)
        self.state.apply_move("e4")

        self.state.new_game()

        self.assertEqual(self.state.phase, GamePhase.SETUP)
        self.assertEqual(self.state.position, chess.STARTING_FEN)
        self.assertEqual(self.state.player_color, chess.WHITE)

    def test_undo_last_ply(self):
        self.state.start_game(chess.WHITE, 5)
        self.state.apply_move("e4")
        self.assertTrue(self.state.undo_last_ply())
        self.assertEqual(self.state.position, chess.STARTING_FEN)
        self.assertFalse(self.state.undo_last_ply())


class MatchEvaluationTests(unittest.TestCase):
    """Test evaluation and hint bookkeeping."""

    def setUp(self):
        """Set up a match in progress."""
        self.state = MatchState()
        self.state.start_game(chess.WHITE, 5)

    def test_set_evaluation_for_current_position(self):
        info = AnalysisInfo(depth=15, cp=40, pv=["e2e4", "e7e5"])
        self.assertTrue(self.state.set_evaluation(info, self.state.position))

        self.assertEqual(self.state.evaluation.cp, 40)
        self.assertEqual(self.state.best_move_hint, chess.Move.from_uci("e2e4"))

    def test_stale_evaluation_is_rejected(self):
        fen = self.state.position
        self.state.apply_move("e4")

        self.assertFalse(self.state.set_evaluation(AnalysisInfo(depth=15, cp=40), fen))
        self.assertIsNone(self.state.evaluation)

    def test_move_clears_evaluation_and_hint(self):
        self.state.set_evaluation(AnalysisInfo(depth=15, cp=40, pv=["e2e4"]), self.state.position)
        self.state.toggle_hint()

        self.state.apply_move("e4")

        self.assertIsNone(self.state.evaluation)
        self.assertIsNone(self.state.best_move_hint)
        self.assertFalse(self.state.showing_hint)

    def test_toggle_hint(self):
        self.assertTrue(self.state.toggle_hint())
        self.assertFalse(self.state.toggle_hint())


class MatchPersistenceTests(unittest.TestCase):
    """Test serialize/deserialize."""

    def setUp(self):
        """Set up a match with two plies played."""
        self.state = MatchState()
        self.state.start_game(chess.BLACK, 7)
        self.state.apply_move("d4")
        self.state.apply_move("Nf6")

    def test_serialize(self):
        data = self.state.serialize()
        self.assertEqual(data["fen"], self.state.position)
        self.assertEqual(data["playerColor"], "b")
        self.assertEqual(data["difficulty"], 7)
        self.assertIsNone(data["analysisResults"])

    def test_deserialize_with_move_list(self):
        """Test that a consistent move list rebuilds the move stack."""
        self.state.analysis_results = AnalysisResults([10, -20, 15], 300)
        data = self.state.serialize()

        restored = MatchState()
        restored.deserialize(data, chess.STARTING_FEN, ["d4", "Nf6"])

        self.assertTrue(restored.is_playing)
        self.assertEqual(restored.position, self.state.position)
        self.assertEqual(restored.player_color, chess.BLACK)
        self.assertEqual(restored.analysis_results.evaluations, [10, -20, 15])
        self.assertTrue(restored.undo_last_ply())

    def test_deserialize_position_only(self):
        restored = MatchState()
        restored.deserialize(self.state.serialize(), chess.STARTING_FEN, ["e4"])

        self.assertEqual(restored.position, self.state.position)
        self.assertFalse(restored.undo_last_ply())

    def test_deserialize_finished_game(self):
        mated = "rnb1kbnr/pppp1ppp/8/4p3/6Pq/5P2/PPPPP2P/RNBQKBNR w KQkq - 1 3"
        restored = MatchState()
        restored.deserialize({"fen": mated, "playerColor": "w", "difficulty": 5})

        self.assertTrue(restored.is_over)
        self.assertEqual(restored.winner, Winner.BLACK)

    def test_corrupt_records_leave_state_untouched(self):
        before = self.state.position
        corrupt = [
            {},
            {"fen": "garbage", "playerColor": "w", "difficulty": 5},
            {"fen": chess.STARTING_FEN, "playerColor": "green", "difficulty": 5},
            {"fen": chess.STARTING_FEN, "playerColor": "w", "difficulty": 11},
            {"fen": chess.STARTING_FEN, "playerColor": "w", "difficulty": "hard"},
            {"fen": chess.STARTING_FEN, "playerColor": "w", "difficulty": 5, "analysisResults": {"x": 1}},
        ]
        for record in corrupt:
            with self.assertRaises(LoadError, msg=record):
                self.state.deserialize(record)
        self.assertEqual(self.state.position, before)
        self.assertEqual(self.state.player_color, chess.BLACK)


if __name__ == "__main__":
    unittest.main()
