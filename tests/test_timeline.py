"""
Unit tests for the replay timeline.

Tests recording, take-back, cursor navigation (live versus replay) and
persistence of the position list.
"""

import unittest

import chess

from chess_sparring.core.rules import BoardRules
from chess_sparring.core.timeline import Timeline


def build_timeline(sans):
    """Play SAN moves from the start position and record each one."""
    rules = BoardRules()
    timeline = Timeline()
    timeline.set_initial(rules.position)
    for san in sans:
        result = rules.apply_move(san)
        timeline.record(result.san, result.fen)
    return timeline


class TimelineRecordingTests(unittest.TestCase):
    """Test mutation of the timeline."""

    def test_empty_timeline(self):
        timeline = Timeline()
        self.assertTrue(timeline.is_live)
        self.assertEqual(timeline.ply_count, 0)
        self.assertIsNone(timeline.start_fen)
        self.assertIsNone(timeline.step_back())
        self.assertIsNone(timeline.jump_to_start())

    def test_record_seeds_start_position(self):
        """Test that the first recorded ply inserts the pre-game position."""
        timeline = Timeline()
        timeline.record("e4", "after-e4", start_fen=chess.STARTING_FEN)

        self.assertEqual(timeline.start_fen, chess.STARTING_FEN)
        self.assertEqual(timeline.positions(), [chess.STARTING_FEN, "after-e4"])
        self.assertEqual(timeline.notations(), ["e4"])
        self.assertEqual(timeline.entries[0].notation, "")

    def test_undo_never_removes_start(self):
        timeline = build_timeline(["e4"])

        self.assertEqual(timeline.undo_last().notation, "e4")
        self.assertIsNone(timeline.undo_last())
        self.assertEqual(timeline.ply_count, 0)
        self.assertEqual(timeline.start_fen, chess.STARTING_FEN)

    def test_record_returns_to_live(self):
        timeline = build_timeline(["e4", "e5"])
        timeline.step_back()
        self.assertFalse(timeline.is_live)

        timeline.record("Nf3", "after-nf3")
        self.assertTrue(timeline.is_live)
        self.assertEqual(timeline.view_index(), 3)

    def test_set_initial_replaces_start(self):
        timeline = Timeline()
        timeline.set_initial("first")
        timeline.set_initial("second")
        self.assertEqual(timeline.positions(), ["second"])


class TimelineNavigationTests(unittest.TestCase):
    """Test the replay cursor."""

    def setUp(self):
        """Set up a timeline with three plies."""
        self.timeline = build_timeline(["e4", "e5", "Nf3"])
        self.positions = self.timeline.positions()

    def test_step_back_enters_replay(self):
        fen = self.timeline.step_back()

        self.assertEqual(fen, self.positions[2])
        self.assertFalse(self.timeline.is_live)
        self.assertEqual(self.timeline.view_index(), 2)

    def test_step_back_stops_at_start(self):
        for _ in range(3):
            self.timeline.step_back()
        self.assertEqual(self.timeline.view_index(), 0)
        self.assertFalse(self.timeline.can_step_back)
        self.assertIsNone(self.timeline.step_back())
        self.assertEqual(self.timeline.view_index(), 0)

    def test_step_forward_to_last_returns_live(self):
        self.timeline.step_back()
        self.timeline.step_back()

        self.assertEqual(self.timeline.step_forward(), self.positions[2])
        self.assertIsNone(self.timeline.step_forward())
        self.assertTrue(self.timeline.is_live)
        self.assertFalse(self.timeline.can_step_forward)

    def test_stepping_through_from_start(self):
        """Test that one step per ply walks from the start back to live."""
        plies = self.timeline.ply_count
        self.timeline.jump_to_start()

        for step in range(1, plies):
            self.assertEqual(self.timeline.step_forward(), self.positions[step])
            self.assertFalse(self.timeline.is_live)
            self.assertEqual(self.timeline.view_index(), step)

        self.assertIsNone(self.timeline.step_forward())
        self.assertTrue(self.timeline.is_live)
        self.assertEqual(self.timeline.view_index(), plies)

    def test_step_forward_while_live_does_nothing(self):
        self.assertIsNone(self.timeline.step_forward())
        self.assertTrue(self.timeline.is_live)

    def test_jump_to(self):
        self.assertEqual(self.timeline.jump_to(1), self.positions[1])
        self.assertEqual(self.timeline.view_index(), 1)

        self.assertIsNone(self.timeline.jump_to(3))
        self.assertTrue(self.timeline.is_live)

    def test_jump_out_of_range_is_ignored(self):
        self.timeline.jump_to(1)
        self.assertIsNone(self.timeline.jump_to(7))
        self.assertIsNone(self.timeline.jump_to(-1))
        self.assertEqual(self.timeline.view_index(), 1)

    def test_jump_to_start_and_end(self):
        self.assertEqual(self.timeline.jump_to_start(), self.positions[0])
        self.assertEqual(self.timeline.view_index(), 0)

        self.timeline.jump_to_end()
        self.assertTrue(self.timeline.is_live)
        self.assertEqual(self.timeline.view_index(), 3)

    def test_undo_returns_to_live(self):
        self.timeline.jump_to(1)
        self.timeline.undo_last()
        self.assertTrue(self.timeline.is_live)
        self.assertEqual(self.timeline.ply_count, 2)


class TimelinePersistenceTests(unittest.TestCase):
    """Test saving and restoring the position list."""

    def test_to_list_format(self):
        data = build_timeline(["d4"]).to_list()
        self.assertEqual(data[0], {"notation": "", "position": chess.STARTING_FEN})
        self.assertEqual(data[1]["notation"], "d4")

    def test_from_list_restores_entries(self):
        original = build_timeline(["e4", "c5"])
        restored = Timeline()
        restored.from_list(original.to_list())

        self.assertEqual(restored.positions(), original.positions())
        self.assertEqual(restored.notations(), ["e4", "c5"])
        self.assertTrue(restored.is_live)

    def test_from_list_rejects_malformed_data(self):
        timeline = build_timeline(["e4"])
        before = timeline.positions()

        with self.assertRaises(ValueError):
            timeline.from_list("not a list")
        with self.assertRaises(ValueError):
            timeline.from_list([{"notation": "", "position": "x"}, {"notation": "e4"}])
        with self.assertRaises(ValueError):
            timeline.from_list([{"notation": 5, "position": "x"}])

        self.assertEqual(timeline.positions(), before)


if __name__ == "__main__":
    unittest.main()
