"""
Unit tests for persistence helpers.
"""

import json
import tempfile
import unittest
from pathlib import Path

from chess_sparring.core.models import Settings
from chess_sparring.core.storage import (
    SAVE_KEY,
    SETTINGS_KEY,
    JsonFileStore,
    LoadError,
    MemoryStore,
    load_settings,
    read_record,
    save_settings,
    write_record,
)


class RecordTests(unittest.TestCase):
    """Test JSON record encoding over a key/value store."""

    def test_round_trip(self):
        store = MemoryStore()
        write_record(store, SAVE_KEY, {"fen": "x", "difficulty": 5})
        self.assertEqual(read_record(store, SAVE_KEY), {"fen": "x", "difficulty": 5})

    def test_missing_record(self):
        self.assertIsNone(read_record(MemoryStore(), SAVE_KEY))

    def test_corrupt_records_raise(self):
        with self.assertRaises(LoadError):
            read_record(MemoryStore({SAVE_KEY: "{not json"}), SAVE_KEY)
        with self.assertRaises(LoadError):
            read_record(MemoryStore({SAVE_KEY: "[1, 2]"}), SAVE_KEY)


class SettingsTests(unittest.TestCase):
    """Test settings persistence."""

    def test_defaults_when_missing_or_corrupt(self):
        self.assertEqual(load_settings(MemoryStore()), Settings())
        self.assertEqual(load_settings(MemoryStore({SETTINGS_KEY: "oops"})), Settings())

    def test_save_and_load(self):
        store = MemoryStore()
        save_settings(store, Settings(theme="neon", sound_enabled=False, player_color="b", difficulty=9))

        stored = json.loads(store.get(SETTINGS_KEY))
        self.assertEqual(stored["soundEnabled"], False)
        self.assertEqual(stored["playerColor"], "b")

        settings = load_settings(store)
        self.assertEqual(settings.theme, "neon")
        self.assertEqual(settings.difficulty, 9)


class JsonFileStoreTests(unittest.TestCase):
    """Test the on-disk store."""

    def setUp(self):
        """Set up a temporary directory."""
        self.tmpdir = tempfile.TemporaryDirectory()
        self.path = Path(self.tmpdir.name) / "nested" / "store.json"

    def tearDown(self):
        """Clean up the temporary directory."""
        self.tmpdir.cleanup()

    def test_set_get_delete(self):
        store = JsonFileStore(self.path)
        self.assertIsNone(store.get("a"))

        store.set("a", "1")
        store.set("b", "2")
        self.assertEqual(JsonFileStore(self.path).get("a"), "1")

        store.delete("a")
        self.assertIsNone(store.get("a"))
        self.assertEqual(store.get("b"), "2")

    def test_unreadable_file_is_treated_as_empty(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_text("{broken", encoding="utf-8")

        store = JsonFileStore(self.path)
        self.assertIsNone(store.get("a"))
        store.set("a", "1")
        self.assertEqual(store.get("a"), "1")


if __name__ == "__main__":
    unittest.main()
