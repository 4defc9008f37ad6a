"""
Replay timeline for Chess Sparring.

The timeline is the ordered list of positions reached in a match, with a
movable read cursor. The cursor is either live (tracking the match's
current position) or an index into the list (replay mode). Navigation is
the only thing that enters replay mode; recording or undoing always
returns to live.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class TimelineEntry:
    """One position in the timeline; entry 0 (the start position) has empty notation."""

    notation: str
    fen: str

    def to_dict(self) -> Dict[str, Any]:
        return {"notation": self.notation, "position": self.fen}


class Timeline:
    """Append-only list of positions with a replay cursor (None means live)."""

    def __init__(self):
        self._entries: List[TimelineEntry] = []
        self._cursor: Optional[int] = None

    # Mutation (always returns to live)

    def set_initial(self, fen: str) -> None:
        """Seed, or replace, the pre-game position at index 0."""
        if not self._entries:
            self._entries.append(TimelineEntry("", fen))
        else:
            self._entries[0] = TimelineEntry("", fen)

    def record(self, notation: str, fen: str, start_fen: Optional[str] = None) -> None:
        """
        Append a played move.

        Args:
            notation: SAN of the move
            fen: Position after the move
            start_fen: Pre-game position, inserted at index 0 on the first recorded ply
                if the timeline was not seeded with set_initial()
        """
        self._cursor = None
        if not self._entries:
            self._entries.append(TimelineEntry("", start_fen or ""))
        self._entries.append(TimelineEntry(notation, fen))

    def undo_last(self) -> Optional[TimelineEntry]:
        """Remove the most recent move; the start position is never removed."""
        self._cursor = None
        if len(self._entries) > 1:
            return self._entries.pop()
        return None

    def clear(self) -> None:
        self._entries = []
        self._cursor = None

    # Navigation

    @property
    def is_live(self) -> bool:
        return self._cursor is None

    @property
    def can_step_back(self) -> bool:
        return len(self._entries) > 1 and self._cursor != 0

    @property
    def can_step_forward(self) -> bool:
        return self._cursor is not None and self._cursor < len(self._entries) - 1

    def step_back(self) -> Optional[str]:
        """Move the cursor one position back and return that FEN (None if already at the start)."""
        if not self.can_step_back:
            return None
        if self._cursor is None:
            self._cursor = len(self._entries) - 1
        self._cursor -= 1
        return self._entries[self._cursor].fen

    def step_forward(self) -> Optional[str]:
        """
        Move the cursor one position forward.

        Reaching the last entry returns to live and yields None, meaning
        "show the current match position" rather than the stored copy.
        """
        if not self.can_step_forward:
            return None
        self._cursor += 1
        if self._cursor == len(self._entries) - 1:
            self._cursor = None
            return None
        return self._entries[self._cursor].fen

    def jump_to(self, index: int) -> Optional[str]:
        """Jump to an absolute index; the last index returns to live. Out of range is ignored."""
        if index < 0 or index >= len(self._entries):
            return None
        if index == len(self._entries) - 1:
            self._cursor = None
            return None
        self._cursor = index
        return self._entries[index].fen

    def jump_to_start(self) -> Optional[str]:
        if not self._entries:
            return None
        if len(self._entries) == 1:
            self._cursor = None
            return None
        self._cursor = 0
        return self._entries[0].fen

    def jump_to_end(self) -> None:
        self._cursor = None
        return None

    def view_index(self) -> int:
        """Index currently displayed; the last index while live."""
        return len(self._entries) - 1 if self._cursor is None else self._cursor

    # Read access

    @property
    def entries(self) -> List[TimelineEntry]:
        return list(self._entries)

    @property
    def moves(self) -> List[TimelineEntry]:
        """Recorded moves, without the start position."""
        return self._entries[1:]

    @property
    def ply_count(self) -> int:
        return max(0, len(self._entries) - 1)

    def __len__(self) -> int:
        return self.ply_count

    @property
    def start_fen(self) -> Optional[str]:
        return self._entries[0].fen if self._entries else None

    def positions(self) -> List[str]:
        """Every recorded FEN, start position first."""
        return [entry.fen for entry in self._entries]

    def notations(self) -> List[str]:
        return [entry.notation for entry in self.moves]

    # Persistence

    def to_list(self) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self._entries]

    def from_list(self, data: List[Dict[str, Any]]) -> None:
        """
        Replace the contents from a persisted list; validated before anything changes.

        Raises:
            ValueError: If the data is not a list of {notation, position} records
        """
        if not isinstance(data, list):
            raise ValueError("Timeline data must be a list")
        entries = []
        for index, item in enumerate(data):
            if not isinstance(item, dict) or not isinstance(item.get("position"), str):
                raise ValueError(f"Malformed timeline entry at index {index}")
            notation = item.get("notation") or ""
            if not isinstance(notation, str):
                raise ValueError(f"Malformed notation at index {index}")
            entries.append(TimelineEntry(notation, item["position"]))
        self._entries = entries
        self._cursor = None
