"""Undo/redo history built on annotation list snapshots."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from PyQt6.QtCore import QObject, pyqtSignal

from .models import Annotation

logger = logging.getLogger(__name__)

Snapshot = Tuple[Annotation, ...]


@dataclass(frozen=True)
class HistoryEntry:
    """An immutable snapshot of one item's annotation list."""

    sequence: int
    snapshot: Snapshot
    description: str = ""
    merge_key: Optional[str] = None


class HistoryStack(QObject):
    """
    Linear undo/redo history for one item.

    Holds one list of snapshots and a current position in it. Entries
    before the position are the past, entries after it the future.
    Recording a new snapshot discards the future. The first entry is the
    base state and can never be undone past.

    Emits ``state_changed`` whenever undo/redo availability changes.
    """

    state_changed = pyqtSignal()

    def __init__(self, initial: Snapshot = (), max_history: int = 100) -> None:
        """
        Initialize the history stack.

        Args:
            initial: Base snapshot (usually the empty list)
            max_history: Maximum number of undoable entries to keep
        """
        super().__init__()
        self._max_history = max(1, max_history)
        self._next_sequence = 0
        self._entries: List[HistoryEntry] = [self._make_entry(tuple(initial), "Initial state")]
        self._position = 0

    def _make_entry(
        self, snapshot: Snapshot, description: str, merge_key: Optional[str] = None
    ) -> HistoryEntry:
        entry = HistoryEntry(self._next_sequence, snapshot, description, merge_key)
        self._next_sequence += 1
        return entry

    def record(
        self, snapshot: Snapshot, description: str = "", merge_key: Optional[str] = None
    ) -> HistoryEntry:
        """
        Append a snapshot after the current position.

        Any undone entries are discarded: redo is only valid directly
        after an undo. When ``merge_key`` matches the key of the newest
        entry and nothing has been undone, that entry's snapshot is
        replaced instead, so a run of small edits (such as a slider
        sweep) undoes as one step.

        Args:
            snapshot: The annotation list after the change
            description: Human-readable description of the change
            merge_key: Key identifying edits that fold into one entry

        Returns:
            The new or merged entry
        """
        current = self._entries[self._position]
        if (
            merge_key is not None
            and self._position > 0
            and not self.can_redo()
            and current.merge_key == merge_key
        ):
            entry = HistoryEntry(current.sequence, tuple(snapshot), description, merge_key)
            self._entries[self._position] = entry
            logger.debug(f"Merged into #{entry.sequence}: {description}")
            self.state_changed.emit()
            return entry

        del self._entries[self._position + 1:]
        entry = self._make_entry(tuple(snapshot), description, merge_key)
        self._entries.append(entry)
        self._position = len(self._entries) - 1

        # Base entry plus max_history undoable steps
        while len(self._entries) > self._max_history + 1:
            self._entries.pop(0)
            self._position -= 1

        logger.debug(f"Recorded #{entry.sequence}: {description}")
        self.state_changed.emit()
        return entry

    def undo(self) -> Optional[Snapshot]:
        """
        Step back one entry.

        Returns:
            The snapshot to restore, or None if there is nothing to undo
        """
        if not self.can_undo():
            return None

        description = self._entries[self._position].description
        self._position -= 1
        logger.debug(f"Undone: {description}")
        self.state_changed.emit()
        return self._entries[self._position].snapshot

    def redo(self) -> Optional[Snapshot]:
        """
        Step forward one entry.

        Returns:
            The snapshot to restore, or None if there is nothing to redo
        """
        if not self.can_redo():
            return None

        self._position += 1
        logger.debug(f"Redone: {self._entries[self._position].description}")
        self.state_changed.emit()
        return self._entries[self._position].snapshot

    def can_undo(self) -> bool:
        """Check if undo is available."""
        return self._position > 0

    def can_redo(self) -> bool:
        """Check if redo is available."""
        return self._position < len(self._entries) - 1

    def undo_description(self) -> str:
        """Get description of the change that would be undone."""
        if self.can_undo():
            return self._entries[self._position].description
        return ""

    def redo_description(self) -> str:
        """Get description of the change that would be redone."""
        if self.can_redo():
            return self._entries[self._position + 1].description
        return ""

    @property
    def current(self) -> HistoryEntry:
        """The entry matching the store's current contents."""
        return self._entries[self._position]

    @property
    def undo_count(self) -> int:
        """Get the number of entries that can be undone."""
        return self._position

    @property
    def redo_count(self) -> int:
        """Get the number of entries that can be redone."""
        return len(self._entries) - 1 - self._position

    @property
    def max_history(self) -> int:
        """Maximum number of undoable entries."""
        return self._max_history

    def get_history(self) -> List[Tuple[int, str, bool]]:
        """
        Get the full history as a list of tuples.

        Returns:
            List of (sequence, description, is_past) tuples, oldest first.
            The base entry is excluded; entries at or before the current
            position are past, later ones are redoable.
        """
        return [
            (entry.sequence, entry.description, i <= self._position)
            for i, entry in enumerate(self._entries)
            if i > 0
        ]

    def clear(self, snapshot: Snapshot = ()) -> None:
        """Drop all history and start again from ``snapshot``."""
        self._entries = [self._make_entry(tuple(snapshot), "Initial state")]
        self._position = 0
        self.state_changed.emit()

    def set_max_history(self, max_history: int) -> None:
        """
        Update the maximum history size.

        Args:
            max_history: New maximum number of undoable entries
        """
        self._max_history = max(1, max_history)

        # Evict the oldest entries; never evict the current position
        while len(self._entries) > self._max_history + 1 and self._position > 0:
            self._entries.pop(0)
            self._position -= 1
        # Whatever is still over the cap is redo branch
        del self._entries[self._max_history + 1:]

        self.state_changed.emit()
