"""History panel listing the current item's undo/redo entries."""

from __future__ import annotations

import logging
from typing import Optional

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QColor
from PyQt6.QtWidgets import QLabel, QListWidget, QListWidgetItem, QVBoxLayout, QWidget

from ..core.session import AnnotationSession
from ..core.undo_redo import HistoryStack

logger = logging.getLogger(__name__)

PAST_COLOR = "#111827"
FUTURE_COLOR = "#9CA3AF"


class HistoryPanel(QWidget):
    """
    Shows the history of the current item with click navigation.

    Past entries are listed above the current position and redoable
    entries below it, muted. Clicking an entry undoes or redoes until
    that entry is current.
    """

    def __init__(self, session: AnnotationSession, parent: Optional[QWidget] = None) -> None:
        """
        Initialize the history panel.

        Args:
            session: Session whose current item is tracked
            parent: Parent widget
        """
        super().__init__(parent)
        self.session = session
        self._history: Optional[HistoryStack] = None
        self._updating = False

        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)

        self.history_list = QListWidget()
        self.history_list.itemClicked.connect(self._on_item_clicked)
        layout.addWidget(self.history_list)

        self.empty_label = QLabel("No history")
        self.empty_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(self.empty_label)

        session.item_changed.connect(self._track_current)
        self._track_current()

    def _track_current(self, *_args) -> None:
        """Follow the history stack of the item now current."""
        if self._history is not None:
            try:
                self._history.state_changed.disconnect(self.refresh)
            except (TypeError, RuntimeError):
                pass

        self._history = self.session.store.history
        self._history.state_changed.connect(self.refresh)
        self.refresh()

    def refresh(self) -> None:
        """Rebuild the list from the tracked history stack."""
        if self._updating or self._history is None:
            return

        self._updating = True
        try:
            self.history_list.clear()
            history = self._history.get_history()
            if not history:
                self.history_list.hide()
                self.empty_label.show()
                return

            self.empty_label.hide()
            self.history_list.show()

            initial = QListWidgetItem("(Initial State)")
            initial.setData(Qt.ItemDataRole.UserRole, 0)
            self.history_list.addItem(initial)

            for steps_from_start, (_sequence, description, is_past) in enumerate(history, start=1):
                item = QListWidgetItem(description)
                item.setData(Qt.ItemDataRole.UserRole, steps_from_start)
                item.setForeground(QColor(PAST_COLOR if is_past else FUTURE_COLOR))
                self.history_list.addItem(item)

            self.history_list.setCurrentRow(self._history.undo_count)
        finally:
            self._updating = False

    def _on_item_clicked(self, item: QListWidgetItem) -> None:
        """Undo or redo until the clicked entry is current."""
        if self._updating or self._history is None:
            return

        target = item.data(Qt.ItemDataRole.UserRole)
        steps = target - self._history.undo_count
        logger.debug(f"History navigation by {steps} step(s)")

        while steps < 0 and self.session.undo():
            steps += 1
        while steps > 0 and self.session.redo():
            steps -= 1
