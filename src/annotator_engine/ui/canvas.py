"""Canvas widget hosting an annotation session."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from PyQt6.QtCore import QPointF, QRectF, Qt, pyqtSignal
from PyQt6.QtGui import (
    QColor, QImage, QKeyEvent, QKeySequence, QMouseEvent, QPainter, QWheelEvent
)
from PyQt6.QtWidgets import QWidget

from ..core.geometry import to_screen_length, to_screen_space
from ..core.mask import MaskLayer
from ..core.session import AnnotationSession, ItemStatus
from ..core.state_machine import InteractionState, Tool
from ..render.painter import QPainterBackend
from ..render.scene import scene_for_session

logger = logging.getLogger(__name__)


class AnnotationCanvas(QWidget):
    """
    Paints the current item and forwards input to the session.

    Mouse positions are passed on in widget coordinates, which are the
    screen space the session's viewport maps from.
    """

    # Emitted with a user-facing message for the status bar
    status_message = pyqtSignal(str)

    ZOOM_FACTOR = 1.1
    BACKGROUND = QColor("#1F2937")

    def __init__(self, session: AnnotationSession, parent: Optional[QWidget] = None) -> None:
        """
        Initialize the canvas.

        Args:
            session: Session to display and edit
            parent: Parent widget
        """
        super().__init__(parent)
        self.session = session
        self._images: Dict[int, QImage] = {}
        self._backend = QPainterBackend()
        self._mask_cache = MaskLayer(session.taxonomy, session.config.mask_opacity)
        self._tool_before_pan: Optional[Tool] = None

        session.annotations_changed.connect(self.update)
        session.viewport_changed.connect(self.update)
        session.item_changed.connect(self._on_item_changed)
        session.item_status_changed.connect(self.update)
        session.warning_raised.connect(self.status_message.emit)
        session.machine.transient_changed.connect(self.update)
        session.machine.selection_changed.connect(self.update)

        self.setMouseTracking(True)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setMinimumSize(320, 240)

    # === Images ===

    def set_image(self, index: int, image: QImage) -> None:
        """Attach a decoded image to an item and mark it ready."""
        self._images[index] = image
        logger.debug(f"Image attached to item {index}: {image.width()}x{image.height()}")
        self.session.mark_image_loaded(index, image.width(), image.height())
        if index == self.session.current_index:
            self.update()

    def mark_failed(self, index: int, reason: str) -> None:
        """Mark an item unusable after a load failure."""
        self._images.pop(index, None)
        self.session.mark_image_failed(index, reason)

    def current_image(self) -> Optional[QImage]:
        """Get the current item's image, if loaded."""
        return self._images.get(self.session.current_index)

    def _on_item_changed(self, index: int) -> None:
        item = self.session.current_item
        self.status_message.emit(f"Item {index + 1}/{self.session.item_count}: {item.source}")
        self.update()

    # === Painting ===

    def paintEvent(self, event) -> None:
        """Paint the image, then the annotation scene."""
        painter = QPainter(self)
        try:
            painter.fillRect(self.rect(), self.BACKGROUND)

            image = self.current_image()
            item = self.session.current_item
            if image is None or item.status != ItemStatus.LOADED:
                self._draw_placeholder(painter, item.status, item.error)
                return

            viewport = self.session.viewport
            origin = to_screen_space(QPointF(0, 0), viewport)
            target = QRectF(
                origin.x(),
                origin.y(),
                to_screen_length(image.width(), viewport),
                to_screen_length(image.height(), viewport),
            )
            painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)
            painter.drawImage(target, image)

            self._backend.execute(painter, scene_for_session(self.session, self._mask_cache))
        finally:
            painter.end()

    def _draw_placeholder(self, painter: QPainter, status: ItemStatus, error: str) -> None:
        if status == ItemStatus.FAILED:
            text = f"Image failed to load\n{error}"
        else:
            text = "Loading image..."
        painter.setPen(QColor("#D1D5DB"))
        painter.drawText(self.rect(), Qt.AlignmentFlag.AlignCenter, text)

    # === Mouse ===

    def mousePressEvent(self, event: QMouseEvent) -> None:
        """Start an interaction with the left button."""
        self.setFocus()
        if event.button() == Qt.MouseButton.LeftButton:
            self.session.machine.pointer_down(event.position())
        elif event.button() == Qt.MouseButton.RightButton:
            self.session.machine.cancel()

    def mouseMoveEvent(self, event: QMouseEvent) -> None:
        """Update the interaction in progress, or the hover cursor."""
        machine = self.session.machine
        if machine.state != InteractionState.IDLE:
            machine.pointer_move(event.position())
            return

        if machine.tool in (Tool.SELECT, Tool.DRAW) and self.session.image_ready:
            hit = machine.hit_test(event.position())
            if hit and hit.handle:
                self.setCursor(Qt.CursorShape.SizeAllCursor)
            elif hit and machine.tool == Tool.SELECT:
                self.setCursor(Qt.CursorShape.OpenHandCursor)
            else:
                self.setCursor(Qt.CursorShape.CrossCursor)

    def mouseReleaseEvent(self, event: QMouseEvent) -> None:
        """Commit the interaction in progress."""
        if event.button() == Qt.MouseButton.LeftButton:
            self.session.machine.pointer_up(event.position())

    def wheelEvent(self, event: QWheelEvent) -> None:
        """Ctrl+wheel zooms around the cursor; plain wheel pans."""
        delta = event.angleDelta()
        if event.modifiers() & Qt.KeyboardModifier.ControlModifier:
            factor = self.ZOOM_FACTOR if delta.y() > 0 else 1 / self.ZOOM_FACTOR
            self.session.set_zoom(self.session.viewport.zoom * factor, event.position())
        else:
            self.session.pan_by(delta.x() / 4, delta.y() / 4)
        event.accept()

    # === Keyboard ===

    def keyPressEvent(self, event: QKeyEvent) -> None:
        """Undo/redo, deletion, navigation, temporary pan and label shortcuts."""
        machine = self.session.machine

        if event.matches(QKeySequence.StandardKey.Undo):
            self.session.undo()
        elif event.matches(QKeySequence.StandardKey.Redo):
            self.session.redo()
        elif event.key() in (Qt.Key.Key_Delete, Qt.Key.Key_Backspace):
            machine.delete_selected()
        elif event.key() == Qt.Key.Key_Escape:
            machine.cancel()
            machine.select(None)
        elif event.key() == Qt.Key.Key_Right:
            self.session.next_item()
        elif event.key() == Qt.Key.Key_Left:
            self.session.previous_item()
        elif event.key() == Qt.Key.Key_Space and not event.isAutoRepeat():
            if machine.tool != Tool.PAN:
                self._tool_before_pan = machine.tool
                machine.set_tool(Tool.PAN)
                self.setCursor(Qt.CursorShape.OpenHandCursor)
        elif event.text() and not event.modifiers() & Qt.KeyboardModifier.ControlModifier:
            label = machine.handle_shortcut(event.text())
            if label:
                self.status_message.emit(f"Label: {label.name}")
            else:
                super().keyPressEvent(event)
        else:
            super().keyPressEvent(event)
        self.update()

    def keyReleaseEvent(self, event: QKeyEvent) -> None:
        """Leave temporary pan when space is released."""
        if event.key() == Qt.Key.Key_Space and not event.isAutoRepeat():
            if self._tool_before_pan is not None:
                self.session.machine.set_tool(self._tool_before_pan)
                self._tool_before_pan = None
                self.setCursor(Qt.CursorShape.ArrowCursor)
        super().keyReleaseEvent(event)
