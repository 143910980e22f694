"""QPainter backend executing scene draw commands."""

from __future__ import annotations

import logging
from typing import Iterable

from PyQt6.QtCore import QRectF, Qt
from PyQt6.QtGui import QBrush, QColor, QFont, QFontMetrics, QPainter, QPen

from .scene import CompositeLayer, DrawCommand, DrawDisc, DrawLine, DrawRect, DrawText

logger = logging.getLogger(__name__)

TAG_PADDING = 6


def _pen(color: QColor, width: float, dashed: bool) -> QPen:
    pen = QPen(color, width)
    if dashed:
        pen.setStyle(Qt.PenStyle.DashLine)
    return pen


class QPainterBackend:
    """
    Draws scene commands onto any QPainter target.

    All coordinates in the commands are already in screen space, so the
    painter is used untransformed.
    """

    def __init__(self, antialiasing: bool = True) -> None:
        self.antialiasing = antialiasing

    def execute(self, painter: QPainter, commands: Iterable[DrawCommand]) -> int:
        """
        Draw commands in order.

        Returns:
            Number of commands drawn
        """
        painter.save()
        painter.setRenderHint(QPainter.RenderHint.Antialiasing, self.antialiasing)
        count = 0
        try:
            for command in commands:
                if isinstance(command, CompositeLayer):
                    self._composite_layer(painter, command)
                elif isinstance(command, DrawRect):
                    self._draw_rect(painter, command)
                elif isinstance(command, DrawLine):
                    self._draw_line(painter, command)
                elif isinstance(command, DrawDisc):
                    self._draw_disc(painter, command)
                elif isinstance(command, DrawText):
                    self._draw_text(painter, command)
                else:
                    logger.warning(f"Unknown draw command: {type(command).__name__}")
                    continue
                count += 1
        finally:
            painter.restore()
        return count

    def _composite_layer(self, painter: QPainter, command: CompositeLayer) -> None:
        painter.setCompositionMode(QPainter.CompositionMode.CompositionMode_SourceOver)
        painter.drawImage(command.target, command.image)

    def _draw_rect(self, painter: QPainter, command: DrawRect) -> None:
        painter.setPen(_pen(command.color, command.width, command.dashed))
        painter.setBrush(QBrush(command.fill) if command.fill is not None else Qt.BrushStyle.NoBrush)
        painter.drawRect(command.rect)

    def _draw_line(self, painter: QPainter, command: DrawLine) -> None:
        painter.setPen(_pen(command.color, command.width, command.dashed))
        painter.drawLine(command.start, command.end)

    def _draw_disc(self, painter: QPainter, command: DrawDisc) -> None:
        if command.outline is not None:
            painter.setPen(_pen(command.outline, command.width, command.dashed))
        else:
            painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(command.fill)
        painter.drawEllipse(command.center, command.radius, command.radius)

    def _draw_text(self, painter: QPainter, command: DrawText) -> None:
        """Draw a tag with background sitting on the anchor point."""
        font = QFont("Arial")
        font.setPointSizeF(command.font_size)
        metrics = QFontMetrics(font)
        width = metrics.horizontalAdvance(command.text) + 2 * TAG_PADDING
        height = metrics.height() + TAG_PADDING

        background = QRectF(command.anchor.x(), command.anchor.y() - height, width, height)
        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(command.background)
        painter.drawRect(background)

        painter.setFont(font)
        painter.setPen(command.color)
        painter.drawText(background, Qt.AlignmentFlag.AlignCenter, command.text)
