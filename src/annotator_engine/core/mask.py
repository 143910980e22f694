"""Raster compositing of mask strokes."""

from __future__ import annotations

import base64
import logging
from typing import Iterable, Optional, Sequence, Tuple

from PyQt6.QtCore import QBuffer, QByteArray, QIODevice, QPointF, Qt
from PyQt6.QtGui import QColor, QImage, QPainter, QPainterPath, QPen

from .models import MaskStroke, StrokeMode
from .taxonomy import LabelTaxonomy

logger = logging.getLogger(__name__)


def _paint_stroke(painter: QPainter, stroke: MaskStroke, color: QColor) -> None:
    """Composite one stroke: a disc at every center joined by round-capped segments."""
    if not stroke.path:
        return

    if len(stroke.path) == 1:
        x, y = stroke.path[0]
        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(color)
        painter.drawEllipse(QPointF(x, y), stroke.radius, stroke.radius)
        return

    path = QPainterPath(QPointF(*stroke.path[0]))
    for x, y in stroke.path[1:]:
        path.lineTo(x, y)

    pen = QPen(color, stroke.radius * 2)
    pen.setCapStyle(Qt.PenCapStyle.RoundCap)
    pen.setJoinStyle(Qt.PenJoinStyle.RoundJoin)
    painter.setPen(pen)
    painter.setBrush(Qt.BrushStyle.NoBrush)
    painter.drawPath(path)


def rasterize_strokes(
    strokes: Iterable[MaskStroke],
    taxonomy: LabelTaxonomy,
    width: int,
    height: int,
    opacity: float = 0.5
) -> QImage:
    """
    Replay strokes in order onto a transparent image-space layer.

    Paint strokes overwrite whatever is under them with the label color
    at ``opacity``; erase strokes clear to transparent.

    Args:
        strokes: Strokes in the order they were made
        taxonomy: Label colors
        width: Layer width in image pixels
        height: Layer height in image pixels
        opacity: Alpha of painted regions, 0-1

    Returns:
        ARGB32 premultiplied layer
    """
    image = QImage(max(1, width), max(1, height), QImage.Format.Format_ARGB32_Premultiplied)
    image.fill(Qt.GlobalColor.transparent)

    alpha = int(max(0.0, min(1.0, opacity)) * 255)
    painter = QPainter(image)
    try:
        for stroke in strokes:
            if stroke.mode == StrokeMode.ERASE:
                painter.setCompositionMode(QPainter.CompositionMode.CompositionMode_Clear)
                color = QColor(0, 0, 0, 255)
            else:
                painter.setCompositionMode(QPainter.CompositionMode.CompositionMode_Source)
                color = QColor(taxonomy.color_of(stroke.label_id))
                color.setAlpha(alpha)
            _paint_stroke(painter, stroke, color)
    finally:
        painter.end()

    return image


def painted_pixel_count(image: QImage) -> int:
    """Count pixels with any coverage in a mask layer."""
    if image.isNull():
        return 0

    rgba = image.convertToFormat(QImage.Format.Format_RGBA8888)
    ptr = rgba.constBits()
    ptr.setsize(rgba.sizeInBytes())
    alphas = bytes(ptr)[3::4]
    return len(alphas) - alphas.count(0)


def has_paint(strokes: Iterable[MaskStroke]) -> bool:
    """True if at least one stroke put paint on the layer."""
    return any(not stroke.is_empty for stroke in strokes)


def encode_png_base64(image: QImage) -> str:
    """Encode a layer as base64 PNG for export."""
    data = QByteArray()
    buffer = QBuffer(data)
    buffer.open(QIODevice.OpenModeFlag.WriteOnly)
    if not image.save(buffer, "PNG"):
        logger.error("Failed to encode mask layer as PNG")
    buffer.close()
    return base64.b64encode(bytes(data)).decode("ascii")


class MaskLayer:
    """
    Cached raster of an item's strokes.

    Re-rasterizes only when the stroke sequence or layer size changes.
    """

    def __init__(self, taxonomy: LabelTaxonomy, opacity: float = 0.5) -> None:
        self._taxonomy = taxonomy
        self._opacity = opacity
        self._key: Optional[Tuple[Tuple[MaskStroke, ...], int, int]] = None
        self._image: Optional[QImage] = None

    def image_for(self, strokes: Sequence[MaskStroke], width: int, height: int) -> QImage:
        """Get the layer for these strokes, rasterizing if needed."""
        key = (tuple(strokes), width, height)
        if key != self._key or self._image is None:
            self._image = rasterize_strokes(strokes, self._taxonomy, width, height, self._opacity)
            self._key = key
        return self._image
