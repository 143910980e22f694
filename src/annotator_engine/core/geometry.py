"""Coordinate mapping between screen space and image space."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Tuple

from PyQt6.QtCore import QPointF


@dataclass(frozen=True)
class Viewport:
    """
    Placement of the image on the canvas.

    ``origin_x``/``origin_y`` is the screen position of image pixel (0, 0),
    ``zoom`` the number of screen pixels per image pixel.
    """

    origin_x: float = 0.0
    origin_y: float = 0.0
    zoom: float = 1.0

    def __post_init__(self) -> None:
        if self.zoom <= 0:
            raise ValueError(f"Zoom must be positive, got {self.zoom}")


def to_image_space(point: QPointF, viewport: Viewport) -> QPointF:
    """Map a screen-space point to image space."""
    return QPointF(
        (point.x() - viewport.origin_x) / viewport.zoom,
        (point.y() - viewport.origin_y) / viewport.zoom,
    )


def to_screen_space(point: QPointF, viewport: Viewport) -> QPointF:
    """Map an image-space point to screen space."""
    return QPointF(
        point.x() * viewport.zoom + viewport.origin_x,
        point.y() * viewport.zoom + viewport.origin_y,
    )


def to_screen_length(length: float, viewport: Viewport) -> float:
    """Scale an image-space length to screen pixels."""
    return length * viewport.zoom


def to_image_length(length: float, viewport: Viewport) -> float:
    """Scale a screen-space length to image pixels."""
    return length / viewport.zoom


def clamp_zoom(zoom: float, min_zoom: float, max_zoom: float) -> float:
    """Clamp a zoom factor to the configured range."""
    return max(min(zoom, max_zoom), min_zoom)


def zoom_at(
    viewport: Viewport,
    new_zoom: float,
    anchor: QPointF,
    min_zoom: float = 0.5,
    max_zoom: float = 2.0
) -> Viewport:
    """
    Change the zoom while keeping the image point under ``anchor`` fixed.

    Args:
        viewport: Current viewport
        new_zoom: Requested zoom, clamped to [min_zoom, max_zoom]
        anchor: Screen-space point that must not move (usually the cursor)
        min_zoom: Lower zoom bound
        max_zoom: Upper zoom bound

    Returns:
        New viewport
    """
    new_zoom = clamp_zoom(new_zoom, min_zoom, max_zoom)
    fixed = to_image_space(anchor, viewport)
    return Viewport(
        origin_x=anchor.x() - fixed.x() * new_zoom,
        origin_y=anchor.y() - fixed.y() * new_zoom,
        zoom=new_zoom,
    )


def pan_by(viewport: Viewport, dx: float, dy: float) -> Viewport:
    """Shift the viewport origin by a screen-space delta."""
    return replace(viewport, origin_x=viewport.origin_x + dx, origin_y=viewport.origin_y + dy)


def normalize_rect(p1: QPointF, p2: QPointF) -> Tuple[float, float, float, float]:
    """
    Get the rectangle spanned by two corners, whatever the drag direction.

    Returns:
        Tuple of (x, y, width, height) with non-negative width and height
    """
    x = min(p1.x(), p2.x())
    y = min(p1.y(), p2.y())
    return (x, y, abs(p2.x() - p1.x()), abs(p2.y() - p1.y()))


def distance(a: QPointF, b: QPointF) -> float:
    """Euclidean distance between two points."""
    return math.hypot(a.x() - b.x(), a.y() - b.y())
