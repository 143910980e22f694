"""Data models for annotations.

All geometry is stored in image space. Annotations are immutable; edits
produce new instances, so a list snapshot can never change under the
history stack.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Tuple, Union

from PyQt6.QtCore import QPointF, QRectF

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 95

# Resize handle names, one per box corner
HANDLES = ("topleft", "topright", "bottomleft", "bottomright")


class AnnotationKind(str, Enum):
    """Geometry kind of an annotation."""

    BOX = "box"
    MASK_STROKE = "mask_stroke"
    KEYPOINT = "keypoint"


class StrokeMode(str, Enum):
    """Whether a mask stroke adds or removes paint."""

    PAINT = "paint"
    ERASE = "erase"


def new_annotation_id() -> str:
    """Generate a unique annotation id."""
    return uuid.uuid4().hex


def clamp_confidence(value: float) -> int:
    """Clamp a confidence value to 0-100."""
    return int(max(0, min(100, round(value))))


@dataclass(frozen=True)
class BoxAnnotation:
    """
    Axis-aligned bounding box.

    ``x``/``y`` is the top-left corner. Negative extents passed to the
    constructor are normalized by swapping corners.
    """

    id: str
    label_id: str
    x: float
    y: float
    width: float
    height: float
    confidence: int = DEFAULT_CONFIDENCE

    kind = AnnotationKind.BOX

    def __post_init__(self) -> None:
        if self.width < 0:
            object.__setattr__(self, "x", self.x + self.width)
            object.__setattr__(self, "width", -self.width)
        if self.height < 0:
            object.__setattr__(self, "y", self.y + self.height)
            object.__setattr__(self, "height", -self.height)
        object.__setattr__(self, "confidence", clamp_confidence(self.confidence))

    @property
    def has_area(self) -> bool:
        """True if both sides are positive."""
        return self.width > 0 and self.height > 0

    def rect(self) -> QRectF:
        """Get the box as a QRectF."""
        return QRectF(self.x, self.y, self.width, self.height)

    def contains(self, point: QPointF) -> bool:
        """Check whether an image-space point lies inside the box (edges included)."""
        return (
            self.x <= point.x() <= self.x + self.width and
            self.y <= point.y() <= self.y + self.height
        )

    def corners(self) -> Dict[str, QPointF]:
        """Get the four corners keyed by handle name."""
        return {
            "topleft": QPointF(self.x, self.y),
            "topright": QPointF(self.x + self.width, self.y),
            "bottomleft": QPointF(self.x, self.y + self.height),
            "bottomright": QPointF(self.x + self.width, self.y + self.height),
        }

    def moved_by(self, dx: float, dy: float) -> BoxAnnotation:
        """Get a copy translated by an image-space delta."""
        return replace(self, x=self.x + dx, y=self.y + dy)

    def resized(self, handle: str, point: QPointF) -> BoxAnnotation:
        """
        Get a copy with one corner dragged to ``point``.

        The opposite corner stays fixed; dragging past it flips the box
        instead of producing a negative size.

        Args:
            handle: One of HANDLES
            point: New image-space position of that corner
        """
        if handle not in HANDLES:
            raise ValueError(f"Unknown resize handle: {handle}")

        left, top = self.x, self.y
        right, bottom = self.x + self.width, self.y + self.height

        if "left" in handle:
            left = point.x()
        else:
            right = point.x()
        if handle.startswith("top"):
            top = point.y()
        else:
            bottom = point.y()

        return replace(
            self,
            x=min(left, right),
            y=min(top, bottom),
            width=abs(right - left),
            height=abs(bottom - top),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a submission record."""
        return {
            "id": self.id,
            "type": self.kind.value,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "label": self.label_id,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class MaskStroke:
    """
    One paint or erase operation over the mask layer.

    ``path`` holds the centers of the discs composited along the stroke.
    """

    id: str
    label_id: str
    path: Tuple[Tuple[float, float], ...] = field(default_factory=tuple)
    radius: float = 20.0
    mode: StrokeMode = StrokeMode.PAINT

    kind = AnnotationKind.MASK_STROKE

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", tuple((float(x), float(y)) for x, y in self.path))
        if self.radius <= 0:
            raise ValueError(f"Stroke radius must be positive, got {self.radius}")

    @property
    def is_empty(self) -> bool:
        """True if the stroke adds no paint."""
        return self.mode == StrokeMode.ERASE or not self.path

    def extended(self, point: QPointF) -> MaskStroke:
        """Get a copy with one more center appended."""
        return replace(self, path=self.path + ((point.x(), point.y()),))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a submission record."""
        return {
            "id": self.id,
            "type": self.kind.value,
            "label": self.label_id,
            "mode": self.mode.value,
            "radius": self.radius,
            "path": [[x, y] for x, y in self.path],
        }


@dataclass(frozen=True)
class Keypoint:
    """A single labeled point. At most one keypoint per label in an item."""

    id: str
    label_id: str
    x: float
    y: float

    kind = AnnotationKind.KEYPOINT

    def point(self) -> QPointF:
        """Get the position as a QPointF."""
        return QPointF(self.x, self.y)

    def moved_to(self, x: float, y: float) -> Keypoint:
        """Get a copy at a new position."""
        return replace(self, x=x, y=y)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a submission record."""
        return {
            "id": self.id,
            "type": self.kind.value,
            "label": self.label_id,
            "x": self.x,
            "y": self.y,
        }


Annotation = Union[BoxAnnotation, MaskStroke, Keypoint]


def annotation_from_dict(data: Dict[str, Any]) -> Annotation:
    """
    Create an annotation from a submission record.

    Raises:
        ValueError: If the record type is unknown, or fields are missing
            or hold values of the wrong shape
    """
    if not isinstance(data, dict):
        raise ValueError(f"Annotation record must be an object, got {type(data).__name__}")

    kind = data.get("type")
    try:
        if kind == AnnotationKind.BOX.value:
            box = BoxAnnotation(
                id=data.get("id") or new_annotation_id(),
                label_id=data["label"],
                x=float(data["x"]),
                y=float(data["y"]),
                width=float(data["width"]),
                height=float(data["height"]),
                confidence=float(data.get("confidence", DEFAULT_CONFIDENCE)),
            )
            if not box.has_area:
                raise ValueError(f"Box {box.id} has no area")
            return box
        if kind == AnnotationKind.KEYPOINT.value:
            return Keypoint(
                id=data.get("id") or new_annotation_id(),
                label_id=data["label"],
                x=float(data["x"]),
                y=float(data["y"]),
            )
        if kind == AnnotationKind.MASK_STROKE.value:
            return MaskStroke(
                id=data.get("id") or new_annotation_id(),
                label_id=data.get("label", ""),
                path=tuple((p[0], p[1]) for p in data.get("path", [])),
                radius=float(data.get("radius", 20.0)),
                mode=StrokeMode(data.get("mode", StrokeMode.PAINT.value)),
            )
    except KeyError as e:
        raise ValueError(f"Annotation record missing field {e}") from e
    except (TypeError, IndexError) as e:
        raise ValueError(f"Malformed {kind} record: {e}") from e

    raise ValueError(f"Unknown annotation type: {kind!r}")

