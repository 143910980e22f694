"""Scene description: annotations to screen-space draw commands.

The renderer is a pure function of (annotations, viewport, selection,
transient shape). It reads nothing from the store and draws nothing
itself; a backend executes the commands.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple, Union

from PyQt6.QtCore import QPointF, QRectF
from PyQt6.QtGui import QColor, QImage

from ..core.geometry import Viewport, to_screen_length, to_screen_space
from ..core.mask import MaskLayer
from ..core.models import Annotation, BoxAnnotation, Keypoint, MaskStroke
from ..core.taxonomy import POSE_SKELETON, LabelTaxonomy

if TYPE_CHECKING:
    from ..core.session import AnnotationSession

logger = logging.getLogger(__name__)

FILL_ALPHA = 0x30
TAG_ALPHA = 230
HANDLE_RADIUS = 6.0
KEYPOINT_RADIUS = 6.0
SKELETON_COLOR = "#3B82F6"
SKELETON_ALPHA = 153  # 60%


@dataclass(frozen=True)
class DrawRect:
    rect: QRectF
    color: QColor
    width: float = 2.0
    fill: Optional[QColor] = None
    dashed: bool = False


@dataclass(frozen=True)
class DrawLine:
    start: QPointF
    end: QPointF
    color: QColor
    width: float = 2.0
    dashed: bool = False


@dataclass(frozen=True)
class DrawDisc:
    center: QPointF
    radius: float
    fill: QColor
    outline: Optional[QColor] = None
    width: float = 2.0
    dashed: bool = False


@dataclass(frozen=True)
class DrawText:
    """Label tag; ``anchor`` is the bottom-left corner of the tag background."""

    anchor: QPointF
    text: str
    background: QColor
    color: QColor = field(default_factory=lambda: QColor("#FFFFFF"))
    font_size: int = 12


@dataclass(frozen=True)
class CompositeLayer:
    image: QImage
    target: QRectF


DrawCommand = Union[DrawRect, DrawLine, DrawDisc, DrawText, CompositeLayer]


def _color(hex_color: str, alpha: int = 255) -> QColor:
    color = QColor(hex_color)
    color.setAlpha(alpha)
    return color


def _screen_rect(box: BoxAnnotation, viewport: Viewport) -> QRectF:
    top_left = to_screen_space(QPointF(box.x, box.y), viewport)
    return QRectF(
        top_left.x(),
        top_left.y(),
        to_screen_length(box.width, viewport),
        to_screen_length(box.height, viewport),
    )


def box_commands(
    box: BoxAnnotation,
    viewport: Viewport,
    taxonomy: LabelTaxonomy,
    selected: bool = False,
    show_labels: bool = True,
    line_width: float = 2.0,
    font_size: int = 12
) -> List[DrawCommand]:
    """Translucent fill, outline and label tag for one box."""
    hex_color = taxonomy.color_of(box.label_id)
    rect = _screen_rect(box, viewport)
    commands: List[DrawCommand] = [
        DrawRect(
            rect,
            _color(hex_color),
            width=line_width + 1 if selected else line_width,
            fill=_color(hex_color, FILL_ALPHA),
        )
    ]
    if show_labels:
        commands.append(DrawText(
            rect.topLeft(),
            f"{taxonomy.name_of(box.label_id)} ({box.confidence}%)",
            _color(hex_color, TAG_ALPHA),
            font_size=font_size,
        ))
    return commands


def handle_commands(box: BoxAnnotation, viewport: Viewport, taxonomy: LabelTaxonomy) -> List[DrawCommand]:
    """Resize handles at the four corners of a selected box."""
    outline = _color(taxonomy.color_of(box.label_id))
    return [
        DrawDisc(to_screen_space(corner, viewport), HANDLE_RADIUS, QColor("#FFFFFF"), outline)
        for corner in box.corners().values()
    ]


def keypoint_commands(
    keypoints: Sequence[Keypoint],
    viewport: Viewport,
    taxonomy: LabelTaxonomy,
    skeleton: Sequence[Tuple[str, str]] = POSE_SKELETON,
    selected_id: Optional[str] = None,
    show_labels: bool = True,
    font_size: int = 12
) -> List[DrawCommand]:
    """Skeleton lines between adjacent placed keypoints, then the points."""
    by_label: Dict[str, Keypoint] = {}
    for keypoint in keypoints:
        by_label.setdefault(keypoint.label_id, keypoint)

    commands: List[DrawCommand] = []
    skeleton_color = _color(SKELETON_COLOR, SKELETON_ALPHA)
    for start, end in skeleton:
        if start in by_label and end in by_label:
            commands.append(DrawLine(
                to_screen_space(by_label[start].point(), viewport),
                to_screen_space(by_label[end].point(), viewport),
                skeleton_color,
            ))

    for keypoint in keypoints:
        center = to_screen_space(keypoint.point(), viewport)
        selected = keypoint.id == selected_id
        commands.append(DrawDisc(
            center,
            KEYPOINT_RADIUS + 2 if selected else KEYPOINT_RADIUS,
            _color(taxonomy.color_of(keypoint.label_id)),
            QColor("#FFFFFF"),
        ))
        if show_labels:
            commands.append(DrawText(
                QPointF(center.x() + KEYPOINT_RADIUS, center.y() - KEYPOINT_RADIUS),
                taxonomy.name_of(keypoint.label_id),
                _color(taxonomy.color_of(keypoint.label_id), TAG_ALPHA),
                font_size=font_size,
            ))
    return commands


def transient_commands(
    transient: Annotation,
    viewport: Viewport,
    taxonomy: LabelTaxonomy,
    line_width: float = 2.0
) -> List[DrawCommand]:
    """Dashed outline of a shape not yet committed."""
    color = _color(taxonomy.color_of(transient.label_id))
    if isinstance(transient, BoxAnnotation):
        return [DrawRect(_screen_rect(transient, viewport), color, width=line_width, dashed=True)]
    if isinstance(transient, Keypoint):
        return [DrawDisc(
            to_screen_space(transient.point(), viewport),
            KEYPOINT_RADIUS, color, QColor("#FFFFFF"), dashed=True,
        )]
    if isinstance(transient, MaskStroke) and transient.path:
        # Brush outline at the latest center; the paint itself is in the mask layer
        x, y = transient.path[-1]
        return [DrawDisc(
            to_screen_space(QPointF(x, y), viewport),
            to_screen_length(transient.radius, viewport),
            QColor(0, 0, 0, 0), color, width=1.0, dashed=True,
        )]
    return []


def build_scene(
    annotations: Sequence[Annotation],
    viewport: Viewport,
    taxonomy: LabelTaxonomy,
    selected_id: Optional[str] = None,
    transient: Optional[Annotation] = None,
    mask_layer: Optional[QImage] = None,
    show_labels: bool = True,
    skeleton: Sequence[Tuple[str, str]] = POSE_SKELETON,
    line_width: float = 2.0,
    font_size: int = 12
) -> List[DrawCommand]:
    """
    Describe one frame.

    Order: mask layer, boxes, skeleton and keypoints, selection handles,
    transient shape. An annotation being dragged or resized is drawn
    only as its transient, with handles if it is the selected box.

    Args:
        annotations: Committed annotations of the current item
        viewport: Mapping to screen space
        taxonomy: Label names and colors
        selected_id: Id of the selected annotation
        transient: Shape in progress, if any
        mask_layer: Composited image-space mask raster
        show_labels: Draw label tags
        skeleton: Keypoint label pairs to connect
        line_width: Outline width in screen pixels
        font_size: Tag font size in points

    Returns:
        Draw commands in paint order
    """
    commands: List[DrawCommand] = []
    editing_id = transient.id if transient is not None else None

    if mask_layer is not None and not mask_layer.isNull():
        origin = to_screen_space(QPointF(0, 0), viewport)
        commands.append(CompositeLayer(mask_layer, QRectF(
            origin.x(),
            origin.y(),
            to_screen_length(mask_layer.width(), viewport),
            to_screen_length(mask_layer.height(), viewport),
        )))

    selected_box: Optional[BoxAnnotation] = None
    keypoints: List[Keypoint] = []
    for annotation in annotations:
        if annotation.id == editing_id:
            continue
        if isinstance(annotation, BoxAnnotation):
            selected = annotation.id == selected_id
            if selected:
                selected_box = annotation
            commands.extend(box_commands(
                annotation, viewport, taxonomy, selected, show_labels, line_width, font_size
            ))
        elif isinstance(annotation, Keypoint):
            keypoints.append(annotation)

    if keypoints:
        commands.extend(keypoint_commands(
            keypoints, viewport, taxonomy, skeleton, selected_id, show_labels, font_size
        ))

    if selected_box is not None:
        commands.extend(handle_commands(selected_box, viewport, taxonomy))

    if transient is not None:
        commands.extend(transient_commands(transient, viewport, taxonomy, line_width))
        # A selected box keeps its handles while it is dragged or resized
        if isinstance(transient, BoxAnnotation) and transient.id == selected_id:
            commands.extend(handle_commands(transient, viewport, taxonomy))

    return commands


def scene_for_session(session: AnnotationSession, mask_cache: Optional[MaskLayer] = None) -> List[DrawCommand]:
    """
    Describe the current frame of a session.

    Strokes (including one being painted) are composited into a mask
    layer sized to the current image.
    """
    machine = session.machine
    annotations = session.store.list()
    item = session.current_item

    mask_image = None
    strokes = [a for a in annotations if isinstance(a, MaskStroke)]
    if isinstance(machine.transient, MaskStroke):
        strokes.append(machine.transient)
    if strokes and item.width and item.height:
        cache = mask_cache or MaskLayer(session.taxonomy, session.config.mask_opacity)
        mask_image = cache.image_for(strokes, item.width, item.height)

    return build_scene(
        annotations,
        session.viewport,
        session.taxonomy,
        selected_id=machine.selected_id,
        transient=machine.transient,
        mask_layer=mask_image,
        show_labels=session.config.show_labels,
        line_width=session.config.line_thickness,
        font_size=session.config.font_size,
    )
