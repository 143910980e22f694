"""Draw/edit state machine: turns pointer events into annotation mutations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

from PyQt6.QtCore import QObject, QPointF, pyqtSignal

from .errors import EngineWarning
from .geometry import distance, normalize_rect, to_image_length, to_image_space
from .models import (
    Annotation, BoxAnnotation, Keypoint, MaskStroke, StrokeMode,
    clamp_confidence, new_annotation_id
)
from .taxonomy import Label

if TYPE_CHECKING:
    from .session import AnnotationSession

logger = logging.getLogger(__name__)


class Tool(str, Enum):
    """Active canvas tool."""

    DRAW = "draw"
    SELECT = "select"
    PAINT = "paint"
    ERASE = "erase"
    KEYPOINT = "keypoint"
    PAN = "pan"


class InteractionState(str, Enum):
    """State of the pointer interaction in progress."""

    IDLE = "idle"
    DRAWING = "drawing"
    DRAGGING = "dragging"
    RESIZING = "resizing"
    PAINTING = "painting"
    PANNING = "panning"


@dataclass(frozen=True)
class HitResult:
    """What lies under the pointer: an annotation and optionally one of its handles."""

    annotation_id: str
    handle: Optional[str] = None


class DrawStateMachine(QObject):
    """
    Interprets pointer events for the session's current item.

    Pointer positions arrive in screen space and are mapped to image
    space on entry; nothing in screen space reaches the store. Shapes
    being drawn, dragged, resized or painted are transient until
    pointer-up, when they are committed as a single history entry.
    """

    state_changed = pyqtSignal(str)
    selection_changed = pyqtSignal(object)  # Annotation id or None
    label_changed = pyqtSignal(object)  # Label or None
    transient_changed = pyqtSignal()
    warning_raised = pyqtSignal(str)

    def __init__(self, session: AnnotationSession) -> None:
        """
        Initialize the state machine.

        Args:
            session: Session providing store, taxonomy, viewport and config
        """
        super().__init__()
        self._session = session
        config = session.config

        self.tool = Tool.DRAW
        self.state = InteractionState.IDLE
        self.selected_label: Optional[Label] = None
        self.selected_id: Optional[str] = None
        self.confidence = clamp_confidence(config.default_confidence)
        self.brush_radius = config.brush_radius
        self.auto_advance = config.auto_advance_keypoints

        self.transient: Optional[Annotation] = None
        self._original: Optional[Annotation] = None
        self._anchor: Optional[QPointF] = None
        self._handle: Optional[str] = None
        self._pending_click = False
        self._last_screen: Optional[QPointF] = None

    # === Helpers ===

    def _set_state(self, state: InteractionState) -> None:
        if state != self.state:
            self.state = state
            self.state_changed.emit(state.value)

    def _warn(self, warning: EngineWarning) -> None:
        logger.warning(warning.value)
        self.warning_raised.emit(warning.value)

    def _image_point(self, screen_point: QPointF) -> QPointF:
        return to_image_space(screen_point, self._session.viewport)

    def _tolerance(self) -> float:
        """Hit tolerance in image pixels."""
        return to_image_length(self._session.config.handle_tolerance, self._session.viewport)

    def _input_allowed(self) -> bool:
        if self._session.image_ready:
            return True
        if self._session.image_failed:
            self._warn(EngineWarning.IMAGE_FAILED)
        else:
            self._warn(EngineWarning.IMAGE_NOT_READY)
        return False

    def _reset_transient(self) -> None:
        had_transient = self.transient is not None
        self.transient = None
        self._original = None
        self._anchor = None
        self._handle = None
        self._pending_click = False
        self._last_screen = None
        if had_transient:
            self.transient_changed.emit()

    # === Configuration ===

    def set_tool(self, tool: Tool) -> None:
        """Switch tools, cancelling any interaction in progress."""
        self.cancel()
        self.tool = Tool(tool)
        logger.debug(f"Tool: {self.tool.value}")

    def select_label(self, label_id: Optional[str]) -> Optional[Label]:
        """
        Set the active label.

        Args:
            label_id: Label id, or None to deselect

        Returns:
            The selected label, or None if deselected or unknown
        """
        label = self._session.taxonomy.get(label_id) if label_id else None
        if label_id and label is None:
            logger.warning(f"Unknown label id: {label_id}")
        if label != self.selected_label:
            self.selected_label = label
            self.label_changed.emit(label)
        return label

    def handle_shortcut(self, char: str) -> Optional[Label]:
        """Select the label bound to a keyboard shortcut, if any."""
        label = self._session.taxonomy.select_by_shortcut(char)
        if label:
            self.select_label(label.id)
        return label

    def set_confidence(self, value: float) -> int:
        """
        Set the confidence for new boxes and for the selected box.

        Consecutive changes to the same box fold into one history entry,
        so dragging the slider undoes in a single step.

        Returns:
            The clamped value
        """
        self.confidence = clamp_confidence(value)
        selected = self.selected()
        if isinstance(selected, BoxAnnotation):
            self._session.store.update(
                selected.id,
                description="Change confidence",
                merge_key=f"confidence:{selected.id}",
                confidence=self.confidence,
            )
        return self.confidence

    def set_brush_radius(self, radius: float) -> float:
        """
        Set the paint/erase brush radius in screen pixels.

        Returns:
            The clamped radius
        """
        config = self._session.config
        self.brush_radius = max(config.min_brush_radius, min(config.max_brush_radius, radius))
        return self.brush_radius

    # === Selection ===

    def selected(self) -> Optional[Annotation]:
        """Get the selected annotation, if it still exists."""
        if self.selected_id is None:
            return None
        return self._session.store.get(self.selected_id)

    def select(self, annotation_id: Optional[str]) -> None:
        """Select an annotation by id, or clear the selection."""
        if annotation_id != self.selected_id:
            self.selected_id = annotation_id
            self.selection_changed.emit(annotation_id)

    def delete_selected(self) -> bool:
        """
        Delete the selected annotation.

        Returns:
            True if something was deleted
        """
        if self.selected_id is None:
            return False
        result = self._session.store.remove(self.selected_id)
        self.select(None)
        return bool(result)

    def hit_test(self, screen_point: QPointF) -> Optional[HitResult]:
        """
        Find the annotation under a screen point.

        Resize handles of the selected box win, then handles of any box,
        then box bodies, then keypoints. Later annotations are on top.
        A handle's reach is capped at a quarter of its box's shorter side,
        so a small box keeps a body area that can be dragged.
        """
        point = self._image_point(screen_point)
        tolerance = self._tolerance()
        annotations = list(reversed(self._session.store.list()))

        selected = self.selected()
        if isinstance(selected, BoxAnnotation):
            annotations.remove(selected)
            annotations.insert(0, selected)

        boxes = [a for a in annotations if isinstance(a, BoxAnnotation)]
        for box in boxes:
            reach = min(tolerance, min(box.width, box.height) / 4)
            for handle, corner in box.corners().items():
                if distance(corner, point) <= reach:
                    return HitResult(box.id, handle)

        for box in boxes:
            if box.contains(point):
                return HitResult(box.id)

        for annotation in annotations:
            if isinstance(annotation, Keypoint) and distance(annotation.point(), point) <= tolerance:
                return HitResult(annotation.id)

        return None

    # === Pointer events ===

    def pointer_down(self, screen_point: QPointF) -> bool:
        """
        Handle a pointer press.

        Returns:
            True if an interaction started
        """
        if self.state != InteractionState.IDLE:
            logger.debug(f"Pointer down ignored in state {self.state.value}")
            return False
        if not self._input_allowed():
            return False

        point = self._image_point(screen_point)

        if self.tool == Tool.PAN:
            self._last_screen = QPointF(screen_point)
            self._set_state(InteractionState.PANNING)
            return True

        if self.tool == Tool.SELECT:
            return self._begin_edit(screen_point, point)

        if self.tool == Tool.DRAW:
            hit = self.hit_test(screen_point)
            if hit and hit.handle:
                return self._begin_edit(screen_point, point)
            return self._begin_box(point)

        if self.tool in (Tool.PAINT, Tool.ERASE):
            return self._begin_stroke(point)

        if self.tool == Tool.KEYPOINT:
            if self.selected_label is None:
                self._warn(EngineWarning.NO_LABEL_SELECTED)
                return False
            self._pending_click = True
            return True

        return False

    def pointer_move(self, screen_point: QPointF) -> None:
        """Handle pointer movement."""
        if self.state == InteractionState.IDLE:
            return

        point = self._image_point(screen_point)

        if self.state == InteractionState.PANNING:
            delta = screen_point - self._last_screen
            self._last_screen = QPointF(screen_point)
            self._session.pan_by(delta.x(), delta.y())
            return

        if self.state == InteractionState.DRAWING:
            x, y, w, h = normalize_rect(self._anchor, point)
            self.transient = BoxAnnotation(
                self.transient.id, self.transient.label_id, x, y, w, h, self.confidence
            )
        elif self.state == InteractionState.DRAGGING:
            self.transient = self._dragged(point)
        elif self.state == InteractionState.RESIZING:
            self.transient = self._original.resized(self._handle, point)
        elif self.state == InteractionState.PAINTING:
            last = self.transient.path[-1]
            if (point.x(), point.y()) == last:
                return
            self.transient = self.transient.extended(point)

        self.transient_changed.emit()

    def pointer_up(self, screen_point: QPointF) -> Optional[str]:
        """
        Handle a pointer release, committing the transient shape.

        Returns:
            Id of the annotation added or changed, or None if nothing was committed
        """
        if self._pending_click:
            self._pending_click = False
            return self._place_keypoint(self._image_point(screen_point))

        if self.state == InteractionState.IDLE:
            return None

        self.pointer_move(screen_point)

        state = self.state
        try:
            if state == InteractionState.DRAWING:
                return self._commit_box()
            if state in (InteractionState.DRAGGING, InteractionState.RESIZING):
                return self._commit_edit(state)
            if state == InteractionState.PAINTING:
                return self._commit_stroke()
            return None
        finally:
            self._reset_transient()
            self._set_state(InteractionState.IDLE)

    def cancel(self) -> None:
        """Abandon any interaction in progress without committing."""
        if self.state != InteractionState.IDLE or self._pending_click:
            logger.debug(f"Cancelled {self.state.value}")
        self._reset_transient()
        self._set_state(InteractionState.IDLE)

    # === Box drawing ===

    def _begin_box(self, point: QPointF) -> bool:
        if self.selected_label is None:
            self._warn(EngineWarning.NO_LABEL_SELECTED)
            return False

        self._anchor = QPointF(point)
        self.transient = BoxAnnotation(
            new_annotation_id(), self.selected_label.id,
            point.x(), point.y(), 0.0, 0.0, self.confidence
        )
        self._set_state(InteractionState.DRAWING)
        self.transient_changed.emit()
        return True

    def _commit_box(self) -> Optional[str]:
        box = self.transient
        min_size = self._session.config.min_box_size
        if box.width < min_size or box.height < min_size:
            logger.debug(
                f"Discarded box {box.width:.1f}x{box.height:.1f}, below minimum {min_size}"
            )
            return None

        name = self._session.taxonomy.name_of(box.label_id)
        return self._session.store.add(box, description=f"Add {name} box")

    # === Selection, dragging and resizing ===

    def _begin_edit(self, screen_point: QPointF, point: QPointF) -> bool:
        hit = self.hit_test(screen_point)
        if hit is None:
            self.select(None)
            return False

        annotation = self._session.store.get(hit.annotation_id)
        self.select(annotation.id)
        self._original = annotation
        self.transient = annotation
        self._anchor = QPointF(point)

        if hit.handle:
            self._handle = hit.handle
            self._set_state(InteractionState.RESIZING)
        else:
            self._set_state(InteractionState.DRAGGING)
        return True

    def _dragged(self, point: QPointF) -> Annotation:
        dx = point.x() - self._anchor.x()
        dy = point.y() - self._anchor.y()
        if isinstance(self._original, BoxAnnotation):
            return self._original.moved_by(dx, dy)
        if isinstance(self._original, Keypoint):
            return self._original.moved_to(self._original.x + dx, self._original.y + dy)
        return self._original

    def _commit_edit(self, state: InteractionState) -> Optional[str]:
        edited = self.transient
        if edited == self._original:
            return None

        if isinstance(edited, BoxAnnotation) and state == InteractionState.RESIZING:
            min_size = self._session.config.min_box_size
            if edited.width < min_size or edited.height < min_size:
                logger.debug("Discarded resize below minimum box size")
                return None

        verb = "Resize" if state == InteractionState.RESIZING else "Move"
        name = self._session.taxonomy.name_of(edited.label_id)
        result = self._session.store.put(edited, description=f"{verb} {name}")
        return edited.id if result else None

    # === Painting ===

    def _begin_stroke(self, point: QPointF) -> bool:
        if self.tool == Tool.PAINT and self.selected_label is None:
            self._warn(EngineWarning.NO_LABEL_SELECTED)
            return False

        mode = StrokeMode.ERASE if self.tool == Tool.ERASE else StrokeMode.PAINT
        label_id = self.selected_label.id if mode == StrokeMode.PAINT else ""
        radius = to_image_length(self.brush_radius, self._session.viewport)
        self.transient = MaskStroke(
            new_annotation_id(), label_id, ((point.x(), point.y()),), radius, mode
        )
        self._set_state(InteractionState.PAINTING)
        self.transient_changed.emit()
        return True

    def _commit_stroke(self) -> Optional[str]:
        stroke = self.transient
        description = "Erase" if stroke.mode == StrokeMode.ERASE else (
            f"Paint {self._session.taxonomy.name_of(stroke.label_id)}"
        )
        return self._session.store.add(stroke, description=description)

    # === Keypoints ===

    def _place_keypoint(self, point: QPointF) -> Optional[str]:
        label = self.selected_label
        if label is None:
            self._warn(EngineWarning.NO_LABEL_SELECTED)
            return None

        store = self._session.store
        existing = [a for a in store.find_by_label(label.id) if isinstance(a, Keypoint)]

        if existing:
            keep = existing[0]
            with store.transaction(f"Move {label.name}"):
                store.update(keep.id, x=point.x(), y=point.y())
                for duplicate in existing[1:]:
                    store.remove(duplicate.id)
            return keep.id

        keypoint = Keypoint(new_annotation_id(), label.id, point.x(), point.y())
        store.add(keypoint, description=f"Place {label.name}")

        if self.auto_advance:
            following = self._session.taxonomy.next_after(label.id)
            if following is not None:
                self.select_label(following.id)
        return keypoint.id
