"""Annotation session: items, per-item annotations and history, navigation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from PyQt6.QtCore import QObject, QPointF, pyqtSignal

from .config import EngineConfig
from .errors import EngineWarning, SessionClosedError
from .geometry import Viewport, clamp_zoom, pan_by, zoom_at
from .mask import has_paint
from .models import Annotation, BoxAnnotation, Keypoint, MaskStroke
from .state_machine import DrawStateMachine, Tool
from .store import AnnotationStore
from .taxonomy import LabelTaxonomy, taxonomy_for_task
from .undo_redo import HistoryStack

logger = logging.getLogger(__name__)


class TaskVariant(str, Enum):
    """Which annotation task the session serves."""

    BOUNDING_BOX = "bounding_box"
    SEGMENTATION = "segmentation"
    KEYPOINT = "keypoint"

    @property
    def default_tool(self) -> Tool:
        """Tool active when the session opens."""
        return {
            TaskVariant.BOUNDING_BOX: Tool.DRAW,
            TaskVariant.SEGMENTATION: Tool.PAINT,
            TaskVariant.KEYPOINT: Tool.KEYPOINT,
        }[self]

    @property
    def default_category(self) -> str:
        """Taxonomy category used when the task names none."""
        return {
            TaskVariant.BOUNDING_BOX: "object_detection",
            TaskVariant.SEGMENTATION: "semantic_segmentation",
            TaskVariant.KEYPOINT: "pose_keypoints",
        }[self]


class ItemStatus(str, Enum):
    """Image loading status of an item."""

    PENDING = "pending"
    LOADED = "loaded"
    FAILED = "failed"


@dataclass
class ItemRef:
    """One unit of work: an image to annotate."""

    source: str
    title: str = ""
    status: ItemStatus = ItemStatus.PENDING
    width: int = 0
    height: int = 0
    error: str = ""


class AnnotationSession(QObject):
    """
    Owns everything a task's annotation work needs.

    Annotation lists and history stacks are stored per item index and
    survive navigation; the store is a view bound to the current item's
    entries. The session is created when a task opens and disposed when
    it is submitted or abandoned.
    """

    item_changed = pyqtSignal(int)
    item_status_changed = pyqtSignal(int, str)
    annotations_changed = pyqtSignal()
    viewport_changed = pyqtSignal(object)
    warning_raised = pyqtSignal(str)

    def __init__(
        self,
        items: Sequence[ItemRef],
        variant: TaskVariant = TaskVariant.BOUNDING_BOX,
        taxonomy: Optional[LabelTaxonomy] = None,
        config: Optional[EngineConfig] = None,
        required_labels: Optional[Sequence[str]] = None,
    ) -> None:
        """
        Initialize the session on its first item.

        Args:
            items: Items in work order (at least one)
            variant: Task variant; selects the default tool and completion rule
            taxonomy: Label set; defaults to the variant's built-in taxonomy
            config: Engine settings
            required_labels: Label ids an item must carry under strict completion
        """
        super().__init__()
        if not items:
            raise ValueError("A session needs at least one item")

        self.variant = TaskVariant(variant)
        self.config = config or EngineConfig()
        self.taxonomy = taxonomy or taxonomy_for_task(self.variant.default_category)
        self.required_labels = list(required_labels) if required_labels else None

        self._items: List[ItemRef] = list(items)
        self._current_index = 0
        self._viewport = Viewport()
        self._closed = False

        self.annotations_by_item: Dict[int, List[Annotation]] = {}
        self.histories_by_item: Dict[int, HistoryStack] = {}

        self.store = AnnotationStore(on_change=self.annotations_changed.emit)
        self.machine = DrawStateMachine(self)
        self.machine.warning_raised.connect(self.warning_raised.emit)
        self.machine.set_tool(self.variant.default_tool)
        if len(self.taxonomy):
            self.machine.select_label(self.taxonomy.labels[0].id)

        self._bind_current()
        logger.info(
            f"Session created: {len(self._items)} items, {self.variant.value}, "
            f"{len(self.taxonomy)} labels"
        )

    @classmethod
    def create(
        cls,
        images: Iterable[str],
        variant: TaskVariant = TaskVariant.BOUNDING_BOX,
        category: str = "",
        labels: Optional[Sequence[Dict[str, Any]]] = None,
        config: Optional[EngineConfig] = None,
        required_labels: Optional[Sequence[str]] = None,
    ) -> AnnotationSession:
        """
        Create a session from task inputs.

        Args:
            images: Image sources in work order
            variant: Task variant
            category: Task category, used to pick a default taxonomy
            labels: Optional task-supplied label records ({name, colorHint})
            config: Engine settings
            required_labels: Label ids required under strict completion
        """
        variant = TaskVariant(variant)
        taxonomy = taxonomy_for_task(category or variant.default_category, labels)
        items = [ItemRef(source=str(image)) for image in images]
        return cls(items, variant, taxonomy, config, required_labels)

    # === Lifecycle ===

    def _check_open(self) -> None:
        if self._closed:
            raise SessionClosedError("Session has been disposed")

    @property
    def closed(self) -> bool:
        """True once the session has been disposed."""
        return self._closed

    def dispose(self) -> None:
        """Discard every annotation list and history stack."""
        if self._closed:
            return
        self.machine.cancel()
        self.store.unbind()
        self.annotations_by_item.clear()
        self.histories_by_item.clear()
        self._closed = True
        logger.info("Session disposed")

    # === Items and navigation ===

    @property
    def items(self) -> List[ItemRef]:
        """Items in work order."""
        return list(self._items)

    @property
    def item_count(self) -> int:
        """Number of items."""
        return len(self._items)

    @property
    def current_index(self) -> int:
        """Index of the item being annotated."""
        return self._current_index

    @property
    def current_item(self) -> ItemRef:
        """The item being annotated."""
        return self._items[self._current_index]

    def _ensure_item(self, index: int) -> List[Annotation]:
        if index not in self.annotations_by_item:
            self.annotations_by_item[index] = []
            self.histories_by_item[index] = HistoryStack(
                max_history=self.config.max_history_entries
            )
        return self.annotations_by_item[index]

    def _bind_current(self) -> None:
        index = self._current_index
        items = self._ensure_item(index)
        self.store.bind(items, self.histories_by_item[index])

    def go_to(self, index: int) -> None:
        """
        Make another item current.

        Any shape in progress on the leaving item is discarded. The
        leaving item's annotations and history stay where they are,
        keyed by its index.

        Raises:
            IndexError: If index is out of range
            SessionClosedError: If the session was disposed
        """
        self._check_open()
        if not 0 <= index < len(self._items):
            raise IndexError(f"Item index {index} out of range (0-{len(self._items) - 1})")

        self.machine.cancel()
        self.machine.select(None)
        if index == self._current_index:
            return

        self._current_index = index
        self._bind_current()
        logger.info(f"Moved to item {index}: {self.current_item.source}")
        self.item_changed.emit(index)
        self.annotations_changed.emit()

    def next_item(self) -> bool:
        """Move to the following item. Returns False at the last item."""
        if self._current_index + 1 >= len(self._items):
            return False
        self.go_to(self._current_index + 1)
        return True

    def previous_item(self) -> bool:
        """Move to the preceding item. Returns False at the first item."""
        if self._current_index == 0:
            return False
        self.go_to(self._current_index - 1)
        return True

    def annotations_for(self, index: int) -> List[Annotation]:
        """Get a copy of an item's annotations."""
        self._check_open()
        return list(self.annotations_by_item.get(index, []))

    def history_for(self, index: int) -> HistoryStack:
        """Get an item's history stack, creating it if unseen."""
        self._check_open()
        self._ensure_item(index)
        return self.histories_by_item[index]

    def load_annotations(self, annotations_by_item: Mapping[int, Sequence[Annotation]]) -> None:
        """
        Seed items with existing annotations (e.g. a restored draft).

        Each seeded item's history restarts from the loaded list.
        """
        self._check_open()
        self.machine.cancel()
        for index, annotations in annotations_by_item.items():
            if not 0 <= index < len(self._items):
                logger.warning(f"Ignoring annotations for unknown item {index}")
                continue
            items = self._ensure_item(index)
            items[:] = list(annotations)
            self.histories_by_item[index].clear(tuple(items))
        self.annotations_changed.emit()

    # === Undo/redo ===

    def undo(self) -> bool:
        """Undo the last change on the current item."""
        self._check_open()
        self.machine.cancel()
        snapshot = self.store.history.undo()
        if snapshot is None:
            return False
        self.store.restore(snapshot)
        return True

    def redo(self) -> bool:
        """Redo the last undone change on the current item."""
        self._check_open()
        self.machine.cancel()
        snapshot = self.store.history.redo()
        if snapshot is None:
            return False
        self.store.restore(snapshot)
        return True

    def clear_item(self) -> None:
        """Remove all annotations from the current item (undoable)."""
        self._check_open()
        self.machine.cancel()
        self.machine.select(None)
        self.store.clear()

    # === Image lifecycle ===

    def mark_image_loaded(self, index: int, width: int, height: int) -> None:
        """Record that an item's image is decoded and ready for input."""
        item = self._items[index]
        item.status = ItemStatus.LOADED
        item.width = width
        item.height = height
        item.error = ""
        logger.info(f"Item {index} loaded ({width}x{height})")
        self.item_status_changed.emit(index, item.status.value)

    def mark_image_failed(self, index: int, reason: str) -> None:
        """Record that an item's image could not be loaded; input is refused for it."""
        item = self._items[index]
        item.status = ItemStatus.FAILED
        item.error = reason
        logger.error(f"Item {index} unusable: {reason}")
        if index == self._current_index:
            self.machine.cancel()
            self.warning_raised.emit(EngineWarning.IMAGE_FAILED.value)
        self.item_status_changed.emit(index, item.status.value)

    @property
    def image_ready(self) -> bool:
        """True if the current item's image is loaded."""
        return not self._closed and self.current_item.status == ItemStatus.LOADED

    @property
    def image_failed(self) -> bool:
        """True if the current item's image failed to load."""
        return self.current_item.status == ItemStatus.FAILED

    # === Viewport ===

    @property
    def viewport(self) -> Viewport:
        """Current zoom and pan. Never affects stored geometry."""
        return self._viewport

    @viewport.setter
    def viewport(self, viewport: Viewport) -> None:
        zoom = clamp_zoom(viewport.zoom, self.config.min_zoom, self.config.max_zoom)
        if zoom != viewport.zoom:
            viewport = Viewport(viewport.origin_x, viewport.origin_y, zoom)
        if viewport != self._viewport:
            self._viewport = viewport
            self.viewport_changed.emit(viewport)

    def set_zoom(self, zoom: float, anchor: Optional[QPointF] = None) -> float:
        """
        Zoom around a screen point (the viewport origin by default).

        Returns:
            The clamped zoom
        """
        if anchor is None:
            anchor = QPointF(self._viewport.origin_x, self._viewport.origin_y)
        self.viewport = zoom_at(
            self._viewport, zoom, anchor, self.config.min_zoom, self.config.max_zoom
        )
        return self._viewport.zoom

    def zoom_in(self, anchor: Optional[QPointF] = None) -> float:
        """Increase zoom by one step."""
        return self.set_zoom(self._viewport.zoom + self.config.zoom_step, anchor)

    def zoom_out(self, anchor: Optional[QPointF] = None) -> float:
        """Decrease zoom by one step."""
        return self.set_zoom(self._viewport.zoom - self.config.zoom_step, anchor)

    def pan_by(self, dx: float, dy: float) -> None:
        """Shift the view by a screen-space delta."""
        self.viewport = pan_by(self._viewport, dx, dy)

    def reset_view(self) -> None:
        """Return to zoom 1 with the image at the canvas origin."""
        self.viewport = Viewport()

    # === Completion and statistics ===

    def _required(self) -> List[str]:
        return self.required_labels if self.required_labels is not None else self.taxonomy.ids

    def is_item_complete(self, index: int) -> bool:
        """Apply the variant's completion rule to one item."""
        self._check_open()
        if self._items[index].status == ItemStatus.FAILED:
            return False

        annotations = self.annotations_by_item.get(index, [])

        if self.variant == TaskVariant.SEGMENTATION:
            return has_paint(a for a in annotations if isinstance(a, MaskStroke))

        kind = BoxAnnotation if self.variant == TaskVariant.BOUNDING_BOX else Keypoint
        shapes = [a for a in annotations if isinstance(a, kind)]
        if not self.config.strict_completion:
            return bool(shapes)

        present = {a.label_id for a in shapes}
        return all(label_id in present for label_id in self._required())

    def completed_count(self) -> int:
        """Number of items satisfying the completion rule."""
        return sum(1 for i in range(len(self._items)) if self.is_item_complete(i))

    def can_submit(self) -> bool:
        """True when every item is complete."""
        return self.completed_count() == len(self._items)

    def label_counts(self, index: Optional[int] = None) -> Dict[str, int]:
        """Count annotations per label id on an item (current item by default)."""
        self._check_open()
        index = self._current_index if index is None else index
        counts = {label_id: 0 for label_id in self.taxonomy.ids}
        for annotation in self.annotations_by_item.get(index, []):
            if annotation.label_id:
                counts[annotation.label_id] = counts.get(annotation.label_id, 0) + 1
        return counts

    def total_annotations(self) -> int:
        """Number of annotations across all items."""
        self._check_open()
        return sum(len(annotations) for annotations in self.annotations_by_item.values())
