"""Annotation store: mutations of the current item's annotation list."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import replace
from enum import Enum
from typing import Any, Callable, Iterator, List, Optional, Sequence, Tuple

from .models import Annotation, BoxAnnotation
from .undo_redo import HistoryStack

logger = logging.getLogger(__name__)


class MutationResult(str, Enum):
    """Outcome of an update or remove call."""

    SUCCESS = "success"
    NOT_FOUND = "not_found"

    def __bool__(self) -> bool:
        return self is MutationResult.SUCCESS


class AnnotationStore:
    """
    View over one item's annotation list.

    The store does not own the list: the session binds it to the entry
    of ``annotations_by_item`` for the current item, so every mutation
    lands in the session directly. Each successful mutation records one
    snapshot in the bound history stack.
    """

    def __init__(self, on_change: Optional[Callable[[], None]] = None) -> None:
        """
        Initialize an unbound store.

        Args:
            on_change: Called after every change to the list, including undo/redo
        """
        self._items: Optional[List[Annotation]] = None
        self._history: Optional[HistoryStack] = None
        self._on_change = on_change
        self._transaction_depth = 0
        self._transaction_dirty = False
        self._transaction_description = ""

    def bind(self, items: List[Annotation], history: HistoryStack) -> None:
        """
        Point the store at another item's list and history.

        Args:
            items: The list to operate on (not copied)
            history: That item's history stack
        """
        if self._transaction_depth:
            raise RuntimeError("Cannot rebind the store inside a transaction")
        self._items = items
        self._history = history

    def unbind(self) -> None:
        """Detach the store from any list."""
        self._items = None
        self._history = None

    @property
    def is_bound(self) -> bool:
        """True if the store is attached to an item."""
        return self._items is not None

    @property
    def history(self) -> HistoryStack:
        """History stack of the bound item."""
        self._require_bound()
        return self._history

    def _require_bound(self) -> List[Annotation]:
        if self._items is None:
            raise RuntimeError("Annotation store is not bound to an item")
        return self._items

    def _index_of(self, annotation_id: str) -> int:
        for i, annotation in enumerate(self._require_bound()):
            if annotation.id == annotation_id:
                return i
        return -1

    @staticmethod
    def _check_geometry(annotation: Annotation) -> None:
        if isinstance(annotation, BoxAnnotation) and not annotation.has_area:
            raise ValueError(
                f"Box {annotation.id} needs positive size, "
                f"got {annotation.width}x{annotation.height}"
            )

    def _changed(self, description: str, merge_key: Optional[str] = None) -> None:
        if self._transaction_depth:
            self._transaction_dirty = True
            return
        self._history.record(tuple(self._items), description, merge_key)
        if self._on_change:
            self._on_change()

    # === Queries ===

    def list(self) -> Tuple[Annotation, ...]:
        """Get all annotations in insertion order."""
        return tuple(self._require_bound())

    def get(self, annotation_id: str) -> Optional[Annotation]:
        """Get an annotation by id, or None."""
        index = self._index_of(annotation_id)
        return self._items[index] if index >= 0 else None

    def find_by_label(self, label_id: str) -> List[Annotation]:
        """Get all annotations carrying a label."""
        return [a for a in self._require_bound() if a.label_id == label_id]

    def __len__(self) -> int:
        return len(self._require_bound())

    def __iter__(self) -> Iterator[Annotation]:
        return iter(self.list())

    # === Mutations ===

    def add(self, annotation: Annotation, description: str = "") -> str:
        """
        Append an annotation.

        Returns:
            The annotation id

        Raises:
            ValueError: If the id is taken or a box has no area
        """
        items = self._require_bound()
        if self._index_of(annotation.id) >= 0:
            raise ValueError(f"Duplicate annotation id: {annotation.id}")
        self._check_geometry(annotation)

        items.append(annotation)
        logger.debug(f"Added {annotation.kind.value} {annotation.id} ({annotation.label_id})")
        self._changed(description or f"Add {annotation.kind.value}")
        return annotation.id

    def update(
        self,
        annotation_id: str,
        description: str = "",
        merge_key: Optional[str] = None,
        **fields: Any
    ) -> MutationResult:
        """
        Replace fields of an annotation.

        Args:
            annotation_id: Id of the annotation to change
            description: History description
            merge_key: Fold into the previous history entry if it has the same key
            **fields: Dataclass fields to replace (``id`` cannot change)

        Returns:
            SUCCESS, or NOT_FOUND for a stale id

        Raises:
            TypeError: If a field does not exist on the annotation's kind
            ValueError: If a box would be left without area
        """
        if "id" in fields:
            raise TypeError("Annotation id cannot be updated")

        index = self._index_of(annotation_id)
        if index < 0:
            logger.debug(f"Update ignored, annotation {annotation_id} not found")
            return MutationResult.NOT_FOUND

        current = self._items[index]
        updated = replace(current, **fields)
        if updated == current:
            return MutationResult.SUCCESS
        self._check_geometry(updated)

        self._items[index] = updated
        logger.debug(f"Updated {annotation_id}: {sorted(fields)}")
        self._changed(description or f"Edit {current.kind.value}", merge_key)
        return MutationResult.SUCCESS

    def put(self, annotation: Annotation, description: str = "") -> MutationResult:
        """
        Replace an annotation by id with a new instance.

        Returns:
            SUCCESS, or NOT_FOUND for a stale id

        Raises:
            ValueError: If a box has no area
        """
        index = self._index_of(annotation.id)
        if index < 0:
            logger.debug(f"Replace ignored, annotation {annotation.id} not found")
            return MutationResult.NOT_FOUND

        if self._items[index] == annotation:
            return MutationResult.SUCCESS
        self._check_geometry(annotation)

        self._items[index] = annotation
        self._changed(description or f"Edit {annotation.kind.value}")
        return MutationResult.SUCCESS

    def remove(self, annotation_id: str, description: str = "") -> MutationResult:
        """
        Delete an annotation.

        Returns:
            SUCCESS, or NOT_FOUND for a stale id
        """
        index = self._index_of(annotation_id)
        if index < 0:
            logger.debug(f"Remove ignored, annotation {annotation_id} not found")
            return MutationResult.NOT_FOUND

        removed = self._items.pop(index)
        logger.debug(f"Removed {removed.kind.value} {annotation_id}")
        self._changed(description or f"Delete {removed.kind.value}")
        return MutationResult.SUCCESS

    def replace_all(self, annotations: Sequence[Annotation], description: str = "") -> None:
        """Replace the whole list as one undoable change."""
        items = self._require_bound()
        if list(annotations) == items:
            return
        items[:] = annotations
        self._changed(description or "Replace annotations")

    def clear(self, description: str = "Clear all") -> None:
        """Remove every annotation as one undoable change."""
        if self._require_bound():
            self.replace_all([], description)

    def restore(self, snapshot: Sequence[Annotation]) -> None:
        """Overwrite the list from a history snapshot without recording."""
        items = self._require_bound()
        items[:] = snapshot
        if self._on_change:
            self._on_change()

    @contextmanager
    def transaction(self, description: str) -> Iterator[AnnotationStore]:
        """
        Group several mutations into a single history entry.

        Nothing is recorded if the block makes no change. Nested
        transactions fold into the outermost one.
        """
        self._require_bound()
        if self._transaction_depth == 0:
            self._transaction_dirty = False
            self._transaction_description = description
        self._transaction_depth += 1
        try:
            yield self
        finally:
            self._transaction_depth -= 1
            if self._transaction_depth == 0 and self._transaction_dirty:
                self._transaction_dirty = False
                self._changed(self._transaction_description)
