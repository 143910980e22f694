"""Label taxonomies: the fixed label set available to a task."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from PyQt6.QtGui import QColor

from .errors import TaxonomyError

logger = logging.getLogger(__name__)

_HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")

# Shortcuts handed out to task-supplied labels, in order
GENERATED_SHORTCUTS = "1234567890"

# Hue spacing for generated label colors (golden angle)
GOLDEN_ANGLE = 137.5

FALLBACK_COLOR = "#6B7280"


@dataclass(frozen=True)
class Label:
    """A single label: id, display name, color and keyboard shortcut."""

    id: str
    name: str
    color: str
    shortcut: str = ""
    description: str = ""

    def qcolor(self, alpha: int = 255) -> QColor:
        """Get the label color as a QColor."""
        color = QColor(self.color)
        color.setAlpha(alpha)
        return color


class LabelTaxonomy:
    """
    Ordered, read-only set of labels for one task.

    Label ids and shortcuts are unique within a taxonomy. Shortcuts
    are matched case-insensitively.
    """

    def __init__(self, labels: Iterable[Label], name: str = "") -> None:
        """
        Initialize the taxonomy.

        Args:
            labels: Labels in display order
            name: Category name, for logging and export

        Raises:
            TaxonomyError: On duplicate ids/shortcuts or malformed colors
        """
        self.name = name
        self._labels: Tuple[Label, ...] = tuple(labels)
        self._by_id: Dict[str, Label] = {}
        self._by_shortcut: Dict[str, Label] = {}

        for label in self._labels:
            if not label.id:
                raise TaxonomyError(f"Label {label.name!r} has an empty id")
            if label.id in self._by_id:
                raise TaxonomyError(f"Duplicate label id: {label.id}")
            if not _HEX_COLOR.match(label.color):
                raise TaxonomyError(f"Label {label.id} has invalid color {label.color!r}")
            self._by_id[label.id] = label

            if label.shortcut:
                if len(label.shortcut) != 1:
                    raise TaxonomyError(
                        f"Label {label.id} shortcut must be one character, got {label.shortcut!r}"
                    )
                key = label.shortcut.upper()
                if key in self._by_shortcut:
                    raise TaxonomyError(
                        f"Shortcut {label.shortcut!r} used by both "
                        f"{self._by_shortcut[key].id} and {label.id}"
                    )
                self._by_shortcut[key] = label

    def __iter__(self) -> Iterator[Label]:
        return iter(self._labels)

    def __len__(self) -> int:
        return len(self._labels)

    def __contains__(self, label_id: object) -> bool:
        return label_id in self._by_id

    @property
    def labels(self) -> Tuple[Label, ...]:
        """All labels in display order."""
        return self._labels

    @property
    def ids(self) -> List[str]:
        """All label ids in display order."""
        return [label.id for label in self._labels]

    def select_by_shortcut(self, char: str) -> Optional[Label]:
        """Get the label bound to a keyboard shortcut, or None."""
        if not char or len(char) != 1:
            return None
        return self._by_shortcut.get(char.upper())

    def select_by_id(self, label_id: str) -> Label:
        """
        Get a label by id.

        Raises:
            KeyError: If no label has this id
        """
        return self._by_id[label_id]

    def get(self, label_id: str) -> Optional[Label]:
        """Get a label by id, or None."""
        return self._by_id.get(label_id)

    def color_of(self, label_id: str) -> str:
        """Get the color for a label id, with a neutral fallback for unknown ids."""
        label = self._by_id.get(label_id)
        return label.color if label else FALLBACK_COLOR

    def name_of(self, label_id: str) -> str:
        """Get the display name for a label id."""
        label = self._by_id.get(label_id)
        return label.name if label else label_id

    def next_after(self, label_id: str) -> Optional[Label]:
        """Get the label following ``label_id`` in display order, or None at the end."""
        for i, label in enumerate(self._labels):
            if label.id == label_id:
                if i + 1 < len(self._labels):
                    return self._labels[i + 1]
                return None
        return None

    def shortcut_table(self) -> Dict[str, str]:
        """Get the shortcut-to-label-id binding table."""
        return {key: label.id for key, label in self._by_shortcut.items()}


def slugify(name: str) -> str:
    """Turn a display name into a label id."""
    return re.sub(r"\s+", "_", name.strip().lower())


def generated_color(index: int) -> str:
    """Evenly spread hue for the n-th generated label."""
    hue = int((index * GOLDEN_ANGLE) % 360)
    return QColor.fromHsl(hue, 178, 128).name().upper()


def _labels(*rows: Tuple[str, str, str, str, str]) -> Tuple[Label, ...]:
    return tuple(Label(*row) for row in rows)


DEFAULT_TAXONOMIES: Dict[str, Tuple[Label, ...]] = {
    "object_detection": _labels(
        ("vehicle", "Vehicle", "#EF4444", "V", "Cars, trucks, SUVs, vans"),
        ("pedestrian", "Pedestrian", "#10B981", "P", "People walking, standing"),
        ("cyclist", "Cyclist", "#3B82F6", "C", "Bicycles, e-scooters"),
        ("motorcycle", "Motorcycle", "#8B5CF6", "M", "Motorcycles, mopeds"),
        ("bus", "Bus/Truck", "#F97316", "B", "Large vehicles, buses"),
        ("traffic_light", "Traffic Light", "#EAB308", "T", "Traffic signals, lights"),
        ("stop_sign", "Stop Sign", "#DC2626", "S", "Stop signs, yield signs"),
        ("crosswalk", "Crosswalk", "#6B7280", "X", "Pedestrian crossings"),
    ),
    "food_classification": _labels(
        ("pizza", "Pizza", "#EF4444", "1", "Pizza dishes"),
        ("burger", "Burger", "#F97316", "2", "Burgers and sandwiches"),
        ("salad", "Salad", "#10B981", "3", "Salads and greens"),
        ("pasta", "Pasta", "#EAB308", "4", "Pasta dishes"),
        ("seafood", "Seafood", "#3B82F6", "5", "Fish and seafood"),
        ("dessert", "Dessert", "#EC4899", "6", "Sweets and desserts"),
        ("soup", "Soup", "#8B5CF6", "7", "Soups and stews"),
        ("meat", "Meat", "#B45309", "8", "Meat dishes"),
        ("vegetarian", "Vegetarian", "#059669", "9", "Vegetarian options"),
        ("other", "Other", "#6B7280", "0", "Other food types"),
    ),
    "medical_imaging": _labels(
        ("normal", "Normal", "#10B981", "N", "No abnormalities"),
        ("abnormal", "Abnormal", "#EF4444", "A", "Abnormalities present"),
        ("uncertain", "Uncertain", "#EAB308", "U", "Needs review"),
    ),
    "semantic_segmentation": _labels(
        ("road", "Road", "#6B7280", "R", ""),
        ("sidewalk", "Sidewalk", "#F59E0B", "W", ""),
        ("building", "Building", "#EF4444", "B", ""),
        ("sky", "Sky", "#3B82F6", "S", ""),
        ("vegetation", "Vegetation", "#10B981", "G", ""),
        ("vehicle", "Vehicle", "#8B5CF6", "V", ""),
    ),
    "pose_keypoints": _labels(
        ("head", "Head", "#EF4444", "1", ""),
        ("neck", "Neck", "#F59E0B", "2", ""),
        ("left_shoulder", "Left Shoulder", "#10B981", "3", ""),
        ("right_shoulder", "Right Shoulder", "#3B82F6", "4", ""),
        ("left_elbow", "Left Elbow", "#8B5CF6", "5", ""),
        ("right_elbow", "Right Elbow", "#EC4899", "6", ""),
        ("left_wrist", "Left Wrist", "#14B8A6", "7", ""),
        ("right_wrist", "Right Wrist", "#F97316", "8", ""),
        ("left_hip", "Left Hip", "#6366F1", "9", ""),
        ("right_hip", "Right Hip", "#84CC16", "0", ""),
        ("left_knee", "Left Knee", "#06B6D4", "Q", ""),
        ("right_knee", "Right Knee", "#A855F7", "W", ""),
        ("left_ankle", "Left Ankle", "#EAB308", "E", ""),
        ("right_ankle", "Right Ankle", "#22C55E", "R", ""),
    ),
}

# Adjacent keypoint pairs drawn as skeleton lines
POSE_SKELETON: Tuple[Tuple[str, str], ...] = (
    ("head", "neck"),
    ("neck", "left_shoulder"),
    ("neck", "right_shoulder"),
    ("left_shoulder", "left_elbow"),
    ("right_shoulder", "right_elbow"),
    ("left_elbow", "left_wrist"),
    ("right_elbow", "right_wrist"),
    ("neck", "left_hip"),
    ("neck", "right_hip"),
    ("left_hip", "left_knee"),
    ("right_hip", "right_knee"),
    ("left_knee", "left_ankle"),
    ("right_knee", "right_ankle"),
)

# Substring of a task category -> default taxonomy
_CATEGORY_MATCHES: Sequence[Tuple[str, str]] = (
    ("food", "food_classification"),
    ("medical", "medical_imaging"),
    ("segment", "semantic_segmentation"),
    ("keypoint", "pose_keypoints"),
    ("pose", "pose_keypoints"),
)


def default_taxonomy(category: str) -> LabelTaxonomy:
    """
    Get the built-in taxonomy for a task category.

    The category is matched by substring; anything unrecognized
    gets the object detection set.
    """
    key = (category or "").lower()
    for needle, taxonomy_name in _CATEGORY_MATCHES:
        if needle in key:
            return LabelTaxonomy(DEFAULT_TAXONOMIES[taxonomy_name], name=taxonomy_name)
    if key in DEFAULT_TAXONOMIES:
        return LabelTaxonomy(DEFAULT_TAXONOMIES[key], name=key)
    return LabelTaxonomy(DEFAULT_TAXONOMIES["object_detection"], name="object_detection")


def taxonomy_from_metadata(labels: Sequence[Dict[str, Any]], name: str = "custom") -> LabelTaxonomy:
    """
    Build a taxonomy from task-supplied label records.

    Each record needs a ``name``; ``colorHint``, ``shortcut`` and ``id``
    are optional. Missing colors and shortcuts are generated from the
    label's position.

    Raises:
        TaxonomyError: If a record has no name or the result is invalid
    """
    result = []
    for i, record in enumerate(labels):
        label_name = str(record.get("name", "")).strip()
        if not label_name:
            raise TaxonomyError(f"Label record {i} has no name")

        color = record.get("colorHint") or record.get("color")
        if not color or not _HEX_COLOR.match(str(color)):
            if color:
                logger.warning(f"Ignoring unusable color hint {color!r} for {label_name}")
            color = generated_color(i)

        shortcut = record.get("shortcut")
        if shortcut is None:
            shortcut = GENERATED_SHORTCUTS[i] if i < len(GENERATED_SHORTCUTS) else ""

        result.append(Label(
            id=record.get("id") or slugify(label_name),
            name=label_name,
            color=str(color).upper(),
            shortcut=shortcut,
            description=record.get("description", label_name),
        ))

    return LabelTaxonomy(result, name=name)


def taxonomy_for_task(
    category: str,
    labels: Optional[Sequence[Dict[str, Any]]] = None
) -> LabelTaxonomy:
    """
    Resolve the taxonomy for a task.

    Task metadata labels take precedence over the category default.
    """
    if labels:
        taxonomy = taxonomy_from_metadata(labels)
        logger.info(f"Loaded {len(taxonomy)} labels from task metadata")
        return taxonomy

    taxonomy = default_taxonomy(category)
    logger.info(f"Using default '{taxonomy.name}' taxonomy for category {category!r}")
    return taxonomy
