"""Submission payload: the session's annotations as plain records."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List

from .mask import encode_png_base64, painted_pixel_count, rasterize_strokes
from .models import Annotation, MaskStroke, annotation_from_dict

if TYPE_CHECKING:
    from .session import AnnotationSession

logger = logging.getLogger(__name__)


def build_submission(session: AnnotationSession, include_mask_raster: bool = False) -> Dict[str, Any]:
    """
    Serialize every item's annotations for the task submission.

    Args:
        session: Session to export
        include_mask_raster: Also attach each item's composited mask layer
            as base64 PNG, with its painted pixel count (segmentation tasks)

    Returns:
        Plain dictionary, JSON-serializable
    """
    annotations: Dict[str, List[Dict[str, Any]]] = {}
    masks: Dict[str, str] = {}
    mask_pixels: Dict[str, int] = {}
    label_counts: Dict[str, int] = {label_id: 0 for label_id in session.taxonomy.ids}

    for index, item in enumerate(session.items):
        item_annotations = session.annotations_for(index)
        annotations[str(index)] = [a.to_dict() for a in item_annotations]

        for label_id, count in session.label_counts(index).items():
            label_counts[label_id] = label_counts.get(label_id, 0) + count

        strokes = [a for a in item_annotations if isinstance(a, MaskStroke)]
        if include_mask_raster and strokes and item.width and item.height:
            layer = rasterize_strokes(
                strokes, session.taxonomy, item.width, item.height, session.config.mask_opacity
            )
            masks[str(index)] = encode_png_base64(layer)
            mask_pixels[str(index)] = painted_pixel_count(layer)

    payload: Dict[str, Any] = {
        "taskType": session.variant.value,
        "taxonomy": session.taxonomy.name,
        "annotations": annotations,
        "items": [
            {"source": item.source, "title": item.title, "status": item.status.value}
            for item in session.items
        ],
        "totalAnnotations": session.total_annotations(),
        "totalItems": session.item_count,
        "completedItems": session.completed_count(),
        "labelCounts": label_counts,
        "completedAt": datetime.now(timezone.utc).isoformat(),
    }
    if include_mask_raster:
        payload["masks"] = masks
        payload["maskPixels"] = mask_pixels

    logger.info(
        f"Built submission: {payload['totalAnnotations']} annotations "
        f"over {payload['totalItems']} items"
    )
    return payload


def write_submission(payload: Dict[str, Any], path: Path) -> bool:
    """
    Write a submission payload as JSON.

    Returns:
        True if the file was written
    """
    path = Path(path)
    try:
        with open(path, "w") as f:
            json.dump(payload, f, indent=2)
        logger.info(f"Wrote submission to {path}")
        return True
    except OSError as e:
        logger.error(f"Error writing submission: {e}")
        return False


def restore_annotations(payload: Dict[str, Any]) -> Dict[int, List[Annotation]]:
    """
    Read annotations back out of a submission payload.

    Malformed records are skipped with a warning.

    Raises:
        ValueError: If the payload has no annotations mapping at all
    """
    annotations = payload.get("annotations", {}) if isinstance(payload, dict) else None
    if not isinstance(annotations, dict):
        raise ValueError("Submission payload has no annotations mapping")

    restored: Dict[int, List[Annotation]] = {}
    for key, records in annotations.items():
        try:
            index = int(key)
        except ValueError:
            logger.warning(f"Skipping annotations under non-numeric key {key!r}")
            continue
        if not isinstance(records, list):
            logger.warning(f"Skipping item {index}: annotations are not a list")
            continue

        items = []
        for record in records:
            try:
                items.append(annotation_from_dict(record))
            except ValueError as e:
                logger.warning(f"Skipping record on item {index}: {e}")
        restored[index] = items
    return restored


def load_submission(path: Path) -> Dict[int, List[Annotation]]:
    """Load a submission JSON file and restore its annotations."""
    with open(path, "r") as f:
        payload = json.load(f)
    return restore_annotations(payload)
