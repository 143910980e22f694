"""Exceptions and user-facing warnings for the annotation engine."""

from __future__ import annotations

from enum import Enum


class AnnotatorError(Exception):
    """Base class for annotation engine errors."""


class TaxonomyError(AnnotatorError):
    """Raised when a label taxonomy is invalid (duplicate ids or shortcuts, bad colors)."""


class ImageLoadError(AnnotatorError):
    """Raised when an item's image cannot be read or decoded."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"Failed to load image {source}: {reason}")
        self.source = source
        self.reason = reason


class SessionClosedError(AnnotatorError):
    """Raised when a disposed session is used."""


class EngineWarning(str, Enum):
    """Recoverable conditions reported to the user instead of raised."""

    NO_LABEL_SELECTED = "Select a label before drawing"
    IMAGE_NOT_READY = "Image is not loaded yet"
    IMAGE_FAILED = "Image failed to load"
