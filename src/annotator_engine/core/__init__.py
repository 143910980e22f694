"""Core business logic modules for Annotator Engine."""

from .config import ConfigManager, EngineConfig
from .errors import AnnotatorError, EngineWarning, ImageLoadError, SessionClosedError, TaxonomyError
from .geometry import Viewport, to_image_space, to_screen_space
from .models import Annotation, AnnotationKind, BoxAnnotation, Keypoint, MaskStroke, StrokeMode
from .session import AnnotationSession, ItemRef, ItemStatus, TaskVariant
from .state_machine import DrawStateMachine, InteractionState, Tool
from .store import AnnotationStore, MutationResult
from .taxonomy import Label, LabelTaxonomy, default_taxonomy, taxonomy_for_task
from .undo_redo import HistoryStack

__all__ = [
    "Annotation",
    "AnnotationKind",
    "AnnotationSession",
    "AnnotationStore",
    "AnnotatorError",
    "BoxAnnotation",
    "ConfigManager",
    "DrawStateMachine",
    "EngineConfig",
    "EngineWarning",
    "HistoryStack",
    "ImageLoadError",
    "InteractionState",
    "ItemRef",
    "ItemStatus",
    "Keypoint",
    "Label",
    "LabelTaxonomy",
    "MaskStroke",
    "MutationResult",
    "SessionClosedError",
    "StrokeMode",
    "TaskVariant",
    "TaxonomyError",
    "Tool",
    "Viewport",
    "default_taxonomy",
    "taxonomy_for_task",
    "to_image_space",
    "to_screen_space",
]
