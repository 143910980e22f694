"""UI components for Annotator Engine."""

from .canvas import AnnotationCanvas
from .history_panel import HistoryPanel
from .main_window import MainWindow

__all__ = [
    "AnnotationCanvas",
    "HistoryPanel",
    "MainWindow",
]
