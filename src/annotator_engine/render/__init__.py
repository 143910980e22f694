"""Scene description and painting of annotations."""

from .painter import QPainterBackend
from .scene import build_scene, scene_for_session

__all__ = [
    "QPainterBackend",
    "build_scene",
    "scene_for_session",
]
