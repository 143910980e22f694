"""
Annotator Engine - an interactive image annotation engine.

Built with PyQt6. Annotators draw bounding boxes, paint segmentation masks
or place pose keypoints over a sequence of images, with per-image undo/redo
and a plain JSON submission payload.
"""

__version__ = "1.0.0"
__author__ = "Annotator Engine Team"
