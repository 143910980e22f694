"""Tests for coordinate mapping."""

import pytest
from PyQt6.QtCore import QPointF

from annotator_engine.core.geometry import (
    Viewport,
    clamp_zoom,
    distance,
    normalize_rect,
    pan_by,
    to_image_length,
    to_image_space,
    to_screen_length,
    to_screen_space,
    zoom_at,
)


class TestViewport:
    """Tests for the Viewport value."""

    def test_defaults(self):
        """Test the identity viewport."""
        viewport = Viewport()

        assert viewport.origin_x == 0.0
        assert viewport.origin_y == 0.0
        assert viewport.zoom == 1.0

    @pytest.mark.parametrize("zoom", [0, -1.5])
    def test_non_positive_zoom_rejected(self, zoom):
        """Test that a zoom of zero or less is refused."""
        with pytest.raises(ValueError):
            Viewport(zoom=zoom)


class TestMapping:
    """Tests for screen/image conversions."""

    def test_identity(self):
        """Test that the identity viewport maps points to themselves."""
        point = to_image_space(QPointF(12, 34), Viewport())

        assert point.x() == 12
        assert point.y() == 34

    def test_to_image_space_with_zoom_and_pan(self):
        """Test mapping through an offset, zoomed viewport."""
        viewport = Viewport(origin_x=100, origin_y=50, zoom=2.0)

        point = to_image_space(QPointF(120, 70), viewport)

        assert point.x() == pytest.approx(10)
        assert point.y() == pytest.approx(10)

    def test_round_trip(self):
        """Test that screen -> image -> screen returns the same point."""
        viewport = Viewport(origin_x=-37.5, origin_y=12.25, zoom=1.75)
        screen = QPointF(321.5, 87.0)

        back = to_screen_space(to_image_space(screen, viewport), viewport)

        assert back.x() == pytest.approx(screen.x())
        assert back.y() == pytest.approx(screen.y())

    def test_lengths(self):
        """Test scaling of lengths between spaces."""
        viewport = Viewport(zoom=0.5)

        assert to_screen_length(40, viewport) == 20
        assert to_image_length(20, viewport) == 40


class TestZoom:
    """Tests for zooming and panning."""

    def test_clamp_zoom(self):
        """Test clamping to the configured range."""
        assert clamp_zoom(5.0, 0.5, 2.0) == 2.0
        assert clamp_zoom(0.1, 0.5, 2.0) == 0.5
        assert clamp_zoom(1.25, 0.5, 2.0) == 1.25

    def test_zoom_at_keeps_anchor_fixed(self):
        """Test that the image point under the anchor does not move."""
        viewport = Viewport(origin_x=10, origin_y=20, zoom=1.0)
        anchor = QPointF(210, 170)
        before = to_image_space(anchor, viewport)

        zoomed = zoom_at(viewport, 1.5, anchor)
        after = to_image_space(anchor, zoomed)

        assert zoomed.zoom == 1.5
        assert after.x() == pytest.approx(before.x())
        assert after.y() == pytest.approx(before.y())

    def test_zoom_at_clamps(self):
        """Test that zoom_at respects the range bounds."""
        zoomed = zoom_at(Viewport(), 10.0, QPointF(0, 0), min_zoom=0.5, max_zoom=2.0)

        assert zoomed.zoom == 2.0

    def test_pan_by(self):
        """Test shifting the origin."""
        panned = pan_by(Viewport(origin_x=5, origin_y=5, zoom=2.0), 10, -3)

        assert panned.origin_x == 15
        assert panned.origin_y == 2
        assert panned.zoom == 2.0


class TestHelpers:
    """Tests for rectangle and distance helpers."""

    @pytest.mark.parametrize("p1,p2", [
        (QPointF(10, 20), QPointF(50, 80)),
        (QPointF(50, 80), QPointF(10, 20)),
        (QPointF(10, 80), QPointF(50, 20)),
        (QPointF(50, 20), QPointF(10, 80)),
    ])
    def test_normalize_rect_any_direction(self, p1, p2):
        """Test that every drag direction yields the same rectangle."""
        assert normalize_rect(p1, p2) == (10, 20, 40, 60)

    def test_distance(self):
        """Test Euclidean distance."""
        assert distance(QPointF(0, 0), QPointF(3, 4)) == 5
