"""Tests for the draw/edit state machine."""

import pytest
from PyQt6.QtCore import QPointF

from annotator_engine.core.errors import EngineWarning
from annotator_engine.core.models import BoxAnnotation, Keypoint, MaskStroke, StrokeMode
from annotator_engine.core.session import TaskVariant
from annotator_engine.core.state_machine import InteractionState, Tool


def drag(machine, start, end, steps=3):
    """Press at start, move in a few steps, release at end."""
    machine.pointer_down(QPointF(*start))
    for i in range(1, steps):
        t = i / steps
        machine.pointer_move(QPointF(
            start[0] + (end[0] - start[0]) * t,
            start[1] + (end[1] - start[1]) * t,
        ))
    return machine.pointer_up(QPointF(*end))


def click(machine, point):
    machine.pointer_down(QPointF(*point))
    return machine.pointer_up(QPointF(*point))


class TestBoxDrawing:
    """Tests for drawing boxes."""

    def test_draw_box(self, box_session):
        """Test that a drag commits one box in image space."""
        machine = box_session.machine

        box_id = drag(machine, (10, 10), (110, 60))

        box = box_session.store.get(box_id)
        assert isinstance(box, BoxAnnotation)
        assert (box.x, box.y, box.width, box.height) == (10, 10, 100, 50)
        assert box.label_id == "vehicle"
        assert box.confidence == 95
        assert machine.state == InteractionState.IDLE
        assert machine.transient is None

    def test_any_drag_direction_normalized(self, box_session):
        """Test dragging from bottom-right to top-left."""
        box_id = drag(box_session.machine, (110, 60), (10, 10))

        box = box_session.store.get(box_id)
        assert (box.x, box.y, box.width, box.height) == (10, 10, 100, 50)

    def test_transient_not_in_store(self, box_session):
        """Test that a box in progress is not committed."""
        machine = box_session.machine

        machine.pointer_down(QPointF(10, 10))
        machine.pointer_move(QPointF(60, 60))

        assert machine.state == InteractionState.DRAWING
        assert machine.transient.width == 50
        assert len(box_session.store) == 0

    def test_small_box_rejected(self, box_session):
        """Test that a box under the minimum size is discarded."""
        assert drag(box_session.machine, (10, 10), (15, 15)) is None
        assert len(box_session.store) == 0
        assert not box_session.store.history.can_undo()

    def test_minimum_size_measured_in_image_space(self, box_session):
        """Test that a 15-pixel screen drag at zoom 2 is only 7.5 image pixels."""
        box_session.set_zoom(2.0)

        assert drag(box_session.machine, (0, 0), (15, 15)) is None
        box_id = drag(box_session.machine, (0, 0), (20, 20))

        box = box_session.store.get(box_id)
        assert (box.width, box.height) == (10, 10)

    def test_drawn_under_zoom_and_pan(self, box_session):
        """Test that stored geometry is independent of the viewport."""
        box_session.set_zoom(2.0)
        box_session.pan_by(100, 50)

        box_id = drag(box_session.machine, (120, 70), (220, 170))

        box = box_session.store.get(box_id)
        assert (box.x, box.y, box.width, box.height) == (10, 10, 50, 50)

    def test_no_label_warns(self, box_session):
        """Test that drawing without a label is refused with a warning."""
        warnings = []
        box_session.warning_raised.connect(warnings.append)
        box_session.machine.select_label(None)

        assert not box_session.machine.pointer_down(QPointF(10, 10))

        assert warnings == [EngineWarning.NO_LABEL_SELECTED.value]
        assert box_session.machine.state == InteractionState.IDLE

    def test_image_not_ready_warns(self, make_session):
        """Test that input is refused until the image is loaded."""
        session = make_session(loaded=False)
        warnings = []
        session.warning_raised.connect(warnings.append)

        assert drag(session.machine, (10, 10), (100, 100)) is None

        assert warnings == [EngineWarning.IMAGE_NOT_READY.value]
        assert len(session.store) == 0

    def test_failed_image_refuses_input(self, make_session):
        """Test that a failed item stays unusable."""
        session = make_session(loaded=False)
        session.mark_image_failed(0, "corrupt")
        warnings = []
        session.warning_raised.connect(warnings.append)

        assert not session.machine.pointer_down(QPointF(10, 10))
        assert warnings == [EngineWarning.IMAGE_FAILED.value]

    def test_shortcut_selects_label(self, box_session):
        """Test that shortcut keys switch the active label."""
        machine = box_session.machine

        assert machine.handle_shortcut("b").id == "bus"
        box_id = drag(machine, (0, 0), (50, 50))

        assert box_session.store.get(box_id).label_id == "bus"
        assert machine.handle_shortcut("z") is None
        assert machine.selected_label.id == "bus"

    def test_cancel_discards(self, box_session):
        """Test that cancelling leaves the store untouched."""
        machine = box_session.machine
        machine.pointer_down(QPointF(10, 10))
        machine.pointer_move(QPointF(100, 100))

        machine.cancel()

        assert machine.state == InteractionState.IDLE
        assert machine.transient is None
        assert machine.pointer_up(QPointF(100, 100)) is None
        assert len(box_session.store) == 0


class TestEditing:
    """Tests for selecting, moving and resizing."""

    def test_drag_moves_box(self, box_session):
        """Test dragging a box body with the select tool."""
        machine = box_session.machine
        box_id = drag(machine, (10, 10), (110, 60))
        machine.set_tool(Tool.SELECT)

        drag(machine, (50, 30), (60, 45))

        box = box_session.store.get(box_id)
        assert (box.x, box.y) == (20, 25)
        assert machine.selected_id == box_id
        assert box_session.store.history.undo_count == 2

    def test_drag_is_one_history_entry(self, box_session):
        """Test that undoing a drag restores the original position."""
        machine = box_session.machine
        box_id = drag(machine, (10, 10), (110, 60))
        machine.set_tool(Tool.SELECT)
        drag(machine, (50, 30), (90, 70), steps=10)

        box_session.undo()

        box = box_session.store.get(box_id)
        assert (box.x, box.y) == (10, 10)

    def test_click_without_move_records_nothing(self, box_session):
        """Test that selecting a box does not add history."""
        machine = box_session.machine
        box_id = drag(machine, (10, 10), (110, 60))
        machine.set_tool(Tool.SELECT)

        click(machine, (50, 30))

        assert machine.selected_id == box_id
        assert box_session.store.history.undo_count == 1

    def test_click_empty_clears_selection(self, box_session):
        """Test that clicking empty space deselects."""
        machine = box_session.machine
        drag(machine, (10, 10), (110, 60))
        machine.set_tool(Tool.SELECT)
        click(machine, (50, 30))

        click(machine, (500, 500))

        assert machine.selected_id is None

    def test_resize_from_handle(self, box_session):
        """Test resizing by dragging a corner handle with the draw tool."""
        machine = box_session.machine
        box_id = drag(machine, (10, 10), (110, 60))

        drag(machine, (110, 60), (150, 100))

        box = box_session.store.get(box_id)
        assert (box.x, box.y, box.width, box.height) == (10, 10, 140, 90)
        assert len(box_session.store) == 1

    def test_resize_below_minimum_discarded(self, box_session):
        """Test that collapsing a box by resizing is not committed."""
        machine = box_session.machine
        box_id = drag(machine, (10, 10), (110, 60))

        drag(machine, (110, 60), (12, 12))

        box = box_session.store.get(box_id)
        assert (box.width, box.height) == (100, 50)

    def test_hit_test_prefers_handles(self, box_session):
        """Test hit priority: corner handles before bodies."""
        machine = box_session.machine
        outer = drag(machine, (10, 10), (200, 200))
        inner = drag(machine, (50, 50), (100, 100))

        corner = machine.hit_test(QPointF(100, 100))
        body = machine.hit_test(QPointF(75, 75))
        outer_body = machine.hit_test(QPointF(150, 150))

        assert (corner.annotation_id, corner.handle) == (inner, "bottomright")
        assert (body.annotation_id, body.handle) == (inner, None)
        assert outer_body.annotation_id == outer
        assert machine.hit_test(QPointF(400, 400)) is None

    def test_small_box_dragged_by_center(self, box_session):
        """Test that a minimum-size box can be moved, not only resized."""
        machine = box_session.machine
        box_id = drag(machine, (100, 100), (112, 112))
        machine.set_tool(Tool.SELECT)

        machine.pointer_down(QPointF(106, 106))
        assert machine.state == InteractionState.DRAGGING
        machine.pointer_up(QPointF(150, 150))

        box = box_session.store.get(box_id)
        assert (box.x, box.y, box.width, box.height) == (144, 144, 12, 12)

    def test_small_box_corner_still_resizes(self, box_session):
        """Test that a small box keeps reachable handles at its corners."""
        machine = box_session.machine
        box_id = drag(machine, (100, 100), (112, 112))

        hit = machine.hit_test(QPointF(112, 112))

        assert (hit.annotation_id, hit.handle) == (box_id, "bottomright")

    def test_hit_test_box_body_before_keypoint(self, box_session):
        """Test hit priority: box bodies before keypoints."""
        machine = box_session.machine
        box_id = drag(machine, (10, 10), (110, 60))
        box_session.store.add(Keypoint("k1", "vehicle", 50, 30))

        hit = machine.hit_test(QPointF(50, 30))

        assert (hit.annotation_id, hit.handle) == (box_id, None)
        assert machine.hit_test(QPointF(300, 300)) is None

    def test_delete_selected(self, box_session):
        """Test deleting the selection."""
        machine = box_session.machine
        box_id = drag(machine, (10, 10), (110, 60))
        machine.select(box_id)

        assert machine.delete_selected()

        assert len(box_session.store) == 0
        assert machine.selected_id is None
        assert not machine.delete_selected()

    def test_set_confidence_updates_selected_box(self, box_session):
        """Test that the confidence control edits the selected box."""
        machine = box_session.machine
        box_id = drag(machine, (10, 10), (110, 60))
        machine.select(box_id)

        assert machine.set_confidence(120) == 100

        assert box_session.store.get(box_id).confidence == 100

    def test_confidence_sweep_is_one_history_entry(self, box_session):
        """Test that repeated confidence changes undo in one step."""
        machine = box_session.machine
        box_id = drag(machine, (10, 10), (110, 60))
        machine.select(box_id)

        for value in range(90, 40, -5):
            machine.set_confidence(value)

        history = box_session.store.history
        assert history.undo_count == 2
        assert history.undo_description() == "Change confidence"
        box_session.undo()
        assert box_session.store.get(box_id).confidence == 95

    def test_confidence_on_another_box_is_new_entry(self, box_session):
        """Test that confidence changes on different boxes stay separate."""
        machine = box_session.machine
        first = drag(machine, (10, 10), (110, 60))
        second = drag(machine, (200, 200), (260, 260))

        machine.select(first)
        machine.set_confidence(50)
        machine.set_confidence(40)
        machine.select(second)
        machine.set_confidence(30)

        assert box_session.store.history.undo_count == 4


class TestPainting:
    """Tests for mask strokes."""

    def test_stroke_is_one_entry(self, make_session):
        """Test that a whole stroke commits as a single annotation."""
        session = make_session(variant=TaskVariant.SEGMENTATION)
        machine = session.machine
        assert machine.tool == Tool.PAINT

        stroke_id = drag(machine, (10, 10), (40, 40), steps=4)

        stroke = session.store.get(stroke_id)
        assert isinstance(stroke, MaskStroke)
        assert stroke.label_id == "road"
        assert stroke.mode == StrokeMode.PAINT
        assert stroke.path[0] == (10.0, 10.0)
        assert stroke.path[-1] == (40.0, 40.0)
        assert len(session.store) == 1
        assert session.store.history.undo_count == 1

    def test_brush_radius_in_image_space(self, make_session):
        """Test that the screen brush is scaled by the zoom."""
        session = make_session(variant=TaskVariant.SEGMENTATION)
        session.set_zoom(2.0)

        stroke_id = click(session.machine, (10, 10))

        assert session.store.get(stroke_id).radius == 10.0

    def test_brush_radius_clamped(self, make_session):
        """Test the brush size range."""
        machine = make_session(variant=TaskVariant.SEGMENTATION).machine

        assert machine.set_brush_radius(100) == 50
        assert machine.set_brush_radius(1) == 5

    def test_erase_needs_no_label(self, make_session):
        """Test that erasing works without a selected label."""
        session = make_session(variant=TaskVariant.SEGMENTATION)
        machine = session.machine
        machine.set_tool(Tool.ERASE)
        machine.select_label(None)

        stroke_id = drag(machine, (10, 10), (30, 30))

        assert session.store.get(stroke_id).mode == StrokeMode.ERASE

    def test_undo_stroke(self, make_session):
        """Test that undo removes the last stroke."""
        session = make_session(variant=TaskVariant.SEGMENTATION)
        drag(session.machine, (10, 10), (40, 40))
        drag(session.machine, (50, 50), (80, 80))

        session.undo()

        assert len(session.store) == 1


class TestKeypoints:
    """Tests for keypoint placement."""

    def test_place_keypoint_and_advance(self, make_session):
        """Test placing a point and moving on to the next label."""
        session = make_session(variant=TaskVariant.KEYPOINT)
        machine = session.machine

        keypoint_id = click(machine, (50, 60))

        keypoint = session.store.get(keypoint_id)
        assert isinstance(keypoint, Keypoint)
        assert (keypoint.label_id, keypoint.x, keypoint.y) == ("head", 50, 60)
        assert machine.selected_label.id == "neck"

    def test_one_keypoint_per_label(self, make_session):
        """Test that placing a label again moves its existing point."""
        session = make_session(variant=TaskVariant.KEYPOINT)
        machine = session.machine
        first = click(machine, (50, 60))
        machine.select_label("head")

        second = click(machine, (70, 80))

        assert second == first
        heads = session.store.find_by_label("head")
        assert len(heads) == 1
        assert (heads[0].x, heads[0].y) == (70, 80)
        assert machine.selected_label.id == "head"

        session.undo()
        assert (session.store.get(first).x, session.store.get(first).y) == (50, 60)

    def test_auto_advance_disabled(self, make_session):
        """Test keeping the label when auto-advance is off."""
        session = make_session(variant=TaskVariant.KEYPOINT, auto_advance_keypoints=False)

        click(session.machine, (50, 60))

        assert session.machine.selected_label.id == "head"

    def test_last_label_does_not_advance(self, make_session):
        """Test that the final label stays selected."""
        session = make_session(variant=TaskVariant.KEYPOINT)
        session.machine.select_label("right_ankle")

        click(session.machine, (5, 5))

        assert session.machine.selected_label.id == "right_ankle"

    def test_drag_keypoint(self, make_session):
        """Test moving a keypoint with the select tool."""
        session = make_session(variant=TaskVariant.KEYPOINT)
        keypoint_id = click(session.machine, (50, 60))
        session.machine.set_tool(Tool.SELECT)

        drag(session.machine, (51, 61), (81, 71))

        keypoint = session.store.get(keypoint_id)
        assert (keypoint.x, keypoint.y) == (80, 70)


class TestPanning:
    """Tests for the pan tool."""

    def test_pan_moves_viewport_only(self, box_session):
        """Test that panning changes the view, not the annotations."""
        machine = box_session.machine
        drag(machine, (10, 10), (110, 60))
        machine.set_tool(Tool.PAN)

        drag(machine, (0, 0), (30, 20))

        assert box_session.viewport.origin_x == pytest.approx(30)
        assert box_session.viewport.origin_y == pytest.approx(20)
        box = box_session.store.list()[0]
        assert (box.x, box.y) == (10, 10)
        assert box_session.store.history.undo_count == 1
