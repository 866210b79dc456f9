"""
Unit tests for the gesture interpreter (tools.gesture_interpreter).

Uses a recording host and an injectable clock, so no Qt or event loop is
needed. Covers tool dispatch, the stack-scroll and wheel accumulators, the
wheel cooldown and ruler gestures.
"""

import unittest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from core.rendering_engine import Point, Viewport
from tools.annotation_store import AnnotationStore
from tools.gesture_interpreter import GestureInterpreter, GestureSettings, Tool


class RecordingHost:
    """Host stub that records navigation and viewport writes."""

    def __init__(self):
        self.viewport = Viewport(window_width=400.0, window_center=40.0)
        self.navigations = []
        self.annotation_updates = 0
        self.scope = (0, "S1")

    def get_viewport(self):
        return self.viewport.copy()

    def set_viewport(self, viewport):
        self.viewport = viewport

    def canvas_to_pixel(self, x, y):
        return Point(x / 2.0, y / 2.0)

    def navigate(self, direction):
        self.navigations.append(direction)

    def current_scope(self):
        return self.scope

    def annotations_changed(self):
        self.annotation_updates += 1


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


class GestureTestCase(unittest.TestCase):

    def setUp(self):
        self.host = RecordingHost()
        self.store = AnnotationStore()
        self.clock = FakeClock()
        self.gestures = GestureInterpreter(self.host, self.store, clock=self.clock)
        self.gestures.attach(object())

    def drag(self, points):
        self.gestures.pointer_down(*points[0])
        for point in points[1:]:
            self.gestures.pointer_move(*point)
        self.gestures.pointer_up(*points[-1])


class TestToolSelection(GestureTestCase):
    """Tests for Tool lookup and set_tool."""

    def test_from_name_aliases(self):
        self.assertIs(Tool.from_name("wwwc"), Tool.WINDOW_LEVEL)
        self.assertIs(Tool.from_name("StackScroll"), Tool.STACK_SCROLL)
        self.assertIs(Tool.from_name("length"), Tool.RULER)
        self.assertIs(Tool.from_name("window-level"), Tool.WINDOW_LEVEL)
        self.assertIs(Tool.from_name("pan"), Tool.PAN)

    def test_from_name_unknown(self):
        with self.assertRaises(ValueError):
            Tool.from_name("lasso")

    def test_reset_is_not_a_mode(self):
        with self.assertRaises(ValueError):
            self.gestures.set_tool(Tool.RESET)
        self.assertIs(self.gestures.active_tool, Tool.WINDOW_LEVEL)

    def test_detached_ignores_pointer(self):
        self.gestures.detach()
        self.drag([(0, 0), (50, 50)])
        self.assertEqual(self.host.viewport.window_width, 400.0)


class TestDragTools(GestureTestCase):
    """Tests for window/level, pan and zoom drags."""

    def test_window_level_drag(self):
        self.drag([(0, 0), (10, 5)])
        self.assertEqual(self.host.viewport.window_width, 420.0)
        self.assertEqual(self.host.viewport.window_center, 45.0)

    def test_pan_drag(self):
        self.gestures.set_tool(Tool.PAN)
        self.drag([(0, 0), (5, 5), (12, -3)])
        self.assertEqual((self.host.viewport.translation_x, self.host.viewport.translation_y), (12.0, -3.0))

    def test_zoom_clamped(self):
        self.gestures.set_tool(Tool.ZOOM)
        self.drag([(0, 0), (0, 5000)])
        self.assertEqual(self.host.viewport.scale, GestureSettings().max_scale)
        self.drag([(0, 0), (0, -5000)])
        self.assertEqual(self.host.viewport.scale, GestureSettings().min_scale)

    def test_move_without_press_does_nothing(self):
        self.gestures.pointer_move(10, 10)
        self.assertEqual(self.host.viewport.window_width, 400.0)


class TestStackScrollDrag(GestureTestCase):
    """Tests for the stack-scroll accumulator."""

    def setUp(self):
        super().setUp()
        self.gestures.set_tool(Tool.STACK_SCROLL)

    def test_below_threshold_no_step(self):
        self.drag([(0, 0), (0, 10), (0, 29)])
        self.assertEqual(self.host.navigations, [])

    def test_one_step_per_threshold(self):
        self.gestures.pointer_down(0, 0)
        self.gestures.pointer_move(0, 20)
        self.gestures.pointer_move(0, 35)
        self.assertEqual(self.host.navigations, [1])
        # accumulator reset: next 29 px is not enough
        self.gestures.pointer_move(0, 64)
        self.assertEqual(self.host.navigations, [1])
        self.gestures.pointer_move(0, 65)
        self.assertEqual(self.host.navigations, [1, 1])

    def test_large_single_move_is_one_step(self):
        self.drag([(0, 0), (0, -200)])
        self.assertEqual(self.host.navigations, [-1])

    def test_release_resets_accumulator(self):
        self.drag([(0, 0), (0, 20)])
        self.drag([(0, 0), (0, 20)])
        self.assertEqual(self.host.navigations, [])


class TestWheel(GestureTestCase):
    """Tests for the wheel accumulator and cooldown."""

    def test_accumulates_to_threshold(self):
        self.assertFalse(self.gestures.wheel(100))
        self.assertTrue(self.gestures.wheel(60))
        self.assertEqual(self.host.navigations, [1])
        self.assertEqual(self.gestures.wheel_accumulator, 0.0)

    def test_negative_direction(self):
        self.gestures.wheel(-150)
        self.assertEqual(self.host.navigations, [-1])

    def test_cooldown_discards_events(self):
        self.gestures.wheel(150)
        self.clock.now += 0.010
        self.assertFalse(self.gestures.wheel(500))
        self.assertEqual(self.gestures.wheel_accumulator, 0.0)
        self.clock.now += 0.030
        self.assertTrue(self.gestures.wheel(150))
        self.assertEqual(self.host.navigations, [1, 1])

    def test_wheel_independent_of_drag_threshold(self):
        self.gestures.wheel(40)
        self.assertEqual(self.host.navigations, [])

    def test_reset_wheel_state(self):
        self.gestures.wheel(140)
        self.gestures.reset_wheel_state()
        self.assertFalse(self.gestures.wheel(20))


class TestRulerGestures(GestureTestCase):
    """Tests for ruler press/drag/release."""

    def setUp(self):
        super().setUp()
        self.gestures.set_tool(Tool.RULER)

    def test_press_drag_release_commits(self):
        self.drag([(10, 10), (30, 50)])
        self.assertIsNone(self.store.in_progress)
        self.assertEqual(len(self.store.measurements), 1)
        measurement = self.store.measurements[0]
        self.assertEqual((measurement.start, measurement.end), (Point(5, 5), Point(15, 25)))
        self.assertEqual((measurement.instance_index, measurement.series_id), (0, "S1"))
        self.assertGreaterEqual(self.host.annotation_updates, 3)

    def test_leave_keeps_in_progress(self):
        self.gestures.pointer_down(0, 0)
        self.gestures.pointer_move(20, 0)
        self.gestures.pointer_leave()
        self.assertIsNotNone(self.store.in_progress)
        self.gestures.pointer_move(40, 0)
        self.assertEqual(self.store.in_progress.end, Point(20, 0))
        self.gestures.pointer_up(40, 0)
        self.assertEqual(len(self.store.measurements), 1)

    def test_release_point_sets_final_end(self):
        self.gestures.pointer_down(10, 10)
        self.gestures.pointer_move(20, 10)
        self.gestures.pointer_up(60, 30)
        measurement = self.store.measurements[0]
        self.assertEqual((measurement.start, measurement.end), (Point(5, 5), Point(30, 15)))

    def test_release_without_press_commits_nothing(self):
        self.gestures.pointer_up(60, 30)
        self.assertEqual(self.store.measurements, [])
        self.assertIsNone(self.store.in_progress)

    def test_ruler_scoped_to_current_instance(self):
        self.host.scope = (4, "S2")
        self.drag([(0, 0), (2, 2)])
        self.assertEqual(self.store.visible_for(4, "S2"), self.store.measurements)
        self.assertEqual(self.store.visible_for(0, "S1"), [])


if __name__ == "__main__":
    unittest.main()
