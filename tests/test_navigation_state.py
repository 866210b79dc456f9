"""
Unit tests for navigation state (core.navigation_state).

Tests resolution tickets, the indicator text and scrollbar geometry for the
pixel, textual and empty cases, and scrollbar fraction mapping.
"""

import unittest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from core.navigation_state import (DEFAULT_PLACEHOLDER, MIN_THUMB_PERCENT, NavigationState,
                                   ViewportMode, compute_navigation_status, fraction_to_index)
from core.study_model import Instance, Series


def make_series(count, series_id="S1", modality="CT"):
    series = Series(series_id=series_id, modality=modality)
    for i in range(count):
        series.add_instance(Instance(image_ref=f"dicomfile:{i}", source=b"", instance_number=i + 1))
    return series


class TestTickets(unittest.TestCase):
    """Tests for issue_request / is_current."""

    def setUp(self):
        self.state = NavigationState()
        self.state.reset_for_series(make_series(3))

    def test_fresh_ticket_is_current(self):
        ticket = self.state.issue_request(0)
        self.assertTrue(self.state.is_current(ticket))

    def test_newer_request_supersedes(self):
        first = self.state.issue_request(0)
        second = self.state.issue_request(1)
        self.assertFalse(self.state.is_current(first))
        self.assertTrue(self.state.is_current(second))

    def test_series_change_invalidates(self):
        ticket = self.state.issue_request(2)
        self.state.reset_for_series(make_series(3, series_id="S2"))
        self.assertFalse(self.state.is_current(ticket))

    def test_reset_clears_bad_indices(self):
        self.state.mark_bad(1)
        self.state.current_index = 2
        self.state.reset_for_series(make_series(3, series_id="S2"))
        self.assertFalse(self.state.is_bad(1))
        self.assertEqual(self.state.current_index, 0)

    def test_all_bad(self):
        self.assertFalse(self.state.all_bad())
        for i in range(3):
            self.state.mark_bad(i)
        self.assertTrue(self.state.all_bad())


class TestNavigationStatus(unittest.TestCase):
    """Tests for compute_navigation_status."""

    def make_state(self, count, index=0, mode=ViewportMode.PIXEL_ACTIVE, modality="CT"):
        state = NavigationState()
        state.reset_for_series(make_series(count, modality=modality))
        state.current_index = index
        state.mode = mode
        return state

    def test_no_series(self):
        status = compute_navigation_status(NavigationState())
        self.assertEqual(status.indicator, DEFAULT_PLACEHOLDER)
        self.assertFalse(status.prev_enabled or status.next_enabled)
        self.assertFalse(status.scrollbar_visible)

    def test_report_series_uses_placeholder(self):
        status = compute_navigation_status(self.make_state(1, modality="SR"))
        self.assertEqual(status.indicator, DEFAULT_PLACEHOLDER)
        self.assertFalse(status.stack_scroll_enabled)

    def test_single_instance(self):
        status = compute_navigation_status(self.make_state(1))
        self.assertEqual(status.indicator, "1 / 1")
        self.assertFalse(status.prev_enabled or status.next_enabled)
        self.assertFalse(status.scrollbar_visible)
        self.assertFalse(status.stack_scroll_enabled)

    def test_first_of_many(self):
        status = compute_navigation_status(self.make_state(4))
        self.assertEqual(status.indicator, "1 / 4")
        self.assertFalse(status.prev_enabled)
        self.assertTrue(status.next_enabled)
        self.assertTrue(status.scrollbar_visible)
        self.assertEqual(status.thumb_percent, 25.0)
        self.assertEqual(status.thumb_offset_percent, 0.0)

    def test_last_of_many(self):
        status = compute_navigation_status(self.make_state(4, index=3))
        self.assertEqual(status.indicator, "4 / 4")
        self.assertTrue(status.prev_enabled)
        self.assertFalse(status.next_enabled)
        self.assertAlmostEqual(status.thumb_offset_percent, 75.0)

    def test_thumb_minimum(self):
        status = compute_navigation_status(self.make_state(100, index=50))
        self.assertEqual(status.thumb_percent, MIN_THUMB_PERCENT)

    def test_textual_mode_keeps_buttons(self):
        status = compute_navigation_status(self.make_state(3, index=1, mode=ViewportMode.TEXTUAL_ACTIVE))
        self.assertEqual(status.indicator, DEFAULT_PLACEHOLDER)
        self.assertTrue(status.prev_enabled)
        self.assertTrue(status.next_enabled)
        self.assertFalse(status.scrollbar_visible)

    def test_custom_placeholder(self):
        status = compute_navigation_status(NavigationState(), placeholder="No image")
        self.assertEqual(status.indicator, "No image")

    def test_all_bad_uses_placeholder(self):
        state = self.make_state(2)
        state.mark_bad(0)
        state.mark_bad(1)
        self.assertEqual(compute_navigation_status(state).indicator, DEFAULT_PLACEHOLDER)


class TestFractionToIndex(unittest.TestCase):
    """Tests for fraction_to_index."""

    def test_endpoints(self):
        self.assertEqual(fraction_to_index(0.0, 10), 0)
        self.assertEqual(fraction_to_index(1.0, 10), 9)

    def test_rounding(self):
        self.assertEqual(fraction_to_index(0.5, 5), 2)

    def test_clamped(self):
        self.assertEqual(fraction_to_index(-1.0, 5), 0)
        self.assertEqual(fraction_to_index(3.0, 5), 4)

    def test_empty_or_single(self):
        self.assertEqual(fraction_to_index(0.7, 0), 0)
        self.assertEqual(fraction_to_index(0.7, 1), 0)


if __name__ == "__main__":
    unittest.main()
