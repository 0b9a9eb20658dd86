"""
Tests for canvas geometry helpers.
"""

import unittest
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from slidecanvas.model.coordinates import (
    Coordinates, SAFE_ZONES, scale_coordinates, translate_coordinates, scale_about_center,
    contains_point, get_center, get_bounding_box, do_overlap, constrain_to_slide, contain_box,
    center_box, cover_crop, percent_to_pixels, pixels_to_percent, snap_to_grid, get_grid_column,
    validate_coordinates, is_within_bounds,
)


class TestCoordinateTransforms(unittest.TestCase):
    """Scale and translate."""

    def test_scale_uses_sx_for_both_axes_by_default(self):
        scaled = scale_coordinates(Coordinates(10, 20, 100, 50), 2)
        self.assertEqual(scaled, Coordinates(20, 40, 200, 100))

    def test_scale_round_trip_recovers_original(self):
        original = Coordinates(123.4, 56.7, 890.1, 234.5)
        for factor in (0.5, 0.25, 3.0, 7.5):
            back = scale_coordinates(scale_coordinates(original, factor), 1 / factor)
            self.assertAlmostEqual(back.x, original.x, places=9)
            self.assertAlmostEqual(back.y, original.y, places=9)
            self.assertAlmostEqual(back.width, original.width, places=9)
            self.assertAlmostEqual(back.height, original.height, places=9)

    def test_translate_allows_off_canvas_positions(self):
        moved = translate_coordinates(Coordinates(10, 10, 100, 100), -500, 2000)
        self.assertEqual(moved, Coordinates(-490, 2010, 100, 100))

    def test_scale_about_center_keeps_center(self):
        box = Coordinates(100, 100, 200, 100)
        scaled = scale_about_center(box, 0.5)
        self.assertEqual(get_center(scaled), get_center(box))
        self.assertEqual((scaled.width, scaled.height), (100, 50))


class TestCoordinatePredicates(unittest.TestCase):
    """Containment, overlap and bounding boxes."""

    def test_contains_point_is_inclusive_on_edges(self):
        box = Coordinates(0, 0, 100, 50)
        self.assertTrue(contains_point(box, 0, 0))
        self.assertTrue(contains_point(box, 100, 50))
        self.assertFalse(contains_point(box, 100.1, 25))

    def test_touching_boxes_do_not_overlap(self):
        a = Coordinates(0, 0, 100, 100)
        b = Coordinates(100, 0, 100, 100)
        self.assertFalse(do_overlap(a, b))
        self.assertFalse(do_overlap(b, a))

    def test_overlap_is_symmetric(self):
        boxes = [
            Coordinates(0, 0, 100, 100),
            Coordinates(50, 50, 100, 100),
            Coordinates(200, 200, 10, 10),
            Coordinates(-20, 90, 30, 30),
        ]
        for a in boxes:
            for b in boxes:
                self.assertEqual(do_overlap(a, b), do_overlap(b, a))

    def test_bounding_box_of_nothing_is_zero(self):
        self.assertEqual(get_bounding_box([]), Coordinates(0, 0, 0, 0))

    def test_bounding_box_of_one_is_itself(self):
        box = Coordinates(5, 6, 7, 8)
        self.assertEqual(get_bounding_box([box]), box)

    def test_bounding_box_encloses_all(self):
        box = get_bounding_box([Coordinates(10, 10, 10, 10), Coordinates(-5, 40, 10, 10)])
        self.assertEqual(box, Coordinates(-5, 10, 25, 40))

    def test_validate_and_bounds(self):
        self.assertFalse(validate_coordinates(Coordinates(0, 0, 0, 10)))
        self.assertTrue(validate_coordinates(Coordinates(-10, -10, 1, 1)))
        self.assertTrue(is_within_bounds(SAFE_ZONES['full']))
        self.assertFalse(is_within_bounds(Coordinates(1900, 0, 40, 10)))


class TestConstrainToSlide(unittest.TestCase):
    """Clamping onto the canvas."""

    def test_oversized_box_fills_canvas(self):
        self.assertEqual(constrain_to_slide(Coordinates(-50, 30, 4000, 2000)), Coordinates(0, 0, 1920, 1080))

    def test_moves_shortest_distance(self):
        self.assertEqual(constrain_to_slide(Coordinates(1900, -20, 100, 100)), Coordinates(1820, 0, 100, 100))

    def test_idempotent(self):
        samples = [
            Coordinates(-100, -100, 50, 50),
            Coordinates(1900, 1000, 300, 300),
            Coordinates(10, 10, 5000, 20),
            Coordinates(500, 500, 100, 100),
            Coordinates(0.5, 1079.5, 1919.5, 0.25),
        ]
        for box in samples:
            once = constrain_to_slide(box)
            self.assertEqual(constrain_to_slide(once), once)
            self.assertTrue(is_within_bounds(once))


class TestFitting(unittest.TestCase):
    """Aspect-ratio fitting used by image placement."""

    def test_contain_wide_box_narrow_image(self):
        # 16:9 box, 4:3 image: height constrains
        placed = contain_box(Coordinates(0, 0, 800, 450), 4 / 3)
        self.assertAlmostEqual(placed.width, 600)
        self.assertAlmostEqual(placed.height, 450)
        self.assertAlmostEqual(placed.x, 100)
        self.assertAlmostEqual(placed.y, 0)

    def test_contain_narrow_box_wide_image(self):
        placed = contain_box(Coordinates(0, 0, 400, 400), 2.0)
        self.assertAlmostEqual(placed.width, 400)
        self.assertAlmostEqual(placed.height, 200)
        self.assertAlmostEqual(placed.y, 100)

    def test_center_box(self):
        self.assertEqual(center_box(Coordinates(0, 0, 100, 100), 50, 20), Coordinates(25, 40, 50, 20))

    def test_cover_crop_is_symmetric(self):
        left, top, right, bottom = cover_crop(Coordinates(0, 0, 800, 450), 4 / 3)
        self.assertEqual((left, right), (0.0, 0.0))
        self.assertAlmostEqual(top, bottom)
        # Visible share of the source height equals (4/3) / (16/9)
        self.assertAlmostEqual(1 - top - bottom, (4 / 3) / (16 / 9))


class TestGridHelpers(unittest.TestCase):

    def test_percent_conversion(self):
        self.assertEqual(percent_to_pixels(50, 'width'), 960)
        self.assertEqual(percent_to_pixels(10, 'height'), 108)
        self.assertAlmostEqual(pixels_to_percent(480, 'width'), 25)

    def test_snap_to_grid(self):
        self.assertEqual(snap_to_grid(250), 320)
        self.assertEqual(snap_to_grid(70, 20), 80)

    def test_grid_column(self):
        column = get_grid_column(2, span=3)
        self.assertEqual(column.x, 120 + 2 * 160)
        self.assertEqual(column.width, 3 * 160 - 30)


if __name__ == '__main__':
    unittest.main()
