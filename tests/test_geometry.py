import random
import unittest

from safegaze_server.models.geometry import (
    CanvasPoint,
    CanvasScale,
    NormalizedRect,
    Origin,
    PixelPoint,
    PixelRect,
)


class CoordinateConversionTestCase(unittest.TestCase):
    """Conversions between normalized, pixel and canvas spaces."""

    def test_top_left_normalized_to_pixel(self):
        rect = NormalizedRect(x=0.1, y=0.2, width=0.5, height=0.25)
        pixel = rect.to_pixel(800, 400)
        self.assertAlmostEqual(pixel.x, 80.0)
        self.assertAlmostEqual(pixel.y, 80.0)
        self.assertAlmostEqual(pixel.width, 400.0)
        self.assertAlmostEqual(pixel.height, 100.0)

    def test_bottom_left_origin_is_flipped(self):
        rect = NormalizedRect(x=0.1, y=0.2, width=0.5, height=0.25, origin=Origin.BOTTOM_LEFT)
        pixel = rect.to_pixel(800, 400)
        # y' = (1 - y - h) * height
        self.assertAlmostEqual(pixel.y, (1 - 0.2 - 0.25) * 400)
        self.assertAlmostEqual(pixel.height, 100.0)

    def test_round_trip_normalized_pixel_normalized(self):
        rng = random.Random(7)
        for origin in Origin:
            for _ in range(50):
                w, h = rng.uniform(0, 0.5), rng.uniform(0, 0.5)
                rect = NormalizedRect(
                    x=rng.uniform(0, 0.5), y=rng.uniform(0, 0.5), width=w, height=h, origin=origin
                )
                image_w, image_h = rng.randint(1, 2000), rng.randint(1, 2000)
                back = rect.to_pixel(image_w, image_h).to_normalized(image_w, image_h, origin)
                self.assertEqual(back.origin, origin)
                for field in ("x", "y", "width", "height"):
                    self.assertAlmostEqual(getattr(back, field), getattr(rect, field), places=9)

    def test_round_trip_pixel_normalized_pixel(self):
        rect = PixelRect(x=13.0, y=27.5, width=120.0, height=64.0)
        for origin in Origin:
            back = rect.to_normalized(640, 480, origin).to_pixel(640, 480)
            self.assertAlmostEqual(back.x, rect.x)
            self.assertAlmostEqual(back.y, rect.y)
            self.assertAlmostEqual(back.width, rect.width)
            self.assertAlmostEqual(back.height, rect.height)

    def test_pixel_to_canvas(self):
        scale = CanvasScale.between(400, 300, 800, 150)
        self.assertAlmostEqual(scale.ratio_x, 2.0)
        self.assertAlmostEqual(scale.ratio_y, 0.5)

        rect = PixelRect(x=10, y=20, width=30, height=40).to_canvas(scale)
        self.assertEqual((rect.x, rect.y, rect.width, rect.height), (20, 10, 60, 20))

        point = PixelPoint(x=5, y=8).to_canvas(scale)
        self.assertIsInstance(point, CanvasPoint)
        self.assertEqual((point.x, point.y), (10, 4))


class GeometryGuardTestCase(unittest.TestCase):
    """Spaces cannot be mixed silently."""

    def test_distance_across_spaces_raises(self):
        with self.assertRaises(TypeError):
            PixelPoint(x=0, y=0).distance_to(CanvasPoint(x=3, y=4))

    def test_distance_same_space(self):
        self.assertAlmostEqual(PixelPoint(x=0, y=0).distance_to(PixelPoint(x=3, y=4)), 5.0)

    def test_negative_size_rejected(self):
        with self.assertRaises(ValueError):
            PixelRect(x=0, y=0, width=-1, height=5)

    def test_bounding_rect(self):
        points = [PixelPoint(x=5, y=9), PixelPoint(x=1, y=3), PixelPoint(x=4, y=12)]
        rect = PixelRect.bounding(points)
        self.assertEqual((rect.x, rect.y, rect.width, rect.height), (1, 3, 4, 9))

    def test_bounding_rejects_other_spaces_and_empty(self):
        with self.assertRaises(TypeError):
            PixelRect.bounding([CanvasPoint(x=1, y=1)])
        with self.assertRaises(ValueError):
            PixelRect.bounding([])

    def test_clamp(self):
        rect = PixelRect(x=-10, y=90, width=50, height=50).clamp(100, 100)
        self.assertEqual((rect.x, rect.y, rect.width, rect.height), (0, 90, 40, 10))

    def test_center_and_max_side(self):
        rect = PixelRect(x=10, y=20, width=40, height=100)
        self.assertEqual(rect.center, PixelPoint(x=30, y=70))
        self.assertEqual(rect.max_side, 100)


if __name__ == "__main__":
    unittest.main()
