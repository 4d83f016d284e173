import unittest

import numpy as np

from safegaze_server.core.config import RendererSettings
from safegaze_server.renderer.pixelate import pixel_block_size, pixelate


class PixelBlockSizeTestCase(unittest.TestCase):

    def test_scales_with_smaller_side(self):
        self.assertEqual(pixel_block_size(100, 300), 8)

    def test_capped(self):
        self.assertEqual(pixel_block_size(800, 600), 29)

    def test_large_image_cap(self):
        self.assertEqual(pixel_block_size(2000, 1500), 35)
        # 1000 is not "larger than 1000"
        self.assertEqual(pixel_block_size(1000, 1000), 29)

    def test_at_least_one(self):
        self.assertEqual(pixel_block_size(5, 5), 1)

    def test_configurable(self):
        settings = RendererSettings(pixel_block_ratio=0.5, max_pixel_block=10)
        self.assertEqual(pixel_block_size(100, 100, settings), 10)


class PixelateTestCase(unittest.TestCase):

    def setUp(self):
        rng = np.random.RandomState(3)
        self.image = rng.randint(0, 256, (64, 80, 3)).astype(np.uint8)

    def test_output_is_gray_and_same_shape(self):
        out = pixelate(self.image, block_size=8)
        self.assertEqual(out.shape, self.image.shape)
        self.assertEqual(out.dtype, np.uint8)
        np.testing.assert_array_equal(out[..., 0], out[..., 1])
        np.testing.assert_array_equal(out[..., 1], out[..., 2])

    def test_blocks_are_uniform(self):
        out = pixelate(self.image, block_size=8)
        block = out[8:16, 16:24, 0]
        self.assertEqual(len(np.unique(block)), 1)

    def test_luminosity_weights(self):
        image = np.zeros((10, 10, 3), dtype=np.uint8)
        image[:, :] = (100, 200, 50)
        out = pixelate(image, block_size=5)
        expected = round(0.299 * 100 + 0.587 * 200 + 0.114 * 50)
        self.assertTrue(np.all(np.abs(out.astype(int) - expected) <= 1))


if __name__ == "__main__":
    unittest.main()
