import unittest
from types import SimpleNamespace

import cv2
import numpy as np

from core.contracts import Channel, DecodeMethod
from core.errors import StrategyUnavailable
from isolate import create_strategies_from_loaded_config, create_strategy
from isolate.dominance import channel_dominance
from isolate.segmentation import segment_mask

# (row slice, col slice, OpenCV hue)
_BLOCKS = {
    "red_low": (slice(2, 14), slice(2, 14), 2),
    "red_high": (slice(2, 14), slice(24, 36), 175),
    "green": (slice(24, 36), slice(2, 14), 60),
    "blue": (slice(24, 36), slice(24, 36), 115),
}
_SPECKLE = (19, 19)


def _color_blocks() -> np.ndarray:
    hsv = np.zeros((40, 40, 3), dtype=np.uint8)
    hsv[:, :] = (0, 0, 255)  # white
    for rows, cols, hue in _BLOCKS.values():
        hsv[rows, cols] = (hue, 255, 255)
    hsv[_SPECKLE] = (2, 255, 255)
    return cv2.cvtColor(hsv, cv2.COLOR_HSV2BGR)


class TestChannelDominance(unittest.TestCase):
    def test_output_is_raw_target_channel_for_every_pixel(self):
        rng = np.random.default_rng(7)
        img = rng.integers(0, 256, size=(20, 30, 3), dtype=np.uint8)
        strategy = create_strategy("dominance", {})
        for channel, idx in ((Channel.BLUE, 0), (Channel.GREEN, 1), (Channel.RED, 2)):
            with self.subTest(channel=channel.value):
                out = strategy.isolate(img, channel)
                self.assertEqual(out.shape, (20, 30))
                np.testing.assert_array_equal(out, img[:, :, idx])

    def test_dominance_needs_margin_and_brightness(self):
        img = np.array(
            [[(10, 20, 200), (10, 20, 40), (190, 20, 200)]], dtype=np.uint8
        )
        plain = channel_dominance(img, Channel.RED)
        self.assertEqual(plain.tolist(), [[True, False, True]])
        strict = channel_dominance(img, Channel.RED, margin=20)
        self.assertEqual(strict.tolist(), [[True, False, False]])

    def test_dominance_does_not_overflow_uint8(self):
        img = np.array([[(250, 10, 255)]], dtype=np.uint8)
        self.assertFalse(channel_dominance(img, Channel.RED, margin=10)[0, 0])
        self.assertFalse(bool(channel_dominance(img, Channel.BLUE)[0, 0]))

    def test_grayscale_input_is_rejected(self):
        strategy = create_strategy("dominance", {})
        with self.assertRaises(ValueError):
            strategy.isolate(np.zeros((4, 4), np.uint8), Channel.RED)


class TestSegmentation(unittest.TestCase):
    def test_red_covers_both_ends_of_the_hue_circle(self):
        mask = segment_mask(_color_blocks(), Channel.RED)
        self.assertEqual(mask[8, 8], 255)
        self.assertEqual(mask[8, 30], 255)
        self.assertEqual(mask[30, 8], 0)
        self.assertEqual(mask[30, 30], 0)

    def test_green_and_blue_windows(self):
        img = _color_blocks()
        green = segment_mask(img, Channel.GREEN)
        blue = segment_mask(img, Channel.BLUE)
        self.assertEqual(green[30, 8], 255)
        self.assertEqual(green[8, 8], 0)
        self.assertEqual(blue[30, 30], 255)
        self.assertEqual(blue[30, 8], 0)

    def test_white_background_and_speckles_are_dropped(self):
        mask = segment_mask(_color_blocks(), Channel.RED)
        self.assertEqual(mask[20, 5], 0)
        self.assertEqual(mask[_SPECKLE], 0)

    def test_isolate_returns_three_channel_mask(self):
        strategy = create_strategy("segmentation", {"enabled": True})
        self.assertTrue(strategy.available())
        self.assertIs(strategy.method, DecodeMethod.SEGMENTED)
        out = strategy.isolate(_color_blocks(), Channel.RED)
        self.assertEqual(out.shape, (40, 40, 3))
        np.testing.assert_array_equal(out[:, :, 0], out[:, :, 2])
        self.assertEqual(int(out[8, 8, 1]), 255)

    def test_disabled_segmentation_reports_unavailable(self):
        strategy = create_strategy("segmentation", {"enabled": False})
        self.assertFalse(strategy.available())
        with self.assertRaises(StrategyUnavailable):
            strategy.isolate(_color_blocks(), Channel.RED)


class TestStrategyFactory(unittest.TestCase):
    def test_unknown_strategy_name(self):
        with self.assertRaises(ValueError) as cm:
            create_strategy("watershed", {})
        self.assertIn("isolation strategy", str(cm.exception))

    def test_strategies_from_config_are_ordered_segmentation_first(self):
        cfg = SimpleNamespace(
            isolate=SimpleNamespace(
                segmentation_enabled=False,
                dominance_margin=5,
                min_brightness=60,
                morph_kernel=3,
            )
        )
        seg, dom = create_strategies_from_loaded_config(cfg)
        self.assertIs(seg.method, DecodeMethod.SEGMENTED)
        self.assertFalse(seg.available())
        self.assertIs(dom.method, DecodeMethod.CHANNEL_DOMINANCE)
        self.assertEqual((dom.margin, dom.min_brightness), (5, 60))

    def test_invalid_dominance_params(self):
        with self.assertRaises(ValueError):
            create_strategy("dominance", {"min_brightness": 300})


if __name__ == "__main__":
    unittest.main()
