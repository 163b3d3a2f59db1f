import logging

import cv2
import numpy as np

from core.contracts import Channel, DecodeMethod
from core.errors import StrategyUnavailable

from .base import register_strategy, require_bgr

L = logging.getLogger("chroma_scan.isolate.segmentation")

# (low, high) HSV bounds on OpenCV's 0..180 hue scale. Red straddles the
# hue wrap-around, so it is the union of two windows.
HSV_WINDOWS: dict[Channel, tuple[tuple[tuple[int, int, int], tuple[int, int, int]], ...]] = {
    Channel.RED: (((0, 50, 50), (15, 255, 255)), ((165, 50, 50), (180, 255, 255))),
    Channel.GREEN: (((40, 40, 40), (80, 255, 255)),),
    Channel.BLUE: (((100, 40, 40), (130, 255, 255)),),
}

_REQUIRED_CV2 = ("cvtColor", "inRange", "bitwise_or", "morphologyEx", "getStructuringElement")


def segment_mask(img: np.ndarray, channel: Channel, kernel_size: int = 3) -> np.ndarray:
    """Single-channel 0/255 mask of pixels inside the channel's hue window(s)."""
    hsv = cv2.cvtColor(require_bgr(img), cv2.COLOR_BGR2HSV)
    mask: np.ndarray | None = None
    for low, high in HSV_WINDOWS[channel]:
        part = cv2.inRange(hsv, np.array(low, np.uint8), np.array(high, np.uint8))
        mask = part if mask is None else cv2.bitwise_or(mask, part)
    kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (kernel_size, kernel_size))
    # Close fills pinholes inside modules, open removes isolated speckles.
    mask = cv2.morphologyEx(mask, cv2.MORPH_CLOSE, kernel)
    return cv2.morphologyEx(mask, cv2.MORPH_OPEN, kernel)


@register_strategy("segmentation")
class SegmentationStrategy:
    method = DecodeMethod.SEGMENTED

    def __init__(self, params: dict):
        self.enabled = bool(params.get("enabled", True))
        self.kernel_size = int(params.get("morph_kernel", 3))
        if self.kernel_size < 1:
            raise ValueError("isolate morph_kernel must be >= 1")

    def available(self) -> bool:
        return self.enabled and all(hasattr(cv2, name) for name in _REQUIRED_CV2)

    def isolate(self, img: np.ndarray, channel: Channel) -> np.ndarray:
        if not self.available():
            raise StrategyUnavailable("color segmentation is not available")
        mask = segment_mask(img, channel, kernel_size=self.kernel_size)
        return cv2.cvtColor(mask, cv2.COLOR_GRAY2BGR)


__all__ = ["SegmentationStrategy", "segment_mask", "HSV_WINDOWS"]
