import logging

import numpy as np

from core.contracts import Channel, DecodeMethod

from .base import CHANNEL_INDEX, register_strategy, require_bgr

L = logging.getLogger("chroma_scan.isolate.dominance")


def channel_dominance(
    img: np.ndarray,
    channel: Channel,
    margin: int = 0,
    min_brightness: int = 50,
) -> np.ndarray:
    """
    Boolean mask of pixels where `channel` beats both other channels by more
    than `margin` and is brighter than `min_brightness`.
    """
    bgr = require_bgr(img).astype(np.int16, copy=False)
    idx = CHANNEL_INDEX[channel]
    target = bgr[:, :, idx]
    o1, o2 = (bgr[:, :, i] for i in range(3) if i != idx)
    return (target > o1 + margin) & (target > o2 + margin) & (target > min_brightness)


@register_strategy("dominance")
class ChannelDominanceStrategy:
    method = DecodeMethod.CHANNEL_DOMINANCE

    def __init__(self, params: dict):
        self.margin = int(params.get("margin", 0))
        self.min_brightness = int(params.get("min_brightness", 50))
        self._validate()

    def available(self) -> bool:
        return True

    def isolate(self, img: np.ndarray, channel: Channel) -> np.ndarray:
        # The decoder gets the full channel plane, not a sparse mask; the
        # dominance ratio is only reported.
        bgr = require_bgr(img)
        if L.isEnabledFor(logging.DEBUG):
            mask = channel_dominance(
                bgr, channel, margin=self.margin, min_brightness=self.min_brightness
            )
            ratio = float(mask.mean()) if mask.size else 0.0
            if ratio > 0.01:
                L.debug(
                    "%s channel: %d/%d dominant pixels (%.1f%%)",
                    channel.value,
                    int(mask.sum()),
                    mask.size,
                    ratio * 100,
                )
        return np.ascontiguousarray(bgr[:, :, CHANNEL_INDEX[channel]])

    def _validate(self):
        if not (0 <= self.margin <= 255):
            raise ValueError("isolate dominance_margin must be 0..255")
        if not (0 <= self.min_brightness <= 255):
            raise ValueError("isolate min_brightness must be 0..255")


__all__ = ["ChannelDominanceStrategy", "channel_dominance"]
