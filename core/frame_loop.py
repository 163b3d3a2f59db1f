"""Refresh-driven frame scheduling on a single asyncio event loop."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

import cv2
import numpy as np

from core.contracts import ScanBox

L = logging.getLogger("chroma_scan.frame_loop")

SCAN_BOX_COLOR = (0, 255, 255)  # yellow, BGR
SCAN_BOX_THICKNESS = 3


def composite_preview(img: np.ndarray, box: ScanBox | None) -> np.ndarray:
    """Copy of the frame with the scan box outlined; the input is not touched."""
    canvas = img.copy()
    if canvas.ndim == 2:
        canvas = cv2.cvtColor(canvas, cv2.COLOR_GRAY2BGR)
    if box is not None:
        cv2.rectangle(
            canvas,
            (box.x, box.y),
            (box.x + box.size - 1, box.y + box.size - 1),
            SCAN_BOX_COLOR,
            SCAN_BOX_THICKNESS,
        )
    return canvas


class FrameLoop:
    """
    Calls a tick callback once per refresh interval until cancelled.

    The next tick is scheduled before the callback runs, so a callback that
    cancels the loop also drops the tick it would otherwise get. arm() always
    cancels the previous schedule first, so restarting never leaves two
    schedules alive.
    """

    def __init__(
        self,
        interval_s: float = 1 / 30,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        if interval_s <= 0:
            raise ValueError("frame interval must be > 0")
        self.interval_s = float(interval_s)
        self._loop = loop
        self._callback: Callable[[], Any] | None = None
        self._handle: asyncio.Handle | None = None
        self._timers: set[asyncio.TimerHandle] = set()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    @property
    def running(self) -> bool:
        return self._callback is not None

    def arm(self, callback: Callable[[], Any]):
        self.cancel()
        self._callback = callback
        self._handle = self.loop.call_soon(self._tick)

    def cancel(self):
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()
        self._callback = None

    def call_later(self, delay_s: float, callback: Callable[[], Any]) -> asyncio.TimerHandle:
        """One-shot timer on the same loop as the ticks."""

        def _fire():
            self._timers.discard(handle)
            callback()

        handle = self.loop.call_later(max(0.0, float(delay_s)), _fire)
        self._timers.add(handle)
        return handle

    def cancel_timers(self):
        for handle in list(self._timers):
            handle.cancel()
        self._timers.clear()

    def _tick(self):
        callback = self._callback
        if callback is None:
            return
        self._handle = self.loop.call_later(self.interval_s, self._tick)
        try:
            callback()
        except Exception:
            L.exception("frame tick failed")


__all__ = ["FrameLoop", "composite_preview"]
