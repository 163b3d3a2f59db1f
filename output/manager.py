# -- coding: utf-8 --
"""OutputManager: keep the scan board and fan presentation events out to channels."""

import logging
import threading
from collections import deque
from typing import Any, Protocol

import numpy as np

from core.contracts import FoundResult

L = logging.getLogger("chroma_scan.output")


class PresentationSink(Protocol):
    def set_status(self, text: str): ...
    def set_overlay(self, text: str): ...
    def append_result(self, result: FoundResult): ...
    def clear_results(self): ...
    def notify(self, spoken_text: str): ...
    def show_frame(self, img: np.ndarray): ...


class ScanBoard:
    """Latest presentation state, readable by pull-based channels (HMI)."""

    def __init__(self, max_notifications: int = 20):
        self._lock = threading.Lock()
        self._status = ""
        self._overlay = ""
        self._results: list[FoundResult] = []
        self._notifications: deque[tuple[int, str]] = deque(maxlen=max_notifications)
        self._notify_seq = 0
        self._latest_frame: np.ndarray | None = None

    def set_status(self, text: str):
        with self._lock:
            self._status = text

    def set_overlay(self, text: str):
        with self._lock:
            self._overlay = text

    def append_result(self, result: FoundResult):
        with self._lock:
            self._results.append(result)

    def clear_results(self):
        with self._lock:
            self._results.clear()

    def notify(self, spoken_text: str):
        with self._lock:
            self._notify_seq += 1
            self._notifications.append((self._notify_seq, spoken_text))

    def show_frame(self, img: np.ndarray):
        with self._lock:
            self._latest_frame = img

    @property
    def status(self) -> str:
        with self._lock:
            return self._status

    @property
    def overlay(self) -> str:
        with self._lock:
            return self._overlay

    @property
    def results(self) -> list[FoundResult]:
        with self._lock:
            return list(self._results)

    def notifications_since(self, seq: int = 0) -> list[tuple[int, str]]:
        with self._lock:
            return [(s, text) for s, text in self._notifications if s > seq]

    @property
    def notify_seq(self) -> int:
        with self._lock:
            return self._notify_seq

    def latest_frame(self) -> np.ndarray | None:
        with self._lock:
            return self._latest_frame


class OutputManager:
    def __init__(self, board: ScanBoard | None = None):
        self.board = board or ScanBoard()
        self._channels: list[Any] = []

    def add_channel(self, channel: Any):
        self._channels.append(channel)

    @property
    def channels(self) -> list[Any]:
        return list(self._channels)

    def set_status(self, text: str):
        self.board.set_status(text)
        self._fan_out("set_status", text)

    def set_overlay(self, text: str):
        self.board.set_overlay(text)
        self._fan_out("set_overlay", text)

    def append_result(self, result: FoundResult):
        self.board.append_result(result)
        self._fan_out("append_result", result)

    def clear_results(self):
        self.board.clear_results()
        self._fan_out("clear_results")

    def notify(self, spoken_text: str):
        self.board.notify(spoken_text)
        self._fan_out("notify", spoken_text)

    def show_frame(self, img: np.ndarray):
        self.board.show_frame(img)
        self._fan_out("show_frame", img)

    def _fan_out(self, method: str, *args):
        for ch in self._channels:
            fn = getattr(ch, method, None)
            if fn is None:
                continue
            try:
                fn(*args)
            except Exception:
                L.exception("output channel %s.%s failed", type(ch).__name__, method)


__all__ = ["PresentationSink", "ScanBoard", "OutputManager"]
