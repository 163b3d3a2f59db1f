"""Fakes shared by the scanner tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

import numpy as np

from core.contracts import CaptureResult, Channel, DecodeMethod, FoundResult
from core.errors import DeviceAcquisitionError, StrategyUnavailable


class FakeClock:
    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeCamera:
    def __init__(self, size=(640, 480), fail_open: bool = False):
        self.size = size
        self.fail_open = fail_open
        self.open_count = 0
        self.close_count = 0
        self.frames_served = 0
        self._open = False
        self.fail_next_frame = False
        self.dead = False

    def open(self):
        if self.fail_open:
            raise DeviceAcquisitionError("no camera attached")
        self.open_count += 1
        self._open = True

    def close(self):
        self.close_count += 1
        self._open = False

    def current_frame(self) -> CaptureResult:
        if self.dead or self.fail_next_frame:
            self.fail_next_frame = False
            return CaptureResult(success=False, device_id="fake", error="read_failed")
        self.frames_served += 1
        w, h = self.size
        return CaptureResult(
            success=True, device_id="fake", image=np.zeros((h, w, 3), np.uint8)
        )

    @property
    def frame_size(self):
        return self.size

    @property
    def is_open(self) -> bool:
        return self._open


@dataclass
class Isolated:
    channel: Channel
    method: DecodeMethod


@dataclass
class Scenario:
    """Scripted decode outcomes keyed by (frame, channel, method)."""

    frame: int = 0
    payloads: dict[tuple[int, Channel, DecodeMethod], str] = field(default_factory=dict)
    rule: Callable[[int, Channel, DecodeMethod], str | None] | None = None
    errors: set[tuple[Channel, DecodeMethod]] = field(default_factory=set)
    isolate_calls: list[tuple[int, Channel, DecodeMethod]] = field(default_factory=list)
    decode_calls: list[tuple[int, Channel, DecodeMethod]] = field(default_factory=list)

    def outcome(self, channel: Channel, method: DecodeMethod) -> str | None:
        if self.rule is not None:
            return self.rule(self.frame, channel, method)
        return self.payloads.get((self.frame, channel, method))


class FakeStrategy:
    def __init__(self, method: DecodeMethod, scenario: Scenario, available: bool = True):
        self.method = method
        self.scenario = scenario
        self.is_available = available
        self.raise_unavailable = False

    def available(self) -> bool:
        return self.is_available

    def isolate(self, img: Any, channel: Channel) -> Isolated:
        if self.raise_unavailable:
            raise StrategyUnavailable("library went away")
        self.scenario.isolate_calls.append((self.scenario.frame, channel, self.method))
        return Isolated(channel, self.method)


class FakeDecoder:
    def __init__(self, scenario: Scenario):
        self.scenario = scenario
        self.polarity_flags: list[bool] = []

    def decode(self, img: Isolated, both_polarities: bool = True) -> str | None:
        self.polarity_flags.append(both_polarities)
        key = (img.channel, img.method)
        self.scenario.decode_calls.append((self.scenario.frame, img.channel, img.method))
        if key in self.scenario.errors:
            raise RuntimeError(f"decoder blew up on {img.channel.value}")
        return self.scenario.outcome(img.channel, img.method)


class FakeFrameLoop:
    def __init__(self):
        self.callback: Callable[[], Any] | None = None
        self.arm_count = 0
        self.cancel_count = 0
        self.timers: list[tuple[float, Callable[[], Any]]] = []

    @property
    def running(self) -> bool:
        return self.callback is not None

    def arm(self, callback):
        self.cancel()
        self.arm_count += 1
        self.callback = callback

    def cancel(self):
        self.cancel_count += 1
        self.callback = None

    def call_later(self, delay_s, callback):
        self.timers.append((delay_s, callback))

    def fire_timers(self):
        timers, self.timers = self.timers, []
        for _delay, cb in timers:
            cb()

    def tick(self):
        if self.callback is not None:
            self.callback()


class RecordingSink:
    def __init__(self):
        self.statuses: list[str] = []
        self.overlays: list[str] = []
        self.results: list[FoundResult] = []
        self.notifications: list[str] = []
        self.frames: list[np.ndarray] = []
        self.clear_count = 0

    def set_status(self, text: str):
        self.statuses.append(text)

    def set_overlay(self, text: str):
        self.overlays.append(text)

    def append_result(self, result: FoundResult):
        self.results.append(result)

    def clear_results(self):
        self.clear_count += 1
        self.results.clear()

    def notify(self, spoken_text: str):
        self.notifications.append(spoken_text)

    def show_frame(self, img: np.ndarray):
        self.frames.append(img)
