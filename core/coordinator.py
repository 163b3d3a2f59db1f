"""Scan coordinator: per-frame multi-channel decode state machine and session lifecycle."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Protocol, Sequence

import numpy as np

from camera.base import BaseCamera
from core.contracts import (
    Channel,
    DecodeMethod,
    FoundResult,
    ScanBox,
    ScanProgress,
    ScanState,
)
from core.errors import DeviceAcquisitionError, StrategyUnavailable
from core.frame_loop import composite_preview
from core.lookup import LookupTable
from core.results import ResultRegistry
from decode.base import QrDecoder, attempt_decode
from isolate.base import IsolationStrategy
from output.manager import PresentationSink

L = logging.getLogger("chroma_scan.coordinator")

DEFAULT_BOX_SIZE = 250
DEFAULT_TIMEOUT_MS = 30000
DEFAULT_GUARD_RELEASE_MS = 100

MSG_ALL_FOUND = "All QR codes successfully detected"
MSG_TIMEOUT = "Scan completed"
MSG_SEGMENTATION_UNAVAILABLE = "Segmentation unavailable - using basic detection"


class FrameScheduler(Protocol):
    def arm(self, callback: Callable[[], Any]) -> None: ...

    def cancel(self) -> None: ...

    def call_later(self, delay_s: float, callback: Callable[[], Any]) -> Any: ...


class ScanSession:
    """Results and timing of one scanning attempt; replaced on every (re)start."""

    def __init__(
        self,
        lookup: LookupTable,
        timeout_ms: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.results = ResultRegistry(lookup)
        self.timeout_ms = int(timeout_ms)
        self._clock = clock
        self.started_at = clock()
        self.terminal_state: ScanState | None = None
        self.strategy_notes: set[str] = set()
        self.notices: list[str] = []

    def elapsed_s(self) -> float:
        return max(0.0, self._clock() - self.started_at)

    def progress(self, latch: bool = False) -> ScanProgress:
        """
        Current state. With latch=True a terminal state is stored and returned
        from then on, so the state never moves backward.
        """
        found = self.results.found()
        missing = [ch for ch in Channel if ch not in found]
        elapsed = self.elapsed_s()
        state = self.terminal_state
        if state is None:
            if not missing:
                state = ScanState.COMPLETE
            elif elapsed * 1000.0 > self.timeout_ms:
                state = ScanState.EXPIRED
            elif found:
                state = ScanState.PARTIAL
            else:
                state = ScanState.SEARCHING
            if latch and state.terminal:
                self.terminal_state = state
        return ScanProgress(
            state=state,
            found=found,
            missing=missing,
            elapsed_s=elapsed,
            notices=list(self.notices),
        )


class ReentrancyGuard:
    """Busy flag whose release can be deferred; releases from a previous session are ignored."""

    def __init__(self):
        self._held = False
        self._generation = 0

    @property
    def held(self) -> bool:
        return self._held

    def try_acquire(self) -> bool:
        if self._held:
            return False
        self._held = True
        return True

    def releaser(self) -> Callable[[], None]:
        generation = self._generation

        def _release():
            if generation == self._generation:
                self._held = False

        return _release

    def reset(self):
        self._generation += 1
        self._held = False


def describe_progress(progress: ScanProgress) -> tuple[str, str]:
    """
    (status, overlay) wording for a progress snapshot. Session notices stay
    appended to the status until the scan ends.
    """
    status, overlay = _describe_state(progress)
    if progress.notices and not progress.state.terminal:
        status = " | ".join([status, *progress.notices])
    return status, overlay


def _describe_state(progress: ScanProgress) -> tuple[str, str]:
    found = len(progress.found)
    total = len(Channel)
    if progress.state is ScanState.COMPLETE:
        return "All colors decoded successfully!", "Complete! All QR codes found."
    if progress.state is ScanState.EXPIRED:
        return (
            f"Scan timeout - Found {found}/{total} colors",
            "Scan completed (timeout)",
        )
    if progress.state is ScanState.PARTIAL:
        missing = ", ".join(c.value for c in progress.missing)
        return (
            f"Found {found}/{total} colors - Missing: {missing} ({progress.elapsed_s:.1f}s)",
            f"Found: {', '.join(c.value for c in progress.found)} - Keep scanning...",
        )
    return f"Scanning... ({progress.elapsed_s:.1f}s)", "Looking for QR codes..."


class ScanCoordinator:
    def __init__(
        self,
        camera: BaseCamera,
        strategies: Sequence[IsolationStrategy],
        decoder: QrDecoder,
        lookup: LookupTable,
        sink: PresentationSink,
        frame_loop: FrameScheduler,
        *,
        box_size: int = DEFAULT_BOX_SIZE,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        guard_release_ms: float = DEFAULT_GUARD_RELEASE_MS,
        preview_enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        if not strategies:
            raise ValueError("at least one isolation strategy is required")
        self.camera = camera
        self.strategies = list(strategies)
        self.decoder = decoder
        self.lookup = lookup
        self.sink = sink
        self.frame_loop = frame_loop
        self.box_size = int(box_size)
        self.timeout_ms = int(timeout_ms)
        self.guard_release_s = max(0.0, float(guard_release_ms) / 1000.0)
        self.preview_enabled = preview_enabled
        self._clock = clock
        self._guard = ReentrancyGuard()
        self._session: ScanSession | None = None
        self._box: ScanBox | None = None
        self._active: list[IsolationStrategy] = []
        self._camera_open = False
        self._on_finished: list[Callable[[ScanProgress], Any]] = []

    # ---- lifecycle ----

    def start_session(self):
        if self._camera_open:
            L.warning("start_session ignored: session already running")
            return
        self.sink.set_status("Starting camera...")
        self.sink.set_overlay("Initializing camera...")
        try:
            self.camera.open()
        except Exception as e:
            self.sink.set_status("Camera access failed")
            self.sink.set_overlay(str(e))
            L.error("camera open failed: %s", e)
            if isinstance(e, DeviceAcquisitionError):
                raise
            raise DeviceAcquisitionError(str(e)) from e
        self._camera_open = True

        width, height = self.camera.frame_size
        self._box = ScanBox.centered(width, height, self.box_size)
        self._active = [s for s in self.strategies if _probe(s)]
        self._session = ScanSession(self.lookup, self.timeout_ms, clock=self._clock)
        self._guard.reset()
        self.sink.clear_results()

        enhanced = any(s.method is DecodeMethod.SEGMENTED for s in self._active)
        self.sink.set_status(
            "Ready - Enhanced detection" if enhanced else "Ready - Basic detection only"
        )
        self.sink.set_overlay("Scanning for QR codes...")
        L.info(
            "scan session started: box=%s strategies=%s timeout=%dms",
            self._box,
            [s.method.value for s in self._active],
            self.timeout_ms,
        )
        self.frame_loop.arm(self._on_tick)

    def stop_session(self):
        """Stop scheduling frames and release the camera. Idempotent."""
        self.frame_loop.cancel()
        if self._camera_open:
            self._camera_open = False
            self.camera.close()
            L.info("scan session stopped")

    def restart_session(self):
        L.info("restarting scan session")
        self.stop_session()
        self._session = None
        try:
            self.start_session()
        except DeviceAcquisitionError:
            self.sink.set_status("Camera restart failed")
            raise

    def add_finished_callback(self, callback: Callable[[ScanProgress], Any]):
        self._on_finished.append(callback)

    # ---- read API ----

    @property
    def session(self) -> ScanSession | None:
        return self._session

    @property
    def box(self) -> ScanBox | None:
        return self._box

    @property
    def running(self) -> bool:
        return self._camera_open

    def progress(self) -> ScanProgress | None:
        session = self._session
        return session.progress() if session is not None else None

    @property
    def results(self) -> list[FoundResult]:
        session = self._session
        return session.results.results() if session is not None else []

    # ---- per frame ----

    def _on_tick(self):
        res = self.camera.current_frame()
        if not res.success or res.image is None:
            L.warning("frame capture failed: %s", res.error or "no_image")
            # The timeout still runs while the device delivers nothing.
            session = self._session
            if session is not None and session.terminal_state is None:
                progress = session.progress(latch=True)
                if progress.state.terminal:
                    self._publish(progress)
            return
        if self.preview_enabled:
            self.sink.show_frame(composite_preview(res.image, self._box))
        self.process_frame(res.image)

    def process_frame(self, img: np.ndarray) -> ScanProgress | None:
        """Run one decode pass; returns None when the frame was skipped."""
        session = self._session
        box = self._box
        if session is None or box is None or session.terminal_state is not None:
            return None
        if not self._guard.try_acquire():
            return None
        release = self._guard.releaser()
        try:
            crop = box.crop(img)
            new_results: list[FoundResult] = []
            for channel in Channel:
                if session.results.has(channel):
                    continue
                result = self._decode_channel(session, crop, channel)
                if result is not None:
                    new_results.append(result)

            for result in new_results:
                self.sink.append_result(result)
                self.sink.notify(result.spoken_text)

            progress = session.progress(latch=True)
            self._publish(progress)
            return progress
        finally:
            self.frame_loop.call_later(self.guard_release_s, release)

    def _publish(self, progress: ScanProgress):
        status, overlay = describe_progress(progress)
        self.sink.set_status(status)
        self.sink.set_overlay(overlay)
        if progress.state.terminal:
            self._finish(progress)

    def _decode_channel(
        self, session: ScanSession, crop: np.ndarray, channel: Channel
    ) -> FoundResult | None:
        for strategy in self._active:
            if strategy.method.value in session.strategy_notes:
                continue
            try:
                buf = strategy.isolate(crop, channel)
                payload = attempt_decode(self.decoder, buf)
            except StrategyUnavailable as e:
                self._note_unavailable(session, strategy, e)
                continue
            except Exception:
                L.exception(
                    "%s decode via %s failed", channel.value, strategy.method.value
                )
                continue
            if payload is None:
                continue
            return session.results.record(channel, payload, strategy.method)
        return None

    def _note_unavailable(
        self, session: ScanSession, strategy: IsolationStrategy, err: Exception
    ):
        session.strategy_notes.add(strategy.method.value)
        L.warning("%s unavailable, falling back: %s", strategy.method.value, err)
        notice = MSG_SEGMENTATION_UNAVAILABLE
        if strategy.method is not DecodeMethod.SEGMENTED:
            notice = f"{strategy.method.value} unavailable"
        session.notices.append(notice)
        self.sink.set_status(notice)

    def _finish(self, progress: ScanProgress):
        if progress.state is ScanState.COMPLETE:
            self.sink.notify(MSG_ALL_FOUND)
        else:
            self.sink.notify(MSG_TIMEOUT)
        L.info(
            "scan %s after %.1fs: found %s",
            progress.state.value,
            progress.elapsed_s,
            [c.value for c in progress.found] or "none",
        )
        self.stop_session()
        for callback in list(self._on_finished):
            try:
                callback(progress)
            except Exception:
                L.exception("scan finished callback failed")


def _probe(strategy: IsolationStrategy) -> bool:
    try:
        ok = bool(strategy.available())
    except Exception:
        L.exception("%s availability probe failed", strategy.method.value)
        return False
    if not ok:
        L.warning("%s strategy unavailable for this session", strategy.method.value)
    return ok


__all__ = [
    "ScanCoordinator",
    "ScanSession",
    "ReentrancyGuard",
    "describe_progress",
    "MSG_ALL_FOUND",
    "MSG_TIMEOUT",
    "MSG_SEGMENTATION_UNAVAILABLE",
]
