# -- coding: utf-8 --

import logging
import time
from datetime import datetime, timezone

import cv2
import numpy as np

from camera.base import BaseCamera, CameraConfig, CaptureResult, register_camera
from core.errors import DeviceAcquisitionError

L = logging.getLogger("chroma_scan.camera.opencv")


def _to_bgr(arr: np.ndarray) -> np.ndarray:
    if arr.ndim == 2:
        return cv2.cvtColor(arr, cv2.COLOR_GRAY2BGR)
    if arr.ndim == 3 and arr.shape[2] == 4:
        return arr[:, :, :3]
    return arr


@register_camera("opencv")
class OpenCvCamera(BaseCamera):
    def __init__(self, cfg: CameraConfig):
        super().__init__(cfg)
        self._cap: cv2.VideoCapture | None = None
        self._size: tuple[int, int] = (0, 0)

    def open(self):
        with self.lock:
            if self._cap is not None:
                return
            cap = cv2.VideoCapture(int(self.cfg.device_index))
            if not cap.isOpened():
                cap.release()
                raise DeviceAcquisitionError(
                    f"cannot open video device {self.cfg.device_index}"
                )
            if self.cfg.width and self.cfg.height:
                cap.set(cv2.CAP_PROP_FRAME_WIDTH, int(self.cfg.width))
                cap.set(cv2.CAP_PROP_FRAME_HEIGHT, int(self.cfg.height))
            if self.cfg.timeout_ms and hasattr(cv2, "CAP_PROP_READ_TIMEOUT_MSEC"):
                cap.set(cv2.CAP_PROP_READ_TIMEOUT_MSEC, int(self.cfg.timeout_ms))
            width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH) or 0)
            height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0)
            if width <= 0 or height <= 0:
                ok, frame = cap.read()
                if not ok or frame is None:
                    cap.release()
                    raise DeviceAcquisitionError(
                        f"video device {self.cfg.device_index} returned no frames"
                    )
                height, width = frame.shape[:2]
            self._cap = cap
            self._size = (width, height)
        L.info(
            "video device %s opened (%dx%d)", self.cfg.device_index, width, height
        )

    def current_frame(self) -> CaptureResult:
        cap = self._cap
        if cap is None:
            return CaptureResult(
                success=False, device_id="opencv", error="camera_not_started"
            )
        start = time.perf_counter()
        ok, frame = cap.read()
        grab_ms = (time.perf_counter() - start) * 1000
        if not ok or frame is None:
            return CaptureResult(success=False, device_id="opencv", error="read_failed")
        return CaptureResult(
            success=True,
            device_id="opencv",
            image=_to_bgr(frame).astype(np.uint8, copy=False),
            timings={"grab_ms": grab_ms},
            captured_at=datetime.now(timezone.utc),
        )

    def close(self):
        with self.lock:
            cap, self._cap = self._cap, None
        if cap is not None:
            cap.release()
            L.info("video device %s released", self.cfg.device_index)

    @property
    def frame_size(self) -> tuple[int, int]:
        return self._size

    @property
    def is_open(self) -> bool:
        return self._cap is not None


__all__ = ["OpenCvCamera"]
