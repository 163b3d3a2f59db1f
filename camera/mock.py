# -- coding: utf-8 --

import logging
import os
import random
import re
import time
from datetime import datetime, timezone

import numpy as np
import cv2

from camera.base import BaseCamera, CameraConfig, CaptureResult, register_camera
from core.errors import DeviceAcquisitionError

L = logging.getLogger("chroma_scan.camera.mock")

_SUPPORTED_EXTS = {".jpg", ".jpeg", ".png", ".bmp"}
_ORDER_CHOICES = {"name_asc", "name_desc", "name_natural", "random"}
_END_CHOICES = {"loop", "stop", "hold"}


def _natural_key(name: str):
    return [
        int(part) if part.isdigit() else part.lower()
        for part in re.split(r"(\d+)", name)
    ]


def _resolve_image_dir(path: str) -> str:
    base = str(path or "").strip()
    if not base:
        raise DeviceAcquisitionError("mock image_dir is required")
    if not os.path.isabs(base):
        base = os.path.abspath(os.path.join(os.getcwd(), base))
    if not os.path.isdir(base):
        raise DeviceAcquisitionError(f"mock image_dir not found: {base}")
    return base


def _list_images(root_dir: str) -> list[str]:
    files = []
    for name in os.listdir(root_dir):
        full = os.path.join(root_dir, name)
        if os.path.isfile(full) and os.path.splitext(name)[1].lower() in _SUPPORTED_EXTS:
            files.append(full)
    return files


def _sort_images(paths: list[str], order: str) -> list[str]:
    if order == "name_asc":
        return sorted(paths, key=lambda p: os.path.basename(p).lower())
    if order == "name_desc":
        return sorted(paths, key=lambda p: os.path.basename(p).lower(), reverse=True)
    if order == "name_natural":
        return sorted(paths, key=lambda p: _natural_key(os.path.basename(p)))
    if order == "random":
        shuffled = list(paths)
        random.shuffle(shuffled)
        return shuffled
    return paths


def _load_image_bgr(path: str) -> np.ndarray:
    arr = cv2.imread(path, cv2.IMREAD_COLOR)
    if arr is None:
        # cv2.imread cannot open non-ASCII paths on some platforms.
        data = np.fromfile(path, dtype=np.uint8)
        if data.size:
            arr = cv2.imdecode(data, cv2.IMREAD_COLOR)
    if arr is None:
        raise RuntimeError("opencv_imread_failed")
    return arr.astype(np.uint8, copy=False)


@register_camera("mock")
class MockCamera(BaseCamera):
    """Replays still images from a directory as a video feed."""

    def __init__(self, cfg: CameraConfig):
        super().__init__(cfg)
        self._paths: list[str] = []
        self._pos = 0
        self._opened = False
        self._size: tuple[int, int] = (0, 0)
        self._order = str(cfg.order or "name_asc").strip().lower()
        self._end_mode = str(cfg.end_mode or "loop").strip().lower()

    def _next_path(self) -> str | None:
        if not self._paths:
            return None
        if self._pos < len(self._paths):
            path = self._paths[self._pos]
            self._pos += 1
            return path
        if self._end_mode == "loop":
            if self._order == "random":
                self._paths = _sort_images(self._paths, self._order)
            self._pos = 1
            return self._paths[0]
        if self._end_mode == "hold":
            return self._paths[-1]
        return None

    def open(self):
        if self._order not in _ORDER_CHOICES:
            raise DeviceAcquisitionError(
                f"mock order must be one of {sorted(_ORDER_CHOICES)}, got {self._order!r}"
            )
        if self._end_mode not in _END_CHOICES:
            raise DeviceAcquisitionError(
                f"mock end_mode must be one of {sorted(_END_CHOICES)}, got {self._end_mode!r}"
            )
        root_dir = _resolve_image_dir(self.cfg.image_dir)
        paths = _sort_images(_list_images(root_dir), self._order)
        if not paths:
            raise DeviceAcquisitionError(f"no images found in {root_dir}")
        try:
            first = _load_image_bgr(paths[0])
        except Exception as e:
            raise DeviceAcquisitionError(f"cannot read {paths[0]}: {e}") from e
        with self.lock:
            self._paths = paths
            self._pos = 0
            self._size = (int(first.shape[1]), int(first.shape[0]))
            self._opened = True
        L.info("mock camera opened: %d images in %s", len(paths), root_dir)

    def current_frame(self) -> CaptureResult:
        if not self._opened:
            return CaptureResult(
                success=False, device_id="mock", error="camera_not_started"
            )
        path = self._next_path()
        if not path:
            return CaptureResult(success=False, device_id="mock", error="no_more_images")
        start = time.perf_counter()
        try:
            arr = _load_image_bgr(path)
        except Exception as e:
            return CaptureResult(
                success=False, device_id="mock", error=f"read_failed: {e}"
            )
        L.debug("mock frame @ %s", os.path.basename(path))
        return CaptureResult(
            success=True,
            device_id="mock",
            image=arr,
            timings={"grab_ms": (time.perf_counter() - start) * 1000},
            captured_at=datetime.now(timezone.utc),
        )

    def close(self):
        with self.lock:
            was_open, self._opened = self._opened, False
            self._paths = []
            self._pos = 0
        if was_open:
            L.info("mock camera closed")

    @property
    def frame_size(self) -> tuple[int, int]:
        return self._size

    @property
    def is_open(self) -> bool:
        return self._opened


__all__ = ["MockCamera"]
