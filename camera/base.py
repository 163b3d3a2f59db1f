# -- coding: utf-8 --

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Type

from core.contracts import CaptureResult
from core.registry import register_named, resolve_registered

CameraFactory = Dict[str, Type["BaseCamera"]]
_registry: CameraFactory = {}


@dataclass
class CameraConfig:
    device_index: int = 0
    timeout_ms: int = 2000
    width: int = 0
    height: int = 0
    image_dir: str = ""
    order: str = "name_asc"
    end_mode: str = "loop"


def build_camera_config(cfg_block) -> CameraConfig:
    return CameraConfig(
        device_index=int(cfg_block.device_index),
        timeout_ms=int(cfg_block.grab_timeout_ms),
        width=int(cfg_block.width),
        height=int(cfg_block.height),
        image_dir=str(cfg_block.image_dir),
        order=str(cfg_block.order),
        end_mode=str(cfg_block.end_mode),
    )


class BaseCamera(ABC):
    """Capture device: open once per session, pull frames, close once."""

    def __init__(self, cfg: CameraConfig):
        self.cfg = cfg
        self.lock = threading.Lock()

    @abstractmethod
    def open(self) -> None:
        """Acquire the device; raise DeviceAcquisitionError on failure."""

    @abstractmethod
    def current_frame(self) -> CaptureResult:
        """Return the most recent frame as a BGR image."""

    @abstractmethod
    def close(self) -> None:
        """Release the device. Safe to call when already closed."""

    @property
    @abstractmethod
    def frame_size(self) -> tuple[int, int]:
        """(width, height) of captured frames; valid after open()."""

    @property
    @abstractmethod
    def is_open(self) -> bool: ...

    @contextmanager
    def session(self):
        self.open()
        try:
            yield self
        finally:
            self.close()


def register_camera(name: str):
    return register_named(_registry, name)


def create_camera(name: str, cfg: CameraConfig) -> BaseCamera:
    cls = resolve_registered(
        _registry,
        name,
        package=__package__ or "camera",
        unknown_label="camera type",
    )
    return cls(cfg)


def create_camera_from_loaded_config(cfg) -> BaseCamera:
    return create_camera(cfg.camera.type, build_camera_config(cfg.camera))


__all__ = [
    "CameraConfig",
    "CaptureResult",
    "build_camera_config",
    "BaseCamera",
    "register_camera",
    "create_camera",
    "create_camera_from_loaded_config",
]
