"""Typed config schema blocks shared by loader/validator/runtime."""

from dataclasses import dataclass, field
from typing import Dict


class ConfigError(Exception):
    pass


@dataclass
class RuntimeConfig:
    log_level: str = "info"
    max_runtime_s: float = 0.0
    opencv_num_threads: int = 0


@dataclass
class CameraConfigBlock:
    type: str = "opencv"
    device_index: int = 0
    grab_timeout_ms: int = 2000
    width: int = 0
    height: int = 0
    image_dir: str = ""
    order: str = "name_asc"
    end_mode: str = "loop"


@dataclass
class ScanConfigBlock:
    box_size: int = 250
    timeout_ms: int = 30000
    guard_release_ms: int = 100
    frame_interval_ms: int = 33


@dataclass
class IsolateConfigBlock:
    segmentation_enabled: bool = True
    dominance_margin: int = 0
    min_brightness: int = 50
    morph_kernel: int = 3


@dataclass
class DecodeConfigBlock:
    impl: str = "opencv"


@dataclass
class LookupConfigBlock:
    file: str = "qr_data.yaml"


@dataclass
class OutputHmiConfigBlock:
    enabled: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    preview_max_edge: int = 960


@dataclass
class OutputConfigBlock:
    hmi: OutputHmiConfigBlock = field(default_factory=OutputHmiConfigBlock)
    preview_enabled: bool = True


@dataclass
class LoadedConfig:
    runtime: RuntimeConfig
    camera: CameraConfigBlock
    scan: ScanConfigBlock
    isolate: IsolateConfigBlock
    decode: DecodeConfigBlock
    lookup: LookupConfigBlock
    output: OutputConfigBlock
    paths: Dict[str, str] = field(default_factory=dict)


__all__ = [
    "ConfigError",
    "RuntimeConfig",
    "CameraConfigBlock",
    "ScanConfigBlock",
    "IsolateConfigBlock",
    "DecodeConfigBlock",
    "LookupConfigBlock",
    "OutputHmiConfigBlock",
    "OutputConfigBlock",
    "LoadedConfig",
]
