"""Config value validation."""

from __future__ import annotations

from typing import Any

from .schema import ConfigError, LoadedConfig

_LOG_LEVELS = {"debug", "info", "warning", "warn", "error", "critical"}


def validate_config(cfg: LoadedConfig) -> None:
    # runtime
    if str(cfg.runtime.log_level or "").strip().lower() not in _LOG_LEVELS:
        raise ConfigError(
            f"runtime.log_level must be one of {', '.join(sorted(_LOG_LEVELS))}"
        )
    _require_float("runtime.max_runtime_s", cfg.runtime.max_runtime_s, min_v=0.0)
    _require_int("runtime.opencv_num_threads", cfg.runtime.opencv_num_threads, min_v=0)

    # camera
    _require_str("camera.type", cfg.camera.type)
    _require_int("camera.device_index", cfg.camera.device_index, min_v=0)
    _require_int("camera.grab_timeout_ms", cfg.camera.grab_timeout_ms, min_v=1)
    _require_int("camera.width", cfg.camera.width, min_v=0)
    _require_int("camera.height", cfg.camera.height, min_v=0)

    # scan
    _require_int("scan.box_size", cfg.scan.box_size, min_v=1)
    _require_int("scan.timeout_ms", cfg.scan.timeout_ms, min_v=1)
    _require_int("scan.guard_release_ms", cfg.scan.guard_release_ms, min_v=0)
    _require_int("scan.frame_interval_ms", cfg.scan.frame_interval_ms, min_v=1)

    # isolate
    _require_int("isolate.dominance_margin", cfg.isolate.dominance_margin, min_v=0, max_v=255)
    _require_int("isolate.min_brightness", cfg.isolate.min_brightness, min_v=0, max_v=255)
    _require_int("isolate.morph_kernel", cfg.isolate.morph_kernel, min_v=1, max_v=31)

    # decode / lookup
    _require_str("decode.impl", cfg.decode.impl)
    _require_str("lookup.file", cfg.lookup.file)

    # output
    _require_port("output.hmi.port", cfg.output.hmi.port)
    _require_int("output.hmi.preview_max_edge", cfg.output.hmi.preview_max_edge, min_v=0)


def _require_int(
    name: str, value: Any, *, min_v: int | None = None, max_v: int | None = None
) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer")
    try:
        iv = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be an integer") from e
    if min_v is not None and iv < min_v:
        op = ">=" if min_v != 1 else ">"
        threshold = min_v if min_v != 1 else 0
        raise ConfigError(f"{name} must be {op} {threshold}")
    if max_v is not None and iv > max_v:
        raise ConfigError(f"{name} must be <= {max_v}")
    return iv


def _require_float(
    name: str, value: Any, *, min_v: float | None = None, max_v: float | None = None
) -> float:
    try:
        fv = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be a number") from e
    if min_v is not None and fv < min_v:
        raise ConfigError(f"{name} must be >= {min_v:g}")
    if max_v is not None and fv > max_v:
        raise ConfigError(f"{name} must be <= {max_v:g}")
    return fv


def _require_port(name: str, value: Any) -> int:
    return _require_int(name, value, min_v=1, max_v=65535)


def _require_str(name: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{name} must be a non-empty string")
    return value


__all__ = ["validate_config"]
