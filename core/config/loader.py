"""YAML loader and section builders for scanner configuration."""

from __future__ import annotations

import glob
import importlib
import os
from typing import Any

import yaml

from .schema import (
    CameraConfigBlock,
    ConfigError,
    DecodeConfigBlock,
    IsolateConfigBlock,
    LoadedConfig,
    LookupConfigBlock,
    OutputConfigBlock,
    OutputHmiConfigBlock,
    RuntimeConfig,
    ScanConfigBlock,
)

_TOP_LEVEL_KEYS = {
    "imports",
    "runtime",
    "camera",
    "scan",
    "isolate",
    "decode",
    "lookup",
    "output",
}


def load_config(config_dir: str = "config") -> LoadedConfig:
    main_path = _find_main_config(config_dir)
    main_data = _read_yaml(main_path)
    _validate_allowed_keys(main_data, _TOP_LEVEL_KEYS, "<root>", main_path)
    _import_modules(main_data.get("imports"), main_path)

    runtime = _build_dataclass(
        RuntimeConfig, main_data.get("runtime"), main_path, section="runtime"
    )
    camera = _build_camera_config(main_data.get("camera"), main_path)
    scan = _build_dataclass(
        ScanConfigBlock, main_data.get("scan"), main_path, section="scan"
    )
    isolate = _build_dataclass(
        IsolateConfigBlock, main_data.get("isolate"), main_path, section="isolate"
    )
    decode = _build_dataclass(
        DecodeConfigBlock, main_data.get("decode"), main_path, section="decode"
    )
    lookup = _build_dataclass(
        LookupConfigBlock, main_data.get("lookup"), main_path, section="lookup"
    )
    output = _build_output_config(main_data.get("output"), main_path)

    if not lookup.file:
        raise ConfigError(f"lookup.file is required in {main_path}")
    lookup_path = str(lookup.file)
    if not os.path.isabs(lookup_path):
        lookup_path = os.path.join(config_dir, lookup_path)
    if not os.path.exists(lookup_path):
        raise ConfigError(f"Lookup file not found: {lookup_path}")

    return LoadedConfig(
        runtime=runtime,
        camera=camera,
        scan=scan,
        isolate=isolate,
        decode=decode,
        lookup=lookup,
        output=output,
        paths={
            "main": main_path,
            "lookup": lookup_path,
        },
    )


def _find_main_config(config_dir: str) -> str:
    patterns = [
        os.path.join(config_dir, "main_*.yaml"),
        os.path.join(config_dir, "main_*.yml"),
    ]
    candidates: list[str] = []
    for pattern in patterns:
        candidates.extend(glob.glob(pattern))
    if len(candidates) == 0:
        raise ConfigError(f"No main_*.yaml found under {config_dir}")
    if len(candidates) > 1:
        raise ConfigError(
            f"Expected exactly one main_*.yaml, found: {', '.join(sorted(candidates))}"
        )
    return candidates[0]


def _read_yaml(path: str) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"YAML root must be a mapping: {path}")
    return data


def _build_dataclass(cls, data: dict[str, Any] | None, main_path: str, section: str):
    obj = cls()
    if data is None:
        return obj
    if not isinstance(data, dict):
        raise ConfigError(f"'{section}' must be a mapping in {main_path}")
    fields = cls.__dataclass_fields__
    for k, v in data.items():
        if k in fields:
            setattr(obj, k, v)
        else:
            raise ConfigError(f"Unknown field {section}.{k} in {main_path}")
    return obj


def _validate_allowed_keys(
    data: dict[str, Any], allowed_keys: set[str], section: str, main_path: str
) -> None:
    for key in data.keys():
        if key not in allowed_keys:
            prefix = "" if section == "<root>" else f"{section}."
            raise ConfigError(f"Unknown field {prefix}{key} in {main_path}")


def _build_camera_config(data: dict[str, Any] | None, main_path: str) -> CameraConfigBlock:
    """Merge `camera.common` then `camera.<type>` over the defaults."""
    if data is None:
        return CameraConfigBlock()
    if not isinstance(data, dict):
        raise ConfigError(f"'camera' must be a mapping in {main_path}")

    cfg = CameraConfigBlock()
    if "type" in data:
        cfg.type = str(data.get("type") or cfg.type).strip().lower()
    selected_type = cfg.type
    camera_fields = CameraConfigBlock.__dataclass_fields__

    def _apply_camera_fields(block: dict[str, Any], section: str):
        for k, v in block.items():
            if k in camera_fields and k != "type":
                setattr(cfg, k, v)
            else:
                raise ConfigError(f"Unknown field {section}.{k} in {main_path}")

    for key, value in data.items():
        if key in {"type", "common"} or isinstance(value, dict):
            continue
        raise ConfigError(
            f"camera.{key} must be nested under camera.common or camera.{selected_type} in {main_path}"
        )

    common_data = data.get("common")
    if common_data is not None:
        if not isinstance(common_data, dict):
            raise ConfigError(f"'camera.common' must be a mapping in {main_path}")
        _apply_camera_fields(common_data, "camera.common")

    selected_block = data.get(selected_type)
    if selected_block is not None:
        if not isinstance(selected_block, dict):
            raise ConfigError(
                f"'camera.{selected_type}' must be a mapping in {main_path}"
            )
        _apply_camera_fields(selected_block, f"camera.{selected_type}")
    return cfg


def _build_output_config(data: dict[str, Any] | None, main_path: str) -> OutputConfigBlock:
    if data is None:
        return OutputConfigBlock()
    if not isinstance(data, dict):
        raise ConfigError(f"'output' must be a mapping in {main_path}")
    cfg = OutputConfigBlock()
    _validate_allowed_keys(data, {"hmi", "preview_enabled"}, "output", main_path)
    if "hmi" in data:
        cfg.hmi = _build_dataclass(
            OutputHmiConfigBlock, data.get("hmi"), main_path, section="output.hmi"
        )
    if "preview_enabled" in data:
        cfg.preview_enabled = bool(data.get("preview_enabled"))
    return cfg


def _import_modules(imports: Any, main_path: str):
    """Import extra modules so their @register_* decorators run."""
    if imports is None:
        return
    if not isinstance(imports, list):
        raise ConfigError(f"'imports' must be a list in {main_path}")
    for path in imports:
        if not isinstance(path, str) or not path:
            raise ConfigError(f"Invalid import path {path!r} in {main_path}")
        try:
            importlib.import_module(path)
        except ImportError as e:
            raise ConfigError(f"Cannot import {path!r} listed in {main_path}: {e}") from e


__all__ = ["load_config"]
