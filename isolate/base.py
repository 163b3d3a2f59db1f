import logging
from typing import Callable, Dict, Protocol

import numpy as np

from core.contracts import Channel, DecodeMethod
from core.registry import register_named, resolve_registered

L = logging.getLogger("chroma_scan.isolate")

# OpenCV frames are BGR.
CHANNEL_INDEX = {Channel.BLUE: 0, Channel.GREEN: 1, Channel.RED: 2}


class IsolationStrategy(Protocol):
    method: DecodeMethod

    def available(self) -> bool:
        """Capability probe; checked once per session, not per frame."""
        ...

    def isolate(self, img: np.ndarray, channel: Channel) -> np.ndarray:
        """Return a buffer with the same height/width as img emphasizing channel."""
        ...


_registry: Dict[str, Callable[..., IsolationStrategy]] = {}


def register_strategy(name: str):
    return register_named(_registry, name)


def create_strategy(name: str, params: dict | None = None) -> IsolationStrategy:
    factory = resolve_registered(
        _registry,
        name,
        package=__package__ or "isolate",
        unknown_label="isolation strategy",
    )
    return factory(params or {})


def create_strategies_from_loaded_config(cfg) -> list[IsolationStrategy]:
    """Segmentation first, channel dominance as the always-available fallback."""
    params = {
        "enabled": bool(cfg.isolate.segmentation_enabled),
        "margin": int(cfg.isolate.dominance_margin),
        "min_brightness": int(cfg.isolate.min_brightness),
        "morph_kernel": int(cfg.isolate.morph_kernel),
    }
    return [
        create_strategy("segmentation", params),
        create_strategy("dominance", params),
    ]


def require_bgr(img: np.ndarray) -> np.ndarray:
    if img.ndim != 3 or img.shape[2] < 3:
        raise ValueError(f"expected a BGR image, got shape {img.shape}")
    return img[:, :, :3]


__all__ = [
    "CHANNEL_INDEX",
    "IsolationStrategy",
    "register_strategy",
    "create_strategy",
    "create_strategies_from_loaded_config",
    "require_bgr",
]
