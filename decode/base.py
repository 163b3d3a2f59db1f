import logging
import re
from typing import Callable, Dict, Protocol

import cv2
import numpy as np

from core.registry import register_named, resolve_registered

L = logging.getLogger("chroma_scan.decode")

_WHITESPACE = re.compile(r"\s+")


class QrDecoder(Protocol):
    def decode(self, img: np.ndarray, both_polarities: bool = True) -> str | None:
        """Return the raw payload of the first QR symbol found, or None."""
        ...


_registry: Dict[str, Callable[..., QrDecoder]] = {}


def register_decoder(name: str):
    return register_named(_registry, name)


def create_decoder(name: str, params: dict | None = None) -> QrDecoder:
    factory = resolve_registered(
        _registry,
        name,
        package=__package__ or "decode",
        unknown_label="decoder impl",
    )
    return factory(params or {})


def normalize_payload(raw: str | None) -> str | None:
    """Trim and drop all whitespace; an empty payload counts as not found."""
    if raw is None:
        return None
    text = _WHITESPACE.sub("", str(raw).strip())
    return text or None


def attempt_decode(decoder: QrDecoder, img: np.ndarray) -> str | None:
    # Channel isolation can flip apparent contrast, so always try both polarities.
    return normalize_payload(decoder.decode(img, both_polarities=True))


def to_gray(img: np.ndarray) -> np.ndarray:
    if img.ndim == 2:
        return img
    if img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)


def polarity_candidates(gray: np.ndarray, both_polarities: bool) -> list[np.ndarray]:
    if not both_polarities:
        return [gray]
    return [gray, cv2.bitwise_not(gray)]


__all__ = [
    "QrDecoder",
    "register_decoder",
    "create_decoder",
    "normalize_payload",
    "attempt_decode",
    "to_gray",
    "polarity_candidates",
]
