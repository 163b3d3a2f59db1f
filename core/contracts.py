"""Data contracts shared by camera, isolation, decode, results, and output."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Channel(str, Enum):
    RED = "red"
    GREEN = "green"
    BLUE = "blue"

    @classmethod
    def parse(cls, value: Any) -> "Channel":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            raise ValueError(
                f"Unknown channel {value!r}; expected one of "
                f"{', '.join(c.value for c in cls)}"
            ) from None


class DecodeMethod(str, Enum):
    SEGMENTED = "segmented"
    CHANNEL_DOMINANCE = "channel_dominance"


class ScanState(str, Enum):
    SEARCHING = "searching"
    PARTIAL = "partial"
    COMPLETE = "complete"
    EXPIRED = "expired"

    @property
    def terminal(self) -> bool:
        return self in (ScanState.COMPLETE, ScanState.EXPIRED)


@dataclass(frozen=True, slots=True)
class ScanBox:
    x: int
    y: int
    size: int

    @classmethod
    def centered(cls, width: int, height: int, size: int) -> "ScanBox":
        """Center a square box in a width x height frame, shrinking it to fit."""
        side = max(1, min(int(size), int(width), int(height)))
        return cls(x=(int(width) - side) // 2, y=(int(height) - side) // 2, size=side)

    def crop(self, image):
        return image[self.y : self.y + self.size, self.x : self.x + self.size]


@dataclass(frozen=True, slots=True)
class FoundResult:
    channel: Channel
    raw_payload: str
    method: DecodeMethod
    display_text: str
    spoken_text: str


@dataclass(slots=True)
class ScanProgress:
    state: ScanState
    found: list[Channel] = field(default_factory=list)
    missing: list[Channel] = field(default_factory=list)
    elapsed_s: float = 0.0
    notices: list[str] = field(default_factory=list)


@dataclass(slots=True)
class CaptureResult:
    success: bool = False
    device_id: str = ""
    error: str | None = None
    image: Any | None = None  # runtime np.ndarray (BGR)
    captured_at: datetime | None = None
    timings: dict[str, float] | None = None


__all__ = [
    "Channel",
    "DecodeMethod",
    "ScanState",
    "ScanBox",
    "FoundResult",
    "ScanProgress",
    "CaptureResult",
]
