"""Per-channel result registry: first successful decode per channel wins."""

from __future__ import annotations

import logging
import threading

from core.contracts import Channel, DecodeMethod, FoundResult
from core.lookup import LookupTable

L = logging.getLogger("chroma_scan.results")


def build_result(
    lookup: LookupTable, channel: Channel, payload: str, method: DecodeMethod
) -> FoundResult:
    entry = lookup.lookup(channel, payload)
    if entry is not None:
        display, spoken = entry.display_text, entry.spoken_text
    else:
        display = f"Unknown {channel.value.upper()} QR: {payload}"
        spoken = f"Unknown {channel.value} QR code detected"
    return FoundResult(
        channel=channel,
        raw_payload=payload,
        method=method,
        display_text=display,
        spoken_text=spoken,
    )


class ResultRegistry:
    def __init__(self, lookup: LookupTable):
        self._lookup = lookup
        self._results: dict[Channel, FoundResult] = {}
        self._lock = threading.Lock()

    def record(
        self, channel: Channel, payload: str, method: DecodeMethod
    ) -> FoundResult | None:
        """Store and return a new result, or None if the channel is already found."""
        with self._lock:
            if channel in self._results:
                L.debug("ignoring repeat %s decode: %s", channel.value, payload)
                return None
            result = build_result(self._lookup, channel, payload, method)
            self._results[channel] = result
        L.info(
            "decoded %s via %s: %s", channel.value, method.value, payload
        )
        return result

    def has(self, channel: Channel) -> bool:
        with self._lock:
            return channel in self._results

    def get(self, channel: Channel) -> FoundResult | None:
        with self._lock:
            return self._results.get(channel)

    def results(self) -> list[FoundResult]:
        """Results in discovery order."""
        with self._lock:
            return list(self._results.values())

    def found(self) -> list[Channel]:
        with self._lock:
            return list(self._results)

    def missing(self) -> list[Channel]:
        with self._lock:
            return [ch for ch in Channel if ch not in self._results]

    @property
    def complete(self) -> bool:
        return len(self) == len(Channel)

    def clear(self):
        with self._lock:
            self._results.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)


__all__ = ["ResultRegistry", "build_result"]
