# -- coding: utf-8 --

import logging

from core.contracts import FoundResult

L = logging.getLogger("chroma_scan.output.log")


class LogOutput:
    """Writes presentation events to the log; status lines repeat every frame, so debug only."""

    def __init__(self):
        self._last_status = ""

    def set_status(self, text: str):
        if text != self._last_status:
            L.debug("status: %s", text)
            self._last_status = text

    def set_overlay(self, text: str):
        L.debug("overlay: %s", text)

    def append_result(self, result: FoundResult):
        L.info(
            "%s: %s (%s)",
            result.channel.value.upper(),
            result.display_text,
            result.method.value,
        )

    def clear_results(self):
        self._last_status = ""

    def notify(self, spoken_text: str):
        L.info("notify: %s", spoken_text)


__all__ = ["LogOutput"]
