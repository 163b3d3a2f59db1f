# -- coding: utf-8 --
from __future__ import annotations

import logging
import os
from typing import Protocol

import cv2
import numpy as np
from aiohttp import web

from core.contracts import FoundResult, ScanProgress
from output.manager import ScanBoard

L = logging.getLogger("chroma_scan.output.hmi")

DEFAULT_INDEX_PATH = os.path.join(os.path.dirname(__file__), "web", "index.html")


class ScanControl(Protocol):
    def restart_session(self) -> None: ...

    def progress(self) -> ScanProgress | None: ...


def encode_image_jpeg(
    img: np.ndarray, quality: int = 70, max_edge: int = 0
) -> tuple[bytes, str]:
    """
    Encode image to JPEG bytes, optionally downscaled so its long edge <= max_edge.
    Returns (bytes, content_type).
    """
    bgr = img.astype(np.uint8, copy=False)
    if max_edge > 0:
        h, w = bgr.shape[:2]
        scale = max_edge / float(max(h, w))
        if scale < 1.0:
            bgr = cv2.resize(
                bgr,
                (max(1, int(w * scale)), max(1, int(h * scale))),
                interpolation=cv2.INTER_AREA,
            )
    ok, buf = cv2.imencode(".jpg", bgr, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise RuntimeError("opencv_imencode_failed")
    return buf.tobytes(), "image/jpeg"


def serialize_result(rec: FoundResult) -> dict:
    return {
        "channel": rec.channel.value,
        "payload": rec.raw_payload,
        "method": rec.method.value,
        "display_text": rec.display_text,
        "spoken_text": rec.spoken_text,
    }


def _parse_since(raw: str | None) -> int:
    if not raw:
        return 0
    try:
        val = int(raw)
    except ValueError:
        return 0
    return val if val >= 0 else 0


def build_app(
    board: ScanBoard,
    control: ScanControl,
    index_path: str = DEFAULT_INDEX_PATH,
    preview_max_edge: int = 960,
) -> web.Application:
    app = web.Application()

    async def index(_request):
        return web.FileResponse(index_path)

    async def status(request):
        since = _parse_since(request.query.get("since"))
        progress = control.progress()
        payload = {
            "status": board.status,
            "overlay": board.overlay,
            "state": progress.state.value if progress else None,
            "found": [c.value for c in progress.found] if progress else [],
            "missing": [c.value for c in progress.missing] if progress else [],
            "elapsed_s": round(progress.elapsed_s, 1) if progress else 0.0,
            "results": [serialize_result(r) for r in board.results],
            "notifications": [
                {"seq": seq, "text": text}
                for seq, text in board.notifications_since(since)
            ],
            "notify_seq": board.notify_seq,
        }
        return web.json_response(payload)

    async def latest_preview(_request):
        frame = board.latest_frame()
        if frame is None:
            return web.Response(status=404)
        data, ctype = encode_image_jpeg(frame, max_edge=preview_max_edge)
        return web.Response(body=data, content_type=ctype)

    async def restart(_request):
        try:
            control.restart_session()
        except Exception as e:
            L.warning("restart via HMI failed: %s", e)
            return web.json_response({"restarted": False, "error": str(e)}, status=500)
        return web.json_response({"restarted": True})

    app.router.add_get("/", index)
    app.router.add_get("/index.html", index)
    app.router.add_get("/status", status)
    app.router.add_get("/preview/latest", latest_preview)
    app.router.add_post("/restart", restart)
    return app


class HmiOutput:
    """Pull-based web HMI; serves the board on the running event loop."""

    def __init__(
        self,
        host: str,
        port: int,
        board: ScanBoard,
        control: ScanControl,
        index_path: str = DEFAULT_INDEX_PATH,
        preview_max_edge: int = 960,
    ):
        self.host = host
        self.port = port
        self.app = build_app(
            board, control, index_path=index_path, preview_max_edge=preview_max_edge
        )
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

    async def start(self):
        if self._runner is not None:
            return
        self._runner = web.AppRunner(self.app, access_log=None)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self.host, self.port)
        try:
            await self._site.start()
        except Exception:
            await self.stop()
            raise
        L.info("HMI web service running @ http://%s:%d", self.host, self.port)

    async def stop(self):
        runner, self._runner = self._runner, None
        self._site = None
        if runner is not None:
            await runner.cleanup()
            L.info("HMI web service stopped")


__all__ = ["HmiOutput", "build_app", "encode_image_jpeg", "serialize_result"]
