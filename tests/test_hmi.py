import unittest

import cv2
import numpy as np
from aiohttp.test_utils import TestClient, TestServer

from core.contracts import Channel, DecodeMethod, FoundResult, ScanProgress, ScanState
from output.hmi import build_app, encode_image_jpeg
from output.manager import ScanBoard


class StubControl:
    def __init__(self):
        self.restarts = 0
        self.fail = False
        self.snapshot: ScanProgress | None = None

    def restart_session(self):
        if self.fail:
            raise RuntimeError("camera busy")
        self.restarts += 1

    def progress(self):
        return self.snapshot


def _result(channel: Channel) -> FoundResult:
    return FoundResult(
        channel=channel,
        raw_payload="ABC123",
        method=DecodeMethod.SEGMENTED,
        display_text="Door A",
        spoken_text="Door A unlocked",
    )


class TestHmiRoutes(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.board = ScanBoard()
        self.control = StubControl()
        app = build_app(self.board, self.control, preview_max_edge=64)
        self.client = TestClient(TestServer(app))
        await self.client.start_server()

    async def asyncTearDown(self):
        await self.client.close()

    async def test_status_reports_board_and_progress(self):
        self.board.set_status("Found 1/3 colors")
        self.board.set_overlay("Found: red - Keep scanning...")
        self.board.append_result(_result(Channel.RED))
        self.control.snapshot = ScanProgress(
            state=ScanState.PARTIAL,
            found=[Channel.RED],
            missing=[Channel.GREEN, Channel.BLUE],
            elapsed_s=2.345,
        )

        resp = await self.client.get("/status")
        self.assertEqual(resp.status, 200)
        body = await resp.json()
        self.assertEqual(body["status"], "Found 1/3 colors")
        self.assertEqual(body["state"], "partial")
        self.assertEqual(body["found"], ["red"])
        self.assertEqual(body["missing"], ["green", "blue"])
        self.assertEqual(body["elapsed_s"], 2.3)
        self.assertEqual(len(body["results"]), 1)
        self.assertEqual(body["results"][0]["display_text"], "Door A")
        self.assertEqual(body["results"][0]["method"], "segmented")

    async def test_status_without_session(self):
        body = await (await self.client.get("/status")).json()
        self.assertIsNone(body["state"])
        self.assertEqual(body["found"], [])
        self.assertEqual(body["results"], [])

    async def test_notifications_since_sequence(self):
        self.board.notify("one")
        self.board.notify("two")
        self.board.notify("three")

        body = await (await self.client.get("/status", params={"since": "1"})).json()
        self.assertEqual([n["text"] for n in body["notifications"]], ["two", "three"])
        self.assertEqual(body["notify_seq"], 3)

        body = await (await self.client.get("/status", params={"since": "bogus"})).json()
        self.assertEqual(len(body["notifications"]), 3)

    async def test_preview_missing_then_jpeg(self):
        resp = await self.client.get("/preview/latest")
        self.assertEqual(resp.status, 404)

        self.board.show_frame(np.full((120, 200, 3), 128, np.uint8))
        resp = await self.client.get("/preview/latest")
        self.assertEqual(resp.status, 200)
        self.assertEqual(resp.headers["Content-Type"], "image/jpeg")
        data = await resp.read()
        decoded = cv2.imdecode(np.frombuffer(data, np.uint8), cv2.IMREAD_COLOR)
        self.assertEqual(max(decoded.shape[:2]), 64)

    async def test_restart(self):
        resp = await self.client.post("/restart")
        self.assertEqual(resp.status, 200)
        self.assertEqual(await resp.json(), {"restarted": True})
        self.assertEqual(self.control.restarts, 1)

    async def test_restart_failure_reported(self):
        self.control.fail = True
        with self.assertLogs("chroma_scan.output.hmi", level="WARNING"):
            resp = await self.client.post("/restart")
        self.assertEqual(resp.status, 500)
        body = await resp.json()
        self.assertFalse(body["restarted"])
        self.assertIn("camera busy", body["error"])

    async def test_index_page_served(self):
        resp = await self.client.get("/")
        self.assertEqual(resp.status, 200)
        self.assertIn("/status", await resp.text())

    async def test_scanned_payload_is_never_rendered_as_markup(self):
        hostile = "<img/src=x/onerror=fetch('/restart',{method:'POST'})>"
        self.board.append_result(
            FoundResult(
                channel=Channel.RED,
                raw_payload=hostile,
                method=DecodeMethod.CHANNEL_DOMINANCE,
                display_text=f"Unknown RED QR: {hostile}",
                spoken_text="Unknown red QR code detected",
            )
        )
        body = await (await self.client.get("/status")).json()
        self.assertEqual(body["results"][0]["payload"], hostile)

        page = await (await self.client.get("/")).text()
        self.assertNotIn("innerHTML", page)
        self.assertNotIn("insertAdjacentHTML", page)
        self.assertIn("r.display_text", page)
        self.assertIn("textContent", page)


class TestEncodeImageJpeg(unittest.TestCase):
    def test_keeps_size_without_max_edge(self):
        img = np.zeros((30, 40, 3), np.uint8)
        data, ctype = encode_image_jpeg(img)
        self.assertEqual(ctype, "image/jpeg")
        decoded = cv2.imdecode(np.frombuffer(data, np.uint8), cv2.IMREAD_COLOR)
        self.assertEqual(decoded.shape[:2], (30, 40))

    def test_never_upscales(self):
        img = np.zeros((30, 40, 3), np.uint8)
        data, _ = encode_image_jpeg(img, max_edge=400)
        decoded = cv2.imdecode(np.frombuffer(data, np.uint8), cv2.IMREAD_COLOR)
        self.assertEqual(decoded.shape[:2], (30, 40))


if __name__ == "__main__":
    unittest.main()
