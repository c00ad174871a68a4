import unittest

import cv2
import numpy as np
from aiohttp import web
from aiohttp.test_utils import AioHTTPTestCase, TestServer

from archive import ArchiveClient, normalize_identifier, parse_files_xml
from core.contracts import RecordInfo
from core.errors import FetchError
from core.lifecycle import ReadinessGate
from label import LabelPipeline
from output.web import build_app

BASE = "https://archive.org"

FILES_XML = """<?xml version="1.0" encoding="UTF-8"?>
<files>
  <file name="foo123_itemimage.jpg" source="original"><format>JPEG</format></file>
  <file name="track.flac" source="original"><format>Flac</format></file>
  <file name="track.mp3" source="derivative"><format>VBR MP3</format></file>
  <file name="other.mp3" source="derivative"><format>VBR MP3</format></file>
</files>
"""


def _photo_png() -> bytes:
    # Drawn larger then shrunk so the label edge is soft, as in a real photo.
    big = np.full((800, 800, 3), 20, dtype=np.uint8)
    cv2.circle(big, (400, 400), 200, (60, 60, 230), thickness=-1)
    img = cv2.resize(big, (640, 640), interpolation=cv2.INTER_AREA)
    ok, buf = cv2.imencode(".png", img)
    assert ok
    return buf.tobytes()


class TestFilesListing(unittest.TestCase):
    def test_first_derivative_mp3_wins(self):
        info = parse_files_xml(FILES_XML, "foo123", BASE)
        self.assertEqual(
            info.to_json(),
            {
                "identifier": "foo123",
                "title": "track",
                "imageUrl": "https://archive.org/download/foo123/foo123_itemimage.jpg",
                "mp3Url": "https://archive.org/download/foo123/track.mp3",
            },
        )

    def test_name_is_uri_encoded(self):
        xml = '<files><file name="Side A - Blues (1928).mp3" source="derivative"/></files>'
        info = parse_files_xml(xml, "bar", BASE)
        self.assertEqual(info.title, "Side A - Blues (1928)")
        self.assertEqual(
            info.mp3_url,
            "https://archive.org/download/bar/Side%20A%20-%20Blues%20(1928).mp3",
        )

    def test_non_derivative_mp3_not_accepted(self):
        xml = '<files><file name="a.mp3" source="original"/><file name="a.ogg" source="derivative"/></files>'
        with self.assertRaises(FetchError) as cm:
            parse_files_xml(xml, "x", BASE)
        self.assertEqual(str(cm.exception), "MP3 file not found")

    def test_malformed_listing(self):
        with self.assertRaises(FetchError):
            parse_files_xml("<files><file", "x", BASE)


class TestIdentifier(unittest.TestCase):
    def test_forms(self):
        self.assertEqual(normalize_identifier("  foo123 "), "foo123")
        self.assertEqual(normalize_identifier("//foo123"), "foo123")
        self.assertEqual(
            normalize_identifier("https://archive.org/details/78_blues_foo/track"),
            "78_blues_foo",
        )

    def test_empty_rejected(self):
        for raw in ("", "   ", "/", None):
            with self.subTest(raw=raw):
                with self.assertRaises(ValueError):
                    normalize_identifier(raw)


class TestArchiveClient(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        async def download(request: web.Request):
            name = request.match_info["name"]
            if name == "foo123_files.xml":
                return web.Response(text=FILES_XML, content_type="text/xml")
            if name == "foo123_itemimage.jpg":
                return web.Response(body=b"\xff\xd8jpeg")
            return web.Response(status=404)

        app = web.Application()
        app.router.add_get("/download/{ident}/{name}", download)
        self.server = TestServer(app)
        await self.server.start_server()
        self.base = str(self.server.make_url("/")).rstrip("/")
        self.client = ArchiveClient(self.base, timeout_s=5)

    async def asyncTearDown(self):
        await self.client.close()
        await self.server.close()

    async def test_resolve_and_fetch(self):
        info = await self.client.resolve("foo123")
        self.assertEqual(info.title, "track")
        self.assertEqual(info.mp3_url, f"{self.base}/download/foo123/track.mp3")
        self.assertEqual(await self.client.fetch_image(info.image_url), b"\xff\xd8jpeg")

    async def test_missing_item(self):
        with self.assertRaises(FetchError):
            await self.client.resolve("nope")


class TestWebApp(AioHTTPTestCase):
    async def get_application(self):
        photo = _photo_png()

        async def resolver(identifier: str) -> RecordInfo:
            if identifier == "missing":
                raise FetchError("MP3 file not found")
            return RecordInfo(
                identifier=identifier,
                title="track",
                image_url=f"http://images.test/{identifier}.jpg",
                mp3_url=f"{BASE}/download/{identifier}/track.mp3",
            )

        async def image_fetcher(url: str) -> bytes:
            if "badimage" in url:
                return b"not an image"
            return photo

        return build_app(
            resolver=resolver,
            image_fetcher=image_fetcher,
            pipeline=LabelPipeline(),
            gate=ReadinessGate(lambda: "ok", name="test"),
        )

    async def test_record(self):
        resp = await self.client.get("/api/record/foo123")
        self.assertEqual(resp.status, 200)
        body = await resp.json()
        self.assertEqual(body["identifier"], "foo123")
        self.assertEqual(body["mp3Url"], f"{BASE}/download/foo123/track.mp3")
        self.assertIn("imageUrl", body)

    async def test_record_details_url(self):
        resp = await self.client.get("/api/record/archive.org/details/foo123")
        self.assertEqual(resp.status, 200)
        self.assertEqual((await resp.json())["identifier"], "foo123")

    async def test_record_error(self):
        resp = await self.client.get("/api/record/missing")
        self.assertEqual(resp.status, 500)
        self.assertEqual(await resp.json(), {"error": "MP3 file not found"})

    async def test_analysis(self):
        resp = await self.client.get("/api/analysis/foo123")
        self.assertEqual(resp.status, 200)
        body = await resp.json()
        self.assertTrue(body["detected"])
        self.assertTrue(body["labelImage"].startswith("data:image/png;base64,"))
        self.assertTrue(body["debugImage"].startswith("data:image/jpeg;base64,"))
        self.assertEqual(len(body["platterFrames"]), 30)
        self.assertEqual(body["platterFrames"][0], "/platter/platter000.png")
        self.assertEqual(len(body["background"]), 3)
        self.assertLess(abs(body["circle"]["radius"] - 160), 8)

    async def test_analysis_bad_image(self):
        resp = await self.client.get("/api/analysis/badimage")
        self.assertEqual(resp.status, 500)
        body = await resp.json()
        self.assertIn("Failed to load image", body["error"])

    async def test_unknown_route(self):
        resp = await self.client.get("/nowhere")
        self.assertEqual(resp.status, 404)


if __name__ == "__main__":
    unittest.main()
