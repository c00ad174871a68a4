# -- coding: utf-8 --
from __future__ import annotations

import base64
import logging
import os
from typing import Awaitable, Callable

from aiohttp import web

from animation import platter_frame_refs
from archive import normalize_identifier
from core.contracts import LabelAnalysis, RecordInfo
from core.errors import FetchError, InvalidImageError, Jukebox78Error
from core.lifecycle import ReadinessGate, ServiceLoop
from detect import encode_image_jpeg, encode_image_png
from label import LabelPipeline, decode_image

L = logging.getLogger("jukebox78.output.web")

RecordResolver = Callable[[str], Awaitable[RecordInfo]]
ImageFetcher = Callable[[str], Awaitable[bytes]]


def _data_url(payload: tuple[bytes, str]) -> str:
    data, ctype = payload
    return f"data:{ctype};base64,{base64.b64encode(data).decode('ascii')}"


def _error(message: str, status: int = 500) -> web.Response:
    return web.json_response({"error": message}, status=status)


def serialize_analysis(
    record: RecordInfo, analysis: LabelAnalysis, platter_frames: tuple[str, ...]
) -> dict:
    return {
        "identifier": record.identifier,
        "title": record.title,
        "mp3Url": record.mp3_url,
        "detected": analysis.detected,
        "circle": analysis.source_circle(),
        "scaleFactor": round(float(analysis.scale_factor), 4),
        "labelImage": _data_url(encode_image_png(analysis.label.image)),
        "debugImage": (
            _data_url(encode_image_jpeg(analysis.debug_image))
            if analysis.debug_image is not None
            else None
        ),
        "background": list(analysis.background) if analysis.background else None,
        "foreground": list(analysis.foreground) if analysis.foreground else None,
        "platterFrames": list(platter_frames),
    }


def build_app(
    *,
    resolver: RecordResolver,
    image_fetcher: ImageFetcher,
    pipeline: LabelPipeline,
    gate: ReadinessGate,
    platter_dir: str = "",
    platter_route: str = "/platter/",
    platter_length: int = 30,
    index_path: str = "",
) -> web.Application:
    app = web.Application()
    platter_frames = platter_frame_refs(platter_route, platter_length)

    def _identifier(request: web.Request) -> str:
        return normalize_identifier(request.match_info.get("identifier", ""))

    async def record(request: web.Request):
        try:
            identifier = _identifier(request)
        except ValueError as e:
            return _error(str(e), status=400)
        try:
            info = await resolver(identifier)
        except Jukebox78Error as e:
            L.error("Error in /api/record endpoint: %s", e)
            return _error(str(e))
        except Exception as e:
            L.exception("Error in /api/record endpoint")
            return _error(str(e))
        return web.json_response(info.to_json())

    async def analysis(request: web.Request):
        try:
            identifier = _identifier(request)
        except ValueError as e:
            return _error(str(e), status=400)
        try:
            info = await resolver(identifier)
            try:
                source = decode_image(await image_fetcher(info.image_url))
            except (FetchError, InvalidImageError) as e:
                raise FetchError(f"Failed to load image from {info.image_url}") from e
            result = await pipeline.analyze_async(gate, source, info.title)
        except Jukebox78Error as e:
            L.error("Error in /api/analysis endpoint: %s", e)
            return _error(str(e))
        except Exception as e:
            L.exception("Error in /api/analysis endpoint")
            return _error(f"Failed to analyze the record image: {e}")
        return web.json_response(serialize_analysis(info, result, platter_frames))

    async def index(_request: web.Request):
        if index_path and os.path.isfile(index_path):
            return web.FileResponse(index_path)
        return web.Response(status=404, text="index not configured")

    app.router.add_get("/api/record/{identifier:.+}", record)
    app.router.add_get("/api/analysis/{identifier:.+}", analysis)
    if platter_dir and os.path.isdir(platter_dir):
        app.router.add_static(platter_route.rstrip("/") or "/platter", platter_dir)
    else:
        L.warning("platter directory not found, frames not served: %s", platter_dir)
    app.router.add_get("/", index)
    app.router.add_get("/{tail:.*}", index)
    return app


class WebService:
    def __init__(
        self,
        host: str,
        port: int,
        app: web.Application,
        *,
        service_loop: ServiceLoop,
        on_cleanup: Callable[[], Awaitable[None]] | None = None,
    ):
        self.host = host
        self.port = port
        self.app = app
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None
        self._started = False
        self._service_loop = service_loop
        self._on_cleanup = on_cleanup

    def start(self):
        if self._started:
            return
        try:
            self._service_loop.submit(self._serve(), timeout=2.0)
        except Exception:
            self.stop()
            raise
        self._started = True

    async def _serve(self):
        self._runner = web.AppRunner(self.app, access_log=None)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()
        L.info("Server is running on http://%s:%d", self.host, self.port)

    def stop(self):
        async def _cleanup():
            if self._runner:
                await self._runner.cleanup()
            if self._on_cleanup is not None:
                await self._on_cleanup()
            self._runner = None
            self._site = None

        self._service_loop.submit(_cleanup(), timeout=2.0)
        self._started = False
        L.info("web service stopped")

    def raise_if_failed(self):
        if not self._started:
            return
        if self._runner is None or self._site is None:
            raise RuntimeError("web service stopped unexpectedly")


__all__ = ["WebService", "build_app", "serialize_analysis"]
