# -- coding: utf-8 --

import argparse
import asyncio
import json
import logging
import os
import time

import cv2

from animation import (
    AnimationEngine,
    AnimationSettings,
    FrameCompositor,
    PlatterFrameCache,
    PlaybackEvent,
    platter_frame_refs,
    settle_prefetch,
)
from archive import ArchiveClient
from core.config import ConfigError, LoadedConfig, load_config, validate_config
from core.errors import Jukebox78Error
from core.lifecycle import ServiceLoop
from detect import encode_image_jpeg, encode_image_png
from label import LabelPipeline, create_vision_gate, decode_image
from output.web import WebService, build_app

L = logging.getLogger("jukebox78")


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="78 RPM jukebox: label isolation, API service and spin renderer",
    )
    p.add_argument(
        "--config-dir", default="config", help="Directory containing main_*.yaml"
    )
    p.add_argument("--verbose", action="store_true", help="Debug log")
    p.add_argument(
        "--log-level", default="", help="Override log level (debug/info/warning/error)"
    )
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="Run the HTTP API service")

    a = sub.add_parser("analyze", help="Isolate the label of one record photo")
    src = a.add_mutually_exclusive_group(required=True)
    src.add_argument("--image", help="Local record photo")
    src.add_argument("--identifier", help="archive.org item identifier or details URL")
    a.add_argument("--title", default="", help="Title used for the placeholder label")
    a.add_argument("--out", default="out", help="Output directory for label.png/debug.jpg")

    r = sub.add_parser("render", help="Render a spinning-record video")
    r.add_argument("--image", required=True, help="Local record photo")
    r.add_argument("--title", default="", help="Title used for the placeholder label")
    r.add_argument("--seconds", type=float, default=5.0, help="Playback duration")
    r.add_argument("--out", default="spin.mp4", help="Output video path")
    return p.parse_args(argv)


def setup_logging(verbose: bool, log_level: str = ""):
    if verbose:
        level = logging.DEBUG
    else:
        level_map = {
            "debug": logging.DEBUG,
            "info": logging.INFO,
            "warning": logging.WARNING,
            "warn": logging.WARNING,
            "error": logging.ERROR,
            "critical": logging.CRITICAL,
        }
        level = level_map.get(str(log_level or "").strip().lower(), logging.INFO)
    # Use UTC for all %(asctime)s timestamps in logs.
    logging.Formatter.converter = time.gmtime
    logging.basicConfig(
        level=level, format="%(asctime)sZ [%(levelname)s] %(message)s", force=True
    )
    if not verbose:
        for name in ("aiohttp.access", "aiohttp.server"):
            logging.getLogger(name).setLevel(logging.WARNING)


def _load_config(config_dir: str) -> LoadedConfig:
    if not os.path.isdir(config_dir):
        L.info("Config dir %s not found; using built-in defaults", config_dir)
        return LoadedConfig()
    return load_config(config_dir)


def _read_image(path: str):
    with open(path, "rb") as f:
        return decode_image(f.read())


def run_serve(cfg: LoadedConfig):
    service_loop = ServiceLoop()
    client = ArchiveClient.from_config(cfg.archive)
    pipeline = LabelPipeline.from_config(cfg)
    app = build_app(
        resolver=client.resolve,
        image_fetcher=client.fetch_image,
        pipeline=pipeline,
        gate=create_vision_gate(cfg.runtime.opencv_num_threads),
        platter_dir=cfg.server.platter_dir,
        platter_route=cfg.server.platter_route,
        platter_length=cfg.animation.flipbook_length,
        index_path=cfg.server.index_path,
    )
    service = WebService(
        cfg.server.host,
        int(cfg.server.port),
        app,
        service_loop=service_loop,
        on_cleanup=client.close,
    )
    service.start()
    try:
        while True:
            time.sleep(0.5)
            service.raise_if_failed()
    finally:
        service.stop()
        service_loop.stop()


async def _fetch_record_image(cfg: LoadedConfig, identifier: str):
    client = ArchiveClient.from_config(cfg.archive)
    try:
        info = await client.resolve(identifier)
        return info, await client.fetch_image(info.image_url)
    finally:
        await client.close()


def run_analyze(cfg: LoadedConfig, args) -> dict:
    title = args.title
    if args.identifier:
        info, data = asyncio.run(_fetch_record_image(cfg, args.identifier))
        source = decode_image(data)
        title = title or info.title
    else:
        source = _read_image(args.image)

    pipeline = LabelPipeline.from_config(cfg)
    result = pipeline.analyze(source, title)

    os.makedirs(args.out, exist_ok=True)
    label_path = os.path.join(args.out, "label.png")
    with open(label_path, "wb") as f:
        f.write(encode_image_png(result.label.image)[0])
    summary = {
        "detected": result.detected,
        "circle": result.source_circle(),
        "scaleFactor": round(float(result.scale_factor), 4),
        "background": result.background,
        "foreground": result.foreground,
        "label": label_path,
    }
    if result.debug_image is not None:
        debug_path = os.path.join(args.out, "debug.jpg")
        with open(debug_path, "wb") as f:
            f.write(encode_image_jpeg(result.debug_image)[0])
        summary["debug"] = debug_path
    return summary


async def _render(cfg: LoadedConfig, args) -> int:
    pipeline = LabelPipeline.from_config(cfg)
    result = pipeline.analyze(_read_image(args.image), args.title)

    settings = AnimationSettings.from_config(cfg.animation)
    frames = PlatterFrameCache()
    refs = platter_frame_refs(
        cfg.server.platter_dir.rstrip("/") + "/", settings.flipbook_length
    )
    compositor = FrameCompositor(result.label, canvas_size=cfg.label.output_size, frames=frames)

    fps = 1000.0 / settings.rotation_interval_ms
    size = (compositor.canvas_size, compositor.canvas_size)
    writer = cv2.VideoWriter(args.out, cv2.VideoWriter_fourcc(*"mp4v"), fps, size)
    if not writer.isOpened():
        raise RuntimeError(f"cannot open video writer for {args.out}")
    written = 0

    def _on_rotation(_angle: float):
        nonlocal written
        writer.write(compositor.compose())
        written += 1

    compositor.on_rotation = _on_rotation
    engine = AnimationEngine(settings)
    engine.load(compositor, refs)
    prefetch = frames.prefetch(refs)
    try:
        engine.handle_event(PlaybackEvent.PLAY)
        await asyncio.sleep(max(0.0, float(args.seconds)))
        engine.handle_event(PlaybackEvent.ENDED)
    finally:
        engine.unload()
        writer.release()
        loaded = await settle_prefetch(prefetch)
    L.info(
        "rendered %d frames to %s (label detected=%s, platter frames preloaded=%s)",
        written,
        args.out,
        result.detected,
        loaded,
    )
    return written


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.verbose, args.log_level)
    try:
        cfg = _load_config(args.config_dir)
        validate_config(cfg)
    except ConfigError as e:
        logging.error("Config load failed: %s", e)
        raise SystemExit(1)
    if int(cfg.runtime.opencv_num_threads) > 0:
        cv2.setNumThreads(int(cfg.runtime.opencv_num_threads))
    # Config-driven log level (unless overridden by CLI).
    if not args.verbose and not args.log_level:
        setup_logging(args.verbose, cfg.runtime.log_level)

    try:
        if args.command == "serve":
            run_serve(cfg)
        elif args.command == "analyze":
            print(json.dumps(run_analyze(cfg, args), indent=2))
        elif args.command == "render":
            asyncio.run(_render(cfg, args))
    except KeyboardInterrupt:
        logging.info("Service STOPPED by user (Ctrl+C)")
    except (Jukebox78Error, OSError) as e:
        logging.error("Error loading record: %s", e)
        raise SystemExit(1) from e
    except Exception:
        logging.exception("Error")
        raise


if __name__ == "__main__":
    main()
