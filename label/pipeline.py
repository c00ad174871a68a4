"""Label isolation pipeline: normalize, detect, extract or synthesize, colorize."""

from __future__ import annotations

import asyncio
import functools
import logging
import time

import cv2
import numpy as np

from core.contracts import LabelAnalysis, NULL_CIRCLE
from core.errors import ColorExtractionError, DetectionEmpty
from core.lifecycle import ReadinessGate
from detect import CircleDetector, create_detector, select_largest_circle
from utils.buffers import buffer_scope

from .extract import draw_debug_overlay, extract_label
from .normalize import normalize_image
from .palette import dominant_color, find_contrast_color
from .placeholder import PlaceholderStyle, render_placeholder

L = logging.getLogger("jukebox78.pipeline")

UNKNOWN_TITLE = "Unknown Record"


def init_vision(num_threads: int = 0) -> str:
    """One-time OpenCV setup; returns the library version."""
    if int(num_threads) > 0:
        cv2.setNumThreads(int(num_threads))
    # Touch the Hough entry point so a broken build fails here, not mid-request.
    cv2.HoughCircles(
        np.zeros((8, 8), dtype=np.uint8), cv2.HOUGH_GRADIENT, 1, 4, param1=100, param2=30
    )
    return str(cv2.__version__)


def create_vision_gate(num_threads: int = 0) -> ReadinessGate[str]:
    return ReadinessGate(functools.partial(init_vision, num_threads), name="OpenCV")


class LabelPipeline:
    def __init__(
        self,
        detector: CircleDetector | None = None,
        *,
        processing_size: int = 640,
        output_size: int = 600,
        debug_stroke_width: int = 10,
        placeholder: PlaceholderStyle | None = None,
    ):
        self.detector = detector or create_detector("hough")
        self.processing_size = int(processing_size)
        self.output_size = int(output_size)
        self.debug_stroke_width = int(debug_stroke_width)
        self.placeholder = placeholder or PlaceholderStyle(output_size=self.output_size)

    @classmethod
    def from_config(cls, cfg, detector: CircleDetector | None = None) -> "LabelPipeline":
        return cls(
            detector or create_detector(cfg.detect.impl, cfg.detect_params or {}),
            processing_size=cfg.label.processing_size,
            output_size=cfg.label.output_size,
            debug_stroke_width=cfg.label.debug_stroke_width,
            placeholder=PlaceholderStyle.from_config(cfg.label),
        )

    def analyze(self, source: np.ndarray, title: str | None = None) -> LabelAnalysis:
        """Run the full pass over a decoded source image.

        InvalidImageError from normalization propagates. Detection and
        extraction failures fall back to the placeholder label.
        """
        t0 = time.perf_counter()
        timings: dict[str, float] = {}
        with buffer_scope("label") as scope:
            frame = normalize_image(source, self.processing_size)
            scope.track(frame.image)
            timings["normalize_ms"] = (time.perf_counter() - t0) * 1000.0
            try:
                circles = self.detector.detect(frame.image, scope)
                timings["detect_ms"] = (time.perf_counter() - t0) * 1000.0
                circle = select_largest_circle(circles)
                label = extract_label(frame, circle, self.output_size, scope)
            except DetectionEmpty:
                L.info("No circles detected")
                return self._placeholder(title, frame.scale_factor, timings, t0)
            except Exception as e:
                L.warning("label extraction failed, using placeholder: %s", e, exc_info=True)
                return self._placeholder(title, frame.scale_factor, timings, t0)

        analysis = LabelAnalysis(
            label=label,
            circle=circle,
            scale_factor=frame.scale_factor,
            debug_image=draw_debug_overlay(
                source, circle, frame.scale_factor, self.debug_stroke_width
            ),
            timings=timings,
        )
        try:
            bg = dominant_color(label.image)
        except ColorExtractionError as e:
            L.warning("Error setting colors: %s", e)
        else:
            analysis.background = bg
            analysis.foreground = find_contrast_color(bg)
        timings["total_ms"] = (time.perf_counter() - t0) * 1000.0
        L.info(
            "label detected: center=(%.1f, %.1f) r=%.1f scale=%.4f",
            circle.x,
            circle.y,
            circle.radius,
            frame.scale_factor,
        )
        return analysis

    def _placeholder(
        self, title: str | None, scale_factor: float, timings: dict[str, float], t0: float
    ) -> LabelAnalysis:
        label = render_placeholder(title or UNKNOWN_TITLE, self.placeholder)
        timings["total_ms"] = (time.perf_counter() - t0) * 1000.0
        return LabelAnalysis(
            label=label,
            circle=NULL_CIRCLE,
            scale_factor=scale_factor,
            background=tuple(self.placeholder.fill_rgb),
            foreground=tuple(self.placeholder.text_rgb),
            timings=timings,
        )

    async def analyze_async(
        self, gate: ReadinessGate, source: np.ndarray, title: str | None = None
    ) -> LabelAnalysis:
        await gate.wait()
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, functools.partial(self.analyze, source, title)
        )


__all__ = [
    "LabelPipeline",
    "UNKNOWN_TITLE",
    "create_vision_gate",
    "init_vision",
]
