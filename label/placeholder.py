"""Synthesized label for records whose photo has no detectable label."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Sequence

import cv2
import numpy as np

from core.contracts import LabelImage

from .normalize import round_half_up

TITLE_DELIMITER = " - "
FONT_FACE = cv2.FONT_HERSHEY_DUPLEX
FONT_THICKNESS = 2

Measure = Callable[[str], float]


@dataclass(frozen=True)
class PlaceholderStyle:
    output_size: int = 600
    fill_rgb: tuple[int, int, int] = (26, 71, 49)
    text_rgb: tuple[int, int, int] = (255, 255, 255)
    font_height_px: int = 36
    line_height: float = 1.2
    wrap_fraction: float = 0.8
    top_center: float = 0.35
    bottom_center: float = 0.75

    @classmethod
    def from_config(cls, label_cfg) -> "PlaceholderStyle":
        return cls(
            output_size=int(label_cfg.output_size),
            fill_rgb=tuple(int(c) for c in label_cfg.placeholder_color),
            text_rgb=tuple(int(c) for c in label_cfg.placeholder_text_color),
            font_height_px=int(label_cfg.font_height_px),
            line_height=float(label_cfg.line_height),
            wrap_fraction=float(label_cfg.wrap_fraction),
        )


@dataclass(frozen=True)
class TextLine:
    text: str
    center_x: float
    center_y: float


def split_title(title: str) -> tuple[str, str]:
    """Split on the first delimiter; later delimiters stay in the bottom half."""
    top, _sep, bottom = (title or "").partition(TITLE_DELIMITER)
    return top, bottom


def wrap_words(text: str, max_width: float, measure: Measure) -> List[str]:
    """Greedy wrap. Line width is the sum of word widths; spaces are not counted."""
    lines: List[str] = []
    current = ""
    current_width = 0.0
    for word in text.split(" "):
        word_width = measure(word)
        if current == "":
            current = word
            current_width = word_width
            continue
        line_width = current_width + word_width
        if line_width < max_width:
            current += " " + word
            current_width = line_width
        else:
            lines.append(current)
            current = word
            current_width = word_width
    lines.append(current)
    return lines


def font_scale_for(style: PlaceholderStyle) -> float:
    return float(cv2.getFontScaleFromHeight(FONT_FACE, style.font_height_px, FONT_THICKNESS))


def make_measure(style: PlaceholderStyle) -> Measure:
    scale = font_scale_for(style)

    def measure(text: str) -> float:
        if not text:
            return 0.0
        (w, _h), _baseline = cv2.getTextSize(text, FONT_FACE, scale, FONT_THICKNESS)
        return float(w)

    return measure


def _block_lines(text: str, center_y: float, style: PlaceholderStyle, measure: Measure) -> List[TextLine]:
    lines = wrap_words(text.upper(), style.output_size * style.wrap_fraction, measure)
    line_height = style.font_height_px * style.line_height
    start_y = center_y - (len(lines) * line_height) / 2.0
    cx = style.output_size / 2.0
    return [TextLine(line, cx, start_y + i * line_height) for i, line in enumerate(lines)]


def layout_placeholder_text(
    title: str,
    style: PlaceholderStyle | None = None,
    measure: Measure | None = None,
) -> tuple[List[TextLine], List[TextLine]]:
    """Return (top_lines, bottom_lines); an empty half yields no lines."""
    style = style or PlaceholderStyle()
    measure = measure or make_measure(style)
    top, bottom = split_title(title)
    top_lines: List[TextLine] = []
    bottom_lines: List[TextLine] = []
    if top:
        top_lines = _block_lines(top, style.output_size * style.top_center, style, measure)
    if bottom:
        bottom_lines = _block_lines(bottom, style.output_size * style.bottom_center, style, measure)
    return top_lines, bottom_lines


def _rgb_to_bgra(rgb: Sequence[int]) -> tuple[int, int, int, int]:
    r, g, b = (int(c) for c in rgb)
    return (b, g, r, 255)


def render_placeholder(title: str, style: PlaceholderStyle | None = None) -> LabelImage:
    style = style or PlaceholderStyle()
    size = style.output_size
    img = np.zeros((size, size, 4), dtype=np.uint8)
    center = round_half_up(size / 2.0)
    cv2.circle(img, (center, center), center, _rgb_to_bgra(style.fill_rgb), thickness=-1, lineType=cv2.LINE_AA)

    scale = font_scale_for(style)
    text_color = _rgb_to_bgra(style.text_rgb)
    top_lines, bottom_lines = layout_placeholder_text(title, style, make_measure(style))
    for line in top_lines + bottom_lines:
        if not line.text:
            continue
        (w, h), _baseline = cv2.getTextSize(line.text, FONT_FACE, scale, FONT_THICKNESS)
        # putText anchors at the baseline; shift so the line's middle sits on center_y.
        origin = (round_half_up(line.center_x - w / 2.0), round_half_up(line.center_y + h / 2.0))
        cv2.putText(img, line.text, origin, FONT_FACE, scale, text_color, FONT_THICKNESS, cv2.LINE_AA)
    return LabelImage(image=img, detected=False)


__all__ = [
    "PlaceholderStyle",
    "TextLine",
    "layout_placeholder_text",
    "render_placeholder",
    "split_title",
    "wrap_words",
]
