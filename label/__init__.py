from .extract import clamp_crop_rect, draw_debug_overlay, extract_label
from .normalize import compute_scaled_size, decode_image, normalize_image
from .palette import dominant_color, find_contrast_color
from .pipeline import LabelPipeline, create_vision_gate, init_vision
from .placeholder import PlaceholderStyle, render_placeholder, split_title

__all__ = [
    "LabelPipeline",
    "PlaceholderStyle",
    "clamp_crop_rect",
    "compute_scaled_size",
    "create_vision_gate",
    "decode_image",
    "dominant_color",
    "draw_debug_overlay",
    "extract_label",
    "find_contrast_color",
    "init_vision",
    "normalize_image",
    "render_placeholder",
    "split_title",
]
