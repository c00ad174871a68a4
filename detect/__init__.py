from .base import (
    CircleDetector,
    create_detector,
    encode_image_jpeg,
    encode_image_png,
    register_detector,
    select_largest_circle,
)

__all__ = [
    "CircleDetector",
    "create_detector",
    "encode_image_jpeg",
    "encode_image_png",
    "register_detector",
    "select_largest_circle",
]
