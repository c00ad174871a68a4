import unittest

import cv2
import numpy as np

from core.contracts import Circle, LabelAnalysis, LabelImage, ProcessingFrame
from core.errors import DetectionEmpty, InvalidImageError
from detect import create_detector, select_largest_circle
from label import (
    LabelPipeline,
    clamp_crop_rect,
    compute_scaled_size,
    decode_image,
    extract_label,
    normalize_image,
)
from label.palette import BLACK, WHITE

LABEL_BGR = (60, 60, 230)


def _record_photo(size: int = 640, center=None, radius: int = 150) -> np.ndarray:
    img = np.full((size, size, 3), 20, dtype=np.uint8)
    cx, cy = center or (size // 2, size // 2)
    cv2.circle(img, (cx, cy), radius, LABEL_BGR, thickness=-1)
    return img


def _downsampled_photo(size: int = 640) -> np.ndarray:
    """Record photo with soft edges: a 1.25x disc shrunk like a real upload."""
    big = _record_photo(size=800, center=(400, 400), radius=200)
    return cv2.resize(big, (size, size), interpolation=cv2.INTER_AREA)


class _StubDetector:
    def __init__(self, circles=None, exc: Exception | None = None):
        self.circles = list(circles or [])
        self.exc = exc
        self.scope = None
        self.frame_before = None

    def detect(self, frame, scope=None):
        self.scope = scope
        self.frame_before = frame.copy()
        if self.exc is not None:
            raise self.exc
        return list(self.circles)


class TestNormalizer(unittest.TestCase):
    def test_landscape_width_lands_on_processing_size(self):
        w, h, scale = compute_scaled_size(1280, 853, 640)
        self.assertEqual(w, 640)
        self.assertLessEqual(h, w)
        self.assertEqual(h, 427)
        self.assertAlmostEqual(scale, 0.5)

    def test_portrait_height_lands_on_processing_size(self):
        w, h, scale = compute_scaled_size(300, 1200, 640)
        self.assertEqual(h, 640)
        self.assertEqual(w, 160)
        self.assertAlmostEqual(scale, 640 / 1200)

    def test_square_and_upscale(self):
        w, h, scale = compute_scaled_size(320, 320, 640)
        self.assertEqual((w, h), (640, 640))
        self.assertAlmostEqual(scale, 2.0)

    def test_various_landscape_sizes(self):
        for width, height in [(641, 640), (1000, 1), (4000, 3000), (999, 998)]:
            with self.subTest(size=(width, height)):
                w, h, scale = compute_scaled_size(width, height, 640)
                self.assertEqual(w, 640)
                self.assertLessEqual(h, w)
                self.assertGreater(scale, 0)

    def test_zero_dimension_rejected(self):
        with self.assertRaises(InvalidImageError):
            compute_scaled_size(0, 100, 640)
        with self.assertRaises(InvalidImageError):
            normalize_image(np.zeros((0, 10, 3), dtype=np.uint8))

    def test_frame_is_top_left_and_transparent_elsewhere(self):
        src = np.full((200, 400, 3), 255, dtype=np.uint8)
        frame = normalize_image(src, 640)
        self.assertEqual(frame.image.shape, (640, 640, 4))
        self.assertEqual((frame.scaled_width, frame.scaled_height), (640, 320))
        self.assertEqual(int(frame.image[10, 10, 3]), 255)
        self.assertEqual(int(frame.image[600, 10, 3]), 0)
        self.assertEqual(int(frame.image[319, 639, 3]), 255)
        self.assertEqual(int(frame.image[320, 0, 3]), 0)

    def test_decode_rejects_garbage(self):
        with self.assertRaises(InvalidImageError):
            decode_image(b"not an image")
        with self.assertRaises(InvalidImageError):
            decode_image(b"")


class TestCircleSelection(unittest.TestCase):
    def test_largest_radius_wins(self):
        picked = select_largest_circle([Circle(100, 100, 120), Circle(400, 300, 180)])
        self.assertEqual(picked.radius, 180)
        picked = select_largest_circle([Circle(400, 300, 180), Circle(100, 100, 120)])
        self.assertEqual(picked.radius, 180)

    def test_ties_keep_first(self):
        first = Circle(10, 10, 150)
        picked = select_largest_circle([first, Circle(500, 500, 150)])
        self.assertIs(picked, first)

    def test_empty_is_detection_empty(self):
        with self.assertRaises(DetectionEmpty):
            select_largest_circle([])


class TestHoughDetector(unittest.TestCase):
    def test_finds_label_circle(self):
        detector = create_detector("hough", {})
        frame = normalize_image(_downsampled_photo(), 640)
        before = frame.image.copy()
        circles = detector.detect(frame.image)
        self.assertGreaterEqual(len(circles), 1)
        best = select_largest_circle(circles)
        self.assertLess(abs(best.x - 320), 6)
        self.assertLess(abs(best.y - 320), 6)
        self.assertLess(abs(best.radius - 160), 6)
        np.testing.assert_array_equal(frame.image, before)

    def test_blank_image_has_no_circles(self):
        detector = create_detector("hough", {})
        frame = normalize_image(np.full((640, 640, 3), 90, dtype=np.uint8), 640)
        self.assertEqual(detector.detect(frame.image), [])

    def test_unknown_detector_name(self):
        with self.assertRaises(ValueError):
            create_detector("does_not_exist", {})


class TestSourceCircle(unittest.TestCase):
    def test_halves_round_up(self):
        analysis = LabelAnalysis(
            label=LabelImage(np.zeros((4, 4, 4), dtype=np.uint8), detected=True),
            circle=Circle(401, 401, 201),
            scale_factor=2.0,
        )
        src = analysis.source_circle()
        self.assertEqual((src["x"], src["y"], src["radius"]), (201, 201, 101))
        self.assertEqual(src["diameter"], 202)

    def test_no_circle(self):
        analysis = LabelAnalysis(label=LabelImage(np.zeros((4, 4, 4), dtype=np.uint8)))
        self.assertIsNone(analysis.source_circle())


class TestLabelExtractor(unittest.TestCase):
    def test_crop_rect_inside_frame(self):
        x, y, w, h = clamp_crop_rect(Circle(320, 320, 150), 640, 640)
        self.assertEqual((x, y, w, h), (170, 170, 300, 300))

    def test_crop_rect_clamped_near_edges(self):
        for circle in [
            Circle(50, 600, 150),
            Circle(630, 20, 200),
            Circle(0, 0, 100),
            Circle(639, 639, 350),
        ]:
            with self.subTest(circle=circle):
                x, y, w, h = clamp_crop_rect(circle, 640, 640)
                self.assertGreaterEqual(x, 0)
                self.assertGreaterEqual(y, 0)
                self.assertGreater(w, 0)
                self.assertGreater(h, 0)
                self.assertLessEqual(x + w, 640)
                self.assertLessEqual(y + h, 640)

    def test_edge_clamp_changes_aspect(self):
        x, y, w, h = clamp_crop_rect(Circle(50, 600, 150), 640, 640)
        self.assertEqual((x, y, w, h), (0, 450, 300, 190))

    def test_extracted_label_is_masked_square(self):
        frame = normalize_image(_record_photo(), 640)
        label = extract_label(frame, Circle(320, 320, 150), 600)
        self.assertTrue(label.detected)
        self.assertEqual(label.image.shape, (600, 600, 4))
        # Corner lies outside the circle: transparent.
        self.assertEqual(int(label.image[5, 5, 3]), 0)
        b, g, r, a = (int(v) for v in label.image[300, 300])
        self.assertEqual(a, 255)
        self.assertEqual((b, g, r), LABEL_BGR)

    def test_extract_near_edge_stays_in_bounds(self):
        frame = ProcessingFrame(
            image=np.full((640, 640, 4), 255, dtype=np.uint8),
            scale_factor=1.0,
            scaled_width=640,
            scaled_height=640,
        )
        label = extract_label(frame, Circle(10, 630, 200), 600)
        self.assertEqual(label.image.shape, (600, 600, 4))


class TestLabelPipeline(unittest.TestCase):
    def test_detected_label_with_colors(self):
        src = _record_photo(size=800, center=(400, 400), radius=200)
        result = LabelPipeline().analyze(src, "Artist - Song")
        self.assertTrue(result.detected)
        self.assertAlmostEqual(result.scale_factor, 0.8)
        self.assertEqual(result.label.image.shape, (600, 600, 4))
        src_circle = result.source_circle()
        self.assertLess(abs(src_circle["x"] - 400), 8)
        self.assertLess(abs(src_circle["y"] - 400), 8)
        self.assertLess(abs(src_circle["radius"] - 200), 8)
        self.assertEqual(src_circle["diameter"], src_circle["radius"] * 2)
        self.assertEqual(result.debug_image.shape, (800, 800, 3))
        self.assertIsNotNone(result.background)
        r, g, b = result.background
        self.assertLess(abs(r - 230), 20)
        self.assertLess(abs(g - 60), 20)
        self.assertLess(abs(b - 60), 20)
        self.assertEqual(result.foreground, BLACK)

    def test_no_circle_uses_placeholder(self):
        src = np.full((640, 640, 3), 90, dtype=np.uint8)
        pipeline = LabelPipeline()
        for _ in range(2):
            result = pipeline.analyze(src, "Artist - Song Title")
            self.assertFalse(result.detected)
            self.assertIsNone(result.source_circle())
            self.assertIsNone(result.debug_image)
            self.assertEqual(result.background, (26, 71, 49))
            self.assertEqual(result.foreground, WHITE)
            self.assertEqual(result.label.image.shape, (600, 600, 4))

    def test_uses_largest_candidate(self):
        detector = _StubDetector([Circle(200, 200, 120), Circle(320, 320, 180)])
        result = LabelPipeline(detector).analyze(_record_photo(), "x")
        self.assertTrue(result.detected)
        self.assertEqual(result.circle.radius, 180)

    def test_buffers_released_on_success_and_failure(self):
        ok = _StubDetector([Circle(320, 320, 150)])
        LabelPipeline(ok).analyze(_record_photo(), "x")
        self.assertTrue(ok.scope.closed)
        self.assertEqual(ok.scope.active, 0)
        self.assertGreater(ok.scope.released, 0)

        broken = _StubDetector(exc=ValueError("boom"))
        result = LabelPipeline(broken).analyze(_record_photo(), "x")
        self.assertFalse(result.detected)
        self.assertTrue(broken.scope.closed)
        self.assertEqual(broken.scope.active, 0)

    def test_unexpected_detector_error_uses_placeholder(self):
        for exc in (RuntimeError("detector crashed"), IndexError("bad candidate")):
            with self.subTest(exc=type(exc).__name__):
                detector = _StubDetector(exc=exc)
                result = LabelPipeline(detector).analyze(
                    np.full((100, 100, 3), 50, dtype=np.uint8), "A - B"
                )
                self.assertFalse(result.detected)
                self.assertIsNone(result.source_circle())
                self.assertEqual(result.background, (26, 71, 49))
                self.assertEqual(result.foreground, WHITE)
                self.assertTrue(detector.scope.closed)

    def test_invalid_source_propagates(self):
        with self.assertRaises(InvalidImageError):
            LabelPipeline().analyze(np.zeros((0, 0, 3), dtype=np.uint8), "x")

    def test_missing_title_still_renders(self):
        result = LabelPipeline(_StubDetector([])).analyze(_record_photo(), None)
        self.assertFalse(result.detected)


if __name__ == "__main__":
    unittest.main()
