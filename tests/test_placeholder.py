import unittest

from label.placeholder import (
    PlaceholderStyle,
    layout_placeholder_text,
    render_placeholder,
    split_title,
    wrap_words,
)


def _measure(text: str) -> float:
    return len(text) * 10.0


class TestTitleSplit(unittest.TestCase):
    def test_artist_and_song(self):
        top, bottom = layout_placeholder_text("Artist - Song Title", measure=_measure)
        self.assertEqual([l.text for l in top], ["ARTIST"])
        self.assertEqual([l.text for l in bottom], ["SONG TITLE"])

    def test_no_delimiter_is_top_only(self):
        top, bottom = layout_placeholder_text("Just A Title", measure=_measure)
        self.assertEqual([l.text for l in top], ["JUST A TITLE"])
        self.assertEqual(bottom, [])

    def test_only_first_delimiter_splits(self):
        self.assertEqual(split_title("A - B - C"), ("A", "B - C"))
        self.assertEqual(split_title(""), ("", ""))


class TestWrap(unittest.TestCase):
    def test_spaces_do_not_count_toward_width(self):
        # "aaaa bbbb" measures 80, below 90 even though the text is 9 chars.
        self.assertEqual(wrap_words("aaaa bbbb", 90, _measure), ["aaaa bbbb"])

    def test_breaks_when_width_reached(self):
        self.assertEqual(wrap_words("aaaa bbbb cc", 80, _measure), ["aaaa", "bbbb cc"])

    def test_long_word_kept_whole(self):
        self.assertEqual(wrap_words("abcdefghijklmnop", 50, _measure), ["abcdefghijklmnop"])

    def test_block_centered_on_anchor(self):
        style = PlaceholderStyle()
        top, _bottom = layout_placeholder_text("Artist", style, _measure)
        self.assertEqual(len(top), 1)
        self.assertAlmostEqual(top[0].center_y, 600 * 0.35 - 36 * 1.2 / 2)
        self.assertAlmostEqual(top[0].center_x, 300)

    def test_wrapped_lines_step_by_line_height(self):
        style = PlaceholderStyle()
        words = " ".join(["word"] * 30)
        _top, bottom = layout_placeholder_text("x - " + words, style, _measure)
        self.assertGreater(len(bottom), 1)
        for prev, cur in zip(bottom, bottom[1:]):
            self.assertAlmostEqual(cur.center_y - prev.center_y, 36 * 1.2)


class TestRender(unittest.TestCase):
    def test_green_disc_on_transparent_square(self):
        label = render_placeholder("Artist - Song Title")
        self.assertFalse(label.detected)
        self.assertEqual(label.image.shape, (600, 600, 4))
        self.assertEqual(tuple(int(v) for v in label.image[20, 300]), (49, 71, 26, 255))
        self.assertEqual(int(label.image[0, 0, 3]), 0)
        self.assertEqual(int(label.image[599, 599, 3]), 0)

    def test_text_drawn_in_top_block(self):
        label = render_placeholder("Artist")
        band = label.image[180:240, 150:450, :3]
        self.assertGreater(int(band.max()), 200)

    def test_empty_title(self):
        label = render_placeholder("")
        self.assertEqual(label.image.shape, (600, 600, 4))


if __name__ == "__main__":
    unittest.main()
