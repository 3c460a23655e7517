import base64
import io
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import numpy as np
from PIL import Image

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT))

from extract_colors import (
    SAMPLE_STRIDE,
    DecodeError,
    ImageNotFoundError,
    downscaled_size,
    extract_palette,
    load_pixels,
    rank_buckets,
)


def solid_buffer(rgba, pixels=64) -> bytes:
    return bytes(rgba) * pixels


def sampled_buffer(colors) -> bytes:
    """Buffer whose sampled pixels are exactly `colors`, in order."""
    return b"".join(bytes(rgba) * SAMPLE_STRIDE for rgba in colors)


def png_bytes(size, color, mode="RGBA") -> bytes:
    out = io.BytesIO()
    Image.new(mode, size, color).save(out, format="PNG")
    return out.getvalue()


class ExtractPaletteTests(unittest.TestCase):
    def test_single_color(self):
        palette = extract_palette(solid_buffer((200, 10, 10, 255)))
        self.assertEqual(palette.dominant, "#c00000")
        self.assertEqual(palette.average, "#c80a0a")
        self.assertEqual(palette.secondary, "#a0a0a0")
        self.assertEqual(palette.accent, "#3b82f6")

    def test_single_bucket_aligned_color_dominant_equals_average(self):
        palette = extract_palette(solid_buffer((192, 0, 0, 255)))
        self.assertEqual(palette.dominant, palette.average)
        self.assertEqual(palette.secondary, "#a0a0a0")

    def test_fully_transparent(self):
        palette = extract_palette(solid_buffer((255, 0, 0, 127)))
        self.assertEqual(palette.dominant, "#808080")
        self.assertEqual(palette.average, "#808080")
        self.assertEqual(palette.secondary, "#a0a0a0")
        self.assertEqual(palette.accent, "#3b82f6")

    def test_empty_buffer(self):
        for empty in (b"", bytearray(), np.zeros((0, 0, 4), dtype=np.uint8)):
            palette = extract_palette(empty)
            self.assertEqual(palette.dominant, "#808080")
            self.assertEqual(palette.average, "#808080")

    def test_alpha_threshold_is_inclusive(self):
        buffer = sampled_buffer([(0, 0, 255, 127), (255, 255, 255, 128)])
        ranked = rank_buckets(buffer)
        self.assertEqual(ranked, [((224, 224, 224), 1)])
        self.assertEqual(extract_palette(buffer).average, "#ffffff")

    def test_only_every_fourth_pixel_is_sampled(self):
        pixel_group = bytes((255, 0, 0, 255)) + bytes((0, 0, 255, 255)) * (SAMPLE_STRIDE - 1)
        buffer = pixel_group * 10
        self.assertEqual(rank_buckets(buffer), [((224, 0, 0), 10)])
        self.assertEqual(extract_palette(buffer).average, "#ff0000")

    def test_average_uses_raw_channels(self):
        buffer = sampled_buffer([(10, 20, 30, 255), (11, 21, 31, 255)])
        # 10.5 → 11 and so on, rounding half up
        self.assertEqual(extract_palette(buffer).average, "#0b151f")

    def test_ties_keep_first_seen_order(self):
        a = (100, 200, 50, 255)
        b = (10, 10, 10, 255)
        buffer = sampled_buffer([a, b, b, a])
        ranked = rank_buckets(buffer)
        self.assertEqual([rgb for rgb, _ in ranked], [(96, 192, 32), (0, 0, 0)])
        self.assertEqual(extract_palette(buffer).dominant, "#60c020")

    def test_frequency_beats_first_seen(self):
        buffer = sampled_buffer([(10, 10, 10, 255)] + [(250, 250, 250, 255)] * 3)
        palette = extract_palette(buffer)
        self.assertEqual(palette.dominant, "#e0e0e0")
        self.assertEqual(palette.secondary, "#000000")

    def test_keeps_top_ten_buckets(self):
        colors = []
        for i in range(12):
            colors.extend([((i % 8) * 32, (i // 8) * 32, 0, 255)] * (20 - i))
        ranked = rank_buckets(sampled_buffer(colors))
        self.assertEqual(len(ranked), 10)
        counts = [count for _, count in ranked]
        self.assertEqual(counts, sorted(counts, reverse=True))

    def test_accent_takes_saturated_third_bucket(self):
        buffer = sampled_buffer(
            [(128, 128, 128, 255)] * 5
            + [(64, 64, 64, 255)] * 3
            + [(200, 100, 100, 255)] * 2
        )
        palette = extract_palette(buffer)
        self.assertEqual(palette.dominant, "#808080")
        self.assertEqual(palette.secondary, "#404040")
        self.assertEqual(palette.accent, "#c06060")

    def test_accent_skips_unsaturated_candidates(self):
        buffer = sampled_buffer(
            [(128, 128, 128, 255)] * 5
            + [(64, 64, 64, 255)] * 4
            + [(32, 32, 32, 255)] * 3
            + [(20, 200, 240, 255)] * 2
        )
        self.assertEqual(extract_palette(buffer).accent, "#00c0e0")

    def test_accent_synthesized_when_window_has_no_saturated_color(self):
        grays = [128, 0, 32, 64, 96, 160]
        colors = []
        for count, level in zip(range(10, 4, -1), grays):
            colors.extend([(level, level, level, 255)] * count)
        # Saturated, but ranked seventh
        colors.extend([(200, 40, 40, 255)] * 4)
        palette = extract_palette(sampled_buffer(colors))
        self.assertEqual(palette.dominant, "#808080")
        self.assertEqual(palette.accent, "#cc3434")

    def test_default_accent_with_fewer_than_three_buckets(self):
        buffer = sampled_buffer([(128, 128, 128, 255)] * 3 + [(255, 0, 0, 255)])
        self.assertEqual(extract_palette(buffer).accent, "#3b82f6")

    def test_accepts_numpy_image_array(self):
        pixels = np.zeros((8, 8, 4), dtype=np.uint8)
        pixels[..., 1] = 255
        pixels[..., 3] = 255
        palette = extract_palette(pixels)
        self.assertEqual(palette.dominant, "#00e000")
        self.assertEqual(palette.average, "#00ff00")

    def test_partial_trailing_pixel_ignored(self):
        buffer = solid_buffer((0, 0, 0, 255), 4) + bytes((255, 255))
        self.assertEqual(rank_buckets(buffer), [((0, 0, 0), 1)])

    def test_palette_is_immutable(self):
        palette = extract_palette(solid_buffer((1, 2, 3, 255)))
        with self.assertRaises(AttributeError):
            palette.dominant = "#ffffff"


class DownscaleTests(unittest.TestCase):
    def test_longest_side_limited(self):
        self.assertEqual(downscaled_size(600, 300), (150, 75))
        self.assertEqual(downscaled_size(300, 600), (75, 150))

    def test_never_upscales(self):
        self.assertEqual(downscaled_size(40, 20), (40, 20))

    def test_minimum_one_pixel(self):
        self.assertEqual(downscaled_size(1000, 10), (150, 1))
        self.assertEqual(downscaled_size(10, 3000), (1, 150))


class LoadPixelsTests(unittest.TestCase):
    def test_decodes_and_downscales_bytes(self):
        decoded = load_pixels(png_bytes((600, 300), (10, 20, 30, 255)))
        self.assertEqual((decoded.width, decoded.height), (150, 75))
        self.assertEqual(decoded.source_size, (600, 300))
        self.assertEqual(len(decoded.pixels), 150 * 75 * 4)
        self.assertEqual(decoded.pixels[:4], bytes((10, 20, 30, 255)))

    def test_small_image_kept_at_size(self):
        decoded = load_pixels(png_bytes((40, 20), (1, 2, 3, 4)))
        self.assertEqual((decoded.width, decoded.height), (40, 20))

    def test_rgb_image_gets_opaque_alpha(self):
        decoded = load_pixels(png_bytes((10, 10), (5, 6, 7), mode="RGB"))
        self.assertEqual(set(decoded.pixels[3::4]), {255})

    def test_decodes_path(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "photo.png"
            path.write_bytes(png_bytes((20, 20), (255, 255, 255, 255)))
            decoded = load_pixels(path)
            self.assertEqual((decoded.width, decoded.height), (20, 20))
            self.assertEqual(load_pixels(str(path)).pixels, decoded.pixels)

    def test_decodes_data_uri(self):
        payload = base64.b64encode(png_bytes((8, 4), (0, 0, 0, 255))).decode("ascii")
        decoded = load_pixels(f"data:image/png;base64,{payload}")
        self.assertEqual((decoded.width, decoded.height), (8, 4))

    def test_missing_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(ImageNotFoundError) as ctx:
                load_pixels(Path(tmp) / "missing.png")
            self.assertIsInstance(ctx.exception, FileNotFoundError)
            self.assertIsInstance(ctx.exception, DecodeError)

    def test_garbage_bytes(self):
        with self.assertRaises(DecodeError):
            load_pixels(b"definitely not an image")

    def test_bad_data_uri(self):
        with self.assertRaises(DecodeError):
            load_pixels("data:image/png;base64,@@@")
        with self.assertRaises(DecodeError):
            load_pixels("data:text/plain,hello")

    def test_oversize_image_rejected(self):
        with patch("extract_colors.MAX_IMAGE_DIMENSION", 100):
            with self.assertRaises(DecodeError):
                load_pixels(png_bytes((200, 10), (0, 0, 0, 255)))


if __name__ == "__main__":
    unittest.main()
