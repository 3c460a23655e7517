#!/usr/bin/env python3
"""
Extract a small color palette from an image.

Images are decoded and downscaled to at most 150px on the longest side,
then sampled, quantized into 32-level buckets and ranked by frequency.
"""

import base64
import binascii
import io
import logging
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from PIL import Image

from colorspace import hex_to_rgb, hsl_to_rgb, rgb_to_hex, rgb_to_hsl, round_half_up, saturation


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MAX_DIMENSION = 150  # Longest side after downscaling

# Image size limits (security: prevent decompression bombs)
MAX_IMAGE_PIXELS = 50_000_000  # 50 megapixels
MAX_IMAGE_DIMENSION = 10_000  # 10k pixels per side

SAMPLE_STRIDE = 4  # Sample every 4th pixel
ALPHA_THRESHOLD = 128  # Pixels below this alpha are ignored
BUCKET_SIZE = 32  # Quantization step per channel (8 levels)
MAX_RANKED = 10  # Buckets kept after ranking

ACCENT_FIRST_RANK = 2  # Skip dominant and secondary
ACCENT_LAST_RANK = 5
ACCENT_MIN_SATURATION = 0.3

DEFAULT_DOMINANT = (128, 128, 128)
DEFAULT_SECONDARY = (160, 160, 160)
DEFAULT_ACCENT = "#3b82f6"


# =============================================================================
# Data Types
# =============================================================================

class DecodeError(ValueError):
    """An image reference could not be turned into pixels."""


class ImageNotFoundError(DecodeError, FileNotFoundError):
    """The image reference points at a file that does not exist."""


@dataclass(frozen=True)
class DecodedImage:
    """RGBA pixels of a downscaled image."""
    pixels: bytes  # Row-major RGBA, 4 bytes per pixel
    width: int
    height: int
    source_size: tuple  # (width, height) before downscaling


@dataclass(frozen=True)
class Palette:
    """Colors summarizing an image, as '#rrggbb' strings."""
    dominant: str
    secondary: str
    accent: str
    average: str

    def as_dict(self) -> dict:
        return {
            'dominant': self.dominant,
            'secondary': self.secondary,
            'accent': self.accent,
            'average': self.average,
        }


# =============================================================================
# Decoding
# =============================================================================

def _open_image(image_ref) -> Image.Image:
    """Open a path, raw bytes or base64 data URI with Pillow."""
    if isinstance(image_ref, (bytes, bytearray, memoryview)):
        return Image.open(io.BytesIO(bytes(image_ref)))

    if isinstance(image_ref, str) and image_ref.startswith('data:'):
        header, sep, payload = image_ref.partition(',')
        if not sep or not header.endswith(';base64'):
            raise DecodeError("Data URI must carry a base64 payload")
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecodeError(f"Invalid base64 in data URI: {e}") from e
        return Image.open(io.BytesIO(data))

    path = Path(image_ref)
    if not path.is_file():
        raise ImageNotFoundError(f"Image not found: {image_ref}")
    return Image.open(path)


def downscaled_size(width: int, height: int, max_dimension: int = MAX_DIMENSION) -> tuple[int, int]:
    """Size fitting within max_dimension, keeping aspect ratio. Never upscales."""
    ratio = min(max_dimension / width, max_dimension / height, 1.0)
    return (max(1, int(width * ratio)), max(1, int(height * ratio)))


def load_pixels(image_ref, max_dimension: int = MAX_DIMENSION) -> DecodedImage:
    """
    Decode an image and downscale it for palette extraction.

    Args:
        image_ref: File path, encoded image bytes, or a base64 'data:' URI
        max_dimension: Longest side of the returned raster

    Raises:
        ImageNotFoundError: If the path doesn't exist
        DecodeError: If the data is not a readable image or exceeds size limits
    """
    try:
        img = _open_image(image_ref)
    except DecodeError:
        raise
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeError(f"Could not open image: {e}") from e

    with img:
        width, height = img.size
        if width > MAX_IMAGE_DIMENSION or height > MAX_IMAGE_DIMENSION:
            raise DecodeError(
                f"Image dimensions {width}x{height} exceed maximum "
                f"{MAX_IMAGE_DIMENSION}x{MAX_IMAGE_DIMENSION}"
            )
        if width * height > MAX_IMAGE_PIXELS:
            raise DecodeError(
                f"Image has {width * height:,} pixels, exceeding maximum {MAX_IMAGE_PIXELS:,}"
            )

        size = downscaled_size(width, height, max_dimension)
        try:
            rgba = img.convert('RGBA')
            if size != rgba.size:
                rgba = rgba.resize(size, Image.Resampling.BILINEAR)
        except (OSError, ValueError) as e:
            raise DecodeError(f"Could not decode image: {e}") from e

    logger.debug("decoded %dx%d image to %dx%d", width, height, *size)
    return DecodedImage(
        pixels=rgba.tobytes(),
        width=size[0],
        height=size[1],
        source_size=(width, height),
    )


# =============================================================================
# Extraction
# =============================================================================

def _as_pixel_rows(buffer) -> np.ndarray:
    """View an RGBA buffer as an (n, 4) uint8 array, dropping any partial pixel."""
    if isinstance(buffer, np.ndarray):
        flat = buffer.astype(np.uint8, copy=False).ravel()
    elif len(buffer) == 0:
        flat = np.empty(0, dtype=np.uint8)
    else:
        flat = np.frombuffer(buffer, dtype=np.uint8)
    usable = len(flat) - len(flat) % 4
    return flat[:usable].reshape(-1, 4)


def _sample_opaque(buffer) -> np.ndarray:
    """RGB of every SAMPLE_STRIDE-th pixel that is at least half opaque."""
    samples = _as_pixel_rows(buffer)[::SAMPLE_STRIDE]
    opaque = samples[samples[:, 3] >= ALPHA_THRESHOLD]
    return opaque[:, :3].astype(np.int64)


def _unpack_code(code) -> tuple[int, int, int]:
    code = int(code)
    return ((code >> 16) & 0xFF, (code >> 8) & 0xFF, code & 0xFF)


def _rank_samples(rgb: np.ndarray) -> list[tuple[tuple[int, int, int], int]]:
    if len(rgb) == 0:
        return []

    keys = (rgb // BUCKET_SIZE) * BUCKET_SIZE
    codes = (keys[:, 0] << 16) | (keys[:, 1] << 8) | keys[:, 2]
    unique, first_seen, counts = np.unique(codes, return_index=True, return_counts=True)

    # lexsort sorts by the last key first
    order = np.lexsort((first_seen, -counts))[:MAX_RANKED]

    return [(_unpack_code(unique[i]), int(counts[i])) for i in order]


def _average_samples(rgb: np.ndarray):
    count = len(rgb)
    if count == 0:
        return None
    return tuple(round_half_up(int(total) / count) for total in rgb.sum(axis=0))


def rank_buckets(buffer) -> list[tuple[tuple[int, int, int], int]]:
    """
    Count quantized colors in a pixel buffer.

    Returns:
        Up to MAX_RANKED ((r, g, b), count) pairs, most frequent first.
        Equal counts keep the order in which buckets were first seen.
    """
    return _rank_samples(_sample_opaque(buffer))


def average_color(buffer):
    """Mean RGB of the sampled opaque pixels, or None if there are none."""
    return _average_samples(_sample_opaque(buffer))


def find_accent(colors: list) -> str:
    """
    Pick an accent from ranked bucket colors.

    The first of ranks 2-5 with saturation above ACCENT_MIN_SATURATION wins.
    Otherwise the dominant hue is pushed to a vivid mid-lightness.
    """
    if len(colors) < 3:
        return DEFAULT_ACCENT

    for r, g, b in colors[ACCENT_FIRST_RANK:ACCENT_LAST_RANK + 1]:
        if saturation(r, g, b) > ACCENT_MIN_SATURATION:
            return rgb_to_hex((r, g, b))

    h, s, l = rgb_to_hsl(*colors[0])
    s = max(0.6, s)
    l = min(0.7, max(0.4, l))
    return rgb_to_hex(hsl_to_rgb(h, s, l))


def palette_from_ranked(ranked: list, average) -> Palette:
    """Assemble a Palette from rank_buckets() output and an average color."""
    colors = [rgb for rgb, _ in ranked]
    dominant = colors[0] if colors else DEFAULT_DOMINANT
    secondary = colors[1] if len(colors) > 1 else DEFAULT_SECONDARY

    return Palette(
        dominant=rgb_to_hex(dominant),
        secondary=rgb_to_hex(secondary),
        accent=find_accent(colors),
        average=rgb_to_hex(average if average is not None else DEFAULT_DOMINANT),
    )


def extract_palette(buffer) -> Palette:
    """
    Summarize an RGBA pixel buffer as a Palette.

    Never raises for empty or fully transparent buffers; fallback colors
    fill in whatever cannot be measured.
    """
    rgb = _sample_opaque(buffer)
    return palette_from_ranked(_rank_samples(rgb), _average_samples(rgb))


def palette_colors(palette: Palette) -> list[tuple[str, tuple[int, int, int]]]:
    """(role, rgb) pairs in display order."""
    return [(role, hex_to_rgb(value)) for role, value in palette.as_dict().items()]


if __name__ == '__main__':
    import sys

    if len(sys.argv) != 2:
        print(f"Usage: {sys.argv[0]} IMAGE", file=sys.stderr)
        sys.exit(2)

    try:
        decoded = load_pixels(sys.argv[1])
    except DecodeError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Image: {decoded.source_size[0]}x{decoded.source_size[1]} -> {decoded.width}x{decoded.height}")
    for (r, g, b), count in rank_buckets(decoded.pixels):
        print(f"  {rgb_to_hex((r, g, b))}  {count:>6,} samples")
    for role, value in extract_palette(decoded.pixels).as_dict().items():
        print(f"{role:>10}: {value}")
