#!/usr/bin/env python3
"""
Color space conversions and contrast math for hex/RGB/HSL colors.

Hex colors are '#rrggbb' strings. Hue is in degrees [0, 360), saturation
and lightness in [0, 1]. Integer channels round half up.
"""

import math
import re


HEX_PATTERN = re.compile(r'#?([0-9a-f]{2})([0-9a-f]{2})([0-9a-f]{2})', re.IGNORECASE)

# WCAG relative luminance (sRGB, BT.709 weights)
LINEAR_THRESHOLD = 0.03928
LUMA_WEIGHTS = (0.2126, 0.7152, 0.0722)


# =============================================================================
# Hex / RGB
# =============================================================================

def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 going up."""
    return int(math.floor(value + 0.5))


def hex_to_rgb(hex_color: str) -> tuple[int, int, int]:
    """Parse '#rrggbb' (or 'rrggbb', any case). Malformed input gives black."""
    match = HEX_PATTERN.fullmatch(hex_color) if isinstance(hex_color, str) else None
    if not match:
        return (0, 0, 0)
    return tuple(int(part, 16) for part in match.groups())


def rgb_to_hex(rgb) -> str:
    """Convert an (r, g, b) triple (0-255) to a lowercase hex string."""
    r, g, b = (min(255, max(0, round_half_up(c))) for c in rgb)
    return f"#{r:02x}{g:02x}{b:02x}"


# =============================================================================
# RGB / HSL
# =============================================================================

def rgb_to_hsl(r: float, g: float, b: float) -> tuple[float, float, float]:
    """Convert RGB (0-255) to (hue degrees, saturation, lightness)."""
    r, g, b = r / 255, g / 255, b / 255
    c_max = max(r, g, b)
    c_min = min(r, g, b)
    l = (c_max + c_min) / 2

    if c_max == c_min:
        return (0.0, 0.0, l)

    d = c_max - c_min
    s = d / (2 - c_max - c_min) if l > 0.5 else d / (c_max + c_min)

    if c_max == r:
        h = (g - b) / d + (6 if g < b else 0)
    elif c_max == g:
        h = (b - r) / d + 2
    else:
        h = (r - g) / d + 4

    return (h * 60, s, l)


def _hue_to_channel(p: float, q: float, t: float) -> float:
    if t < 0:
        t += 1
    if t > 1:
        t -= 1
    if t < 1/6:
        return p + (q - p) * 6 * t
    if t < 1/2:
        return q
    if t < 2/3:
        return p + (q - p) * (2/3 - t) * 6
    return p


def hsl_to_rgb(h: float, s: float, l: float) -> tuple[int, int, int]:
    """Convert (hue degrees, saturation, lightness) to RGB (0-255)."""
    if s == 0:
        gray = round_half_up(l * 255)
        return (gray, gray, gray)

    h = h / 360
    q = l * (1 + s) if l < 0.5 else l + s - l * s
    p = 2 * l - q

    return (
        round_half_up(_hue_to_channel(p, q, h + 1/3) * 255),
        round_half_up(_hue_to_channel(p, q, h) * 255),
        round_half_up(_hue_to_channel(p, q, h - 1/3) * 255),
    )


def saturation(r: float, g: float, b: float) -> float:
    """Chroma relative to the brightest channel, (max - min) / max."""
    c_max = max(r, g, b) / 255
    c_min = min(r, g, b) / 255
    if c_max == 0:
        return 0.0
    return (c_max - c_min) / c_max


# =============================================================================
# Luminance and Contrast
# =============================================================================

def relative_luminance(hex_color: str) -> float:
    """WCAG relative luminance of a hex color (0 = black, 1 = white)."""
    linear = []
    for c in hex_to_rgb(hex_color):
        c = c / 255
        linear.append(c / 12.92 if c <= LINEAR_THRESHOLD else ((c + 0.055) / 1.055) ** 2.4)
    return sum(w * c for w, c in zip(LUMA_WEIGHTS, linear))


def contrast_ratio(color_a: str, color_b: str) -> float:
    """WCAG contrast ratio between two hex colors, from 1 to 21."""
    l1 = relative_luminance(color_a)
    l2 = relative_luminance(color_b)
    lighter = max(l1, l2)
    darker = min(l1, l2)
    return (lighter + 0.05) / (darker + 0.05)


def wcag_level(ratio: float) -> str:
    if ratio >= 7:
        return "AAA"
    elif ratio >= 4.5:
        return "AA"
    elif ratio >= 3:
        return "AA-large"
    return "fail"


# =============================================================================
# Adjustments
# =============================================================================

def adjust_lightness(hex_color: str, delta: float) -> str:
    """Shift HSL lightness by delta, clamped to [0, 1]."""
    h, s, l = rgb_to_hsl(*hex_to_rgb(hex_color))
    l = max(0.0, min(1.0, l + delta))
    return rgb_to_hex(hsl_to_rgb(h, s, l))


def adjust_saturation(hex_color: str, delta: float) -> str:
    """Shift HSL saturation by delta, clamped to [0, 1]."""
    h, s, l = rgb_to_hsl(*hex_to_rgb(hex_color))
    s = max(0.0, min(1.0, s + delta))
    return rgb_to_hex(hsl_to_rgb(h, s, l))
