#!/usr/bin/env python3
"""
Image-driven section theme pipeline.

Derives a background/text/accent theme from a photo so a page section can be
recolored to match it. Three stages: Decode → Palette Extraction → Theme Synthesis
"""

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from colorspace import (
    adjust_lightness,
    adjust_saturation,
    contrast_ratio,
    relative_luminance,
    wcag_level,
)
from extract_colors import DecodeError, Palette, extract_palette, load_pixels, palette_colors


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Polarity: either signal alone switches to a dark background
DARK_DOMINANT_LUMINANCE = 0.5
DARK_AVERAGE_LUMINANCE = 0.6

DARK_LIGHTNESS_SHIFT = -0.8
LIGHT_LIGHTNESS_SHIFT = 0.9
DARK_ACCENT_BOOST = 0.3
LIGHT_ACCENT_BOOST = 0.2

DARK_TEXT = "#ffffff"
LIGHT_TEXT = "#1f2937"
DARK_TEXT_OVERRIDE = "#f9fafb"
LIGHT_TEXT_OVERRIDE = "#111827"

MIN_CONTRAST = 4.5  # WCAG AA for body text


# =============================================================================
# Theme Synthesis
# =============================================================================

@dataclass(frozen=True)
class Theme:
    """Colors applied to a page section, as '#rrggbb' strings."""
    background: str
    text: str
    accent: str

    def as_dict(self) -> dict:
        return {'background': self.background, 'text': self.text, 'accent': self.accent}


def is_dark_palette(palette: Palette) -> bool:
    """True when the palette is bright enough to call for a dark background."""
    return (relative_luminance(palette.dominant) > DARK_DOMINANT_LUMINANCE
            or relative_luminance(palette.average) > DARK_AVERAGE_LUMINANCE)


def synthesize_theme(palette: Palette) -> Theme:
    """
    Turn a palette into a section theme.

    The background is the dominant color pushed far toward dark or light,
    the accent is the palette accent with extra saturation. If the text color
    falls short of MIN_CONTRAST against the background it is replaced once
    by a fixed near-white or near-black; the replacement is not re-checked.
    """
    use_dark = is_dark_palette(palette)

    if use_dark:
        background = adjust_lightness(palette.dominant, DARK_LIGHTNESS_SHIFT)
        text = DARK_TEXT
        accent = adjust_saturation(palette.accent, DARK_ACCENT_BOOST)
    else:
        background = adjust_lightness(palette.dominant, LIGHT_LIGHTNESS_SHIFT)
        text = LIGHT_TEXT
        accent = adjust_saturation(palette.accent, LIGHT_ACCENT_BOOST)

    if contrast_ratio(background, text) < MIN_CONTRAST:
        text = DARK_TEXT_OVERRIDE if use_dark else LIGHT_TEXT_OVERRIDE

    return Theme(background=background, text=text, accent=accent)


# =============================================================================
# Main Pipeline
# =============================================================================

@dataclass(frozen=True)
class AnalysisResult:
    """Outcome of analyzing one image: a theme, or the decode failure."""
    theme: Optional[Theme] = None
    palette: Optional[Palette] = None
    error: Optional[DecodeError] = None

    def __post_init__(self):
        if (self.theme is None) == (self.error is None):
            raise ValueError("AnalysisResult needs exactly one of theme or error")

    @property
    def ok(self) -> bool:
        return self.error is None


def run_pipeline(image_ref) -> tuple[Palette, Theme]:
    """Decode, extract and synthesize.

    Raises:
        DecodeError: If the image cannot be loaded.
    """
    decoded = load_pixels(image_ref)
    palette = extract_palette(decoded.pixels)
    theme = synthesize_theme(palette)
    return palette, theme


def analyze_image(image_ref) -> AnalysisResult:
    """Derive a theme from an image reference without raising on bad images."""
    try:
        palette, theme = run_pipeline(image_ref)
    except DecodeError as e:
        return AnalysisResult(error=e)
    return AnalysisResult(theme=theme, palette=palette)


# =============================================================================
# Theme Registry
# =============================================================================

FALLBACK_THEME = Theme(background="#ffffff", text="#1f2937", accent="#3b82f6")

DEFAULT_THEMES = {
    'hero': Theme(background="#ffffff", text="#1f2937", accent="#3b82f6"),
    'projects': Theme(background="#f9fafb", text="#1f2937", accent="#3b82f6"),
    'education': Theme(background="#ffffff", text="#1f2937", accent="#3b82f6"),
    'experience': Theme(background="#f9fafb", text="#1f2937", accent="#3b82f6"),
}


class ThemeRegistry:
    """
    Current theme per page section.

    Starts from per-section defaults. Writes for the same section are not
    ordered: whichever analysis finishes last wins.
    """

    def __init__(self, defaults: Optional[dict] = None):
        self._defaults = dict(DEFAULT_THEMES if defaults is None else defaults)
        self._themes = dict(self._defaults)
        self._lock = threading.Lock()

    def get(self, section: str) -> Theme:
        with self._lock:
            return self._themes.get(section, self._defaults.get(section, FALLBACK_THEME))

    def set_theme(self, section: str, theme: Theme) -> None:
        with self._lock:
            self._themes[section] = theme

    def apply(self, section: str, result: AnalysisResult) -> Theme:
        """Store a successful analysis; keep the current theme on failure."""
        if result.ok:
            self.set_theme(section, result.theme)
        else:
            logger.warning("keeping theme for %r: %s", section, result.error)
        return self.get(section)

    def reset(self, section: Optional[str] = None) -> None:
        with self._lock:
            if section is None:
                self._themes = dict(self._defaults)
            elif section in self._defaults:
                self._themes[section] = self._defaults[section]
            else:
                self._themes.pop(section, None)

    def sections(self) -> list[str]:
        with self._lock:
            return list(self._themes)

    def as_dict(self) -> dict:
        with self._lock:
            return {name: theme.as_dict() for name, theme in self._themes.items()}

    def __contains__(self, section: str) -> bool:
        with self._lock:
            return section in self._themes


# =============================================================================
# Render
# =============================================================================

def render(palette: Palette, theme: Theme) -> str:
    """Render palette and theme as a plain-text report."""
    lines = []

    polarity = "dark" if is_dark_palette(palette) else "light"
    lines.append(f"THEME: {polarity} background")
    lines.append("")

    lines.append("PALETTE:")
    for role, rgb in palette_colors(palette):
        lines.append(f"  {role.capitalize():<10} {getattr(palette, role)} | RGB: {rgb}")
    lines.append(f"  Luminance: dominant {relative_luminance(palette.dominant):.2f}, "
                 f"average {relative_luminance(palette.average):.2f}")
    lines.append("")

    lines.append("SECTION THEME:")
    for role, value in theme.as_dict().items():
        lines.append(f"  {role.capitalize():<10} {value}")

    ratio = contrast_ratio(theme.background, theme.text)
    lines.append(f"  Text contrast: {ratio:.1f}:1 (WCAG {wcag_level(ratio)})")

    return "\n".join(lines)


def render_html(palette: Palette, theme: Theme, image_ref) -> str:
    """Render palette and theme as a standalone HTML preview."""
    from html import escape

    safe_ref = escape(str(image_ref))
    ratio = contrast_ratio(theme.background, theme.text)
    level = wcag_level(ratio)
    badge_class = {
        'AAA': 'badge-aaa',
        'AA': 'badge-aa',
        'AA-large': 'badge-aa-large',
    }.get(level, 'badge-fail')

    css = """
        body { font-family: system-ui, sans-serif; background: #f5f5f5; color: #333;
               max-width: 720px; margin: 0 auto; padding: 2rem; }
        h2 { font-size: 1.1rem; margin: 1.5rem 0 0.75rem; }
        .meta, .contrast-info { color: #666; font-size: 0.85rem; }
        .palette-strip { display: flex; height: 72px; border-radius: 8px; overflow: hidden; }
        .palette-strip .swatch { flex: 1; display: flex; flex-direction: column;
                                 justify-content: flex-end; align-items: center;
                                 padding: 0.4rem; font-size: 0.7rem; }
        .section-preview { border-radius: 8px; padding: 2rem; }
        .section-preview .button { display: inline-block; margin-top: 1rem; padding: 0.4rem 1rem;
                                   border-radius: 6px; color: #fff; }
        .contrast-badge { padding: 0.1rem 0.4rem; border-radius: 4px; color: #fff; font-weight: 600; }
        .badge-aaa { background: #16a34a; }
        .badge-aa { background: #2563eb; }
        .badge-aa-large { background: #d97706; }
        .badge-fail { background: #dc2626; }
    """

    lines = [
        '<!DOCTYPE html>',
        '<html lang="en">',
        '<head>',
        '  <meta charset="UTF-8">',
        '  <meta name="viewport" content="width=device-width, initial-scale=1.0">',
        f'  <title>Theme: {safe_ref}</title>',
        f'  <style>{css}</style>',
        '</head>',
        '<body>',
    ]

    polarity = "Dark" if is_dark_palette(palette) else "Light"
    lines.append(f'<h1>{polarity} section theme</h1>')
    lines.append(f'<p class="meta">Source: {safe_ref}</p>')

    lines.append('<h2>Palette</h2>')
    lines.append('<div class="palette-strip">')
    for role, value in palette.as_dict().items():
        label_color = "#000" if relative_luminance(value) > 0.18 else "#fff"
        lines.append(f'  <div class="swatch" style="background:{value}; color:{label_color}">'
                     f'<span>{role}</span><span>{value}</span></div>')
    lines.append('</div>')

    lines.append('<h2>Section Preview</h2>')
    lines.append(f'<div class="section-preview" style="background:{theme.background}; color:{theme.text}">')
    lines.append('  <h3>Section heading</h3>')
    lines.append('  <p>Body text drawn in the theme text color over the theme background.</p>')
    lines.append(f'  <span class="button" style="background:{theme.accent}">Accent</span>')
    lines.append('</div>')
    lines.append(f'<p class="contrast-info">Background {theme.background} / text {theme.text}: '
                 f'{ratio:.1f}:1 <span class="contrast-badge {badge_class}">{level}</span></p>')

    lines.append('</body>')
    lines.append('</html>')

    return '\n'.join(lines)


# =============================================================================
# CLI
# =============================================================================

def main(argv=None):
    import argparse
    import sys
    from pathlib import Path

    parser = argparse.ArgumentParser(
        description='Derive a section color theme from an image.'
    )
    parser.add_argument(
        '--input', '-i',
        required=True,
        help='Path to the image file'
    )
    parser.add_argument(
        '--output', '-o',
        nargs='?',
        const=True,
        default=None,
        help='Write HTML preview. Optionally specify path, otherwise auto-names from input.'
    )
    parser.add_argument(
        '--section', '-s',
        default=None,
        help='Section whose default theme the result replaces (e.g. hero, projects)'
    )

    args = parser.parse_args(argv)
    image_path = Path(args.input)

    result = analyze_image(str(image_path))
    if not result.ok:
        print(f"Error: {result.error}", file=sys.stderr)
        sys.exit(1)

    print(render(result.palette, result.theme))

    if args.section:
        registry = ThemeRegistry()
        previous = registry.get(args.section)
        current = registry.apply(args.section, result)
        print(f"\nSection '{args.section}': {previous.background}/{previous.text}/{previous.accent}"
              f" → {current.background}/{current.text}/{current.accent}")

    if args.output:
        if args.output is True:
            output_path = image_path.with_name(f"{image_path.stem}-theme.html")
        else:
            output_path = Path(args.output)

        try:
            output_path.write_text(render_html(result.palette, result.theme, str(image_path)))
            print(f"\nWrote: {output_path}")
        except OSError as e:
            print(f"Error writing output: {e}", file=sys.stderr)
            sys.exit(1)


if __name__ == '__main__':
    main()
