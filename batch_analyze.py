#!/usr/bin/env python3
"""Batch derive section themes from images and write HTML previews."""

import argparse
import sys
import time
from pathlib import Path

from analyze import analyze_image, is_dark_palette, render_html


IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.webp', '.gif'}


def find_images(directory: Path) -> list[Path]:
    """Find all image files in directory."""
    return sorted(p for p in directory.iterdir()
                  if p.is_file() and p.suffix.lower() in IMAGE_EXTENSIONS)


def theme_image(image_path: Path, output_dir: Path) -> str:
    """
    Analyze one image and write its preview next to the others.

    Returns:
        One-line summary of the theme.

    Raises:
        DecodeError: If the image cannot be decoded.
        OSError: If the preview cannot be written.
    """
    result = analyze_image(str(image_path))
    if not result.ok:
        raise result.error

    preview = output_dir / f"{image_path.stem}-theme.html"
    if preview.exists():
        print(f"  Warning: Overwriting {preview.name}", file=sys.stderr)
    preview.write_text(render_html(result.palette, result.theme, str(image_path)))

    polarity = "dark" if is_dark_palette(result.palette) else "light"
    theme = result.theme
    return f"{polarity} {theme.background}/{theme.text}/{theme.accent}"


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Batch derive section themes and generate HTML previews.'
    )
    parser.add_argument('--input', '-i', required=True,
                        help='Directory containing images to analyze')
    parser.add_argument('--output', '-o', required=True,
                        help='Directory for HTML preview files')
    args = parser.parse_args(argv)

    input_dir = Path(args.input)
    output_dir = Path(args.output)

    if not input_dir.is_dir():
        print(f"Error: Input directory not found: {input_dir}", file=sys.stderr)
        sys.exit(2)

    images = find_images(input_dir)
    if not images:
        print(f"No images found in {input_dir}", file=sys.stderr)
        sys.exit(2)

    output_dir.mkdir(parents=True, exist_ok=True)

    failed = []
    started = time.perf_counter()

    for i, image_path in enumerate(images, 1):
        prefix = f"[{i}/{len(images)}] {image_path.name} →"
        image_started = time.perf_counter()
        try:
            summary = theme_image(image_path, output_dir)
        except (ValueError, OSError) as e:
            failed.append((image_path.name, f"{type(e).__name__}: {e}"))
            print(f"{prefix} ERROR: {failed[-1][1]}", file=sys.stderr)
            continue
        print(f"{prefix} {summary} ({time.perf_counter() - image_started:.2f}s)")

    elapsed = time.perf_counter() - started
    succeeded = len(images) - len(failed)

    print()
    print(f"Completed: {succeeded}/{len(images)} succeeded in {elapsed:.2f}s")
    if succeeded:
        print(f"Average: {elapsed / succeeded:.2f}s per image")
    if failed:
        print(f"Failed ({len(failed)}):")
        for name, error in failed:
            print(f"  - {name}: {error}")
        sys.exit(1)


if __name__ == '__main__':
    main()
