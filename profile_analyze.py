#!/usr/bin/env python3
"""Profile the theme pipeline to identify performance bottlenecks."""

import argparse
import cProfile
import io
import pstats
import sys
import time
from pathlib import Path

from analyze import render, synthesize_theme
from batch_analyze import find_images
from extract_colors import DecodeError, extract_palette, load_pixels, rank_buckets


def profile_image(image_path: str, verbose: bool = True):
    """Time a single image through each pipeline stage."""

    if verbose:
        print(f"\n{'='*60}")
        print(f"Profiling: {Path(image_path).name}")
        print(f"{'='*60}")

    timings = {}

    # Stage 1: Decode
    start = time.perf_counter()
    decoded = load_pixels(image_path)
    timings['decode'] = time.perf_counter() - start

    if verbose:
        print(f"  Source: {decoded.source_size[0]}x{decoded.source_size[1]}")
        print(f"  Sampled raster: {decoded.width}x{decoded.height}")
        print(f"  Buckets ranked: {len(rank_buckets(decoded.pixels))}")

    # Stage 2: Palette Extraction
    start = time.perf_counter()
    palette = extract_palette(decoded.pixels)
    timings['extract_palette'] = time.perf_counter() - start

    # Stage 3: Theme Synthesis
    start = time.perf_counter()
    theme = synthesize_theme(palette)
    timings['synthesize_theme'] = time.perf_counter() - start

    # Stage 4: Render
    start = time.perf_counter()
    render(palette, theme)
    timings['render'] = time.perf_counter() - start

    total = sum(timings.values())
    timings['total'] = total

    if verbose:
        print(f"\nStage timings:")
        for stage, t in timings.items():
            pct = (t / total * 100) if stage != 'total' and total else 100
            print(f"  {stage:20s}: {t:6.4f}s ({pct:5.1f}%)")

    return timings, decoded


def detailed_profile(image_path: str, repeat: int = 50):
    """Run cProfile over repeated palette extraction (the main compute stage)."""

    print(f"\n{'='*60}")
    print(f"Detailed profile of extract_palette() x{repeat}")
    print(f"{'='*60}")

    decoded = load_pixels(image_path)

    profiler = cProfile.Profile()
    profiler.enable()
    for _ in range(repeat):
        palette = extract_palette(decoded.pixels)
    profiler.disable()

    stream = io.StringIO()
    stats = pstats.Stats(profiler, stream=stream)
    stats.sort_stats('cumulative')
    stats.print_stats(20)

    print(stream.getvalue())

    return palette


def main(argv=None):
    parser = argparse.ArgumentParser(description='Profile the theme pipeline.')
    parser.add_argument(
        '--input', '-i',
        default=str(Path(__file__).parent / "source_images"),
        help='Directory of images to profile'
    )
    args = parser.parse_args(argv)

    images_dir = Path(args.input)
    images = find_images(images_dir) if images_dir.is_dir() else []

    if not images:
        print(f"No images found in {images_dir}", file=sys.stderr)
        sys.exit(1)

    print(f"Found {len(images)} test images")

    all_timings = []
    for img in images:
        try:
            timings, decoded = profile_image(str(img))
        except DecodeError as e:
            print(f"  Skipping {img.name}: {e}", file=sys.stderr)
            continue
        all_timings.append((img.name, timings, decoded.width, decoded.height))

    print(f"\n{'='*60}")
    print("SUMMARY")
    print(f"{'='*60}")
    print(f"{'Image':<35} {'Raster':>10} {'Total':>10}")
    print("-" * 60)
    for name, timings, width, height in all_timings:
        print(f"{name:<35} {f'{width}x{height}':>10} {timings['total']:>9.4f}s")

    if all_timings:
        detailed_profile(str(images_dir / all_timings[0][0]))


if __name__ == "__main__":
    main()
