"""
Command-line driver.

Loads a TOML scene, renders it with the selected algorithm and writes
the averaged image.
"""

from __future__ import annotations
import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

from .image import Image, ImageFormat, format_from_extension
from .image_io import ImageIOError
from .path_tracer import PathTracer, PathTracerConfig
from .render_job import RenderJob
from .scene import SceneDefaults, SceneLoadError
from .scene_loader import load_scene

logger = logging.getLogger(__name__)

ALGORITHMS = ('path_tracer',)


def build_parser() -> argparse.ArgumentParser:
    defaults = PathTracerConfig()
    parser = argparse.ArgumentParser(
        prog='lumenforge',
        description='LumenForge - offline physically-based path tracer',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  lumenforge scenes/cornell_box.toml -o cornell.exr -s 256
  lumenforge scene.toml -w 640 -H 480 -o preview.png --max-path-len 8
        '''
    )
    parser.add_argument('scene', help='Scene file (TOML)')
    parser.add_argument('-o', '--output', default='render.exr',
                        help='Output image (default: render.exr)')
    parser.add_argument('-f', '--format', default='auto',
                        choices=[fmt.value for fmt in ImageFormat],
                        help='Output format (default: from the file extension)')
    parser.add_argument('-a', '--algorithm', default='path_tracer', choices=ALGORITHMS,
                        help='Rendering algorithm (default: path_tracer)')
    parser.add_argument('-s', '--samples', type=int, default=16,
                        help='Samples per pixel (default: 16)')
    parser.add_argument('--samples-per-frame', type=int, default=1,
                        help='Samples per pixel between progress reports (default: 1)')
    parser.add_argument('-w', '--width', type=int, default=1080,
                        help='Image width (default: 1080)')
    parser.add_argument('-H', '--height', type=int, default=720,
                        help='Image height (default: 720)')
    parser.add_argument('-t', '--threads', type=int, default=0,
                        help='Number of threads (0=auto)')
    parser.add_argument('--tile-size', type=int, default=32,
                        help='Tile edge length in pixels (default: 32)')
    parser.add_argument('--max-path-len', type=int, default=defaults.max_path_len,
                        help=f'Maximum path length (default: {defaults.max_path_len})')
    parser.add_argument('--min-rr-path-len', type=int, default=defaults.min_rr_path_len,
                        help='Path length at which Russian roulette starts '
                             f'(default: {defaults.min_rr_path_len})')
    parser.add_argument('--min-survival-prob', type=float, default=defaults.min_survival_prob,
                        help='Minimum Russian roulette survival probability '
                             f'(default: {defaults.min_survival_prob})')
    parser.add_argument('--max-survival-prob', type=float, default=defaults.max_survival_prob,
                        help='Maximum Russian roulette survival probability '
                             f'(default: {defaults.max_survival_prob})')
    parser.add_argument('--ray-offset', type=float, default=defaults.ray_offset,
                        help=f'Offset applied to secondary rays (default: {defaults.ray_offset})')
    parser.add_argument('--strict', action='store_true',
                        help='Fail on malformed lines in mesh files')
    parser.add_argument('-v', '--verbose', action='count', default=0,
                        help='Increase log verbosity (-v info, -vv debug)')
    return parser


def configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format='%(levelname)s %(name)s: %(message)s')


def save_output(image: Image, output: Path, fmt: ImageFormat) -> Path:
    """Save the image, falling back to OpenEXR if the chosen codec fails."""
    if fmt == ImageFormat.AUTO:
        fmt = format_from_extension(output)
        if fmt == ImageFormat.AUTO:
            fmt = ImageFormat.EXR
    try:
        image.save(output, fmt)
        return output
    except ImageIOError as e:
        if fmt == ImageFormat.EXR:
            raise
        fallback = output.with_suffix('.exr')
        logger.warning("%s; saving as OpenEXR to %s instead", e, fallback)
        image.save(fallback, ImageFormat.EXR)
        return fallback


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    if args.width <= 0 or args.height <= 0:
        print("error: image size must be positive", file=sys.stderr)
        return 1
    if args.samples <= 0:
        print("error: sample count must be positive", file=sys.stderr)
        return 1

    try:
        config = PathTracerConfig(
            max_path_len=args.max_path_len,
            min_rr_path_len=args.min_rr_path_len,
            min_survival_prob=args.min_survival_prob,
            max_survival_prob=args.max_survival_prob,
            ray_offset=args.ray_offset,
        )
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    defaults = SceneDefaults(aspect_ratio=args.width / args.height)
    try:
        scene = load_scene(args.scene, defaults, strict=args.strict)
    except SceneLoadError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    summary = scene.summary()
    print(f"Scene: {args.scene}")
    print(f"  BSDFs: {summary['bsdfs']}")
    print(f"  Lights: {summary['lights']}")
    print(f"  Textures: {summary['textures']}")
    print(f"  Images: {summary['images']}")

    image = Image(args.width, args.height)
    renderer = PathTracer(scene, config, tile_size=args.tile_size, num_threads=args.threads)
    job = RenderJob(renderer, image, args.samples, args.samples_per_frame)

    print(f"\nRendering {args.width}x{args.height}, {args.samples} samples per pixel, "
          f"{renderer.num_threads} threads")
    start_time = time.time()

    def on_frame(samples_done: int) -> bool:
        bar_len = 40
        filled = int(bar_len * samples_done / args.samples)
        bar = '#' * filled + '-' * (bar_len - filled)
        print(f"\r  [{bar}] {samples_done}/{args.samples}", end='', flush=True)
        return True

    job.start(on_frame)
    try:
        job.wait(0)
    except KeyboardInterrupt:
        print("\nInterrupted, finishing the current frame...")
        job.cancel()
        job.wait(0)
    print()

    if job.error is not None:
        print(f"error: rendering failed: {job.error}", file=sys.stderr)
        return 1
    if job.samples_done == 0:
        print("error: no samples were rendered", file=sys.stderr)
        return 1

    elapsed = time.time() - start_time
    print(f"Rendered {job.samples_done} samples per pixel in {elapsed:.2f}s")

    image.scale(1.0 / job.samples_done)
    try:
        written = save_output(image, Path(args.output), ImageFormat(args.format))
    except (ImageIOError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    print(f"Image saved to {written}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
