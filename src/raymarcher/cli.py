"""Render a scene document to a PNG image.

Usage:
    raymarcher SCENE [OUTPUT] [WIDTH] [HEIGHT] [options]

Arguments:
    SCENE               Path to a JSON scene document
    OUTPUT              Output file path (default: out.png)
    WIDTH               Image width in pixels (default: 640)
    HEIGHT              Image height in pixels (default: 360)

Options:
    --threads N         Maximum number of CPU render threads
    --repeat N          Render N times and report the mean render time
    --verbose           Show Taichi's informational log messages
    --quiet             Suppress progress output

Example:
    raymarcher examples/scenes/sphere.json sphere.png 320 180
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

import taichi as ti


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
    return number


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="raymarcher",
        description="Render a signed distance field scene with sphere tracing.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("scene", type=str, help="Path to a JSON scene document")
    parser.add_argument(
        "output",
        type=str,
        nargs="?",
        default="out.png",
        help="Output file path (default: out.png)",
    )
    parser.add_argument(
        "width",
        type=_positive_int,
        nargs="?",
        default=640,
        help="Image width in pixels (default: 640)",
    )
    parser.add_argument(
        "height",
        type=_positive_int,
        nargs="?",
        default=360,
        help="Image height in pixels (default: 360)",
    )
    parser.add_argument(
        "--threads",
        type=_positive_int,
        default=None,
        help="Maximum number of CPU render threads (default: all cores)",
    )
    parser.add_argument(
        "--repeat",
        type=_positive_int,
        default=1,
        help="Render N times and report the mean render time (default: 1)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show Taichi's informational log messages",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress progress output",
    )
    return parser.parse_args(argv)


def render_scene_file(
    scene_path: str | Path,
    output_path: str | Path = "out.png",
    width: int = 640,
    height: int = 360,
    repeat: int = 1,
    quiet: bool = False,
) -> Path:
    """Render a scene document and save the image as a PNG.

    Taichi must already be initialised.

    Args:
        scene_path: Path to the JSON scene document.
        output_path: Output file path (PNG).
        width: Image width in pixels.
        height: Image height in pixels.
        repeat: Number of renders to time. The last one is saved.
        quiet: If True, suppress progress output.

    Returns:
        Path to the saved image file.

    Raises:
        ValueError: If repeat is less than 1, or the scene or image size is
            invalid.
        OSError: If the scene cannot be read or the image cannot be written.
    """
    # Lazy imports to allow Taichi initialization first
    from raymarcher.core.renderer import CHANNELS, render
    from raymarcher.preview.export import save_png_from_buffer
    from raymarcher.scene.loader import load_scene

    if repeat < 1:
        raise ValueError(f"repeat must be at least 1, got {repeat}")

    if not quiet:
        print(f"Loading scene {scene_path}...")
    scene = load_scene(scene_path)

    if not quiet:
        print(f"Rendering {len(scene.objects)} objects at {width}x{height}...")

    buffer = bytearray(width * height * CHANNELS)
    timings = []
    for _ in range(repeat):
        start_time = time.perf_counter()
        render(scene, width, height, buffer)
        timings.append(time.perf_counter() - start_time)

    output_file = Path(output_path)
    save_png_from_buffer(buffer, width, height, output_file)

    if not quiet:
        mean_time = sum(timings) / len(timings)
        if repeat > 1:
            print(f"Mean render time over {repeat} runs: {mean_time:.3f}s")
        else:
            print(f"Render time: {mean_time:.3f}s")
        print(f"Saved to: {output_file.absolute()}")

    return output_file


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    init_kwargs = {"arch": ti.cpu, "log_level": ti.INFO if args.verbose else ti.WARN}
    if args.threads is not None:
        init_kwargs["cpu_max_num_threads"] = args.threads
    ti.init(**init_kwargs)

    try:
        render_scene_file(
            args.scene,
            args.output,
            width=args.width,
            height=args.height,
            repeat=args.repeat,
            quiet=args.quiet,
        )
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
