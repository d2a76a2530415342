"""Command-line interface for spotsep."""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from .export import append_fatal_error, export_report
from .naming import KnownColorTable, load_known_colors
from .pipeline import SeparationPipeline
from .ingest import load_raster
from .quantize import STRATEGIES
from .types import ConfigError, OUTPUT_FORMATS, SeparationConfig, SeparationError

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog="spotsep",
        description="Spot-color separation for screen and offset printing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  spotsep -i artwork.png
  spotsep -i artwork.png -o seps/ --colors 8 --dither 35
  spotsep -i artwork.png --format PNG --strategy selective
  spotsep -i artwork.png --known-colors pantone.json --workers 4
        """,
    )

    parser.add_argument("-i", "--input", required=True, help="Input image file path")

    parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Output directory (default: <input name>_separations next to the input)",
    )

    parser.add_argument(
        "--colors",
        "-c",
        type=int,
        default=6,
        help="Number of separations, 2-12 (default: 6)",
    )

    parser.add_argument(
        "--dither",
        "-d",
        type=int,
        default=20,
        help="Dither strength, 1-100 (default: 20)",
    )

    parser.add_argument(
        "--strategy",
        choices=sorted(STRATEGIES),
        default="adaptive",
        help="Quantization strategy: adaptive (k-means + error diffusion) "
        "or selective (median cut + ordered dither) (default: adaptive)",
    )

    parser.add_argument(
        "--format",
        "-f",
        dest="output_format",
        type=str.upper,
        choices=OUTPUT_FORMATS,
        default="TIFF",
        help="Output format: multi-page TIFF or one PNG per channel (default: TIFF)",
    )

    parser.add_argument(
        "--min-stroke",
        type=float,
        default=0.3,
        help="Minimum stroke width in mm, recorded in the report (default: 0.3)",
    )

    parser.add_argument(
        "--tolerance",
        type=int,
        default=0,
        help="Color-range tolerance per RGB component (default: 0, exact)",
    )

    parser.add_argument(
        "--min-area",
        type=int,
        default=0,
        help="Remove mask specks smaller than this many pixels (default: 0, off)",
    )

    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Threads used to build channels (default: 1)",
    )

    parser.add_argument(
        "--sharpen",
        action="store_true",
        help="Unsharp-mask the artwork before palette reduction",
    )

    parser.add_argument(
        "--sharpen-radius",
        type=float,
        default=2.0,
        help="Unsharp mask radius in pixels, used with --sharpen (default: 2.0)",
    )

    parser.add_argument(
        "--known-colors",
        default=None,
        help="JSON file mapping hex colors to production names",
    )

    parser.add_argument(
        "--no-known-colors",
        action="store_true",
        help="Skip known-color lookup and use generic channel names",
    )

    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )

    return parser


def main(args: Optional[list] = None) -> int:
    """Main entry point for CLI.

    Args:
        args: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, 1 for error)
    """
    parser = create_parser()
    parsed = parser.parse_args(args)

    logging.basicConfig(
        level=logging.DEBUG if parsed.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    input_path = Path(parsed.input)
    if parsed.output:
        output_dir = Path(parsed.output)
    else:
        output_dir = input_path.with_name(f"{input_path.stem}_separations")

    config = SeparationConfig(
        color_count=parsed.colors,
        dither_strength=parsed.dither,
        strategy=parsed.strategy,
        tolerance=parsed.tolerance,
        min_area=parsed.min_area,
        max_workers=parsed.workers,
        use_known_colors=not parsed.no_known_colors,
        min_stroke_mm=parsed.min_stroke,
        output_format=parsed.output_format,
        sharpen=parsed.sharpen,
        sharpen_radius=parsed.sharpen_radius,
    )

    try:
        known_colors = (
            load_known_colors(parsed.known_colors) if parsed.known_colors else KnownColorTable()
        )

        print(f"Processing: {parsed.input}")
        print(f"  Colors: {config.color_count}")
        print(f"  Dither: {config.dither_strength} ({config.strategy})")

        image = load_raster(input_path)
        report = SeparationPipeline(known_colors=known_colors).run(image, config)
        export_report(report, output_dir)

        for position, channel in enumerate(report.channels, start=1):
            print(f"  {position:2d}. {channel.name} #{channel.hex} opacity {channel.opacity}%")
        print(f"  Output saved: {output_dir}")
        print(f"  Minimum stroke: {config.min_stroke_mm}mm")

        if report.failures:
            print(
                f"Warning: {len(report.failures)} of {config.color_count} channels failed, "
                f"see {output_dir / 'error_log.txt'}",
                file=sys.stderr,
            )
        return 0

    except FileNotFoundError as e:
        return _fail(f"Error: {e}", e, output_dir)
    except ConfigError as e:
        return _fail(f"Configuration error: {e}", e, output_dir)
    except (SeparationError, ValueError) as e:
        return _fail(f"Error processing image: {e}", e, output_dir)
    except Exception as e:
        return _fail(f"Unexpected error: {e}", e, output_dir)


def _fail(message: str, error: Exception, output_dir: Path) -> int:
    """Report a fatal error on stderr and in the output folder's error log."""
    print(message, file=sys.stderr)
    try:
        append_fatal_error(error, output_dir)
    except OSError as log_error:
        logger.warning(f"Could not write error log in {output_dir}: {log_error}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
