"""Writing separation reports to production files."""

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

import numpy as np
from PIL import Image

from .types import Channel, ConfigError, OUTPUT_FORMATS, SeparationConfig, SeparationReport

logger = logging.getLogger(__name__)

TIFF_NAME = "separations.tif"
MANIFEST_NAME = "separations.json"
REPORT_NAME = "production_report.txt"
ERROR_LOG_NAME = "error_log.txt"


def mask_to_image(channel: Channel) -> Image.Image:
    """Grayscale image of a channel's coverage: 255 where ink prints."""
    return Image.fromarray(channel.mask.astype(np.uint8) * 255)


def channel_slug(channel: Channel) -> str:
    """File-system friendly form of a channel name."""
    slug = re.sub(r"[^A-Za-z0-9]+", "_", channel.name).strip("_")
    return slug or f"channel_{channel.palette_index + 1}"


def export_report(
    report: SeparationReport,
    output_dir: Union[str, Path],
    output_format: Optional[str] = None,
) -> List[Path]:
    """Write channels, manifest, production report and error log.

    Args:
        report: Result of a separation run
        output_dir: Directory to write into (created if missing)
        output_format: "TIFF" or "PNG". Defaults to the report's config.

    Returns:
        Paths of all files written
    """
    config = report.config or SeparationConfig()
    fmt = (output_format or config.output_format).upper()
    if fmt not in OUTPUT_FORMATS:
        raise ConfigError(f"output_format must be one of {OUTPUT_FORMATS}, got {fmt!r}")

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    written: List[Path] = []
    if report.channels:
        if fmt == "TIFF":
            written.append(write_tiff(report.channels, output_dir / TIFF_NAME))
        else:
            written.extend(write_pngs(report.channels, output_dir))
    else:
        logger.warning("No channels to export")

    written.append(write_manifest(report, output_dir / MANIFEST_NAME))
    written.append(write_production_report(report, output_dir / REPORT_NAME, output_dir))
    if report.failures:
        written.append(append_error_log(report, output_dir / ERROR_LOG_NAME))

    logger.info(f"Exported {len(report.channels)} channels to {output_dir}")
    return written


def write_tiff(channels: List[Channel], path: Path) -> Path:
    """One multi-page TIFF, one page per channel in print order."""
    pages = [mask_to_image(ch) for ch in channels]
    pages[0].save(
        path,
        save_all=True,
        append_images=pages[1:],
        compression="tiff_deflate",
    )
    return path


def write_pngs(channels: List[Channel], output_dir: Path) -> List[Path]:
    """One grayscale PNG per channel, prefixed with its print position."""
    paths = []
    for position, channel in enumerate(channels, start=1):
        path = output_dir / f"{position:02d}_{channel_slug(channel)}.png"
        mask_to_image(channel).save(path)
        paths.append(path)
    return paths


def write_manifest(report: SeparationReport, path: Path) -> Path:
    """Channel metadata as JSON, in print order."""
    config = report.config or SeparationConfig()
    data = {
        "color_count": config.color_count,
        "dither_strength": config.dither_strength,
        "min_stroke_mm": config.min_stroke_mm,
        "channels": [
            {
                "order": position,
                "name": ch.name,
                "palette_index": ch.palette_index,
                "color": ch.hex,
                "opacity": ch.opacity,
                "knockout": ch.knockout,
                "ink_density": ch.ink_density,
                "coverage": round(ch.coverage, 6),
            }
            for position, ch in enumerate(report.channels, start=1)
        ],
        "failures": [
            {"palette_index": f.palette_index, "color": f.color_hex, "message": f.message}
            for f in report.failures
        ],
    }
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path


def format_production_report(report: SeparationReport, output_location: Union[str, Path]) -> str:
    """Human-readable summary of a run."""
    config = report.config or SeparationConfig()
    lines = [
        "Spot Color Separation Report",
        "============================",
        f"Output location:    {output_location}",
        f"Channel count:      {config.color_count}",
        f"Dither strength:    {config.dither_strength}",
        f"Minimum stroke:     {config.min_stroke_mm}mm",
        "",
        f"{'#':>2}  {'Name':<20} {'Color':<7} {'Opacity':>7} {'Knockout':>8} {'Ink':>4} {'Coverage':>8}",
    ]
    for position, ch in enumerate(report.channels, start=1):
        lines.append(
            f"{position:>2}  {ch.name:<20} {ch.hex:<7} {ch.opacity:>7} "
            f"{'yes' if ch.knockout else 'no':>8} {ch.ink_density:>4} {ch.coverage:>8.1%}"
        )

    if report.failures:
        lines.append("")
        lines.append(f"Failed channels ({len(report.failures)}):")
        for failure in report.failures:
            lines.append(
                f"  palette {failure.palette_index} #{failure.color_hex}: {failure.message}"
            )
    return "\n".join(lines) + "\n"


def write_production_report(
    report: SeparationReport, path: Path, output_location: Union[str, Path]
) -> Path:
    path.write_text(format_production_report(report, output_location), encoding="utf-8")
    return path


def append_error_log(report: SeparationReport, path: Path) -> Path:
    """Append one timestamped line per channel failure."""
    stamp = datetime.now().isoformat(timespec="seconds")
    with path.open("a", encoding="utf-8") as log:
        for failure in report.failures:
            log.write(
                f"[{stamp}] channel {failure.palette_index} #{failure.color_hex}: {failure.message}\n"
            )
    return path


def append_fatal_error(error: BaseException, output_dir: Union[str, Path]) -> Path:
    """Append a timestamped line for an error that ended a run."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / ERROR_LOG_NAME
    stamp = datetime.now().isoformat(timespec="seconds")
    with path.open("a", encoding="utf-8") as log:
        log.write(f"[{stamp}] fatal {type(error).__name__}: {error}\n")
    return path
