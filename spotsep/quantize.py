"""Palette reduction with pluggable quantization/dithering strategies."""

import logging
from typing import Dict, Optional, Tuple, Type

import numpy as np
from PIL import Image
from sklearn.cluster import KMeans

from .types import (
    ConfigError,
    ImageArray,
    MAX_COLORS,
    MAX_DITHER,
    MIN_COLORS,
    MIN_DITHER,
    PaletteEntry,
    QuantizedImage,
    RasterImage,
    check_int_range,
)

logger = logging.getLogger(__name__)

# 4x4 Bayer threshold matrix, normalized to [0, 1)
BAYER_4X4 = np.array([
    [0, 8, 2, 10],
    [12, 4, 14, 6],
    [3, 11, 1, 9],
    [15, 7, 13, 5],
], dtype=np.float32) / 16.0

# Floyd-Steinberg neighbors as (dy, dx, weight), in the order a row-major
# scan would add them to any one target pixel
DIFFUSION_WEIGHTS = (
    (1, -1, 3 / 16),
    (1, 0, 5 / 16),
    (1, 1, 1 / 16),
    (0, 1, 7 / 16),
)


def validate_quantization_params(color_count: int, dither_strength: int) -> None:
    """Check palette size and dither strength before any pixel work.

    Raises:
        ConfigError: If either value is outside its closed range
    """
    check_int_range("color_count", color_count, MIN_COLORS, MAX_COLORS)
    check_int_range("dither_strength", dither_strength, MIN_DITHER, MAX_DITHER)


def nearest_palette_index(pixels: np.ndarray, palette: np.ndarray) -> np.ndarray:
    """Index of the nearest palette color (squared RGB distance) per pixel.

    Ties resolve to the lowest palette index.
    """
    pixels = pixels.astype(np.float32)
    best = np.full(pixels.shape[:-1], np.inf, dtype=np.float32)
    labels = np.zeros(pixels.shape[:-1], dtype=np.int32)
    for idx, color in enumerate(palette.astype(np.float32)):
        dist = np.sum((pixels - color) ** 2, axis=-1)
        closer = dist < best
        best[closer] = dist[closer]
        labels[closer] = idx
    return labels


class QuantizationStrategy:
    """Palette selection plus pixel assignment.

    Subclasses implement ``build_palette`` and ``assign``. Output must be
    deterministic for a given (image, n_colors, dither_strength).
    """

    name = "base"

    def build_palette(self, pixels: ImageArray, n_colors: int) -> np.ndarray:
        raise NotImplementedError

    def assign(self, pixels: ImageArray, palette: np.ndarray, strength: float) -> np.ndarray:
        h, w = pixels.shape[:2]
        work = pixels.astype(np.float32)
        pal = palette.astype(np.float32)
        labels = np.empty((h, w), dtype=np.int32)

        # Pixel (y, x) only receives error from pixels with a smaller x + 2y,
        # so every anti-diagonal x + 2y == t is processed as one batch.
        for t in range(w + 2 * (h - 1)):
            ys = np.arange(max(0, (t - w + 2) // 2), min(h - 1, t // 2) + 1)
            xs = t - 2 * ys

            old = np.clip(work[ys, xs], 0.0, 255.0)
            idx = np.argmin(np.sum((old[:, None, :] - pal[None, :, :]) ** 2, axis=2), axis=1)
            labels[ys, xs] = idx

            err = (old - pal[idx]) * strength
            for dy, dx, weight in DIFFUSION_WEIGHTS:
                ty, tx = ys + dy, xs + dx
                inside = (ty < h) & (tx >= 0) & (tx < w)
                work[ty[inside], tx[inside]] += err[inside] * weight

        return labels


class SelectiveOrderedStrategy(QuantizationStrategy):
    """Median-cut palette with ordered (Bayer) dithering."""

    name = "selective"

    def build_palette(self, pixels: ImageArray, n_colors: int) -> np.ndarray:
        quantized = Image.fromarray(pixels).quantize(
            colors=n_colors,
            method=Image.Quantize.MEDIANCUT,
            dither=Image.Dither.NONE,
        )
        raw = np.array(quantized.getpalette(), dtype=np.uint8).reshape(-1, 3)
        used = np.unique(np.array(quantized))
        return raw[used][:n_colors]

    def assign(self, pixels: ImageArray, palette: np.ndarray, strength: float) -> np.ndarray:
        h, w = pixels.shape[:2]
        size = BAYER_4X4.shape[0]
        bayer = np.tile(BAYER_4X4, (h // size + 1, w // size + 1))[:h, :w]

        # Amplitude ~ average spacing between palette levels
        spread = 255.0 / max(len(palette) - 1, 1)
        offset = (bayer - 0.5) * spread * strength
        work = pixels.astype(np.float32) + offset[..., None]
        return nearest_palette_index(np.clip(work, 0.0, 255.0), palette)


STRATEGIES: Dict[str, Type[QuantizationStrategy]] = {
    AdaptiveDiffusionStrategy.name: AdaptiveDiffusionStrategy,
    SelectiveOrderedStrategy.name: SelectiveOrderedStrategy,
}


def get_strategy(name: str) -> QuantizationStrategy:
    """Instantiate a registered strategy by name."""
    try:
        return STRATEGIES[name.lower()]()
    except (KeyError, AttributeError):
        raise ConfigError(
            f"Unknown quantization strategy {name!r}, expected one of {sorted(STRATEGIES)}"
        ) from None


def pad_palette(palette: np.ndarray, n_colors: int) -> np.ndarray:
    """Repeat existing colors until the palette has ``n_colors`` entries."""
    if len(palette) == 0:
        raise ValueError("Strategy produced an empty palette")
    if len(palette) >= n_colors:
        return palette[:n_colors]
    repeats = [palette[i % len(palette)] for i in range(n_colors - len(palette))]
    logger.info(f"Image supports only {len(palette)} colors, padding palette to {n_colors}")
    return np.vstack([palette, np.array(repeats, dtype=np.uint8)])


def order_by_coverage(labels: np.ndarray, palette: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Reorder palette by pixel count descending, ties by color value, and remap labels."""
    counts = np.bincount(labels.ravel(), minlength=len(palette))
    keys = sorted(
        range(len(palette)),
        key=lambda i: (-int(counts[i]), tuple(int(c) for c in palette[i]), i),
    )
    order = np.array(keys, dtype=np.int32)
    remap = np.empty_like(order)
    remap[order] = np.arange(len(order), dtype=np.int32)
    return remap[labels], palette[order]


def reduce_palette(
    image: RasterImage,
    color_count: int,
    dither_strength: int,
    strategy: Optional[QuantizationStrategy] = None,
) -> QuantizedImage:
    """Reduce an image to ``color_count`` palette entries.

    Args:
        image: Source raster (not modified)
        color_count: Palette size, 2-12
        dither_strength: Dithering strength, 1-100
        strategy: Quantization strategy, adaptive diffusion if None

    Returns:
        QuantizedImage with exactly ``color_count`` entries indexed 0..n-1

    Raises:
        ConfigError: If parameters are out of range or quantization fails
    """
    validate_quantization_params(color_count, dither_strength)
    strategy = strategy or AdaptiveDiffusionStrategy()

    try:
        labels, palette = strategy.quantize(image.pixels, int(color_count), int(dither_strength))
    except Exception as e:
        raise ConfigError(f"Palette reduction failed: {e}") from e

    entries = [
        PaletteEntry(index=i, color=(int(c[0]), int(c[1]), int(c[2])))
        for i, c in enumerate(palette)
    ]
    logger.info(
        f"Reduced {image.width}x{image.height} image to {len(entries)} colors "
        f"({strategy.name}, dither {dither_strength})"
    )
    return QuantizedImage(label_map=labels, palette=entries)
