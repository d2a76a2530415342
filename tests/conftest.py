"""Pytest configuration and fixtures."""

import numpy as np
import pytest

from spotsep.types import RasterImage

STRIPE_COLORS = [
    (255, 0, 0),
    (0, 255, 0),
    (0, 0, 255),
    (255, 255, 0),
    (0, 255, 255),
    (255, 0, 255),
    (0, 0, 0),
    (255, 255, 255),
    (128, 128, 128),
    (255, 128, 0),
    (128, 0, 255),
    (0, 128, 64),
]


def make_stripes(n_colors: int, stripe_width: int = 6, height: int = 12) -> np.ndarray:
    """Image of ``n_colors`` vertical stripes, each a distinct flat color."""
    image = np.zeros((height, n_colors * stripe_width, 3), dtype=np.uint8)
    for i, color in enumerate(STRIPE_COLORS[:n_colors]):
        image[:, i * stripe_width:(i + 1) * stripe_width] = color
    return image


@pytest.fixture
def stripes():
    """Factory for flat-color stripe rasters."""

    def _make(n_colors: int, **kwargs) -> RasterImage:
        return RasterImage(pixels=make_stripes(n_colors, **kwargs))

    return _make


@pytest.fixture
def noisy_image():
    """Small continuous-tone raster with a fixed seed."""
    rng = np.random.default_rng(0)
    return RasterImage(pixels=rng.integers(0, 256, (16, 16, 3), dtype=np.uint8))
