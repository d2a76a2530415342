"""Raster image ingestion."""

from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image, ImageFilter, ImageOps

from .types import RasterImage, SeparationError


def load_raster(path: Union[str, Path]) -> RasterImage:
    """
    Load an image file as an RGB raster.

    EXIF orientation is applied; transparent images are composited on white.

    Args:
        path: Path to image file

    Returns:
        RasterImage with uint8 RGB pixels

    Raises:
        FileNotFoundError: If file doesn't exist
        SeparationError: If file cannot be loaded
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Image file not found: {path}")

    if not path.is_file():
        raise SeparationError(f"Path is not a file: {path}")

    try:
        with Image.open(path) as img:
            img = ImageOps.exif_transpose(img)

            if img.mode in ('RGBA', 'LA', 'P', 'PA'):
                img = img.convert('RGBA')
                background = Image.new('RGB', img.size, (255, 255, 255))
                background.paste(img, mask=img.split()[3])
                img = background
            elif img.mode != 'RGB':
                img = img.convert('RGB')

            pixels = np.array(img, dtype=np.uint8)

    except (IOError, OSError) as e:
        raise SeparationError(f"Failed to load image {path}: {e}") from e

    return RasterImage(pixels=pixels, source_path=str(path))


def sharpen_raster(
    image: RasterImage, radius: float = 2.0, percent: int = 150, threshold: int = 3
) -> RasterImage:
    """Unsharp-mask a copy of ``image`` to crisp edges before quantization."""
    sharpened = Image.fromarray(np.asarray(image.pixels)).filter(
        ImageFilter.UnsharpMask(radius=radius, percent=percent, threshold=threshold)
    )
    return RasterImage(pixels=np.array(sharpened, dtype=np.uint8), source_path=image.source_path)
