"""spotsep: spot-color separation for print production.

Reduces a continuous-tone raster to a bounded palette, extracts one coverage
mask per palette color, names each separation from a known-color table and
orders the separations for printing.
"""

from .naming import ColorNameResolver, KnownColorTable
from .pipeline import SeparationPipeline, separate_image
from .types import (
    Channel,
    ChannelBuildError,
    ChannelFailure,
    ConfigError,
    PaletteEntry,
    RasterImage,
    SeparationConfig,
    SeparationError,
    SeparationReport,
)

__version__ = "0.1.0"
__all__ = [
    "Channel",
    "ChannelBuildError",
    "ChannelFailure",
    "ColorNameResolver",
    "ConfigError",
    "KnownColorTable",
    "PaletteEntry",
    "RasterImage",
    "SeparationConfig",
    "SeparationError",
    "SeparationPipeline",
    "SeparationReport",
    "separate_image",
]
