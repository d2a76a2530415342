"""Common types and exceptions for spotsep."""

import numbers
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import List, Optional, Tuple, Union

import numpy as np

# Type aliases
ImageArray = np.ndarray
Mask = np.ndarray
RGB = Tuple[int, int, int]

MIN_COLORS = 2
MAX_COLORS = 12
MIN_DITHER = 1
MAX_DITHER = 100
FULL_INK_DENSITY = 100
OUTPUT_FORMATS = ("TIFF", "PNG")


class SeparationError(Exception):
    """Base exception for separation errors."""

    pass


class ConfigError(SeparationError):
    """Invalid configuration or palette reduction failure. Fatal to a run."""

    pass


class ChannelBuildError(SeparationError):
    """Failure building a single channel. Recoverable, scoped to one entry."""

    pass


class PipelineState(Enum):
    """Stages of a single separation run."""

    QUANTIZING = auto()
    BUILDING_CHANNELS = auto()
    ORDERING = auto()
    DONE = auto()


@dataclass(frozen=True, eq=False)
class RasterImage:
    """Source RGB raster. The pixel array is made read-only on construction."""

    pixels: ImageArray
    source_path: str = ""

    def __post_init__(self):
        pixels = self.pixels
        if pixels.ndim != 3 or pixels.shape[2] != 3:
            raise SeparationError(f"Expected HxWx3 RGB array, got shape {pixels.shape}")
        if pixels.dtype != np.uint8:
            raise SeparationError(f"Expected uint8 pixels, got {pixels.dtype}")
        if pixels.size == 0:
            raise SeparationError("Cannot separate empty image")
        pixels = pixels.copy() if pixels.flags.writeable else pixels
        pixels.flags.writeable = False
        object.__setattr__(self, "pixels", pixels)

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @classmethod
    def from_array(cls, image: np.ndarray, source_path: str = "") -> "RasterImage":
        """Create a raster from a grayscale, RGB or RGBA array.

        Float arrays are treated as [0, 1]. RGBA is composited on white.
        """
        image = np.asarray(image)
        if image.ndim == 2:
            image = np.stack([image] * 3, axis=-1)

        if image.ndim != 3:
            raise SeparationError(f"Expected 2D or 3D array, got {image.ndim}D")

        if np.issubdtype(image.dtype, np.floating):
            image = np.clip(image, 0.0, 1.0) * 255.0
        image = image.astype(np.float32)

        if image.shape[2] == 4:
            alpha = image[..., 3:4] / 255.0
            image = image[..., :3] * alpha + 255.0 * (1 - alpha)
        elif image.shape[2] != 3:
            raise SeparationError(f"Expected 3 or 4 channels, got {image.shape[2]}")

        pixels = np.clip(np.rint(image), 0, 255).astype(np.uint8)
        return cls(pixels=pixels, source_path=source_path)


@dataclass(frozen=True)
class PaletteEntry:
    """One palette color and its position in the palette."""

    index: int
    color: RGB

    @property
    def hex(self) -> str:
        """Canonical uppercase hex, no leading marker."""
        return "{:02X}{:02X}{:02X}".format(*self.color)


@dataclass
class QuantizedImage:
    """Per-pixel palette assignment produced by palette reduction."""

    label_map: np.ndarray
    palette: List[PaletteEntry]

    @property
    def palette_array(self) -> np.ndarray:
        return np.array([entry.color for entry in self.palette], dtype=np.uint8)

    def render(self) -> ImageArray:
        """Render the assignment back to RGB (for previews only)."""
        return self.palette_array[self.label_map]


@dataclass
class SeparationConfig:
    """Configuration for a separation run."""

    # Palette reduction
    color_count: int = 6
    dither_strength: int = 20
    strategy: str = "adaptive"  # "adaptive" or "selective"

    # Channel extraction
    tolerance: int = 0  # color-range fuzziness, 0 = exact palette index
    min_area: int = 0  # speck removal in pixels, 0 = off
    max_workers: int = 1

    # Naming
    use_known_colors: bool = True

    # Production metadata
    min_stroke_mm: float = 0.3
    output_format: str = "TIFF"

    # Pre-quantization unsharp mask, off by default
    sharpen: bool = False
    sharpen_radius: float = 2.0

    def validate(self) -> None:
        """Raise ConfigError for any out-of-range value."""
        check_int_range("color_count", self.color_count, MIN_COLORS, MAX_COLORS)
        check_int_range("dither_strength", self.dither_strength, MIN_DITHER, MAX_DITHER)
        check_int_range("tolerance", self.tolerance, 0, 255)
        check_int_range("min_area", self.min_area, 0)
        check_int_range("max_workers", self.max_workers, 1)
        check_number("min_stroke_mm", self.min_stroke_mm)
        if self.min_stroke_mm < 0:
            raise ConfigError(f"min_stroke_mm must be >= 0, got {self.min_stroke_mm}")
        check_number("sharpen_radius", self.sharpen_radius)
        if self.sharpen_radius <= 0:
            raise ConfigError(f"sharpen_radius must be > 0, got {self.sharpen_radius}")
        if not isinstance(self.output_format, str) or self.output_format.upper() not in OUTPUT_FORMATS:
            raise ConfigError(
                f"output_format must be one of {OUTPUT_FORMATS}, got {self.output_format!r}"
            )


def check_int_range(name: str, value, low: int, high: Optional[int] = None) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    if high is None:
        if value < low:
            raise ConfigError(f"{name} must be >= {low}, got {value}")
    elif not low <= value <= high:
        raise ConfigError(f"{name} must be in [{low}, {high}], got {value}")


def check_number(name: str, value) -> None:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ConfigError(f"{name} must be a number, got {value!r}")


@dataclass(eq=False)
class Channel:
    """One spot-color separation: a coverage mask plus print metadata."""

    name: str
    palette_index: int
    color: RGB
    mask: Mask
    ink_density: int = FULL_INK_DENSITY
    opacity: int = 100
    knockout: bool = False

    @property
    def hex(self) -> str:
        return "{:02X}{:02X}{:02X}".format(*self.color)

    @property
    def coverage(self) -> float:
        """Fraction of pixels carrying ink."""
        return float(np.count_nonzero(self.mask)) / self.mask.size


@dataclass(frozen=True)
class ChannelFailure:
    """Failure record for one palette entry."""

    palette_index: int
    color_hex: str
    message: str


@dataclass
class SeparationReport:
    """Result of a separation run."""

    channels: List[Channel] = field(default_factory=list)
    failures: List[ChannelFailure] = field(default_factory=list)
    palette: List[PaletteEntry] = field(default_factory=list)
    config: Optional[SeparationConfig] = None

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def degraded(self) -> bool:
        """True when the run completed but lost at least one channel."""
        return bool(self.failures)


BuildResult = Union[Channel, ChannelFailure]
