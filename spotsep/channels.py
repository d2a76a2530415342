"""Channel extraction: one coverage mask per palette entry."""

import logging
from typing import Callable, List, Optional

import numpy as np
from scipy import ndimage

from .naming import ColorNameResolver
from .ordering import initial_opacity
from .types import (
    Channel,
    ChannelBuildError,
    ChannelFailure,
    FULL_INK_DENSITY,
    BuildResult,
    PaletteEntry,
    QuantizedImage,
)

logger = logging.getLogger(__name__)

FailureSink = Callable[[ChannelFailure], None]


def log_failure(failure: ChannelFailure) -> None:
    """Default failure sink: log a warning."""
    logger.warning(
        f"Channel {failure.palette_index} (#{failure.color_hex}) skipped: {failure.message}"
    )


class CollectingSink:
    """Failure sink that keeps every failure it receives."""

    def __init__(self):
        self.failures: List[ChannelFailure] = []

    def __call__(self, failure: ChannelFailure) -> None:
        self.failures.append(failure)


def create_coverage_mask(quantized: QuantizedImage, entry: PaletteEntry, tolerance: int = 0) -> np.ndarray:
    """Select the pixels belonging to a palette entry.

    With zero tolerance this is exactly the pixels assigned to the entry's
    index. A positive tolerance also takes in pixels whose assigned palette
    color is within ``tolerance`` of the entry color on every RGB component.

    Args:
        quantized: Palette assignment for the source image
        entry: Palette entry to select
        tolerance: Per-component color distance, 0-255

    Returns:
        Binary mask (H, W)

    Raises:
        ChannelBuildError: If the entry index is outside the palette
    """
    if not 0 <= entry.index < len(quantized.palette):
        raise ChannelBuildError(
            f"Palette index {entry.index} out of bounds for {len(quantized.palette)} colors"
        )

    mask = quantized.label_map == entry.index
    if tolerance > 0:
        palette = quantized.palette_array.astype(np.int16)
        target = np.array(entry.color, dtype=np.int16)
        near = np.all(np.abs(palette - target) <= tolerance, axis=1)
        mask |= near[quantized.label_map]
    return mask


def clean_mask(mask: np.ndarray, min_area: int = 10) -> np.ndarray:
    """Clean mask by removing connected regions smaller than ``min_area`` pixels."""
    labeled, num_features = ndimage.label(mask)
    if num_features == 0:
        return mask.copy()

    sizes = np.bincount(labeled.ravel())
    small = sizes < min_area
    small[0] = False  # background
    cleaned = mask.copy()
    cleaned[small[labeled]] = False
    return cleaned


class ChannelBuilder:
    """Builds one separation channel per palette entry.

    Failures never escape ``build``: they are reported to the failure sink
    and returned as ChannelFailure records. A sink that raises is logged and
    otherwise ignored.
    """

    def __init__(
        self,
        tolerance: int = 0,
        min_area: int = 0,
        failure_sink: Optional[FailureSink] = None,
    ):
        self.tolerance = tolerance
        self.min_area = min_area
        self.failure_sink = failure_sink or log_failure

    def build(
        self,
        quantized: QuantizedImage,
        entry: PaletteEntry,
        resolver: ColorNameResolver,
    ) -> BuildResult:
        """Build the channel for ``entry``, or a failure record."""
        try:
            return self._assemble(quantized, entry, resolver)
        except ChannelBuildError as e:
            failure = ChannelFailure(entry.index, entry.hex, str(e))
        except MemoryError:
            failure = ChannelFailure(entry.index, entry.hex, "Out of memory building mask")
        except Exception as e:
            failure = ChannelFailure(entry.index, entry.hex, f"{type(e).__name__}: {e}")

        try:
            self.failure_sink(failure)
        except Exception:
            logger.exception(f"Failure sink raised while reporting channel {entry.index}")
        return failure

    def _coverage_mask(self, quantized: QuantizedImage, entry: PaletteEntry) -> np.ndarray:
        mask = create_coverage_mask(quantized, entry, self.tolerance)
        if self.min_area > 0:
            mask = clean_mask(mask, self.min_area)
        return mask

    def _assemble(
        self,
        quantized: QuantizedImage,
        entry: PaletteEntry,
        resolver: ColorNameResolver,
    ) -> Channel:
        mask = self._coverage_mask(quantized, entry)

        if mask.shape != quantized.label_map.shape:
            raise ChannelBuildError(
                f"Mask shape {mask.shape} does not match image {quantized.label_map.shape}"
            )
        if not mask.any():
            raise ChannelBuildError("Empty coverage mask")

        channel = Channel(
            name=resolver.resolve(entry.hex, entry.index),
            palette_index=entry.index,
            color=entry.color,
            mask=mask,
            ink_density=FULL_INK_DENSITY,
            opacity=initial_opacity(entry.index),
        )
        logger.debug(
            f"Built channel {channel.name!r} from #{entry.hex}: {channel.coverage:.1%} coverage"
        )
        return channel
