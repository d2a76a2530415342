"""Main separation pipeline orchestrator."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Union

from .channels import ChannelBuilder, FailureSink
from .ingest import load_raster, sharpen_raster
from .naming import ColorNameResolver, KnownColorTable
from .ordering import order_channels
from .quantize import QuantizationStrategy, get_strategy, reduce_palette
from .types import (
    BuildResult,
    Channel,
    ChannelFailure,
    PipelineState,
    QuantizedImage,
    RasterImage,
    SeparationConfig,
    SeparationReport,
)

logger = logging.getLogger(__name__)


class SeparationPipeline:
    """Quantize, build channels, order.

    Collaborators (strategy, naming table, builder, failure sink) are injected
    once; each ``run`` call is an independent, single-shot run.
    """

    def __init__(
        self,
        strategy: Optional[QuantizationStrategy] = None,
        known_colors: Optional[KnownColorTable] = None,
        builder: Optional[ChannelBuilder] = None,
        failure_sink: Optional[FailureSink] = None,
    ):
        """Initialize pipeline collaborators.

        Args:
            strategy: Quantization strategy. Chosen from ``config.strategy``
                on each run if None.
            known_colors: Known-color table. Built-in defaults if None.
            builder: Channel builder. Built from the run's config if None.
            failure_sink: Receives channel failures when the pipeline creates
                the builder itself.
        """
        self.strategy = strategy
        self.known_colors = known_colors if known_colors is not None else KnownColorTable()
        self.builder = builder
        self.failure_sink = failure_sink
        self.state: Optional[PipelineState] = None
        self._run_lock = threading.Lock()

    def run(self, image: RasterImage, config: Optional[SeparationConfig] = None) -> SeparationReport:
        """Separate ``image`` into ordered spot-color channels.

        Concurrent calls on one pipeline are serialized, so ``state`` always
        belongs to a single run.

        Args:
            image: Source raster (read-only)
            config: Run configuration. Uses defaults if None.

        Returns:
            SeparationReport with ordered channels and per-entry failures

        Raises:
            ConfigError: If the config is invalid or palette reduction fails
        """
        with self._run_lock:
            return self._run(image, config or SeparationConfig())

    def _run(self, image: RasterImage, config: SeparationConfig) -> SeparationReport:
        self.state = None
        self._enter(PipelineState.QUANTIZING)
        config.validate()
        strategy = self.strategy or get_strategy(config.strategy)
        source = sharpen_raster(image, radius=config.sharpen_radius) if config.sharpen else image
        quantized = reduce_palette(source, config.color_count, config.dither_strength, strategy)

        self._enter(PipelineState.BUILDING_CHANNELS)
        resolver = ColorNameResolver(self.known_colors, use_known_colors=config.use_known_colors)
        builder = self.builder or ChannelBuilder(
            tolerance=config.tolerance,
            min_area=config.min_area,
            failure_sink=self.failure_sink,
        )
        results = self._build_channels(quantized, builder, resolver, config.max_workers)

        channels: List[Channel] = [r for r in results if isinstance(r, Channel)]
        failures: List[ChannelFailure] = [r for r in results if isinstance(r, ChannelFailure)]

        self._enter(PipelineState.ORDERING)
        ordered = order_channels(channels)

        self._enter(PipelineState.DONE)
        logger.info(
            f"Separated into {len(ordered)} channels ({len(failures)} failed)"
        )
        return SeparationReport(
            channels=ordered,
            failures=failures,
            palette=list(quantized.palette),
            config=config,
        )

    def _build_channels(
        self,
        quantized: QuantizedImage,
        builder: ChannelBuilder,
        resolver: ColorNameResolver,
        max_workers: int,
    ) -> List[BuildResult]:
        """Build every palette entry into its own slot, indexed by palette index."""
        slots: List[Optional[BuildResult]] = [None] * len(quantized.palette)

        if max_workers > 1 and len(quantized.palette) > 1:
            logger.info(f"Building {len(slots)} channels on {max_workers} threads")
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                futures = {
                    entry.index: executor.submit(builder.build, quantized, entry, resolver)
                    for entry in quantized.palette
                }
            for index, future in futures.items():
                slots[index] = future.result()
        else:
            for entry in quantized.palette:
                slots[entry.index] = builder.build(quantized, entry, resolver)

        return [result for result in slots if result is not None]

    def _enter(self, state: PipelineState) -> None:
        logger.debug(f"Pipeline state: {self.state.name if self.state else 'START'} -> {state.name}")
        self.state = state


def separate_image(
    image_path: Union[str, Path],
    config: Optional[SeparationConfig] = None,
    known_colors: Optional[KnownColorTable] = None,
) -> SeparationReport:
    """Load an image file and separate it.

    Convenience function for one-off processing.

    Example:
        >>> report = separate_image("artwork.png", SeparationConfig(color_count=8))
        >>> [ch.name for ch in report.channels]
    """
    image = load_raster(image_path)
    pipeline = SeparationPipeline(known_colors=known_colors)
    return pipeline.run(image, config)
