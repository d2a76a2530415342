"""Tests for channel extraction."""

import numpy as np
import pytest

from spotsep.channels import (
    ChannelBuilder,
    CollectingSink,
    clean_mask,
    create_coverage_mask,
)
from spotsep.naming import ColorNameResolver
from spotsep.types import (
    Channel,
    ChannelBuildError,
    ChannelFailure,
    PaletteEntry,
    QuantizedImage,
)


@pytest.fixture
def quantized():
    """Three palette entries; entry 2 is close to entry 0 and covers nothing."""
    labels = np.zeros((10, 10), dtype=np.int32)
    labels[:, 5:] = 1
    palette = [
        PaletteEntry(0, (255, 0, 0)),
        PaletteEntry(1, (0, 0, 255)),
        PaletteEntry(2, (250, 4, 0)),
    ]
    return QuantizedImage(label_map=labels, palette=palette)


class TestCreateCoverageMask:
    """Test cases for create_coverage_mask."""

    def test_exact_match(self, quantized):
        mask = create_coverage_mask(quantized, quantized.palette[0])

        assert mask.shape == (10, 10)
        assert mask.dtype == bool
        assert mask[:, :5].all()
        assert not mask[:, 5:].any()

    def test_zero_tolerance_ignores_near_colors(self, quantized):
        mask = create_coverage_mask(quantized, quantized.palette[2])
        assert not mask.any()

    def test_tolerance_takes_in_near_colors(self, quantized):
        mask = create_coverage_mask(quantized, quantized.palette[2], tolerance=5)

        assert mask[:, :5].all()
        assert not mask[:, 5:].any()

    def test_index_out_of_bounds(self, quantized):
        with pytest.raises(ChannelBuildError, match="out of bounds"):
            create_coverage_mask(quantized, PaletteEntry(7, (0, 0, 0)))


class TestCleanMask:
    """Test cases for clean_mask."""

    def test_clean_small_regions(self):
        mask = np.zeros((50, 50), dtype=bool)
        mask[10:40, 10:40] = True
        mask[0, 0] = True
        mask[1, 1] = True

        cleaned = clean_mask(mask, min_area=10)

        assert not cleaned[0, 0]
        assert not cleaned[1, 1]
        assert cleaned[10:40, 10:40].all()
        assert mask[0, 0]  # input untouched

    def test_empty_mask(self):
        mask = np.zeros((5, 5), dtype=bool)
        assert not clean_mask(mask, min_area=3).any()


class TestChannelBuilder:
    """Test cases for ChannelBuilder."""

    def test_build_channel(self, quantized):
        channel = ChannelBuilder().build(quantized, quantized.palette[1], ColorNameResolver())

        assert isinstance(channel, Channel)
        assert channel.name == "Spot Color 2"
        assert channel.palette_index == 1
        assert channel.color == (0, 0, 255)
        assert channel.ink_density == 100
        assert channel.opacity == 95
        assert channel.knockout is False
        assert channel.coverage == pytest.approx(0.5)

    def test_known_color_name(self, quantized):
        channel = ChannelBuilder().build(quantized, quantized.palette[0], ColorNameResolver())
        assert channel.name == "PANTONE 186 C"

    def test_empty_mask_is_failure(self, quantized):
        sink = CollectingSink()
        builder = ChannelBuilder(failure_sink=sink)

        result = builder.build(quantized, quantized.palette[2], ColorNameResolver())

        assert isinstance(result, ChannelFailure)
        assert result.palette_index == 2
        assert result.color_hex == "FA0400"
        assert "Empty" in result.message
        assert sink.failures == [result]

    def test_speck_removal_can_empty_mask(self):
        labels = np.zeros((10, 10), dtype=np.int32)
        labels[0, 0] = 1
        quantized = QuantizedImage(
            label_map=labels,
            palette=[PaletteEntry(0, (0, 0, 0)), PaletteEntry(1, (9, 9, 9))],
        )
        builder = ChannelBuilder(min_area=4, failure_sink=CollectingSink())

        result = builder.build(quantized, quantized.palette[1], ColorNameResolver())

        assert isinstance(result, ChannelFailure)

    def test_unexpected_errors_are_contained(self, quantized):
        class BrokenBuilder(ChannelBuilder):
            def _coverage_mask(self, quantized, entry):
                raise RuntimeError("disk on fire")

        sink = CollectingSink()
        result = BrokenBuilder(failure_sink=sink).build(
            quantized, quantized.palette[0], ColorNameResolver()
        )

        assert isinstance(result, ChannelFailure)
        assert "RuntimeError" in result.message
        assert len(sink.failures) == 1

    def test_memory_error_is_contained(self, quantized):
        class HungryBuilder(ChannelBuilder):
            def _coverage_mask(self, quantized, entry):
                raise MemoryError()

        result = HungryBuilder(failure_sink=CollectingSink()).build(
            quantized, quantized.palette[0], ColorNameResolver()
        )

        assert isinstance(result, ChannelFailure)
        assert "memory" in result.message.lower()

    def test_shape_mismatch_is_failure(self, quantized):
        class CroppingBuilder(ChannelBuilder):
            def _coverage_mask(self, quantized, entry):
                return np.ones((3, 3), dtype=bool)

        result = CroppingBuilder(failure_sink=CollectingSink()).build(
            quantized, quantized.palette[0], ColorNameResolver()
        )

        assert isinstance(result, ChannelFailure)
        assert "shape" in result.message

    def test_default_sink_logs(self, quantized, caplog):
        with caplog.at_level("WARNING", logger="spotsep.channels"):
            ChannelBuilder().build(quantized, quantized.palette[2], ColorNameResolver())

        assert "FA0400" in caplog.text

    def test_raising_sink_still_returns_failure(self, quantized, caplog):
        def broken_sink(failure):
            raise OSError("log volume full")

        with caplog.at_level("ERROR", logger="spotsep.channels"):
            result = ChannelBuilder(failure_sink=broken_sink).build(
                quantized, quantized.palette[2], ColorNameResolver()
            )

        assert isinstance(result, ChannelFailure)
        assert "Empty" in result.message
        assert "Failure sink raised" in caplog.text
