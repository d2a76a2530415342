"""Opacity assignment and print ordering for separation channels."""

from dataclasses import replace
from typing import Iterable, List

from .types import Channel

OPACITY_STEP = 5
OPACITY_FLOOR = 30


def initial_opacity(palette_index: int) -> int:
    """Starting opacity: earlier palette entries are more opaque."""
    return max(0, 100 - OPACITY_STEP * palette_index)


def order_channels(channels: Iterable[Channel]) -> List[Channel]:
    """Sort channels into print order and normalize them.

    Higher opacity prints on top (earlier in the list); ties go to the lower
    palette index. After sorting every channel gets at least
    ``OPACITY_FLOOR`` opacity and knocks out the channels below it.

    Input channels are not modified; new Channel objects are returned.
    """
    ordered = sorted(channels, key=lambda ch: (-ch.opacity, ch.palette_index))
    return [
        replace(ch, opacity=max(OPACITY_FLOOR, ch.opacity), knockout=True)
        for ch in ordered
    ]
