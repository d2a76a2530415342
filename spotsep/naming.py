"""Production naming for separation channels."""

import json
import logging
import re
from pathlib import Path
from types import MappingProxyType
from collections.abc import Mapping
from typing import Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_KNOWN_COLORS = {
    "FF0000": "PANTONE 186 C",
    "00FF00": "PANTONE 802 C",
}

SPOT_FALLBACK = "Spot Color {n}"
PLAIN_FALLBACK = "Color {n}"

_HEX_DIGITS = re.compile(r"^[0-9A-F]+$")


def normalize_hex(color_hex: str) -> str:
    """Canonical uppercase hex without a leading ``#`` or ``0x``.

    Three-digit shorthand is expanded (``f00`` -> ``FF0000``). Strings that
    are not hex colors are returned stripped and uppercased so that lookups
    simply miss.
    """
    value = str(color_hex).strip().upper()
    if value.startswith("#"):
        value = value[1:]
    elif value.startswith("0X"):
        value = value[2:]
    if len(value) == 3 and _HEX_DIGITS.match(value):
        value = "".join(ch * 2 for ch in value)
    return value


class KnownColorTable(Mapping):
    """Read-only mapping of normalized hex -> production color name."""

    def __init__(self, entries: Optional[Mapping[str, str]] = None):
        source = DEFAULT_KNOWN_COLORS if entries is None else entries
        self._entries = MappingProxyType(
            {normalize_hex(key): str(name) for key, name in source.items()}
        )

    def __getitem__(self, color_hex: str) -> str:
        return self._entries[normalize_hex(color_hex)]

    def __contains__(self, color_hex) -> bool:
        return normalize_hex(color_hex) in self._entries

    def __iter__(self):
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"KnownColorTable({dict(self._entries)!r})"


def load_known_colors(path: Union[str, Path], merge_defaults: bool = True) -> KnownColorTable:
    """Load a known-color table from a JSON object file.

    Args:
        path: JSON file of the form ``{"FF0000": "PANTONE 186 C", ...}``
        merge_defaults: Keep the built-in entries underneath the loaded ones

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file isn't a JSON object of strings
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Known-color table not found: {path}")

    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict) or not all(isinstance(v, str) for v in data.values()):
        raise ValueError(f"Known-color table must be a JSON object of names: {path}")

    entries = dict(DEFAULT_KNOWN_COLORS) if merge_defaults else {}
    entries.update({normalize_hex(k): v for k, v in data.items()})
    logger.info(f"Loaded {len(data)} known colors from {path}")
    return KnownColorTable(entries)


class ColorNameResolver:
    """Resolve palette colors to channel names.

    Table hits return the production name verbatim; misses get a generated
    name numbered from 1 (``palette_index + 1``).
    """

    def __init__(self, table: Optional[KnownColorTable] = None, use_known_colors: bool = True):
        self.table = table if table is not None else KnownColorTable()
        self.use_known_colors = use_known_colors

    def resolve(self, color_hex: str, palette_index: int) -> str:
        n = palette_index + 1
        if not self.use_known_colors:
            return PLAIN_FALLBACK.format(n=n)
        name = self.table.get(color_hex)
        if name is not None:
            return name
        return SPOT_FALLBACK.format(n=n)

    __call__ = resolve
