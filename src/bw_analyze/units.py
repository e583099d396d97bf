"""Conversions for report-native size, percentage and count strings.

None of these helpers raise: a malformed cell degrades to ``0`` so one bad
field never sinks the rest of a section.
"""

from __future__ import annotations

import math
import re

SIZE_UNITS: tuple[str, ...] = ("B", "KB", "MB", "GB", "TB")

UNIT_MULTIPLIERS: dict[str, int] = {
    "B": 1,
    "BYTES": 1,
    "KB": 1024,
    "MB": 1024**2,
    "GB": 1024**3,
    "TB": 1024**4,
}

THOUSANDS_SEPARATOR: re.Pattern[str] = re.compile(r"(?<=\d),(?=\d{3})")


def _to_float(text: str) -> float | None:
    try:
        value = float(text)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def parse_memory_string(mem_string: str | None) -> int:
    """Convert a size like '512 MB' or '2 GB' into bytes.

    Units are case-insensitive powers of 1024. An unknown or missing unit
    leaves the number as a raw byte count; a non-numeric or negative value
    yields 0.
    """
    if not mem_string or not isinstance(mem_string, str):
        return 0
    parts = mem_string.split()
    if not parts:
        return 0

    value = _to_float(THOUSANDS_SEPARATOR.sub("", parts[0]))
    if value is None or value < 0:
        return 0
    if len(parts) < 2:
        return int(value)

    multiplier = UNIT_MULTIPLIERS.get(parts[1].upper(), 1)
    return int(value * multiplier)


def format_bytes(size_bytes: int | float) -> str:
    """Format a byte count as e.g. '1.5 KB' (two decimals, trailing zeros dropped)."""
    if not size_bytes or size_bytes <= 0:
        return "0 B"

    index = 0
    while index < len(SIZE_UNITS) - 1 and size_bytes >= 1024 ** (index + 1):
        index += 1

    scaled = f"{size_bytes / 1024**index:.2f}".rstrip("0").rstrip(".")
    return f"{scaled} {SIZE_UNITS[index]}"


def parse_int(text: str | None) -> int:
    """Parse a count cell, stripping thousands separators. Malformed or negative -> 0."""
    if not text:
        return 0
    match = re.match(r"\s*([+-]?\d+)", text.replace(",", ""))
    if not match:
        return 0
    return max(0, int(match.group(1)))


def parse_float(text: str | None) -> float:
    """Parse the leading number of a cell (e.g. '12.5%'). Malformed -> 0.0."""
    if not text:
        return 0.0
    match = re.match(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)", text.replace(",", ""))
    if not match:
        return 0.0
    return _to_float(match.group(1)) or 0.0


def format_fraction_as_percentage(text: str | None) -> str:
    """Render a 0..1 load fraction as a percentage string, or 'N/A'."""
    if not text:
        return "N/A"
    value = _to_float(text.strip())
    if value is None:
        return "N/A"
    return f"{value * 100:.2f}%"
