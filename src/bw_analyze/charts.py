"""Decode time-series data embedded in chart-rendering scripts.

Reports inline Google Charts calls such as::

    data.addColumn('datetime', 'Time');
    data.addColumn('number', 'Jobs Created');
    data.addRows([[new Date(2024, 0, 15, 10, 30, 0), 12, 3],]);

The row literal is not JSON: ``new Date(...)`` calls are rewritten to strings
of their arguments and trailing commas are stripped before a strict parse.
Months are zero-based, as in the scripting API. Timestamps are built in UTC.
"""

from __future__ import annotations

import json
import logging
import math
import re
from datetime import datetime, timedelta, timezone
from typing import Any

from bs4 import BeautifulSoup
from pydantic import BaseModel, ConfigDict

from bw_analyze.models import ChartPoint, ChartSeries

logger = logging.getLogger(__name__)

ADD_COLUMN_PATTERN: re.Pattern[str] = re.compile(
    r"data\.addColumn\(\s*['\"][^'\"]*['\"]\s*,\s*['\"](?P<name>[^'\"]*)['\"]\s*\)\s*;"
)
ADD_ROWS_PATTERN: re.Pattern[str] = re.compile(r"data\.addRows\((?P<rows>.*?)\);", re.DOTALL)
DATE_CALL_PATTERN: re.Pattern[str] = re.compile(r"new\s+Date\(([^)]*)\)")
TRAILING_COMMA_PATTERN: re.Pattern[str] = re.compile(r",\s*([\]}])")
CHART_ID_PATTERN: re.Pattern[str] = re.compile(
    r"document\.getElementById\(\s*['\"](?P<chart_id>[^'\"]*)['\"]\s*\)"
)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
DATE_COMPONENT_COUNT = 6


def slugify_header(header: str) -> str:
    """'Jobs Created' -> 'jobs_created'."""
    return re.sub(r"\s+", "_", header.lower())


def date_parts_to_epoch_ms(parts: list[int]) -> int:
    """Epoch milliseconds for (year, zero-based month, day, hour, minute, second).

    Out-of-range components roll over into the next unit the way the
    scripting Date constructor does (month 12 is January of the next year).
    """
    year, month, day, hour, minute, second = parts[:DATE_COMPONENT_COUNT]
    year_carry, month_index = divmod(month, 12)
    moment = datetime(year + year_carry, month_index + 1, 1, tzinfo=timezone.utc) + timedelta(
        days=day - 1, hours=hour, minutes=minute, seconds=second
    )
    return (moment - EPOCH) // timedelta(milliseconds=1)


def _coerce_rows_literal(literal: str) -> str:
    json_friendly = DATE_CALL_PATTERN.sub(r'"\1"', literal)
    return TRAILING_COMMA_PATTERN.sub(r"\1", json_friendly)


def _parse_date_cell(cell: Any) -> int | None:
    if not isinstance(cell, str):
        return None
    try:
        parts = [int(part.strip()) for part in cell.split(",")]
    except ValueError:
        return None
    if len(parts) < DATE_COMPONENT_COUNT:
        return None
    try:
        return date_parts_to_epoch_ms(parts)
    except (ValueError, OverflowError):
        return None


def _field_value(cell: Any) -> float | None:
    if cell is None or isinstance(cell, bool):
        return None
    try:
        value = float(cell)
    except (TypeError, ValueError):
        return None
    # json.loads accepts NaN and Infinity; points hold finite values only.
    return value if math.isfinite(value) else None


def decode_chart_script(script_text: str) -> ChartSeries:
    """Extract column headers and dated points from a chart script.

    Best effort: malformed rows are skipped and a literal that cannot be
    parsed at all yields the headers with whatever points were built.
    """
    headers = [match.group("name") for match in ADD_COLUMN_PATTERN.finditer(script_text)]
    field_keys = [slugify_header(header) for header in headers[1:]]
    points: list[ChartPoint] = []

    rows_match = ADD_ROWS_PATTERN.search(script_text)
    if not rows_match:
        return ChartSeries(headers=headers, points=points)

    literal = rows_match.group("rows").strip()
    if literal == "[]":
        return ChartSeries(headers=headers, points=points)

    try:
        rows = json.loads(_coerce_rows_literal(literal))
        if not isinstance(rows, list):
            return ChartSeries(headers=headers, points=[])

        for row in rows:
            if not isinstance(row, list) or not row:
                continue
            date = _parse_date_cell(row[0])
            if date is None:
                continue

            fields: dict[str, float] = {}
            for column, key in enumerate(field_keys, start=1):
                if column >= len(row):
                    break
                value = _field_value(row[column])
                if value is not None:
                    fields[key] = value
            points.append(ChartPoint(date=date, fields=fields))
    except (ValueError, TypeError) as exc:
        logger.warning("Failed to parse chart data: %s", exc)

    return ChartSeries(headers=headers, points=points)


def chart_id_of(script_text: str) -> str | None:
    """The element id a chart script draws into, if any."""
    if match := CHART_ID_PATTERN.search(script_text):
        return match.group("chart_id")
    return None


class ChartScript(BaseModel):
    """A decoded chart script together with the raw text used for matching."""

    model_config = ConfigDict(frozen=True)

    chart_id: str
    text: str
    series: ChartSeries


def collect_chart_scripts(doc: BeautifulSoup) -> list[ChartScript]:
    """Decode every chart script in document order, keeping those with data."""
    charts: list[ChartScript] = []
    for script in doc.find_all("script"):
        text = str(script.string or "")
        chart_id = chart_id_of(text)
        if chart_id is None:
            continue
        series = decode_chart_script(text)
        if series.points:
            charts.append(ChartScript(chart_id=chart_id, text=text, series=series))
        else:
            logger.debug("Chart %s has no usable points", chart_id)
    logger.debug("Decoded %d chart scripts", len(charts))
    return charts
