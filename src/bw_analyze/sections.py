"""Locate report sections and read their tables.

A section is a heading followed, somewhere later in the document, by the
data table it describes. Reports wrap headings and tables in varying layers
of ``div`` elements, so the lookup scans forward siblings first and then the
forward siblings of each ancestor.
"""

from __future__ import annotations

import html
import logging
import re
from collections.abc import Iterator

from bs4 import BeautifulSoup, Tag

logger = logging.getLogger(__name__)

LINE_BREAK_PATTERN: re.Pattern[str] = re.compile(r"<br\s*/?>", re.IGNORECASE)
TAG_PATTERN: re.Pattern[str] = re.compile(r"<[^>]+>")


def markup_to_text(markup: str) -> str:
    """Strip tags from a markup fragment and unescape entities."""
    return html.unescape(TAG_PATTERN.sub("", markup))


def element_text(element: Tag) -> str:
    """Trimmed text content of an element."""
    return element.get_text().strip()


def find_heading(
    doc: BeautifulSoup | Tag, heading_tag: str, text_fragment: str, *, exact: bool = False
) -> Tag | None:
    """Return the first ``heading_tag`` element whose text contains the fragment."""
    for heading in doc.find_all(heading_tag):
        text = element_text(heading)
        if (text == text_fragment) if exact else (text_fragment in text):
            return heading
    return None


def _table_in(element: Tag) -> Tag | None:
    if element.name == "table":
        return element
    return element.find("table")


def find_table_adjacent_to(element: Tag | None) -> Tag | None:
    """Return the first table at or under a forward sibling of ``element``."""
    if element is None:
        return None
    for sibling in element.next_siblings:
        if not isinstance(sibling, Tag):
            continue
        if (table := _table_in(sibling)) is not None:
            return table
    return None


def find_table(doc: BeautifulSoup | Tag, heading_tag: str, text_fragment: str) -> Tag | None:
    """Find the data table that logically follows a heading.

    The first heading containing ``text_fragment`` wins. Its forward siblings
    are scanned, then the forward siblings of each ancestor up to the document
    root. ``None`` means the section is absent.
    """
    heading = find_heading(doc, heading_tag, text_fragment)
    if heading is None:
        logger.debug("No <%s> heading containing %r", heading_tag, text_fragment)
        return None

    anchor: Tag | None = heading
    while anchor is not None:
        if (table := find_table_adjacent_to(anchor)) is not None:
            return table
        anchor = anchor.parent

    logger.debug("Heading %r has no following table", text_fragment)
    return None


def row_cells(row: Tag) -> list[Tag]:
    """Data cells (``td``) of a table row, ignoring nested tables."""
    return row.find_all("td", recursive=False)


def iter_rows(table: Tag) -> Iterator[Tag]:
    """All rows of a table, looking through an optional thead/tbody wrapper."""
    for row in table.find_all("tr"):
        if row.find_parent("table") is table:
            yield row


def iter_data_rows(table: Tag) -> Iterator[list[Tag]]:
    """Cells of every row after the header row."""
    for index, row in enumerate(iter_rows(table)):
        if index == 0:
            continue
        yield row_cells(row)


def read_key_value_table(table: Tag) -> dict[str, str]:
    """Read a two-column table into an ordered mapping.

    Values fall back to the raw inner markup when their text is empty so
    multiline values survive. Duplicate keys keep the last row.
    """
    data: dict[str, str] = {}
    for row in iter_rows(table):
        cells = row_cells(row)
        if len(cells) < 2:
            continue
        key = element_text(cells[0])
        if not key:
            continue
        value = element_text(cells[1])
        data[key] = value or cells[1].decode_contents()
    return data


def split_markup_lines(cell: Tag) -> list[str]:
    """Split a cell's inner markup on ``<br>`` into trimmed, non-empty text lines."""
    lines = LINE_BREAK_PATTERN.split(cell.decode_contents())
    text_lines = (markup_to_text(line).strip() for line in lines)
    return [line for line in text_lines if line]
