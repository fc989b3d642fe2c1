"""
extractor.py — Table extraction from exported HTML reports

The clinic system exports reports as a single, flat <table>. This module reads
that markup with regular expressions rather than a DOM parser: the exports are
not well-formed enough for strict parsers and we only need the visible text.

Public API:
    rows = extract_rows(html)

Each row is a list of cell strings in document order. Empty cells are removed
(so column spans never survive as blank filler) and rows left with no cells
are dropped. A cell holding only &nbsp; decodes to " " and is not empty.
"""

from __future__ import annotations

import re

from clinic_sync.errors import ExtractionError

ROW_RE = re.compile(r"<tr\b.*?</tr\s*>", re.IGNORECASE | re.DOTALL)
CELL_RE = re.compile(r"<t[dh]\b[^>]*>.*?</t[dh]\s*>", re.IGNORECASE | re.DOTALL)
OPEN_TAG_RE = re.compile(r"^<t[dh]\b[^>]*>", re.IGNORECASE)
CLOSE_TAG_RE = re.compile(r"</t[dh]\s*>$", re.IGNORECASE)
ANY_TAG_RE = re.compile(r"<[^>]+>")
WHITESPACE_RE = re.compile(r"\s+")
ENTITY_RE = re.compile(r"&(#x?[0-9a-f]+|\w+);", re.IGNORECASE)
COLSPAN_RE = re.compile(r"colspan\s*=\s*[\"']?(\d+)", re.IGNORECASE)

HTML_ENTITIES = {
    "nbsp": " ",
    "amp": "&",
    "lt": "<",
    "gt": ">",
    "quot": '"',
    "apos": "'",
}


def _decode_entity(match: re.Match) -> str:
    entity = match.group(1).lower()
    if entity in HTML_ENTITIES:
        return HTML_ENTITIES[entity]
    try:
        if entity.startswith("#x"):
            return chr(int(entity[2:], 16))
        if entity.startswith("#"):
            return chr(int(entity[1:], 10))
    except (ValueError, OverflowError):
        pass
    return match.group(0)


def decode_entities(value: str) -> str:
    """Decode the named entities we know plus numeric/hex character references."""
    return ENTITY_RE.sub(_decode_entity, value)


def clean_cell(cell_html: str) -> str:
    inner = OPEN_TAG_RE.sub("", cell_html, count=1)
    inner = CLOSE_TAG_RE.sub("", inner, count=1)
    text = WHITESPACE_RE.sub(" ", ANY_TAG_RE.sub(" ", inner)).strip()
    # Decoded last: an &nbsp; placeholder cell stays " " and keeps its column.
    return decode_entities(text)


def cell_span(cell_html: str) -> int:
    opening = OPEN_TAG_RE.match(cell_html)
    match = COLSPAN_RE.search(opening.group(0) if opening else cell_html)
    if not match:
        return 1
    span = int(match.group(1))
    return span if span > 1 else 1


def compact_row(row: list[str]) -> list[str] | None:
    filtered = [cell for cell in row if cell != ""]
    return filtered or None


def extract_rows(html: str) -> list[list[str]]:
    rows: list[list[str]] = []
    for row_html in ROW_RE.findall(html):
        cells = CELL_RE.findall(row_html)
        if not cells:
            continue

        row: list[str] = []
        for cell_html in cells:
            row.append(clean_cell(cell_html))
            row.extend([""] * (cell_span(cell_html) - 1))

        compacted = compact_row(row)
        if compacted:
            rows.append(compacted)

    if not rows:
        raise ExtractionError("No table rows found in the HTML report")
    return rows
