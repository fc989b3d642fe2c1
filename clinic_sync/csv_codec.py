"""CSV interchange format written by `convert` and read back by `sync`.

Encoding quotes a cell only when it contains a comma, a double quote or a
newline, doubling any embedded quotes. Decoding is line oriented: a quoted
field cannot span lines, and a backslash before a quote keeps that quote as a
literal character instead of closing the field.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Iterable

NEEDS_QUOTES_RE = re.compile(r"[\",\n]")
LINE_SPLIT_RE = re.compile(r"\r?\n")


def escape_cell(value: Any) -> str:
    if value is None:
        return ""
    text = str(value)
    escaped = text.replace('"', '""')
    return f'"{escaped}"' if NEEDS_QUOTES_RE.search(text) else escaped


def encode_row(row: Iterable[Any]) -> str:
    return ",".join(escape_cell(cell) for cell in row)


def encode_rows(rows: Iterable[Iterable[Any]]) -> str:
    return "\n".join(encode_row(row) for row in rows) + "\n"


def split_line(line: str) -> list[str]:
    cells: list[str] = []
    current: list[str] = []
    in_quotes = False
    i = 0
    while i < len(line):
        char = line[i]
        if char == '"' and (i == 0 or line[i - 1] != "\\"):
            if in_quotes and i + 1 < len(line) and line[i + 1] == '"':
                current.append('"')
                i += 2
                continue
            in_quotes = not in_quotes
            i += 1
            continue

        if char == "," and not in_quotes:
            cells.append("".join(current).strip())
            current = []
            i += 1
            continue

        current.append(char)
        i += 1

    cells.append("".join(current).strip())
    return cells


def decode_text(text: str) -> list[list[str]]:
    """Split interchange text into rows; blank lines are ignored."""
    rows = []
    for line in LINE_SPLIT_RE.split(text.lstrip("\ufeff")):
        line = line.strip()
        if line:
            rows.append(split_line(line))
    return rows


def read_csv_file(path: Path) -> list[list[str]]:
    return decode_text(Path(path).read_text(encoding="utf-8-sig"))


def write_csv_file(path: Path, rows: list[list[Any]]) -> None:
    Path(path).write_text(encode_rows(rows), encoding="utf-8")
