"""
converter.py — HTML report exports to interchange CSV files

Public API:
    result  = convert_html_file("path/to/report.html")
    results = convert_files([...])
    paths   = discover_files(Path.cwd(), {".html"})

Result dict keys (per file):
    input_file  — the HTML report
    output_file — sibling .csv path, or None when skipped or failed
    status      — "ok", "skipped" (no rows survived normalisation) or "failed"
    rows        — rows written, header included
    encoding    — encoding used to decode the report
    warnings    — list of warning strings
    error       — failure message when status is "failed"
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable

import chardet

from clinic_sync.csv_codec import write_csv_file
from clinic_sync.errors import ExtractionError, InputError
from clinic_sync.extractor import extract_rows
from clinic_sync.normalizer import normalize_rows

HTML_SUFFIXES = {".html", ".htm"}
CSV_SUFFIXES = {".csv"}


def _detect_encoding(raw: bytes) -> str | None:
    result = chardet.detect(raw)
    encoding = result.get("encoding")
    if not encoding or (result.get("confidence") or 0.0) < 0.5:
        return None
    return encoding


def decode_report_bytes(raw: bytes) -> tuple[str, str]:
    """
    Decode an exported report.

    Strategy:
      1. UTF-8 (a leading BOM is dropped)
      2. chardet's guess, when it is confident enough
      3. cp1252 with replacement (never fails)
    """
    try:
        return raw.decode("utf-8-sig"), "utf-8"
    except UnicodeDecodeError:
        pass

    detected = _detect_encoding(raw)
    if detected:
        try:
            return raw.decode(detected), detected.lower()
        except (LookupError, UnicodeDecodeError):
            pass
    return raw.decode("cp1252", errors="replace"), "cp1252"


def read_report_text(path: Path) -> tuple[str, str]:
    return decode_report_bytes(Path(path).read_bytes())


def csv_path_for(path: Path) -> Path:
    path = Path(path)
    return path.with_name(f"{path.stem}.csv")


def convert_html_file(path: Path) -> dict[str, Any]:
    """Convert one report. Raises ExtractionError when it has no table rows."""
    path = Path(path)
    html, encoding = read_report_text(path)
    rows = normalize_rows(extract_rows(html))

    result: dict[str, Any] = {
        "input_file": str(path),
        "output_file": None,
        "status": "ok",
        "rows": len(rows),
        "encoding": encoding,
        "warnings": [],
    }
    if not rows:
        result["status"] = "skipped"
        result["warnings"].append(f"No table rows found in {path}. Skipping.")
        return result

    output_path = csv_path_for(path)
    write_csv_file(output_path, rows)
    result["output_file"] = str(output_path)
    return result


def convert_files(paths: Iterable[Path]) -> list[dict[str, Any]]:
    """Convert each file in turn; a failing file does not stop the batch."""
    results = []
    for path in paths:
        try:
            results.append(convert_html_file(Path(path)))
        except (ExtractionError, OSError) as exc:
            results.append(
                {
                    "input_file": str(path),
                    "output_file": None,
                    "status": "failed",
                    "rows": 0,
                    "encoding": None,
                    "warnings": [],
                    "error": f"Failed to convert {path}: {exc}",
                }
            )
    return results


def _describe_suffixes(suffixes: set[str]) -> str:
    return "/".join(sorted(suffix.lstrip(".").upper() for suffix in suffixes))


def discover_files(directory: Path, suffixes: set[str]) -> list[Path]:
    directory = Path(directory)
    found = sorted(
        entry for entry in directory.iterdir()
        if entry.is_file() and entry.suffix.lower() in suffixes
    )
    if not found:
        raise InputError(f"No {_describe_suffixes(suffixes)} files provided or found in {directory}.")
    return found


def resolve_inputs(paths: Iterable[str] | None, suffixes: set[str], directory: Path | None = None) -> list[Path]:
    """Explicit paths win; otherwise scan ``directory`` (default: cwd)."""
    given = [Path(p) for p in (paths or [])]
    rejected = [str(p) for p in given if p.suffix.lower() not in suffixes]
    if rejected:
        raise InputError(f"Only {_describe_suffixes(suffixes)} files are accepted here: {', '.join(rejected)}")
    if given:
        return given
    return discover_files(directory or Path.cwd(), suffixes)
