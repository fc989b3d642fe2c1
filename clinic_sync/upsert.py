"""
upsert.py — Merge converted report CSVs into destination tabs

Datasets are split by shape (department-wise vs revenue), stamped with the
report Date and Clinic, cleaned up (identity backfill, numeric coercion) and
then merged into their tab by replacing every existing row that carries the
same (Date, Clinic) key. Re-submitting a corrected report therefore replaces
the earlier rows instead of adding to them.

Public API:
    datasets = load_csv_datasets(paths)
    result   = sync(store, datasets, clinic="Qurtubah", period="2025-08")

Result dict keys:
    destinations — one entry per tab written: tab, rows_deleted,
                   rows_written, wrote_header
    warnings     — list of warning strings

There is no locking: two runs writing the same (tab, Date, Clinic) at the
same time can interleave their read/delete/write steps.
"""

from __future__ import annotations

import math
import re
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Iterable

import pandas as pd

from clinic_sync.config import ComplaintMetrics
from clinic_sync.csv_codec import read_csv_file
from clinic_sync.errors import InputError, RemoteError
from clinic_sync.normalizer import UNKNOWN
from clinic_sync.stores.base import Row, TabularStore

REVENUE_TAB = "Revenue"
DEPARTMENT_TAB = "Department Wise"
OTHER_TAB = "Other"

SHAPE_REVENUE = "revenue"
SHAPE_DEPARTMENT = "department"
SHAPE_TABS = {SHAPE_REVENUE: REVENUE_TAB, SHAPE_DEPARTMENT: DEPARTMENT_TAB}

DATE_COLUMN = "Date"
CLINIC_COLUMN = "Clinic"
IDENTITY_COLUMNS = {
    SHAPE_REVENUE: ("doctor name",),
    SHAPE_DEPARTMENT: ("department name", "doctor name"),
}
NON_NUMERIC_COLUMNS = {"date", "doctor id", "doctor name", "department id", "department name"}
NULL_TOKENS = {"null", "undefined"}

OTHER_HEADER = [
    DATE_COLUMN,
    CLINIC_COLUMN,
    "Medical Complaints",
    "Administrative Complaints",
    "Referrals",
    "Remarks",
]

SERIAL_EPOCH = date(1899, 12, 30)
MONTH_RE = re.compile(r"^\d{4}-\d{2}$")
DAY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
SERIAL_RE = re.compile(r"^\d+$")


# ══════════════════════════════════════════════════════════════════════════════
# PERIODS AND COLUMNS
# ══════════════════════════════════════════════════════════════════════════════

def normalize_period(value: Any) -> str:
    """
    Canonicalise a report period to YYYY-MM-DD where possible.

      2025-08     -> 2025-08-01
      2025-08-14  -> unchanged
      45870       -> spreadsheet serial day (epoch 1899-12-30)
      anything else passes through verbatim
    """
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    if MONTH_RE.match(text):
        return f"{text}-01"
    if DAY_RE.match(text):
        return text
    if SERIAL_RE.match(text):
        try:
            return (SERIAL_EPOCH + timedelta(days=int(text))).isoformat()
        except OverflowError:
            return text
    return text


def find_column(header: list[Any], name: str) -> int | None:
    """Index of the first header cell equal to ``name`` ignoring case/space."""
    wanted = name.strip().lower()
    for index, cell in enumerate(header):
        if str(cell).strip().lower() == wanted:
            return index
    return None


def classify_dataset(rows: list[Row]) -> str:
    if rows and find_column(rows[0], "department id") is not None:
        return SHAPE_DEPARTMENT
    return SHAPE_REVENUE


def combine_datasets(datasets: Iterable[list[Row]]) -> dict[str, list[Row]]:
    """Concatenate same-shaped datasets, keeping only the first file's header."""
    combined: dict[str, list[Row]] = {SHAPE_REVENUE: [], SHAPE_DEPARTMENT: []}
    for rows in datasets:
        if not rows:
            continue
        target = combined[classify_dataset(rows)]
        if target:
            target.extend(list(row) for row in rows[1:])
        else:
            target.extend(list(row) for row in rows)
    return combined


def _is_blank(value: Any) -> bool:
    return value is None or str(value).strip() == ""


def _upsert_column(header: list[Any], data: list[Row], name: str, insert_at: int, value_for) -> int:
    index = find_column(header, name)
    if index is None:
        header.insert(insert_at, name)
        for row in data:
            row.insert(insert_at, value_for(None))
        return insert_at
    for row in data:
        row[index] = value_for(row[index])
    return index


def backfill_identity(header: list[Any], data: list[Row], columns: Iterable[str]) -> None:
    for name in columns:
        index = find_column(header, name)
        if index is None:
            continue
        for row in data:
            value = row[index]
            if _is_blank(value) or str(value).strip().lower() in NULL_TOKENS:
                row[index] = UNKNOWN


def _as_number(value: float) -> int | float:
    return int(value) if float(value).is_integer() else float(value)


def coerce_numeric_columns(header: list[Any], data: list[Row]) -> list[str]:
    """Turn every all-numeric column into numbers (blanks become 0).

    A column holding inf, nan or an overflowing literal such as 1e999 stays text.

    Returns the names of the columns that were coerced.
    """
    coerced = []
    for index, name in enumerate(header):
        if str(name).strip().lower() in NON_NUMERIC_COLUMNS:
            continue
        text = pd.Series(
            ["" if _is_blank(row[index]) else str(row[index]).strip() for row in data],
            dtype="object",
        )
        present = text[text != ""]
        if present.empty:
            continue
        parsed = pd.to_numeric(present, errors="coerce")
        if parsed.isna().any() or not parsed.map(math.isfinite).all():
            continue
        numbers = pd.to_numeric(text, errors="coerce").fillna(0)
        for row, number in zip(data, numbers):
            row[index] = _as_number(number)
        coerced.append(str(name))
    return coerced


def prepare_dataset(rows: list[Row], shape: str, clinic: str | None = None, period: str | None = None) -> list[Row]:
    """Return a new dataset stamped with Date/Clinic and cleaned for upload."""
    if not rows:
        return []
    header = [str(cell).strip() for cell in rows[0]]
    width = len(header)
    data = [list(row[:width]) + [""] * (width - len(row)) for row in rows[1:]]

    if period:
        stamp = normalize_period(period)
        date_index = _upsert_column(header, data, DATE_COLUMN, 0, lambda _: stamp)
    else:
        date_index = _upsert_column(header, data, DATE_COLUMN, 0, lambda value: normalize_period(value))

    clinic_name = clinic.strip() if clinic and clinic.strip() else UNKNOWN
    _upsert_column(header, data, CLINIC_COLUMN, date_index + 1, lambda _: clinic_name)

    backfill_identity(header, data, IDENTITY_COLUMNS.get(shape, ()))
    coerce_numeric_columns(header, data)
    return [header] + data


def _count(value: str | None) -> int | float:
    if _is_blank(value):
        return 0
    parsed = pd.to_numeric(pd.Series([str(value).strip()], dtype="object"), errors="coerce").iloc[0]
    if pd.isna(parsed) or not math.isfinite(parsed):
        return 0
    return _as_number(parsed)


def build_side_dataset(clinic: str, period: str, complaints: ComplaintMetrics | None = None) -> list[Row]:
    metrics = complaints or ComplaintMetrics()
    return [
        list(OTHER_HEADER),
        [
            normalize_period(period),
            clinic.strip(),
            _count(metrics.medical),
            _count(metrics.administrative),
            _count(metrics.referrals),
            (metrics.remarks or "").strip(),
        ],
    ]


# ══════════════════════════════════════════════════════════════════════════════
# UPSERT
# ══════════════════════════════════════════════════════════════════════════════

def read_existing(store: TabularStore, tab: str) -> list[Row]:
    """Existing rows of ``tab``; a missing tab or range reads as empty."""
    try:
        return store.read_all(tab)
    except RemoteError as exc:
        if exc.is_missing_range:
            return []
        raise


def dataset_keys(rows: list[Row]) -> set[tuple[str, str]]:
    header = rows[0]
    date_index = find_column(header, DATE_COLUMN)
    clinic_index = find_column(header, CLINIC_COLUMN)
    keys = set()
    for row in rows[1:]:
        day = normalize_period(row[date_index]) if date_index is not None else ""
        clinic = str(row[clinic_index]).strip() if clinic_index is not None else ""
        keys.add((day, clinic))
    return keys


def build_key_predicate(existing_header: list[Any], keys: set[tuple[str, str]]):
    """Predicate over existing data rows, or None when the tab has no Date column.

    Tabs without a Clinic column are matched on Date alone.
    """
    date_index = find_column(existing_header, DATE_COLUMN)
    if date_index is None:
        return None
    clinic_index = find_column(existing_header, CLINIC_COLUMN)
    days = {day for day, _ in keys}

    def matches(row: Row) -> bool:
        day = normalize_period(row[date_index]) if date_index < len(row) else ""
        if clinic_index is None:
            return day in days
        clinic = str(row[clinic_index]).strip() if clinic_index < len(row) else ""
        return (day, clinic) in keys

    return matches


def _same_header(left: list[Any], right: list[Any]) -> bool:
    def norm(header):
        return [str(cell).strip().lower() for cell in header]

    return norm(left) == norm(right)


def upsert_dataset(store: TabularStore, tab: str, rows: list[Row]) -> dict[str, Any]:
    header, data = rows[0], rows[1:]
    warnings: list[str] = []
    existing = read_existing(store, tab)
    existing_header = existing[0] if existing else []
    has_header = any(not _is_blank(cell) for cell in existing_header)

    deleted = 0
    if has_header and len(existing) > 1:
        predicate = build_key_predicate(existing_header, dataset_keys(rows))
        if predicate is None:
            warnings.append(f'"{tab}" has no {DATE_COLUMN} column; existing rows were left in place.')
        elif any(predicate(row) for row in existing[1:]):
            deleted = store.delete_where(tab, predicate)

    if has_header:
        if not _same_header(existing_header, header):
            warnings.append(f'"{tab}" header differs from the uploaded data; rows were appended as-is.')
        store.append(tab, data)
    else:
        store.write_full(tab, rows)

    return {
        "destination": {
            "tab": tab,
            "rows_deleted": deleted,
            "rows_written": len(data),
            "wrote_header": not has_header,
        },
        "warnings": warnings,
    }


def plan_sync(
    datasets: Iterable[list[Row]],
    *,
    clinic: str | None = None,
    period: str | None = None,
    complaints: ComplaintMetrics | None = None,
) -> dict[str, Any]:
    """Prepare every destination dataset without touching a store."""
    combined = combine_datasets(datasets)
    prepared: list[tuple[str, list[Row]]] = []
    warnings: list[str] = []

    for shape, label in ((SHAPE_REVENUE, "revenue"), (SHAPE_DEPARTMENT, "department")):
        if combined[shape]:
            prepared.append((SHAPE_TABS[shape], prepare_dataset(combined[shape], shape, clinic, period)))
        else:
            warnings.append(f"No {label} data detected in the provided CSV files.")

    if clinic and clinic.strip() and period and str(period).strip():
        prepared.append((OTHER_TAB, build_side_dataset(clinic, period, complaints)))

    return {"datasets": prepared, "warnings": warnings}


def sync(
    store: TabularStore,
    datasets: Iterable[list[Row]],
    *,
    clinic: str | None = None,
    period: str | None = None,
    complaints: ComplaintMetrics | None = None,
) -> dict[str, Any]:
    """Upsert every prepared dataset, one tab at a time, in order.

    A RemoteError aborts the run; tabs already written stay written.
    """
    plan = plan_sync(datasets, clinic=clinic, period=period, complaints=complaints)
    destinations = []
    warnings = list(plan["warnings"])
    for tab, rows in plan["datasets"]:
        outcome = upsert_dataset(store, tab, rows)
        destinations.append(outcome["destination"])
        warnings.extend(outcome["warnings"])
    return {"destinations": destinations, "warnings": warnings}


def load_csv_datasets(paths: Iterable[Path]) -> list[list[Row]]:
    datasets = []
    for path in paths:
        try:
            rows = read_csv_file(Path(path))
        except UnicodeDecodeError as exc:
            raise InputError(f"{path} is not UTF-8 encoded CSV: {exc.reason} at byte {exc.start}") from exc
        if rows:
            datasets.append(rows)
    return datasets
