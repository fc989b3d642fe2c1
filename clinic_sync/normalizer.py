"""
normalizer.py — Flatten department/doctor performance reports

Department performance exports group doctors under single-cell department
rows ("10 - Cardiology") and repeat a "Doctor Name" header row carrying the
metric labels. This module turns that layout into one flat table:

    Department ID, Department Name, Doctor ID, Doctor Name, <metrics...>

Reports without that structure (revenue exports) pass through with only the
totals rows removed.

Public API:
    rows = normalize_rows(extracted_rows)
    kind = classify_row(row)
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field

UNKNOWN = "Unknown"

ID_NAME_RE = re.compile(r"^(\d+)\s*-\s*(.+)$")
BARE_NUMBER_RE = re.compile(r"^\d+(?:\.\d+)?$")
TOTALS_LABELS = {"total", "totals", "grand total", "grand totals"}
NULL_TOKENS = {"unknown", "null", "undefined"}
DOCTOR_HEADER_LABEL = "doctor name"

CANONICAL_PREFIX = ["Department ID", "Department Name", "Doctor ID", "Doctor Name"]


class RowKind(enum.Enum):
    DEPARTMENT_HEADER = "department_header"
    METRICS_HEADER = "metrics_header"
    DATA = "data"


@dataclass(frozen=True)
class Reference:
    """An (id, name) pair for a department or a doctor."""

    id: str = UNKNOWN
    name: str = UNKNOWN

    @property
    def is_unknown(self) -> bool:
        return self.id == UNKNOWN and self.name == UNKNOWN


def parse_id_and_name(value: str | None) -> Reference | None:
    """Parse "<digits> - <text>"; None when the cell does not follow that form."""
    if not value:
        return None
    match = ID_NAME_RE.match(value.strip())
    if not match:
        return None
    return Reference(id=match.group(1), name=match.group(2).strip() or UNKNOWN)


def parse_doctor_cell(value: str | None) -> Reference:
    text = (value or "").strip()
    if not text or text.lower() in NULL_TOKENS:
        return Reference()
    parsed = parse_id_and_name(text)
    if parsed:
        return parsed
    if BARE_NUMBER_RE.match(text):
        return Reference(id=text)
    return Reference(name=text)


def is_totals_row(row: list[str]) -> bool:
    if not row or not row[0]:
        return False
    label = row[0].replace(":", "").strip().lower()
    return label in TOTALS_LABELS


def has_text(row: list[str]) -> bool:
    return any(char.isalpha() for cell in row for char in cell)


def classify_row(row: list[str]) -> RowKind:
    if len(row) == 1 and parse_id_and_name(row[0]):
        return RowKind.DEPARTMENT_HEADER
    if row and row[0].strip().lower() == DOCTOR_HEADER_LABEL:
        return RowKind.METRICS_HEADER
    return RowKind.DATA


def looks_like_department_report(rows: list[list[str]]) -> bool:
    kinds = {classify_row(row) for row in rows}
    return RowKind.DEPARTMENT_HEADER in kinds and RowKind.METRICS_HEADER in kinds


def fit_to_width(cells: list[str], width: int) -> list[str]:
    fitted = list(cells[:width])
    fitted.extend([""] * (width - len(fitted)))
    return fitted


@dataclass
class DepartmentReportState:
    department: Reference | None = None
    metrics_header: list[str] | None = None
    metrics_width: int = 0
    header_emitted: bool = False
    after_totals: bool = False
    doctors_by_department: dict[str, int] = field(default_factory=dict)
    output: list[list[str]] = field(default_factory=list)


def _reduce_department_row(state: DepartmentReportState, row: list[str]) -> None:
    kind = classify_row(row)

    if kind is RowKind.DEPARTMENT_HEADER:
        state.department = parse_id_and_name(row[0])
        state.after_totals = False
        return

    if kind is RowKind.METRICS_HEADER:
        state.metrics_header = row[1:]
        state.after_totals = False
        if state.metrics_header and not state.header_emitted:
            state.metrics_width = len(state.metrics_header)
            state.output.append(CANONICAL_PREFIX + list(state.metrics_header))
            state.header_emitted = True
        return

    if is_totals_row(row):
        state.after_totals = True
        return

    follows_totals = state.after_totals
    state.after_totals = False

    if state.department is None or not state.metrics_header or not state.header_emitted or len(row) < 2:
        return

    if len(row) == len(state.metrics_header):
        doctor = Reference()
        metric_cells = row
    else:
        doctor = parse_doctor_cell(row[0])
        metric_cells = row[1:]

    department_key = state.department.id
    doctors_seen = state.doctors_by_department.get(department_key, 0)
    if not has_text(row) and (follows_totals or doctors_seen > 0):
        # Departmental subtotal line: numbers only, after a totals row or
        # after real doctor rows have already been emitted.
        return

    if doctor.name != UNKNOWN:
        state.doctors_by_department[department_key] = doctors_seen + 1

    state.output.append(
        [state.department.id, state.department.name, doctor.id, doctor.name]
        + fit_to_width(metric_cells, state.metrics_width)
    )


def normalize_department_report(rows: list[list[str]]) -> list[list[str]]:
    state = DepartmentReportState()
    for row in rows:
        _reduce_department_row(state, row)
    return state.output


def normalize_rows(rows: list[list[str]]) -> list[list[str]]:
    """Return the flat dataset for an extracted report; never raises."""
    if looks_like_department_report(rows):
        normalized = normalize_department_report(rows)
        if normalized:
            return normalized
    return [row for row in rows if not is_totals_row(row)]
