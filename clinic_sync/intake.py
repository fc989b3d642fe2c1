"""
intake.py — Upload handling behind the report submission page

One submission carries up to two report uploads (revenue and department
wise) plus the clinic, report date, complaint counts and remarks typed into
the form. Uploads are staged on disk, HTML is converted to CSV, everything is
synced, and the staged files are removed again.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from clinic_sync.config import ComplaintMetrics
from clinic_sync.converter import CSV_SUFFIXES, HTML_SUFFIXES, convert_html_file
from clinic_sync.errors import InputError
from clinic_sync.stores.base import TabularStore
from clinic_sync.upsert import load_csv_datasets, sync

ALLOWED_UPLOAD_SUFFIXES = HTML_SUFFIXES | CSV_SUFFIXES
UPLOAD_SLOTS = ("revenueFile", "departmentFile")
CLINICS = ["Al Yarmouk", "Qurtubah", "Al Salam", "Al Areed", "Executive"]


@dataclass
class Upload:
    filename: str
    payload: bytes


@dataclass
class Submission:
    clinic: str = ""
    report_date: str = ""
    medical_complaints: str = ""
    admin_complaints: str = ""
    referrals: str = ""
    remarks: str = ""
    uploads: dict[str, Upload] = field(default_factory=dict)

    def complaint_metrics(self) -> ComplaintMetrics:
        return ComplaintMetrics(
            medical=self.medical_complaints or None,
            administrative=self.admin_complaints or None,
            referrals=self.referrals or None,
            remarks=self.remarks or None,
        )


def check_upload_name(filename: str) -> str:
    suffix = Path(filename).suffix.lower()
    if suffix not in ALLOWED_UPLOAD_SUFFIXES:
        raise InputError("Only HTML or CSV report files are allowed.")
    return suffix


def stage_upload(upload: Upload, slot: str, upload_dir: Path) -> Path:
    suffix = check_upload_name(upload.filename)
    upload_dir = Path(upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    target = upload_dir / f"{int(time.time() * 1000)}-{slot}{suffix}"
    target.write_bytes(upload.payload)
    return target


def ensure_csv(path: Path) -> tuple[Path, list[str]]:
    """CSV uploads pass through; HTML is converted next to the staged file."""
    path = Path(path)
    if path.suffix.lower() in CSV_SUFFIXES:
        return path, []
    result = convert_html_file(path)
    if result["status"] != "ok":
        raise InputError(f"{path.name} did not contain any report rows.")
    return Path(result["output_file"]), result["warnings"]


def cleanup_files(paths: list[Path]) -> list[str]:
    warnings = []
    for path in dict.fromkeys(Path(p) for p in paths):
        try:
            path.unlink()
        except FileNotFoundError:
            continue
        except OSError as exc:
            warnings.append(f"Unable to remove {path}: {exc}")
    return warnings


def process_submission(submission: Submission, store: TabularStore, upload_dir: Path) -> dict[str, Any]:
    uploads = [(slot, submission.uploads[slot]) for slot in UPLOAD_SLOTS if submission.uploads.get(slot)]
    if not uploads:
        raise InputError("Please upload at least one HTML report.")
    for _, upload in uploads:
        check_upload_name(upload.filename)

    staged: list[Path] = []
    csv_paths: list[Path] = []
    warnings: list[str] = []
    try:
        for slot, upload in uploads:
            saved = stage_upload(upload, slot, upload_dir)
            staged.append(saved)
            csv_path, convert_warnings = ensure_csv(saved)
            csv_paths.append(csv_path)
            warnings.extend(convert_warnings)

        result = sync(
            store,
            load_csv_datasets(csv_paths),
            clinic=submission.clinic or None,
            period=submission.report_date or None,
            complaints=submission.complaint_metrics(),
        )
    finally:
        warnings.extend(cleanup_files(staged + csv_paths))

    return {
        "uploaded_files": [upload.filename for _, upload in uploads],
        "csv_files": [path.name for path in csv_paths],
        "destinations": result["destinations"],
        "warnings": warnings + result["warnings"],
    }
