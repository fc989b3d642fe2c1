#!/usr/bin/env python3
from __future__ import annotations

import tempfile
from pathlib import Path

import pandas as pd
import streamlit as st

from clinic_sync.config import build_settings, load_service_account
from clinic_sync.errors import ClinicSyncError
from clinic_sync.intake import ALLOWED_UPLOAD_SUFFIXES, CLINICS, Submission, Upload, process_submission
from clinic_sync.stores import SheetsStore

UPLOAD_DIR = Path(tempfile.gettempdir()) / "clinic-sync-uploads"
UPLOAD_TYPES = [suffix.lstrip(".") for suffix in sorted(ALLOWED_UPLOAD_SUFFIXES)]


def ensure_state() -> None:
    st.session_state.setdefault("result", None)
    st.session_state.setdefault("error", None)


def open_store() -> SheetsStore:
    settings = build_settings()
    return SheetsStore(settings.require_spreadsheet_id(), load_service_account(settings.credentials_path))


def collect_uploads(revenue_file, department_file) -> dict[str, Upload]:
    uploads = {}
    for slot, item in (("revenueFile", revenue_file), ("departmentFile", department_file)):
        if item is not None:
            uploads[slot] = Upload(filename=item.name, payload=item.getvalue())
    return uploads


def render_result(result: dict) -> None:
    st.success("The reports were converted and synced.")
    submission = st.session_state.get("submission_summary") or {}
    st.table(pd.DataFrame([(label, value) for label, value in submission.items()], columns=["Field", "Value"]))
    st.subheader("Destinations")
    st.dataframe(pd.DataFrame(result["destinations"]), hide_index=True)
    st.markdown("**Uploaded files:** " + ", ".join(result["uploaded_files"]))
    for warning in result["warnings"]:
        st.warning(warning)


def main() -> None:
    st.set_page_config(page_title="Dallah Clinics Upload", layout="centered")
    ensure_state()
    st.title("Dallah Clinics Upload")

    if st.session_state["error"]:
        st.error(st.session_state["error"])

    with st.form("report_upload"):
        revenue_file = st.file_uploader("Select Revenue File", type=UPLOAD_TYPES)
        department_file = st.file_uploader("Select Department File", type=UPLOAD_TYPES)
        clinic = st.selectbox("Select Clinic", CLINICS)
        report_date = st.date_input("Select Date", value=None)
        medical = st.number_input("Medical Complaints", min_value=0, step=1, value=0)
        administrative = st.number_input("Administrative Complaints", min_value=0, step=1, value=0)
        referrals = st.number_input("Number of Referral Patients", min_value=0, step=1, value=0)
        remarks = st.text_area("Remarks (Optional)", placeholder="Enter remarks here (optional)")
        submitted = st.form_submit_button("Submit", type="primary")

    if not submitted:
        if st.session_state["result"]:
            render_result(st.session_state["result"])
        return

    submission = Submission(
        clinic=clinic,
        report_date=report_date.isoformat() if report_date else "",
        medical_complaints=str(int(medical)),
        admin_complaints=str(int(administrative)),
        referrals=str(int(referrals)),
        remarks=remarks.strip(),
        uploads=collect_uploads(revenue_file, department_file),
    )
    st.session_state["submission_summary"] = {
        "Clinic": submission.clinic or "-",
        "Date": submission.report_date or "-",
        "Medical Complaints": submission.medical_complaints,
        "Administrative Complaints": submission.admin_complaints,
        "Referrals": submission.referrals,
        "Remarks": submission.remarks or "-",
    }

    with st.spinner("Converting and syncing reports..."):
        try:
            st.session_state["result"] = process_submission(submission, open_store(), UPLOAD_DIR)
            st.session_state["error"] = None
        except ClinicSyncError as exc:
            st.session_state["result"] = None
            st.session_state["error"] = str(exc)
    st.rerun()


if __name__ == "__main__":
    main()
