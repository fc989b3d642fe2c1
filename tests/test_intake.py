import tempfile
import unittest
from pathlib import Path

from clinic_sync.errors import ExtractionError, InputError
from clinic_sync.intake import Submission, Upload, check_upload_name, process_submission, stage_upload
from clinic_sync.stores import MemoryStore
from clinic_sync.upsert import DEPARTMENT_TAB, OTHER_TAB, REVENUE_TAB

ROOT = Path(__file__).resolve().parents[1]
REVENUE_HTML = (ROOT / "sample-data" / "revenue_report.html").read_bytes()
DEPARTMENT_CSV = (
    b"Department ID,Department Name,Doctor ID,Doctor Name,Visits\n"
    b"10,Cardiology,1,Dr. Smith,5\n"
)


class UploadNameTests(unittest.TestCase):
    def test_allowed_suffixes(self):
        for name in ("report.html", "REPORT.HTM", "data.csv"):
            with self.subTest(name=name):
                check_upload_name(name)

    def test_other_types_are_rejected(self):
        for name in ("report.xlsx", "report", "report.html.exe"):
            with self.subTest(name=name):
                with self.assertRaises(InputError):
                    check_upload_name(name)

    def test_staged_name_uses_slot_and_suffix(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = stage_upload(Upload("Revenue Aug.HTML", b"<tr>"), "revenueFile", Path(tmpdir) / "uploads")
            self.assertTrue(path.name.endswith("-revenueFile.html"))
            self.assertEqual(path.read_bytes(), b"<tr>")


class ProcessSubmissionTests(unittest.TestCase):
    def test_submission_without_uploads_is_rejected(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(InputError) as ctx:
                process_submission(Submission(clinic="Qurtubah"), MemoryStore(), Path(tmpdir))
        self.assertEqual(str(ctx.exception), "Please upload at least one HTML report.")

    def test_disallowed_upload_writes_nothing(self):
        store = MemoryStore()
        with tempfile.TemporaryDirectory() as tmpdir:
            submission = Submission(uploads={"revenueFile": Upload("report.pdf", b"%PDF")})
            with self.assertRaises(InputError):
                process_submission(submission, store, Path(tmpdir))
        self.assertEqual(store.tabs, {})

    def test_full_submission_is_synced_and_cleaned_up(self):
        store = MemoryStore()
        submission = Submission(
            clinic="Qurtubah",
            report_date="2025-08",
            medical_complaints="2",
            admin_complaints="1",
            referrals="",
            remarks="AC broken in room 3",
            uploads={
                "revenueFile": Upload("revenue.html", REVENUE_HTML),
                "departmentFile": Upload("department.csv", DEPARTMENT_CSV),
            },
        )
        with tempfile.TemporaryDirectory() as tmpdir:
            upload_dir = Path(tmpdir) / "uploads"
            result = process_submission(submission, store, upload_dir)
            self.assertEqual(list(upload_dir.iterdir()), [])

        self.assertEqual(result["uploaded_files"], ["revenue.html", "department.csv"])
        self.assertEqual([item["tab"] for item in result["destinations"]], [REVENUE_TAB, DEPARTMENT_TAB, OTHER_TAB])
        self.assertEqual(len(store.tabs[REVENUE_TAB]), 4)
        self.assertEqual(store.tabs[DEPARTMENT_TAB][1][:2], ["2025-08-01", "Qurtubah"])
        self.assertEqual(store.tabs[OTHER_TAB][1], ["2025-08-01", "Qurtubah", 2, 1, 0, "AC broken in room 3"])

    def test_staged_files_are_removed_when_conversion_fails(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            upload_dir = Path(tmpdir)
            submission = Submission(uploads={"revenueFile": Upload("revenue.html", b"<p>Session expired</p>")})
            with self.assertRaises(ExtractionError):
                process_submission(submission, MemoryStore(), upload_dir)
            self.assertEqual(list(upload_dir.iterdir()), [])


if __name__ == "__main__":
    unittest.main()
