from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from clinic_sync import __version__ as TOOL_VERSION
from clinic_sync.config import build_settings, load_service_account, SyncSettings
from clinic_sync.contracts import build_payload, build_run_summary
from clinic_sync.converter import CSV_SUFFIXES, HTML_SUFFIXES, convert_files, resolve_inputs
from clinic_sync.errors import ConfigurationError, InputError, RemoteError
from clinic_sync.stores import SheetsStore, TabularStore, WorkbookStore
from clinic_sync.upsert import load_csv_datasets, plan_sync, sync

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_NO_DATA = 2
EXIT_CONFIG_ERROR = 3
EXIT_REMOTE_ERROR = 4
EXIT_CONVERT_FAILED = 5
EXIT_PARTIAL = 6


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class ClinicSyncArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def maybe_emit_json_stdout(payload: Any, enabled: bool) -> None:
    if enabled:
        print(json_dumps(payload))


def build_parser() -> argparse.ArgumentParser:
    parser = ClinicSyncArgumentParser(
        prog="clinic-sync",
        description="Convert clinic HTML reports to CSV and merge them into the reporting spreadsheet.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    convert = subparsers.add_parser("convert", help="Convert HTML reports to sibling CSV files.")
    convert.add_argument("inputs", nargs="*", help="HTML report paths (default: every .html file in the working directory)")
    convert.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    convert.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")

    sync_cmd = subparsers.add_parser("sync", help="Upsert converted CSV files into the destination tabs.")
    sync_cmd.add_argument("inputs", nargs="*", help="CSV paths (default: every .csv file in the working directory)")
    sync_cmd.add_argument("--clinic", help="Clinic name (env CLINIC_NAME)")
    sync_cmd.add_argument("--date", dest="period", help="Report period: YYYY-MM, YYYY-MM-DD or a serial day (env REPORT_DATE)")
    sync_cmd.add_argument("--medical-complaints", help="Medical complaint count (env MEDICAL_COMPLAINTS)")
    sync_cmd.add_argument("--admin-complaints", help="Administrative complaint count (env ADMIN_COMPLAINTS)")
    sync_cmd.add_argument("--referrals", help="Referral count (env REFERRALS)")
    sync_cmd.add_argument("--remarks", help="Free-text remarks (env REMARKS)")
    sync_cmd.add_argument("--spreadsheet-id", help="Destination spreadsheet id (env SPREADSHEET_ID)")
    sync_cmd.add_argument("--credentials", dest="credentials_path", help="Service account JSON path (env CLINIC_SYNC_CREDENTIALS)")
    sync_cmd.add_argument("--workbook", help="Write to a local .xlsx workbook instead of the spreadsheet")
    sync_cmd.add_argument("--dry-run", action="store_true", help="Prepare datasets without touching any destination")
    sync_cmd.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    sync_cmd.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")

    subparsers.add_parser("version", help="Print version")
    return parser


def convert_exit_code(results: list[dict[str, Any]]) -> int:
    converted = sum(1 for item in results if item["status"] == "ok")
    failed = sum(1 for item in results if item["status"] == "failed")
    if failed:
        return EXIT_PARTIAL if converted else EXIT_CONVERT_FAILED
    if not converted:
        return EXIT_NO_DATA
    return EXIT_SUCCESS


def run_convert(args: argparse.Namespace) -> int:
    try:
        paths = resolve_inputs(args.inputs, HTML_SUFFIXES)
    except InputError as exc:
        eprint(str(exc))
        return EXIT_COMMAND_ERROR

    results = convert_files(paths)
    warnings: list[str] = []
    errors: list[str] = []
    for item in results:
        if item["status"] == "ok":
            emit_human(f"Created {item['output_file']} with {item['rows']} rows.", quiet=args.quiet)
        for warning in item["warnings"]:
            emit_human(f"Warning: {warning}", quiet=args.quiet)
            warnings.append(warning)
        if item.get("error"):
            eprint(item["error"])
            errors.append(item["error"])

    code = convert_exit_code(results)
    if code == EXIT_NO_DATA:
        eprint("No report produced any rows.")
    summary = build_run_summary(
        command="convert",
        inputs=[item["input_file"] for item in results],
        outputs=[item["output_file"] for item in results if item["output_file"]],
        status="ok" if code == EXIT_SUCCESS else "partial" if code == EXIT_PARTIAL else "failed",
        metrics={
            "files_converted": sum(1 for item in results if item["status"] == "ok"),
            "files_skipped": sum(1 for item in results if item["status"] == "skipped"),
            "files_failed": len(errors),
            "rows_written": sum(item["rows"] for item in results if item["status"] == "ok"),
        },
        warnings=warnings,
        errors=errors,
    )
    maybe_emit_json_stdout(build_payload("clinic_sync.convert", summary, files=results), args.json)
    return code


def settings_from_args(args: argparse.Namespace) -> SyncSettings:
    return build_settings(
        {
            "clinic": args.clinic,
            "period": args.period,
            "medical_complaints": args.medical_complaints,
            "admin_complaints": args.admin_complaints,
            "referrals": args.referrals,
            "remarks": args.remarks,
            "spreadsheet_id": args.spreadsheet_id,
            "credentials_path": args.credentials_path,
        }
    )


def open_store(args: argparse.Namespace, settings: SyncSettings) -> TabularStore:
    if args.workbook:
        return WorkbookStore(Path(args.workbook))
    spreadsheet_id = settings.require_spreadsheet_id()
    account = load_service_account(settings.credentials_path)
    return SheetsStore(spreadsheet_id, account)


def render_plan_text(plan: dict[str, Any]) -> str:
    lines = ["clinic-sync dry run"]
    for tab, rows in plan["datasets"]:
        header = ", ".join(str(cell) for cell in rows[0]) if rows else ""
        lines.append(f'  {tab}: {max(len(rows) - 1, 0)} rows [{header}]')
    return "\n".join(lines)


def run_sync(args: argparse.Namespace) -> int:
    settings = settings_from_args(args)
    try:
        paths = resolve_inputs(args.inputs, CSV_SUFFIXES)
        missing = [str(path) for path in paths if not path.exists()]
        if missing:
            raise InputError(f"File not found: {', '.join(missing)}")
        datasets = load_csv_datasets(paths)
    except InputError as exc:
        eprint(str(exc))
        return EXIT_COMMAND_ERROR

    if not datasets:
        eprint("No CSV data available to push.")
        return EXIT_NO_DATA

    options = {"clinic": settings.clinic, "period": settings.period, "complaints": settings.complaints}
    inputs = [str(path) for path in paths]

    if args.dry_run:
        plan = plan_sync(datasets, **options)
        for warning in plan["warnings"]:
            emit_human(f"Warning: {warning}", quiet=args.quiet)
        emit_human(render_plan_text(plan), quiet=args.quiet)
        summary = build_run_summary(
            command="sync",
            inputs=inputs,
            status="dry-run",
            metrics={"destinations": [tab for tab, _ in plan["datasets"]]},
            warnings=plan["warnings"],
        )
        datasets_payload = {tab: rows for tab, rows in plan["datasets"]}
        maybe_emit_json_stdout(build_payload("clinic_sync.sync", summary, datasets=datasets_payload), args.json)
        return EXIT_SUCCESS

    try:
        store = open_store(args, settings)
        result = sync(store, datasets, **options)
    except ConfigurationError as exc:
        eprint(str(exc))
        return EXIT_CONFIG_ERROR
    except RemoteError as exc:
        eprint(f"Failed to sync data: {exc}")
        return EXIT_REMOTE_ERROR

    for warning in result["warnings"]:
        emit_human(f"Warning: {warning}", quiet=args.quiet)
    for item in result["destinations"]:
        emit_human(
            f'Updated "{item["tab"]}": {item["rows_deleted"]} replaced, {item["rows_written"]} written.',
            quiet=args.quiet,
        )
    emit_human(f"Finished syncing data to {store.describe()}.", quiet=args.quiet)

    summary = build_run_summary(
        command="sync",
        inputs=inputs,
        outputs=[item["tab"] for item in result["destinations"]],
        metrics={
            "rows_deleted": sum(item["rows_deleted"] for item in result["destinations"]),
            "rows_written": sum(item["rows_written"] for item in result["destinations"]),
        },
        warnings=result["warnings"],
    )
    maybe_emit_json_stdout(
        build_payload("clinic_sync.sync", summary, destinations=result["destinations"]),
        args.json,
    )
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        if args.command == "convert":
            return run_convert(args)
        if args.command == "sync":
            return run_sync(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())
