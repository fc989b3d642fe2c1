"""Versioned JSON payloads emitted by the convert and sync commands."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

CONTRACT_VERSIONS = {
    "clinic_sync.convert": "1.0.0",
    "clinic_sync.sync": "1.0.0",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_contract(name: str) -> dict[str, str]:
    version = CONTRACT_VERSIONS[name]
    return {"name": name, "version": version}


def build_run_summary(
    *,
    command: str,
    inputs: list[str],
    status: str = "ok",
    outputs: list[str] | None = None,
    metrics: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
    errors: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "tool": "clinic-sync",
        "command": command,
        "status": status,
        "generated_at": utc_now_iso(),
        "input_files": list(inputs),
        "output_files": list(outputs or []),
        "warnings_count": len(warnings or []),
        "warnings": list(warnings or []),
        "errors": list(errors or []),
        "metrics": metrics or {},
    }


def build_payload(name: str, run_summary: dict[str, Any], **extra: Any) -> dict[str, Any]:
    contract = build_contract(name)
    payload = {
        "contract": contract,
        "schema_version": contract["version"],
        "run_summary": run_summary,
    }
    payload.update(extra)
    return payload
