"""Runtime settings: environment defaults, flag overrides, credential loading."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from clinic_sync.errors import ConfigurationError

DEFAULT_SPREADSHEET_ID = "10Bhfqts3cyyjy7VP0ENA08wNdwlLRGZ9JK4QaHJ2egU"
DEFAULT_CREDENTIALS_FILENAME = ".env"
DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"
SPREADSHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"

ENV_CLINIC = "CLINIC_NAME"
ENV_REPORT_DATE = "REPORT_DATE"
ENV_MEDICAL_COMPLAINTS = "MEDICAL_COMPLAINTS"
ENV_ADMIN_COMPLAINTS = "ADMIN_COMPLAINTS"
ENV_REFERRALS = "REFERRALS"
ENV_REMARKS = "REMARKS"
ENV_SPREADSHEET_ID = "SPREADSHEET_ID"
ENV_CREDENTIALS = "CLINIC_SYNC_CREDENTIALS"


@dataclass(frozen=True)
class ComplaintMetrics:
    medical: str | None = None
    administrative: str | None = None
    referrals: str | None = None
    remarks: str | None = None


@dataclass
class SyncSettings:
    clinic: str | None = None
    period: str | None = None
    complaints: ComplaintMetrics = field(default_factory=ComplaintMetrics)
    spreadsheet_id: str | None = DEFAULT_SPREADSHEET_ID
    credentials_path: Path = field(default_factory=lambda: Path.cwd() / DEFAULT_CREDENTIALS_FILENAME)

    def require_spreadsheet_id(self) -> str:
        if not self.spreadsheet_id or not self.spreadsheet_id.strip():
            raise ConfigurationError(
                f"Provide the target spreadsheet ID via {ENV_SPREADSHEET_ID} or --spreadsheet-id."
            )
        return self.spreadsheet_id.strip()


@dataclass(frozen=True)
class ServiceAccount:
    client_email: str
    private_key: str
    token_uri: str = DEFAULT_TOKEN_URI


def _first(*values: str | None) -> str | None:
    for value in values:
        if value is not None and value != "":
            return value
    return None


def build_settings(overrides: Mapping[str, str | None] | None = None, environ: Mapping[str, str] | None = None) -> SyncSettings:
    """Environment values are defaults; non-empty ``overrides`` win."""
    env = os.environ if environ is None else environ
    given = dict(overrides or {})

    spreadsheet_id = given.get("spreadsheet_id")
    if spreadsheet_id is None:
        spreadsheet_id = env.get(ENV_SPREADSHEET_ID, DEFAULT_SPREADSHEET_ID)

    credentials = _first(given.get("credentials_path"), env.get(ENV_CREDENTIALS))
    credentials_path = Path(credentials) if credentials else Path.cwd() / DEFAULT_CREDENTIALS_FILENAME

    return SyncSettings(
        clinic=_first(given.get("clinic"), env.get(ENV_CLINIC)),
        period=_first(given.get("period"), env.get(ENV_REPORT_DATE)),
        complaints=ComplaintMetrics(
            medical=_first(given.get("medical_complaints"), env.get(ENV_MEDICAL_COMPLAINTS)),
            administrative=_first(given.get("admin_complaints"), env.get(ENV_ADMIN_COMPLAINTS)),
            referrals=_first(given.get("referrals"), env.get(ENV_REFERRALS)),
            remarks=_first(given.get("remarks"), env.get(ENV_REMARKS)),
        ),
        spreadsheet_id=spreadsheet_id,
        credentials_path=credentials_path,
    )


def load_service_account(path: Path) -> ServiceAccount:
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(
            f"Missing service account file: {path}. Place the JSON credentials there."
        )
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ConfigurationError(
            f"Unable to parse {path.name}. Ensure it contains valid JSON for the service account."
        ) from exc
    if not isinstance(payload, dict):
        raise ConfigurationError(f"{path.name} must contain a JSON object.")

    email = payload.get("client_email")
    key = payload.get("private_key")
    missing = [name for name, value in (("client_email", email), ("private_key", key)) if not value]
    if missing:
        raise ConfigurationError(f"Service account file is missing: {', '.join(missing)}")

    return ServiceAccount(
        client_email=str(email),
        private_key=str(key).replace("\\n", "\n"),
        token_uri=str(payload.get("token_uri") or DEFAULT_TOKEN_URI),
    )
