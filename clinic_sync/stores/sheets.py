"""
sheets.py — Google Sheets destination over the v4 REST API

Authentication follows the service-account flow: an RS256-signed assertion
is exchanged for a bearer token once per store. Every call is a single round
trip; nothing is retried.
"""

from __future__ import annotations

import time
from typing import Any
from urllib.parse import quote

import requests
from jose import jwt
from jose.exceptions import JOSEError

from clinic_sync.config import SPREADSHEETS_SCOPE, ServiceAccount
from clinic_sync.errors import ConfigurationError, RemoteError
from clinic_sync.stores.base import Row, RowPredicate, TabularStore

API_ROOT = "https://sheets.googleapis.com/v4/spreadsheets"
JWT_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:jwt-bearer"
TOKEN_LIFETIME_SECONDS = 3600
REQUEST_TIMEOUT_SECONDS = 30
FULL_WIDTH = "A:ZZ"


def build_assertion(account: ServiceAccount, *, now: int | None = None) -> str:
    issued = int(time.time()) if now is None else now
    claims = {
        "iss": account.client_email,
        "scope": SPREADSHEETS_SCOPE,
        "aud": account.token_uri,
        "iat": issued,
        "exp": issued + TOKEN_LIFETIME_SECONDS,
    }
    return jwt.encode(claims, account.private_key, algorithm="RS256")


def _error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip() or response.reason or "request failed"
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        return str(error.get("message") or error.get("status") or error)
    if error:
        description = payload.get("error_description")
        return f"{error}: {description}" if description else str(error)
    return response.text.strip() or "request failed"


def fetch_access_token(account: ServiceAccount, session: requests.Session) -> str:
    try:
        assertion = build_assertion(account)
    except (JOSEError, ValueError) as exc:
        raise ConfigurationError(f"Service account private key is not usable: {exc}") from exc

    try:
        response = session.post(
            account.token_uri,
            data={"grant_type": JWT_GRANT_TYPE, "assertion": assertion},
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
    except requests.RequestException as exc:
        raise RemoteError(f"Token request failed: {exc}") from exc

    if 400 <= response.status_code < 500:
        raise ConfigurationError(f"Service account credentials were rejected: {_error_message(response)}")
    if response.status_code >= 300:
        raise RemoteError(f"Token request failed: {_error_message(response)}", status=response.status_code)
    try:
        payload = response.json()
    except ValueError as exc:
        raise RemoteError("Token response was not JSON", status=response.status_code) from exc
    token = payload.get("access_token") if isinstance(payload, dict) else None
    if not token:
        raise RemoteError("Token response did not include an access token", status=response.status_code)
    return token


def tab_range(tab: str, cells: str = FULL_WIDTH) -> str:
    escaped = tab.replace("'", "''")
    return f"'{escaped}'!{cells}"


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def contiguous_ranges(indices: list[int]) -> list[tuple[int, int]]:
    """Collapse sorted zero-based row indices into [start, end) runs."""
    runs: list[tuple[int, int]] = []
    for index in sorted(indices):
        if runs and runs[-1][1] == index:
            runs[-1] = (runs[-1][0], index + 1)
        else:
            runs.append((index, index + 1))
    return runs


class SheetsStore(TabularStore):
    name = "sheets"

    def __init__(
        self,
        spreadsheet_id: str,
        account: ServiceAccount,
        session: requests.Session | None = None,
    ) -> None:
        self.spreadsheet_id = spreadsheet_id
        self.account = account
        self.session = session or requests.Session()
        self._token: str | None = None
        self._sheet_ids: dict[str, int] | None = None

    def describe(self) -> str:
        return f"spreadsheet {self.spreadsheet_id}"

    def _headers(self) -> dict[str, str]:
        if self._token is None:
            self._token = fetch_access_token(self.account, self.session)
        return {"Authorization": f"Bearer {self._token}"}

    def _request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        url = f"{API_ROOT}/{self.spreadsheet_id}{path}"
        try:
            response = self.session.request(
                method,
                url,
                headers=self._headers(),
                timeout=REQUEST_TIMEOUT_SECONDS,
                **kwargs,
            )
        except requests.RequestException as exc:
            raise RemoteError(f"{method} {path} failed: {exc}") from exc
        if response.status_code >= 300:
            raise RemoteError(_error_message(response), status=response.status_code)
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteError(f"{method} {path} returned a non-JSON body", status=response.status_code) from exc

    def _values_path(self, tab: str, cells: str = FULL_WIDTH, suffix: str = "") -> str:
        return f"/values/{quote(tab_range(tab, cells), safe='')}{suffix}"

    def _load_sheet_ids(self) -> dict[str, int]:
        if self._sheet_ids is None:
            payload = self._request("GET", "", params={"fields": "sheets.properties(sheetId,title)"})
            self._sheet_ids = {
                sheet["properties"]["title"]: sheet["properties"]["sheetId"]
                for sheet in payload.get("sheets", [])
            }
        return self._sheet_ids

    def ensure_tab(self, tab: str) -> int:
        sheet_ids = self._load_sheet_ids()
        if tab in sheet_ids:
            return sheet_ids[tab]
        payload = self._request(
            "POST",
            ":batchUpdate",
            json={"requests": [{"addSheet": {"properties": {"title": tab}}}]},
        )
        replies = payload.get("replies") or [{}]
        sheet_id = replies[0].get("addSheet", {}).get("properties", {}).get("sheetId")
        if sheet_id is None:
            self._sheet_ids = None
            return self._load_sheet_ids()[tab]
        sheet_ids[tab] = sheet_id
        return sheet_id

    def read_all(self, tab: str) -> list[Row]:
        payload = self._request(
            "GET",
            self._values_path(tab),
            params={"valueRenderOption": "UNFORMATTED_VALUE", "dateTimeRenderOption": "SERIAL_NUMBER"},
        )
        return [[_as_text(value) for value in row] for row in payload.get("values", [])]

    def clear(self, tab: str) -> None:
        self._request("POST", self._values_path(tab, suffix=":clear"), json={})

    def write_full(self, tab: str, rows: list[Row]) -> None:
        self.ensure_tab(tab)
        self._request(
            "PUT",
            self._values_path(tab, "A1"),
            params={"valueInputOption": "RAW"},
            json={"values": rows},
        )

    def append(self, tab: str, rows: list[Row]) -> None:
        if not rows:
            return
        self._request(
            "POST",
            self._values_path(tab, "A1", ":append"),
            params={"valueInputOption": "RAW", "insertDataOption": "INSERT_ROWS"},
            json={"values": rows},
        )

    def delete_where(self, tab: str, predicate: RowPredicate) -> int:
        rows = self.read_all(tab)
        # Zero-based sheet row indices; row 0 is the header.
        doomed = [index for index, row in enumerate(rows[1:], start=1) if predicate(row)]
        if not doomed:
            return 0
        sheet_id = self._load_sheet_ids().get(tab)
        if sheet_id is None:
            raise RemoteError(f"Tab '{tab}' not found in spreadsheet {self.spreadsheet_id}", status=404)
        requests_payload = [
            {
                "deleteDimension": {
                    "range": {
                        "sheetId": sheet_id,
                        "dimension": "ROWS",
                        "startIndex": start,
                        "endIndex": end,
                    }
                }
            }
            for start, end in reversed(contiguous_ranges(doomed))
        ]
        self._request("POST", ":batchUpdate", json={"requests": requests_payload})
        return len(doomed)
