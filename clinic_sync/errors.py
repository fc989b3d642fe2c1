"""Error taxonomy shared by the conversion and sync pipelines."""

from __future__ import annotations


class ClinicSyncError(Exception):
    """Base class for every error raised by clinic_sync."""


class InputError(ClinicSyncError):
    """Disallowed file type, or no input files given or discovered."""


class ExtractionError(ClinicSyncError):
    """The HTML report contains no parseable table rows."""


class ConfigurationError(ClinicSyncError):
    """Missing or invalid credentials or destination configuration."""


class RemoteError(ClinicSyncError):
    """The destination store rejected a request."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.message = message

    @property
    def is_missing_range(self) -> bool:
        # 404 for an unknown tab, 400 "Unable to parse range" for a tab
        # that exists in no form the store can address.
        if self.status == 404:
            return True
        text = self.message.lower()
        return self.status == 400 and ("unable to parse range" in text or "not found" in text)

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        return f"{self.message} (HTTP {self.status})"
