"""Exception hierarchy for catalog synchronization.

Request-level failures are retried inside the executor and only surface as
``ExhaustedRetries``. Everything else propagates unchanged to the caller; the
synchronizer stamps ``mode`` and ``stage`` on the way out so a caller can tell
an unreachable remote from a rejected batch from a bad invocation.
"""

from __future__ import annotations


class CatalogSyncError(Exception):
    """Base exception for catalog sync."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.mode: str | None = None
        self.stage: str | None = None

    def __str__(self) -> str:
        message = super().__str__()
        context = [f"{name}={value}" for name, value in (("mode", self.mode), ("stage", self.stage)) if value]
        if context:
            return f"{message} ({', '.join(context)})"
        return message


class ConfigError(CatalogSyncError, ValueError):
    """A configuration option is missing or out of range."""


class TransientRequestFailure(CatalogSyncError):
    """A single remote attempt failed and may succeed on retry."""

    def __init__(self, message: str, errors: list | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class ExhaustedRetries(CatalogSyncError):
    """Every attempt of a logical request failed."""

    def __init__(self, attempts: int, cause: BaseException) -> None:
        super().__init__(f"Request failed after {attempts} attempt(s): {cause}")
        self.attempts = attempts
        self.cause = cause


class InvalidMode(CatalogSyncError, ValueError):
    """Unrecognized sync mode."""

    def __init__(self, mode: object) -> None:
        super().__init__(f"Unknown sync mode: {mode!r}")
        self.requested_mode = mode


class InvalidSyncRequest(CatalogSyncError, ValueError):
    """Mode parameters are missing or malformed."""


class PersistenceError(CatalogSyncError):
    """A bulk upsert was rejected by the sink."""

    def __init__(self, table: str, count: int, cause: BaseException) -> None:
        super().__init__(f"Bulk upsert of {count} row(s) into {table} failed: {cause}")
        self.table = table
        self.count = count
        self.cause = cause
