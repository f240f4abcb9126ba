"""Error types shared by the RetailPulse service and CLI."""

from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    """Exit codes returned by the RetailPulse CLI when a command fails."""

    VALIDATION = 1
    CONFIG = 3
    EXTERNAL = 4
    RUNTIME = 5


class RetailPulseError(Exception):
    """Base class for failures reported to API callers and CLI users.

    ``message`` is returned verbatim in API error bodies, so subclasses keep it
    free of tracebacks and internal detail.
    """

    exit_code: ExitCode = ExitCode.RUNTIME
    heading = "Error"

    def __init__(self, message: str, *, exit_code: ExitCode | None = None) -> None:
        super().__init__(message)
        self.message = message
        if exit_code is not None:
            self.exit_code = exit_code


class RetailPulseValidationError(RetailPulseError):
    """A submission was rejected before a job was created."""

    exit_code = ExitCode.VALIDATION
    heading = "Validation error"


class RetailPulseConfigError(RetailPulseError):
    """Settings or the store master could not be loaded."""

    exit_code = ExitCode.CONFIG
    heading = "Configuration error"


class RetailPulseExternalServiceError(RetailPulseError):
    """A remote image host failed or returned unusable data."""

    exit_code = ExitCode.EXTERNAL
    heading = "External service error"


class FetchError(RetailPulseExternalServiceError):
    """An image could not be downloaded or decoded.

    The message is recorded as the job's ``StoreError`` text.
    """

    heading = "Image fetch error"

    def __init__(self, message: str, *, url: str) -> None:
        super().__init__(message)
        self.url = url


class StoreMasterError(RetailPulseConfigError):
    heading = "Store master error"
