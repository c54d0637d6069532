"""Exceptions raised by the report repository and service layers.

Each exception carries the HTTP status the JSON blueprints respond with so
error handlers can translate them without a lookup table.
"""

from __future__ import annotations

from typing import Dict, Optional


class ReportError(Exception):
    """Base class for recoverable, request-scoped report failures."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, object]:
        return {"error": self.message}


class ValidationError(ReportError):
    """Input failed shape validation.

    Attributes:
        errors: Field-level messages keyed by dotted path, for example
            ``{"services.0.name": "Service name is required"}``.
    """

    status_code = 400

    def __init__(self, errors: Dict[str, str], message: Optional[str] = None):
        super().__init__(message or "Please correct the highlighted fields.")
        self.errors = dict(errors)

    def to_dict(self) -> Dict[str, object]:
        return {"error": self.message, "errors": self.errors}


class DuplicateDateError(ReportError):
    """A report already exists for the requested date."""

    status_code = 409

    def __init__(self, date: str):
        super().__init__(f"A report for {date} already exists.")
        self.date = date


class NotFoundError(ReportError):
    """The requested report does not exist."""

    status_code = 404


class InvalidIdentifierError(NotFoundError):
    """The supplied identifier is not a well-formed report id."""


class UnauthorizedError(ReportError):
    """The caller has not passed the authentication gate."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class StorageUnavailableError(ReportError):
    """The database could not be reached within the configured timeout."""

    status_code = 503

    def __init__(self, message: str = "Report storage is unavailable. Please try again later."):
        super().__init__(message)
