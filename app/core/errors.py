"""
Domain error taxonomy.

Services raise these; the HTTP layer renders them as
``{"error": code, "message": ..., "details": {...}}`` with the status below.
Anything that is not a ``DomainError`` is an infrastructure failure and
propagates as a 500.
"""
from __future__ import annotations

from typing import Any


class DomainError(Exception):
    code = "domain_error"
    status_code = 400

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message, "details": self.details}


class NotFound(DomainError):
    code = "not_found"
    status_code = 404


class InvalidTransition(DomainError):
    code = "invalid_transition"
    status_code = 409


class PreconditionFailed(DomainError):
    code = "precondition_failed"
    status_code = 422


class Forbidden(DomainError):
    code = "forbidden"
    status_code = 403


class ValidationFailed(DomainError):
    """Carries every violation, never just the first one."""

    code = "validation_failed"
    status_code = 422

    def __init__(self, message: str, errors: list[dict[str, Any]], **details: Any):
        super().__init__(message, errors=errors, **details)
        self.errors = errors


class StaleVersion(DomainError):
    """The row changed since the client read it (If-Match / version column)."""

    code = "stale_version"
    status_code = 409
