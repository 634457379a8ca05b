"""JSON error envelope shared by every blueprint.

Every failure leaves the API as ``{"error": <message>, "code": <ERR_*>}``,
plus ``details`` when there is a field-level breakdown:

    return api_error(E.NOT_FOUND, "Declaration not found")
    return error_for_exception(exc)   # workflow exception → envelope
"""

from __future__ import annotations

from flask import jsonify

from hours_workflow.core.exceptions import (
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)


class E:
    """Error codes returned to clients."""

    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    BAD_REQUEST = "ERR_BAD_REQUEST"
    NOT_FOUND = "ERR_NOT_FOUND"
    CONFLICT_STALE = "ERR_CONFLICT_STALE"
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"
    FORBIDDEN = "ERR_FORBIDDEN"
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


_STATUS_BY_CODE: dict[str, int] = {
    E.VALIDATION_REQUIRED: 422,
    E.VALIDATION_INVALID: 422,
    E.BAD_REQUEST: 400,
    E.NOT_FOUND: 404,
    E.CONFLICT_STALE: 409,
    E.UNAUTHENTICATED: 401,
    E.FORBIDDEN: 403,
    E.DATABASE: 500,
    E.INTERNAL: 500,
}


def api_error(code: str, message: str, *, status: int | None = None, details: dict | None = None):
    """``(jsonify(body), status)`` for ``code``; status defaults from the code table."""
    body: dict = {"error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status or _STATUS_BY_CODE.get(code, 400)


def error_for_exception(exc: Exception):
    """Translate a workflow exception into its error envelope.

    An UnauthorizedError without an actor means nobody could be identified
    (401); with an actor it is a refused action (403).
    """
    if isinstance(exc, ValidationError):
        return api_error(E.VALIDATION_INVALID, str(exc), details=exc.details)
    if isinstance(exc, UnauthorizedError):
        code = E.UNAUTHENTICATED if exc.actor_id is None else E.FORBIDDEN
        return api_error(code, str(exc))
    if isinstance(exc, ConflictError):
        return api_error(
            E.CONFLICT_STALE, str(exc),
            details={"resource_id": exc.resource_id, "expected_version": exc.expected_version},
        )
    if isinstance(exc, NotFoundError):
        return api_error(E.NOT_FOUND, str(exc))
    return api_error(E.INTERNAL, "Internal server error")
