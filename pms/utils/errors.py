"""Standardised API error responses.

Usage
-----
    from pms.utils.errors import api_error, E, register_error_handlers

    return api_error(E.VALIDATION_REQUIRED, "month is required")

    ipp_bp = Blueprint("ipp", __name__, url_prefix="/api/v1")
    register_error_handlers(ipp_bp)
"""

from __future__ import annotations

import logging

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from pms.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    StateError,
    TransportError,
    ValidationError,
    WeightError,
)

logger = logging.getLogger(__name__)


class Unauthenticated(Exception):
    """No valid bearer token on a route that needs an actor."""


class MalformedRequest(Exception):
    """Request body or query string cannot be parsed at all."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants."""

    # Malformed input: HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_FORMAT = "ERR_VALIDATION_FORMAT"

    # Business rule: HTTP 422
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    WEIGHT = "ERR_WEIGHT"

    # Auth: HTTP 401 / 403
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"
    FORBIDDEN = "ERR_FORBIDDEN"

    # Not-found: HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict: HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"

    # Server: HTTP 500 / 503
    INTERNAL = "ERR_INTERNAL"
    TRANSPORT = "ERR_TRANSPORT"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_FORMAT: 400,
    E.VALIDATION_INVALID: 422,
    E.WEIGHT: 422,
    E.UNAUTHENTICATED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.CONFLICT_STATE: 409,
    E.INTERNAL: 500,
    E.TRANSPORT: 503,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (violated weight limits, etc.).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def register_error_handlers(bp) -> None:
    """Map the service exception hierarchy onto HTTP responses for a blueprint."""

    @bp.errorhandler(Unauthenticated)
    def _handle_unauthenticated(error: Unauthenticated):
        return api_error(E.UNAUTHENTICATED, str(error))

    @bp.errorhandler(MalformedRequest)
    def _handle_malformed(error: MalformedRequest):
        code = E.VALIDATION_REQUIRED if error.field and "required" in str(error) else E.VALIDATION_FORMAT
        return api_error(code, str(error), details={"field": error.field} if error.field else None)

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, str(error))

    @bp.errorhandler(WeightError)
    def _handle_weight(error: WeightError):
        return api_error(E.WEIGHT, str(error), details=error.details)

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        return api_error(E.VALIDATION_INVALID, str(error), details=error.details)

    @bp.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        return api_error(E.CONFLICT_DUPLICATE, str(error), details={"field": error.field})

    @bp.errorhandler(StateError)
    def _handle_state(error: StateError):
        return api_error(
            E.CONFLICT_STATE,
            str(error),
            details={"action": error.action, "current": error.current},
        )

    @bp.errorhandler(ForbiddenError)
    def _handle_forbidden(error: ForbiddenError):
        return api_error(E.FORBIDDEN, str(error), details={"action": error.action})

    @bp.errorhandler(TransportError)
    def _handle_transport(error: TransportError):
        logger.error("Storage failure endpoint=%s: %s", request.endpoint, error)
        return api_error(E.TRANSPORT, "Storage service unavailable")

    @bp.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            return error
        logger.exception("Unexpected error in %s endpoint=%s", bp.name, request.endpoint)
        return api_error(E.INTERNAL, "Internal server error")
