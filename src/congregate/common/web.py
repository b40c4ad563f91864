"""Shared Flask helpers: session guards and DomainError -> JSON mapping."""
from __future__ import annotations

import logging
from functools import wraps

from flask import jsonify, request, session

from ..core.enums import StaffRole
from ..core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DomainError,
    ExternalCheckInUnavailable,
    GatheringInactiveError,
    InvalidCredential,
    NotFoundError,
    PolicyDenied,
    RateLimited,
    ValidationError,
)
from .ids import correlation_id

logger = logging.getLogger(__name__)

# Most specific first
_STATUS_BY_ERROR = (
    (ExternalCheckInUnavailable, 401),
    (RateLimited, 429),
    (PolicyDenied, 403),
    (ValidationError, 400),
    (NotFoundError, 404),
    (GatheringInactiveError, 409),
    (ConflictError, 409),
    (InvalidCredential, 401),
    (AuthenticationError, 401),
    (AuthorizationError, 403),
)


def current_tenant_id() -> str:
    return str(session["tenant_id"])


def current_role() -> StaffRole:
    return StaffRole(session.get("role", StaffRole.STAFF.value))


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if "staff_id" not in session or "tenant_id" not in session:
            return jsonify({"success": False, "message": "Please log in to continue"}), 401
        return view(*args, **kwargs)

    return wrapper


def admin_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if "staff_id" not in session or "tenant_id" not in session:
            return jsonify({"success": False, "message": "Please log in to continue"}), 401
        if session.get("role") != StaffRole.ADMIN.value:
            return jsonify({"success": False, "message": "Admin access required"}), 403
        return view(*args, **kwargs)

    return wrapper


def error_response(exc: DomainError):
    status = 400
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            status = code
            break

    body = {"success": False, "message": str(exc)}
    if isinstance(exc, PolicyDenied):
        body.update({"upgradeRequired": True, "capability": exc.capability, "limit": exc.limit})
    if isinstance(exc, NotFoundError):
        body["kind"] = exc.kind

    response = jsonify(body)
    response.status_code = status
    if isinstance(exc, RateLimited):
        response.headers["Retry-After"] = str(exc.retry_after)
    return response


def unexpected_error(exc: Exception, action: str):
    """Log with an opaque id and return it; internal detail never leaves the server."""
    cid = correlation_id()
    logger.error("Unexpected error during %s [cid=%s]", action, cid, exc_info=exc)
    return jsonify({"success": False, "message": f"Failed to {action}", "correlationId": cid}), 500


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data
