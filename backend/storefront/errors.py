# Overview: Error taxonomy and the single translator that turns failures into JSON envelopes.

"""
API error taxonomy.

Every failure a client can see is an ApiError subclass carrying:
- status_code: HTTP status (400/401/403/404)
- code: short machine-readable reason (INSUFFICIENT_STOCK, ORDER_NOT_FOUND, ...)
- message: human readable text
- details: optional structured context

Routes do not catch these. register_error_handlers() installs one translator
on the app that maps ApiError, IntegrityError and werkzeug HTTP errors onto
the uniform envelope and falls through to 500 for anything unrecognized.
"""

from __future__ import annotations

import traceback

from flask import current_app, jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from .extensions import db
from .time_utils import utcnow, to_utc_z


class ApiError(Exception):
    """Base class for errors reported to API clients."""
    status_code = 500
    default_code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str | None = None, details: dict | None = None,
                 status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ApiError):
    """400-level input problem."""
    status_code = 400
    default_code = "VALIDATION_ERROR"


class DomainError(ApiError):
    """400-level business rule violation (stock, inactive product, bad transition)."""
    status_code = 400
    default_code = "DOMAIN_RULE_VIOLATION"


class AuthenticationError(ApiError):
    status_code = 401
    default_code = "AUTHENTICATION_REQUIRED"


class AuthorizationError(ApiError):
    status_code = 403
    default_code = "ACCESS_DENIED"


class NotFoundError(ApiError):
    status_code = 404
    default_code = "RESOURCE_NOT_FOUND"


def error_envelope(message: str, code: str, status_code: int, details: dict | None = None):
    body = {"message": message, "code": code, "timestamp": to_utc_z(utcnow())}
    if details:
        body["details"] = details
    return jsonify({"success": False, "error": body}), status_code


def _duplicate_field(exc: IntegrityError) -> str | None:
    # sqlite: "UNIQUE constraint failed: users.email"
    # postgres: 'duplicate key value violates unique constraint "users_email_key"'
    text = str(exc.orig)
    if "UNIQUE constraint failed:" in text:
        column = text.split("UNIQUE constraint failed:", 1)[1].split(",")[0].strip()
        return column.split(".")[-1]
    if "duplicate key" in text and "Key (" in text:
        return text.split("Key (", 1)[1].split(")", 1)[0]
    return None


def register_error_handlers(app) -> None:
    @app.errorhandler(ApiError)
    def handle_api_error(exc: ApiError):
        db.session.rollback()
        return error_envelope(exc.message, exc.code, exc.status_code, exc.details)

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(exc: IntegrityError):
        db.session.rollback()
        field = _duplicate_field(exc)
        if field:
            message = f"{field.replace('_', ' ').capitalize()} already exists"
            return error_envelope(message, "DUPLICATE_FIELD", 400)
        current_app.logger.warning("Integrity error: %s", exc.orig)
        return error_envelope("Request conflicts with existing data", "INTEGRITY_ERROR", 400)

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        codes = {
            400: "BAD_REQUEST",
            404: "NOT_FOUND",
            405: "METHOD_NOT_ALLOWED",
            415: "UNSUPPORTED_MEDIA_TYPE",
        }
        code = codes.get(exc.code, "HTTP_ERROR")
        message = "Route not found" if exc.code == 404 else (exc.description or exc.name)
        return error_envelope(message, code, exc.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        db.session.rollback()
        current_app.logger.exception("Unhandled error")
        details = None
        if current_app.config.get("EXPOSE_ERROR_DETAILS"):
            details = {
                "type": type(exc).__name__,
                "stack": traceback.format_exception(type(exc), exc, exc.__traceback__),
            }
        return error_envelope("Internal server error", "INTERNAL_ERROR", 500, details)
