from __future__ import annotations

from flask import jsonify, request

from .errors import ValidationError


def success(data=None, message: str | None = None, status: int = 200):
    """Uniform success envelope: {success, data, message}."""
    body: dict = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    return jsonify(body), status


def json_body() -> dict:
    """Request JSON as a dict; an absent body is an empty dict."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data
