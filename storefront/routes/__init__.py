"""HTTP blueprints for the storefront API."""

from __future__ import annotations

from typing import Any, Dict

from flask import jsonify, request

from ..errors import StoreError, ValidationError


def error_response(exc: StoreError):
    return jsonify(exc.to_dict()), exc.http_status


def json_object() -> Dict[str, Any]:
    """Request body as a dict; a missing or unparseable body reads as empty."""
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload
