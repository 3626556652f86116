# Overview: Maps service-layer exceptions to JSON error responses.

from flask import jsonify

from ..services.sale_service import ExpiredItemsBlock
from ..validation import ConflictError, NotFoundError, ValidationError

# Exceptions a route turns into a 4xx instead of logging a 500
CLIENT_ERRORS = (ValidationError, ConflictError, NotFoundError)


def error_response(exc: Exception):
    if isinstance(exc, ExpiredItemsBlock):
        return jsonify(exc.to_dict()), 409
    if isinstance(exc, ValidationError):
        body = {"ok": False, "error": str(exc)}
        if exc.field:
            body["field"] = exc.field
        return jsonify(body), 400
    if isinstance(exc, ConflictError):
        return jsonify({"ok": False, "error": str(exc), **exc.details}), 409
    if isinstance(exc, NotFoundError):
        return jsonify({"ok": False, "error": str(exc)}), 404
    raise exc


def internal_error():
    return jsonify({"ok": False, "error": "Internal server error"}), 500
