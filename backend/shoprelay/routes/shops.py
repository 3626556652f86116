# Overview: Flask API routes for the shop profile and canonical shop id.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_role
from ..services import shop_service
from ..services.token_service import ROLE_OWNER
from .responses import CLIENT_ERRORS, error_response, internal_error


shops_bp = Blueprint("shops", __name__, url_prefix="/api/sync/shop")


@shops_bp.get("/profile")
@require_auth
def get_profile_route():
    """Shop profile; an unknown shop gets an empty profile rather than a 404."""
    try:
        result = shop_service.get_profile(g.auth_shop_id)
        return jsonify({"ok": True, **result}), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load shop profile")
        return internal_error()


@shops_bp.post("/profile")
@require_auth
@require_role(ROLE_OWNER)
def save_profile_route():
    """
    Update shop profile fields, creating the shop row if it does not exist.

    Request body: {"shop": {"shopName": "...", "currency": "NGN", "expirySoonDays": 30, ...}}
    """
    try:
        data = request.get_json(silent=True) or {}
        result = shop_service.save_profile(g.auth_shop_id, data)
        return jsonify({"ok": True, **result}), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to save shop profile")
        return internal_error()


@shops_bp.get("/canonical")
@require_auth
def canonical_route():
    try:
        result = shop_service.resolve_for_caller(g.auth_shop_id)
        return jsonify({"ok": True, **result}), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to resolve shop id")
        return internal_error()
