# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import token_service
from .services.token_service import TokenError


def _is_authenticated() -> bool:
    return hasattr(g, 'auth_shop_id') and hasattr(g, 'auth_role')


def require_auth(f):
    """
    Require a device or owner bearer token.

    Sets the following Flask g attributes:
    - g.auth_shop_id: shop id embedded in the credential (may be stale after a merge)
    - g.auth_role: "owner" or "device"
    - g.device_id: issuing device, "" for owner tokens

    Shop id canonicalization happens in the service layer, not here.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"ok": False, "error": "Missing token"}), 401

        token = auth_header.split(" ", 1)[1].strip()

        try:
            context = token_service.decode_token(token)
        except TokenError as e:
            return jsonify({"ok": False, "error": str(e)}), 401

        g.auth_shop_id = context.shop_id
        g.auth_role = context.role
        g.device_id = context.device_id

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """Require one of the given roles; use after @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"ok": False, "error": "Authentication required"}), 401
            if g.auth_role not in roles:
                return jsonify({
                    "ok": False,
                    "error": "Forbidden",
                    "required_roles": list(roles),
                }), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator
