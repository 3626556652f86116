# Overview: Flask API routes for device sync; pull since a cursor, push snapshots and sales.

# backend/shoprelay/routes/sync.py
"""
Device Sync API Routes

Pull endpoints take ?since=<epoch ms> and return {items[], serverTime}.
Devices store serverTime and send it back as the next cursor.

Push endpoints return per-call counters. Every request acts on the
canonical shop its credential resolves to, so devices still holding a
merged shop's id keep syncing into the surviving shop.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..services import debtor_service, product_service, sale_service, staff_service
from .responses import CLIENT_ERRORS, error_response, internal_error


sync_bp = Blueprint("sync", __name__, url_prefix="/api/sync")

# Sale push paths used by successive app versions
SALE_PUSH_PATHS = [
    "/sale",
    "/sale/create",
    "/saleCreate",
    "/sales",
    "/sales/create",
    "/sales/push",
]


# =============================================================================
# PRODUCTS
# =============================================================================

@sync_bp.get("/products")
@require_auth
def pull_products_route():
    try:
        result = product_service.pull_products(g.auth_shop_id, request.args.get("since"))
        return jsonify({"ok": True, **result}), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to pull products")
        return internal_error()


@sync_bp.post("/products")
@require_auth
def push_products_route():
    """
    Upsert product snapshots from a device.

    Request body: {"items": [{"productId": "...", "stock": 4, "updatedAt": 1718000000000, ...}]}
    Returns: {"ok": true, "upserts": n, "stockProtected": n, "serverTime": ms}
    """
    try:
        data = request.get_json(silent=True) or {}
        result = product_service.push_products(g.auth_shop_id, data.get("items"))
        return jsonify({"ok": True, **result}), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to push products")
        return internal_error()


# =============================================================================
# STAFFS
# =============================================================================

@sync_bp.get("/staffs")
@require_auth
def pull_staffs_route():
    try:
        result = staff_service.pull_staffs(g.auth_shop_id, request.args.get("since"))
        return jsonify({"ok": True, **result}), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to pull staffs")
        return internal_error()


@sync_bp.post("/staffs")
@require_auth
def push_staffs_route():
    try:
        data = request.get_json(silent=True) or {}
        result = staff_service.push_staffs(g.auth_shop_id, data.get("items"))
        return jsonify({"ok": True, **result}), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to push staffs")
        return internal_error()


# =============================================================================
# SALES
# =============================================================================

def push_sale_route():
    """
    Ingest one sale.

    Accepts {"sale": {...}}, {"data": {"sale": {...}}}, {"payload": {"sale": {...}}}
    or the sale object itself as the body.

    Returns:
        200: {"ok": true, "saved": true, "duplicate": bool, "stock": {...}, "warnings": {...}}
        400: payload not recognizable as a sale
        409: EXPIRED_BLOCK with the offending items; nothing was applied
    """
    try:
        data = request.get_json(silent=True) or {}
        result = sale_service.push_sale(g.auth_shop_id, data)
        return jsonify({"ok": True, **result}), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to ingest sale")
        return internal_error()


for _path in SALE_PUSH_PATHS:
    sync_bp.add_url_rule(
        _path,
        endpoint=f"push_sale{_path.replace('/', '_')}",
        view_func=require_auth(push_sale_route),
        methods=["POST"],
    )


@sync_bp.get("/sales")
@require_auth
def pull_sales_route():
    try:
        result = sale_service.pull_sales(g.auth_shop_id, request.args.get("since"))
        return jsonify({"ok": True, **result}), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to pull sales")
        return internal_error()


# =============================================================================
# DEBTORS
# =============================================================================

@sync_bp.get("/debtors")
@require_auth
def pull_debtors_route():
    try:
        result = debtor_service.pull_debtors(g.auth_shop_id, request.args.get("since"))
        return jsonify({"ok": True, **result}), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to pull debtors")
        return internal_error()


@sync_bp.post("/debtorsFull")
@require_auth
def push_debtors_full_route():
    """Backfill debtor customer details held on a device."""
    try:
        data = request.get_json(silent=True)
        result = debtor_service.push_debtors_full(g.auth_shop_id, data)
        return jsonify({"ok": True, **result}), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to backfill debtors")
        return jsonify({"ok": False, "error": "debtorsFull_failed"}), 500
