# Overview: Flask API routes for debtor payments; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..services import debtor_service
from .responses import CLIENT_ERRORS, error_response, internal_error


debtors_bp = Blueprint("debtors", __name__, url_prefix="/api/debtors")


@debtors_bp.post("/pay")
@require_auth
def pay_debt_route():
    """
    Apply a customer payment to open debts, oldest first.

    Request body:
    {
        "receiptNo": "R-1001",   (or "phone": "0803...")
        "amount": 120,
        "method": "CASH",        (optional)
        "note": "part payment"   (optional)
    }

    Returns:
        200: {"ok": true, "applied": 120, "unapplied": 0, "touched": 2, "payments": [...]}
        400: missing selector or non-positive amount
        404: no open debt matched
        409: receipt already fully paid
    """
    try:
        data = request.get_json(silent=True) or {}
        by = g.device_id or g.auth_role
        result = debtor_service.pay(g.auth_shop_id, data, by=by)
        return jsonify({"ok": True, **result}), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to apply debtor payment")
        return internal_error()


@debtors_bp.get("/payments")
@require_auth
def list_payments_route():
    """Payment history for the shop, newest first; filter by ?receiptNo= or ?phone=."""
    try:
        result = debtor_service.list_payments(
            g.auth_shop_id,
            receipt_no=request.args.get("receiptNo", ""),
            phone=request.args.get("phone", ""),
        )
        return jsonify({"ok": True, **result}), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list debtor payments")
        return internal_error()
