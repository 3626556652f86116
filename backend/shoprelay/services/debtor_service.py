# Overview: Customer debt ledger; per-receipt accumulation and oldest-first payment application.

"""
Debtor Ledger Invariants (authoritative)

- One debtor row per (shopId, receiptNo).
- balance = max(0, total - paid); status is PAID when balance <= 0.0001,
  otherwise PARTIAL. Both are recomputed on every write, never trusted.
- Sales add to total, payments add to paid; balance is never edited directly.
- Payments are applied oldest createdAt first, each step capped at that
  row's balance. Whatever cannot be applied is reported, never turned into
  credit or a new debtor.
- Every touched row gets one append-only DebtorPayment record.
"""

from __future__ import annotations

import logging
import secrets
from typing import Any

from ..time_utils import now_ms
from ..validation import (
    EPSILON,
    ConflictError,
    NotFoundError,
    ValidationError,
    first_non_empty,
    norm_phone,
    round2,
    to_int,
    to_num,
    trim,
)
from .concurrency import run_with_retry
from .shop_identity_service import require_canonical
from .store_service import SyncStore, load_store, save_store

logger = logging.getLogger(__name__)

STATUS_PAID = "PAID"
STATUS_PARTIAL = "PARTIAL"

DEFAULT_METHOD = "CASH"


def status_for(balance: float) -> str:
    return STATUS_PAID if balance <= EPSILON else STATUS_PARTIAL


def figures(row: dict) -> tuple[float, float, float]:
    """(total, paid, balance) for a row, tolerating legacy field names."""
    total = to_num(row.get("total", row.get("totalOwed")), 0.0)
    paid = to_num(row.get("paid", row.get("totalPaid")), 0.0)
    fallback = max(0.0, total - paid)
    balance = to_num(row.get("balance", row.get("remainingOwed")), fallback)
    return total, paid, balance


def _write_figures(row: dict, total: float, paid: float, now: int) -> None:
    balance = max(0.0, total - paid)
    row["total"] = round2(total)
    row["paid"] = round2(paid)
    row["balance"] = round2(balance)
    row["status"] = status_for(balance)
    row["updatedAt"] = now


# =============================================================================
# ACCUMULATE
# =============================================================================

def accumulate(
    store: SyncStore,
    shop_id: str,
    receipt_no: str,
    remaining: float,
    *,
    customer_name: str = "",
    customer_phone: str = "",
    now: int | None = None,
) -> dict:
    """Add an owed remainder to the receipt's debtor row, creating it if needed."""
    now = now or now_ms()
    row = store.debtors.get((shop_id, receipt_no))

    if row is None:
        row = store.debtors.append({
            "shopId": shop_id,
            "receiptNo": receipt_no,
            "customerName": customer_name,
            "customerPhone": customer_phone,
            "createdAt": now,
        })
        _write_figures(row, remaining, 0.0, now)
        return row

    total, paid, _ = figures(row)
    if customer_name:
        row["customerName"] = customer_name
    if customer_phone:
        row["customerPhone"] = customer_phone
    row.setdefault("createdAt", now)
    _write_figures(row, total + remaining, paid, now)
    return row


# =============================================================================
# APPLY PAYMENT
# =============================================================================

def _open_candidates(store: SyncStore, shop_id: str, receipt_no: str, phone: str) -> list[dict]:
    rows = store.debtors.for_shop(shop_id)
    if receipt_no:
        matched = [d for d in rows if trim(d.get("receiptNo")) == receipt_no]
        if not matched:
            raise NotFoundError(f"No debtor found for receipt {receipt_no}")
        open_rows = [d for d in matched if figures(d)[2] > EPSILON]
        if not open_rows:
            raise ConflictError("Debt already paid", details={"receiptNo": receipt_no, "balance": 0})
        return open_rows

    wanted = norm_phone(phone)
    open_rows = [
        d for d in rows
        if norm_phone(first_non_empty(d.get("customerPhone"), d.get("phone"))) == wanted
        and figures(d)[2] > EPSILON
    ]
    if not open_rows:
        raise NotFoundError(f"No open debt found for phone {phone}")
    return open_rows


def apply_payment(
    store: SyncStore,
    shop_id: str,
    *,
    amount: Any,
    receipt_no: str = "",
    phone: str = "",
    method: str = "",
    note: str = "",
    by: str = "",
    now: int | None = None,
) -> dict:
    """
    Consume amount across the selected open debts, oldest first.

    Returns {applied, unapplied, touched, payments[]}; applied < amount
    when the candidates' balances ran out first.
    """
    receipt_no = trim(receipt_no)
    phone = trim(phone)
    amount_num = to_num(amount, 0.0)
    if amount_num <= EPSILON:
        raise ValidationError("amount must be positive", field="amount")
    if not receipt_no and not phone:
        raise ValidationError("receiptNo or phone required", field="receiptNo")

    now = now or now_ms()
    candidates = _open_candidates(store, shop_id, receipt_no, phone)
    candidates.sort(key=lambda d: to_int(d.get("createdAt") or 0, 0))

    left = amount_num
    payments: list[dict] = []
    for row in candidates:
        if left <= EPSILON:
            break
        total, paid, balance = figures(row)
        take = min(left, balance)
        if take <= 0:
            continue
        _write_figures(row, total, paid + take, now)
        left -= take

        payment = store.debtor_payments.append({
            "id": f"DP-{now}-{secrets.token_hex(4).upper()}",
            "shopId": shop_id,
            "receiptNo": trim(row.get("receiptNo")),
            "customerName": trim(row.get("customerName")),
            "customerPhone": trim(row.get("customerPhone")),
            "amount": round2(take),
            "method": trim(method).upper() or DEFAULT_METHOD,
            "note": trim(note),
            "createdAt": now,
            "by": trim(by),
        })
        payments.append(payment)

    left = max(0.0, left)
    if left > EPSILON:
        logger.info("payment for %s left %.2f unapplied after %d debts", shop_id, left, len(payments))

    return {
        "applied": round2(amount_num - left),
        "unapplied": round2(left),
        "touched": len(payments),
        "payments": payments,
        "serverTime": now,
    }


# =============================================================================
# READ VIEWS
# =============================================================================

def debtor_view(row: dict) -> dict:
    total, paid, balance = figures(row)
    return {**row, "total": total, "paid": paid, "balance": balance, "status": status_for(balance)}


def _derived_from_sales(store: SyncStore, shop_id: str) -> list[dict]:
    out = []
    for s in store.sales.for_shop(shop_id):
        total = to_num(s.get("total"), 0.0)
        paid = to_num(s.get("paid"), 0.0)
        remaining = to_num(s.get("remaining"), max(0.0, total - paid))
        if remaining <= EPSILON:
            continue
        created = to_int(s.get("createdAt") or 0, 0)
        out.append({
            "shopId": shop_id,
            "receiptNo": trim(s.get("receiptNo")),
            "customerName": trim(s.get("customerName")),
            "customerPhone": trim(s.get("customerPhone")),
            "total": round2(total),
            "paid": round2(paid),
            "balance": round2(remaining),
            "status": status_for(remaining),
            "createdAt": created,
            "updatedAt": created,
            "derived": True,
        })
    return out


def debtors_since(store: SyncStore, shop_id: str, since: int) -> list[dict]:
    rows = store.debtors.for_shop(shop_id)
    if any(trim(d.get("receiptNo")) for d in rows):
        items = [debtor_view(d) for d in rows]
    else:
        items = _derived_from_sales(store, shop_id)

    if since > 0:
        items = [d for d in items if to_int(d.get("updatedAt") or d.get("createdAt") or 0, 0) > since]
    items.sort(key=lambda d: to_int(d.get("createdAt") or 0, 0), reverse=True)
    return items


def payments_for(store: SyncStore, shop_id: str, receipt_no: str = "", phone: str = "") -> list[dict]:
    receipt_no = trim(receipt_no)
    wanted = norm_phone(phone)
    rows = store.debtor_payments.for_shop(shop_id)
    if receipt_no:
        rows = [p for p in rows if trim(p.get("receiptNo")) == receipt_no]
    if wanted:
        rows = [p for p in rows if norm_phone(p.get("customerPhone")) == wanted]
    return sorted(rows, key=lambda p: to_int(p.get("createdAt") or 0, 0), reverse=True)


# =============================================================================
# DEVICE BACKFILL
# =============================================================================

def backfill_debtors(store: SyncStore, shop_id: str, entries: list, *, now: int | None = None) -> int:
    """Patch customer details a device holds for receipts the cloud already knows (or creates them)."""
    now = now or now_ms()
    changed = 0
    for d in entries:
        if not isinstance(d, dict):
            continue
        receipt_no = first_non_empty(d.get("receiptNo"), d.get("receipt"))
        if not receipt_no:
            continue

        row = store.debtors.get((shop_id, receipt_no))
        if row is None:
            row = store.debtors.append({"shopId": shop_id, "receiptNo": receipt_no, "createdAt": now})

        name = first_non_empty(d.get("customerName"), d.get("name"))
        phone = first_non_empty(d.get("customerPhone"), d.get("phone"))
        total_owed = to_num(d.get("totalOwed", d.get("total")), 0.0)
        if name:
            row["customerName"] = name
        if phone:
            row["customerPhone"] = phone
        if total_owed > 0:
            row["totalOwed"] = total_owed
        if trim(d.get("dueDate")):
            row["dueDate"] = trim(d.get("dueDate"))
        if trim(d.get("status")):
            row["status"] = trim(d.get("status"))
        # Pull cursors compare server epoch ms; the device clock is kept for reference only
        if d.get("updatedAt") is not None:
            row["deviceUpdatedAt"] = d.get("updatedAt")
        row["updatedAt"] = now
        row["serverUpdatedAt"] = now
        changed += 1
    return changed


# =============================================================================
# REQUEST-LEVEL OPERATIONS
# =============================================================================

def pay(auth_shop_id: str, data: dict, by: str = "") -> dict:
    data = data if isinstance(data, dict) else {}

    def _op():
        store = load_store()
        shop = require_canonical(store, auth_shop_id)
        result = apply_payment(
            store,
            shop.canonical,
            amount=data.get("amount"),
            receipt_no=first_non_empty(data.get("receiptNo"), data.get("receipt")),
            phone=first_non_empty(data.get("phone"), data.get("customerPhone")),
            method=trim(data.get("method")),
            note=trim(data.get("note")),
            by=by,
        )
        save_store(store)
        return result

    return run_with_retry(_op)


def pull_debtors(auth_shop_id: str, since) -> dict:
    store = load_store()
    shop = require_canonical(store, auth_shop_id)
    return {"items": debtors_since(store, shop.canonical, to_int(since or 0, 0)), "serverTime": now_ms()}


def push_debtors_full(auth_shop_id: str, body: Any) -> dict:
    if isinstance(body, dict):
        entries = body.get("debtors")
    else:
        entries = body
    if not isinstance(entries, list):
        entries = []

    def _op():
        store = load_store()
        shop = require_canonical(store, auth_shop_id)
        updated = backfill_debtors(store, shop.canonical, entries)
        save_store(store)
        return {"shopId": shop.canonical, "updated": updated}

    return run_with_retry(_op)


def list_payments(auth_shop_id: str, receipt_no: str = "", phone: str = "") -> dict:
    store = load_store()
    shop = require_canonical(store, auth_shop_id)
    return {"items": payments_for(store, shop.canonical, receipt_no, phone), "serverTime": now_ms()}
