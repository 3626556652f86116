# Overview: Sale ingestion from devices; dedup by receipt, expiry gate, stock deduction, debtor forwarding.

"""
Sale Ingestion Pipeline

WHY: Devices push completed sales whenever they regain connectivity, in any
order and possibly more than once, using whichever payload shape their app
version produces.

DESIGN PRINCIPLES:
- Every accepted payload shape is normalized into SalePayload before any
  business logic runs.
- A receipt is immutable once ingested: (shopId, receiptNo) is inserted once.
- Expired inventory blocks the whole sale before anything is mutated.
- Stock deduction and debtor accumulation each run at most once per
  receipt (stockApplied / debtorApplied on the Sale row), so a device may
  retry a push safely.
- Unmatched lines are counted, never fatal.
"""

from __future__ import annotations

import logging
import math
import secrets
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

from flask import current_app

from ..time_utils import now_ms, parse_expiry, today_in
from ..validation import EPSILON, ConflictError, ValidationError, first_non_empty, to_int, to_num, trim
from . import debtor_service
from .concurrency import run_with_retry
from .product_matcher import LineItem, find_product
from .shop_identity_service import require_canonical
from .store_service import SyncStore, load_store, save_store

logger = logging.getLogger(__name__)


# =============================================================================
# PAYLOAD NORMALIZATION
# =============================================================================

# Body keys a sale may be nested under, across app versions
NESTED_SALE_PATHS = [("sale",), ("data", "sale"), ("payload", "sale")]

# A bare body is a sale only if it carries at least one of these
SALE_LIKE_KEYS = {
    "receiptNo", "receipt", "items", "cartItems", "total", "paid",
    "remaining", "customerName", "customerPhone",
}

RECEIPT_KEYS = ("receiptNo", "receipt", "invoiceNo", "billNo")
CREATED_AT_KEYS = ("createdAt", "time", "timestamp")
EXPIRY_KEYS = ("expiryDate", "expiringDate", "expDate", "expiry", "exp")

MIN_SOON_DAYS = 1
MAX_SOON_DAYS = 365

EXPIRED_BLOCK_CODE = "EXPIRED_BLOCK"
EXPIRED_MESSAGE_EN = "Sale blocked: expired product(s) found. Please remove expired items before checkout."
EXPIRED_MESSAGE_HA = (
    "An hana sayarwa: an samu kayayyakin da suka wuce ranar karewa. "
    "Ka cire expired items kafin checkout."
)


def extract_sale(body: Any) -> dict:
    """Pick the sale object out of any accepted request shape."""
    b = body if isinstance(body, dict) else {}

    for path in NESTED_SALE_PATHS:
        node: Any = b
        for key in path:
            node = node.get(key) if isinstance(node, dict) else None
        if isinstance(node, dict):
            return node

    if SALE_LIKE_KEYS.intersection(b.keys()):
        return b

    raise ValidationError("sale required", field="sale")


@dataclass(frozen=True)
class SalePayload:
    receipt_no: str
    items: list[LineItem]
    total: float
    paid: float
    remaining: float
    customer_name: str
    customer_phone: str
    created_at: int
    raw: dict = field(default_factory=dict, repr=False)

    @classmethod
    def from_raw(cls, sale: dict) -> "SalePayload":
        lines = sale.get("items")
        if not isinstance(lines, list):
            lines = sale.get("cartItems")
        if not isinstance(lines, list):
            lines = []

        total = to_num(sale.get("total"), 0.0)
        paid = to_num(sale.get("paid"), 0.0)
        remaining = to_num(sale.get("remaining"), math.nan)
        if math.isnan(remaining):
            remaining = total - paid

        created_at = 0
        for key in CREATED_AT_KEYS:
            created_at = to_int(sale.get(key) or 0, 0)
            if created_at:
                break

        return cls(
            receipt_no=first_non_empty(*(sale.get(k) for k in RECEIPT_KEYS)),
            items=[LineItem.from_raw(it) for it in lines],
            total=total,
            paid=paid,
            remaining=max(0.0, remaining),
            customer_name=trim(sale.get("customerName")),
            customer_phone=trim(sale.get("customerPhone")),
            created_at=created_at,
            raw=sale,
        )


# =============================================================================
# EXPIRY GATE
# =============================================================================

class ExpiredItemsBlock(ConflictError):
    """The sale contains expired inventory and was rejected as a whole."""

    def __init__(self, items: list[dict]):
        super().__init__(EXPIRED_MESSAGE_EN, details={"items": items})
        self.items = items

    def to_dict(self) -> dict:
        return {
            "ok": False,
            "code": EXPIRED_BLOCK_CODE,
            "messageEn": EXPIRED_MESSAGE_EN,
            "messageHa": EXPIRED_MESSAGE_HA,
            "items": self.items,
        }


def expiry_date_of(product: dict, tz_name: str | None = None) -> date | None:
    for key in EXPIRY_KEYS:
        d = parse_expiry(product.get(key), tz_name)
        if d is not None:
            return d
    return None


def soon_days_for(store: SyncStore, shop_id: str, default: int) -> int:
    shop = store.shops.get(shop_id)
    configured = to_int(shop.get("expirySoonDays"), 0) if shop else 0
    if MIN_SOON_DAYS <= configured <= MAX_SOON_DAYS:
        return configured
    return default


def _expiry_entry(product: dict, line: LineItem, expires: date) -> dict:
    return {
        "name": trim(product.get("name")) or line.label or "Item",
        "code": first_non_empty(
            product.get("barcode"), product.get("sku"), product.get("plu"),
            product.get("productId"), product.get("id"),
        ) or line.label,
        "expiryDate": expires.isoformat(),
    }


def check_expiry(
    matches: list[tuple[LineItem, dict | None]],
    today: date,
    soon_days: int,
    tz_name: str | None = None,
) -> tuple[list[dict], list[dict]]:
    """(expired, expiring_soon) entries for the matched lines."""
    expired: list[dict] = []
    expiring_soon: list[dict] = []
    horizon = today + timedelta(days=soon_days)
    for line, product in matches:
        if product is None:
            continue
        expires = expiry_date_of(product, tz_name)
        if expires is None:
            continue
        if expires < today:
            expired.append(_expiry_entry(product, line, expires))
        elif expires <= horizon:
            expiring_soon.append(_expiry_entry(product, line, expires))
    return expired, expiring_soon


# =============================================================================
# INGESTION
# =============================================================================

def _as_stock(value: float) -> int | float:
    return int(value) if float(value).is_integer() else round(value, 4)


def deduct_stock(matches: list[tuple[LineItem, dict | None]], now: int) -> dict:
    deducted = 0
    not_found = 0
    qty_total = 0
    for line, product in matches:
        if product is None:
            not_found += 1
            logger.debug("no product matched sale line %r", line.label)
            continue
        current = to_num(product.get("stock"), 0.0)
        product["stock"] = _as_stock(max(0.0, current - line.qty))
        product["updatedAt"] = now
        deducted += 1
        qty_total += line.qty
    return {"deductedItems": deducted, "notFoundItems": not_found, "qtyTotal": qty_total}


def _generated_receipt(now: int) -> str:
    return f"SYNC-{now}-{secrets.token_hex(3).upper()}"


def ingest_sale(
    store: SyncStore,
    shop_id: str,
    body: Any,
    *,
    today: date,
    default_soon_days: int = 90,
    tz_name: str | None = None,
    now: int | None = None,
) -> dict:
    """
    Apply one pushed sale to the shop's snapshot.

    Raises ValidationError for an unrecognizable payload and
    ExpiredItemsBlock when any matched product is past its expiry date;
    in both cases the store is untouched. A retry of a receipt whose stock
    was already applied is never blocked: the sale happened when the goods
    were still sellable.
    """
    now = now or now_ms()
    payload = SalePayload.from_raw(extract_sale(body))

    receipt_no = payload.receipt_no or _generated_receipt(now)
    sale_row = store.sales.get((shop_id, receipt_no))
    duplicate = sale_row is not None
    # Rows written before these flags existed had their effects applied at insert
    stock_applied = duplicate and sale_row.get("stockApplied", True)

    matches = [(line, find_product(store, shop_id, line)) for line in payload.items]
    soon_days = soon_days_for(store, shop_id, default_soon_days)
    expired, expiring_soon = check_expiry(matches, today, soon_days, tz_name)
    if expired and not stock_applied:
        raise ExpiredItemsBlock(expired)

    if sale_row is None:
        sale_row = store.sales.append({
            **payload.raw,
            "shopId": shop_id,
            "receiptNo": receipt_no,
            "createdAt": payload.created_at or now,
            "stockApplied": False,
            "debtorApplied": False,
        })

    if stock_applied:
        stock = {"deductedItems": 0, "notFoundItems": 0, "qtyTotal": 0}
    else:
        stock = deduct_stock(matches, now)
        sale_row["stockApplied"] = True

    debtor = None
    if payload.remaining > EPSILON and not sale_row.get("debtorApplied", True):
        debtor = debtor_service.accumulate(
            store,
            shop_id,
            receipt_no,
            payload.remaining,
            customer_name=payload.customer_name,
            customer_phone=payload.customer_phone,
            now=now,
        )
    sale_row["debtorApplied"] = True

    if duplicate:
        logger.info("sale %s/%s already ingested; insert skipped", shop_id, receipt_no)

    return {
        "saved": True,
        "duplicate": duplicate,
        "receiptNo": receipt_no,
        "stock": stock,
        "debtor": debtor,
        "warnings": {"expiringSoonDays": soon_days, "expiringSoon": expiring_soon},
        "serverTime": now,
    }


def sales_since(store: SyncStore, shop_id: str, since: int) -> list[dict]:
    rows = store.sales.for_shop(shop_id)
    if since <= 0:
        return rows
    return [s for s in rows if to_int(s.get("createdAt") or 0, 0) > since]


def push_sale(auth_shop_id: str, body: Any) -> dict:
    # Reject malformed payloads before touching the database
    extract_sale(body)
    tz_name = current_app.config.get("SYNC_TIMEZONE", "UTC")
    default_soon = int(current_app.config.get("SYNC_EXPIRY_SOON_DAYS", 90))

    def _op():
        store = load_store()
        shop = require_canonical(store, auth_shop_id)
        result = ingest_sale(
            store, shop.canonical, body,
            today=today_in(tz_name), default_soon_days=default_soon, tz_name=tz_name,
        )
        save_store(store)
        return result

    return run_with_retry(_op)


def pull_sales(auth_shop_id: str, since) -> dict:
    store = load_store()
    shop = require_canonical(store, auth_shop_id)
    return {"items": sales_since(store, shop.canonical, to_int(since or 0, 0)), "serverTime": now_ms()}
