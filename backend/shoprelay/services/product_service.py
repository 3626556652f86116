# Overview: Product snapshot reconciliation (push) and incremental pull for devices.

"""
Product Reconciler

WHY: Each device pushes snapshots of its own catalog; the server also
decrements stock when sales arrive. A device that was offline may push a
snapshot older than that decrement.

RULES:
- Rows are keyed by (shopId, productId). Within one device's push stream
  its local ids are stable, so id matching is correct here.
- Conflict guard: when the stored row is strictly newer than the incoming
  snapshot AND the snapshot would raise stock, the stored stock is kept;
  every other field is taken from the snapshot.
- New rows are stamped with server time. Pushes never delete.
"""

from __future__ import annotations

import logging

from ..time_utils import now_ms
from ..validation import ValidationError, first_non_empty, to_int, to_num
from .concurrency import run_with_retry
from .shop_identity_service import require_canonical
from .store_service import SyncStore, load_store, save_store

logger = logging.getLogger(__name__)


def _row_time(row: dict) -> int:
    return to_int(row.get("updatedAt") or row.get("createdAt") or 0, 0)


def should_protect_stock(existing: dict, incoming: dict) -> bool:
    prev_stock = to_num(existing.get("stock"), 0.0)
    inc_stock = to_num(incoming.get("stock"), prev_stock)
    return _row_time(existing) > _row_time(incoming) and inc_stock > prev_stock


def upsert_products(store: SyncStore, shop_id: str, items: list, *, now: int | None = None) -> dict:
    """Merge pushed product snapshots into the shop's catalog."""
    now = now or now_ms()
    upserts = 0
    protected = 0

    for it in items:
        if not isinstance(it, dict):
            continue
        product_id = first_non_empty(it.get("productId"), it.get("id"))
        if not product_id:
            continue

        row = {**it, "shopId": shop_id, "productId": product_id, "updatedAt": now}
        existing = store.products.get((shop_id, product_id))

        if existing is None:
            row.setdefault("createdAt", now)
            store.products.append(row)
        else:
            keep_stock = should_protect_stock(existing, it)
            prev_stock = existing.get("stock")
            existing.update(row)
            if keep_stock:
                existing["stock"] = prev_stock
                protected += 1
                logger.info(
                    "kept server stock %s for %s/%s over stale snapshot stock %s",
                    prev_stock, shop_id, product_id, it.get("stock"),
                )
        upserts += 1

    return {"upserts": upserts, "stockProtected": protected, "serverTime": now}


def products_since(store: SyncStore, shop_id: str, since: int) -> list[dict]:
    rows = store.products.for_shop(shop_id)
    if since <= 0:
        return rows
    return [p for p in rows if _row_time(p) > since]


def push_products(auth_shop_id: str, items) -> dict:
    if not isinstance(items, list):
        raise ValidationError("items[] required", field="items")

    def _op():
        store = load_store()
        shop = require_canonical(store, auth_shop_id)
        result = upsert_products(store, shop.canonical, items)
        save_store(store)
        return result

    return run_with_retry(_op)


def pull_products(auth_shop_id: str, since) -> dict:
    store = load_store()
    shop = require_canonical(store, auth_shop_id)
    return {"items": products_since(store, shop.canonical, to_int(since or 0, 0)), "serverTime": now_ms()}
