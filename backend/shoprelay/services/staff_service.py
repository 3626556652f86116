# Overview: Staff roster push/pull for devices.

from __future__ import annotations

from ..time_utils import now_ms
from ..validation import ValidationError, first_non_empty, to_int, trim
from .concurrency import run_with_retry
from .shop_identity_service import require_canonical
from .store_service import SyncStore, load_store, save_store


def _find_staff(store: SyncStore, shop_id: str, staff_id: str, username: str) -> dict | None:
    existing = store.staffs.get((shop_id, staff_id))
    if existing is not None:
        return existing
    for s in store.staffs.for_shop(shop_id):
        if trim(s.get("id")) == staff_id or (username and trim(s.get("username")) == username):
            return s
    return None


def upsert_staffs(store: SyncStore, shop_id: str, items: list, *, now: int | None = None) -> dict:
    """Staff rows are keyed by staffId, falling back to id and then username."""
    now = now or now_ms()
    upserts = 0
    for it in items:
        if not isinstance(it, dict):
            continue
        staff_id = first_non_empty(it.get("staffId"), it.get("id"), it.get("username"))
        if not staff_id:
            continue

        row = {**it, "shopId": shop_id, "staffId": staff_id, "updatedAt": now}
        existing = _find_staff(store, shop_id, staff_id, trim(it.get("username")))
        if existing is None:
            store.staffs.append(row)
        else:
            existing.update(row)
        upserts += 1

    if upserts:
        store.staffs.reindex()
    return {"upserts": upserts, "serverTime": now}


def staffs_since(store: SyncStore, shop_id: str, since: int) -> list[dict]:
    rows = store.staffs.for_shop(shop_id)
    if since <= 0:
        return rows
    return [s for s in rows if to_int(s.get("updatedAt") or s.get("createdAt") or 0, 0) > since]


def push_staffs(auth_shop_id: str, items) -> dict:
    if not isinstance(items, list):
        raise ValidationError("items[] required", field="items")

    def _op():
        store = load_store()
        shop = require_canonical(store, auth_shop_id)
        result = upsert_staffs(store, shop.canonical, items)
        save_store(store)
        return result

    return run_with_retry(_op)


def pull_staffs(auth_shop_id: str, since) -> dict:
    store = load_store()
    shop = require_canonical(store, auth_shop_id)
    return {"items": staffs_since(store, shop.canonical, to_int(since or 0, 0)), "serverTime": now_ms()}
