# Overview: Shop profile read/update as seen by devices, with canonical-id reporting.

from __future__ import annotations

from ..time_utils import now_ms
from ..validation import to_int
from .concurrency import run_with_retry
from .shop_identity_service import ShopResolution, require_canonical
from .store_service import SyncStore, load_store, save_store

PROFILE_FIELDS = ("shopName", "address", "phone", "whatsapp", "tagline", "currency", "footer")


def empty_profile(shop_id: str, now: int) -> dict:
    profile = {"shopId": shop_id}
    profile.update({f: "" for f in PROFILE_FIELDS})
    profile["createdAt"] = now
    profile["updatedAt"] = now
    return profile


def _envelope(shop: dict, resolution: ShopResolution, now: int) -> dict:
    return {
        "shop": shop,
        "serverTime": now,
        "canonicalShopId": resolution.canonical,
        "mergedFromShopId": resolution.merged_from,
    }


def update_profile(store: SyncStore, shop_id: str, patch: dict, *, now: int | None = None) -> dict:
    """Patch known profile fields; the shop row is created on first write."""
    now = now or now_ms()
    shop = store.shops.get(shop_id)
    if shop is None:
        shop = store.shops.append(empty_profile(shop_id, now))

    for f in PROFILE_FIELDS:
        if patch.get(f) is not None:
            shop[f] = patch[f]

    if "expirySoonDays" in patch:
        days = to_int(patch.get("expirySoonDays"), 0)
        shop["expirySoonDays"] = days if 1 <= days <= 365 else 0

    shop["updatedAt"] = now
    return shop


def get_profile(auth_shop_id: str) -> dict:
    store = load_store()
    resolution = require_canonical(store, auth_shop_id)
    now = now_ms()
    shop = store.shops.get(resolution.canonical) or empty_profile(resolution.canonical, now)
    return _envelope(shop, resolution, now)


def save_profile(auth_shop_id: str, body) -> dict:
    body = body if isinstance(body, dict) else {}
    patch = body.get("shop") if isinstance(body.get("shop"), dict) else body

    def _op():
        store = load_store()
        resolution = require_canonical(store, auth_shop_id)
        now = now_ms()
        shop = dict(update_profile(store, resolution.canonical, patch, now=now))
        save_store(store)
        return {"saved": True, **_envelope(shop, resolution, now)}

    return run_with_retry(_op)


def resolve_for_caller(auth_shop_id: str) -> dict:
    store = load_store()
    resolution = require_canonical(store, auth_shop_id)
    return {"shopId": resolution.original, "canonicalShopId": resolution.canonical, "mergedFromShopId": resolution.merged_from}
