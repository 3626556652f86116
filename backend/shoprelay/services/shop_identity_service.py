# Overview: Shop identity canonicalization through alias and merge redirects.

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..validation import ConflictError, ValidationError, trim
from ..time_utils import now_ms
from .concurrency import run_with_retry
from .store_service import SyncStore, load_store, save_store

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShopResolution:
    original: str
    canonical: str

    @property
    def merged_from(self) -> str:
        """The stale id the caller presented, or "" when no redirect happened."""
        if self.original and self.original != self.canonical:
            return self.original
        return ""


def _next_hop(store: SyncStore, shop_id: str) -> str:
    alias = store.shop_aliases.get(shop_id)
    if alias is not None:
        target = trim(alias.get("to"))
        if target:
            return target

    shop = store.shops.get(shop_id)
    if shop is not None and shop.get("isMerged") is True:
        return trim(shop.get("mergedInto"))
    return ""


def _walk(store: SyncStore, shop_id: str) -> list[str]:
    """Ids visited from shop_id, in order; stops at a dead end or before revisiting."""
    current = trim(shop_id)
    if not current:
        return [""]
    path = [current]
    visited = {current}
    while True:
        nxt = _next_hop(store, current)
        if not nxt or nxt == current:
            return path
        if nxt in visited:
            logger.warning("shop alias cycle detected at %r (path %s)", nxt, " -> ".join(path))
            return path
        visited.add(nxt)
        path.append(nxt)
        current = nxt


def resolve_shop_id(store: SyncStore, shop_id: str) -> str:
    """
    Canonical shop id for any presented id.

    Never raises: an empty or unknown id comes back unchanged, and a cycle
    stops at the last id reached before the repeat.
    """
    return _walk(store, shop_id)[-1]


def resolve(store: SyncStore, shop_id: str) -> ShopResolution:
    raw = trim(shop_id)
    return ShopResolution(original=raw, canonical=resolve_shop_id(store, raw))


def record_merge(store: SyncStore, from_shop_id: str, to_shop_id: str, *, now: int | None = None) -> dict:
    """
    Redirect all future resolution of from_shop_id to to_shop_id.

    Upserts the ShopAlias edge and flags the source shop row as merged.
    Existing rows under the old id are left where they are.
    """
    src = trim(from_shop_id)
    dst = trim(to_shop_id)
    if not src:
        raise ValidationError("from shopId required", field="from")
    if not dst:
        raise ValidationError("to shopId required", field="to")
    if src == dst:
        raise ValidationError("cannot merge a shop into itself", field="to")

    path = _walk(store, dst)
    if src in path:
        raise ConflictError(
            "merge would create an alias cycle",
            details={"from": src, "to": dst, "path": path},
        )

    now = now or now_ms()
    alias, created = store.shop_aliases.upsert({"from": src, "to": dst, "updatedAt": now})
    if created:
        alias["createdAt"] = now

    shop = store.shops.get(src)
    if shop is not None:
        shop["isMerged"] = True
        shop["mergedInto"] = dst
        shop["updatedAt"] = now

    logger.info("shop %s merged into %s", src, dst)
    return alias


def merge_shops(from_shop_id: str, to_shop_id: str) -> dict:
    def _op():
        store = load_store()
        alias = dict(record_merge(store, from_shop_id, to_shop_id))
        save_store(store)
        alias["canonical"] = resolve_shop_id(store, alias["to"])
        return alias

    return run_with_retry(_op)


def canonical_shop_id(shop_id: str) -> str:
    return resolve_shop_id(load_store(), shop_id)


def require_canonical(store: SyncStore, shop_id: str) -> ShopResolution:
    """Resolve an authorized shop id; an empty canonical id is a client error."""
    resolution = resolve(store, shop_id)
    if not resolution.canonical:
        raise ValidationError("Missing auth shopId", field="shopId")
    return resolution
