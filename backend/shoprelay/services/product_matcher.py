# Overview: Resolves a sale or push line to a stored product using a fixed precedence of matchers.

"""
Product identity resolution

Device-local product ids are not stable across devices, so merchant-assigned
identifiers outrank them. Precedence (first hit wins, no scoring):

1. barcode
2. sku
3. code: "ID:<x>" targets productId/id; otherwise barcode, sku, productId, id
4. productId / legacy id
5. normalized name, disambiguated by price when several products share it

A miss returns None. Callers count it; it never fails the batch.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from ..validation import EPSILON, first_non_empty, norm_name, to_int, to_num, trim
from .store_service import SyncStore

ID_CODE_PREFIX = "ID:"


@dataclass(frozen=True)
class LineItem:
    """Canonical view of one heterogeneous line entry."""
    code: str = ""
    barcode: str = ""
    sku: str = ""
    product_id: str = ""
    name: str = ""
    price: Optional[float] = None
    qty: int = 1
    raw: dict = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_raw(cls, raw: Any) -> "LineItem":
        it = raw if isinstance(raw, dict) else {}
        price = to_num(it.get("price"), math.nan)
        return cls(
            code=trim(it.get("code")),
            barcode=trim(it.get("barcode")),
            sku=trim(it.get("sku")),
            product_id=first_non_empty(it.get("productId"), it.get("id")),
            name=norm_name(first_non_empty(it.get("productName"), it.get("name"))),
            price=None if math.isnan(price) else price,
            qty=max(1, to_int(it.get("qty") or 1, 1)),
            raw=it,
        )

    @property
    def label(self) -> str:
        it = self.raw
        return first_non_empty(
            it.get("productName"), it.get("name"), it.get("code"),
            it.get("barcode"), it.get("sku"), it.get("plu"), it.get("productId"),
        )


Matcher = Callable[[list, LineItem], Optional[dict]]


def _by_field(products: list, fieldname: str, value: str) -> Optional[dict]:
    if not value:
        return None
    for p in products:
        if trim(p.get(fieldname)) == value:
            return p
    return None


def _by_any_id(products: list, value: str) -> Optional[dict]:
    if not value:
        return None
    for p in products:
        if trim(p.get("productId")) == value or trim(p.get("id")) == value:
            return p
    return None


def match_barcode(products: list, item: LineItem) -> Optional[dict]:
    return _by_field(products, "barcode", item.barcode)


def match_sku(products: list, item: LineItem) -> Optional[dict]:
    return _by_field(products, "sku", item.sku)


def match_code(products: list, item: LineItem) -> Optional[dict]:
    code = item.code
    if not code:
        return None
    if code.upper().startswith(ID_CODE_PREFIX):
        return _by_any_id(products, trim(code[len(ID_CODE_PREFIX):]))
    for fieldname in ("barcode", "sku", "productId", "id"):
        p = _by_field(products, fieldname, code)
        if p is not None:
            return p
    return None


def match_product_id(products: list, item: LineItem) -> Optional[dict]:
    return _by_any_id(products, item.product_id)


def match_name_price(products: list, item: LineItem) -> Optional[dict]:
    if not item.name:
        return None
    candidates = [p for p in products if norm_name(p.get("name")) == item.name]
    if len(candidates) == 1:
        return candidates[0]
    if len(candidates) > 1 and item.price is not None:
        for p in candidates:
            if abs(to_num(p.get("price"), 0.0) - item.price) < EPSILON:
                return p
    return None


MATCHERS: list[tuple[str, Matcher]] = [
    ("barcode", match_barcode),
    ("sku", match_sku),
    ("code", match_code),
    ("productId", match_product_id),
    ("namePrice", match_name_price),
]


def first_match(matchers: list[tuple[str, Matcher]], products: list, item: LineItem) -> tuple[str, Optional[dict]]:
    for rule, matcher in matchers:
        p = matcher(products, item)
        if p is not None:
            return rule, p
    return "", None


def match_product(store: SyncStore, shop_id: str, item: LineItem | dict) -> tuple[str, Optional[dict]]:
    """(rule that matched, product row) for a line; ("", None) on a miss."""
    if not isinstance(item, LineItem):
        item = LineItem.from_raw(item)
    return first_match(MATCHERS, store.products.for_shop(shop_id), item)


def find_product(store: SyncStore, shop_id: str, item: LineItem | dict) -> Optional[dict]:
    return match_product(store, shop_id, item)[1]
