# Overview: Service-layer access to the sync document; whole-document read and write.

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Iterable, Iterator

from flask import current_app

from ..extensions import db
from ..models import SyncDocument
from ..validation import trim
from .concurrency import lock_for_update

logger = logging.getLogger(__name__)

"""
Sync Store Invariants (authoritative)

- One SyncDocument row per deployment holds every collection as JSON.
- A request reads the whole document, mutates it in memory, and writes the
  whole document back. Nothing is ever hard-deleted by the sync engine.
- Uniqueness is by natural key per collection, never by a synthetic row id.
- A corrupt or non-object payload is replaced by an empty document so the
  relay stays available; the loss is logged, not raised.
- Schema evolution is additive: missing collections appear as empty lists.
"""


def _shop_key(field: str) -> Callable[[dict], tuple | None]:
    def key(row: dict) -> tuple | None:
        value = trim(row.get(field))
        if not value:
            return None
        return (trim(row.get("shopId")), value)
    return key


def _field_key(field: str) -> Callable[[dict], str | None]:
    def key(row: dict) -> str | None:
        return trim(row.get(field)) or None
    return key


COLLECTIONS: dict[str, Callable[[dict], Any]] = {
    "shops": _field_key("shopId"),
    "shopAliases": _field_key("from"),
    "devices": _field_key("deviceId"),
    "products": _shop_key("productId"),
    "staffs": _shop_key("staffId"),
    "sales": _shop_key("receiptNo"),
    "debtors": _shop_key("receiptNo"),
    "debtorPayments": _field_key("id"),
}


def empty_document() -> dict:
    return {name: [] for name in COLLECTIONS}


class KeyedCollection:
    """
    A list of JSON rows with a natural-key index.

    The list object is the one stored in the document, so appends and
    in-place row mutations are persisted by save_store(). Rows whose key
    is empty (legacy rows) stay in the list but are not indexed; on
    duplicate keys the first row wins, matching a linear scan.
    """

    def __init__(self, rows: list, key_fn: Callable[[dict], Any]):
        self.rows = rows
        self._key_fn = key_fn
        self._index: dict[Any, dict] = {}
        self.reindex()

    def reindex(self) -> None:
        self._index = {}
        for row in self.rows:
            if not isinstance(row, dict):
                continue
            k = self._key_fn(row)
            if k is not None and k not in self._index:
                self._index[k] = row

    def get(self, key: Any) -> dict | None:
        return self._index.get(key)

    def append(self, row: dict) -> dict:
        self.rows.append(row)
        k = self._key_fn(row)
        if k is not None and k not in self._index:
            self._index[k] = row
        return row

    def upsert(self, row: dict) -> tuple[dict, bool]:
        """Merge row into the existing row with the same key, or append it. Returns (row, created)."""
        k = self._key_fn(row)
        existing = self._index.get(k) if k is not None else None
        if existing is None:
            return self.append(row), True
        existing.update(row)
        return existing, False

    def for_shop(self, shop_id: str) -> list[dict]:
        sid = trim(shop_id)
        return [row for row in self if trim(row.get("shopId")) == sid]

    def __iter__(self) -> Iterator[dict]:
        return (row for row in self.rows if isinstance(row, dict))

    def __len__(self) -> int:
        return len(self.rows)


class SyncStore:
    """In-memory snapshot of the sync document for a single request."""

    def __init__(self, document: dict, row: SyncDocument | None = None):
        self.document = document
        self.row = row
        self._collections: dict[str, KeyedCollection] = {}
        for name, key_fn in COLLECTIONS.items():
            rows = document.get(name)
            if not isinstance(rows, list):
                rows = []
                document[name] = rows
            self._collections[name] = KeyedCollection(rows, key_fn)

    @classmethod
    def from_rows(cls, **collections: Iterable[dict]) -> "SyncStore":
        doc = empty_document()
        for name, rows in collections.items():
            doc[name] = [dict(r) for r in rows]
        return cls(doc)

    @property
    def shops(self) -> KeyedCollection:
        return self._collections["shops"]

    @property
    def shop_aliases(self) -> KeyedCollection:
        return self._collections["shopAliases"]

    @property
    def devices(self) -> KeyedCollection:
        return self._collections["devices"]

    @property
    def products(self) -> KeyedCollection:
        return self._collections["products"]

    @property
    def staffs(self) -> KeyedCollection:
        return self._collections["staffs"]

    @property
    def sales(self) -> KeyedCollection:
        return self._collections["sales"]

    @property
    def debtors(self) -> KeyedCollection:
        return self._collections["debtors"]

    @property
    def debtor_payments(self) -> KeyedCollection:
        return self._collections["debtorPayments"]

    def counts(self) -> dict[str, int]:
        return {name: len(c) for name, c in self._collections.items()}

    @property
    def version(self) -> int | None:
        return self.row.version_id if self.row is not None else None


def _document_name(name: str | None) -> str:
    return name or current_app.config.get("SYNC_DOCUMENT_NAME", "default")


def _decode(row: SyncDocument) -> dict:
    try:
        doc = json.loads(row.payload or "{}")
    except (TypeError, ValueError):
        doc = None
    if isinstance(doc, dict):
        return doc

    logger.warning("sync document %r is unreadable; reinitializing to an empty document", row.name)
    doc = empty_document()
    row.payload = _encode(doc)
    db.session.commit()
    return doc


def _encode(doc: dict) -> str:
    return json.dumps(doc, ensure_ascii=False, separators=(",", ":"))


def load_store(name: str | None = None) -> SyncStore:
    """Read the whole document (creating it on first use)."""
    doc_name = _document_name(name)
    row = lock_for_update(db.session.query(SyncDocument).filter_by(name=doc_name)).first()
    if row is None:
        row = SyncDocument(name=doc_name, payload=_encode(empty_document()))
        db.session.add(row)
        db.session.flush()
        logger.info("created sync document %r", doc_name)
    return SyncStore(_decode(row), row)


def save_store(store: SyncStore) -> None:
    """Replace the whole document; raises StaleDataError if another writer got there first."""
    if store.row is None:
        raise ValueError("store was not loaded from the database")
    store.row.payload = _encode(store.document)
    db.session.commit()


def reset_store(name: str | None = None) -> SyncStore:
    store = load_store(name)
    store.row.payload = _encode(empty_document())
    db.session.commit()
    return load_store(name)
