"""
Sync document persistence tests: load/save/reset, corrupt payloads, and
optimistic versioning through SyncDocument.version_id.
"""

import pytest
from sqlalchemy import text
from sqlalchemy.orm.exc import StaleDataError

from shoprelay.models import SyncDocument
from shoprelay.services import store_service
from shoprelay.services.concurrency import run_with_retry
from shoprelay.services.store_service import SyncStore, empty_document


def test_first_load_creates_empty_document(db_session):
    store = store_service.load_store()

    assert store.document == empty_document()
    assert db_session.query(SyncDocument).count() == 1


def test_save_bumps_version(db_session, read_store):
    store = store_service.load_store()
    store_service.save_store(store)
    first_version = store.version

    store = read_store()
    store.products.append({"shopId": "s1", "productId": "p1"})
    store_service.save_store(store)

    reloaded = read_store()
    assert reloaded.version == first_version + 1
    assert reloaded.products.get(("s1", "p1")) is not None


def test_missing_collections_are_added(db_session, read_store):
    db_session.add(SyncDocument(name="default", payload='{"products": [{"shopId": "s1", "productId": "p1"}]}'))
    db_session.commit()

    store = read_store()
    assert len(store.products) == 1
    assert len(store.debtors) == 0
    assert store.document["debtorPayments"] == []


@pytest.mark.parametrize("payload", ["{not json", "[1, 2]", ""])
def test_corrupt_document_is_reset(db_session, read_store, payload):
    db_session.add(SyncDocument(name="default", payload=payload))
    db_session.commit()

    store = read_store()
    assert store.document == empty_document()
    assert read_store().document == empty_document()


def test_reset_store_empties_every_collection(seed, read_store):
    seed(products=[{"shopId": "s1", "productId": "p1"}], sales=[{"shopId": "s1", "receiptNo": "R1"}])

    store_service.reset_store()

    assert read_store().counts() == {name: 0 for name in store_service.COLLECTIONS}


def test_save_requires_loaded_store():
    with pytest.raises(ValueError):
        store_service.save_store(SyncStore.from_rows())


def test_run_with_retry_retries_stale_writes(app):
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) == 1:
            raise StaleDataError("version moved")
        return "done"

    assert run_with_retry(flaky, attempts=3, backoff_base=0) == "done"
    assert len(calls) == 2


def test_run_with_retry_gives_up(app):
    def always_stale():
        raise StaleDataError("version moved")

    with pytest.raises(StaleDataError):
        run_with_retry(always_stale, attempts=2, backoff_base=0)


def test_keyed_collection_ignores_rows_without_key():
    store = SyncStore.from_rows(products=[{"shopId": "s1", "name": "legacy"}, {"shopId": "s1", "productId": "p1"}])
    assert len(store.products) == 2
    assert store.products.get(("s1", "")) is None
    assert store.products.get(("s1", "p1"))["productId"] == "p1"


def _bump_version(session):
    session.execute(text("UPDATE sync_documents SET version_id = version_id + 1"))


def test_version_moved_underneath_makes_save_stale(db_session, seed, read_store):
    seed()
    store = read_store()

    _bump_version(db_session)
    store.products.append({"shopId": "s1", "productId": "p1"})

    with pytest.raises(StaleDataError):
        store_service.save_store(store)
    db_session.rollback()


def test_retry_rereads_after_version_moved(db_session, seed, read_store):
    seed()
    attempts = []

    def add_product():
        store = store_service.load_store()
        attempts.append(len(attempts) + 1)
        if len(attempts) == 1:
            _bump_version(db_session)
        store.products.append({"shopId": "s1", "productId": f"p{len(attempts)}"})
        store_service.save_store(store)

    run_with_retry(add_product, attempts=3, backoff_base=0)

    assert attempts == [1, 2]
    reloaded = read_store()
    assert reloaded.products.get(("s1", "p2")) is not None
    assert reloaded.products.get(("s1", "p1")) is None
