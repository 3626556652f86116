"""
Product reconciler tests: snapshot upserts, the stale-stock guard, and pull cursors.
"""

from shoprelay.services.product_service import products_since, should_protect_stock, upsert_products
from shoprelay.services.store_service import SyncStore


def test_new_product_is_stamped_with_server_time():
    store = SyncStore.from_rows()

    result = upsert_products(store, "s1", [{"productId": "p1", "name": "Milk", "stock": 4}], now=5000)

    assert result == {"upserts": 1, "stockProtected": 0, "serverTime": 5000}
    row = store.products.get(("s1", "p1"))
    assert row["shopId"] == "s1"
    assert row["updatedAt"] == 5000
    assert row["createdAt"] == 5000


def test_legacy_id_is_used_as_product_id():
    store = SyncStore.from_rows()
    upsert_products(store, "s1", [{"id": "old-7", "name": "Tea"}], now=1)
    assert store.products.get(("s1", "old-7"))["name"] == "Tea"


def test_items_without_id_are_skipped():
    store = SyncStore.from_rows()
    result = upsert_products(store, "s1", [{"name": "nameless"}, "junk", None], now=1)
    assert result["upserts"] == 0
    assert len(store.products) == 0


def test_stale_snapshot_cannot_raise_stock():
    # Server decremented stock at T2 after a sale; device pushes its T1 snapshot
    store = SyncStore.from_rows(products=[
        {"shopId": "s1", "productId": "p1", "name": "Milk", "stock": 5, "updatedAt": 2000},
    ])

    result = upsert_products(
        store, "s1",
        [{"productId": "p1", "name": "Milk 1L", "stock": 10, "updatedAt": 1000}],
        now=3000,
    )

    row = store.products.get(("s1", "p1"))
    assert result["stockProtected"] == 1
    assert row["stock"] == 5
    assert row["name"] == "Milk 1L"
    assert row["updatedAt"] == 3000


def test_newer_snapshot_may_raise_stock():
    store = SyncStore.from_rows(products=[
        {"shopId": "s1", "productId": "p1", "stock": 5, "updatedAt": 1000},
    ])
    upsert_products(store, "s1", [{"productId": "p1", "stock": 12, "updatedAt": 2000}], now=3000)
    assert store.products.get(("s1", "p1"))["stock"] == 12


def test_stale_snapshot_may_lower_stock():
    store = SyncStore.from_rows(products=[
        {"shopId": "s1", "productId": "p1", "stock": 5, "updatedAt": 2000},
    ])
    upsert_products(store, "s1", [{"productId": "p1", "stock": 3, "updatedAt": 1000}], now=3000)
    assert store.products.get(("s1", "p1"))["stock"] == 3


def test_protection_compares_created_at_when_updated_at_missing():
    existing = {"stock": 1, "createdAt": 500}
    assert should_protect_stock(existing, {"stock": 2, "createdAt": 100}) is True
    assert should_protect_stock(existing, {"stock": 2, "createdAt": 900}) is False
    assert should_protect_stock(existing, {"name": "no stock field"}) is False


def test_products_since_filters_by_cursor():
    store = SyncStore.from_rows(products=[
        {"shopId": "s1", "productId": "a", "updatedAt": 100},
        {"shopId": "s1", "productId": "b", "updatedAt": 300},
        {"shopId": "s2", "productId": "c", "updatedAt": 500},
    ])
    assert [p["productId"] for p in products_since(store, "s1", 0)] == ["a", "b"]
    assert [p["productId"] for p in products_since(store, "s1", 100)] == ["b"]
