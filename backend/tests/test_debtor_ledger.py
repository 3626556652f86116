"""
Debtor ledger tests: accumulation per receipt and oldest-first payment application.
"""

import pytest

from shoprelay.services.debtor_service import (
    accumulate,
    apply_payment,
    backfill_debtors,
    debtors_since,
    figures,
    payments_for,
)
from shoprelay.services.store_service import SyncStore
from shoprelay.validation import ConflictError, NotFoundError, ValidationError

PHONE = "0803 111 2222"


def _debt(receipt_no, balance, created_at, phone=PHONE):
    return {
        "shopId": "s1", "receiptNo": receipt_no, "customerName": "Aisha", "customerPhone": phone,
        "total": balance, "paid": 0, "balance": balance, "status": "PARTIAL", "createdAt": created_at,
    }


@pytest.fixture
def store():
    # Inserted out of order; payments must follow createdAt
    return SyncStore.from_rows(debtors=[
        _debt("R2", 50, 200),
        _debt("R1", 100, 100),
        _debt("R3", 30, 300),
        _debt("R-OTHER", 70, 50, phone="0900"),
    ])


def test_accumulate_creates_then_adds():
    store = SyncStore.from_rows()

    accumulate(store, "s1", "R1", 40, customer_name="Musa", now=1)
    row = accumulate(store, "s1", "R1", 10.25, customer_phone="0803", now=2)

    assert row["total"] == 50.25
    assert row["paid"] == 0
    assert row["balance"] == 50.25
    assert row["status"] == "PARTIAL"
    assert row["customerName"] == "Musa"
    assert row["customerPhone"] == "0803"
    assert row["createdAt"] == 1
    assert row["updatedAt"] == 2
    assert len(store.debtors) == 1


def test_accumulate_upgrades_legacy_figures():
    store = SyncStore.from_rows(debtors=[
        {"shopId": "s1", "receiptNo": "R1", "totalOwed": 100, "totalPaid": 60, "createdAt": 1},
    ])
    row = accumulate(store, "s1", "R1", 20, now=5)
    assert figures(row) == (120, 60, 60)


def test_payment_by_phone_is_applied_oldest_first(store):
    result = apply_payment(store, "s1", amount=120, phone="08031112222", method="transfer", by="DEV-1", now=999)

    assert result["applied"] == 120
    assert result["unapplied"] == 0
    assert result["touched"] == 2

    r1 = store.debtors.get(("s1", "R1"))
    r2 = store.debtors.get(("s1", "R2"))
    r3 = store.debtors.get(("s1", "R3"))
    assert (r1["paid"], r1["balance"], r1["status"]) == (100, 0, "PAID")
    assert (r2["paid"], r2["balance"], r2["status"]) == (20, 30, "PARTIAL")
    assert r3["balance"] == 30
    assert "updatedAt" not in r3

    assert [(p["receiptNo"], p["amount"]) for p in result["payments"]] == [("R1", 100), ("R2", 20)]
    first = result["payments"][0]
    assert first["method"] == "TRANSFER"
    assert first["by"] == "DEV-1"
    assert first["id"].startswith("DP-999-")
    assert len(store.debtor_payments) == 2


def test_overpayment_reports_unapplied(store):
    result = apply_payment(store, "s1", amount=200, phone=PHONE, now=1)

    assert result["applied"] == 180
    assert result["unapplied"] == 20
    assert result["touched"] == 3
    assert all(d["status"] == "PAID" for d in debtors_since(store, "s1", 0) if d["customerPhone"] == PHONE)
    assert result["payments"][0]["method"] == "CASH"


def test_payment_by_receipt_only_touches_that_receipt(store):
    result = apply_payment(store, "s1", amount=10, receipt_no="R3", now=1)
    assert result["touched"] == 1
    assert store.debtors.get(("s1", "R3"))["balance"] == 20
    assert store.debtors.get(("s1", "R1"))["balance"] == 100


def test_paid_receipt_is_a_conflict(store):
    apply_payment(store, "s1", amount=30, receipt_no="R3", now=1)
    with pytest.raises(ConflictError):
        apply_payment(store, "s1", amount=5, receipt_no="R3", now=2)


def test_unknown_selectors_are_not_found(store):
    with pytest.raises(NotFoundError):
        apply_payment(store, "s1", amount=5, receipt_no="NOPE")
    with pytest.raises(NotFoundError):
        apply_payment(store, "s1", amount=5, phone="0700")


@pytest.mark.parametrize("kwargs", [
    {"amount": 0, "phone": PHONE},
    {"amount": -3, "phone": PHONE},
    {"amount": "abc", "phone": PHONE},
    {"amount": 10},
])
def test_invalid_payments_are_rejected(store, kwargs):
    with pytest.raises(ValidationError):
        apply_payment(store, "s1", **kwargs)
    assert len(store.debtor_payments) == 0


def test_payment_history_is_newest_first(store):
    apply_payment(store, "s1", amount=10, receipt_no="R1", now=10)
    apply_payment(store, "s1", amount=10, receipt_no="R2", now=20)

    history = payments_for(store, "s1")
    assert [p["receiptNo"] for p in history] == ["R2", "R1"]
    assert [p["receiptNo"] for p in payments_for(store, "s1", receipt_no="R1")] == ["R1"]


def test_debtors_since_derives_from_sales_when_ledger_is_empty():
    store = SyncStore.from_rows(sales=[
        {"shopId": "s1", "receiptNo": "A", "total": 100, "paid": 40, "createdAt": 1},
        {"shopId": "s1", "receiptNo": "B", "total": 100, "paid": 100, "createdAt": 2},
    ])
    items = debtors_since(store, "s1", 0)
    assert [(d["receiptNo"], d["balance"], d["derived"]) for d in items] == [("A", 60, True)]


def test_backfill_patches_customer_details():
    store = SyncStore.from_rows(debtors=[_debt("R1", 100, 1)])

    changed = backfill_debtors(store, "s1", [
        {"receiptNo": "R1", "customerName": "Aisha B.", "dueDate": "2026-02-01"},
        {"receipt": "R5", "phone": "0812"},
        {"name": "no receipt"},
    ], now=50)

    assert changed == 2
    assert store.debtors.get(("s1", "R1"))["customerName"] == "Aisha B."
    assert store.debtors.get(("s1", "R1"))["balance"] == 100
    assert store.debtors.get(("s1", "R5"))["customerPhone"] == "0812"


def test_backfill_stamps_server_time_for_pull_cursors():
    store = SyncStore.from_rows(debtors=[_debt("R1", 100, 1)])

    backfill_debtors(store, "s1", [
        {"receiptNo": "R1", "customerName": "Aisha", "updatedAt": "2026-10-17T10:00:00Z"},
    ], now=1_800_000_000_000)

    row = store.debtors.get(("s1", "R1"))
    assert row["updatedAt"] == 1_800_000_000_000
    assert row["deviceUpdatedAt"] == "2026-10-17T10:00:00Z"
    assert [d["receiptNo"] for d in debtors_since(store, "s1", 1_700_000_000_000)] == ["R1"]
