from datetime import date, datetime, timezone

import pytest

from shoprelay.time_utils import parse_expiry, to_utc_z, today_in


@pytest.mark.parametrize("value,expected", [
    ("20260315", date(2026, 3, 15)),
    ("2026-03-15", date(2026, 3, 15)),
    ("2026-03-15T23:00:00Z", date(2026, 3, 15)),
    (1773532800000, date(2026, 3, 15)),
    ("1773532800000", date(2026, 3, 15)),
])
def test_parse_expiry_formats(value, expected):
    assert parse_expiry(value) == expected


@pytest.mark.parametrize("value", [None, "", "soon", "20261340", True])
def test_parse_expiry_rejects_garbage(value):
    assert parse_expiry(value) is None


def test_to_utc_z_treats_naive_as_utc():
    assert to_utc_z(datetime(2026, 1, 2, 3, 4, 5, 999)) == "2026-01-02T03:04:05Z"
    assert to_utc_z(None) is None


def test_today_in_unknown_zone_falls_back_to_utc():
    assert today_in("Not/AZone") == datetime.now(timezone.utc).date()


def test_parse_expiry_uses_the_given_zone():
    # 2026-03-14 23:30 UTC
    assert parse_expiry(1773531000000) == date(2026, 3, 14)
    assert parse_expiry(1773531000000, "Africa/Lagos") == date(2026, 3, 15)
    assert parse_expiry("1773531000000", "Africa/Lagos") == date(2026, 3, 15)
    assert parse_expiry("2026-03-14T23:30:00Z", "Africa/Lagos") == date(2026, 3, 15)
    assert parse_expiry("2026-03-14", "Africa/Lagos") == date(2026, 3, 14)
