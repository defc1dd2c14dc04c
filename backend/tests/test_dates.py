"""Tests for lenient date handling."""

from datetime import date, datetime, timezone

from designhub.utils.dates import ensure_aware, overlaps, parse_datetime, to_iso

UTC = timezone.utc


def test_parse_iso_with_z_suffix():
    assert parse_datetime("2026-02-01T10:30:00Z") == datetime(2026, 2, 1, 10, 30, tzinfo=UTC)


def test_parse_bare_date_is_midnight_utc():
    assert parse_datetime("2026-02-01") == datetime(2026, 2, 1, tzinfo=UTC)
    assert parse_datetime(date(2026, 2, 1)) == datetime(2026, 2, 1, tzinfo=UTC)


def test_parse_epoch_milliseconds():
    assert parse_datetime(0) == datetime(1970, 1, 1, tzinfo=UTC)


def test_parse_extended_json():
    assert parse_datetime({"$date": "2026-02-01T00:00:00Z"}) == datetime(2026, 2, 1, tzinfo=UTC)


def test_unreadable_values_become_none():
    for value in (None, "", "next tuesday", True, ["2026-01-01"], {"when": "soon"}):
        assert parse_datetime(value) is None


def test_ensure_aware_keeps_existing_offset():
    aware = datetime(2026, 1, 1, tzinfo=UTC)
    assert ensure_aware(aware) is aware
    assert ensure_aware(datetime(2026, 1, 1)).tzinfo is UTC


def test_to_iso():
    assert to_iso(None) is None
    assert to_iso(datetime(2026, 1, 1)) == "2026-01-01T00:00:00+00:00"
    assert to_iso(date(2026, 1, 1)) == "2026-01-01"


def test_overlaps():
    jan = datetime(2026, 1, 15, tzinfo=UTC)
    feb = datetime(2026, 2, 15, tzinfo=UTC)
    range_start = datetime(2026, 2, 1, tzinfo=UTC)
    range_end = datetime(2026, 2, 28, tzinfo=UTC)

    assert overlaps(feb, None, range_start, range_end)
    assert not overlaps(jan, None, range_start, range_end)
    assert overlaps(jan, feb, range_start, range_end)
    assert overlaps(jan, None, None, None)
    assert not overlaps(None, None, None, None)
