"""Unit tests for clock utilities."""

from datetime import UTC, datetime, timedelta, timezone

from truthstream.utils.clock import coerce_utc, utc_now


def test_utc_now_is_aware():
    now = utc_now()
    assert now.tzinfo is not None
    assert now.utcoffset() == timedelta(0)


def test_coerce_utc_none():
    assert coerce_utc(None) is None


def test_coerce_utc_naive_datetime_assumed_utc():
    result = coerce_utc(datetime(2026, 3, 1, 10, 0))
    assert result == datetime(2026, 3, 1, 10, 0, tzinfo=UTC)


def test_coerce_utc_converts_offset():
    plus_two = timezone(timedelta(hours=2))
    result = coerce_utc(datetime(2026, 3, 1, 12, 0, tzinfo=plus_two))
    assert result == datetime(2026, 3, 1, 10, 0, tzinfo=UTC)
    assert result.tzinfo == UTC


def test_coerce_utc_parses_z_suffix():
    assert coerce_utc("2026-03-01T10:00:00Z") == datetime(2026, 3, 1, 10, 0, tzinfo=UTC)


def test_coerce_utc_parses_naive_string():
    assert coerce_utc("2026-03-01T10:00:00") == datetime(2026, 3, 1, 10, 0, tzinfo=UTC)
