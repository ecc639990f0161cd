"""Tests for claims_decisioning.insurance.utils."""

from datetime import datetime, timedelta, timezone

import pytest

from claims_decisioning.insurance.utils import (
    clamp_score,
    contains_any,
    count_matches,
    days_between,
    ensure_utc,
    format_currency,
    round_half_up,
    whole_days_between,
)


class TestRounding:
    @pytest.mark.parametrize(
        "value,expected",
        [(62.5, 63), (2.5, 3), (2.49, 2), (0.0, 0), (-0.5, 0), (99.5, 100)],
    )
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected

    def test_clamp_score(self):
        assert clamp_score(120.0) == 100
        assert clamp_score(-5.0) == 0
        assert clamp_score(44.5) == 45
        assert isinstance(clamp_score(10.2), int)


class TestDates:
    def test_ensure_utc(self):
        naive = datetime(2024, 3, 1, 12)
        assert ensure_utc(naive) == datetime(2024, 3, 1, 12, tzinfo=timezone.utc)
        eastern = datetime(2024, 3, 1, 7, tzinfo=timezone(timedelta(hours=-5)))
        assert ensure_utc(eastern) == datetime(2024, 3, 1, 12, tzinfo=timezone.utc)
        assert ensure_utc(None) is None

    def test_days_between_is_fractional_and_signed(self):
        start = datetime(2024, 1, 1)
        end = datetime(2024, 1, 3, 12)
        assert days_between(start, end) == 2.5
        assert days_between(end, start) == -2.5

    def test_days_between_mixed_naive_and_aware(self):
        assert days_between(datetime(2024, 1, 1), datetime(2024, 1, 2, tzinfo=timezone.utc)) == 1.0

    def test_whole_days_rounds_up(self):
        start = datetime(2024, 1, 1)
        assert whole_days_between(start, datetime(2024, 1, 16, 1)) == 16
        assert whole_days_between(start, datetime(2024, 1, 16)) == 15


class TestKeywords:
    def test_contains_any_is_case_insensitive(self):
        assert contains_any("Rear-ended at a STOP light", ["stop light", "red light"])
        assert not contains_any("Parked", ["stop light"])
        assert not contains_any(None, ["stop light"])

    def test_count_matches_counts_distinct_keywords(self):
        assert count_matches("whiplash and whiplash, fracture", ["whiplash", "fracture", "burn"]) == 2
        assert count_matches("", ["whiplash"]) == 0


def test_format_currency():
    assert format_currency(12345) == "$12,345.00"
    assert format_currency(0.5) == "$0.50"
