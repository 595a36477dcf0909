"""Tests for synthalert/utils/timestamps.py — deterministic random sources, no wall clock."""

import random
from datetime import datetime, timedelta, timezone

import pytest

from synthalert.config import Settings
from synthalert.models.timestamps import TimeRange, TimestampConfig, TimestampPattern
from synthalert.utils import timestamps
from synthalert.utils.timestamps import (
    format_timestamp,
    generate,
    generate_timestamp,
    get_time_range,
)

NOW = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)  # a Monday

ALL_PATTERNS = list(TimestampPattern)


def _parse(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class FixedRandom:
    """Random source pinned to the low end of every draw."""

    def __init__(self, fraction: float = 0.0):
        self.fraction = fraction

    def random(self) -> float:
        return self.fraction

    def randint(self, a: int, b: int) -> int:
        return a + int((b - a) * self.fraction)

    def gauss(self, mu: float, sigma: float) -> float:
        return mu

    def choice(self, seq):
        return seq[0]


@pytest.fixture
def settings(monkeypatch):
    """Default Settings, independent of any .env file."""
    settings = Settings(_env_file=None)
    monkeypatch.setattr("synthalert.utils.timestamps.get_settings", lambda: settings)
    return settings


# ---------------------------------------------------------------------------
# get_time_range
# ---------------------------------------------------------------------------

class TestGetTimeRange:
    def test_absolute_bounds(self):
        rng = get_time_range(
            {"startDate": "2024-01-01T00:00:00.000Z", "endDate": "2024-01-31T23:59:59.999Z"}, now=NOW
        )
        assert rng.start == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert rng.end == datetime(2024, 1, 31, 23, 59, 59, 999000, tzinfo=timezone.utc)

    def test_relative_bounds(self):
        rng = get_time_range(TimestampConfig(start_date="7d", end_date="now"), now=NOW)
        assert rng.start == NOW - timedelta(days=7)
        assert rng.end == NOW

    def test_default_range_is_last_24_hours(self, settings):
        rng = get_time_range(None, now=NOW)
        assert rng.end == NOW
        assert rng.start == NOW - timedelta(hours=24)

    def test_default_start_comes_from_settings(self, settings):
        settings.default_start_date = "2h"
        rng = get_time_range({}, now=NOW)
        assert rng.start == NOW - timedelta(hours=2)

    def test_relative_end_date_is_in_the_future(self):
        rng = get_time_range({"startDate": "now", "endDate": "7d"}, now=NOW)
        assert rng.start == NOW
        assert rng.end == NOW + timedelta(days=7)

    def test_legacy_offset_pins_both_ends(self):
        rng = get_time_range({"eventDateOffsetHours": -24}, now=NOW)
        assert rng.start == rng.end == NOW - timedelta(hours=24)

    def test_explicit_dates_beat_legacy_offset(self):
        rng = get_time_range({"startDate": "1h", "eventDateOffsetHours": -24}, now=NOW)
        assert rng.start == NOW - timedelta(hours=1)
        assert rng.end == NOW

    def test_invalid_strings_do_not_raise(self):
        rng = get_time_range({"startDate": "invalid-date", "endDate": "also-invalid"}, now=NOW)
        assert rng.start is None
        assert rng.end is None
        assert rng.is_valid is False

    def test_absurd_offset_gives_invalid_range(self):
        rng = get_time_range({"eventDateOffsetHours": 1e15}, now=NOW)
        assert rng.is_valid is False


# ---------------------------------------------------------------------------
# generate
# ---------------------------------------------------------------------------

class TestGenerateDegenerate:
    @pytest.mark.parametrize("pattern", ALL_PATTERNS)
    def test_zero_width_range_returns_the_instant(self, pattern):
        rng = random.Random(7)
        instant = datetime(2024, 1, 15, 12, tzinfo=timezone.utc)
        results = {generate(TimeRange(start=instant, end=instant), pattern, rng=rng) for _ in range(1000)}
        assert results == {instant}

    def test_invalid_range_returns_none(self):
        assert generate(TimeRange(start=None, end=NOW), "uniform") is None

    def test_reversed_bounds_are_swapped(self):
        later = NOW + timedelta(hours=1)
        result = generate(TimeRange(start=later, end=NOW), "uniform", rng=FixedRandom(0.0))
        assert result == NOW


class TestGenerateUniform:
    def test_low_end_is_inclusive(self):
        end = NOW + timedelta(hours=1)
        assert generate(TimeRange(start=NOW, end=end), "uniform", rng=FixedRandom(0.0)) == NOW

    def test_high_end_is_inclusive(self):
        end = NOW + timedelta(hours=1)
        assert generate(TimeRange(start=NOW, end=end), "uniform", rng=FixedRandom(1.0)) == end

    @pytest.mark.parametrize("pattern", ["uniform", "random", "no_such_pattern"])
    def test_stays_in_range(self, pattern):
        rng = random.Random(42)
        start, end = NOW - timedelta(days=30), NOW
        for _ in range(500):
            assert start <= generate(TimeRange(start=start, end=end), pattern, rng=rng) <= end

    def test_spreads_across_range(self):
        rng = random.Random(1)
        start, end = NOW - timedelta(days=10), NOW
        days = {generate(TimeRange(start=start, end=end), "uniform", rng=rng).date() for _ in range(500)}
        assert len(days) >= 10


class TestGenerateBusinessHours:
    def test_biased_toward_working_hours(self, settings):
        rng = random.Random(3)
        start = datetime(2024, 1, 15, tzinfo=timezone.utc)
        end = start + timedelta(days=1)
        draws = [generate(TimeRange(start=start, end=end), "business_hours", rng=rng) for _ in range(1000)]
        in_hours = sum(1 for d in draws if 9 <= d.hour < 17)
        # uniform would land in 09-17 about a third of the time
        assert in_hours > 700
        assert all(start <= d <= end for d in draws)

    def test_cross_midnight_range_stays_in_bounds(self, settings):
        rng = random.Random(5)
        start = datetime(2024, 1, 15, 20, tzinfo=timezone.utc)
        end = datetime(2024, 1, 16, 4, tzinfo=timezone.utc)
        for _ in range(500):
            assert start <= generate(TimeRange(start=start, end=end), "business_hours", rng=rng) <= end

    def test_uses_range_timezone(self, settings):
        tz = timezone(timedelta(hours=-5))
        rng = random.Random(11)
        start = datetime(2024, 1, 15, tzinfo=tz)
        end = start + timedelta(days=1)
        draws = [generate(TimeRange(start=start, end=end), "business_hours", rng=rng) for _ in range(500)]
        local_hours = [d.astimezone(tz).hour for d in draws]
        assert sum(1 for h in local_hours if 9 <= h < 17) > 350

    def test_zero_bias_is_uniform(self, settings):
        settings.pattern_bias = 0.0
        rng = random.Random(3)
        start = datetime(2024, 1, 15, tzinfo=timezone.utc)
        end = start + timedelta(days=1)
        draws = [generate(TimeRange(start=start, end=end), "business_hours", rng=rng) for _ in range(1000)]
        assert sum(1 for d in draws if 9 <= d.hour < 17) < 500


class TestGenerateWeekendHeavy:
    def test_biased_toward_weekend(self, settings):
        rng = random.Random(8)
        start = datetime(2024, 1, 8, tzinfo=timezone.utc)  # Monday
        end = start + timedelta(days=14)
        draws = [generate(TimeRange(start=start, end=end), "weekend_heavy", rng=rng) for _ in range(1000)]
        weekend = sum(1 for d in draws if d.weekday() >= 5)
        # uniform would give roughly 2/7
        assert weekend > 600
        assert all(start <= d <= end for d in draws)

    def test_weekday_only_range_is_uniform_and_in_bounds(self, settings):
        rng = random.Random(9)
        start = datetime(2024, 1, 15, tzinfo=timezone.utc)  # Monday
        end = datetime(2024, 1, 17, tzinfo=timezone.utc)    # Wednesday
        for _ in range(200):
            result = generate(TimeRange(start=start, end=end), "weekend_heavy", rng=rng)
            assert start <= result <= end
            assert result.weekday() < 5

    def test_weekend_only_range(self, settings):
        rng = random.Random(10)
        start = datetime(2024, 1, 13, tzinfo=timezone.utc)  # Saturday
        end = datetime(2024, 1, 14, 23, 59, 59, 999000, tzinfo=timezone.utc)
        for _ in range(100):
            assert start <= generate(TimeRange(start=start, end=end), "weekend_heavy", rng=rng) <= end


class TestGenerateAttackSimulation:
    def test_clusters_around_bursts(self, settings):
        rng = random.Random(12)
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        end = start + timedelta(days=30)
        draws = [generate(TimeRange(start=start, end=end), "attack_simulation", rng=rng) for _ in range(600)]
        assert all(start <= d <= end for d in draws)
        # 3 bursts with a 30 minute spread put nearly everything on a few days
        assert len({d.date() for d in draws}) <= 6

    def test_bursts_are_stable_for_the_same_range(self, settings):
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        end = start + timedelta(days=30)
        first = generate(TimeRange(start=start, end=end), "attack_simulation", rng=FixedRandom())
        second = generate(TimeRange(start=start, end=end), "attack_simulation", rng=FixedRandom())
        assert first == second

    def test_short_range_stays_in_bounds(self, settings):
        rng = random.Random(13)
        start = NOW
        end = NOW + timedelta(seconds=2)
        for _ in range(200):
            assert start <= generate(TimeRange(start=start, end=end), "attack_simulation", rng=rng) <= end


# ---------------------------------------------------------------------------
# generate_timestamp
# ---------------------------------------------------------------------------

class TestGenerateTimestamp:
    def test_no_config_is_now(self):
        assert generate_timestamp(None, now=NOW) == "2024-01-15T10:30:00.000Z"

    def test_empty_config_is_now(self):
        assert generate_timestamp({}, now=NOW) == "2024-01-15T10:30:00.000Z"

    def test_pattern_only_config_draws_from_default_window(self, settings):
        rng = random.Random(24)
        values = {generate_timestamp({"pattern": "uniform"}, now=NOW, rng=rng) for _ in range(50)}
        assert len(values) > 1
        for value in values:
            assert NOW - timedelta(hours=24) <= _parse(value) <= NOW

    def test_pattern_only_business_hours(self, settings):
        rng = random.Random(25)
        hours = [_parse(generate_timestamp({"pattern": "business_hours"}, now=NOW, rng=rng)).hour for _ in range(300)]
        assert sum(9 <= h < 17 for h in hours) > 200

    def test_zero_time_range_round_trips(self):
        cfg = {"startDate": "2024-01-15T12:00:00.000Z", "endDate": "2024-01-15T12:00:00.000Z"}
        assert generate_timestamp(cfg, now=NOW) == "2024-01-15T12:00:00.000Z"

    def test_within_absolute_range(self):
        rng = random.Random(21)
        cfg = TimestampConfig(start_date="2024-01-01T00:00:00.000Z", end_date="2024-01-31T23:59:59.999Z")
        for _ in range(50):
            value = _parse(generate_timestamp(cfg, now=NOW, rng=rng))
            assert datetime(2024, 1, 1, tzinfo=timezone.utc) <= value
            assert value <= datetime(2024, 1, 31, 23, 59, 59, 999000, tzinfo=timezone.utc)

    def test_relative_range(self):
        rng = random.Random(22)
        value = _parse(generate_timestamp({"startDate": "7d", "endDate": "now"}, now=NOW, rng=rng))
        assert NOW - timedelta(days=7) <= value <= NOW

    def test_legacy_offset(self):
        assert generate_timestamp({"eventDateOffsetHours": -24}, now=NOW) == "2024-01-14T10:30:00.000Z"

    def test_malformed_token_falls_back_to_now(self):
        assert generate_timestamp({"startDate": "999xyz", "endDate": "now"}, now=NOW) == "2024-01-15T10:30:00.000Z"

    def test_invalid_range_logs_warning(self, caplog):
        generate_timestamp({"startDate": "invalid-date"}, now=NOW)
        assert any(r.getMessage() == "timestamps.invalid_range" for r in caplog.records)

    def test_very_large_range(self):
        value = _parse(generate_timestamp({"startDate": "10y", "endDate": "now"}, now=NOW, rng=random.Random(1)))
        assert datetime(2014, 1, 15, 10, 30, tzinfo=timezone.utc) <= value <= NOW

    def test_always_iso_format(self):
        rng = random.Random(23)
        for pattern in ALL_PATTERNS:
            value = generate_timestamp({"startDate": "1d", "pattern": pattern.value}, now=NOW, rng=rng)
            assert value.endswith("Z")
            assert len(value) == len("2024-01-15T10:30:00.000Z")
            _parse(value)

    def test_uses_wall_clock_when_now_omitted(self):
        before = datetime.now(timezone.utc) - timedelta(seconds=1)
        value = _parse(generate_timestamp())
        assert before <= value <= datetime.now(timezone.utc) + timedelta(seconds=1)

    def test_default_rng_is_module_level(self):
        assert isinstance(timestamps._default_rng, random.Random)


class TestFormatTimestamp:
    def test_converts_to_utc(self):
        local = datetime(2024, 1, 15, 5, 30, tzinfo=timezone(timedelta(hours=-5)))
        assert format_timestamp(local) == "2024-01-15T10:30:00.000Z"

    def test_millisecond_precision(self):
        value = datetime(2024, 1, 15, 10, 30, 0, 123456, tzinfo=timezone.utc)
        assert format_timestamp(value) == "2024-01-15T10:30:00.123Z"
