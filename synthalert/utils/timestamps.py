"""
Timestamp generation — pick an instant inside a time range by pattern.

Entry points:
  get_time_range(config)      — resolve a TimestampConfig into a TimeRange
  generate(time_range, pattern) — draw one instant (or None for an invalid range)
  generate_timestamp(config)  — the composed path; always returns an ISO string

Every pattern stays inside [start, end]. A zero-width range returns its single
instant for every pattern. The random source is injectable so tests can pin
exact outputs; random.Random satisfies the RandomSource protocol.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Protocol, TypeVar

from synthalert.config import get_settings
from synthalert.models.timestamps import TimeRange, TimestampConfig, TimestampPattern
from synthalert.utils.relative_dates import parse_date_token

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


class RandomSource(Protocol):
    def random(self) -> float: ...

    def randint(self, a: int, b: int) -> int: ...

    def gauss(self, mu: float, sigma: float) -> float: ...

    def choice(self, seq: Sequence[_T]) -> _T: ...


_default_rng = random.Random()

_WEEKEND_DAYS = (5, 6)  # Saturday, Sunday


# ---------------------------------------------------------------------------
# Range resolution
# ---------------------------------------------------------------------------

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_time_range(config: Any = None, now: Optional[datetime] = None) -> TimeRange:
    """Resolve *config* into absolute start / end instants.

    Relative start tokens count back from *now*; relative end tokens count
    forward. The legacy eventDateOffsetHours path, used only when neither
    date is given, pins both ends to now + offset.
    """
    cfg = TimestampConfig.coerce(config)
    now = now or _utcnow()

    if cfg.event_date_offset_hours is not None and cfg.start_date is None and cfg.end_date is None:
        try:
            instant = now + timedelta(hours=cfg.event_date_offset_hours)
        except (OverflowError, ValueError):
            logger.warning(
                "timestamps.offset_out_of_range",
                extra={"offset_hours": cfg.event_date_offset_hours},
            )
            return TimeRange()
        return TimeRange(start=instant, end=instant)

    start_token = cfg.start_date if cfg.start_date is not None else get_settings().default_start_date
    end_token = cfg.end_date if cfg.end_date is not None else "now"
    return TimeRange(
        start=parse_date_token(start_token, now),
        end=parse_date_token(end_token, now, future=True),
    )


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

def _uniform(start: datetime, span_us: int, rng: RandomSource) -> datetime:
    return start + timedelta(microseconds=rng.randint(0, span_us))


def _biased(
    start: datetime,
    span_us: int,
    rng: RandomSource,
    accept: Callable[[datetime], bool],
) -> datetime:
    """Uniform draw, retried toward instants that satisfy *accept*.

    With probability pattern_bias the draw is retried up to
    max_sampling_attempts times; the last draw is used if none is accepted.
    """
    settings = get_settings()
    candidate = _uniform(start, span_us, rng)
    if rng.random() >= settings.pattern_bias:
        return candidate
    for _ in range(settings.max_sampling_attempts):
        if accept(candidate):
            return candidate
        candidate = _uniform(start, span_us, rng)
    return candidate


def _business_hours(start: datetime, end: datetime, span_us: int, rng: RandomSource) -> datetime:
    settings = get_settings()
    tz = start.tzinfo

    def in_hours(candidate: datetime) -> bool:
        hour = candidate.astimezone(tz).hour
        return settings.business_hours_start <= hour < settings.business_hours_end

    return _biased(start, span_us, rng, in_hours)


def _contains_weekend(start: datetime, end: datetime) -> bool:
    if end - start >= timedelta(days=6):
        return True
    tz = start.tzinfo
    day = start.astimezone(tz).date()
    last = end.astimezone(tz).date()
    while day <= last:
        if day.weekday() in _WEEKEND_DAYS:
            return True
        day += timedelta(days=1)
    return False


def _weekend_heavy(start: datetime, end: datetime, span_us: int, rng: RandomSource) -> datetime:
    if not _contains_weekend(start, end):
        return _uniform(start, span_us, rng)
    tz = start.tzinfo
    return _biased(
        start, span_us, rng, lambda candidate: candidate.astimezone(tz).weekday() in _WEEKEND_DAYS
    )


def _burst_offsets(start: datetime, end: datetime, span_us: int, count: int) -> list[int]:
    """Burst centers for a range, stable across calls for the same bounds."""
    seed = int(start.timestamp() * 1000) ^ (int(end.timestamp() * 1000) << 1)
    placer = random.Random(seed)
    return sorted(placer.randint(0, span_us) for _ in range(count))


def _attack_simulation(start: datetime, end: datetime, span_us: int, rng: RandomSource) -> datetime:
    settings = get_settings()
    centers = _burst_offsets(start, end, span_us, settings.attack_burst_count)
    sigma_us = min(settings.attack_burst_spread_minutes * 60_000_000, span_us / 10)
    offset = int(round(rng.choice(centers) + rng.gauss(0.0, sigma_us)))
    offset = max(0, min(span_us, offset))
    return start + timedelta(microseconds=offset)


_PATTERNS = {
    TimestampPattern.BUSINESS_HOURS: _business_hours,
    TimestampPattern.WEEKEND_HEAVY: _weekend_heavy,
    TimestampPattern.ATTACK_SIMULATION: _attack_simulation,
}


def generate(
    time_range: TimeRange,
    pattern: Any = TimestampPattern.UNIFORM,
    rng: Optional[RandomSource] = None,
) -> Optional[datetime]:
    """Draw one instant from *time_range* according to *pattern*.

    Returns None when either bound is invalid. Reversed bounds are swapped.
    """
    if not time_range.is_valid:
        return None
    rng = rng or _default_rng
    start, end = time_range.start, time_range.end
    if start > end:
        start, end = end, start
    if start == end:
        return start

    pattern = TimestampConfig.coerce({"pattern": pattern}).pattern
    span_us = (end - start) // timedelta(microseconds=1)

    sampler = _PATTERNS.get(pattern)
    if sampler is None:
        return _uniform(start, span_us, rng)
    return sampler(start, end, span_us, rng)


# ---------------------------------------------------------------------------
# Composed entry point
# ---------------------------------------------------------------------------

def format_timestamp(value: datetime) -> str:
    """Render *value* as UTC ISO-8601 with millisecond precision and a Z suffix."""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def generate_timestamp(
    config: Any = None,
    now: Optional[datetime] = None,
    rng: Optional[RandomSource] = None,
) -> str:
    """Generate an ISO-8601 timestamp for *config*.

    None or an empty config yields the current instant; any other config,
    including one that only names a pattern, draws from get_time_range().
    Invalid bounds fall back to the current instant, so the result always
    parses.
    """
    cfg = TimestampConfig.coerce(config)
    now = now or _utcnow()
    if cfg.is_empty:
        return format_timestamp(now)

    time_range = get_time_range(cfg, now=now)
    instant = generate(time_range, cfg.pattern, rng=rng)
    if instant is None:
        logger.warning(
            "timestamps.invalid_range",
            extra={"start_date": str(cfg.start_date), "end_date": str(cfg.end_date)},
        )
        return format_timestamp(now)
    try:
        return format_timestamp(instant)
    except (OverflowError, ValueError):
        logger.warning("timestamps.unformattable", extra={"instant": repr(instant)})
        return format_timestamp(now)
