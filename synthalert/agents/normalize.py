"""
NormalizeAgent — untrusted candidate record → sanitized AlertRecord.

Candidate records come from upstream generators and can be anything: the
wrong type, missing fields, out-of-range values, hostile keys, cyclic
graphs. The normalizer sanitizes every value, pins the caller's host / user /
space overrides, then walks FIELD_CONSTRAINTS and repairs each constrained
field with a fallback. It never raises for bad input; every repair is
recorded as a warning instead.

Entry points:
  normalize_alert(...)                        — synchronous, returns the record
  async def run(input: NormalizeInput) -> NormalizeOutput
"""

from __future__ import annotations

import logging
import math
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from synthalert.config import Settings, get_settings
from synthalert.models.agent_io import NormalizeInput, NormalizeOutput
from synthalert.models.alert import (
    FIELD_CONSTRAINTS,
    OVERRIDE_FIELDS,
    REQUIRED_FIELDS,
    AlertRecord,
    ConstraintKind,
    FieldConstraint,
)
from synthalert.models.timestamps import TimestampConfig
from synthalert.utils.relative_dates import parse_iso_timestamp
from synthalert.utils.sanitize import sanitize_value
from synthalert.utils.timestamps import RandomSource, format_timestamp, generate_timestamp

logger = logging.getLogger(__name__)

_MISSING = object()


@dataclass
class _Context:
    settings: Settings
    timestamp_config: TimestampConfig
    now: Optional[datetime]
    rng: Optional[RandomSource]
    warnings: list[str]


# ---------------------------------------------------------------------------
# Input handling
# ---------------------------------------------------------------------------

def _sanitize_input(raw_alert: Any, warnings: list[str]) -> AlertRecord:
    if not isinstance(raw_alert, Mapping):
        if raw_alert is not None:
            warnings.append(
                f"Input is a {type(raw_alert).__name__}, not a mapping; treating as empty alert"
            )
        return {}

    try:
        cleaned = sanitize_value(raw_alert)
    except Exception as e:  # hostile mappings can raise from any dunder
        warnings.append(f"Input could not be inspected ({type(e).__name__}); treating as empty alert")
        return {}

    if not isinstance(cleaned, dict):
        warnings.append("Input could not be inspected; treating as empty alert")
        return {}
    return cleaned


def _apply_overrides(record: AlertRecord, host_name: str, user_name: str, space_id: str, warnings: list[str]) -> None:
    expected: dict[str, Any] = {
        "host.name": host_name,
        "user.name": user_name,
        "kibana.space_ids": [space_id],
    }
    for path in OVERRIDE_FIELDS:
        previous = record.get(path, _MISSING)
        if previous is not _MISSING and previous != expected[path]:
            warnings.append(f"'{path}' replaced by caller override")
        record[path] = expected[path]


# ---------------------------------------------------------------------------
# Constraint appliers, one per ConstraintKind
# ---------------------------------------------------------------------------

def _fallback(rule: FieldConstraint, ctx: _Context) -> Any:
    return getattr(ctx.settings, rule.default_setting) if rule.default_setting else None


def _apply_required(record: AlertRecord, path: str, rule: FieldConstraint, ctx: _Context) -> None:
    value = record.get(path, _MISSING)
    if isinstance(value, str) and value.strip():
        return
    if value is not _MISSING:
        ctx.warnings.append(f"'{path}' was empty or not a string; generated a new identifier")
    record[path] = str(uuid.uuid4())


def _apply_timestamp(record: AlertRecord, path: str, rule: FieldConstraint, ctx: _Context) -> None:
    value = record.get(path, _MISSING)
    if value is _MISSING and not rule.required:
        return

    parsed = parse_iso_timestamp(value)
    if parsed is not None:
        try:
            canonical = format_timestamp(parsed)
        except (OverflowError, ValueError):
            canonical = None
        if canonical is not None:
            if canonical != value:
                ctx.warnings.append(f"'{path}' value {value!r:.60} rewritten as {canonical}")
                record[path] = canonical
            return

    if value is not _MISSING:
        ctx.warnings.append(f"'{path}' value {value!r:.60} is not ISO-8601; regenerated")
    record[path] = generate_timestamp(ctx.timestamp_config, now=ctx.now, rng=ctx.rng)


def _apply_enum(record: AlertRecord, path: str, rule: FieldConstraint, ctx: _Context) -> None:
    value = record.get(path, _MISSING)
    if value is _MISSING and not rule.required:
        return
    if isinstance(value, str) and value in rule.allowed_values:
        return
    fallback = _fallback(rule, ctx)
    if value is not _MISSING:
        ctx.warnings.append(f"'{path}' value {value!r:.60} not allowed; defaulting to '{fallback}'")
    record[path] = fallback


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and not (
        isinstance(value, float) and math.isnan(value)
    )


def _apply_range(record: AlertRecord, path: str, rule: FieldConstraint, ctx: _Context) -> None:
    value = record.get(path, _MISSING)
    if value is _MISSING and not rule.required:
        return
    if not _is_number(value):
        fallback = _fallback(rule, ctx)
        if value is not _MISSING:
            ctx.warnings.append(f"'{path}' value {value!r:.60} is not numeric; defaulting to {fallback}")
        record[path] = fallback
        return

    cast = int if isinstance(value, int) else float
    if rule.minimum is not None and value < rule.minimum:
        ctx.warnings.append(f"'{path}' value {value} below {rule.minimum:g}; clamped")
        record[path] = cast(rule.minimum)
    elif rule.maximum is not None and value > rule.maximum:
        ctx.warnings.append(f"'{path}' value {value} above {rule.maximum:g}; clamped")
        record[path] = cast(rule.maximum)


def _apply_string_array(record: AlertRecord, path: str, rule: FieldConstraint, ctx: _Context) -> None:
    value = record.get(path, _MISSING)
    if value is _MISSING:
        return
    if isinstance(value, str):
        record[path] = [value]
    elif isinstance(value, list):
        strings = [item for item in value if isinstance(item, str)]
        if len(strings) != len(value):
            ctx.warnings.append(f"'{path}' dropped {len(value) - len(strings)} non-string element(s)")
        record[path] = strings
    else:
        ctx.warnings.append(f"'{path}' is a {type(value).__name__}, not a string array; removed")
        del record[path]


_APPLIERS: dict[ConstraintKind, Callable[[AlertRecord, str, FieldConstraint, _Context], None]] = {
    ConstraintKind.REQUIRED: _apply_required,
    ConstraintKind.TIMESTAMP: _apply_timestamp,
    ConstraintKind.ENUM: _apply_enum,
    ConstraintKind.RANGE: _apply_range,
    ConstraintKind.STRING_ARRAY: _apply_string_array,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def has_required_fields(record: Any) -> bool:
    """True when *record* carries every required field with a non-empty value."""
    if not isinstance(record, Mapping):
        return False
    for path in REQUIRED_FIELDS:
        value = record.get(path)
        if value is None or value == "" or value == []:
            return False
    return True


def normalize_alert(
    raw_alert: Any,
    host_name: str,
    user_name: str,
    space_id: str,
    timestamp_config: Any = None,
    *,
    now: Optional[datetime] = None,
    rng: Optional[RandomSource] = None,
    warnings: Optional[list[str]] = None,
) -> AlertRecord:
    """Sanitize and repair a candidate alert into a fresh AlertRecord.

    Args:
        raw_alert: Untrusted candidate record. Non-mappings are treated as {}.
        host_name: Trusted override for host.name.
        user_name: Trusted override for user.name.
        space_id: Trusted override; kibana.space_ids becomes [space_id].
        timestamp_config: TimestampConfig or dict used to generate missing or
            invalid timestamp fields. None means "current instant".
        now: Reference instant for timestamp generation (tests).
        rng: Random source for timestamp generation (tests).
        warnings: Optional list that receives one message per repair.

    Returns:
        A new dict; raw_alert is never mutated. Never raises for bad input.
    """
    if warnings is None:
        warnings = []

    record = _sanitize_input(raw_alert, warnings)
    _apply_overrides(record, host_name, user_name, space_id, warnings)

    ctx = _Context(
        settings=get_settings(),
        timestamp_config=TimestampConfig.coerce(timestamp_config),
        now=now,
        rng=rng,
        warnings=warnings,
    )
    for path, rule in FIELD_CONSTRAINTS.items():
        _APPLIERS[rule.kind](record, path, rule, ctx)

    return record


async def run(input: NormalizeInput) -> NormalizeOutput:
    """Normalize an untrusted candidate record into an AlertRecord.

    Args:
        input: NormalizeInput with the raw candidate, overrides, and optional
            timestamp configuration.

    Returns:
        NormalizeOutput with the record and any normalization_warnings.
        Never raises for malformed candidates.
    """
    warnings: list[str] = []

    logger.info(
        "normalize_agent.start",
        extra={"host_name": input.host_name, "input_type": type(input.raw_alert).__name__},
    )

    alert = normalize_alert(
        input.raw_alert,
        input.host_name,
        input.user_name,
        input.space_id,
        input.timestamp_config,
        warnings=warnings,
    )

    if warnings:
        logger.warning("normalize_agent.warnings", extra={"count": len(warnings), "warnings": warnings})

    logger.info(
        "normalize_agent.complete",
        extra={"alert_uuid": alert["kibana.alert.uuid"], "fields": len(alert), "warnings": len(warnings)},
    )
    return NormalizeOutput(alert=alert, normalization_warnings=warnings)
