"""
Alert models — the normalized alert record and its field constraints.

An alert record is a plain ordered dict keyed by dotted ECS / Kibana field
paths. Only a handful of fields carry semantic rules; those rules live in
FIELD_CONSTRAINTS as data, and the normalizer applies them generically.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

AlertRecord = dict[str, Any]


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ConstraintKind(str, Enum):
    REQUIRED = "required"          # must be present and non-empty; generated if not
    ENUM = "enum"                  # value must be one of allowed_values
    RANGE = "range"                # numeric, clamped into [minimum, maximum]
    TIMESTAMP = "timestamp"        # ISO-8601 string
    STRING_ARRAY = "string_array"  # list of strings, passed through


class FieldConstraint(BaseModel):
    """A declarative rule for a single dotted field path."""

    model_config = ConfigDict(frozen=True)

    kind: ConstraintKind
    required: bool = False
    allowed_values: tuple[str, ...] = ()
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    default_setting: Optional[str] = None   # Settings attribute holding the fallback value


# Fields whose values always come from the caller, never from input.
OVERRIDE_FIELDS: tuple[str, ...] = ("host.name", "user.name", "kibana.space_ids")

FIELD_CONSTRAINTS: dict[str, FieldConstraint] = {
    "kibana.alert.uuid": FieldConstraint(kind=ConstraintKind.REQUIRED, required=True),
    "@timestamp": FieldConstraint(kind=ConstraintKind.TIMESTAMP, required=True),
    "kibana.alert.start": FieldConstraint(kind=ConstraintKind.TIMESTAMP),
    "kibana.alert.last_detected": FieldConstraint(kind=ConstraintKind.TIMESTAMP),
    "kibana.alert.original_time": FieldConstraint(kind=ConstraintKind.TIMESTAMP),
    "kibana.alert.severity": FieldConstraint(
        kind=ConstraintKind.ENUM,
        required=True,
        allowed_values=tuple(s.value for s in Severity),
        default_setting="default_severity",
    ),
    "kibana.alert.risk_score": FieldConstraint(
        kind=ConstraintKind.RANGE,
        required=True,
        minimum=0,
        maximum=100,
        default_setting="default_risk_score",
    ),
    "kibana.alert.rule.tags": FieldConstraint(kind=ConstraintKind.STRING_ARRAY),
    "event.category": FieldConstraint(kind=ConstraintKind.STRING_ARRAY),
    "event.type": FieldConstraint(kind=ConstraintKind.STRING_ARRAY),
}

# Every field a normalized record is guaranteed to carry.
REQUIRED_FIELDS: tuple[str, ...] = OVERRIDE_FIELDS + tuple(
    path for path, rule in FIELD_CONSTRAINTS.items() if rule.required
)
