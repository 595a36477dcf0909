"""
Timestamp models — generation config and resolved time ranges.

TimestampConfig accepts both snake_case and the camelCase keys produced by
upstream generators (startDate, endDate, eventDateOffsetHours). It is
deliberately lenient: an unknown pattern name becomes uniform rather than a
validation error, because timestamp generation must never fail the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


class TimestampPattern(str, Enum):
    UNIFORM = "uniform"
    RANDOM = "random"                        # alias of uniform
    BUSINESS_HOURS = "business_hours"
    ATTACK_SIMULATION = "attack_simulation"
    WEEKEND_HEAVY = "weekend_heavy"


class TimestampConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    start_date: Optional[Union[datetime, str]] = Field(default=None, alias="startDate")
    end_date: Optional[Union[datetime, str]] = Field(default=None, alias="endDate")
    pattern: TimestampPattern = TimestampPattern.UNIFORM
    event_date_offset_hours: Optional[float] = Field(default=None, alias="eventDateOffsetHours")

    @field_validator("pattern", mode="before")
    @classmethod
    def _lenient_pattern(cls, value: Any) -> Any:
        if value is None:
            return TimestampPattern.UNIFORM
        if isinstance(value, TimestampPattern):
            return value
        if isinstance(value, str) and value in TimestampPattern._value2member_map_:
            return value
        logger.warning("timestamp_config.unknown_pattern", extra={"pattern": repr(value)})
        return TimestampPattern.UNIFORM

    @property
    def is_empty(self) -> bool:
        """True when no field was supplied; an empty config means "the current instant".

        A config naming only a pattern is not empty: it draws from the default
        window (Settings.default_start_date up to now).
        """
        return not self.model_fields_set

    @classmethod
    def coerce(cls, value: Any) -> TimestampConfig:
        """Build a config from None, a dict, or an existing config; never raises."""
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            try:
                return cls.model_validate(dict(value))
            except ValidationError as e:
                logger.warning(
                    "timestamp_config.invalid",
                    extra={"error_count": e.error_count()},
                )
        elif value is not None:
            logger.warning("timestamp_config.unsupported_type", extra={"type": type(value).__name__})
        return cls()


class TimeRange(BaseModel):
    """A resolved pair of instants. None on either side marks an invalid bound."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @property
    def is_valid(self) -> bool:
        return self.start is not None and self.end is not None
