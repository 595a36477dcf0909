"""
synthalert configuration.

Nothing is required at startup — every field carries a working default, so
the library runs with no .env file at all. Values can be tuned through
SYNTHALERT_* environment variables or a .env file. Each field is bounded by
a validator so a bad deployment value fails loudly at construction instead of
silently skewing generated data.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_SEVERITIES = ("low", "medium", "high", "critical")

_KNOWN_PATTERNS = frozenset(
    {"uniform", "random", "business_hours", "weekend_heavy", "attack_simulation"}
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SYNTHALERT_",
        case_sensitive=False,
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Sanitizer
    # ------------------------------------------------------------------
    max_string_length: int = Field(default=5000, ge=1)
    max_depth: int = Field(default=32, ge=1, le=256)

    # ------------------------------------------------------------------
    # Normalizer fallbacks
    # ------------------------------------------------------------------
    default_severity: str = "low"
    default_risk_score: int = Field(default=0, ge=0, le=100)

    # ------------------------------------------------------------------
    # Timestamp generation
    # ------------------------------------------------------------------
    default_start_date: str = "24h"   # used when a config names no start date
    business_hours_start: int = Field(default=9, ge=0, le=23)
    business_hours_end: int = Field(default=17, ge=1, le=24)
    pattern_bias: float = Field(default=0.8, ge=0.0, le=1.0)
    max_sampling_attempts: int = Field(default=32, ge=1)
    attack_burst_count: int = Field(default=3, ge=1)
    attack_burst_spread_minutes: float = Field(default=30.0, gt=0.0)

    @field_validator("default_severity")
    @classmethod
    def _check_severity(cls, value: str) -> str:
        if value not in _SEVERITIES:
            raise ValueError(
                f"default_severity must be one of {', '.join(_SEVERITIES)}, got '{value}'"
            )
        return value

    @model_validator(mode="after")
    def _check_business_hours(self) -> "Settings":
        if self.business_hours_start >= self.business_hours_end:
            raise ValueError(
                "business_hours_start must be earlier than business_hours_end "
                f"(got {self.business_hours_start} >= {self.business_hours_end})"
            )
        return self

    def validate_for_pattern(self, pattern: str) -> None:
        """Assert that *pattern* names a known timestamp distribution.

        Generation itself degrades unknown names to uniform; callers that
        would rather fail fast (e.g. when reading a pattern from user input)
        call this first.

        Raises:
            ValueError: If *pattern* is not a recognised pattern name.
        """
        if pattern not in _KNOWN_PATTERNS:
            raise ValueError(
                f"Unknown timestamp pattern '{pattern}'. "
                f"Known patterns: {', '.join(sorted(_KNOWN_PATTERNS))}"
            )


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings singleton.

    In tests, clear the cache with get_settings.cache_clear() after
    patching environment variables, or instantiate Settings() directly
    with _env_file=None to avoid reading the .env file.
    """
    return Settings()
