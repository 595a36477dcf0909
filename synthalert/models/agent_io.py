"""
Agent I/O contracts — typed inputs and outputs for the normalize agent.

Import hierarchy (no circular dependencies):
  alert.py          <- no internal imports
  timestamps.py     <- no internal imports
  agent_io.py       <- alert.py, timestamps.py
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from synthalert.models.alert import AlertRecord
from synthalert.models.timestamps import TimestampConfig


# ---------------------------------------------------------------------------
# NormalizeAgent: untrusted candidate record → sanitized AlertRecord
# ---------------------------------------------------------------------------

class NormalizeInput(BaseModel):
    raw_alert: Any = None                       # untrusted; any shape, may be cyclic
    host_name: str
    user_name: str
    space_id: str = "default"
    timestamp_config: Optional[TimestampConfig] = None


class NormalizeOutput(BaseModel):
    alert: AlertRecord
    normalization_warnings: list[str] = Field(default_factory=list)
