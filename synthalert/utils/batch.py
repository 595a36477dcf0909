"""
Batch shape repair — coerce a generator's response into exactly N alert dicts.
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)


def repair_batch(value: Any, expected_size: Any) -> list[dict[str, Any]]:
    """Return a list of exactly *expected_size* dicts built from *value*.

    A non-list value is treated as a one-element batch. Elements that are not
    dicts become {}; short batches are padded with {}, long ones truncated
    keeping the original order. Dict elements are passed through as-is.
    """
    try:
        size = max(0, int(expected_size))
    except (TypeError, ValueError, OverflowError):
        logger.warning("batch.invalid_expected_size", extra={"expected_size": repr(expected_size)})
        size = 0
    if size == 0:
        return []

    items = list(value) if isinstance(value, (list, tuple)) else [value]
    received = len(items)

    repaired: list[dict[str, Any]] = [item if isinstance(item, dict) else {} for item in items[:size]]
    repaired.extend({} for _ in range(size - len(repaired)))

    empty = sum(1 for item in repaired if not item)
    if empty:
        logger.warning(
            "batch.empty_alerts",
            extra={"empty": empty, "expected": size, "received": received},
        )
    if received > size:
        logger.warning("batch.truncated", extra={"expected": size, "received": received})
    return repaired
