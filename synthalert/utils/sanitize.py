"""
Field sanitizer — strip dangerous content out of untrusted alert values.

Best-effort defensive normalization for synthetic data, not an HTML
sanitizer: a fixed set of script-like constructs is removed, remaining angle
brackets are escaped, and a fixed denylist of key names is dropped from every
mapping. Cyclic graphs are broken with a marker string and very deep nesting
is cut off, so the recursion always terminates. Containers referenced from
several places are sanitized once per depth and the result is reused, so
shared-reference graphs cost time linear in their size.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any, Optional

from synthalert.config import get_settings

logger = logging.getLogger(__name__)

FORBIDDEN_KEYS: frozenset[str] = frozenset(
    {"__proto__", "constructor", "prototype", "eval", "function", "script"}
)

# Segments that reach an object prototype when a consumer expands dotted keys
# into nested objects; forbidden anywhere in a dotted path.
PROTOTYPE_SEGMENTS: frozenset[str] = frozenset({"__proto__", "constructor", "prototype"})

CIRCULAR_MARKER = "[Circular]"
TRUNCATED_MARKER = "[Truncated]"

# C0 controls and DEL, keeping \t \n \r
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_ALL_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")

# Bounded quantifiers throughout to keep matching linear
_DANGEROUS_PATTERNS = [
    re.compile(r"<\s*(script|iframe)\b[^>]{0,1000}>.*?<\s*/\s*\1\s*>", re.IGNORECASE | re.DOTALL),
    re.compile(r"<\s*/?\s*(script|iframe)\b[^>]{0,1000}>?", re.IGNORECASE),
    re.compile(r"\b(javascript|vbscript)\s*:", re.IGNORECASE),
    re.compile(r"\bon[a-z]{1,30}\s*=", re.IGNORECASE),
]

_ENTITIES = ("&lt;", "&gt;")


def is_forbidden_key(key: str) -> bool:
    """True when *key* is on the denylist.

    The whole key is matched against FORBIDDEN_KEYS; dotted segments are only
    matched against PROTOTYPE_SEGMENTS, so "process.function" survives while
    "a.__proto__.b" does not.
    """
    lowered = key.strip().lower()
    if lowered in FORBIDDEN_KEYS:
        return True
    return any(segment.strip() in PROTOTYPE_SEGMENTS for segment in lowered.split("."))


def _truncate(text: str, max_length: int) -> str:
    cut = max_length
    # Never leave half of an escaped bracket at the end
    amp = text.rfind("&", max(0, cut - 3), cut)
    if amp != -1 and text.startswith(_ENTITIES, amp) and amp + 4 > cut:
        cut = amp
    return text[:cut]


def sanitize_string(value: str, max_length: Optional[int] = None) -> str:
    if max_length is None:
        max_length = get_settings().max_string_length

    text = _CONTROL_CHARS.sub("", value)
    # Repeat until stable so split constructs ("<scr<script>ipt>") can't reassemble
    previous = None
    while previous != text:
        previous = text
        for pattern in _DANGEROUS_PATTERNS:
            text = pattern.sub("", text)
    text = text.replace("<", "&lt;").replace(">", "&gt;")
    text = text.strip()

    if len(text) > max_length:
        logger.debug("sanitize.truncated", extra={"length": len(text), "max_length": max_length})
        text = _truncate(text, max_length)
    return text


def _sanitize_key(key: Any) -> str:
    return _ALL_CONTROL_CHARS.sub("", key if isinstance(key, str) else str(key))


class _Walker:
    """One sanitization pass over a value graph.

    `path` holds the ids of containers on the current recursion path (cycle
    detection). `memo` maps (id, depth) to the finished result for containers
    whose subtree met no cycle; such a result depends only on the container
    and its depth, so it is reused when the container shows up again.
    """

    def __init__(self, max_depth: int, max_length: int):
        self.max_depth = max_depth
        self.max_length = max_length
        self.path: set[int] = set()
        self.memo: dict[tuple[int, int], tuple[Any, Any]] = {}
        self.cycles = 0

    def walk(self, value: Any, depth: int = 0) -> Any:
        if value is None or isinstance(value, (bool, int, float)):
            return value
        if isinstance(value, str):
            return sanitize_string(value, self.max_length)
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if isinstance(value, (Mapping, list, tuple, set, frozenset)):
            return self._walk_container(value, depth)

        try:
            rendered = str(value)
        except Exception as e:  # foreign objects can raise anything from __str__
            logger.debug("sanitize.unrenderable", extra={"type": type(value).__name__, "error": str(e)})
            return None
        return sanitize_string(rendered, self.max_length)

    def _walk_container(self, value: Any, depth: int) -> Any:
        marker = id(value)
        if marker in self.path:
            logger.debug("sanitize.cycle_broken", extra={"depth": depth})
            self.cycles += 1
            return CIRCULAR_MARKER
        if depth >= self.max_depth:
            logger.debug("sanitize.depth_exceeded", extra={"depth": depth})
            return TRUNCATED_MARKER

        cached = self.memo.get((marker, depth))
        # The memo keeps the source object alive, so its id can't be reused
        if cached is not None and cached[0] is value:
            return cached[1]

        cycles_before = self.cycles
        self.path.add(marker)
        try:
            if isinstance(value, Mapping):
                cleaned: Any = {}
                for raw_key, item in value.items():
                    key = _sanitize_key(raw_key)
                    if is_forbidden_key(key):
                        logger.debug("sanitize.forbidden_key_dropped", extra={"key": key[:64]})
                        continue
                    cleaned[key] = self.walk(item, depth + 1)
            else:
                cleaned = [self.walk(item, depth + 1) for item in value]
        except Exception as e:  # hostile containers can raise from items() / __iter__
            logger.debug("sanitize.uninspectable", extra={"type": type(value).__name__, "error": str(e)})
            return None
        finally:
            self.path.discard(marker)

        if self.cycles == cycles_before:
            self.memo[(marker, depth)] = (value, cleaned)
        return cleaned


def sanitize_value(value: Any) -> Any:
    """Return a sanitized deep copy of *value*.

    Strings are cleaned and truncated, mappings lose forbidden keys, sequences
    are cleaned element-wise, None / numbers / booleans pass through. The
    input is never mutated. A container referenced several times at the same
    depth maps to one shared output container.
    """
    settings = get_settings()
    return _Walker(settings.max_depth, settings.max_string_length).walk(value)
