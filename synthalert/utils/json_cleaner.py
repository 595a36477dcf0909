"""
JSON response cleaner — recover parseable JSON text from noisy model output.

Upstream text generators wrap JSON in prose, code fences and comments, and
leave trailing commas behind. clean_json_response() pulls out the first
balanced object or array and scrubs it; extract_json_objects() collects every
top-level object that parses. Neither raises.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

logger = logging.getLogger(__name__)

EMPTY_OBJECT = "{}"

_CODE_FENCE = re.compile(r"```[A-Za-z0-9_+-]*")
_STRUCTURAL_WHITESPACE = frozenset("\t\n\r")
_OPENERS = {"{": "}", "[": "]"}


def _find_region_end(text: str, start: int) -> Optional[int]:
    """Index of the bracket closing the one at *start*, or None if unbalanced.

    String literals and comments are skipped, so brackets inside them don't
    count.
    """
    stack: list[str] = []
    in_string = False
    escaped = False
    i = start
    n = len(text)
    while i < n:
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == "/" and text.startswith("//", i):
            newline = text.find("\n", i)
            if newline == -1:
                return None
            i = newline
        elif ch == "/" and text.startswith("/*", i):
            close = text.find("*/", i + 2)
            if close == -1:
                return None
            i = close + 1
        elif ch in _OPENERS:
            stack.append(_OPENERS[ch])
        elif ch in ("}", "]"):
            if not stack or stack.pop() != ch:
                return None
            if not stack:
                return i
        i += 1
    return None


def _iter_regions(text: str, openers: str = "{["):
    """Yield (start, end) for successive balanced regions in *text*."""
    i = 0
    n = len(text)
    while i < n:
        if text[i] in openers:
            end = _find_region_end(text, i)
            if end is not None:
                yield i, end
                i = end + 1
                continue
        i += 1


def _scrub_region(region: str) -> str:
    """Drop comments, trailing commas and stray control characters."""
    out: list[str] = []
    in_string = False
    escaped = False
    i = 0
    n = len(region)
    while i < n:
        ch = region[i]
        if in_string:
            if ord(ch) < 0x20:
                i += 1
                continue
            out.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
            out.append(ch)
        elif ch == "/" and region.startswith("//", i):
            newline = region.find("\n", i)
            i = n if newline == -1 else newline
            continue
        elif ch == "/" and region.startswith("/*", i):
            close = region.find("*/", i + 2)
            i = n if close == -1 else close + 2
            continue
        elif ch in ("}", "]"):
            k = len(out) - 1
            while k >= 0 and out[k].isspace():
                k -= 1
            if k >= 0 and out[k] == ",":
                del out[k]
            out.append(ch)
        elif ord(ch) < 0x20 and ch not in _STRUCTURAL_WHITESPACE:
            pass
        else:
            out.append(ch)
        i += 1
    return "".join(out)


def clean_json_response(text: Any) -> str:
    """Return the first balanced JSON object or array found in *text*, cleaned.

    Returns "{}" for empty input or when no balanced region exists. The
    result is best-effort: it is not guaranteed to parse.
    """
    if not isinstance(text, str) or not text.strip():
        return EMPTY_OBJECT

    unfenced = _CODE_FENCE.sub("", text)
    for start, end in _iter_regions(unfenced):
        return _scrub_region(unfenced[start : end + 1])

    logger.warning("json_cleaner.no_region_found", extra={"length": len(text)})
    return EMPTY_OBJECT


def extract_json_objects(text: Any) -> list[dict[str, Any]]:
    """Parse every top-level balanced {...} region in *text* into a dict.

    Regions that still fail to parse after cleaning are skipped.
    """
    if not isinstance(text, str) or not text.strip():
        return []

    unfenced = _CODE_FENCE.sub("", text)
    objects: list[dict[str, Any]] = []
    skipped = 0
    for start, end in _iter_regions(unfenced, openers="{"):
        try:
            parsed = json.loads(_scrub_region(unfenced[start : end + 1]))
        except (json.JSONDecodeError, RecursionError):
            skipped += 1
            continue
        if isinstance(parsed, dict):
            objects.append(parsed)

    if skipped:
        logger.warning("json_cleaner.unparseable_objects", extra={"skipped": skipped, "parsed": len(objects)})
    return objects
