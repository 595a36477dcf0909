"""
Jinja2 template loader for generation prompts.

All prompts live in prompts/ as .jinja2 files, not in Python strings.
build_generation_prompts() renders the system/user pair that asks an upstream
generator for a batch of candidate alerts; the constrained fields it lists
come straight from FIELD_CONSTRAINTS so the prompt never drifts from what the
normalizer enforces.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from synthalert.models.alert import FIELD_CONSTRAINTS, OVERRIDE_FIELDS, ConstraintKind

# Resolve prompts/ relative to this file: synthalert/utils/prompts.py → prompts/
_PROMPTS_DIR = Path(__file__).parent.parent.parent / "prompts"

_env = Environment(
    loader=FileSystemLoader(str(_PROMPTS_DIR)),
    undefined=StrictUndefined,   # missing variables raise instead of rendering empty
    trim_blocks=True,            # strip newline after block tags
    lstrip_blocks=True,          # strip leading whitespace before block tags
)


def render_template(name: str, **kwargs: object) -> str:
    """Render a Jinja2 template from the prompts/ directory.

    Raises:
        jinja2.TemplateNotFound: If the template file doesn't exist.
        jinja2.UndefinedError: If the template references a variable not in kwargs.
    """
    template = _env.get_template(name)
    return template.render(**kwargs)


def _describe_constraints() -> list[dict[str, str]]:
    rows: list[dict[str, str]] = []
    for path, rule in FIELD_CONSTRAINTS.items():
        if rule.kind == ConstraintKind.ENUM:
            detail = "one of " + ", ".join(rule.allowed_values)
        elif rule.kind == ConstraintKind.RANGE:
            detail = f"number between {rule.minimum:g} and {rule.maximum:g}"
        elif rule.kind == ConstraintKind.TIMESTAMP:
            detail = "ISO-8601 timestamp, e.g. 2024-01-15T10:30:00.000Z"
        elif rule.kind == ConstraintKind.STRING_ARRAY:
            detail = "array of strings"
        else:
            detail = "non-empty string"
        rows.append({"path": path, "detail": detail, "required": "yes" if rule.required else "no"})
    return rows


def build_generation_prompts(
    count: int,
    host_name: str,
    user_name: str,
    space_id: str,
    scenario: Optional[str] = None,
) -> tuple[str, str]:
    """Render the (system, user) prompt pair for a batch of *count* alerts."""
    if count < 1:
        raise ValueError(f"count must be at least 1, got {count}")

    system_prompt = render_template(
        "generate_alerts_system.jinja2",
        constraints=_describe_constraints(),
        override_fields=OVERRIDE_FIELDS,
    )
    user_prompt = render_template(
        "generate_alerts_user.jinja2",
        count=count,
        host_name=host_name,
        user_name=user_name,
        space_id=space_id,
        scenario=scenario,
    )
    return system_prompt, user_prompt
