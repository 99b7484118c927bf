"""Fill script synthesis.

Renders app/templates/fill_script.js for one consumed token. The template
is a string.Template with one slot per embedded value; every value is JSON
encoded and made safe to sit inside a script body.

Slots:
    $project_data   ProjectSnapshot (camelCase keys)
    $requirements   declared fields with resolved values
    $rules          ordered heuristic rules with resolved values
    $usage_info     usageCount / maxUsage / remainingUsage
    $submission_url POST /bookmarklet/submissions
    $token, $project_id, $link_id
"""

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from string import Template
from typing import Any

from app.schemas.bookmarklet import ProjectSnapshot, RequirementField
from app.services.field_matcher import DeclaredField
from app.services.field_rules import (
    ResolvedRule,
    resolve_declared_value,
    resolve_rules,
)

_TEMPLATE_PATH = (
    Path(__file__).resolve().parent.parent / "templates" / "fill_script.js"
)

# Sequences that would end a <script> element or break a JS string literal
_UNSAFE_SEQUENCES = {
    "</": "<\\/",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


@dataclass(frozen=True)
class UsageInfo:
    """Token counters embedded in the script for display."""

    usage_count: int
    max_usage: int

    @property
    def remaining_usage(self) -> int:
        return max(self.max_usage - self.usage_count, 0)

    def to_json(self) -> dict[str, int]:
        return {
            "usageCount": self.usage_count,
            "maxUsage": self.max_usage,
            "remainingUsage": self.remaining_usage,
        }


@lru_cache(maxsize=1)
def load_template() -> Template:
    """Read the fill script template once per process."""
    return Template(_TEMPLATE_PATH.read_text(encoding="utf-8"))


def embed_json(value: Any) -> str:
    """JSON-encode a value for inline embedding in JavaScript.

    Args:
        value: JSON-serializable value.

    Returns:
        A JavaScript expression evaluating to the value.
    """
    encoded = json.dumps(value, ensure_ascii=False, separators=(", ", ": "))
    for sequence, replacement in _UNSAFE_SEQUENCES.items():
        encoded = encoded.replace(sequence, replacement)
    return encoded


def resolve_requirements(
    requirements: list[RequirementField],
    snapshot: ProjectSnapshot,
) -> list[DeclaredField]:
    """Resolve each declared field name to a value from the snapshot."""
    declared = []
    for requirement in requirements:
        key, value = resolve_declared_value(requirement.name, snapshot)
        declared.append(DeclaredField(name=requirement.name, key=key, value=value))
    return declared


def render_fill_script(
    *,
    snapshot: ProjectSnapshot,
    declared: list[DeclaredField],
    rules: tuple[ResolvedRule, ...] | None = None,
    usage: UsageInfo,
    submission_url: str,
    token: str,
    project_id: str,
    link_id: str,
) -> str:
    """Render the self-contained fill script.

    Args:
        snapshot: Project data to embed.
        declared: Requirement set with resolved values.
        rules: Resolved heuristic rules; resolved from snapshot when None.
        usage: Counters after this delivery.
        submission_url: Absolute URL the script reports to.
        token: Token the script reports with.
        project_id: Bound project id.
        link_id: Bound link id.

    Returns:
        JavaScript source.
    """
    if rules is None:
        rules = resolve_rules(snapshot)

    return load_template().substitute(
        project_data=embed_json(snapshot.model_dump(mode="json", by_alias=True)),
        requirements=embed_json(
            [{"name": d.name, "key": d.key, "value": d.value} for d in declared]
        ),
        rules=embed_json(
            [{"key": r.key, "pattern": r.pattern, "value": r.value} for r in rules]
        ),
        usage_info=embed_json(usage.to_json()),
        submission_url=embed_json(submission_url),
        token=embed_json(token),
        project_id=embed_json(project_id),
        link_id=embed_json(link_id),
    )
