"""Two-phase form field matcher.

Python mirror of the matching loop inside the delivered fill script
(app/templates/fill_script.js). Used by the preview endpoint and by tests;
both sides read the same requirement values and the same ResolvedRule list.

Phases:
1. Declared: each directory requirement fills the first control whose name
   attribute equals the declared name, if that control is empty. Hidden,
   button-like, file, checkbox and radio inputs are never targets. A select
   is filled only when one of its options matches the value.
2. Heuristic: runs only when phase 1 filled nothing. Every empty text-like
   input or textarea is tested against the ordered rules; the first
   matching rule fills it.

A control that already holds a value is never overwritten.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from app.services.field_rules import ResolvedRule

# Input types the heuristic phase will type into
TEXT_INPUT_TYPES = frozenset({"", "text", "email", "url", "tel", "search", "number"})

# Controls the declared phase may target
DECLARED_TAGS = frozenset({"input", "textarea", "select"})

# Input types that never hold user-entered text
SKIPPED_INPUT_TYPES = frozenset(
    {"hidden", "button", "submit", "reset", "image", "file", "checkbox", "radio"}
)

# Events dispatched on every filled control, in order
FILL_EVENTS = ("input", "change")

PHASE_DECLARED = "declared"
PHASE_HEURISTIC = "heuristic"
PHASE_NONE = "none"

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class SelectOption:
    """An option of a select control (value as element.value reports it)."""

    value: str
    text: str = ""

    @property
    def label(self) -> str:
        return _WHITESPACE.sub(" ", self.text).strip().lower()


@dataclass(frozen=True)
class FormControl:
    """A form control as seen by the matcher.

    Attributes:
        tag: Lowercase element name (input, textarea, select).
        type: Lowercase input type; "" for textarea/select or no attribute.
        name: name attribute.
        id: id attribute.
        placeholder: placeholder attribute.
        value: Current value.
        options: Options of a select, in document order.
    """

    tag: str
    type: str = ""
    name: str = ""
    id: str = ""
    placeholder: str = ""
    value: str = ""
    options: tuple[SelectOption, ...] = ()

    @property
    def composite(self) -> str:
        """The "name id placeholder" text the rules are tested against."""
        return f"{self.name} {self.id} {self.placeholder}".lower()

    @property
    def is_empty(self) -> bool:
        return not self.value.strip()

    @property
    def is_text_like(self) -> bool:
        if self.tag == "textarea":
            return True
        return self.tag == "input" and self.type in TEXT_INPUT_TYPES

    @property
    def is_declared_target(self) -> bool:
        if self.tag == "input":
            return self.type not in SKIPPED_INPUT_TYPES
        return self.tag in DECLARED_TAGS


def match_option(options: Sequence[SelectOption], value: str) -> SelectOption | None:
    """Pick the option a declared value selects.

    Tries, case-insensitively: option value, exact label, then a label
    containing the value.

    Args:
        options: Options of a select control.
        value: Declared value.

    Returns:
        The matching option, or None when the select has no such choice.
    """
    wanted = value.strip().lower()
    if not wanted:
        return None
    for option in options:
        if option.value.strip().lower() == wanted:
            return option
    for option in options:
        if option.label == wanted:
            return option
    for option in options:
        if wanted in option.label:
            return option
    return None


@dataclass(frozen=True)
class DeclaredField:
    """A requirement-set entry with its value already resolved."""

    name: str
    key: str
    value: str


@dataclass(frozen=True)
class FieldFill:
    """One value assignment the matcher decided on."""

    phase: str
    key: str
    control: FormControl
    value: str
    events: tuple[str, ...] = FILL_EVENTS


@dataclass(frozen=True)
class FillPlan:
    """Outcome of a matcher run.

    Attributes:
        phase: Phase that produced the fills, or "none".
        fills: Assignments in document order of discovery.
        unmatched: Declared names with no empty control or no value.
    """

    phase: str
    fills: tuple[FieldFill, ...] = ()
    unmatched: tuple[str, ...] = field(default_factory=tuple)

    @property
    def filled_count(self) -> int:
        return len(self.fills)


def _declared_phase(
    controls: Sequence[FormControl],
    declared: Sequence[DeclaredField],
) -> tuple[list[FieldFill], list[str]]:
    fills: list[FieldFill] = []
    unmatched: list[str] = []
    used: set[int] = set()

    for requirement in declared:
        index = next(
            (
                i
                for i, control in enumerate(controls)
                if control.is_declared_target and control.name == requirement.name
            ),
            None,
        )
        if index is None or index in used or not requirement.value:
            unmatched.append(requirement.name)
            continue
        control = controls[index]
        if not control.is_empty:
            unmatched.append(requirement.name)
            continue
        value = requirement.value
        if control.tag == "select":
            option = match_option(control.options, value)
            if option is None:
                unmatched.append(requirement.name)
                continue
            value = option.value
        used.add(index)
        fills.append(FieldFill(PHASE_DECLARED, requirement.key, control, value))
    return fills, unmatched


def _heuristic_phase(
    controls: Sequence[FormControl],
    rules: Sequence[ResolvedRule],
) -> list[FieldFill]:
    fills: list[FieldFill] = []
    for control in controls:
        if not control.is_text_like or not control.is_empty:
            continue
        composite = control.composite
        if not composite.strip():
            continue
        for rule in rules:
            if rule.value and rule.matches(composite):
                fills.append(FieldFill(PHASE_HEURISTIC, rule.key, control, rule.value))
                break
    return fills


def match_form_controls(
    controls: Sequence[FormControl],
    declared: Sequence[DeclaredField],
    rules: Sequence[ResolvedRule],
) -> FillPlan:
    """Decide which controls to fill and with what.

    Args:
        controls: Form controls in document order.
        declared: Directory requirement set with resolved values.
        rules: Ordered rules from field_rules.resolve_rules().

    Returns:
        FillPlan describing the fills. Controls are not mutated.
    """
    fills, unmatched = _declared_phase(controls, declared)
    if fills:
        return FillPlan(PHASE_DECLARED, tuple(fills), tuple(unmatched))

    fills = _heuristic_phase(controls, rules)
    if fills:
        return FillPlan(PHASE_HEURISTIC, tuple(fills), tuple(unmatched))
    return FillPlan(PHASE_NONE, (), tuple(unmatched))
