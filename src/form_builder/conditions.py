from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Collection, Mapping

from .errors import ConditionalReferenceWarning
from .models.document import Page, Project, Section
from .models.field import (
    Condition,
    ConditionalAction,
    ConditionalRule,
    ConditionOperator,
    FormField,
    LogicalOperator,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConditionalEffect:
    visible: bool = True
    # None leaves the field's own required flag in charge.
    required: bool | None = None
    disabled: bool = False
    skip_to_section: str | None = None


DEFAULT_EFFECT = ConditionalEffect()


def is_empty_value(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (list, tuple, set, frozenset, dict)):
        return len(value) == 0
    return False


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(_as_text(item) for item in value)
    return str(value)


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return None if math.isnan(number) else number


def loosely_equal(left: Any, right: Any) -> bool:
    """Form-input equality: same-typed values compare directly, others as text."""
    if type(left) is type(right):
        return left == right
    return _as_text(left) == _as_text(right)


def _contains(left: Any, right: Any) -> bool:
    if isinstance(left, str):
        return _as_text(right) in left
    if isinstance(left, (list, tuple, set, frozenset)):
        return any(loosely_equal(item, right) for item in left)
    return False


def apply_operator(operator: ConditionOperator, left: Any, right: Any) -> bool:
    if operator == ConditionOperator.equals:
        return loosely_equal(left, right)
    if operator == ConditionOperator.not_equals:
        return not loosely_equal(left, right)
    if operator == ConditionOperator.contains:
        return _contains(left, right)
    if operator in (ConditionOperator.greater_than, ConditionOperator.less_than):
        lhs, rhs = _as_number(left), _as_number(right)
        if lhs is None or rhs is None:
            return False
        return lhs > rhs if operator == ConditionOperator.greater_than else lhs < rhs
    if operator == ConditionOperator.is_empty:
        return is_empty_value(left)
    if operator == ConditionOperator.is_not_empty:
        return not is_empty_value(left)
    raise ValueError(f"Unsupported operator: {operator}")


class ConditionalEvaluator:
    """Decides show/hide/require/disable/skip effects from current field values.

    Conditions fold strictly left to right: each condition's trailing
    ``logical_operator`` joins it to the next one, with no precedence between
    AND and OR. When ``known_field_ids`` is given, a condition pointing at an
    id outside it counts as unsatisfied and is recorded in ``warnings``.
    """

    def __init__(self, known_field_ids: Collection[str] | None = None) -> None:
        self._known = frozenset(known_field_ids) if known_field_ids is not None else None
        self.warnings: list[ConditionalReferenceWarning] = []

    @classmethod
    def for_project(cls, project: Project) -> "ConditionalEvaluator":
        return cls(known_field_ids=[item.id for item in project.fields])

    def evaluate(
        self,
        rule: ConditionalRule | None,
        values: Mapping[str, Any],
        *,
        owner_kind: str = "rule",
        owner_id: str = "",
    ) -> ConditionalEffect:
        if rule is None or not rule.enabled or not rule.conditions:
            return DEFAULT_EFFECT
        satisfied = self.evaluate_conditions(rule, values, owner_kind=owner_kind, owner_id=owner_id)
        return _effect_for(rule, satisfied)

    def evaluate_conditions(
        self,
        rule: ConditionalRule,
        values: Mapping[str, Any],
        *,
        owner_kind: str = "rule",
        owner_id: str = "",
    ) -> bool:
        results = [self._evaluate_atom(condition, values, owner_kind, owner_id) for condition in rule.conditions]
        if not results:
            return False
        outcome = results[0]
        for previous, result in zip(rule.conditions, results[1:]):
            if previous.logical_operator == LogicalOperator.or_:
                outcome = outcome or result
            else:
                outcome = outcome and result
        return outcome

    def evaluate_field(self, field: FormField, values: Mapping[str, Any]) -> ConditionalEffect:
        return self.evaluate(field.conditional, values, owner_kind="field", owner_id=field.id)

    def evaluate_section(self, section: Section, values: Mapping[str, Any]) -> ConditionalEffect:
        return self.evaluate(section.conditional, values, owner_kind="section", owner_id=section.id)

    def evaluate_page(self, page: Page, values: Mapping[str, Any]) -> ConditionalEffect:
        return self.evaluate(page.conditional, values, owner_kind="page", owner_id=page.id)

    def _evaluate_atom(
        self,
        condition: Condition,
        values: Mapping[str, Any],
        owner_kind: str,
        owner_id: str,
    ) -> bool:
        if self._known is not None and condition.field_id not in self._known:
            warning = ConditionalReferenceWarning(owner_kind, owner_id, condition.field_id)
            if warning not in self.warnings:
                self.warnings.append(warning)
                logger.warning(
                    "Condition references unknown field",
                    extra={"owner_kind": owner_kind, "owner_id": owner_id, "field_id": condition.field_id},
                )
            return False
        return apply_operator(condition.operator, values.get(condition.field_id), condition.value)


def _effect_for(rule: ConditionalRule, satisfied: bool) -> ConditionalEffect:
    action = rule.action
    if action == ConditionalAction.show:
        return ConditionalEffect(visible=satisfied)
    if action == ConditionalAction.hide:
        return ConditionalEffect(visible=not satisfied)
    if action == ConditionalAction.require:
        return ConditionalEffect(required=satisfied)
    if action == ConditionalAction.disable:
        return ConditionalEffect(disabled=satisfied)
    if action == ConditionalAction.skip_to_section:
        return ConditionalEffect(skip_to_section=rule.target_section_id if satisfied else None)
    raise ValueError(f"Unsupported action: {action}")


@dataclass(frozen=True)
class FieldState:
    field_id: str
    visible: bool
    required: bool
    disabled: bool
    skip_to_section: str | None = None


@dataclass
class VisibilitySnapshot:
    pages: dict[str, ConditionalEffect] = field(default_factory=dict)
    sections: dict[str, ConditionalEffect] = field(default_factory=dict)
    fields: dict[str, FieldState] = field(default_factory=dict)

    def visible_field_ids(self) -> list[str]:
        return [field_id for field_id, state in self.fields.items() if state.visible]

    def is_visible(self, field_id: str) -> bool:
        state = self.fields.get(field_id)
        return state is not None and state.visible


class VisibilityResolver:
    """Applies page, section and field rules together.

    A hidden page hides its sections and a hidden section hides its fields.
    Fields that are not placed anywhere are reported as hidden.
    """

    def __init__(self, project: Project, evaluator: ConditionalEvaluator | None = None) -> None:
        self._project = project
        self._evaluator = evaluator or ConditionalEvaluator.for_project(project)

    @property
    def warnings(self) -> list[ConditionalReferenceWarning]:
        return self._evaluator.warnings

    def snapshot(self, values: Mapping[str, Any]) -> VisibilitySnapshot:
        snapshot = VisibilitySnapshot()
        for page in self._project.ordered_pages():
            page_effect = self._evaluator.evaluate_page(page, values)
            snapshot.pages[page.id] = page_effect
            for section in page.ordered_sections():
                section_effect = self._evaluator.evaluate_section(section, values)
                snapshot.sections[section.id] = section_effect
                section_visible = page_effect.visible and section_effect.visible
                section_disabled = page_effect.disabled or section_effect.disabled
                for field_id in section.fields:
                    snapshot.fields[field_id] = self._field_state(field_id, values, section_visible, section_disabled)
        for orphan_id in self._project.orphaned_field_ids():
            snapshot.fields[orphan_id] = FieldState(orphan_id, visible=False, required=False, disabled=False)
        return snapshot

    def field_states(self, values: Mapping[str, Any]) -> dict[str, FieldState]:
        return self.snapshot(values).fields

    def visible_field_ids(self, values: Mapping[str, Any]) -> list[str]:
        return self.snapshot(values).visible_field_ids()

    def _field_state(
        self,
        field_id: str,
        values: Mapping[str, Any],
        section_visible: bool,
        section_disabled: bool,
    ) -> FieldState:
        form_field = self._project.get_field(field_id)
        effect = self._evaluator.evaluate_field(form_field, values)
        required = form_field.is_required if effect.required is None else effect.required
        return FieldState(
            field_id=field_id,
            visible=section_visible and effect.visible,
            required=required,
            disabled=section_disabled or effect.disabled or form_field.readonly,
            skip_to_section=effect.skip_to_section,
        )


__all__ = [
    "ConditionalEffect",
    "ConditionalEvaluator",
    "DEFAULT_EFFECT",
    "FieldState",
    "VisibilityResolver",
    "VisibilitySnapshot",
    "apply_operator",
    "is_empty_value",
    "loosely_equal",
]
