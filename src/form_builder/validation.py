from __future__ import annotations

import re
from typing import Any, Mapping

from .conditions import VisibilityResolver, VisibilitySnapshot, is_empty_value
from .models.document import Project, ValidationTiming
from .models.field import NUMERIC_FIELD_TYPES, FieldType, FormField

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^[+]?[1-9]\d{0,15}$")
URL_PATTERN = re.compile(r"^https?://[^\s/$.?#][^\s]*$", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s")


def _is_blank(field: FormField, value: Any) -> bool:
    if field.type == FieldType.switch and value is False:
        return True
    return is_empty_value(value)


def _length(value: Any) -> int | None:
    if isinstance(value, (str, list, tuple)):
        return len(value)
    return None


def _number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def _passes_luhn(value: Any) -> bool:
    digits = re.sub(r"[\s-]", "", str(value))
    if not digits.isdigit() or not 12 <= len(digits) <= 19:
        return False
    total = 0
    for position, char in enumerate(reversed(digits)):
        digit = int(char)
        if position % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def _format_bound(bound: float) -> str:
    return str(int(bound)) if float(bound).is_integer() else str(bound)


def validate_field(field: FormField, value: Any, *, required: bool | None = None) -> str | None:
    """Return the first validation error for ``value``, or None.

    Rules run in a fixed order and the first failure wins: required, email
    format, phone format, minimum length, maximum length, pattern, then
    numeric bounds, URL and card number checks. ``required`` overrides the
    field's own flag (used when a conditional rule decides it).
    """
    if field.is_display_only:
        return None
    rule = field.validation

    if _is_blank(field, value):
        if field.is_required if required is None else required:
            return rule.custom_message or f"{field.label} is required"
        return None

    checks_email = field.type == FieldType.email or bool(rule.email)
    if checks_email and not EMAIL_PATTERN.match(str(value)):
        return "Please enter a valid email address"

    checks_phone = field.type == FieldType.phone or bool(rule.phone)
    if checks_phone and not PHONE_PATTERN.match(_WHITESPACE.sub("", str(value))):
        return "Please enter a valid phone number"

    length = _length(value)
    if rule.min_length and length is not None and length < rule.min_length:
        return f"Minimum length is {rule.min_length} characters"

    if rule.max_length and length is not None and length > rule.max_length:
        return f"Maximum length is {rule.max_length} characters"

    if rule.pattern is not None and not rule.compiled_pattern().search(str(value)):
        return rule.custom_message or "Invalid format"

    if field.type in NUMERIC_FIELD_TYPES and (rule.min is not None or rule.max is not None):
        number = _number(value)
        if number is None:
            return "Please enter a valid number"
        if rule.min is not None and number < rule.min:
            return f"Value must be at least {_format_bound(rule.min)}"
        if rule.max is not None and number > rule.max:
            return f"Value must be at most {_format_bound(rule.max)}"

    if rule.url and not URL_PATTERN.match(str(value)):
        return "Please enter a valid URL"

    if rule.credit_card and not _passes_luhn(value):
        return "Please enter a valid card number"

    return None


def validate_values(
    project: Project,
    values: Mapping[str, Any],
    *,
    snapshot: VisibilitySnapshot | None = None,
) -> dict[str, str]:
    """Validate every visible field; hidden fields are skipped entirely.

    The conditional ``require`` action overrides a field's own required flag.
    """
    if snapshot is None:
        snapshot = VisibilityResolver(project).snapshot(values)
    errors: dict[str, str] = {}
    for field_id in project.placed_field_ids():
        state = snapshot.fields.get(field_id)
        if state is None or not state.visible:
            continue
        form_field = project.get_field(field_id)
        if form_field.is_display_only:
            continue
        message = validate_field(form_field, values.get(field_id), required=state.required)
        if message is not None:
            errors[field_id] = message
    return errors


def should_display_error(
    timing: ValidationTiming,
    *,
    changed: bool = False,
    blurred: bool = False,
    submitted: bool = False,
) -> bool:
    """Whether an outstanding error is shown yet under the form's validation timing."""
    if submitted:
        return True
    if timing == ValidationTiming.on_change:
        return changed or blurred
    if timing == ValidationTiming.on_blur:
        return blurred
    return False


__all__ = [
    "EMAIL_PATTERN",
    "PHONE_PATTERN",
    "should_display_error",
    "validate_field",
    "validate_values",
]
