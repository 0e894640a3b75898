from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field, field_validator, model_validator

from ..errors import InvariantViolation, RegexCompileError
from .base import FormModel
from .layout import Layout


class FieldType(str, Enum):
    text = "text"
    textarea = "textarea"
    email = "email"
    phone = "phone"
    number = "number"
    date = "date"
    time = "time"
    select = "select"
    radio = "radio"
    checkbox = "checkbox"
    file = "file"
    switch = "switch"
    rating = "rating"
    location = "location"
    payment = "payment"
    image = "image"
    range = "range"
    matrix = "matrix"
    divider = "divider"
    heading = "heading"
    paragraph = "paragraph"
    spacer = "spacer"


CHOICE_FIELD_TYPES = frozenset({FieldType.select, FieldType.radio, FieldType.checkbox})

# Presentational blocks: they occupy a slot in the layout but never hold a value.
DISPLAY_FIELD_TYPES = frozenset({FieldType.divider, FieldType.heading, FieldType.paragraph, FieldType.spacer})

NUMERIC_FIELD_TYPES = frozenset({FieldType.number, FieldType.range, FieldType.rating})


class ValidationRule(FormModel):
    required: bool = False
    min_length: int | None = Field(default=None, ge=0)
    max_length: int | None = Field(default=None, ge=0)
    min: float | None = None
    max: float | None = None
    pattern: str | None = None
    custom_message: str | None = None
    email: bool | None = None
    url: bool | None = None
    phone: bool | None = None
    credit_card: bool | None = None

    @field_validator("pattern")
    @classmethod
    def _compile_pattern(cls, value: str | None) -> str | None:
        if value is None:
            return value
        try:
            re.compile(value)
        except re.error as exc:
            raise RegexCompileError(value, str(exc)) from exc
        return value

    @model_validator(mode="after")
    def _check_bounds(self) -> "ValidationRule":
        if self.min_length is not None and self.max_length is not None and self.min_length > self.max_length:
            raise InvariantViolation(
                f"minLength ({self.min_length}) is greater than maxLength ({self.max_length})"
            )
        if self.min is not None and self.max is not None and self.min > self.max:
            raise InvariantViolation(f"min ({self.min}) is greater than max ({self.max})")
        return self

    def compiled_pattern(self) -> re.Pattern[str] | None:
        return re.compile(self.pattern) if self.pattern is not None else None


class ConditionOperator(str, Enum):
    equals = "equals"
    not_equals = "not_equals"
    contains = "contains"
    greater_than = "greater_than"
    less_than = "less_than"
    is_empty = "is_empty"
    is_not_empty = "is_not_empty"


class LogicalOperator(str, Enum):
    and_ = "AND"
    or_ = "OR"


class ConditionalAction(str, Enum):
    show = "show"
    hide = "hide"
    require = "require"
    disable = "disable"
    skip_to_section = "skip_to_section"


class Condition(FormModel):
    field_id: str
    operator: ConditionOperator = ConditionOperator.equals
    value: Any = None
    # Joins this condition with the one that follows it.
    logical_operator: LogicalOperator | None = None


class ConditionalRule(FormModel):
    enabled: bool = False
    conditions: list[Condition] = Field(default_factory=list)
    action: ConditionalAction = ConditionalAction.show
    target_section_id: str | None = None

    def referenced_field_ids(self) -> list[str]:
        return [condition.field_id for condition in self.conditions]


class FieldWidth(str, Enum):
    full = "full"
    half = "half"
    third = "third"
    quarter = "quarter"
    two_thirds = "two-thirds"
    three_quarters = "three-quarters"


class Alignment(str, Enum):
    left = "left"
    center = "center"
    right = "right"


class Styling(FormModel):
    width: FieldWidth = FieldWidth.full
    alignment: Alignment = Alignment.left
    custom_css: str | None = None
    background_color: str | None = None
    text_color: str | None = None
    border_color: str | None = None
    border_radius: str | None = None
    padding: str | None = None
    margin: str | None = None
    font_size: str | None = None
    font_weight: str | None = None


class FieldMetadata(FormModel):
    created_at: datetime | None = None
    updated_at: datetime | None = None
    created_by: str | None = None
    section_id: str | None = None
    column: int | None = None
    row: int | None = None


class FormField(FormModel):
    id: str
    type: FieldType
    label: str
    placeholder: str | None = None
    required: bool = False
    options: list[str] | None = None
    rows: int | None = None
    description: str | None = None
    help_text: str | None = None
    validation: ValidationRule = Field(default_factory=ValidationRule)
    conditional: ConditionalRule = Field(default_factory=ConditionalRule)
    styling: Styling = Field(default_factory=Styling)
    layout: Layout | None = None
    metadata: FieldMetadata = Field(default_factory=FieldMetadata)
    prefix: str | None = None
    suffix: str | None = None
    default_value: Any = None
    readonly: bool = False

    @model_validator(mode="after")
    def _check_options(self) -> "FormField":
        is_choice = self.type in CHOICE_FIELD_TYPES
        if is_choice and self.options is None:
            raise InvariantViolation(f"Field {self.id} of type {self.type.value} requires options")
        if not is_choice and self.options is not None:
            raise InvariantViolation(f"Field {self.id} of type {self.type.value} cannot carry options")
        return self

    @property
    def is_required(self) -> bool:
        return self.required or self.validation.required

    @property
    def is_display_only(self) -> bool:
        return self.type in DISPLAY_FIELD_TYPES


__all__ = [
    "Alignment",
    "CHOICE_FIELD_TYPES",
    "Condition",
    "ConditionOperator",
    "ConditionalAction",
    "ConditionalRule",
    "DISPLAY_FIELD_TYPES",
    "FieldMetadata",
    "FieldType",
    "FieldWidth",
    "FormField",
    "LogicalOperator",
    "NUMERIC_FIELD_TYPES",
    "Styling",
    "ValidationRule",
]
