from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from pydantic import Field

from .defaults import IdFactory, default_id_factory
from .models.base import FormModel
from .models.field import (
    Alignment,
    ConditionalRule,
    FieldType,
    FieldWidth,
    FormField,
    Styling,
    ValidationRule,
)
from .validation import EMAIL_PATTERN


class FormSuggestion(FormModel):
    """A proposed form: a title, a description and ready-to-place fields."""

    title: str
    description: str = ""
    fields: list[FormField] = Field(default_factory=list)


@dataclass(frozen=True)
class SuggestedFieldDefinition:
    key: str
    triggers: Sequence[str]
    type: FieldType
    label: str
    required: bool
    placeholder: str | None = None
    rows: int | None = None
    min_length: int | None = None
    pattern: str | None = None
    width: FieldWidth = FieldWidth.full
    alignment: Alignment = Alignment.left


SUGGESTED_FIELDS: Sequence[SuggestedFieldDefinition] = (
    SuggestedFieldDefinition(
        key="full_name",
        triggers=("contact", "name"),
        type=FieldType.text,
        label="Full Name",
        required=True,
        placeholder="Enter your full name",
        min_length=2,
    ),
    SuggestedFieldDefinition(
        key="email",
        triggers=("email", "contact"),
        type=FieldType.email,
        label="Email Address",
        required=True,
        placeholder="Enter your email",
        pattern=EMAIL_PATTERN.pattern,
    ),
    SuggestedFieldDefinition(
        key="phone",
        triggers=("phone",),
        type=FieldType.phone,
        label="Phone Number",
        required=False,
        placeholder="Enter your phone number",
        width=FieldWidth.half,
    ),
    SuggestedFieldDefinition(
        key="message",
        triggers=("message", "feedback"),
        type=FieldType.textarea,
        label="Message",
        required=True,
        placeholder="Enter your message",
        rows=4,
        min_length=10,
    ),
    SuggestedFieldDefinition(
        key="satisfaction",
        triggers=("rating", "satisfaction"),
        type=FieldType.rating,
        label="Overall Satisfaction",
        required=True,
        alignment=Alignment.center,
    ),
)

# First match wins.
SUGGESTED_TITLES: Sequence[tuple[str, str]] = (
    ("contact", "Professional Contact Form"),
    ("survey", "Customer Satisfaction Survey"),
    ("registration", "Event Registration Form"),
)
DEFAULT_SUGGESTED_TITLE = "Custom Form"
SUGGESTION_DESCRIPTION = "AI-generated form based on your requirements"


def build_suggested_field(definition: SuggestedFieldDefinition, field_id: str) -> FormField:
    return FormField(
        id=field_id,
        type=definition.type,
        label=definition.label,
        placeholder=definition.placeholder,
        required=definition.required,
        rows=definition.rows,
        validation=ValidationRule(
            required=definition.required,
            min_length=definition.min_length,
            pattern=definition.pattern,
        ),
        conditional=ConditionalRule(enabled=False, conditions=[]),
        styling=Styling(width=definition.width, alignment=definition.alignment),
    )


class KeywordFormSuggester:
    """Suggests a form from keywords found in a free-text prompt."""

    def __init__(
        self,
        *,
        id_factory: IdFactory = default_id_factory,
        definitions: Sequence[SuggestedFieldDefinition] = SUGGESTED_FIELDS,
        titles: Sequence[tuple[str, str]] = SUGGESTED_TITLES,
    ) -> None:
        self._id_factory = id_factory
        self._definitions = definitions
        self._titles = titles

    def suggest(self, prompt: str) -> FormSuggestion:
        text = prompt.casefold()
        return FormSuggestion(
            title=self._title_for(text),
            description=SUGGESTION_DESCRIPTION,
            fields=[
                build_suggested_field(definition, self._id_factory("field"))
                for definition in self._definitions
                if any(trigger in text for trigger in definition.triggers)
            ],
        )

    def _title_for(self, text: str) -> str:
        for keyword, title in self._titles:
            if keyword in text:
                return title
        return DEFAULT_SUGGESTED_TITLE


__all__ = [
    "FormSuggestion",
    "KeywordFormSuggester",
    "SUGGESTED_FIELDS",
    "SuggestedFieldDefinition",
    "build_suggested_field",
]
