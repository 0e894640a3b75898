from __future__ import annotations

from typing import Literal, Sequence

from pydantic import Field

from .errors import NotFoundError
from .models.base import FormModel
from .models.document import Page, Section
from .models.field import FieldType, FieldWidth, FormField, Styling, ValidationRule


class FormTemplate(FormModel):
    """A gallery entry. Templates without pages only retitle the project."""

    id: str
    title: str
    description: str
    category: str
    pages: list[Page] = Field(default_factory=list)
    fields: list[FormField] = Field(default_factory=list)
    is_premium: bool = False
    tags: list[str] = Field(default_factory=list)
    difficulty: Literal["beginner", "intermediate", "advanced"] = "beginner"
    estimated_time: int = 10
    features: list[str] = Field(default_factory=list)


def _section(section_id: str, title: str, field_ids: Sequence[str], order: int = 0) -> Section:
    return Section(id=section_id, title=title, fields=list(field_ids), order=order)


CONTACT_TEMPLATE = FormTemplate(
    id="contact-form-pro",
    title="Professional Contact Form",
    description="Contact form with department routing and file attachments",
    category="Business",
    tags=["contact", "business", "routing", "attachments"],
    features=["Department Routing", "File Attachments"],
    pages=[
        Page(
            id="contact-page",
            title="Contact",
            sections=[
                _section(
                    "contact-details",
                    "Your details",
                    ["contact-name", "contact-email", "contact-department", "contact-message", "contact-file"],
                )
            ],
        )
    ],
    fields=[
        FormField(
            id="contact-name",
            type=FieldType.text,
            label="Full Name",
            required=True,
            validation=ValidationRule(required=True, min_length=2),
            styling=Styling(width=FieldWidth.half),
        ),
        FormField(
            id="contact-email",
            type=FieldType.email,
            label="Email Address",
            required=True,
            validation=ValidationRule(required=True),
            styling=Styling(width=FieldWidth.half),
        ),
        FormField(
            id="contact-department",
            type=FieldType.select,
            label="Department",
            options=["Sales", "Support", "Billing"],
        ),
        FormField(
            id="contact-message",
            type=FieldType.textarea,
            label="Message",
            required=True,
            rows=5,
            validation=ValidationRule(required=True, max_length=2000),
        ),
        FormField(id="contact-file", type=FieldType.file, label="Attachment"),
    ],
)

SURVEY_TEMPLATE = FormTemplate(
    id="survey-form",
    title="Customer Survey",
    description="Collect feedback with multiple question types",
    category="Survey",
    tags=["survey", "feedback", "rating"],
    difficulty="intermediate",
    estimated_time=20,
    features=["Rating Scale", "Multi-Page"],
    pages=[
        Page(
            id="survey-experience",
            title="Your experience",
            sections=[_section("survey-rating", "Rating", ["survey-score", "survey-recommend"])],
        ),
        Page(
            id="survey-comments",
            title="Comments",
            order=1,
            sections=[_section("survey-feedback", "Feedback", ["survey-comments-text"])],
        ),
    ],
    fields=[
        FormField(id="survey-score", type=FieldType.rating, label="How satisfied are you?", required=True),
        FormField(
            id="survey-recommend",
            type=FieldType.radio,
            label="Would you recommend us?",
            options=["Yes", "Maybe", "No"],
        ),
        FormField(id="survey-comments-text", type=FieldType.textarea, label="Anything else?", rows=4),
    ],
)

TEMPLATE_GALLERY: Sequence[FormTemplate] = (
    CONTACT_TEMPLATE,
    SURVEY_TEMPLATE,
    FormTemplate(
        id="login-form",
        title="Advanced Login Form",
        description="Login with social auth, forgot password, and security features",
        category="Authentication",
        tags=["login", "authentication", "security"],
        difficulty="intermediate",
        estimated_time=15,
        features=["Social Login", "Password Reset", "Remember Me"],
    ),
    FormTemplate(
        id="event-registration",
        title="Event Registration",
        description="Gather attendee details and preferences",
        category="Events",
        is_premium=True,
        tags=["events", "registration"],
    ),
)


def list_templates(category: str | None = None, search: str | None = None) -> list[FormTemplate]:
    found = []
    for template in TEMPLATE_GALLERY:
        if category and template.category.casefold() != category.casefold():
            continue
        if search:
            needle = search.casefold()
            haystack = [template.title, template.description, *template.tags]
            if not any(needle in text.casefold() for text in haystack):
                continue
        found.append(template)
    return found


def get_template(template_id: str) -> FormTemplate:
    for template in TEMPLATE_GALLERY:
        if template.id == template_id:
            return template
    raise NotFoundError("Template", template_id)


__all__ = ["FormTemplate", "TEMPLATE_GALLERY", "get_template", "list_templates"]
