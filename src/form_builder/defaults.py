from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Sequence

from .models.document import Page, PageNavigation, Project, Settings, utcnow
from .models.field import (
    CHOICE_FIELD_TYPES,
    ConditionalRule,
    FieldMetadata,
    FieldType,
    FormField,
    Styling,
    ValidationRule,
)

IdFactory = Callable[[str], str]
Clock = Callable[[], datetime]

DEFAULT_OPTIONS: Sequence[str] = ("Option 1", "Option 2", "Option 3")


def default_id_factory(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class PaletteItem:
    type: FieldType
    label: str
    description: str
    premium: bool = False


@dataclass(frozen=True)
class PaletteCategory:
    key: str
    label: str
    items: Sequence[PaletteItem]


FIELD_PALETTE: Sequence[PaletteCategory] = (
    PaletteCategory(
        key="basic",
        label="Basic Fields",
        items=(
            PaletteItem(FieldType.text, "Text Input", "Single line text input"),
            PaletteItem(FieldType.textarea, "Text Area", "Multi-line text input"),
            PaletteItem(FieldType.email, "Email", "Email address input"),
            PaletteItem(FieldType.phone, "Phone", "Phone number input"),
            PaletteItem(FieldType.number, "Number", "Numeric input"),
        ),
    ),
    PaletteCategory(
        key="advanced",
        label="Advanced Fields",
        items=(
            PaletteItem(FieldType.date, "Date Picker", "Date selection"),
            PaletteItem(FieldType.select, "Dropdown", "Single choice from a list"),
            PaletteItem(FieldType.radio, "Radio Group", "Single choice, all options visible"),
            PaletteItem(FieldType.checkbox, "Checkboxes", "Multiple choice"),
            PaletteItem(FieldType.file, "File Upload", "Upload documents"),
            PaletteItem(FieldType.switch, "Switch", "On/off toggle"),
        ),
    ),
    PaletteCategory(
        key="premium",
        label="Premium Fields",
        items=(
            PaletteItem(FieldType.rating, "Star Rating", "Rate from 1 to 5", premium=True),
            PaletteItem(FieldType.location, "Location", "Address or coordinates", premium=True),
            PaletteItem(FieldType.time, "Time Picker", "Time selection", premium=True),
            PaletteItem(FieldType.payment, "Payment", "Card payment details", premium=True),
            PaletteItem(FieldType.image, "Image Upload", "Upload pictures", premium=True),
            PaletteItem(FieldType.range, "Range Slider", "Pick a value on a scale", premium=True),
            PaletteItem(FieldType.matrix, "Matrix Grid", "Grid of choices", premium=True),
        ),
    ),
    PaletteCategory(
        key="layout",
        label="Layout Elements",
        items=(
            PaletteItem(FieldType.heading, "Heading", "Section heading text"),
            PaletteItem(FieldType.paragraph, "Paragraph", "Static explanatory text"),
            PaletteItem(FieldType.divider, "Divider", "Horizontal rule"),
            PaletteItem(FieldType.spacer, "Spacer", "Vertical whitespace"),
        ),
    ),
)

def default_label(field_type: FieldType) -> str:
    name = field_type.value
    return f"{name[:1].upper()}{name[1:]} Field"


def create_default_field(
    field_type: FieldType,
    *,
    field_id: str,
    section_id: str | None = None,
    now: datetime | None = None,
    created_by: str | None = None,
) -> FormField:
    """Synthesize a freshly dropped palette field with type-appropriate defaults."""
    field_type = FieldType(field_type)
    timestamp = now or utcnow()
    return FormField(
        id=field_id,
        type=field_type,
        label=default_label(field_type),
        placeholder=f"Enter {field_type.value}...",
        required=False,
        options=list(DEFAULT_OPTIONS) if field_type in CHOICE_FIELD_TYPES else None,
        validation=ValidationRule(required=False),
        conditional=ConditionalRule(enabled=False, conditions=[]),
        styling=Styling(),
        metadata=FieldMetadata(
            created_at=timestamp,
            updated_at=timestamp,
            created_by=created_by,
            section_id=section_id,
        ),
    )


def default_page(page_id: str, *, index: int) -> Page:
    return Page(
        id=page_id,
        title=f"Page {index + 1}",
        description="First page of your form" if index == 0 else "",
        navigation=PageNavigation(show_previous=index > 0, show_next=True),
        order=index,
    )


def new_project(
    *,
    title: str = "Untitled Form",
    description: str = "",
    created_by: str | None = None,
    clock: Clock = utcnow,
    id_factory: IdFactory = default_id_factory,
) -> Project:
    """Create a project holding a single empty page."""
    now = clock()
    return Project(
        id=id_factory("project"),
        title=title,
        description=description,
        pages=[default_page(id_factory("page"), index=0)],
        settings=Settings(),
        created_at=now,
        updated_at=now,
        created_by=created_by,
        collaborators=[created_by] if created_by else [],
        version=1,
    )


__all__ = [
    "Clock",
    "DEFAULT_OPTIONS",
    "FIELD_PALETTE",
    "IdFactory",
    "PaletteCategory",
    "PaletteItem",
    "create_default_field",
    "default_id_factory",
    "default_label",
    "default_page",
    "new_project",
]
