from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Iterator

from pydantic import Field, field_validator, model_validator

from ..errors import InvariantViolation, NotFoundError
from .base import FormModel
from .field import ConditionalRule, FormField, Styling
from .layout import Column, Layout, LayoutType, column_id


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(moment: datetime) -> datetime:
    """Treat naive timestamps as UTC so stored projects stay comparable."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class Theme(str, Enum):
    modern = "modern"
    classic = "classic"
    minimal = "minimal"
    dark = "dark"
    colorful = "colorful"
    glassmorphism = "glassmorphism"
    neumorphism = "neumorphism"


class ValidationTiming(str, Enum):
    on_submit = "onSubmit"
    on_blur = "onBlur"
    on_change = "onChange"


class LayoutOrientation(str, Enum):
    vertical = "vertical"
    horizontal = "horizontal"
    grid = "grid"


class Animation(str, Enum):
    none = "none"
    fade = "fade"
    slide = "slide"
    bounce = "bounce"


class AccessibilitySettings(FormModel):
    enabled: bool = True
    high_contrast: bool = False
    screen_reader: bool = True
    keyboard_navigation: bool = True


class Settings(FormModel):
    allow_multiple_submissions: bool = True
    require_authentication: bool = False
    enable_analytics: bool = True
    enable_notifications: bool = True
    redirect_url: str | None = None
    custom_css: str | None = None
    theme: str = "modern"
    language: str = "en"
    multi_page: bool = True
    show_progress_bar: bool = True
    save_progress: bool = True
    auto_save: bool = False
    time_limit: int | None = None
    submit_button_text: str = "Submit Form"
    reset_button_text: str = "Reset"
    validation: ValidationTiming = ValidationTiming.on_blur
    layout: LayoutOrientation = LayoutOrientation.vertical
    animation: Animation = Animation.fade
    responsive: bool = True
    accessibility: AccessibilitySettings = Field(default_factory=AccessibilitySettings)


class PageNavigation(FormModel):
    show_previous: bool = True
    show_next: bool = True
    next_button_text: str = "Next"
    previous_button_text: str = "Previous"


class Section(FormModel):
    id: str
    title: str = "New Section"
    description: str = ""
    fields: list[str] = Field(default_factory=list)
    layout: Layout | None = None
    conditional: ConditionalRule | None = None
    styling: Styling | None = None
    collapsible: bool = False
    collapsed: bool = False
    repeatable: bool = False
    max_repeats: int | None = Field(default=None, ge=1)
    button_text: str | None = None
    order: int = 0

    @model_validator(mode="after")
    def _default_layout(self) -> "Section":
        if self.layout is None:
            self.layout = Layout.for_type(LayoutType.single, self.id, self.fields)
        return self

    def find_column(self, target_id: str) -> Column | None:
        for column in self.layout.columns:
            if column.id == target_id:
                return column
        return None


class Page(FormModel):
    id: str
    title: str = "Page 1"
    description: str = ""
    sections: list[Section] = Field(default_factory=list)
    navigation: PageNavigation = Field(default_factory=PageNavigation)
    conditional: ConditionalRule | None = None
    order: int = 0

    def ordered_sections(self) -> list[Section]:
        return sorted(self.sections, key=lambda section: section.order)


class Project(FormModel):
    id: str
    title: str = "Untitled Form"
    description: str = ""
    pages: list[Page] = Field(default_factory=list)
    # Canonical arena. Sections and columns refer to these by id only.
    fields: list[FormField] = Field(default_factory=list)
    theme: Theme = Theme.modern
    settings: Settings = Field(default_factory=Settings)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    created_by: str | None = None
    collaborators: list[str] = Field(default_factory=list)
    is_published: bool = False
    published_url: str | None = None
    tags: list[str] = Field(default_factory=list)
    version: int = Field(default=1, ge=0)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @model_validator(mode="after")
    def _check_structure(self) -> "Project":
        if not self.pages:
            raise InvariantViolation("A project must have at least one page")

        _ensure_unique("page", [page.id for page in self.pages])
        _ensure_unique("section", [section.id for section in self.iter_sections()])
        _ensure_unique("field", [field.id for field in self.fields])
        _ensure_unique(
            "column",
            [column.id for section in self.iter_sections() for column in section.layout.columns],
        )

        arena = {field.id for field in self.fields}
        placed_in: dict[str, str] = {}
        for section in self.iter_sections():
            if len(set(section.fields)) != len(section.fields):
                raise InvariantViolation(f"Section {section.id} lists a field more than once")
            for field_id in section.fields:
                if field_id not in arena:
                    raise InvariantViolation(f"Section {section.id} references unknown field {field_id}")
                if field_id in placed_in:
                    raise InvariantViolation(
                        f"Field {field_id} is placed in both {placed_in[field_id]} and {section.id}"
                    )
                placed_in[field_id] = section.id

            owned = set(section.fields)
            seen_in_columns: set[str] = set()
            for column in section.layout.columns:
                for field_id in column.fields:
                    if field_id not in owned:
                        raise InvariantViolation(
                            f"Column {column.id} holds field {field_id} not owned by section {section.id}"
                        )
                    if field_id in seen_in_columns:
                        raise InvariantViolation(
                            f"Field {field_id} appears in more than one column of section {section.id}"
                        )
                    seen_in_columns.add(field_id)
        return self

    def iter_sections(self) -> Iterator[Section]:
        for page in self.pages:
            yield from page.sections

    def ordered_pages(self) -> list[Page]:
        return sorted(self.pages, key=lambda page: page.order)

    def get_page(self, page_id: str) -> Page:
        for page in self.pages:
            if page.id == page_id:
                return page
        raise NotFoundError("Page", page_id)

    def get_section(self, section_id: str) -> Section:
        for section in self.iter_sections():
            if section.id == section_id:
                return section
        raise NotFoundError("Section", section_id)

    def get_field(self, field_id: str) -> FormField:
        for field in self.fields:
            if field.id == field_id:
                return field
        raise NotFoundError("Field", field_id)

    def has_field(self, field_id: str) -> bool:
        return any(field.id == field_id for field in self.fields)

    def page_of_section(self, section_id: str) -> Page:
        for page in self.pages:
            if any(section.id == section_id for section in page.sections):
                return page
        raise NotFoundError("Section", section_id)

    def find_section_of_field(self, field_id: str) -> Section | None:
        for section in self.iter_sections():
            if field_id in section.fields:
                return section
        return None

    def find_column(self, target_id: str) -> tuple[Section, Column] | None:
        for section in self.iter_sections():
            column = section.find_column(target_id)
            if column is not None:
                return section, column
        return None

    def placed_field_ids(self) -> list[str]:
        """Field ids in document order: pages, then sections, then section order."""
        return [
            field_id
            for page in self.ordered_pages()
            for section in page.ordered_sections()
            for field_id in section.fields
        ]

    def orphaned_field_ids(self) -> list[str]:
        placed = set(self.placed_field_ids())
        return [field.id for field in self.fields if field.id not in placed]

    def all_ids(self) -> set[str]:
        ids = {page.id for page in self.pages} | {field.id for field in self.fields}
        for section in self.iter_sections():
            ids.add(section.id)
            ids.update(column.id for column in section.layout.columns)
        return ids


def _ensure_unique(kind: str, ids: list[str]) -> None:
    seen: set[str] = set()
    for entity_id in ids:
        if entity_id in seen:
            raise InvariantViolation(f"Duplicate {kind} id: {entity_id}")
        seen.add(entity_id)


def new_section(section_id: str, *, order: int = 0, title: str = "New Section") -> Section:
    return Section(
        id=section_id,
        title=title,
        layout=Layout(type=LayoutType.single, columns=[Column(id=column_id(section_id, 0), width="100%")]),
        order=order,
    )


__all__ = [
    "AccessibilitySettings",
    "Animation",
    "as_utc",
    "LayoutOrientation",
    "Page",
    "PageNavigation",
    "Project",
    "Section",
    "Settings",
    "Theme",
    "ValidationTiming",
    "new_section",
    "utcnow",
]
