from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping, Sequence

from .conditions import FieldState, VisibilityResolver
from .models.document import Project, Section
from .models.field import FieldType, FormField
from .validation import should_display_error, validate_field


class ControlKind(str, Enum):
    single_line_text = "single_line_text"
    multi_line_text = "multi_line_text"
    date = "date"
    single_select = "single_select"
    multi_select = "multi_select"
    boolean_toggle = "boolean_toggle"
    file = "file"
    static = "static"


_CONTROL_BY_TYPE: Mapping[FieldType, ControlKind] = {
    FieldType.text: ControlKind.single_line_text,
    FieldType.email: ControlKind.single_line_text,
    FieldType.phone: ControlKind.single_line_text,
    FieldType.number: ControlKind.single_line_text,
    FieldType.location: ControlKind.single_line_text,
    FieldType.payment: ControlKind.single_line_text,
    FieldType.range: ControlKind.single_line_text,
    FieldType.rating: ControlKind.single_select,
    FieldType.textarea: ControlKind.multi_line_text,
    FieldType.date: ControlKind.date,
    FieldType.time: ControlKind.date,
    FieldType.select: ControlKind.single_select,
    FieldType.radio: ControlKind.single_select,
    FieldType.checkbox: ControlKind.multi_select,
    FieldType.matrix: ControlKind.multi_select,
    FieldType.switch: ControlKind.boolean_toggle,
    FieldType.file: ControlKind.file,
    FieldType.image: ControlKind.file,
    FieldType.divider: ControlKind.static,
    FieldType.heading: ControlKind.static,
    FieldType.paragraph: ControlKind.static,
    FieldType.spacer: ControlKind.static,
}

_INPUT_TYPE_BY_TYPE: Mapping[FieldType, str] = {
    FieldType.text: "text",
    FieldType.email: "email",
    FieldType.phone: "tel",
    FieldType.number: "number",
    FieldType.location: "text",
    FieldType.payment: "text",
    FieldType.range: "range",
    FieldType.date: "date",
    FieldType.time: "time",
    FieldType.file: "file",
    FieldType.image: "file",
}

RATING_SCALE: Sequence[str] = ("1", "2", "3", "4", "5")


def control_for(field_type: FieldType) -> ControlKind:
    return _CONTROL_BY_TYPE[FieldType(field_type)]


def input_type_for(field_type: FieldType) -> str | None:
    return _INPUT_TYPE_BY_TYPE.get(FieldType(field_type))


Listener = Callable[[str, Any], None]


class ValueStore:
    """Shared current values plus the interaction state that drives error display."""

    def __init__(self, initial: Mapping[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = dict(initial or {})
        self.changed: set[str] = set()
        self.blurred: set[str] = set()
        self.submitted = False
        self._listeners: list[Listener] = []

    @property
    def values(self) -> dict[str, Any]:
        return dict(self._values)

    def get(self, field_id: str, default: Any = None) -> Any:
        return self._values.get(field_id, default)

    def set(self, field_id: str, value: Any) -> None:
        self._values[field_id] = value
        self.changed.add(field_id)
        for listener in list(self._listeners):
            listener(field_id, value)

    def blur(self, field_id: str) -> None:
        self.blurred.add(field_id)

    def mark_submitted(self) -> None:
        self.submitted = True

    def reset(self) -> None:
        self._values.clear()
        self.changed.clear()
        self.blurred.clear()
        self.submitted = False

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe


@dataclass
class RenderedControl:
    field_id: str
    control: ControlKind
    label: str
    input_type: str | None
    placeholder: str | None
    required: bool
    disabled: bool
    options: Sequence[str]
    value: Any
    error: str | None
    help_text: str | None
    store: ValueStore = field(repr=False)

    def on_change(self, value: Any) -> None:
        self.store.set(self.field_id, value)
        self.value = value

    def on_blur(self) -> None:
        self.store.blur(self.field_id)


@dataclass
class RenderedColumn:
    column_id: str
    width: str
    controls: list[RenderedControl]


@dataclass
class RenderedSection:
    section_id: str
    title: str
    description: str
    collapsible: bool
    collapsed: bool
    columns: list[RenderedColumn]


class RenderDispatcher:
    """Binds fields to controls over a shared :class:`ValueStore`.

    Hidden fields, sections and pages render to nothing. Validation errors
    are attached only once the form's validation timing says to show them.
    """

    def __init__(self, project: Project, store: ValueStore | None = None) -> None:
        self._project = project
        self.store = store or ValueStore()
        self._resolver = VisibilityResolver(project)

    def render_field(self, field_id: str) -> RenderedControl | None:
        state = self._resolver.field_states(self.store.values).get(field_id)
        if state is None or not state.visible:
            return None
        return self._render(self._project.get_field(field_id), state)

    def render_section(self, section_id: str) -> RenderedSection | None:
        section = self._project.get_section(section_id)
        snapshot = self._resolver.snapshot(self.store.values)
        page = self._project.page_of_section(section_id)
        if not (snapshot.pages[page.id].visible and snapshot.sections[section.id].visible):
            return None
        return self._render_section(section, snapshot.fields)

    def render_page(self, page_id: str) -> list[RenderedSection]:
        page = self._project.get_page(page_id)
        snapshot = self._resolver.snapshot(self.store.values)
        if not snapshot.pages[page.id].visible:
            return []
        return [
            self._render_section(section, snapshot.fields)
            for section in page.ordered_sections()
            if snapshot.sections[section.id].visible
        ]

    def _render_section(self, section: Section, states: Mapping[str, FieldState]) -> RenderedSection:
        columns: list[RenderedColumn] = []
        placed: set[str] = set()
        for column in section.layout.columns:
            controls = []
            for field_id in column.fields:
                placed.add(field_id)
                state = states.get(field_id)
                if state is not None and state.visible:
                    controls.append(self._render(self._project.get_field(field_id), state))
            columns.append(RenderedColumn(column_id=column.id, width=column.width, controls=controls))

        # Fields in the section but not yet assigned to a column go to the first one.
        unplaced = [
            self._render(self._project.get_field(field_id), states[field_id])
            for field_id in section.fields
            if field_id not in placed and states.get(field_id) is not None and states[field_id].visible
        ]
        if unplaced:
            if columns:
                columns[0].controls.extend(unplaced)
            else:
                columns.append(RenderedColumn(column_id=f"{section.id}-col-0", width="100%", controls=unplaced))

        return RenderedSection(
            section_id=section.id,
            title=section.title,
            description=section.description,
            collapsible=section.collapsible,
            collapsed=section.collapsed,
            columns=columns,
        )

    def _render(self, form_field: FormField, state: FieldState) -> RenderedControl:
        control = control_for(form_field.type)
        value = self.store.get(form_field.id, form_field.default_value)
        error = None
        if control != ControlKind.static and should_display_error(
            self._project.settings.validation,
            changed=form_field.id in self.store.changed,
            blurred=form_field.id in self.store.blurred,
            submitted=self.store.submitted,
        ):
            error = validate_field(form_field, value, required=state.required)

        if form_field.type == FieldType.rating:
            options: Sequence[str] = RATING_SCALE
        else:
            options = list(form_field.options or ())

        return RenderedControl(
            field_id=form_field.id,
            control=control,
            label=form_field.label,
            input_type=input_type_for(form_field.type),
            placeholder=form_field.placeholder,
            required=state.required,
            disabled=state.disabled,
            options=options,
            value=value,
            error=error,
            help_text=form_field.help_text,
            store=self.store,
        )


__all__ = [
    "ControlKind",
    "RenderDispatcher",
    "RenderedColumn",
    "RenderedControl",
    "RenderedSection",
    "ValueStore",
    "control_for",
    "input_type_for",
]
