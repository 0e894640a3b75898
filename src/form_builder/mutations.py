from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Sequence, TypeVar

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from .defaults import (
    DEFAULT_OPTIONS,
    Clock,
    IdFactory,
    create_default_field,
    default_id_factory,
    default_page,
)
from .errors import InvariantViolation, NotFoundError
from .models.document import Page, Project, Section, as_utc, new_section, utcnow
from .models.field import CHOICE_FIELD_TYPES, ConditionalRule, FieldType, FormField
from .models.layout import Column, Layout, LayoutType, column_id
from .templates import FormTemplate

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_PROJECT_PROTECTED = frozenset({"id", "pages", "fields", "version", "created_at", "updated_at"})
_PAGE_PROTECTED = frozenset({"id", "sections"})
_SECTION_PROTECTED = frozenset({"id", "fields"})
_FIELD_PROTECTED = frozenset({"id"})


class MutationEngine:
    """Pure operations over a :class:`Project`.

    Every operation works on a deep copy of the input, re-validates the whole
    document before returning it, and leaves the caller's project untouched
    when it fails. Each successful call returns a project whose ``version`` is
    one higher and whose ``updated_at`` never goes backwards.
    """

    def __init__(self, *, clock: Clock = utcnow, id_factory: IdFactory = default_id_factory) -> None:
        self._clock = clock
        self._id_factory = id_factory

    # Project -----------------------------------------------------------------

    def update_project(self, project: Project, updates: Mapping[str, Any]) -> Project:
        draft = _merge(project, updates, protected=_PROJECT_PROTECTED)
        return self._commit(project, draft, "update_project")

    def update_settings(self, project: Project, updates: Mapping[str, Any]) -> Project:
        draft = project.model_copy(deep=True)
        draft.settings = _merge(draft.settings, updates)
        return self._commit(project, draft, "update_settings")

    def apply_template(self, project: Project, template: FormTemplate) -> Project:
        """Retitle the project from ``template`` and, when it has pages, take over its structure.

        Template pages replace the project's pages and the field arena with them;
        templates without pages leave the structure alone.
        """
        draft = project.model_copy(deep=True)
        draft.title = template.title
        draft.description = template.description
        if template.pages:
            now = self._clock()
            draft.pages = [page.model_copy(deep=True) for page in template.pages]
            draft.fields = [field.model_copy(deep=True) for field in template.fields]
            for section in draft.iter_sections():
                for field_id in section.fields:
                    metadata = draft.get_field(field_id).metadata
                    metadata.section_id = section.id
                    metadata.created_at = metadata.updated_at = now
        return self._commit(project, draft, "apply_template")

    # Pages -------------------------------------------------------------------

    def add_page(self, project: Project) -> tuple[Project, str]:
        draft = project.model_copy(deep=True)
        page_id = self._new_id("page", draft.all_ids())
        draft.pages.append(default_page(page_id, index=len(draft.pages)))
        if len(draft.pages) > 1:
            draft.settings.multi_page = True
        return self._commit(project, draft, "add_page"), page_id

    def insert_page(
        self,
        project: Project,
        page: Page,
        *,
        fields: Sequence[FormField] = (),
        index: int | None = None,
    ) -> Project:
        """Insert a fully built page (and the fields it places) keeping its ids."""
        draft = project.model_copy(deep=True)
        taken = draft.all_ids()
        incoming = page.model_copy(deep=True)
        _reject_taken(taken, [incoming.id], "page")
        draft.fields.extend(field.model_copy(deep=True) for field in fields)
        ordered = draft.ordered_pages()
        ordered.insert(len(ordered) if index is None else index, incoming)
        draft.pages = _reindex(ordered)
        if len(draft.pages) > 1:
            draft.settings.multi_page = True
        return self._commit(project, draft, "insert_page")

    def update_page(self, project: Project, page_id: str, updates: Mapping[str, Any]) -> Project:
        draft = project.model_copy(deep=True)
        page = draft.get_page(page_id)
        merged = _merge(page, updates, protected=_PAGE_PROTECTED)
        draft.pages = [merged if item.id == page_id else item for item in draft.pages]
        return self._commit(project, draft, "update_page")

    def delete_page(self, project: Project, page_id: str) -> Project:
        draft = project.model_copy(deep=True)
        page = draft.get_page(page_id)
        if len(draft.pages) <= 1:
            raise InvariantViolation("Cannot delete the last page of a project")
        released = [field_id for section in page.sections for field_id in section.fields]
        draft.pages = _reindex([item for item in draft.ordered_pages() if item.id != page_id])
        _release_fields(draft, released)
        return self._commit(project, draft, "delete_page")

    def duplicate_page(self, project: Project, page_id: str) -> tuple[Project, str]:
        draft = project.model_copy(deep=True)
        source = draft.get_page(page_id)
        taken = draft.all_ids()
        new_page_id = self._new_id("page", taken)
        clone = source.model_copy(deep=True)
        clone.id = new_page_id
        clone.title = f"{source.title} (Copy)"
        clone.sections = []
        for section in source.ordered_sections():
            section_clone, field_clones = self._clone_section(draft, section, taken)
            clone.sections.append(section_clone)
            draft.fields.extend(field_clones)
        clone.sections = _reindex(clone.sections)
        ordered = draft.ordered_pages()
        ordered.insert(ordered.index(source) + 1, clone)
        draft.pages = _reindex(ordered)
        draft.settings.multi_page = True
        return self._commit(project, draft, "duplicate_page"), new_page_id

    def reorder_pages(self, project: Project, ordered_ids: Sequence[str]) -> Project:
        draft = project.model_copy(deep=True)
        _check_closure("project", [page.id for page in draft.ordered_pages()], ordered_ids)
        by_id = {page.id: page for page in draft.pages}
        draft.pages = _reindex([by_id[page_id] for page_id in ordered_ids])
        return self._commit(project, draft, "reorder_pages")

    # Sections ----------------------------------------------------------------

    def add_section(self, project: Project, page_id: str) -> tuple[Project, str]:
        draft = project.model_copy(deep=True)
        page = draft.get_page(page_id)
        section_id = self._new_id("section", draft.all_ids())
        page.sections.append(new_section(section_id, order=len(page.sections)))
        return self._commit(project, draft, "add_section"), section_id

    def insert_section(
        self,
        project: Project,
        page_id: str,
        section: Section,
        *,
        fields: Sequence[FormField] = (),
        index: int | None = None,
    ) -> Project:
        """Insert a fully built section (and the fields it places) keeping its ids."""
        draft = project.model_copy(deep=True)
        page = draft.get_page(page_id)
        incoming = section.model_copy(deep=True)
        _reject_taken(draft.all_ids(), [incoming.id], "section")
        draft.fields.extend(field.model_copy(deep=True) for field in fields)
        ordered = page.ordered_sections()
        ordered.insert(len(ordered) if index is None else index, incoming)
        page.sections = _reindex(ordered)
        return self._commit(project, draft, "insert_section")

    def update_section(self, project: Project, section_id: str, updates: Mapping[str, Any]) -> Project:
        draft = project.model_copy(deep=True)
        page = draft.page_of_section(section_id)
        merged = _merge(draft.get_section(section_id), updates, protected=_SECTION_PROTECTED)
        page.sections = [merged if item.id == section_id else item for item in page.sections]
        return self._commit(project, draft, "update_section")

    def delete_section(self, project: Project, section_id: str) -> Project:
        draft = project.model_copy(deep=True)
        page = draft.page_of_section(section_id)
        released = list(draft.get_section(section_id).fields)
        page.sections = _reindex([item for item in page.ordered_sections() if item.id != section_id])
        _release_fields(draft, released)
        return self._commit(project, draft, "delete_section")

    def duplicate_section(self, project: Project, section_id: str) -> tuple[Project, str]:
        draft = project.model_copy(deep=True)
        page = draft.page_of_section(section_id)
        source = draft.get_section(section_id)
        clone, field_clones = self._clone_section(draft, source, draft.all_ids())
        clone.title = f"{source.title} (Copy)"
        draft.fields.extend(field_clones)
        ordered = page.ordered_sections()
        ordered.insert(ordered.index(source) + 1, clone)
        page.sections = _reindex(ordered)
        return self._commit(project, draft, "duplicate_section"), clone.id

    def move_section(
        self,
        project: Project,
        section_id: str,
        target_page_id: str,
        index: int | None = None,
    ) -> Project:
        draft = project.model_copy(deep=True)
        source_page = draft.page_of_section(section_id)
        target_page = draft.get_page(target_page_id)
        section = draft.get_section(section_id)
        source_page.sections = _reindex([item for item in source_page.ordered_sections() if item.id != section_id])
        ordered = target_page.ordered_sections()
        if index is None or index > len(ordered):
            index = len(ordered)
        ordered.insert(max(index, 0), section)
        target_page.sections = _reindex(ordered)
        return self._commit(project, draft, "move_section")

    def reorder_sections(self, project: Project, page_id: str, ordered_ids: Sequence[str]) -> Project:
        draft = project.model_copy(deep=True)
        page = draft.get_page(page_id)
        _check_closure(page_id, [section.id for section in page.ordered_sections()], ordered_ids)
        by_id = {section.id: section for section in page.sections}
        page.sections = _reindex([by_id[section_id] for section_id in ordered_ids])
        return self._commit(project, draft, "reorder_sections")

    def set_section_layout(self, project: Project, section_id: str, layout_type: LayoutType | str) -> Project:
        draft = project.model_copy(deep=True)
        section = draft.get_section(section_id)
        section.layout = Layout.for_type(LayoutType(layout_type), section.id, section.fields, current=section.layout)
        return self._commit(project, draft, "set_section_layout")

    # Fields ------------------------------------------------------------------

    def add_field(
        self,
        project: Project,
        target_id: str,
        field_type: FieldType | str,
        *,
        after_field_id: str | None = None,
        created_by: str | None = None,
    ) -> tuple[Project, str]:
        """Create a default field of ``field_type`` and place it in a section or column."""
        draft = project.model_copy(deep=True)
        section, column = _resolve_container(draft, target_id)
        field_id = self._new_id("field", draft.all_ids())
        field = create_default_field(
            FieldType(field_type),
            field_id=field_id,
            section_id=section.id,
            now=self._clock(),
            created_by=created_by,
        )
        draft.fields.append(field)
        _place(section, column, field_id, after_field_id)
        return self._commit(project, draft, "add_field"), field_id

    def insert_field(
        self,
        project: Project,
        target_id: str | None,
        field: FormField,
        *,
        after_field_id: str | None = None,
    ) -> Project:
        """Add a fully built field keeping its id (used when replaying remote edits).

        With no ``target_id`` the field only joins the arena, unplaced.
        """
        draft = project.model_copy(deep=True)
        _reject_taken(draft.all_ids(), [field.id], "field")
        incoming = field.model_copy(deep=True)
        if target_id is None:
            incoming.metadata.section_id = None
            draft.fields.append(incoming)
            return self._commit(project, draft, "insert_field")
        section, column = _resolve_container(draft, target_id)
        incoming.metadata.section_id = section.id
        draft.fields.append(incoming)
        _place(section, column, incoming.id, after_field_id)
        return self._commit(project, draft, "insert_field")

    def add_fields(
        self,
        project: Project,
        target_id: str,
        fields: Sequence[FormField],
    ) -> tuple[Project, list[str]]:
        """Place a batch of prepared fields under fresh ids, as one mutation.

        Conditions inside the batch that point at other batch members follow
        them to their new ids.
        """
        taken = project.all_ids()
        id_map = {field.id: self._new_id("field", taken) for field in fields}
        now = self._clock()
        clones: list[FormField] = []
        for field in fields:
            clone = field.model_copy(deep=True)
            clone.id = id_map[field.id]
            clone.conditional = _remap_rule(clone.conditional, id_map)
            clone.metadata.created_at = now
            clone.metadata.updated_at = now
            clones.append(clone)
        return self.insert_fields(project, target_id, clones), [clone.id for clone in clones]

    def insert_fields(self, project: Project, target_id: str, fields: Sequence[FormField]) -> Project:
        """Place a batch of fully built fields keeping their ids, as one mutation."""
        draft = project.model_copy(deep=True)
        section, column = _resolve_container(draft, target_id)
        _reject_taken(draft.all_ids(), [field.id for field in fields], "field")
        for field in fields:
            incoming = field.model_copy(deep=True)
            incoming.metadata.section_id = section.id
            draft.fields.append(incoming)
            _place(section, column, incoming.id, None)
        return self._commit(project, draft, "insert_fields")

    def update_field(self, project: Project, field_id: str, updates: Mapping[str, Any]) -> Project:
        draft = project.model_copy(deep=True)
        field = draft.get_field(field_id)
        updates = dict(updates)
        new_type = updates.get("type")
        if new_type is not None:
            new_type = FieldType(new_type)
            has_options = "options" in updates and updates["options"] is not None
            if new_type in CHOICE_FIELD_TYPES and not has_options:
                updates["options"] = list(field.options or DEFAULT_OPTIONS)
            elif new_type not in CHOICE_FIELD_TYPES:
                updates["options"] = None
        merged = _merge(field, updates, protected=_FIELD_PROTECTED)
        merged.metadata.updated_at = self._clock()
        draft.fields = [merged if item.id == field_id else item for item in draft.fields]
        return self._commit(project, draft, "update_field")

    def delete_field(self, project: Project, field_id: str) -> Project:
        draft = project.model_copy(deep=True)
        draft.get_field(field_id)
        draft.fields = [item for item in draft.fields if item.id != field_id]
        for section in draft.iter_sections():
            _unplace(section, field_id)
        return self._commit(project, draft, "delete_field")

    def duplicate_field(self, project: Project, field_id: str) -> tuple[Project, str]:
        draft = project.model_copy(deep=True)
        source = draft.get_field(field_id)
        new_id = self._new_id("field", draft.all_ids())
        now = self._clock()
        clone = source.model_copy(deep=True)
        clone.id = new_id
        clone.label = f"{source.label} (Copy)"
        clone.metadata.created_at = now
        clone.metadata.updated_at = now
        position = [item.id for item in draft.fields].index(field_id)
        draft.fields.insert(position + 1, clone)

        section = draft.find_section_of_field(field_id)
        if section is not None:
            _insert_after(section.fields, field_id, new_id)
            column = section.layout.column_of(field_id)
            if column is not None:
                _insert_after(column.fields, field_id, new_id)
        return self._commit(project, draft, "duplicate_field"), new_id

    def move_field(
        self,
        project: Project,
        field_id: str,
        target_id: str,
        *,
        after_field_id: str | None = None,
    ) -> Project:
        """Relocate a field placement to a section or column, optionally after a sibling."""
        if after_field_id == field_id:
            raise InvariantViolation(f"Field {field_id} cannot be placed after itself")
        draft = project.model_copy(deep=True)
        field = draft.get_field(field_id)
        section, column = _resolve_container(draft, target_id)
        current = draft.find_section_of_field(field_id)
        if current is not None:
            _unplace(current, field_id)
        _place(section, column, field_id, after_field_id)
        field.metadata.section_id = section.id
        return self._commit(project, draft, "move_field")

    def reorder_fields(self, project: Project, container_id: str, ordered_ids: Sequence[str]) -> Project:
        draft = project.model_copy(deep=True)
        section, column = _resolve_container(draft, container_id)
        if column is not None and column.id == container_id:
            _check_closure(container_id, column.fields, ordered_ids)
            column.fields = list(ordered_ids)
            if section.layout.type == LayoutType.single and len(section.layout.columns) == 1:
                if sorted(column.fields) == sorted(section.fields):
                    section.fields = list(ordered_ids)
        else:
            _check_closure(container_id, section.fields, ordered_ids)
            section.fields = list(ordered_ids)
            # A single column mirrors the section order.
            if section.layout.type == LayoutType.single and len(section.layout.columns) == 1:
                only = section.layout.columns[0]
                if sorted(only.fields) == sorted(section.fields):
                    only.fields = list(ordered_ids)
        return self._commit(project, draft, "reorder_fields")

    def remove_orphaned_fields(self, project: Project) -> tuple[Project, list[str]]:
        draft = project.model_copy(deep=True)
        orphaned = draft.orphaned_field_ids()
        draft.fields = [field for field in draft.fields if field.id not in set(orphaned)]
        return self._commit(project, draft, "remove_orphaned_fields"), orphaned

    # Internals ---------------------------------------------------------------

    def _commit(self, previous: Project, draft: Project, mutation: str) -> Project:
        now = self._clock()
        previous_at = as_utc(previous.updated_at)
        draft.updated_at = max(as_utc(now), previous_at)
        draft.version = previous.version + 1
        committed = Project.model_validate(draft.model_dump())
        logger.debug(
            "Committed mutation",
            extra={"project_id": committed.id, "mutation": mutation, "version": committed.version},
        )
        return committed

    def _new_id(self, prefix: str, taken: set[str]) -> str:
        while True:
            candidate = self._id_factory(prefix)
            if candidate not in taken:
                taken.add(candidate)
                return candidate

    def _clone_section(
        self,
        draft: Project,
        source: Section,
        taken: set[str],
    ) -> tuple[Section, list[FormField]]:
        new_section_id = self._new_id("section", taken)
        id_map = {field_id: self._new_id("field", taken) for field_id in source.fields}
        now = self._clock()

        field_clones: list[FormField] = []
        for field_id in source.fields:
            clone = draft.get_field(field_id).model_copy(deep=True)
            clone.id = id_map[field_id]
            clone.label = f"{clone.label} (Copy)"
            clone.conditional = _remap_rule(clone.conditional, id_map)
            clone.metadata.section_id = new_section_id
            clone.metadata.created_at = now
            clone.metadata.updated_at = now
            field_clones.append(clone)

        section = source.model_copy(deep=True)
        section.id = new_section_id
        section.fields = [id_map[field_id] for field_id in source.fields]
        section.layout.columns = [
            Column(
                id=column_id(new_section_id, index),
                width=column.width,
                fields=[id_map[field_id] for field_id in column.fields],
            )
            for index, column in enumerate(source.layout.columns)
        ]
        if section.conditional is not None:
            section.conditional = _remap_rule(section.conditional, id_map)
        return section, field_clones


def _attribute_index(model_cls: type[BaseModel]) -> dict[str, str]:
    index: dict[str, str] = {}
    for name, info in model_cls.model_fields.items():
        index[name] = name
        index[to_camel(name)] = name
        if info.alias:
            index[info.alias] = name
    return index


def _merge(model: ModelT, updates: Mapping[str, Any], *, protected: Iterable[str] = ()) -> ModelT:
    """Shallow merge of ``updates`` into ``model``, re-validated as a new instance."""
    model_cls = type(model)
    index = _attribute_index(model_cls)
    blocked = set(protected)
    normalized: dict[str, Any] = {}
    for key, value in updates.items():
        name = index.get(key)
        if name is None:
            raise InvariantViolation(f"Unknown {model_cls.__name__} attribute: {key}")
        if name in blocked:
            raise InvariantViolation(f"{model_cls.__name__}.{name} cannot be changed by an update")
        normalized[name] = value
    data = model.model_dump()
    data.update(normalized)
    return model_cls.model_validate(data)


def _resolve_container(project: Project, target_id: str) -> tuple[Section, Column | None]:
    for section in project.iter_sections():
        if section.id == target_id:
            return section, None
        column = section.find_column(target_id)
        if column is not None:
            return section, column
    raise NotFoundError("Container", target_id)


def _insert_after(items: list[str], anchor: str | None, item: str) -> None:
    if anchor is not None and anchor in items:
        items.insert(items.index(anchor) + 1, item)
    else:
        items.append(item)


def _place(section: Section, column: Column | None, field_id: str, after_field_id: str | None) -> None:
    if after_field_id is not None and after_field_id not in section.fields:
        raise InvariantViolation(f"Field {after_field_id} is not placed in section {section.id}")
    _insert_after(section.fields, after_field_id, field_id)
    if column is None:
        column = section.layout.column_of(after_field_id) if after_field_id else None
    if column is None and section.layout.columns:
        column = section.layout.columns[0]
    if column is not None:
        anchor = after_field_id if after_field_id in column.fields else None
        _insert_after(column.fields, anchor, field_id)


def _unplace(section: Section, field_id: str) -> None:
    section.fields = [item for item in section.fields if item != field_id]
    for column in section.layout.columns:
        column.fields = [item for item in column.fields if item != field_id]


def _release_fields(project: Project, field_ids: Iterable[str]) -> None:
    released = set(field_ids)
    for field in project.fields:
        if field.id in released:
            field.metadata.section_id = None


def _reindex(items: list) -> list:
    for position, item in enumerate(items):
        item.order = position
    return items


def _check_closure(container_id: str, existing: Sequence[str], proposed: Sequence[str]) -> None:
    if sorted(existing) != sorted(proposed):
        raise InvariantViolation(
            f"Reorder of {container_id} must contain exactly the existing ids "
            f"(expected {sorted(existing)}, got {sorted(proposed)})"
        )


def _reject_taken(taken: set[str], ids: Iterable[str], kind: str) -> None:
    for entity_id in ids:
        if entity_id in taken:
            raise InvariantViolation(f"Duplicate {kind} id: {entity_id}")


def _remap_rule(rule: ConditionalRule, id_map: Mapping[str, str]) -> ConditionalRule:
    remapped = rule.model_copy(deep=True)
    for condition in remapped.conditions:
        condition.field_id = id_map.get(condition.field_id, condition.field_id)
    return remapped


__all__ = ["MutationEngine"]
