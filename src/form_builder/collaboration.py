from __future__ import annotations

import logging
from collections import deque
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Sequence

from pydantic import Field

from .defaults import Clock
from .errors import InvariantViolation
from .models.base import FormModel
from .models.document import Page, Project, Section, utcnow
from .models.field import FieldType, FormField
from .models.layout import LayoutType
from .mutations import MutationEngine
from .templates import get_template

logger = logging.getLogger(__name__)

RECENT_UPDATES_LIMIT = 10


class UpdateType(str, Enum):
    field_added = "field_added"
    fields_added = "fields_added"
    field_updated = "field_updated"
    field_deleted = "field_deleted"
    field_moved = "field_moved"
    field_duplicated = "field_duplicated"
    fields_reordered = "fields_reordered"
    section_added = "section_added"
    section_updated = "section_updated"
    section_deleted = "section_deleted"
    section_moved = "section_moved"
    sections_reordered = "sections_reordered"
    page_added = "page_added"
    page_updated = "page_updated"
    page_deleted = "page_deleted"
    pages_reordered = "pages_reordered"
    project_updated = "project_updated"
    template_applied = "template_applied"


class CollaborationUpdate(FormModel):
    """One mutation's effect, shaped for broadcast to other editors.

    Creates carry the full entity (``field``, ``section`` or ``page`` plus any
    ``fields`` it places) so receivers can insert it under the same ids.
    """

    type: UpdateType
    project_id: str
    field_id: str | None = None
    section_id: str | None = None
    page_id: str | None = None
    target_id: str | None = None
    after_field_id: str | None = None
    index: int | None = None
    field: FormField | None = None
    section: Section | None = None
    page: Page | None = None
    fields: list[FormField] = Field(default_factory=list)
    updates: dict[str, Any] = Field(default_factory=dict)
    ordered_ids: list[str] = Field(default_factory=list)
    template_id: str | None = None
    user_id: str
    timestamp: int
    version: int


def _epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def build_update(
    update_type: UpdateType,
    project: Project,
    *,
    user_id: str,
    clock: Clock = utcnow,
    **payload: Any,
) -> CollaborationUpdate:
    """Wrap the result of a mutation as a :class:`CollaborationUpdate`."""
    return CollaborationUpdate(
        type=update_type,
        project_id=project.id,
        user_id=user_id,
        timestamp=_epoch_ms(clock()),
        version=project.version,
        **payload,
    )


def _placement_target(project: Project, field_id: str) -> str | None:
    located = project.find_section_of_field(field_id)
    if located is None:
        return None
    column = located.layout.column_of(field_id)
    return column.id if column is not None else located.id


def _placed_fields(project: Project, section: Section) -> list[FormField]:
    return [project.get_field(field_id) for field_id in section.fields]


class CollaborativeEditor:
    """Runs mutations for one user and records the update each one produced."""

    def __init__(
        self,
        engine: MutationEngine,
        user_id: str,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self.engine = engine
        self.user_id = user_id
        self._clock = clock
        self._recent: deque[CollaborationUpdate] = deque(maxlen=RECENT_UPDATES_LIMIT)

    @property
    def recent_updates(self) -> list[CollaborationUpdate]:
        """Newest first."""
        return list(reversed(self._recent))

    def _record(self, update_type: UpdateType, project: Project, **payload: Any) -> CollaborationUpdate:
        update = build_update(update_type, project, user_id=self.user_id, clock=self._clock, **payload)
        self._recent.append(update)
        logger.debug(
            "Recorded collaboration update",
            extra={"project_id": project.id, "update_type": update_type.value, "version": update.version},
        )
        return update

    # Fields

    def add_field(
        self,
        project: Project,
        target_id: str,
        field_type: FieldType | str,
        *,
        after_field_id: str | None = None,
    ) -> tuple[Project, CollaborationUpdate]:
        result, field_id = self.engine.add_field(
            project, target_id, field_type, after_field_id=after_field_id, created_by=self.user_id
        )
        located = result.find_section_of_field(field_id)
        update = self._record(
            UpdateType.field_added,
            result,
            field_id=field_id,
            section_id=located.id if located else None,
            target_id=_placement_target(result, field_id),
            after_field_id=after_field_id,
            field=result.get_field(field_id),
        )
        return result, update

    def add_fields(
        self, project: Project, target_id: str, fields: Sequence[FormField]
    ) -> tuple[Project, CollaborationUpdate]:
        result, field_ids = self.engine.add_fields(project, target_id, fields)
        update = self._record(
            UpdateType.fields_added,
            result,
            target_id=target_id,
            fields=[result.get_field(field_id) for field_id in field_ids],
        )
        return result, update

    def update_field(
        self, project: Project, field_id: str, updates: Mapping[str, Any]
    ) -> tuple[Project, CollaborationUpdate]:
        result = self.engine.update_field(project, field_id, updates)
        return result, self._record(UpdateType.field_updated, result, field_id=field_id, updates=dict(updates))

    def delete_field(self, project: Project, field_id: str) -> tuple[Project, CollaborationUpdate]:
        result = self.engine.delete_field(project, field_id)
        return result, self._record(UpdateType.field_deleted, result, field_id=field_id)

    def duplicate_field(self, project: Project, field_id: str) -> tuple[Project, CollaborationUpdate]:
        result, new_id = self.engine.duplicate_field(project, field_id)
        update = self._record(
            UpdateType.field_duplicated,
            result,
            field_id=new_id,
            target_id=_placement_target(result, new_id),
            after_field_id=field_id,
            field=result.get_field(new_id),
        )
        return result, update

    def move_field(
        self,
        project: Project,
        field_id: str,
        target_id: str,
        *,
        after_field_id: str | None = None,
    ) -> tuple[Project, CollaborationUpdate]:
        result = self.engine.move_field(project, field_id, target_id, after_field_id=after_field_id)
        update = self._record(
            UpdateType.field_moved,
            result,
            field_id=field_id,
            target_id=target_id,
            after_field_id=after_field_id,
        )
        return result, update

    def reorder_fields(
        self, project: Project, container_id: str, ordered_ids: Sequence[str]
    ) -> tuple[Project, CollaborationUpdate]:
        result = self.engine.reorder_fields(project, container_id, ordered_ids)
        update = self._record(
            UpdateType.fields_reordered, result, target_id=container_id, ordered_ids=list(ordered_ids)
        )
        return result, update

    # Sections

    def add_section(self, project: Project, page_id: str) -> tuple[Project, CollaborationUpdate]:
        result, section_id = self.engine.add_section(project, page_id)
        section = result.get_section(section_id)
        update = self._record(
            UpdateType.section_added,
            result,
            section_id=section_id,
            page_id=page_id,
            index=section.order,
            section=section,
        )
        return result, update

    def duplicate_section(self, project: Project, section_id: str) -> tuple[Project, CollaborationUpdate]:
        result, new_id = self.engine.duplicate_section(project, section_id)
        section = result.get_section(new_id)
        update = self._record(
            UpdateType.section_added,
            result,
            section_id=new_id,
            page_id=result.page_of_section(new_id).id,
            index=section.order,
            section=section,
            fields=_placed_fields(result, section),
        )
        return result, update

    def update_section(
        self, project: Project, section_id: str, updates: Mapping[str, Any]
    ) -> tuple[Project, CollaborationUpdate]:
        result = self.engine.update_section(project, section_id, updates)
        return result, self._record(
            UpdateType.section_updated, result, section_id=section_id, updates=dict(updates)
        )

    def set_section_layout(
        self, project: Project, section_id: str, layout_type: LayoutType | str
    ) -> tuple[Project, CollaborationUpdate]:
        result = self.engine.set_section_layout(project, section_id, layout_type)
        layout = result.get_section(section_id).layout
        return result, self._record(
            UpdateType.section_updated,
            result,
            section_id=section_id,
            updates={"layout": layout.model_dump(by_alias=True)},
        )

    def delete_section(self, project: Project, section_id: str) -> tuple[Project, CollaborationUpdate]:
        result = self.engine.delete_section(project, section_id)
        return result, self._record(UpdateType.section_deleted, result, section_id=section_id)

    def move_section(
        self,
        project: Project,
        section_id: str,
        target_page_id: str,
        index: int | None = None,
    ) -> tuple[Project, CollaborationUpdate]:
        result = self.engine.move_section(project, section_id, target_page_id, index)
        update = self._record(
            UpdateType.section_moved,
            result,
            section_id=section_id,
            target_id=target_page_id,
            index=index,
        )
        return result, update

    def reorder_sections(
        self, project: Project, page_id: str, ordered_ids: Sequence[str]
    ) -> tuple[Project, CollaborationUpdate]:
        result = self.engine.reorder_sections(project, page_id, ordered_ids)
        return result, self._record(
            UpdateType.sections_reordered, result, page_id=page_id, ordered_ids=list(ordered_ids)
        )

    # Pages

    def add_page(self, project: Project) -> tuple[Project, CollaborationUpdate]:
        result, page_id = self.engine.add_page(project)
        page = result.get_page(page_id)
        return result, self._record(UpdateType.page_added, result, page_id=page_id, index=page.order, page=page)

    def duplicate_page(self, project: Project, page_id: str) -> tuple[Project, CollaborationUpdate]:
        result, new_id = self.engine.duplicate_page(project, page_id)
        page = result.get_page(new_id)
        placed = [field for section in page.sections for field in _placed_fields(result, section)]
        update = self._record(
            UpdateType.page_added, result, page_id=new_id, index=page.order, page=page, fields=placed
        )
        return result, update

    def update_page(
        self, project: Project, page_id: str, updates: Mapping[str, Any]
    ) -> tuple[Project, CollaborationUpdate]:
        result = self.engine.update_page(project, page_id, updates)
        return result, self._record(UpdateType.page_updated, result, page_id=page_id, updates=dict(updates))

    def delete_page(self, project: Project, page_id: str) -> tuple[Project, CollaborationUpdate]:
        result = self.engine.delete_page(project, page_id)
        return result, self._record(UpdateType.page_deleted, result, page_id=page_id)

    def reorder_pages(self, project: Project, ordered_ids: Sequence[str]) -> tuple[Project, CollaborationUpdate]:
        result = self.engine.reorder_pages(project, ordered_ids)
        return result, self._record(UpdateType.pages_reordered, result, ordered_ids=list(ordered_ids))

    # Project

    def update_project(
        self, project: Project, updates: Mapping[str, Any]
    ) -> tuple[Project, CollaborationUpdate]:
        result = self.engine.update_project(project, updates)
        return result, self._record(UpdateType.project_updated, result, updates=dict(updates))

    def update_settings(
        self, project: Project, updates: Mapping[str, Any]
    ) -> tuple[Project, CollaborationUpdate]:
        result = self.engine.update_settings(project, updates)
        return result, self._record(
            UpdateType.project_updated,
            result,
            updates={"settings": result.settings.model_dump(by_alias=True)},
        )


    def apply_template(self, project: Project, template_id: str) -> tuple[Project, CollaborationUpdate]:
        result = self.engine.apply_template(project, get_template(template_id))
        return result, self._record(UpdateType.template_applied, result, template_id=template_id)


def _require(value: Any, name: str, update: CollaborationUpdate) -> Any:
    if value is None:
        raise InvariantViolation(f"{update.type.value} update is missing {name}")
    return value


def apply_update(engine: MutationEngine, project: Project, update: CollaborationUpdate) -> Project:
    """Replay a received update on ``project``.

    Updates are applied in the order they arrive and the latest one wins;
    there is no merging. Errors from the engine propagate and leave
    ``project`` untouched.
    """
    if update.project_id != project.id:
        raise InvariantViolation(f"Update for project {update.project_id} cannot be applied to {project.id}")

    logger.info(
        "Applying collaboration update",
        extra={
            "project_id": project.id,
            "update_type": update.type.value,
            "user_id": update.user_id,
            "local_version": project.version,
            "remote_version": update.version,
        },
    )

    kind = update.type
    if kind in (UpdateType.field_added, UpdateType.field_duplicated):
        field = _require(update.field, "field", update)
        return engine.insert_field(project, update.target_id, field, after_field_id=update.after_field_id)
    if kind == UpdateType.fields_added:
        return engine.insert_fields(project, _require(update.target_id, "target_id", update), update.fields)
    if kind == UpdateType.field_updated:
        return engine.update_field(project, _require(update.field_id, "field_id", update), update.updates)
    if kind == UpdateType.field_deleted:
        return engine.delete_field(project, _require(update.field_id, "field_id", update))
    if kind == UpdateType.field_moved:
        return engine.move_field(
            project,
            _require(update.field_id, "field_id", update),
            _require(update.target_id, "target_id", update),
            after_field_id=update.after_field_id,
        )
    if kind == UpdateType.fields_reordered:
        return engine.reorder_fields(project, _require(update.target_id, "target_id", update), update.ordered_ids)
    if kind == UpdateType.section_added:
        return engine.insert_section(
            project,
            _require(update.page_id, "page_id", update),
            _require(update.section, "section", update),
            fields=update.fields,
            index=update.index,
        )
    if kind == UpdateType.section_updated:
        return engine.update_section(project, _require(update.section_id, "section_id", update), update.updates)
    if kind == UpdateType.section_deleted:
        return engine.delete_section(project, _require(update.section_id, "section_id", update))
    if kind == UpdateType.section_moved:
        return engine.move_section(
            project,
            _require(update.section_id, "section_id", update),
            _require(update.target_id, "target_id", update),
            update.index,
        )
    if kind == UpdateType.sections_reordered:
        return engine.reorder_sections(project, _require(update.page_id, "page_id", update), update.ordered_ids)
    if kind == UpdateType.page_added:
        return engine.insert_page(
            project, _require(update.page, "page", update), fields=update.fields, index=update.index
        )
    if kind == UpdateType.page_updated:
        return engine.update_page(project, _require(update.page_id, "page_id", update), update.updates)
    if kind == UpdateType.page_deleted:
        return engine.delete_page(project, _require(update.page_id, "page_id", update))
    if kind == UpdateType.pages_reordered:
        return engine.reorder_pages(project, update.ordered_ids)
    if kind == UpdateType.project_updated:
        return engine.update_project(project, update.updates)
    if kind == UpdateType.template_applied:
        return engine.apply_template(project, get_template(_require(update.template_id, "template_id", update)))
    raise InvariantViolation(f"Unsupported update type: {kind}")


__all__ = [
    "CollaborationUpdate",
    "CollaborativeEditor",
    "RECENT_UPDATES_LIMIT",
    "UpdateType",
    "apply_update",
    "build_update",
]
