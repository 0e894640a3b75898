from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

from .errors import NotFoundError
from .models.document import Project
from .models.field import FieldType
from .mutations import MutationEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaletteSource:
    """A new field dragged out of the palette."""

    field_type: FieldType


@dataclass(frozen=True)
class ExistingFieldSource:
    field_id: str


@dataclass(frozen=True)
class SectionDropZone:
    """The terminal drop zone at the end of a section."""

    section_id: str


@dataclass(frozen=True)
class ColumnDropZone:
    column_id: str


@dataclass(frozen=True)
class FieldDropTarget:
    """Dropping onto an existing field inserts right after it."""

    field_id: str


DragSource = Union[PaletteSource, ExistingFieldSource]
DropTarget = Union[SectionDropZone, ColumnDropZone, FieldDropTarget]


@dataclass(frozen=True)
class PlacementResult:
    project: Project
    field_id: str | None = None
    applied: bool = False


@dataclass(frozen=True)
class _ResolvedTarget:
    container_id: str
    after_field_id: str | None = None


class DragPlacementResolver:
    def __init__(self, engine: MutationEngine | None = None) -> None:
        self._engine = engine or MutationEngine()

    def resolve(
        self,
        project: Project,
        source: DragSource,
        target: DropTarget | None,
        *,
        actor_id: str | None = None,
    ) -> PlacementResult:
        """Turn a drop gesture into at most one mutation.

        Drops that do not land on a real container are cancelled: the input
        project comes back unchanged and nothing is raised.
        """
        resolved = self._resolve_target(project, target)
        if resolved is None:
            logger.debug("Drop cancelled: no container", extra={"project_id": project.id, "target": repr(target)})
            return PlacementResult(project=project)

        if isinstance(source, PaletteSource):
            updated, field_id = self._engine.add_field(
                project,
                resolved.container_id,
                source.field_type,
                after_field_id=resolved.after_field_id,
                created_by=actor_id,
            )
            return PlacementResult(project=updated, field_id=field_id, applied=True)

        if not project.has_field(source.field_id) or source.field_id == resolved.after_field_id:
            logger.debug(
                "Drop cancelled: field cannot move there",
                extra={"project_id": project.id, "field_id": source.field_id},
            )
            return PlacementResult(project=project, field_id=source.field_id)

        updated = self._engine.move_field(
            project,
            source.field_id,
            resolved.container_id,
            after_field_id=resolved.after_field_id,
        )
        return PlacementResult(project=updated, field_id=source.field_id, applied=True)

    def _resolve_target(self, project: Project, target: DropTarget | None) -> _ResolvedTarget | None:
        if target is None:
            return None
        if isinstance(target, SectionDropZone):
            try:
                project.get_section(target.section_id)
            except NotFoundError:
                return None
            return _ResolvedTarget(container_id=target.section_id)
        if isinstance(target, ColumnDropZone):
            if project.find_column(target.column_id) is None:
                return None
            return _ResolvedTarget(container_id=target.column_id)
        if isinstance(target, FieldDropTarget):
            section = project.find_section_of_field(target.field_id)
            if section is None:
                return None
            column = section.layout.column_of(target.field_id)
            container_id = column.id if column is not None else section.id
            return _ResolvedTarget(container_id=container_id, after_field_id=target.field_id)
        return None


__all__ = [
    "ColumnDropZone",
    "DragPlacementResolver",
    "DragSource",
    "DropTarget",
    "ExistingFieldSource",
    "FieldDropTarget",
    "PaletteSource",
    "PlacementResult",
    "SectionDropZone",
]
