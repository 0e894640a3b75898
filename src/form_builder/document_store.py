from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, Protocol

from .models.document import Project, as_utc


@dataclass
class DocumentPage:
    items: list[Project] = field(default_factory=list)
    total: int = 0
    offset: int = 0
    limit: int = 20


class DocumentStore(Protocol):
    def save(self, project: Project) -> Project: ...

    def load(self, project_id: str) -> Project | None: ...

    def delete(self, project_id: str) -> bool: ...

    def list(
        self,
        owner_id: str | None,
        *,
        offset: int = 0,
        limit: int = 20,
        search: str | None = None,
    ) -> DocumentPage: ...


def owned_by(project: Project, owner_id: str | None) -> bool:
    if owner_id is None:
        return True
    return project.created_by == owner_id or owner_id in project.collaborators


def matches_search(project: Project, search: str | None) -> bool:
    if not search:
        return True
    needle = search.casefold()
    return (
        needle in project.title.casefold()
        or needle in project.description.casefold()
        or any(needle in tag.casefold() for tag in project.tags)
    )


class InMemoryDocumentStore:
    def __init__(self) -> None:
        self._projects: Dict[str, Project] = {}
        self._lock = threading.Lock()

    def save(self, project: Project) -> Project:
        with self._lock:
            self._projects[project.id] = project.model_copy(deep=True)
            return project

    def load(self, project_id: str) -> Project | None:
        with self._lock:
            stored = self._projects.get(project_id)
            return stored.model_copy(deep=True) if stored is not None else None

    def delete(self, project_id: str) -> bool:
        with self._lock:
            return self._projects.pop(project_id, None) is not None

    def list(
        self,
        owner_id: str | None,
        *,
        offset: int = 0,
        limit: int = 20,
        search: str | None = None,
    ) -> DocumentPage:
        with self._lock:
            matching = [
                project
                for project in self._projects.values()
                if owned_by(project, owner_id) and matches_search(project, search)
            ]
        matching.sort(key=lambda project: as_utc(project.updated_at), reverse=True)
        window = matching[offset : offset + limit]
        return DocumentPage(
            items=[project.model_copy(deep=True) for project in window],
            total=len(matching),
            offset=offset,
            limit=limit,
        )


__all__ = ["DocumentPage", "DocumentStore", "InMemoryDocumentStore", "matches_search", "owned_by"]
