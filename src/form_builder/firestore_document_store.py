from __future__ import annotations

import logging
from typing import Any

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from .document_store import DocumentPage, matches_search
from .models.document import Project
from .submissions import Submission

logger = logging.getLogger(__name__)


class FirestoreDocumentStore:
    """Firestore-backed form document store for production use."""

    COLLECTION_NAME = "form_projects"

    def __init__(self, project_id: str | None = None) -> None:
        self._db = firestore.Client(project=project_id)
        self._collection = self._db.collection(self.COLLECTION_NAME)

    def save(self, project: Project) -> Project:
        """Write the whole document; the last save wins."""
        self._collection.document(project.id).set(self._to_firestore_dict(project))

        logger.info(
            "Saved project",
            extra={
                "project_id": project.id,
                "version": project.version,
                "page_count": len(project.pages),
                "field_count": len(project.fields),
            },
        )

        return project

    def load(self, project_id: str) -> Project | None:
        doc = self._collection.document(project_id).get()

        if not doc.exists:
            return None

        return self._from_firestore_dict(doc.to_dict())

    def delete(self, project_id: str) -> bool:
        doc_ref = self._collection.document(project_id)
        if not doc_ref.get().exists:
            return False

        doc_ref.delete()
        logger.info("Deleted project", extra={"project_id": project_id})
        return True

    def list(
        self,
        owner_id: str | None,
        *,
        offset: int = 0,
        limit: int = 20,
        search: str | None = None,
    ) -> DocumentPage:
        """List projects visible to ``owner_id``, newest edit first.

        Firestore has no substring match, so ``search`` is applied to the
        streamed documents before paging.
        """
        query = self._collection

        if owner_id is not None:
            query = query.where(filter=FieldFilter("owner_ids", "array_contains", owner_id))

        query = query.order_by("updated_at", direction=firestore.Query.DESCENDING)

        matching = [
            project
            for project in (self._from_firestore_dict(doc.to_dict()) for doc in query.stream())
            if matches_search(project, search)
        ]

        return DocumentPage(
            items=matching[offset : offset + limit],
            total=len(matching),
            offset=offset,
            limit=limit,
        )

    def _to_firestore_dict(self, project: Project) -> dict[str, Any]:
        data = project.model_dump(mode="json")
        # Native timestamps so ordering by updated_at works server-side.
        data["created_at"] = project.created_at
        data["updated_at"] = project.updated_at
        data["owner_ids"] = sorted({*project.collaborators, *([project.created_by] if project.created_by else [])})
        return data

    def _from_firestore_dict(self, data: dict[str, Any]) -> Project:
        payload = dict(data)
        payload.pop("owner_ids", None)
        return Project.model_validate(payload)


class FirestoreSubmissionStore:
    """Firestore-backed submission store."""

    COLLECTION_NAME = "form_submissions"

    def __init__(self, project_id: str | None = None) -> None:
        self._db = firestore.Client(project=project_id)
        self._collection = self._db.collection(self.COLLECTION_NAME)

    def add(self, submission: Submission) -> Submission:
        data = submission.model_dump(mode="json")
        data["submitted_at"] = submission.metadata.submitted_at
        self._collection.document(submission.id).set(data)

        logger.info(
            "Stored submission",
            extra={"submission_id": submission.id, "form_id": submission.form_id},
        )

        return submission

    def list_for_form(self, form_id: str, *, offset: int = 0, limit: int = 50) -> list[Submission]:
        query = (
            self._collection.where(filter=FieldFilter("form_id", "==", form_id))
            .order_by("submitted_at", direction=firestore.Query.DESCENDING)
            .offset(offset)
            .limit(limit)
        )
        return [self._from_firestore_dict(doc.to_dict()) for doc in query.stream()]

    def has_submitted(self, form_id: str, user_id: str) -> bool:
        query = (
            self._collection.where(filter=FieldFilter("form_id", "==", form_id))
            .where(filter=FieldFilter("user_id", "==", user_id))
            .limit(1)
        )
        return any(True for _ in query.stream())

    def _from_firestore_dict(self, data: dict[str, Any]) -> Submission:
        payload = dict(data)
        payload.pop("submitted_at", None)
        return Submission.model_validate(payload)


__all__ = ["FirestoreDocumentStore", "FirestoreSubmissionStore"]
