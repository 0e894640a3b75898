from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Protocol

from pydantic import Field

from .conditions import VisibilityResolver
from .defaults import Clock, IdFactory, default_id_factory
from .errors import AuthenticationRequired, DuplicateSubmission, ValidationFailed
from .models.base import FormModel
from .models.document import Project, utcnow
from .validation import validate_values

logger = logging.getLogger(__name__)


class SubmissionMetadata(FormModel):
    user_agent: str | None = None
    ip_address: str | None = None
    referrer: str | None = None
    submitted_at: datetime | None = None


class Submission(FormModel):
    id: str
    form_id: str
    data: dict[str, Any] = Field(default_factory=dict)
    metadata: SubmissionMetadata = Field(default_factory=SubmissionMetadata)
    user_id: str | None = None
    form_version: int | None = None


class SubmissionStore(Protocol):
    def add(self, submission: Submission) -> Submission: ...

    def list_for_form(self, form_id: str, *, offset: int = 0, limit: int = 50) -> list[Submission]: ...

    def has_submitted(self, form_id: str, user_id: str) -> bool: ...


class InMemorySubmissionStore:
    def __init__(self) -> None:
        self._submissions: Dict[str, Submission] = {}
        self._lock = threading.Lock()

    def add(self, submission: Submission) -> Submission:
        with self._lock:
            self._submissions[submission.id] = submission
            return submission

    def list_for_form(self, form_id: str, *, offset: int = 0, limit: int = 50) -> list[Submission]:
        with self._lock:
            matching = [item for item in self._submissions.values() if item.form_id == form_id]
        return matching[offset : offset + limit]

    def has_submitted(self, form_id: str, user_id: str) -> bool:
        with self._lock:
            return any(
                item.form_id == form_id and item.user_id == user_id for item in self._submissions.values()
            )


Notifier = Callable[[Project, Submission], None]


class SubmissionService:
    """Turns raw form values into a stored submission.

    Only visible, value-collecting fields are kept and validated, so a field
    hidden by a condition never blocks submission even when it is required.
    """

    def __init__(
        self,
        *,
        store: SubmissionStore | None = None,
        notifier: Notifier | None = None,
        clock: Clock = utcnow,
        id_factory: IdFactory = default_id_factory,
    ) -> None:
        self.store = store or InMemorySubmissionStore()
        self._notifier = notifier
        self._clock = clock
        self._id_factory = id_factory

    def prepare(self, project: Project, values: Mapping[str, Any]) -> dict[str, Any]:
        """Return the cleaned values map or raise :class:`ValidationFailed`."""
        snapshot = VisibilityResolver(project).snapshot(values)
        errors = validate_values(project, values, snapshot=snapshot)
        if errors:
            raise ValidationFailed(errors)

        cleaned: dict[str, Any] = {}
        for field_id in project.placed_field_ids():
            if field_id not in values or not snapshot.is_visible(field_id):
                continue
            if project.get_field(field_id).is_display_only:
                continue
            cleaned[field_id] = values[field_id]
        return cleaned

    def submit(
        self,
        project: Project,
        values: Mapping[str, Any],
        metadata: SubmissionMetadata | None = None,
        user_id: str | None = None,
    ) -> Submission:
        settings = project.settings
        if settings.require_authentication and not user_id:
            raise AuthenticationRequired(f"Form {project.id} requires authentication")
        if user_id and not settings.allow_multiple_submissions and self.store.has_submitted(project.id, user_id):
            raise DuplicateSubmission(f"User {user_id} has already submitted form {project.id}")

        data = self.prepare(project, values)
        stamped = (metadata or SubmissionMetadata()).model_copy(deep=True)
        if stamped.submitted_at is None:
            stamped.submitted_at = self._clock()

        submission = self.store.add(
            Submission(
                id=self._id_factory("submission"),
                form_id=project.id,
                data=data,
                metadata=stamped,
                user_id=user_id,
                form_version=project.version,
            )
        )

        logger.info(
            "Form submitted",
            extra={"form_id": project.id, "submission_id": submission.id, "field_count": len(data)},
        )

        if settings.enable_notifications and self._notifier is not None:
            self._notify(project, submission)

        return submission

    def _notify(self, project: Project, submission: Submission) -> None:
        try:
            self._notifier(project, submission)
        except Exception:
            logger.warning(
                "Submission notification failed (non-fatal)",
                exc_info=True,
                extra={"form_id": project.id, "submission_id": submission.id},
            )


__all__ = [
    "InMemorySubmissionStore",
    "Notifier",
    "Submission",
    "SubmissionMetadata",
    "SubmissionService",
    "SubmissionStore",
]
