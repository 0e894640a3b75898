import logging
from datetime import datetime, timezone

import pytest

from form_builder.errors import AuthenticationRequired, DuplicateSubmission, ValidationFailed
from form_builder.submissions import InMemorySubmissionStore, Submission, SubmissionMetadata, SubmissionService

VALID = {
    "name": "Ada Lovelace",
    "email": "ada@example.com",
    "contact-method": "Email",
    "phone": "",
    "intro": "ignored",
    "message": "Hello",
    "unknown": "dropped",
}


def _service(clock, ids, notifier=None):
    return SubmissionService(store=InMemorySubmissionStore(), notifier=notifier, clock=clock, id_factory=ids)


def test_submission_keeps_only_visible_value_fields(clock, ids, contact_project):
    service = _service(clock, ids)

    submission = service.submit(contact_project, VALID, SubmissionMetadata(user_agent="pytest"), user_id="user-1")

    assert submission.id == "submission-1"
    assert submission.data == {
        "name": "Ada Lovelace",
        "email": "ada@example.com",
        "contact-method": "Email",
        "message": "Hello",
    }
    assert submission.form_version == contact_project.version
    assert submission.metadata.user_agent == "pytest"
    assert submission.metadata.submitted_at == datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    assert service.store.list_for_form("project-contact") == [submission]


def test_invalid_values_raise_with_every_error(clock, ids, contact_project):
    service = _service(clock, ids)

    with pytest.raises(ValidationFailed) as excinfo:
        service.submit(contact_project, {"name": "A", "contact-method": "Phone"})

    assert excinfo.value.errors == {
        "name": "Minimum length is 2 characters",
        "email": "Email Address is required",
        "phone": "Phone Number is required",
    }
    assert service.store.list_for_form("project-contact") == []


def test_authentication_is_enforced(engine, clock, ids, contact_project):
    project = engine.update_settings(contact_project, {"requireAuthentication": True})
    service = _service(clock, ids)

    with pytest.raises(AuthenticationRequired):
        service.submit(project, VALID)

    assert service.submit(project, VALID, user_id="user-1").user_id == "user-1"


def test_repeat_submissions_can_be_blocked(engine, clock, ids, contact_project):
    project = engine.update_settings(contact_project, {"allowMultipleSubmissions": False})
    service = _service(clock, ids)
    service.submit(project, VALID, user_id="user-1")

    with pytest.raises(DuplicateSubmission):
        service.submit(project, VALID, user_id="user-1")

    service.submit(project, VALID, user_id="user-2")
    service.submit(project, VALID)
    service.submit(project, VALID)
    assert len(service.store.list_for_form(project.id)) == 4


def test_notifier_runs_only_when_enabled(engine, clock, ids, contact_project):
    seen = []
    service = _service(clock, ids, notifier=lambda project, submission: seen.append(submission.id))

    service.submit(contact_project, VALID)
    quiet = engine.update_settings(contact_project, {"enableNotifications": False})
    service.submit(quiet, VALID)

    assert seen == ["submission-1"]


def test_notifier_failure_does_not_lose_the_submission(clock, ids, contact_project, caplog):
    def broken(project, submission):
        raise RuntimeError("smtp down")

    service = _service(clock, ids, notifier=broken)

    with caplog.at_level(logging.WARNING, logger="form_builder.submissions"):
        submission = service.submit(contact_project, VALID)

    assert service.store.list_for_form("project-contact") == [submission]
    assert "Submission notification failed" in caplog.text


def test_store_pages_and_tracks_users():
    store = InMemorySubmissionStore()
    service = SubmissionService(store=store)
    assert not store.has_submitted("form", "user-1")

    for index in range(3):
        store.add(Submission(id=f"s{index}", form_id="form", user_id="user-1"))

    assert store.has_submitted("form", "user-1")
    assert [item.id for item in store.list_for_form("form", offset=1, limit=1)] == ["s1"]
    assert service.store is store
