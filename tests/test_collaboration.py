from datetime import datetime, timezone

import pytest

from conftest import SequentialIds, SteppingClock
from form_builder.collaboration import (
    RECENT_UPDATES_LIMIT,
    CollaborationUpdate,
    CollaborativeEditor,
    UpdateType,
    apply_update,
)
from form_builder.errors import InvariantViolation
from form_builder.models.field import FormField
from form_builder.mutations import MutationEngine


def _shape(project):
    """Everything two replicas must agree on, ignoring local timestamps."""
    return (
        project.version,
        project.title,
        project.settings.model_dump(),
        [page.model_dump() for page in project.ordered_pages()],
        {field.id: field.model_dump(exclude={"metadata"}) for field in project.fields},
    )


def _over_the_wire(update):
    return CollaborationUpdate.model_validate(update.model_dump(mode="json", by_alias=True))


def test_replica_converges_by_replaying_updates(engine, clock, contact_project):
    editor = CollaborativeEditor(engine, "user-owner", clock=clock)
    replica_engine = MutationEngine(clock=SteppingClock(clock.now), id_factory=SequentialIds())
    local = contact_project
    replica = contact_project.model_copy(deep=True)

    steps = [
        lambda p: editor.add_field(p, "section-contact", "date", after_field_id="email"),
        lambda p: editor.duplicate_field(p, "name"),
        lambda p: editor.update_field(p, "message", {"label": "Your message", "required": True}),
        lambda p: editor.move_field(p, "intro", "section-contact-col-0"),
        lambda p: editor.reorder_fields(p, "section-message", ["message"]),
        lambda p: editor.duplicate_section(p, "section-contact"),
        lambda p: editor.set_section_layout(p, "section-contact", "two-column"),
        lambda p: editor.add_page(p),
        lambda p: editor.duplicate_page(p, "page-message"),
        lambda p: editor.reorder_pages(p, [pg.id for pg in reversed(p.ordered_pages())]),
        lambda p: editor.update_settings(p, {"submitButtonText": "Go"}),
        lambda p: editor.update_project(p, {"title": "Reach us"}),
        lambda p: editor.delete_field(p, "phone"),
        lambda p: editor.delete_section(p, "section-phone"),
    ]
    for step in steps:
        local, update = step(local)
        replica = apply_update(replica_engine, replica, _over_the_wire(update))

    assert _shape(replica) == _shape(local)


def test_add_fields_and_sections_replay(engine, clock, contact_project, ids):
    editor = CollaborativeEditor(engine, "user-editor", clock=clock)
    replica_engine = MutationEngine(clock=clock, id_factory=SequentialIds())
    batch = [FormField(id="draft", type="checkbox", label="Topics", options=["Billing", "Support"])]

    local, added = editor.add_fields(contact_project, "section-message", batch)
    local, section_added = editor.add_section(local, "page-message")
    local, moved = editor.move_section(local, "section-phone", "page-message", 0)
    local, reordered = editor.reorder_sections(local, "page-details", ["section-contact"])
    local, renamed = editor.update_section(local, "section-message", {"title": "Notes"})
    local, page_renamed = editor.update_page(local, "page-details", {"title": "About you"})

    replica = contact_project
    for update in (added, section_added, moved, reordered, renamed, page_renamed):
        replica = apply_update(replica_engine, replica, update)

    assert added.type == UpdateType.fields_added
    assert _shape(replica) == _shape(local)


def test_updates_carry_version_and_author(engine, contact_project):
    editor = CollaborativeEditor(engine, "user-editor", clock=lambda: datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc))

    result, update = editor.add_field(contact_project, "section-contact", "text")

    assert update.type == UpdateType.field_added
    assert update.project_id == "project-contact"
    assert update.user_id == "user-editor"
    assert update.version == result.version == contact_project.version + 1
    assert update.target_id == "section-contact-col-0"
    assert update.field.metadata.created_by == "user-editor"
    assert update.timestamp == 1767268800000


def test_recent_updates_keep_only_the_newest(engine, clock, contact_project):
    editor = CollaborativeEditor(engine, "user-owner", clock=clock)
    project = contact_project

    for index in range(RECENT_UPDATES_LIMIT + 2):
        project, _ = editor.update_project(project, {"title": f"Title {index}"})

    recent = editor.recent_updates
    assert len(recent) == RECENT_UPDATES_LIMIT
    assert recent[0].updates == {"title": f"Title {RECENT_UPDATES_LIMIT + 1}"}
    assert recent[-1].updates == {"title": "Title 2"}


def test_last_writer_wins_in_receipt_order(engine, contact_project):
    first = CollaborationUpdate(
        type="field_updated",
        project_id="project-contact",
        field_id="name",
        updates={"label": "First"},
        user_id="a",
        timestamp=2,
        version=4,
    )
    second = first.model_copy(update={"updates": {"label": "Second"}, "user_id": "b", "timestamp": 1})

    project = apply_update(engine, apply_update(engine, contact_project, first), second)

    assert project.get_field("name").label == "Second"


def test_update_for_another_project_is_rejected(engine, contact_project):
    update = CollaborationUpdate(
        type="field_deleted", project_id="other", field_id="name", user_id="a", timestamp=0, version=1
    )

    with pytest.raises(InvariantViolation):
        apply_update(engine, contact_project, update)


def test_update_missing_its_payload_is_rejected(engine, contact_project):
    update = CollaborationUpdate(type="field_deleted", project_id="project-contact", user_id="a", timestamp=0, version=1)

    with pytest.raises(InvariantViolation):
        apply_update(engine, contact_project, update)


def test_failed_replay_leaves_the_replica_untouched(engine, contact_project):
    update = CollaborationUpdate(
        type="fields_reordered",
        project_id="project-contact",
        target_id="section-contact",
        ordered_ids=["name"],
        user_id="a",
        timestamp=0,
        version=4,
    )

    with pytest.raises(InvariantViolation):
        apply_update(engine, contact_project, update)

    assert contact_project.version == 3


def test_template_application_replays_by_id(engine, contact_project):
    editor = CollaborativeEditor(engine, "user-owner")
    replica = contact_project.model_copy(deep=True)

    result, update = editor.apply_template(contact_project, "contact-form-pro")
    replayed = apply_update(engine, replica, _over_the_wire(update))

    assert update.type == UpdateType.template_applied
    assert update.template_id == "contact-form-pro"
    assert _shape(replayed) == _shape(result)
