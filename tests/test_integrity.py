from form_builder.integrity import check_project, find_conditional_reference_warnings


def test_fixture_is_clean(contact_project):
    report = check_project(contact_project)

    assert report.is_clean
    assert report.model_dump() == {"conditional_warnings": [], "orphaned_field_ids": [], "dangling_skip_targets": []}


def test_deleted_field_leaves_a_dangling_condition(engine, contact_project):
    project = engine.delete_field(contact_project, "contact-method")

    warnings = find_conditional_reference_warnings(project)

    assert [(w.owner_kind, w.owner_id, w.field_id) for w in warnings] == [
        ("section", "section-phone", "contact-method")
    ]
    assert "contact-method" in warnings[0].message


def test_orphans_and_skip_targets_are_reported(engine, contact_project):
    project = engine.delete_section(contact_project, "section-message")
    project = engine.update_field(
        project,
        "name",
        {
            "conditional": {
                "enabled": True,
                "action": "skip_to_section",
                "targetSectionId": "section-message",
                "conditions": [{"fieldId": "name", "operator": "is_not_empty"}],
            }
        },
    )

    report = check_project(project)

    assert not report.is_clean
    assert report.orphaned_field_ids == ["intro", "message"]
    assert report.dangling_skip_targets == [("name", "section-message")]
