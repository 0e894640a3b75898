import pytest

from form_builder.errors import NotFoundError
from form_builder.models.field import FieldType
from form_builder.templates import TEMPLATE_GALLERY, get_template, list_templates


def test_gallery_filters_by_category_and_search():
    assert [template.id for template in list_templates(category="survey")] == ["survey-form"]
    assert [template.id for template in list_templates(search="ATTACHMENTS")] == ["contact-form-pro"]
    assert len(list_templates()) == len(TEMPLATE_GALLERY)


def test_unknown_template():
    with pytest.raises(NotFoundError) as excinfo:
        get_template("missing")

    assert excinfo.value.entity == "Template"


def test_template_with_pages_replaces_structure(engine, contact_project):
    updated = engine.apply_template(contact_project, get_template("survey-form"))

    assert updated.title == "Customer Survey"
    assert updated.description == "Collect feedback with multiple question types"
    assert [page.id for page in updated.ordered_pages()] == ["survey-experience", "survey-comments"]
    assert updated.placed_field_ids() == ["survey-score", "survey-recommend", "survey-comments-text"]
    assert updated.get_field("survey-score").type == FieldType.rating
    assert updated.get_field("survey-recommend").metadata.section_id == "survey-rating"
    assert updated.version == contact_project.version + 1


def test_template_without_pages_only_retitles(engine, contact_project):
    updated = engine.apply_template(contact_project, get_template("login-form"))

    assert updated.title == "Advanced Login Form"
    assert updated.pages == contact_project.pages
    assert [field.id for field in updated.fields] == [field.id for field in contact_project.fields]


def test_applying_a_template_leaves_the_gallery_untouched(engine, contact_project):
    updated = engine.apply_template(contact_project, get_template("contact-form-pro"))
    updated = engine.update_field(updated, "contact-name", {"label": "Name"})

    assert get_template("contact-form-pro").fields[0].label == "Full Name"
    assert get_template("contact-form-pro").fields[0].metadata.section_id is None
