from unittest.mock import MagicMock

import pytest

from form_builder import vertex_ai_adapter
from form_builder.models.field import FieldType
from form_builder.suggestions import KeywordFormSuggester
from form_builder.vertex_ai_adapter import VertexAIAdapter


def test_contact_prompt(ids):
    suggestion = KeywordFormSuggester(id_factory=ids).suggest("A CONTACT form with phone")

    assert suggestion.title == "Professional Contact Form"
    assert suggestion.description == "AI-generated form based on your requirements"
    assert [field.label for field in suggestion.fields] == ["Full Name", "Email Address", "Phone Number"]
    assert [field.id for field in suggestion.fields] == ["field-1", "field-2", "field-3"]
    assert suggestion.fields[1].validation.pattern is not None
    assert suggestion.fields[2].styling.width.value == "half"


def test_survey_prompt_gets_rating_and_message(ids):
    suggestion = KeywordFormSuggester(id_factory=ids).suggest("customer satisfaction survey with feedback")

    assert suggestion.title == "Customer Satisfaction Survey"
    assert [field.type for field in suggestion.fields] == [FieldType.textarea, FieldType.rating]
    assert suggestion.fields[0].rows == 4


def test_unmatched_prompt_gets_an_empty_custom_form(ids):
    suggestion = KeywordFormSuggester(id_factory=ids).suggest("something else entirely")

    assert suggestion.title == "Custom Form"
    assert suggestion.fields == []


def test_suggested_fields_can_be_added_to_a_project(engine, ids, contact_project):
    suggestion = KeywordFormSuggester(id_factory=ids).suggest("event registration with email")

    project, new_ids = engine.add_fields(contact_project, "section-message", suggestion.fields)

    assert suggestion.title == "Event Registration Form"
    assert project.get_section("section-message").fields[-len(new_ids):] == new_ids


@pytest.fixture
def gemini(monkeypatch):
    model = MagicMock()
    monkeypatch.setattr(vertex_ai_adapter.vertexai, "init", MagicMock())
    monkeypatch.setattr(vertex_ai_adapter, "GenerativeModel", MagicMock(return_value=model))
    return model


def test_vertex_suggestion_parses_fenced_json(gemini, ids):
    gemini.generate_content.return_value.text = """```json
{"title": "Bug report", "description": "Tell us what broke", "fields": [
  {"type": "select", "label": "Severity"},
  {"type": "textarea", "label": "Details", "options": ["stray"], "validation": {"required": true}}
]}
```"""
    adapter = VertexAIAdapter(project_id="gcp-project", id_factory=ids)

    suggestion = adapter.suggest_form("bug report")

    assert suggestion.title == "Bug report"
    assert [field.id for field in suggestion.fields] == ["field-1", "field-2"]
    assert suggestion.fields[0].options == ["Option 1", "Option 2", "Option 3"]
    assert suggestion.fields[1].options is None
    assert suggestion.fields[1].is_required


def test_vertex_failure_falls_back_to_keywords(gemini, ids):
    gemini.generate_content.side_effect = RuntimeError("quota exceeded")
    adapter = VertexAIAdapter(project_id="gcp-project", id_factory=ids)

    suggestion = adapter.suggest_form("contact form")

    assert suggestion.title == "Professional Contact Form"


def test_vertex_non_object_answer_falls_back(gemini, ids):
    gemini.generate_content.return_value.text = "[1, 2, 3]"
    adapter = VertexAIAdapter(project_id="gcp-project", id_factory=ids)

    assert adapter.suggest_form("feedback").title == "Custom Form"


def test_generate_json_rejects_garbage(gemini):
    gemini.generate_content.return_value.text = "not json"
    adapter = VertexAIAdapter(project_id="gcp-project")

    with pytest.raises(ValueError):
        adapter.generate_json("anything")
