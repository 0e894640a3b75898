import importlib.util
import json
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
FIXTURE = Path(__file__).parent / "fixtures" / "contact_form.json"


def load_service(monkeypatch, relative_path: str, module_name: str):
    monkeypatch.setenv("ENVIRONMENT", "dev")
    monkeypatch.delenv("PROJECT_ID", raising=False)
    spec = importlib.util.spec_from_file_location(module_name, ROOT / relative_path)
    module = importlib.util.module_from_spec(spec)
    monkeypatch.setitem(sys.modules, module_name, module)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def client(monkeypatch):
    api = load_service(monkeypatch, "services/api/main.py", "form_builder_api_main")
    return TestClient(api.app)


@pytest.fixture
def imported(client):
    response = client.post("/v1/projects:import", json=json.loads(FIXTURE.read_text(encoding="utf-8")))
    assert response.status_code == 201
    return response.json()


def test_build_a_form_from_scratch(client):
    created = client.post("/v1/projects", json={"title": "Signup"}, headers={"X-User-Id": "user-1"})
    assert created.status_code == 201
    project = created.json()
    assert project["createdBy"] == "user-1"
    assert project["collaborators"] == ["user-1"]
    project_id, page_id = project["id"], project["pages"][0]["id"]

    section = client.post(f"/v1/projects/{project_id}/pages/{page_id}/sections")
    assert section.status_code == 201
    assert section.json()["update"]["type"] == "section_added"
    section_id = section.json()["update"]["sectionId"]

    dropped = client.post(
        f"/v1/projects/{project_id}/drops",
        json={"source": {"kind": "palette", "fieldType": "text"}, "target": {"kind": "section", "id": section_id}},
        headers={"X-User-Id": "user-1"},
    )
    body = dropped.json()
    assert body["applied"] is True
    assert body["project"]["version"] == 3
    field_id = body["update"]["fieldId"]
    layout = body["project"]["pages"][0]["sections"][0]["layout"]
    assert layout["columns"][0]["fields"] == [field_id]

    missed = client.post(f"/v1/projects/{project_id}/drops", json={"source": {"kind": "palette", "fieldType": "text"}})
    assert missed.json()["applied"] is False
    assert missed.json()["project"]["version"] == 3


def test_import_rejects_duplicates_and_unknown_projects_404(client, imported):
    again = client.post("/v1/projects:import", json=json.loads(FIXTURE.read_text(encoding="utf-8")))
    assert again.status_code == 409

    missing = client.get("/v1/projects/nope")
    assert missing.status_code == 404
    assert missing.json()["entity"] == "Project"


def test_list_and_delete_projects(client, imported):
    listed = client.get("/v1/projects", params={"owner_id": "user-editor", "search": "contact"}).json()
    assert listed["total"] == 1
    assert listed["items"][0]["id"] == "project-contact"

    assert client.delete("/v1/projects/project-contact").status_code == 204
    assert client.delete("/v1/projects/project-contact").status_code == 404



def test_listing_after_importing_a_naive_timestamp(client, imported):
    payload = json.loads(FIXTURE.read_text(encoding="utf-8"))
    payload.update({"id": "project-naive", "updatedAt": "2026-01-01T00:00:00"})
    assert client.post("/v1/projects:import", json=payload).status_code == 201

    listed = client.get("/v1/projects")

    assert listed.status_code == 200
    assert [item["id"] for item in listed.json()["items"]] == ["project-naive", "project-contact"]
    assert listed.json()["items"][0]["updatedAt"].startswith("2026-01-01T00:00:00")

def test_field_edits(client, imported):
    base = "/v1/projects/project-contact"

    renamed = client.patch(f"{base}/fields/name", json={"updates": {"label": "Name"}}, headers={"X-User-Id": "u"})
    assert renamed.status_code == 200
    assert renamed.json()["update"]["userId"] == "u"

    bad_pattern = client.patch(f"{base}/fields/name", json={"updates": {"validation": {"pattern": "[oops"}}})
    assert bad_pattern.status_code == 422
    assert bad_pattern.json()["pattern"] == "[oops"

    bad_reorder = client.post(f"{base}/containers/section-contact/fields:reorder", json={"orderedIds": ["name"]})
    assert bad_reorder.status_code == 409

    moved = client.post(f"{base}/fields/intro:move", json={"targetId": "section-contact", "afterFieldId": "name"})
    assert moved.json()["project"]["pages"][0]["sections"][0]["fields"] == ["name", "intro", "email", "contact-method"]

    duplicated = client.post(f"{base}/fields/email:duplicate")
    assert duplicated.status_code == 201
    assert duplicated.json()["update"]["type"] == "field_duplicated"

    stored = client.get(base).json()
    assert stored["version"] == 6


def test_page_and_section_edits(client, imported):
    base = "/v1/projects/project-contact"

    assert client.delete(f"{base}/sections/section-message").status_code == 200
    report = client.get(f"{base}/integrity").json()
    assert report["orphaned_field_ids"] == ["intro", "message"]

    cleaned = client.post(f"{base}/fields:remove-orphans").json()
    assert [field["id"] for field in cleaned["project"]["fields"]] == ["name", "email", "contact-method", "phone"]

    layout = client.put(f"{base}/sections/section-contact/layout", json={"layoutType": "two-column"})
    assert len(layout.json()["project"]["pages"][0]["sections"][0]["layout"]["columns"]) == 2

    client.delete(f"{base}/pages/page-message")
    last_page = client.delete(f"{base}/pages/page-details")
    assert last_page.status_code == 409


def test_runtime_endpoints(client, imported):
    base = "/v1/projects/project-contact"

    evaluation = client.post(f"{base}/evaluate", json={"values": {"contact-method": "Phone"}}).json()
    assert evaluation["sections"]["section-phone"] is True
    assert evaluation["fields"]["phone"]["required"] is True
    assert "phone" in evaluation["visibleFieldIds"]

    validation = client.post(f"{base}/validate", json={"values": {}}).json()
    assert validation["valid"] is False
    assert set(validation["errors"]) == {"name", "email"}

    navigation = client.post(f"{base}/navigation", json={"currentPageIndex": 0, "values": {}}).json()
    assert navigation == {
        "nextPageIndex": 1,
        "previousPageIndex": None,
        "isLastPage": False,
        "progress": 50.0,
        "visiblePageIds": ["page-details", "page-message"],
    }
    assert client.post(f"{base}/navigation", json={"currentPageIndex": 9}).status_code == 409


def test_submissions(client, imported):
    base = "/v1/projects/project-contact"
    values = {"name": "Ada", "email": "ada@example.com", "contact-method": "Email"}

    rejected = client.post(f"{base}/submissions", json={"data": {"name": "Ada"}})
    assert rejected.status_code == 400
    assert rejected.json() == {"error": "Validation failed", "details": {"email": "Email Address is required"}}

    accepted = client.post(f"{base}/submissions", json={"data": values}, headers={"User-Agent": "pytest-agent"})
    assert accepted.status_code == 201
    assert accepted.json()["success"] is True

    stored = client.get(f"{base}/submissions").json()
    assert stored[0]["data"] == values
    assert stored[0]["metadata"]["userAgent"] == "pytest-agent"


def test_authenticated_forms_return_401(client, imported):
    client.patch("/v1/projects/project-contact/settings", json={"updates": {"requireAuthentication": True}})

    response = client.post("/v1/projects/project-contact/submissions", json={"data": {}})

    assert response.status_code == 401


def test_export(client, imported):
    html = client.get("/v1/projects/project-contact/export/html")
    assert html.status_code == 200
    assert "<title>Contact Us</title>" in html.text

    assert client.get("/v1/projects/project-contact/export/svelte").status_code == 422


def test_collaboration_updates_apply_in_dev(client, imported):
    update = {
        "type": "field_deleted",
        "projectId": "project-contact",
        "fieldId": "intro",
        "userId": "user-editor",
        "timestamp": 0,
        "version": 4,
    }

    response = client.post("/v1/projects/project-contact/collaboration", json=update)
    assert response.status_code == 202
    assert response.json()["status"] == "applied"
    assert response.json()["version"] == 4

    wrong = client.post("/v1/projects/other/collaboration", json=update)
    assert wrong.status_code == 409


def test_suggestions(client, imported):
    suggestion = client.post("/v1/suggestions", json={"prompt": "Contact form"}).json()
    assert suggestion["title"] == "Professional Contact Form"
    assert len(suggestion["fields"]) == 2

    applied = client.post(
        "/v1/projects/project-contact/suggestions:apply",
        json={"prompt": "feedback", "targetId": "section-message"},
    )
    assert applied.status_code == 201
    assert applied.json()["update"]["type"] == "fields_added"
    assert len(applied.json()["project"]["pages"][1]["sections"][0]["fields"]) == 3


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_palette_lists_categories_with_field_types(client):
    palette = client.get("/v1/palette").json()

    assert [category["key"] for category in palette][0] == "basic"
    basic_types = [item["type"] for item in palette[0]["items"]]
    assert "text" in basic_types
    assert all(not item["premium"] for item in palette[0]["items"])


def test_template_gallery_and_apply(client, imported):
    gallery = client.get("/v1/templates", params={"category": "business"}).json()
    assert [template["id"] for template in gallery] == ["contact-form-pro"]
    assert gallery[0]["isPremium"] is False

    applied = client.post(
        "/v1/projects/project-contact:apply-template",
        json={"templateId": "contact-form-pro"},
        headers={"X-User-Id": "user-owner"},
    )
    assert applied.status_code == 200
    body = applied.json()
    assert body["project"]["title"] == "Professional Contact Form"
    assert body["update"]["type"] == "template_applied"

    missing = client.post("/v1/projects/project-contact:apply-template", json={"templateId": "nope"})
    assert missing.status_code == 404
