import base64
import json
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from form_builder.models.document import Project
from test_api import load_service

FIXTURE = Path(__file__).parent / "fixtures" / "contact_form.json"


@pytest.fixture
def worker(monkeypatch):
    module = load_service(monkeypatch, "services/worker/main.py", "form_builder_worker_main")
    module.document_store.save(Project.model_validate_json(FIXTURE.read_text(encoding="utf-8")))
    return module


def _push(update: dict, **attributes) -> dict:
    data = base64.b64encode(json.dumps(update).encode("utf-8")).decode("ascii")
    return {
        "message": {"data": data, "attributes": attributes, "messageId": "1"},
        "subscription": "projects/demo/subscriptions/form-collaboration-worker",
    }


def _update(**overrides) -> dict:
    update = {
        "type": "field_updated",
        "projectId": "project-contact",
        "fieldId": "name",
        "updates": {"label": "Name"},
        "userId": "user-editor",
        "timestamp": 1767268800000,
        "version": 4,
    }
    update.update(overrides)
    return update


def test_worker_applies_queued_updates(worker):
    response = TestClient(worker.app).post("/v1/worker/collaboration", json=_push(_update(), applied="false"))

    assert response.json() == {"status": "applied", "project_id": "project-contact", "version": 4}
    assert worker.document_store.load("project-contact").get_field("name").label == "Name"


def test_worker_skips_updates_the_api_already_wrote(worker):
    response = TestClient(worker.app).post("/v1/worker/collaboration", json=_push(_update(), applied="true"))

    assert response.json()["status"] == "skipped"
    assert worker.document_store.load("project-contact").version == 3


def test_worker_rejects_updates_the_document_refuses(worker):
    client = TestClient(worker.app)

    unknown = client.post("/v1/worker/collaboration", json=_push(_update(projectId="missing")))
    bad_reorder = _update(type="fields_reordered", targetId="section-contact", orderedIds=["name"])
    refused = client.post("/v1/worker/collaboration", json=_push(bad_reorder))

    assert unknown.json()["status"] == "rejected"
    assert refused.status_code == 200
    assert refused.json()["status"] == "rejected"


def test_worker_refuses_malformed_messages(worker):
    client = TestClient(worker.app)

    empty = client.post("/v1/worker/collaboration", json={"message": {}, "subscription": "s"})
    garbage = client.post("/v1/worker/collaboration", json={"message": {"data": "bm90IGpzb24="}, "subscription": "s"})

    assert empty.status_code == 400
    assert garbage.status_code == 400
