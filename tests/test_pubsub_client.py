import json
from unittest.mock import MagicMock

import pytest

from form_builder import pubsub_client
from form_builder.collaboration import UpdateType, build_update
from form_builder.pubsub_client import PubSubClient


@pytest.fixture
def publisher(monkeypatch):
    publisher = MagicMock()
    publisher.topic_path.side_effect = lambda project, topic: f"projects/{project}/topics/{topic}"
    publisher.publish.return_value.result.return_value = "msg-1"
    monkeypatch.setattr(pubsub_client.pubsub_v1, "PublisherClient", MagicMock(return_value=publisher))
    return publisher


def test_collaboration_update_is_published_with_attributes(publisher, clock, contact_project):
    client = PubSubClient("gcp-project")
    update = build_update(UpdateType.field_deleted, contact_project, user_id="user-owner", clock=clock, field_id="name")

    assert client.publish_collaboration_update(update, applied=True) == "msg-1"

    topic, data = publisher.publish.call_args.args
    assert topic == "projects/gcp-project/topics/form-collaboration"
    assert json.loads(data)["fieldId"] == "name"
    assert publisher.publish.call_args.kwargs == {
        "project_id": "project-contact",
        "event_type": "field_deleted",
        "user_id": "user-owner",
        "applied": "true",
    }


def test_submission_event(publisher):
    client = PubSubClient("gcp-project", submissions_topic="submissions")

    client.publish_submission_created(submission_id="s1", form_id="form", user_id=None)

    topic, data = publisher.publish.call_args.args
    assert topic == "projects/gcp-project/topics/submissions"
    assert json.loads(data) == {"submission_id": "s1", "form_id": "form", "user_id": None}
    assert publisher.publish.call_args.kwargs["event_type"] == "submission_created"
