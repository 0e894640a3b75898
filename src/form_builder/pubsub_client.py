from __future__ import annotations

import json
import logging
from typing import Any

from google.cloud import pubsub_v1

from .collaboration import CollaborationUpdate

logger = logging.getLogger(__name__)

DEFAULT_COLLABORATION_TOPIC = "form-collaboration"
DEFAULT_SUBMISSIONS_TOPIC = "form-submissions"


class PubSubClient:
    """Wrapper for Google Cloud Pub/Sub operations."""

    def __init__(
        self,
        project_id: str,
        *,
        collaboration_topic: str = DEFAULT_COLLABORATION_TOPIC,
        submissions_topic: str = DEFAULT_SUBMISSIONS_TOPIC,
    ) -> None:
        self.project_id = project_id
        self.collaboration_topic = collaboration_topic
        self.submissions_topic = submissions_topic
        self.publisher = pubsub_v1.PublisherClient()

    def publish(
        self,
        topic_id: str,
        message: dict[str, Any],
        *,
        attributes: dict[str, str] | None = None,
    ) -> str:
        """Publish a JSON message to a Pub/Sub topic.

        Args:
            topic_id: The topic ID (e.g., "form-collaboration")
            message: The message payload as a dictionary
            attributes: Optional message attributes

        Returns:
            Message ID from Pub/Sub
        """
        topic_path = self.publisher.topic_path(self.project_id, topic_id)
        data = json.dumps(message).encode("utf-8")
        future = self.publisher.publish(topic_path, data, **(attributes or {}))
        message_id = future.result()

        logger.info(
            "Published message to Pub/Sub",
            extra={
                "topic_id": topic_id,
                "message_id": message_id,
                "attributes": attributes,
            },
        )

        return message_id

    def publish_collaboration_update(self, update: CollaborationUpdate, *, applied: bool) -> str:
        """Fan a collaboration update out to other editors.

        ``applied`` marks updates already written to the stored project, so the
        worker only forwards them instead of replaying them.
        """
        attributes = {
            "project_id": update.project_id,
            "event_type": update.type.value,
            "user_id": update.user_id,
            "applied": "true" if applied else "false",
        }
        return self.publish(
            self.collaboration_topic,
            update.model_dump(mode="json", by_alias=True),
            attributes=attributes,
        )

    def publish_submission_created(
        self,
        *,
        submission_id: str,
        form_id: str,
        user_id: str | None,
    ) -> str:
        message = {
            "submission_id": submission_id,
            "form_id": form_id,
            "user_id": user_id,
        }
        attributes = {
            "form_id": form_id,
            "event_type": "submission_created",
        }
        return self.publish(self.submissions_topic, message, attributes=attributes)


__all__ = ["DEFAULT_COLLABORATION_TOPIC", "DEFAULT_SUBMISSIONS_TOPIC", "PubSubClient"]
