from __future__ import annotations

import base64
import json
import logging
import os
import uuid
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from form_builder.collaboration import CollaborationUpdate, apply_update
from form_builder.document_store import InMemoryDocumentStore
from form_builder.errors import FormBuilderError
from form_builder.firestore_document_store import FirestoreDocumentStore
from form_builder.logging_config import set_trace_id, setup_logging
from form_builder.mutations import MutationEngine

# Environment configuration
ENVIRONMENT = os.getenv("ENVIRONMENT", "dev")
PROJECT_ID = os.getenv("PROJECT_ID", "form-builder")

# Setup logging
setup_logging(environment=ENVIRONMENT, project_id=PROJECT_ID)
logger = logging.getLogger(__name__)

# Initialize services
if ENVIRONMENT == "dev":
    document_store = InMemoryDocumentStore()
else:
    document_store = FirestoreDocumentStore(project_id=PROJECT_ID)
engine = MutationEngine()

app = FastAPI(title="Form Builder Collaboration Worker", version="0.1.0")


class PubSubMessage(BaseModel):
    """Pub/Sub push message format."""

    message: dict[str, Any]
    subscription: str


@app.post("/v1/worker/collaboration")
async def process_collaboration_update(request: Request) -> JSONResponse:
    """Apply a collaboration update delivered by a Pub/Sub push subscription.

    Updates are applied in delivery order and the last one wins. Updates
    the API already wrote, and updates the document rejects, are
    acknowledged without retry.
    """
    trace_id = str(uuid.uuid4())
    set_trace_id(trace_id)

    body = await request.json()
    pubsub_message = PubSubMessage.model_validate(body)

    message_data = pubsub_message.message.get("data", "")
    if not message_data:
        raise HTTPException(status_code=400, detail="No message data")

    attributes = pubsub_message.message.get("attributes") or {}
    if attributes.get("applied") == "true":
        return JSONResponse({"status": "skipped", "reason": "already applied"})

    try:
        payload = json.loads(base64.b64decode(message_data).decode("utf-8"))
        update = CollaborationUpdate.model_validate(payload)
    except (ValueError, FormBuilderError) as exc:
        raise HTTPException(status_code=400, detail=f"Invalid collaboration update: {exc}") from exc

    logger.info(
        "Processing collaboration update",
        extra={
            "project_id": update.project_id,
            "update_type": update.type.value,
            "user_id": update.user_id,
            "trace_id": trace_id,
        },
    )

    project = document_store.load(update.project_id)
    if project is None:
        logger.warning(
            "Dropping update for unknown project",
            extra={"project_id": update.project_id, "trace_id": trace_id},
        )
        return JSONResponse({"status": "rejected", "reason": "project not found"})

    try:
        updated = apply_update(engine, project, update)
    except FormBuilderError as exc:
        # Replaying would fail the same way, so acknowledge instead of retrying.
        logger.warning(
            "Rejected collaboration update",
            extra={"project_id": update.project_id, "trace_id": trace_id, "error": str(exc)},
        )
        return JSONResponse({"status": "rejected", "reason": str(exc)})

    document_store.save(updated)
    return JSONResponse({"status": "applied", "project_id": updated.id, "version": updated.version})


@app.get("/health")
async def healthcheck() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse({"status": "ok"})
