from __future__ import annotations

import logging
import os
import uuid
from typing import Any, Callable, Literal

from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import Field

from form_builder.codegen import CodeTarget, generate_code
from form_builder.collaboration import CollaborationUpdate, CollaborativeEditor, UpdateType, apply_update, build_update
from form_builder.conditions import VisibilityResolver
from form_builder.defaults import FIELD_PALETTE, new_project
from form_builder.document_store import InMemoryDocumentStore
from form_builder.error_boundary import ErrorBoundary
from form_builder.errors import (
    AuthenticationRequired,
    DuplicateSubmission,
    InvariantViolation,
    NotFoundError,
    RegexCompileError,
    ValidationFailed,
)
from form_builder.firestore_document_store import FirestoreDocumentStore, FirestoreSubmissionStore
from form_builder.integrity import check_project
from form_builder.logging_config import set_trace_id, setup_logging
from form_builder.models.base import FormModel
from form_builder.models.document import Project
from form_builder.models.field import FieldType, FormField
from form_builder.models.layout import LayoutType
from form_builder.mutations import MutationEngine
from form_builder.navigation import FormNavigator
from form_builder.placement import (
    ColumnDropZone,
    DragPlacementResolver,
    ExistingFieldSource,
    FieldDropTarget,
    PaletteSource,
    SectionDropZone,
)
from form_builder.pubsub_client import PubSubClient
from form_builder.submissions import InMemorySubmissionStore, Submission, SubmissionMetadata, SubmissionService
from form_builder.suggestions import FormSuggestion, KeywordFormSuggester
from form_builder.templates import FormTemplate, list_templates
from form_builder.validation import validate_values
from form_builder.vertex_ai_adapter import VertexAIAdapter

ANONYMOUS_USER = "anonymous"


class CreateProjectRequest(FormModel):
    title: str = "Untitled Form"
    description: str = ""


class UpdatesRequest(FormModel):
    updates: dict[str, Any] = Field(default_factory=dict)


class AddFieldRequest(FormModel):
    target_id: str
    type: FieldType
    after_field_id: str | None = None


class AddFieldsRequest(FormModel):
    target_id: str
    fields: list[FormField]


class MoveFieldRequest(FormModel):
    target_id: str
    after_field_id: str | None = None


class ReorderRequest(FormModel):
    ordered_ids: list[str]


class MoveSectionRequest(FormModel):
    target_page_id: str
    index: int | None = None


class LayoutRequest(FormModel):
    layout_type: LayoutType


class DragSourcePayload(FormModel):
    kind: Literal["palette", "field"]
    field_type: FieldType | None = None
    field_id: str | None = None


class DropTargetPayload(FormModel):
    kind: Literal["section", "column", "field"]
    id: str


class DropRequest(FormModel):
    source: DragSourcePayload
    target: DropTargetPayload | None = None


class ValuesRequest(FormModel):
    values: dict[str, Any] = Field(default_factory=dict)


class NavigationRequest(FormModel):
    current_page_index: int = 0
    values: dict[str, Any] = Field(default_factory=dict)


class SubmitRequest(FormModel):
    data: dict[str, Any] = Field(default_factory=dict)
    metadata: SubmissionMetadata | None = None


class SuggestionRequest(FormModel):
    prompt: str


class ApplySuggestionRequest(FormModel):
    prompt: str
    target_id: str


class ApplyTemplateRequest(FormModel):
    template_id: str


class MutationResponse(FormModel):
    project: Project
    update: CollaborationUpdate | None = None
    applied: bool = True


class ProjectListResponse(FormModel):
    items: list[Project]
    total: int
    offset: int
    limit: int


class FieldStateResponse(FormModel):
    visible: bool
    required: bool
    disabled: bool
    skip_to_section: str | None = None


class EvaluationResponse(FormModel):
    pages: dict[str, bool]
    sections: dict[str, bool]
    fields: dict[str, FieldStateResponse]
    visible_field_ids: list[str]
    warnings: list[str]


class ValidationResponse(FormModel):
    valid: bool
    errors: dict[str, str]


class NavigationResponse(FormModel):
    next_page_index: int | None
    previous_page_index: int | None
    is_last_page: bool
    progress: float
    visible_page_ids: list[str]


class SubmitResponse(FormModel):
    success: bool = True
    submission_id: str
    message: str = "Form submitted successfully"


class CollaborationResponse(FormModel):
    status: Literal["applied", "queued"]
    version: int | None = None
    message_id: str | None = None


# Environment configuration
ENVIRONMENT = os.getenv("ENVIRONMENT", "dev")
PROJECT_ID = os.getenv("PROJECT_ID")
PUBSUB_TOPIC_COLLABORATION = os.getenv("PUBSUB_TOPIC_COLLABORATION", "form-collaboration")
PUBSUB_TOPIC_SUBMISSIONS = os.getenv("PUBSUB_TOPIC_SUBMISSIONS", "form-submissions")

# Setup logging
setup_logging(environment=ENVIRONMENT, project_id=PROJECT_ID)
logger = logging.getLogger(__name__)

app = FastAPI(title="Form Builder API", version="0.1.0")

# Use Firestore in production, in-memory for dev
if ENVIRONMENT == "dev":
    document_store = InMemoryDocumentStore()
    submission_store = InMemorySubmissionStore()
else:
    document_store = FirestoreDocumentStore(project_id=PROJECT_ID)
    submission_store = FirestoreSubmissionStore(project_id=PROJECT_ID)

# Pub/Sub fan-out only outside dev
pubsub_client = (
    PubSubClient(
        project_id=PROJECT_ID,
        collaboration_topic=PUBSUB_TOPIC_COLLABORATION,
        submissions_topic=PUBSUB_TOPIC_SUBMISSIONS,
    )
    if PROJECT_ID and ENVIRONMENT != "dev"
    else None
)


def _notify_submission(project: Project, submission: Submission) -> None:
    if pubsub_client is not None:
        pubsub_client.publish_submission_created(
            submission_id=submission.id,
            form_id=project.id,
            user_id=submission.user_id,
        )


engine = MutationEngine()
placement_resolver = DragPlacementResolver(engine)
error_boundary = ErrorBoundary()
submission_service = SubmissionService(store=submission_store, notifier=_notify_submission)
keyword_suggester = KeywordFormSuggester()
form_suggester = (
    VertexAIAdapter(project_id=PROJECT_ID, fallback=keyword_suggester)
    if PROJECT_ID and ENVIRONMENT != "dev"
    else keyword_suggester
)


@app.middleware("http")
async def assign_trace_id(request: Request, call_next):
    header = request.headers.get("x-cloud-trace-context")
    trace_id = header.split("/")[0] if header else uuid.uuid4().hex
    set_trace_id(trace_id)
    try:
        return await call_next(request)
    finally:
        set_trace_id(None)


@app.exception_handler(NotFoundError)
async def handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse({"error": str(exc), "entity": exc.entity, "id": exc.entity_id}, status_code=404)


@app.exception_handler(AuthenticationRequired)
async def handle_authentication_required(request: Request, exc: AuthenticationRequired) -> JSONResponse:
    return JSONResponse({"error": "Authentication required"}, status_code=401)


@app.exception_handler(DuplicateSubmission)
async def handle_duplicate_submission(request: Request, exc: DuplicateSubmission) -> JSONResponse:
    return JSONResponse({"error": str(exc)}, status_code=409)


@app.exception_handler(InvariantViolation)
async def handle_invariant_violation(request: Request, exc: InvariantViolation) -> JSONResponse:
    return JSONResponse({"error": str(exc)}, status_code=409)


@app.exception_handler(RegexCompileError)
async def handle_regex_compile_error(request: Request, exc: RegexCompileError) -> JSONResponse:
    return JSONResponse({"error": str(exc), "pattern": exc.pattern}, status_code=422)


@app.exception_handler(ValidationFailed)
async def handle_validation_failed(request: Request, exc: ValidationFailed) -> JSONResponse:
    return JSONResponse({"error": "Validation failed", "details": exc.errors}, status_code=400)


def _load_project(project_id: str) -> Project:
    project = document_store.load(project_id)
    if project is None:
        raise NotFoundError("Project", project_id)
    return project


def _broadcast(update: CollaborationUpdate, *, applied: bool) -> str | None:
    if pubsub_client is None:
        return None
    return pubsub_client.publish_collaboration_update(update, applied=applied)


def _mutate(
    project_id: str,
    user_id: str | None,
    operation: str,
    change: Callable[[CollaborativeEditor, Project], tuple[Project, CollaborationUpdate]],
) -> MutationResponse:
    project = _load_project(project_id)
    editor = CollaborativeEditor(engine, user_id or ANONYMOUS_USER)
    with error_boundary.guard(operation, project_id=project_id, user_id=user_id):
        updated, update = change(editor, project)
    document_store.save(updated)
    _broadcast(update, applied=True)
    return MutationResponse(project=updated, update=update)


# Projects


@app.post("/v1/projects", response_model=Project, status_code=201)
async def create_project(request: CreateProjectRequest, x_user_id: str | None = Header(default=None)) -> Project:
    project = new_project(title=request.title, description=request.description, created_by=x_user_id)
    document_store.save(project)
    logger.info("Created project", extra={"project_id": project.id, "user_id": x_user_id})
    return project


@app.post("/v1/projects:import", response_model=Project, status_code=201)
async def import_project(project: Project) -> Project:
    if document_store.load(project.id) is not None:
        raise InvariantViolation(f"Project already exists: {project.id}")
    return document_store.save(project)


@app.get("/v1/projects", response_model=ProjectListResponse)
async def list_projects(
    owner_id: str | None = None,
    offset: int = 0,
    limit: int = 20,
    search: str | None = None,
) -> ProjectListResponse:
    page = document_store.list(owner_id, offset=offset, limit=limit, search=search)
    return ProjectListResponse(items=page.items, total=page.total, offset=page.offset, limit=page.limit)


@app.get("/v1/projects/{project_id}", response_model=Project)
async def get_project(project_id: str) -> Project:
    return _load_project(project_id)


@app.patch("/v1/projects/{project_id}", response_model=MutationResponse)
async def update_project(
    project_id: str, request: UpdatesRequest, x_user_id: str | None = Header(default=None)
) -> MutationResponse:
    return _mutate(
        project_id, x_user_id, "update_project", lambda editor, project: editor.update_project(project, request.updates)
    )


@app.patch("/v1/projects/{project_id}/settings", response_model=MutationResponse)
async def update_settings(
    project_id: str, request: UpdatesRequest, x_user_id: str | None = Header(default=None)
) -> MutationResponse:
    return _mutate(
        project_id,
        x_user_id,
        "update_settings",
        lambda editor, project: editor.update_settings(project, request.updates),
    )



@app.post("/v1/projects/{project_id}:apply-template", response_model=MutationResponse)
async def apply_template(
    project_id: str, request: ApplyTemplateRequest, x_user_id: str | None = Header(default=None)
) -> MutationResponse:
    return _mutate(
        project_id,
        x_user_id,
        "apply_template",
        lambda editor, project: editor.apply_template(project, request.template_id),
    )

@app.delete("/v1/projects/{project_id}", status_code=204)
async def delete_project(project_id: str) -> None:
    if not document_store.delete(project_id):
        raise NotFoundError("Project", project_id)


@app.get("/v1/projects/{project_id}/integrity")
async def project_integrity(project_id: str) -> JSONResponse:
    return JSONResponse(check_project(_load_project(project_id)).model_dump())


# Pages


@app.post("/v1/projects/{project_id}/pages", response_model=MutationResponse, status_code=201)
async def add_page(project_id: str, x_user_id: str | None = Header(default=None)) -> MutationResponse:
    return _mutate(project_id, x_user_id, "add_page", lambda editor, project: editor.add_page(project))


@app.post("/v1/projects/{project_id}/pages:reorder", response_model=MutationResponse)
async def reorder_pages(
    project_id: str, request: ReorderRequest, x_user_id: str | None = Header(default=None)
) -> MutationResponse:
    return _mutate(
        project_id,
        x_user_id,
        "reorder_pages",
        lambda editor, project: editor.reorder_pages(project, request.ordered_ids),
    )


@app.patch("/v1/projects/{project_id}/pages/{page_id}", response_model=MutationResponse)
async def update_page(
    project_id: str, page_id: str, request: UpdatesRequest, x_user_id: str | None = Header(default=None)
) -> MutationResponse:
    return _mutate(
        project_id,
        x_user_id,
        "update_page",
        lambda editor, project: editor.update_page(project, page_id, request.updates),
    )


@app.delete("/v1/projects/{project_id}/pages/{page_id}", response_model=MutationResponse)
async def delete_page(project_id: str, page_id: str, x_user_id: str | None = Header(default=None)) -> MutationResponse:
    return _mutate(project_id, x_user_id, "delete_page", lambda editor, project: editor.delete_page(project, page_id))


@app.post("/v1/projects/{project_id}/pages/{page_id}:duplicate", response_model=MutationResponse, status_code=201)
async def duplicate_page(
    project_id: str, page_id: str, x_user_id: str | None = Header(default=None)
) -> MutationResponse:
    return _mutate(
        project_id, x_user_id, "duplicate_page", lambda editor, project: editor.duplicate_page(project, page_id)
    )


# Sections


@app.post("/v1/projects/{project_id}/pages/{page_id}/sections", response_model=MutationResponse, status_code=201)
async def add_section(project_id: str, page_id: str, x_user_id: str | None = Header(default=None)) -> MutationResponse:
    return _mutate(project_id, x_user_id, "add_section", lambda editor, project: editor.add_section(project, page_id))


@app.post("/v1/projects/{project_id}/pages/{page_id}/sections:reorder", response_model=MutationResponse)
async def reorder_sections(
    project_id: str, page_id: str, request: ReorderRequest, x_user_id: str | None = Header(default=None)
) -> MutationResponse:
    return _mutate(
        project_id,
        x_user_id,
        "reorder_sections",
        lambda editor, project: editor.reorder_sections(project, page_id, request.ordered_ids),
    )


@app.patch("/v1/projects/{project_id}/sections/{section_id}", response_model=MutationResponse)
async def update_section(
    project_id: str, section_id: str, request: UpdatesRequest, x_user_id: str | None = Header(default=None)
) -> MutationResponse:
    return _mutate(
        project_id,
        x_user_id,
        "update_section",
        lambda editor, project: editor.update_section(project, section_id, request.updates),
    )


@app.delete("/v1/projects/{project_id}/sections/{section_id}", response_model=MutationResponse)
async def delete_section(
    project_id: str, section_id: str, x_user_id: str | None = Header(default=None)
) -> MutationResponse:
    return _mutate(
        project_id, x_user_id, "delete_section", lambda editor, project: editor.delete_section(project, section_id)
    )


@app.post(
    "/v1/projects/{project_id}/sections/{section_id}:duplicate", response_model=MutationResponse, status_code=201
)
async def duplicate_section(
    project_id: str, section_id: str, x_user_id: str | None = Header(default=None)
) -> MutationResponse:
    return _mutate(
        project_id,
        x_user_id,
        "duplicate_section",
        lambda editor, project: editor.duplicate_section(project, section_id),
    )


@app.post("/v1/projects/{project_id}/sections/{section_id}:move", response_model=MutationResponse)
async def move_section(
    project_id: str, section_id: str, request: MoveSectionRequest, x_user_id: str | None = Header(default=None)
) -> MutationResponse:
    return _mutate(
        project_id,
        x_user_id,
        "move_section",
        lambda editor, project: editor.move_section(project, section_id, request.target_page_id, request.index),
    )


@app.put("/v1/projects/{project_id}/sections/{section_id}/layout", response_model=MutationResponse)
async def set_section_layout(
    project_id: str, section_id: str, request: LayoutRequest, x_user_id: str | None = Header(default=None)
) -> MutationResponse:
    return _mutate(
        project_id,
        x_user_id,
        "set_section_layout",
        lambda editor, project: editor.set_section_layout(project, section_id, request.layout_type),
    )


# Fields


@app.post("/v1/projects/{project_id}/fields", response_model=MutationResponse, status_code=201)
async def add_field(
    project_id: str, request: AddFieldRequest, x_user_id: str | None = Header(default=None)
) -> MutationResponse:
    return _mutate(
        project_id,
        x_user_id,
        "add_field",
        lambda editor, project: editor.add_field(
            project, request.target_id, request.type, after_field_id=request.after_field_id
        ),
    )


@app.post("/v1/projects/{project_id}/fields:batch", response_model=MutationResponse, status_code=201)
async def add_fields(
    project_id: str, request: AddFieldsRequest, x_user_id: str | None = Header(default=None)
) -> MutationResponse:
    return _mutate(
        project_id,
        x_user_id,
        "add_fields",
        lambda editor, project: editor.add_fields(project, request.target_id, request.fields),
    )


@app.post("/v1/projects/{project_id}/fields:remove-orphans", response_model=MutationResponse)
async def remove_orphaned_fields(project_id: str) -> MutationResponse:
    project = _load_project(project_id)
    with error_boundary.guard("remove_orphaned_fields", project_id=project_id):
        updated, removed = engine.remove_orphaned_fields(project)
    document_store.save(updated)
    logger.info("Removed orphaned fields", extra={"project_id": project_id, "removed": removed})
    return MutationResponse(project=updated)


@app.patch("/v1/projects/{project_id}/fields/{field_id}", response_model=MutationResponse)
async def update_field(
    project_id: str, field_id: str, request: UpdatesRequest, x_user_id: str | None = Header(default=None)
) -> MutationResponse:
    return _mutate(
        project_id,
        x_user_id,
        "update_field",
        lambda editor, project: editor.update_field(project, field_id, request.updates),
    )


@app.delete("/v1/projects/{project_id}/fields/{field_id}", response_model=MutationResponse)
async def delete_field(
    project_id: str, field_id: str, x_user_id: str | None = Header(default=None)
) -> MutationResponse:
    return _mutate(
        project_id, x_user_id, "delete_field", lambda editor, project: editor.delete_field(project, field_id)
    )


@app.post("/v1/projects/{project_id}/fields/{field_id}:duplicate", response_model=MutationResponse, status_code=201)
async def duplicate_field(
    project_id: str, field_id: str, x_user_id: str | None = Header(default=None)
) -> MutationResponse:
    return _mutate(
        project_id, x_user_id, "duplicate_field", lambda editor, project: editor.duplicate_field(project, field_id)
    )


@app.post("/v1/projects/{project_id}/fields/{field_id}:move", response_model=MutationResponse)
async def move_field(
    project_id: str, field_id: str, request: MoveFieldRequest, x_user_id: str | None = Header(default=None)
) -> MutationResponse:
    return _mutate(
        project_id,
        x_user_id,
        "move_field",
        lambda editor, project: editor.move_field(
            project, field_id, request.target_id, after_field_id=request.after_field_id
        ),
    )


@app.post("/v1/projects/{project_id}/containers/{container_id}/fields:reorder", response_model=MutationResponse)
async def reorder_fields(
    project_id: str, container_id: str, request: ReorderRequest, x_user_id: str | None = Header(default=None)
) -> MutationResponse:
    return _mutate(
        project_id,
        x_user_id,
        "reorder_fields",
        lambda editor, project: editor.reorder_fields(project, container_id, request.ordered_ids),
    )


@app.post("/v1/projects/{project_id}/drops", response_model=MutationResponse)
async def drop(project_id: str, request: DropRequest, x_user_id: str | None = Header(default=None)) -> MutationResponse:
    """Resolve a drag-and-drop gesture; drops outside any container change nothing."""
    project = _load_project(project_id)
    user_id = x_user_id or ANONYMOUS_USER

    if request.source.kind == "palette":
        if request.source.field_type is None:
            raise InvariantViolation("Palette drops need a field type")
        source = PaletteSource(request.source.field_type)
    else:
        if request.source.field_id is None:
            raise InvariantViolation("Field drops need a field id")
        source = ExistingFieldSource(request.source.field_id)

    target = None
    if request.target is not None:
        target = {
            "section": SectionDropZone,
            "column": ColumnDropZone,
            "field": FieldDropTarget,
        }[request.target.kind](request.target.id)

    with error_boundary.guard("drop", project_id=project_id, user_id=user_id):
        result = placement_resolver.resolve(project, source, target, actor_id=user_id)

    if not result.applied:
        return MutationResponse(project=project, applied=False)

    updated = result.project
    document_store.save(updated)
    located = updated.find_section_of_field(result.field_id)
    column = located.layout.column_of(result.field_id) if located else None
    if isinstance(source, PaletteSource):
        update = build_update(
            UpdateType.field_added,
            updated,
            user_id=user_id,
            field_id=result.field_id,
            section_id=located.id if located else None,
            target_id=column.id if column else (located.id if located else None),
            after_field_id=target.field_id if isinstance(target, FieldDropTarget) else None,
            field=updated.get_field(result.field_id),
        )
    else:
        update = build_update(
            UpdateType.field_moved,
            updated,
            user_id=user_id,
            field_id=result.field_id,
            target_id=column.id if column else located.id,
            after_field_id=target.field_id if isinstance(target, FieldDropTarget) else None,
        )
    _broadcast(update, applied=True)
    return MutationResponse(project=updated, update=update)


# Runtime: conditions, validation, navigation, submission


@app.post("/v1/projects/{project_id}/evaluate", response_model=EvaluationResponse)
async def evaluate(project_id: str, request: ValuesRequest) -> EvaluationResponse:
    project = _load_project(project_id)
    resolver = VisibilityResolver(project)
    snapshot = resolver.snapshot(request.values)
    return EvaluationResponse(
        pages={page_id: effect.visible for page_id, effect in snapshot.pages.items()},
        sections={section_id: effect.visible for section_id, effect in snapshot.sections.items()},
        fields={
            field_id: FieldStateResponse(
                visible=state.visible,
                required=state.required,
                disabled=state.disabled,
                skip_to_section=state.skip_to_section,
            )
            for field_id, state in snapshot.fields.items()
        },
        visible_field_ids=snapshot.visible_field_ids(),
        warnings=[warning.message for warning in resolver.warnings],
    )


@app.post("/v1/projects/{project_id}/validate", response_model=ValidationResponse)
async def validate(project_id: str, request: ValuesRequest) -> ValidationResponse:
    errors = validate_values(_load_project(project_id), request.values)
    return ValidationResponse(valid=not errors, errors=errors)


@app.post("/v1/projects/{project_id}/navigation", response_model=NavigationResponse)
async def navigate(project_id: str, request: NavigationRequest) -> NavigationResponse:
    navigator = FormNavigator(_load_project(project_id))
    index, values = request.current_page_index, request.values
    if not 0 <= index < len(navigator.pages):
        raise InvariantViolation(f"Page index out of range: {index}")
    return NavigationResponse(
        next_page_index=navigator.next_page_index(index, values),
        previous_page_index=navigator.previous_page_index(index, values),
        is_last_page=navigator.is_last_page(index, values),
        progress=navigator.progress(index, values),
        visible_page_ids=[page.id for page in navigator.visible_pages(values)],
    )


@app.post("/v1/projects/{project_id}/submissions", response_model=SubmitResponse, status_code=201)
async def submit(
    project_id: str,
    request: SubmitRequest,
    http_request: Request,
    x_user_id: str | None = Header(default=None),
) -> SubmitResponse:
    project = _load_project(project_id)
    metadata = request.metadata or SubmissionMetadata()
    if metadata.user_agent is None:
        metadata.user_agent = http_request.headers.get("user-agent")
    if metadata.referrer is None:
        metadata.referrer = http_request.headers.get("referer")
    if metadata.ip_address is None and http_request.client is not None:
        metadata.ip_address = http_request.client.host

    submission = submission_service.submit(project, request.data, metadata, x_user_id)
    return SubmitResponse(submission_id=submission.id)


@app.get("/v1/projects/{project_id}/submissions", response_model=list[Submission])
async def list_submissions(project_id: str, offset: int = 0, limit: int = 50) -> list[Submission]:
    _load_project(project_id)
    return submission_store.list_for_form(project_id, offset=offset, limit=limit)


# Export, collaboration, suggestions


@app.get("/v1/projects/{project_id}/export/{target}", response_class=PlainTextResponse)
async def export_code(project_id: str, target: CodeTarget) -> PlainTextResponse:
    return PlainTextResponse(generate_code(_load_project(project_id), target))


@app.post("/v1/projects/{project_id}/collaboration", response_model=CollaborationResponse, status_code=202)
async def receive_collaboration_update(project_id: str, update: CollaborationUpdate) -> CollaborationResponse:
    """Accept an edit made by another client.

    Outside dev the update is queued for the worker, which applies updates
    in the order Pub/Sub delivers them. In dev it is applied right away.
    """
    if update.project_id != project_id:
        raise InvariantViolation(f"Update for project {update.project_id} posted to {project_id}")

    if pubsub_client is not None:
        message_id = _broadcast(update, applied=False)
        return CollaborationResponse(status="queued", message_id=message_id)

    project = _load_project(project_id)
    with error_boundary.guard("apply_update", project_id=project_id, user_id=update.user_id):
        updated = apply_update(engine, project, update)
    document_store.save(updated)
    return CollaborationResponse(status="applied", version=updated.version)


@app.post("/v1/suggestions", response_model=FormSuggestion)
async def suggest_form(request: SuggestionRequest) -> FormSuggestion:
    if isinstance(form_suggester, VertexAIAdapter):
        return form_suggester.suggest_form(request.prompt)
    return form_suggester.suggest(request.prompt)


@app.post("/v1/projects/{project_id}/suggestions:apply", response_model=MutationResponse, status_code=201)
async def apply_suggestion(
    project_id: str, request: ApplySuggestionRequest, x_user_id: str | None = Header(default=None)
) -> MutationResponse:
    suggestion = await suggest_form(SuggestionRequest(prompt=request.prompt))
    return _mutate(
        project_id,
        x_user_id,
        "apply_suggestion",
        lambda editor, project: editor.add_fields(project, request.target_id, suggestion.fields),
    )


@app.get("/v1/templates", response_model=list[FormTemplate])
async def get_templates(category: str | None = None, search: str | None = None) -> list[FormTemplate]:
    return list_templates(category=category, search=search)


@app.get("/v1/palette")
async def get_palette() -> JSONResponse:
    return JSONResponse(
        [
            {
                "key": category.key,
                "label": category.label,
                "items": [
                    {
                        "type": item.type.value,
                        "label": item.label,
                        "description": item.description,
                        "premium": item.premium,
                    }
                    for item in category.items
                ],
            }
            for category in FIELD_PALETTE
        ]
    )


@app.get("/health")
async def healthcheck() -> JSONResponse:
    return JSONResponse({"status": "ok"})
