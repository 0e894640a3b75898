import json
import logging
import sys

from form_builder.logging_config import StructuredFormatter, get_trace_id, set_trace_id


def _record(**extra):
    record = logging.LogRecord("form_builder.test", logging.INFO, __file__, 10, "Saved %s", ("project",), None)
    record.__dict__.update(extra)
    return record


def test_structured_formatter_emits_json_with_extras():
    payload = json.loads(StructuredFormatter().format(_record(project_id="p1", version=4)))

    assert payload["severity"] == "INFO"
    assert payload["message"] == "Saved project"
    assert payload["logger"] == "form_builder.test"
    assert payload["project_id"] == "p1"
    assert payload["version"] == 4
    assert payload["timestamp"].endswith("Z")


def test_trace_id_is_attached_while_set():
    set_trace_id("projects/demo/traces/abc")
    try:
        payload = json.loads(StructuredFormatter().format(_record()))
        assert get_trace_id() == "projects/demo/traces/abc"
        assert payload["logging.googleapis.com/trace"] == "projects/demo/traces/abc"
    finally:
        set_trace_id(None)

    assert "logging.googleapis.com/trace" not in json.loads(StructuredFormatter().format(_record()))


def test_exceptions_are_formatted():
    try:
        raise ValueError("boom")
    except ValueError:
        record = _record()
        record.exc_info = sys.exc_info()

    payload = json.loads(StructuredFormatter().format(record))

    assert "ValueError: boom" in payload["exception"]


def test_non_json_extras_are_stringified():
    payload = json.loads(StructuredFormatter().format(_record(owner=object())))

    assert payload["owner"].startswith("<object object")


def test_project_and_user_ids_become_labels():
    payload = json.loads(StructuredFormatter().format(_record(project_id="p1", user_id="u1", version=2)))

    assert payload["logging.googleapis.com/labels"] == {"project_id": "p1", "user_id": "u1"}
    assert "logging.googleapis.com/labels" not in json.loads(StructuredFormatter().format(_record(version=2)))
