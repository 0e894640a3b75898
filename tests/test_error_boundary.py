import logging

import pytest

from form_builder.error_boundary import ErrorBoundary
from form_builder.errors import InvariantViolation, NotFoundError


def test_successful_calls_pass_through():
    boundary = ErrorBoundary()

    assert boundary.call("add", lambda a, b: a + b, 2, 3) == 5


def test_failures_are_reported_and_reraised(caplog):
    reported = []
    boundary = ErrorBoundary([lambda exc, context: reported.append((type(exc), context))])

    with caplog.at_level(logging.WARNING, logger="form_builder.error_boundary"):
        with pytest.raises(NotFoundError):
            with boundary.guard("delete_field", project_id="p1"):
                raise NotFoundError("Field", "ghost")

    assert reported == [(NotFoundError, {"operation": "delete_field", "project_id": "p1"})]
    assert caplog.records[0].levelno == logging.WARNING
    assert caplog.records[0].error_type == "NotFoundError"


def test_unexpected_errors_log_with_traceback(caplog):
    boundary = ErrorBoundary()

    with caplog.at_level(logging.ERROR, logger="form_builder.error_boundary"):
        with pytest.raises(ZeroDivisionError):
            boundary.call("divide", lambda: 1 / 0)

    assert caplog.records[0].exc_info is not None


def test_broken_reporter_does_not_mask_the_original_error(caplog):
    def broken(exc, context):
        raise RuntimeError("reporter down")

    seen = []
    boundary = ErrorBoundary([broken])
    boundary.add_reporter(lambda exc, context: seen.append(str(exc)))

    with pytest.raises(InvariantViolation, match="last page"):
        boundary.call("delete_page", _raise_invariant)

    assert seen == ["Cannot delete the last page"]
    assert "Error reporter failed" in caplog.text


def _raise_invariant():
    raise InvariantViolation("Cannot delete the last page")
