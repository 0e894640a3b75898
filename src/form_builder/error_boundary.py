from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator, TypeVar

from .errors import FormBuilderError

logger = logging.getLogger(__name__)

T = TypeVar("T")
Reporter = Callable[[BaseException, dict[str, Any]], None]


class ErrorBoundary:
    """Observes failures of wrapped calls without changing their outcome.

    Failures are logged with their context, handed to each registered
    reporter, and then re-raised unchanged. Structural errors from the core
    log at WARNING; anything else logs at ERROR with the traceback.
    """

    def __init__(self, reporters: list[Reporter] | None = None) -> None:
        self._reporters: list[Reporter] = list(reporters or [])

    def add_reporter(self, reporter: Reporter) -> None:
        self._reporters.append(reporter)

    @contextmanager
    def guard(self, operation: str, **context: Any) -> Iterator[None]:
        try:
            yield
        except Exception as exc:
            self._observe(exc, {"operation": operation, **context})
            raise

    def call(self, operation: str, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        with self.guard(operation):
            return func(*args, **kwargs)

    def _observe(self, exc: Exception, context: dict[str, Any]) -> None:
        extra = {**context, "error_type": type(exc).__name__, "error": str(exc)}
        if isinstance(exc, FormBuilderError):
            logger.warning("Operation failed", extra=extra)
        else:
            logger.error("Operation failed unexpectedly", exc_info=exc, extra=extra)

        for reporter in list(self._reporters):
            try:
                reporter(exc, context)
            except Exception:
                logger.exception("Error reporter failed", extra={"operation": context.get("operation")})


__all__ = ["ErrorBoundary", "Reporter"]
