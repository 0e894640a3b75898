from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping


class FormBuilderError(Exception):
    """Base class for structural errors raised by the form document core."""


class NotFoundError(FormBuilderError):
    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class InvariantViolation(FormBuilderError):
    pass


class AuthenticationRequired(InvariantViolation):
    """The form only accepts submissions from a signed-in user."""


class DuplicateSubmission(InvariantViolation):
    pass


class RegexCompileError(FormBuilderError):
    def __init__(self, pattern: str, reason: str) -> None:
        super().__init__(f"Invalid pattern {pattern!r}: {reason}")
        self.pattern = pattern
        self.reason = reason


class ValidationFailed(FormBuilderError):
    """One or more field values violate their validation rules."""

    def __init__(self, errors: Mapping[str, str]) -> None:
        if not errors:
            raise ValueError("ValidationFailed requires at least one error")
        self.errors = dict(errors)
        self.field_id, self.message = next(iter(self.errors.items()))
        super().__init__(f"Validation failed for {len(self.errors)} field(s): {self.message}")


@dataclass(frozen=True)
class ConditionalReferenceWarning:
    """A condition points at a field id that does not exist in the document."""

    owner_kind: str
    owner_id: str
    field_id: str

    @property
    def message(self) -> str:
        return f"{self.owner_kind} {self.owner_id} references unknown field {self.field_id}"


__all__ = [
    "FormBuilderError",
    "NotFoundError",
    "InvariantViolation",
    "AuthenticationRequired",
    "DuplicateSubmission",
    "RegexCompileError",
    "ValidationFailed",
    "ConditionalReferenceWarning",
]
