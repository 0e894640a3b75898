from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from form_builder.models.document import Project
from form_builder.mutations import MutationEngine

FIXTURES = Path(__file__).parent / "fixtures"


class SequentialIds:
    """Predictable ids: ``field-1``, ``field-2``, ``section-1`` ..."""

    def __init__(self) -> None:
        self._counters: dict[str, int] = {}

    def __call__(self, prefix: str) -> str:
        self._counters[prefix] = self._counters.get(prefix, 0) + 1
        return f"{prefix}-{self._counters[prefix]}"


class SteppingClock:
    def __init__(self, start: datetime, step: timedelta = timedelta(seconds=1)) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


@pytest.fixture
def ids() -> SequentialIds:
    return SequentialIds()


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock(datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def engine(clock: SteppingClock, ids: SequentialIds) -> MutationEngine:
    return MutationEngine(clock=clock, id_factory=ids)


@pytest.fixture
def contact_project() -> Project:
    return Project.model_validate_json((FIXTURES / "contact_form.json").read_text(encoding="utf-8"))
