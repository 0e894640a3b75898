from __future__ import annotations

import logging
from typing import Any, Mapping

from .conditions import ConditionalEvaluator, VisibilityResolver, VisibilitySnapshot
from .models.document import Page, Project, Section

logger = logging.getLogger(__name__)


class FormNavigator:
    """Step-by-step navigation over the visible pages and sections of a form.

    ``skip_to_section`` only ever jumps forward: a target that lies before the
    current section (or does not exist, or is hidden) is ignored and the
    natural next step is used instead.
    """

    def __init__(self, project: Project, evaluator: ConditionalEvaluator | None = None) -> None:
        self._project = project
        self._pages = project.ordered_pages()
        self._evaluator = evaluator or ConditionalEvaluator.for_project(project)
        self._resolver = VisibilityResolver(project, self._evaluator)
        self._section_order = [section.id for page in self._pages for section in page.ordered_sections()]

    @property
    def pages(self) -> list[Page]:
        return list(self._pages)

    def visible_pages(self, values: Mapping[str, Any]) -> list[Page]:
        snapshot = self._resolver.snapshot(values)
        return [page for page in self._pages if snapshot.pages[page.id].visible]

    def visible_section_ids(self, values: Mapping[str, Any]) -> list[str]:
        return self._visible_sections(self._resolver.snapshot(values))

    def next_section_id(self, current_section_id: str, values: Mapping[str, Any]) -> str | None:
        current = self._project.get_section(current_section_id)
        snapshot = self._resolver.snapshot(values)
        visible = self._visible_sections(snapshot)
        current_position = self._section_order.index(current_section_id)

        target = self._fired_skip(current, snapshot)
        if target is not None and self._is_forward(current_position, target, visible):
            return target

        for section_id in self._section_order[current_position + 1 :]:
            if section_id in visible:
                return section_id
        return None

    def next_page_index(self, current_index: int, values: Mapping[str, Any]) -> int | None:
        page = self._page_at(current_index)
        snapshot = self._resolver.snapshot(values)
        visible_sections = self._visible_sections(snapshot)

        if page.ordered_sections():
            own_sections = {section.id for section in page.sections}
            last_position = self._section_order.index(page.ordered_sections()[-1].id)
            for section in page.ordered_sections():
                if section.id not in visible_sections:
                    continue
                target = self._fired_skip(section, snapshot)
                # Skips within the page are resolved by next_section_id.
                if target is None or target in own_sections:
                    continue
                if not self._is_forward(last_position, target, visible_sections):
                    continue
                target_page = self._project.page_of_section(target)
                target_index = self._pages.index(target_page)
                if snapshot.pages[target_page.id].visible:
                    return target_index

        for index in range(current_index + 1, len(self._pages)):
            if snapshot.pages[self._pages[index].id].visible:
                return index
        return None

    def previous_page_index(self, current_index: int, values: Mapping[str, Any]) -> int | None:
        self._page_at(current_index)
        snapshot = self._resolver.snapshot(values)
        for index in range(current_index - 1, -1, -1):
            if snapshot.pages[self._pages[index].id].visible:
                return index
        return None

    def is_last_page(self, current_index: int, values: Mapping[str, Any]) -> bool:
        return self.next_page_index(current_index, values) is None

    def progress(self, current_index: int, values: Mapping[str, Any]) -> float:
        """Percent complete, counting only visible pages."""
        current = self._page_at(current_index)
        visible = self.visible_pages(values)
        if not visible:
            return 0.0
        if current in visible:
            position = visible.index(current) + 1
        else:
            position = sum(1 for page in visible if self._pages.index(page) < current_index)
        return round(position / len(visible) * 100, 2)

    def _page_at(self, index: int) -> Page:
        if index < 0 or index >= len(self._pages):
            raise IndexError(f"Page index out of range: {index}")
        return self._pages[index]

    def _visible_sections(self, snapshot: VisibilitySnapshot) -> list[str]:
        visible: list[str] = []
        for page in self._pages:
            if not snapshot.pages[page.id].visible:
                continue
            visible.extend(
                section.id for section in page.ordered_sections() if snapshot.sections[section.id].visible
            )
        return visible

    def _fired_skip(self, section: Section, snapshot: VisibilitySnapshot) -> str | None:
        section_effect = snapshot.sections.get(section.id)
        if section_effect is not None and section_effect.skip_to_section:
            return section_effect.skip_to_section
        for field_id in section.fields:
            state = snapshot.fields.get(field_id)
            if state is not None and state.visible and state.skip_to_section:
                return state.skip_to_section
        return None

    def _is_forward(self, current_position: int, target: str, visible: list[str]) -> bool:
        if target not in self._section_order or target not in visible:
            logger.warning(
                "Ignoring skip to unknown or hidden section",
                extra={"project_id": self._project.id, "target_section_id": target},
            )
            return False
        if self._section_order.index(target) <= current_position:
            logger.warning(
                "Ignoring backward skip",
                extra={"project_id": self._project.id, "target_section_id": target},
            )
            return False
        return True


__all__ = ["FormNavigator"]
