from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .errors import ConditionalReferenceWarning
from .models.document import Project
from .models.field import ConditionalAction, ConditionalRule

logger = logging.getLogger(__name__)


@dataclass
class IntegrityReport:
    """Data-quality findings that never block editing or rendering."""

    conditional_warnings: list[ConditionalReferenceWarning] = field(default_factory=list)
    orphaned_field_ids: list[str] = field(default_factory=list)
    dangling_skip_targets: list[tuple[str, str]] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not (self.conditional_warnings or self.orphaned_field_ids or self.dangling_skip_targets)

    def model_dump(self) -> dict[str, object]:
        return {
            "conditional_warnings": [
                {
                    "owner_kind": warning.owner_kind,
                    "owner_id": warning.owner_id,
                    "field_id": warning.field_id,
                    "message": warning.message,
                }
                for warning in self.conditional_warnings
            ],
            "orphaned_field_ids": list(self.orphaned_field_ids),
            "dangling_skip_targets": [
                {"owner_id": owner_id, "target_section_id": target}
                for owner_id, target in self.dangling_skip_targets
            ],
        }


def _rules(project: Project) -> list[tuple[str, str, ConditionalRule]]:
    rules: list[tuple[str, str, ConditionalRule]] = []
    for page in project.ordered_pages():
        if page.conditional is not None:
            rules.append(("page", page.id, page.conditional))
        for section in page.ordered_sections():
            if section.conditional is not None:
                rules.append(("section", section.id, section.conditional))
    for form_field in project.fields:
        rules.append(("field", form_field.id, form_field.conditional))
    return rules


def find_conditional_reference_warnings(project: Project) -> list[ConditionalReferenceWarning]:
    known = {form_field.id for form_field in project.fields}
    warnings: list[ConditionalReferenceWarning] = []
    for owner_kind, owner_id, rule in _rules(project):
        for field_id in rule.referenced_field_ids():
            if field_id not in known:
                warnings.append(ConditionalReferenceWarning(owner_kind, owner_id, field_id))
    return warnings


def check_project(project: Project) -> IntegrityReport:
    section_ids = {section.id for section in project.iter_sections()}
    report = IntegrityReport(
        conditional_warnings=find_conditional_reference_warnings(project),
        orphaned_field_ids=project.orphaned_field_ids(),
    )
    for _, owner_id, rule in _rules(project):
        if rule.action == ConditionalAction.skip_to_section and rule.target_section_id not in section_ids:
            report.dangling_skip_targets.append((owner_id, rule.target_section_id or ""))
    if not report.is_clean:
        logger.info(
            "Project has data-quality findings",
            extra={
                "project_id": project.id,
                "conditional_warnings": len(report.conditional_warnings),
                "orphaned_fields": len(report.orphaned_field_ids),
                "dangling_skip_targets": len(report.dangling_skip_targets),
            },
        )
    return report


__all__ = ["IntegrityReport", "check_project", "find_conditional_reference_warnings"]
