from __future__ import annotations

from enum import Enum
from typing import Sequence

from pydantic import Field

from .base import FormModel


class LayoutType(str, Enum):
    single = "single"
    two_column = "two-column"
    three_column = "three-column"
    four_column = "four-column"
    custom = "custom"


class LayoutAlignment(str, Enum):
    top = "top"
    center = "center"
    bottom = "bottom"
    stretch = "stretch"


PRESET_COLUMN_WIDTHS: dict[LayoutType, tuple[str, ...]] = {
    LayoutType.single: ("100%",),
    LayoutType.two_column: ("50%", "50%"),
    LayoutType.three_column: ("33.333%", "33.333%", "33.333%"),
    LayoutType.four_column: ("25%", "25%", "25%", "25%"),
}


def column_id(section_id: str, index: int) -> str:
    return f"{section_id}-col-{index}"


class Column(FormModel):
    id: str
    width: str = "100%"
    fields: list[str] = Field(default_factory=list)


class Layout(FormModel):
    type: LayoutType = LayoutType.single
    columns: list[Column] = Field(default_factory=list)
    gap: str = "1rem"
    alignment: LayoutAlignment = LayoutAlignment.top

    @classmethod
    def for_type(
        cls,
        layout_type: LayoutType,
        section_id: str,
        field_ids: Sequence[str] = (),
        *,
        current: "Layout | None" = None,
    ) -> "Layout":
        """Build the preset column set for ``layout_type``.

        Placed ids are spread round-robin across the new columns so that
        switching layouts never drops a placement. ``custom`` keeps the
        current columns untouched.
        """
        if layout_type == LayoutType.custom:
            columns = [col.model_copy(deep=True) for col in current.columns] if current else []
            if not columns:
                columns = [Column(id=column_id(section_id, 0), width="100%", fields=list(field_ids))]
            return cls(
                type=layout_type,
                columns=columns,
                gap=current.gap if current else "1rem",
                alignment=current.alignment if current else LayoutAlignment.top,
            )

        widths = PRESET_COLUMN_WIDTHS[layout_type]
        columns = [Column(id=column_id(section_id, index), width=width) for index, width in enumerate(widths)]
        for position, field_id in enumerate(field_ids):
            columns[position % len(columns)].fields.append(field_id)
        return cls(
            type=layout_type,
            columns=columns,
            gap=current.gap if current else "1rem",
            alignment=current.alignment if current else LayoutAlignment.top,
        )

    def column_of(self, field_id: str) -> Column | None:
        for column in self.columns:
            if field_id in column.fields:
                return column
        return None


__all__ = ["Column", "Layout", "LayoutAlignment", "LayoutType", "PRESET_COLUMN_WIDTHS", "column_id"]
