from __future__ import annotations

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class FormModel(BaseModel):
    """Base for document models: snake_case in Python, camelCase on the wire."""

    class Config:
        populate_by_name = True
        alias_generator = to_camel


__all__ = ["FormModel"]
