from __future__ import annotations

import json
import logging
from typing import Any

import vertexai
from vertexai.generative_models import GenerationConfig, GenerativeModel

from .defaults import DEFAULT_OPTIONS, IdFactory, default_id_factory
from .models.field import CHOICE_FIELD_TYPES, FieldType
from .suggestions import FormSuggestion, KeywordFormSuggester

logger = logging.getLogger(__name__)

_SUGGESTABLE_TYPES = ", ".join(item.value for item in FieldType)


class VertexAIAdapter:
    """Adapter for Vertex AI Gemini models."""

    def __init__(
        self,
        *,
        project_id: str,
        location: str = "us-central1",
        model_name: str = "gemini-1.5-pro",
        fallback: KeywordFormSuggester | None = None,
        id_factory: IdFactory = default_id_factory,
    ) -> None:
        """Initialize Vertex AI adapter.

        Args:
            project_id: GCP project ID
            location: Vertex AI location
            model_name: Model name (e.g., "gemini-1.5-pro")
            fallback: Suggester used when the model's answer is unusable
            id_factory: Generates ids for suggested fields
        """
        self.project_id = project_id
        self.location = location
        self.model_name = model_name
        self.fallback = fallback or KeywordFormSuggester(id_factory=id_factory)
        self._id_factory = id_factory

        vertexai.init(project=project_id, location=location)
        self.model = GenerativeModel(model_name)

    def generate_content(
        self,
        prompt: str,
        *,
        temperature: float = 0.7,
        max_output_tokens: int = 8192,
        response_format: str | None = None,
    ) -> str:
        generation_config = GenerationConfig(
            temperature=temperature,
            max_output_tokens=max_output_tokens,
        )

        if response_format == "json":
            prompt = f"{prompt}\n\nPlease respond with valid JSON only."

        response = self.model.generate_content(
            prompt,
            generation_config=generation_config,
        )

        generated_text = response.text

        logger.info(
            "Generated content with Vertex AI",
            extra={
                "model": self.model_name,
                "temperature": temperature,
                "input_length": len(prompt),
                "output_length": len(generated_text),
            },
        )

        return generated_text

    def generate_json(
        self,
        prompt: str,
        *,
        temperature: float = 0.7,
        max_output_tokens: int = 8192,
    ) -> Any:
        """Generate a response and parse it as JSON, tolerating markdown fences."""
        response = self.generate_content(
            prompt,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            response_format="json",
        )

        try:
            response = response.strip()
            if response.startswith("```json"):
                response = response[7:]
            if response.startswith("```"):
                response = response[3:]
            if response.endswith("```"):
                response = response[:-3]

            return json.loads(response.strip())
        except json.JSONDecodeError as exc:
            logger.error(
                "Failed to parse JSON response",
                exc_info=True,
                extra={"response": response},
            )
            raise ValueError(f"Invalid JSON response: {exc}") from exc

    def suggest_form(self, prompt: str) -> FormSuggestion:
        """Ask Gemini for a form matching ``prompt``.

        Falls back to keyword matching when the call fails or the answer does
        not describe a valid form.
        """
        request = f"""You design web forms.
Propose a form for the following request.

Request:
{prompt}

Requirements:
- Use only these field types: {_SUGGESTABLE_TYPES}
- Give select, radio and checkbox fields an "options" list
- Keep the form short; at most 10 fields

Respond in this JSON format:
{{"title": "Form title", "description": "One sentence", "fields": [
  {{"type": "text", "label": "Full Name", "placeholder": "Enter your full name",
   "required": true, "validation": {{"required": true, "minLength": 2}}}}
]}}
"""

        try:
            result = self.generate_json(request, temperature=0.4)
            if not isinstance(result, dict):
                logger.warning(
                    "Unexpected JSON structure from Vertex AI",
                    extra={"result": result},
                )
                return self.fallback.suggest(prompt)
            return self._to_suggestion(result)

        except Exception:
            logger.error(
                "Failed to suggest form with Vertex AI",
                exc_info=True,
                extra={"prompt_length": len(prompt)},
            )
            return self.fallback.suggest(prompt)

    def _to_suggestion(self, result: dict[str, Any]) -> FormSuggestion:
        fields = []
        for raw in result.get("fields") or []:
            item = dict(raw)
            item["id"] = self._id_factory("field")
            field_type = FieldType(item.get("type", FieldType.text))
            if field_type in CHOICE_FIELD_TYPES:
                item["options"] = item.get("options") or list(DEFAULT_OPTIONS)
            else:
                item["options"] = None
            fields.append(item)

        return FormSuggestion.model_validate(
            {
                "title": result.get("title") or "Custom Form",
                "description": result.get("description") or "",
                "fields": fields,
            }
        )


__all__ = ["VertexAIAdapter"]
