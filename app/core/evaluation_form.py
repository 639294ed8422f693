from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from app.core.config import settings

# Numeric code a single-select answer uses for "Not Applicable"
NOT_APPLICABLE = 9

FieldType = Literal["single-select", "text", "textarea", "number", "date"]


class FormField(BaseModel):
    id: str
    label: str
    type: FieldType = "text"
    required: bool = False
    options: list[int] | None = None  # single-select codes, N/A excluded


class FormPage(BaseModel):
    id: str
    title: str
    fields: list[FormField] = Field(default_factory=list)


class EvaluationForm(BaseModel):
    name: str
    version: int = 1
    pages: list[FormPage]

    def iter_fields(self):
        for page in self.pages:
            for field in page.fields:
                yield page, field

    def field_map(self) -> dict[str, FormField]:
        return {f.id: f for _, f in self.iter_fields()}


_RATING = [1, 2, 3, 4, 5]

DEFAULT_EVALUATION_FORM = {
    "name": "Field Placement Evaluation",
    "version": 1,
    "pages": [
        {
            "id": "professionalism",
            "title": "Professionalism",
            "fields": [
                {"id": "attendance", "label": "Attendance and punctuality", "type": "single-select", "required": True, "options": _RATING},
                {"id": "ethics", "label": "Adheres to professional ethics", "type": "single-select", "required": True, "options": _RATING},
                {"id": "supervision_use", "label": "Uses supervision effectively", "type": "single-select", "required": True, "options": _RATING},
            ],
        },
        {
            "id": "practice_skills",
            "title": "Practice Skills",
            "fields": [
                {"id": "engagement", "label": "Engagement with clients", "type": "single-select", "required": True, "options": _RATING},
                {"id": "assessment", "label": "Assessment skills", "type": "single-select", "required": True, "options": _RATING},
                {"id": "documentation", "label": "Documentation quality", "type": "single-select", "required": True, "options": _RATING},
            ],
        },
        {
            "id": "summary",
            "title": "Summary",
            "fields": [
                {"id": "strengths", "label": "Strengths", "type": "textarea", "required": True},
                {"id": "growth_areas", "label": "Areas for growth", "type": "textarea", "required": True},
                {"id": "additional_comments", "label": "Additional comments", "type": "textarea", "required": False},
            ],
        },
    ],
}


@lru_cache
def load_evaluation_form(path: str | None = None) -> EvaluationForm:
    """
    Built-in form unless EVALUATION_FORM_PATH names a JSON file with the same shape.
    """
    path = path or settings.EVALUATION_FORM_PATH
    if path:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        return EvaluationForm.model_validate(raw)
    return EvaluationForm.model_validate(DEFAULT_EVALUATION_FORM)
