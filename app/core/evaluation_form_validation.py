from __future__ import annotations

from datetime import date
from typing import Any

from app.core.errors import ValidationFailed
from app.core.evaluation_form import NOT_APPLICABLE, EvaluationForm, FormField


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and value.strip() == "":
        return True
    return False


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _type_sanity(field: FormField, value: Any) -> dict | None:
    """
    Save-level: validate "this could be valid" for the declared type.
    Blank values are allowed while a submission is in progress.
    """
    if _is_blank(value):
        return None

    if field.type == "single-select":
        code = _as_int(value)
        if code is None:
            return {"field": field.id, "code": "type", "message": "Must be an option code"}
        if code != NOT_APPLICABLE and field.options and code not in field.options:
            return {"field": field.id, "code": "choice", "message": "Must be one of allowed options"}

    elif field.type == "number":
        if isinstance(value, bool):
            return {"field": field.id, "code": "type", "message": "Must be a number"}
        try:
            float(value)
        except (TypeError, ValueError):
            return {"field": field.id, "code": "type", "message": "Must be a number"}

    elif field.type == "date":
        try:
            date.fromisoformat(str(value))
        except ValueError:
            return {"field": field.id, "code": "type", "message": "Must be ISO date YYYY-MM-DD"}

    return None


def validate_save_payload(*, form: EvaluationForm, answers: dict[str, Any]) -> None:
    """
    save: type sanity for keys the form knows; unknown keys are kept as-is
    """
    fields = form.field_map()
    errors: list[dict] = []
    for key, value in answers.items():
        field = fields.get(key)
        if field is None:
            continue
        err = _type_sanity(field, value)
        if err:
            errors.append(err)

    if errors:
        raise ValidationFailed("Save validation failed", errors=errors)


def missing_required_fields(*, form: EvaluationForm, answers: dict[str, Any]) -> list[dict]:
    """
    lock: every required field needs a non-empty value; single-select fields
    may carry the Not Applicable code instead. Returns ALL violations.
    """
    errors: list[dict] = []
    for page, field in form.iter_fields():
        if not field.required:
            continue
        value = answers.get(field.id)
        if field.type == "single-select" and _as_int(value) == NOT_APPLICABLE:
            continue
        if _is_blank(value):
            errors.append(
                {
                    "field": field.id,
                    "page": page.title,
                    "label": f"{page.title}: {field.label}",
                    "code": "required",
                    "message": "Required",
                }
            )
    return errors


def validate_lock(*, form: EvaluationForm, answers: dict[str, Any]) -> None:
    errors = missing_required_fields(form=form, answers=answers)
    if errors:
        raise ValidationFailed(
            "Cannot submit: required fields are missing",
            errors=errors,
            missing_fields=[e["label"] for e in errors],
        )
