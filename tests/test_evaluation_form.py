import json

import pytest

from app.core.errors import ValidationFailed
from app.core.evaluation_form import DEFAULT_EVALUATION_FORM, NOT_APPLICABLE, load_evaluation_form
from app.core.evaluation_form_validation import (
    missing_required_fields,
    validate_lock,
    validate_save_payload,
)


def _complete_answers() -> dict:
    return {
        "attendance": 5,
        "ethics": 4,
        "supervision_use": 4,
        "engagement": 3,
        "assessment": 4,
        "documentation": 5,
        "strengths": "Builds rapport quickly",
        "growth_areas": "Case notes",
    }


def test_missing_required_fields_lists_every_violation():
    form = load_evaluation_form()
    errors = missing_required_fields(form=form, answers={"attendance": 5})
    fields = [e["field"] for e in errors]
    assert fields == [
        "ethics",
        "supervision_use",
        "engagement",
        "assessment",
        "documentation",
        "strengths",
        "growth_areas",
    ]
    assert errors[0]["label"] == "Professionalism: Adheres to professional ethics"


def test_not_applicable_code_satisfies_single_select_only():
    form = load_evaluation_form()
    answers = _complete_answers()
    answers["assessment"] = NOT_APPLICABLE
    assert missing_required_fields(form=form, answers=answers) == []

    answers["strengths"] = "   "
    errors = missing_required_fields(form=form, answers=answers)
    assert [e["field"] for e in errors] == ["strengths"]


def test_validate_lock_raises_with_labels():
    form = load_evaluation_form()
    with pytest.raises(ValidationFailed) as exc:
        validate_lock(form=form, answers={})
    assert len(exc.value.errors) == 8
    assert "Summary: Strengths" in exc.value.details["missing_fields"]


def test_save_checks_types_of_known_fields_and_keeps_unknown_keys():
    form = load_evaluation_form()
    validate_save_payload(form=form, answers={"attendance": "3", "draft_note": "anything"})

    with pytest.raises(ValidationFailed) as exc:
        validate_save_payload(form=form, answers={"attendance": 7, "ethics": "great"})
    assert {e["field"]: e["code"] for e in exc.value.errors} == {"attendance": "choice", "ethics": "type"}


def test_form_can_be_loaded_from_json_file(tmp_path):
    custom = dict(DEFAULT_EVALUATION_FORM, name="Custom Form")
    path = tmp_path / "form.json"
    path.write_text(json.dumps(custom), encoding="utf-8")

    form = load_evaluation_form(str(path))
    assert form.name == "Custom Form"
    assert "attendance" in form.field_map()
