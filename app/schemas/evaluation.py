from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

EvaluationTypeLiteral = Literal["MIDTERM", "FINAL"]


class SendEvaluationPayload(BaseModel):
    type: EvaluationTypeLiteral
    student_msg: str | None = Field(default=None, max_length=2000)
    supervisor_msg: str | None = Field(default=None, max_length=2000)


class SubmissionOut(BaseModel):
    id: str
    evaluation_id: str
    role: str
    status: str
    answers: dict[str, int | float | str]
    last_saved_at: datetime | None
    locked_at: datetime | None
    submitted_by_id: str | None
    created_at: datetime
    updated_at: datetime
    version: int


class EvaluationOut(BaseModel):
    id: str
    placement_id: str
    type: str
    created_by_id: str | None
    student_msg: str | None
    supervisor_msg: str | None
    created_at: datetime
    updated_at: datetime
    submissions: list[SubmissionOut]


class SendResultOut(BaseModel):
    evaluation_id: str
    placement_id: str
    type: str
    created: int
    reused: int
    locked: int


class SaveAnswersPayload(BaseModel):
    answers: dict[str, int | float | str] = Field(default_factory=dict)
