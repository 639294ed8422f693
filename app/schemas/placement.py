from datetime import date, datetime
from typing import Literal
import uuid

from pydantic import BaseModel, Field


class PlacementCreate(BaseModel):
    site_id: uuid.UUID
    faculty_id: uuid.UUID
    start_date: date
    end_date: date
    required_hours: int = Field(ge=0)
    # students apply for themselves; faculty/admin name the student
    student_id: uuid.UUID | None = None
    supervisor_id: uuid.UUID | None = None
    class_id: uuid.UUID | None = None


class DocumentAttach(BaseModel):
    kind: Literal["cell_policy", "learning_contract", "checklist"]
    url: str = Field(min_length=1, max_length=500)


class DeclinePayload(BaseModel):
    reason: str | None = None


class PlacementOut(BaseModel):
    id: str
    student_id: str
    site_id: str
    site_name: str | None = None
    supervisor_id: str | None
    faculty_id: str
    class_id: str | None
    start_date: date
    end_date: date
    required_hours: int
    status: str
    approved_at: datetime | None
    declined_at: datetime | None
    decline_reason: str | None
    archived_at: datetime | None
    cell_policy: str | None
    learning_contract: str | None
    checklist: str | None
    created_at: datetime
    updated_at: datetime


class PlacementDetailOut(PlacementOut):
    approved_hours: float
    remaining_hours: float


class ArchiveOut(BaseModel):
    placement: PlacementOut
    student_has_other_active: bool
