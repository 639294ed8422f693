import datetime as dt
from decimal import Decimal
from typing import Literal
import uuid

from pydantic import BaseModel, Field


class TimesheetEntryCreate(BaseModel):
    date: dt.date
    hours: Decimal
    category: str
    notes: str | None = Field(default=None, max_length=2000)


class TimesheetEntryUpdate(BaseModel):
    date: dt.date | None = None
    hours: Decimal | None = None
    category: str | None = None
    notes: str | None = Field(default=None, max_length=2000)


class TimesheetEntryOut(BaseModel):
    id: str
    placement_id: str
    date: dt.date
    hours: float
    category: str
    notes: str | None
    status: str
    submitted_at: dt.datetime | None
    supervisor_approved_at: dt.datetime | None
    faculty_approved_at: dt.datetime | None
    rejected_at: dt.datetime | None
    locked: bool
    created_at: dt.datetime
    updated_at: dt.datetime


class SubmitWeekPayload(BaseModel):
    start_date: dt.date
    end_date: dt.date


class DecisionPayload(BaseModel):
    entry_ids: list[uuid.UUID] = Field(min_length=1)
    action: Literal["approve", "reject"]
    notes: str | None = Field(default=None, max_length=2000)


class BatchResultOut(BaseModel):
    requested: int
    updated: int
    total_hours: float


class HoursSummaryOut(BaseModel):
    placement_id: str
    required_hours: int
    approved_hours: float
    pending_hours: float
    remaining_hours: float
