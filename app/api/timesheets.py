from datetime import date
import uuid

from fastapi import APIRouter, Depends, Query, Response

from app.api.deps import get_context
from app.models.timesheet_entry import TimesheetEntry
from app.schemas.timesheet import (
    BatchResultOut,
    DecisionPayload,
    SubmitWeekPayload,
    TimesheetEntryCreate,
    TimesheetEntryOut,
    TimesheetEntryUpdate,
)
from app.services import timesheets as svc
from app.services.context import OperationContext
from app.services.timesheets import BatchResult

router = APIRouter(tags=["timesheets"])


def entry_to_out(e: TimesheetEntry) -> TimesheetEntryOut:
    return TimesheetEntryOut(
        id=str(e.id),
        placement_id=str(e.placement_id),
        date=e.date,
        hours=float(e.hours),
        category=e.category,
        notes=e.notes,
        status=e.status,
        submitted_at=e.submitted_at,
        supervisor_approved_at=e.supervisor_approved_at,
        faculty_approved_at=e.faculty_approved_at,
        rejected_at=e.rejected_at,
        locked=e.locked,
        created_at=e.created_at,
        updated_at=e.updated_at,
    )


def batch_to_out(r: BatchResult) -> BatchResultOut:
    return BatchResultOut(requested=r.requested, updated=r.updated, total_hours=float(r.total_hours))


@router.get("/placements/{placement_id}/timesheet", response_model=list[TimesheetEntryOut])
def list_entries(
    placement_id: uuid.UUID,
    start_date: date | None = Query(default=None, description="Inclusive lower bound"),
    end_date: date | None = Query(default=None, description="Inclusive upper bound"),
    ctx: OperationContext = Depends(get_context),
):
    rows = svc.list_entries(ctx, placement_id, start_date=start_date, end_date=end_date)
    return [entry_to_out(e) for e in rows]


@router.post("/placements/{placement_id}/timesheet", response_model=TimesheetEntryOut, status_code=201)
def create_entry(
    placement_id: uuid.UUID,
    payload: TimesheetEntryCreate,
    ctx: OperationContext = Depends(get_context),
):
    e = svc.create_entry(
        ctx,
        placement_id,
        date=payload.date,
        hours=payload.hours,
        category=payload.category,
        notes=payload.notes,
    )
    return entry_to_out(e)


@router.post("/placements/{placement_id}/timesheet/submit-week", response_model=BatchResultOut)
def submit_week(
    placement_id: uuid.UUID,
    payload: SubmitWeekPayload,
    ctx: OperationContext = Depends(get_context),
):
    result = svc.submit_week(ctx, placement_id, start_date=payload.start_date, end_date=payload.end_date)
    return batch_to_out(result)


@router.patch("/timesheet/{entry_id}", response_model=TimesheetEntryOut)
def update_entry(
    entry_id: uuid.UUID,
    payload: TimesheetEntryUpdate,
    ctx: OperationContext = Depends(get_context),
):
    e = svc.update_entry(ctx, entry_id, **payload.model_dump(exclude_unset=True))
    return entry_to_out(e)


@router.delete("/timesheet/{entry_id}", status_code=204)
def delete_entry(entry_id: uuid.UUID, ctx: OperationContext = Depends(get_context)):
    svc.delete_entry(ctx, entry_id)
    return Response(status_code=204)


@router.post("/timesheet/supervisor-decision", response_model=BatchResultOut)
def supervisor_decision(payload: DecisionPayload, ctx: OperationContext = Depends(get_context)):
    result = svc.supervisor_decision(ctx, payload.entry_ids, payload.action, payload.notes)
    return batch_to_out(result)


@router.post("/timesheet/faculty-decision", response_model=BatchResultOut)
def faculty_decision(payload: DecisionPayload, ctx: OperationContext = Depends(get_context)):
    result = svc.faculty_decision(ctx, payload.entry_ids, payload.action, payload.notes)
    return batch_to_out(result)
