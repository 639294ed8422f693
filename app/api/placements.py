from typing import Union
import uuid

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_context
from app.core.states import DocumentKind
from app.models.placement import Placement
from app.schemas.pagination import PaginatedResponse, paginate
from app.schemas.placement import (
    ArchiveOut,
    DeclinePayload,
    DocumentAttach,
    PlacementCreate,
    PlacementDetailOut,
    PlacementOut,
)
from app.schemas.timesheet import HoursSummaryOut
from app.services import placements as svc
from app.services.context import OperationContext
from app.services.hours import hours_summary

router = APIRouter(prefix="/placements", tags=["placements"])


def placement_to_out(p: Placement) -> PlacementOut:
    return PlacementOut(
        id=str(p.id),
        student_id=str(p.student_id),
        site_id=str(p.site_id),
        site_name=p.site.name if p.site else None,
        supervisor_id=str(p.supervisor_id) if p.supervisor_id else None,
        faculty_id=str(p.faculty_id),
        class_id=str(p.class_id) if p.class_id else None,
        start_date=p.start_date,
        end_date=p.end_date,
        required_hours=p.required_hours,
        status=p.status,
        approved_at=p.approved_at,
        declined_at=p.declined_at,
        decline_reason=p.decline_reason,
        archived_at=p.archived_at,
        cell_policy=p.cell_policy,
        learning_contract=p.learning_contract,
        checklist=p.checklist,
        created_at=p.created_at,
        updated_at=p.updated_at,
    )


@router.post("", response_model=PlacementOut, status_code=201)
def create_placement(payload: PlacementCreate, ctx: OperationContext = Depends(get_context)):
    p = svc.create_placement(ctx, **payload.model_dump())
    return placement_to_out(p)


@router.get("", response_model=Union[list[PlacementOut], PaginatedResponse[PlacementOut]])
def list_placements(
    status: str | None = Query(default=None, description="Filter by status"),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    include_pagination: bool = Query(default=False, description="Include pagination metadata"),
    ctx: OperationContext = Depends(get_context),
):
    """
    Placements visible to the caller: students see their own, supervisors the
    ones they supervise, faculty the ones they liaise, admins everything.
    """
    rows, total = svc.list_placements(ctx, status=status, limit=limit, offset=offset)
    items = [placement_to_out(p) for p in rows]
    if include_pagination:
        return paginate(items, total=total, limit=limit, offset=offset)
    return items


@router.get("/{placement_id}", response_model=PlacementDetailOut)
def get_placement(placement_id: uuid.UUID, ctx: OperationContext = Depends(get_context)):
    p = svc.get_placement(ctx, placement_id)
    summary = hours_summary(ctx.db, p)
    return PlacementDetailOut(
        **placement_to_out(p).model_dump(),
        approved_hours=float(summary.approved),
        remaining_hours=float(summary.remaining),
    )


@router.get("/{placement_id}/hours", response_model=HoursSummaryOut)
def get_hours(placement_id: uuid.UUID, ctx: OperationContext = Depends(get_context)):
    p = svc.get_placement(ctx, placement_id)
    summary = hours_summary(ctx.db, p)
    return HoursSummaryOut(
        placement_id=str(p.id),
        required_hours=summary.required,
        approved_hours=float(summary.approved),
        pending_hours=float(summary.pending),
        remaining_hours=float(summary.remaining),
    )


@router.post("/{placement_id}/documents", response_model=PlacementOut)
def attach_document(
    placement_id: uuid.UUID,
    payload: DocumentAttach,
    ctx: OperationContext = Depends(get_context),
):
    p = svc.attach_document(ctx, placement_id, DocumentKind(payload.kind), payload.url)
    return placement_to_out(p)


@router.post("/{placement_id}/approve", response_model=PlacementOut)
def approve_placement(placement_id: uuid.UUID, ctx: OperationContext = Depends(get_context)):
    return placement_to_out(svc.approve_placement(ctx, placement_id))


@router.post("/{placement_id}/activate", response_model=PlacementOut)
def activate_placement(placement_id: uuid.UUID, ctx: OperationContext = Depends(get_context)):
    return placement_to_out(svc.activate_placement(ctx, placement_id))


@router.post("/{placement_id}/decline", response_model=PlacementOut)
def decline_placement(
    placement_id: uuid.UUID,
    payload: DeclinePayload,
    ctx: OperationContext = Depends(get_context),
):
    return placement_to_out(svc.decline_placement(ctx, placement_id, payload.reason))


@router.post("/{placement_id}/archive", response_model=ArchiveOut)
def archive_placement(placement_id: uuid.UUID, ctx: OperationContext = Depends(get_context)):
    result = svc.archive_placement(ctx, placement_id)
    return ArchiveOut(
        placement=placement_to_out(result.placement),
        student_has_other_active=result.student_has_other_active,
    )


@router.post("/{placement_id}/unarchive", response_model=PlacementOut)
def unarchive_placement(placement_id: uuid.UUID, ctx: OperationContext = Depends(get_context)):
    return placement_to_out(svc.unarchive_placement(ctx, placement_id))
