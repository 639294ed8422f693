import uuid

from fastapi import APIRouter, Depends, Header, Response

from app.api.deps import get_context
from app.core.evaluation_form import EvaluationForm, load_evaluation_form
from app.core.optimistic_lock import parse_if_match, set_etag
from app.core.security import get_current_user
from app.models.evaluation import Evaluation
from app.models.evaluation_submission import EvaluationSubmission
from app.schemas.evaluation import (
    EvaluationOut,
    SaveAnswersPayload,
    SendEvaluationPayload,
    SendResultOut,
    SubmissionOut,
)
from app.schemas.validation import LockPreviewResponse, ValidationError
from app.services import evaluations as svc
from app.services.context import OperationContext
from app.services.evaluations import SendResult

router = APIRouter(tags=["evaluations"])


def submission_to_out(s: EvaluationSubmission) -> SubmissionOut:
    return SubmissionOut(
        id=str(s.id),
        evaluation_id=str(s.evaluation_id),
        role=s.role,
        status=s.status,
        answers=s.answers or {},
        last_saved_at=s.last_saved_at,
        locked_at=s.locked_at,
        submitted_by_id=str(s.submitted_by_id) if s.submitted_by_id else None,
        created_at=s.created_at,
        updated_at=s.updated_at,
        version=s.version,
    )


def evaluation_to_out(e: Evaluation) -> EvaluationOut:
    return EvaluationOut(
        id=str(e.id),
        placement_id=str(e.placement_id),
        type=e.type,
        created_by_id=str(e.created_by_id) if e.created_by_id else None,
        student_msg=e.student_msg,
        supervisor_msg=e.supervisor_msg,
        created_at=e.created_at,
        updated_at=e.updated_at,
        submissions=[submission_to_out(s) for s in e.submissions],
    )


def send_result_to_out(r: SendResult) -> SendResultOut:
    return SendResultOut(
        evaluation_id=str(r.evaluation.id),
        placement_id=str(r.evaluation.placement_id),
        type=r.evaluation.type,
        created=r.created,
        reused=r.reused,
        locked=r.locked,
    )


@router.get("/evaluations/form", response_model=EvaluationForm)
def get_form(_=Depends(get_current_user)):
    return load_evaluation_form()


@router.post("/placements/{placement_id}/evaluations", response_model=SendResultOut, status_code=201)
def send_evaluation(
    placement_id: uuid.UUID,
    payload: SendEvaluationPayload,
    ctx: OperationContext = Depends(get_context),
):
    result = svc.send_evaluation(
        ctx,
        placement_id,
        payload.type,
        student_msg=payload.student_msg,
        supervisor_msg=payload.supervisor_msg,
    )
    return send_result_to_out(result)


@router.get("/placements/{placement_id}/evaluations", response_model=list[EvaluationOut])
def list_evaluations(placement_id: uuid.UUID, ctx: OperationContext = Depends(get_context)):
    return [evaluation_to_out(e) for e in svc.list_evaluations(ctx, placement_id)]


@router.post("/evaluations/send-bulk", response_model=list[SendResultOut])
def bulk_send(payload: SendEvaluationPayload, ctx: OperationContext = Depends(get_context)):
    """Issue the evaluation to every active placement the caller liaises."""
    results = svc.bulk_send_evaluations(
        ctx,
        payload.type,
        student_msg=payload.student_msg,
        supervisor_msg=payload.supervisor_msg,
    )
    return [send_result_to_out(r) for r in results]


@router.get("/evaluations/submissions/{submission_id}", response_model=SubmissionOut)
def get_submission(
    submission_id: uuid.UUID,
    response: Response,
    ctx: OperationContext = Depends(get_context),
):
    out = submission_to_out(svc.get_submission(ctx, submission_id))
    set_etag(response, out.version)
    return out


@router.put("/evaluations/submissions/{submission_id}/answers", response_model=SubmissionOut)
def save_answers(
    submission_id: uuid.UUID,
    payload: SaveAnswersPayload,
    response: Response,
    if_match: str | None = Header(default=None, alias="If-Match"),
    ctx: OperationContext = Depends(get_context),
):
    """Merge answers into the saved ones; keys not sent are kept."""
    s = svc.save_submission(
        ctx, submission_id, payload.answers, expected_version=parse_if_match(if_match)
    )
    out = submission_to_out(s)
    set_etag(response, out.version)
    return out


@router.get("/evaluations/submissions/{submission_id}/lock-preview", response_model=LockPreviewResponse)
def lock_preview(submission_id: uuid.UUID, ctx: OperationContext = Depends(get_context)):
    errors = svc.preview_lock(ctx, submission_id)
    return LockPreviewResponse(
        valid=not errors,
        errors=[ValidationError(**e) for e in errors],
        missing_fields=[e["label"] for e in errors],
    )


@router.post("/evaluations/submissions/{submission_id}/lock", response_model=SubmissionOut)
def lock_submission(
    submission_id: uuid.UUID,
    response: Response,
    if_match: str | None = Header(default=None, alias="If-Match"),
    ctx: OperationContext = Depends(get_context),
):
    s = svc.lock_submission(ctx, submission_id, expected_version=parse_if_match(if_match))
    out = submission_to_out(s)
    set_etag(response, out.version)
    return out


@router.post("/evaluations/submissions/{submission_id}/unlock", response_model=SubmissionOut)
def unlock_submission(
    submission_id: uuid.UUID,
    response: Response,
    ctx: OperationContext = Depends(get_context),
):
    out = submission_to_out(svc.unlock_submission(ctx, submission_id))
    set_etag(response, out.version)
    return out
