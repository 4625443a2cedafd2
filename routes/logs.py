"""
Student daily log endpoints
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from models import DailyLog, User
from schemas.api_models import (
    LogDetail,
    LogDocumentResponse,
    LogPhotoResponse,
    LogSummary,
    SelfAssessmentResponse,
    TransitionResponse,
)
from schemas.validation import LogCreate, LogUpdate, SelfAssessmentUpsert
from utils.auth_dependencies import get_current_user, get_workflow, require_student
from utils.log_workflow import LogWorkflow, TransitionOutcome, allowed_actions

router = APIRouter()


def serialize_log(log: DailyLog) -> LogDetail:
    detail = LogDetail.model_validate(log)
    return detail.model_copy(update={"allowed_actions": [action.value for action in allowed_actions(log.status)]})


def transition_response(outcome: TransitionOutcome, message: str) -> dict:
    return {
        "success": True,
        "message": message,
        "log": serialize_log(outcome.log),
        "previous_status": outcome.transition.source,
        "warnings": outcome.failed_side_effects,
    }


@router.post("", response_model=LogDetail, status_code=status.HTTP_201_CREATED)
async def create_log(
    payload: LogCreate,
    current_user: User = Depends(require_student),
    workflow: LogWorkflow = Depends(get_workflow),
):
    """Create a draft log; one log per student per date"""
    log = workflow.create_log(current_user, payload.date, **payload.model_dump(exclude={"date"}))
    return serialize_log(log)


@router.get("", response_model=List[LogSummary])
async def list_logs(
    current_user: User = Depends(require_student),
    workflow: LogWorkflow = Depends(get_workflow),
):
    return workflow.list_logs(current_user.id)


@router.get("/by-date/{log_date}", response_model=LogDetail)
async def get_log_by_date(
    log_date: date,
    current_user: User = Depends(require_student),
    workflow: LogWorkflow = Depends(get_workflow),
):
    return serialize_log(workflow.get_log_by_date(current_user.id, log_date))


@router.get("/{log_id}", response_model=LogDetail)
async def get_log(
    log_id: int,
    current_user: User = Depends(get_current_user),
    workflow: LogWorkflow = Depends(get_workflow),
):
    """
    Full log detail including attachments, self-assessment, review history and revisions.
    Visible to the owner, the assigned mentor and advisor, and admins.
    """
    return serialize_log(workflow.get_visible_log(current_user, log_id))


@router.patch("/{log_id}", response_model=LogDetail)
async def update_log(
    log_id: int,
    payload: LogUpdate,
    current_user: User = Depends(require_student),
    workflow: LogWorkflow = Depends(get_workflow),
):
    log = workflow.update_log(current_user, log_id, payload.model_dump(exclude_unset=True))
    return serialize_log(log)


@router.put("/{log_id}/self-assessment", response_model=SelfAssessmentResponse)
async def save_self_assessment(
    log_id: int,
    payload: SelfAssessmentUpsert,
    current_user: User = Depends(require_student),
    workflow: LogWorkflow = Depends(get_workflow),
):
    return workflow.save_self_assessment(
        current_user, log_id, payload.competency_ratings, payload.reflection_notes
    )


@router.post("/{log_id}/photos", response_model=LogPhotoResponse, status_code=status.HTTP_201_CREATED)
async def upload_photo(
    log_id: int,
    file: UploadFile = File(...),
    caption: Optional[str] = Form(None),
    current_user: User = Depends(require_student),
    workflow: LogWorkflow = Depends(get_workflow),
):
    data = await file.read()
    return workflow.add_photo(current_user, log_id, data, file.filename, file.content_type, caption)


@router.post("/{log_id}/documents", response_model=LogDocumentResponse, status_code=status.HTTP_201_CREATED)
async def upload_document(
    log_id: int,
    file: UploadFile = File(...),
    current_user: User = Depends(require_student),
    workflow: LogWorkflow = Depends(get_workflow),
):
    data = await file.read()
    return workflow.add_document(current_user, log_id, data, file.filename, file.content_type)


@router.post("/{log_id}/submit", response_model=TransitionResponse)
async def submit_log(
    log_id: int,
    current_user: User = Depends(require_student),
    workflow: LogWorkflow = Depends(get_workflow),
):
    """
    Submit a draft (or a log returned for revision) for mentor review.

    The status change is committed before XP, streak and badge updates run; any of those that fail
    are listed in `warnings`.
    """
    outcome = workflow.submit(current_user, log_id)
    return transition_response(outcome, "Log submitted for review")
