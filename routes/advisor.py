"""
Advisor validation endpoints
"""

from typing import List, Optional

from fastapi import APIRouter, Depends

from models import User
from routes.logs import transition_response
from schemas.api_models import LogSummary, StudentProgressResponse, TransitionResponse
from schemas.validation import AdvisorSendBack, AdvisorValidate
from utils.auth_dependencies import get_current_user, get_workflow, require_advisor
from utils.log_workflow import LogWorkflow

router = APIRouter()


@router.get("/pending", response_model=List[LogSummary])
async def pending_validations(
    current_user: User = Depends(require_advisor),
    workflow: LogWorkflow = Depends(get_workflow),
):
    return workflow.pending_validations(current_user)


@router.post("/logs/{log_id}/validate", response_model=TransitionResponse)
async def validate_log(
    log_id: int,
    payload: Optional[AdvisorValidate] = None,
    current_user: User = Depends(require_advisor),
    workflow: LogWorkflow = Depends(get_workflow),
):
    """Final sign-off; a validated log can no longer change"""
    outcome = workflow.validate(current_user, log_id, payload.notes if payload else None)
    return transition_response(outcome, "Log validated")


@router.post("/logs/{log_id}/send-back", response_model=TransitionResponse)
async def send_back_log(
    log_id: int,
    payload: AdvisorSendBack,
    current_user: User = Depends(require_advisor),
    workflow: LogWorkflow = Depends(get_workflow),
):
    outcome = workflow.send_back(current_user, log_id, payload.notes)
    return transition_response(outcome, "Log sent back to the mentor")


@router.get("/students/{student_id}/progress", response_model=StudentProgressResponse)
async def student_progress(
    student_id: int,
    current_user: User = Depends(get_current_user),
    workflow: LogWorkflow = Depends(get_workflow),
):
    return workflow.student_progress(current_user, student_id)
