"""
Mentor review endpoints
"""

from typing import List

from fastapi import APIRouter, Depends

from models import User
from routes.logs import transition_response
from schemas.api_models import (
    CompetencyComparisonResponse,
    FeedbackResponse,
    FeedbackTransitionResponse,
    LogSummary,
)
from schemas.validation import FeedbackCreate
from utils.auth_dependencies import get_current_user, get_workflow, require_mentor
from utils.log_workflow import LogWorkflow

router = APIRouter()


@router.get("/api/v1/mentor/pending", response_model=List[LogSummary])
async def pending_reviews(
    current_user: User = Depends(require_mentor),
    workflow: LogWorkflow = Depends(get_workflow),
):
    """Submitted logs of the mentor's students, oldest first"""
    return workflow.pending_reviews(current_user)


@router.post("/api/v1/mentor/logs/{log_id}/feedback", response_model=FeedbackTransitionResponse)
async def submit_feedback(
    log_id: int,
    payload: FeedbackCreate,
    current_user: User = Depends(require_mentor),
    workflow: LogWorkflow = Depends(get_workflow),
):
    """
    Approve a submitted log or send it back for revision.
    A revision request must carry revision notes.
    """
    outcome = workflow.review(
        current_user,
        log_id,
        is_approved=payload.is_approved,
        rating=payload.rating,
        comments=payload.comments,
        competency_ratings=payload.competency_ratings,
        revision_notes=payload.revision_notes,
        areas_of_excellence=payload.areas_of_excellence,
    )
    message = "Log approved" if payload.is_approved else "Revision requested"
    response = transition_response(outcome, message)
    response["feedback"] = outcome.feedback
    return response


@router.get("/api/v1/mentor/feedback", response_model=List[FeedbackResponse])
async def feedback_history(
    current_user: User = Depends(require_mentor),
    workflow: LogWorkflow = Depends(get_workflow),
):
    return workflow.feedback_history(current_user)


@router.get("/api/v1/logs/{log_id}/competency-comparison", response_model=CompetencyComparisonResponse)
async def competency_comparison(
    log_id: int,
    current_user: User = Depends(get_current_user),
    workflow: LogWorkflow = Depends(get_workflow),
):
    items = workflow.competency_comparison(current_user, log_id)
    return {
        "log_id": log_id,
        "items": items,
        "discrepancy_count": sum(1 for item in items if item.is_discrepancy),
    }
