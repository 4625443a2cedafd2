"""
Poll and quiz endpoints
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, status

from models import Poll, User, UserRole
from schemas.api_models import (
    PollDetail,
    PollResultsResponse,
    PollSubmissionResponse,
    PollSummary,
)
from schemas.validation import PollCreate, PollResponseCreate
from utils.auth_dependencies import get_current_user, get_poll_service, require_staff
from utils.poll_scoring import PollService

router = APIRouter()


def poll_detail(poll: Poll, viewer: User, has_responded: Optional[bool] = None) -> PollDetail:
    detail = PollDetail.model_validate(poll)
    if poll.creator_id != viewer.id and viewer.status != UserRole.ADMIN:
        # Responders never see the answer key
        questions = [q.model_copy(update={"correct_option_id": None}) for q in detail.questions]
        detail = detail.model_copy(update={"questions": questions})
    return detail.model_copy(update={"has_responded": has_responded})


@router.post("", response_model=PollDetail, status_code=status.HTTP_201_CREATED)
async def create_poll(
    payload: PollCreate,
    current_user: User = Depends(require_staff),
    service: PollService = Depends(get_poll_service),
):
    poll = service.create_poll(current_user, payload)
    return poll_detail(poll, current_user)


@router.get("", response_model=List[PollSummary])
async def list_active_polls(
    current_user: User = Depends(get_current_user),
    service: PollService = Depends(get_poll_service),
):
    """Active polls addressed to the caller's role"""
    polls = service.active_polls(current_user)
    responded = service.responded_poll_ids(current_user.id, [poll.id for poll in polls])
    return [
        PollSummary.model_validate(poll).model_copy(update={"has_responded": poll.id in responded})
        for poll in polls
    ]


@router.get("/mine", response_model=List[PollSummary])
async def list_my_polls(
    current_user: User = Depends(require_staff),
    service: PollService = Depends(get_poll_service),
):
    return [
        PollSummary.model_validate(row["poll"]).model_copy(update={"response_count": row["response_count"]})
        for row in service.polls_created_by(current_user)
    ]


@router.get("/{poll_id}", response_model=PollDetail)
async def get_poll(
    poll_id: int,
    current_user: User = Depends(get_current_user),
    service: PollService = Depends(get_poll_service),
):
    poll = service.get_poll(poll_id)
    return poll_detail(poll, current_user, service.has_responded(poll_id, current_user.id))


@router.post("/{poll_id}/responses", response_model=PollSubmissionResponse, status_code=status.HTTP_201_CREATED)
async def submit_response(
    poll_id: int,
    payload: PollResponseCreate,
    current_user: User = Depends(get_current_user),
    service: PollService = Depends(get_poll_service),
):
    """
    Record the caller's answers. Quiz polls are scored against the answer key;
    completion XP, the perfect-score bonus and the quiz_master badge follow for students.
    """
    outcome = service.submit_response(current_user, poll_id, payload.answers)
    return {
        "success": True,
        "message": "Response recorded",
        "response_id": outcome.response.id,
        "poll_id": poll_id,
        "score": outcome.score,
        "warnings": outcome.failed_side_effects,
    }


@router.get("/{poll_id}/results", response_model=PollResultsResponse)
async def get_results(
    poll_id: int,
    current_user: User = Depends(require_staff),
    service: PollService = Depends(get_poll_service),
):
    return service.results(current_user, poll_id)


@router.post("/{poll_id}/close", response_model=PollSummary)
async def close_poll(
    poll_id: int,
    current_user: User = Depends(require_staff),
    service: PollService = Depends(get_poll_service),
):
    return service.close_poll(current_user, poll_id)
