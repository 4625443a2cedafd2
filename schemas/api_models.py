"""
Pydantic response schemas for API v1
This is the single source of truth for all API contracts
"""

from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional, Dict, Any
from datetime import date as date_type, datetime

from models import (
    LogStatus,
    NotificationType,
    PollTargetRole,
    PollType,
    QuestionType,
    XpReason,
)


# ============================================================================
# BASE MODELS
# ============================================================================


class BaseResponse(BaseModel):
    """Base response with common fields"""

    success: bool = True
    message: Optional[str] = None


class ErrorResponse(BaseModel):
    """Standard error response"""

    success: bool = False
    error: str
    error_code: Optional[str] = None
    detail: Optional[Any] = None
    status_code: int
    request_id: Optional[str] = None
    correlation_id: Optional[str] = None


COMMON_RESPONSES = {
    401: {"model": ErrorResponse, "description": "Missing or unknown X-User-ID"},
    403: {"model": ErrorResponse, "description": "Role or ownership check failed"},
    404: {"model": ErrorResponse, "description": "Resource not found"},
    409: {"model": ErrorResponse, "description": "Illegal transition or duplicate"},
    422: {"model": ErrorResponse, "description": "Validation error"},
}


class HealthCheckResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str
    database: str


# ============================================================================
# LOGS
# ============================================================================


class LogPhotoResponse(BaseModel):
    id: int
    uri: str
    caption: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LogDocumentResponse(BaseModel):
    id: int
    uri: str
    file_name: str
    file_type: str
    file_size: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SelfAssessmentResponse(BaseModel):
    id: int
    log_id: int
    competency_ratings: Dict[str, int]
    reflection_notes: str
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class FeedbackResponse(BaseModel):
    id: int
    log_id: int
    mentor_id: int
    rating: int
    comments: str
    competency_ratings: Dict[str, int]
    is_approved: bool
    revision_required: bool
    revision_notes: Optional[str] = None
    areas_of_excellence: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RevisionResponse(BaseModel):
    id: int
    previous_content: str
    new_content: str
    reason: str
    revised_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LogSummary(BaseModel):
    id: int
    student_id: int
    date: date_type
    title: str
    status: LogStatus
    hours_spent: int
    xp_earned: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LogDetail(LogSummary):
    content: str
    activities_performed: str
    skills_learned: str
    challenges_faced: str
    advisor_notes: Optional[str] = None
    validated_at: Optional[datetime] = None
    validated_by: Optional[int] = None
    photos: List[LogPhotoResponse] = []
    documents: List[LogDocumentResponse] = []
    self_assessment: Optional[SelfAssessmentResponse] = None
    current_feedback: Optional[FeedbackResponse] = None
    feedbacks: List[FeedbackResponse] = []
    revisions: List[RevisionResponse] = []
    allowed_actions: List[str] = []


class TransitionResponse(BaseResponse):
    """Result of a status change; warnings list side effects that did not complete"""

    log: LogDetail
    previous_status: LogStatus
    warnings: List[str] = []


class FeedbackTransitionResponse(TransitionResponse):
    feedback: FeedbackResponse


class CompetencyComparisonItem(BaseModel):
    competency: str
    label: str
    self_rating: Optional[int] = None
    mentor_rating: Optional[int] = None
    difference: Optional[int] = None
    is_discrepancy: bool

    model_config = ConfigDict(from_attributes=True)


class CompetencyComparisonResponse(BaseModel):
    log_id: int
    items: List[CompetencyComparisonItem]
    discrepancy_count: int


class StudentProgressResponse(BaseModel):
    student_id: int
    total_logs: int
    log_counts: Dict[str, int]
    avg_mentor_rating: float
    total_xp: int
    current_level: int
    current_streak: int
    longest_streak: int


# ============================================================================
# GAMIFICATION
# ============================================================================


class GamificationProfileResponse(BaseModel):
    student_id: int
    total_xp: int
    current_level: int
    level_name: str
    next_level_xp: Optional[int] = None
    current_streak: int
    longest_streak: int
    last_activity_date: Optional[date_type] = None


class XpTransactionResponse(BaseModel):
    id: int
    amount: int
    reason: XpReason
    log_id: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class EarnedBadgeResponse(BaseModel):
    badge_key: str
    name: str
    description: str
    earned_at: datetime


class LeaderboardEntry(BaseModel):
    rank: int
    student_id: int
    full_name: str
    total_xp: int
    current_level: int
    current_streak: int


class LevelInfo(BaseModel):
    level: int
    name: str
    min_xp: int


class BadgeInfo(BaseModel):
    key: str
    name: str
    description: str
    requirement: int


class PointTableResponse(BaseModel):
    points: Dict[str, int]
    levels: List[LevelInfo]
    badges: List[BadgeInfo]


# ============================================================================
# POLLS
# ============================================================================


class PollOptionResponse(BaseModel):
    id: int
    option_text: str
    sort_order: int

    model_config = ConfigDict(from_attributes=True)


class PollQuestionResponse(BaseModel):
    id: int
    question_text: str
    question_type: QuestionType
    sort_order: int
    correct_option_id: Optional[int] = None
    options: List[PollOptionResponse] = []

    model_config = ConfigDict(from_attributes=True)


class PollSummary(BaseModel):
    id: int
    creator_id: int
    title: str
    description: Optional[str] = None
    poll_type: PollType
    target_role: PollTargetRole
    is_active: bool
    starts_at: datetime
    ends_at: Optional[datetime] = None
    created_at: datetime
    has_responded: Optional[bool] = None
    response_count: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class PollDetail(PollSummary):
    questions: List[PollQuestionResponse] = []


class PollSubmissionResponse(BaseResponse):
    response_id: int
    poll_id: int
    score: Optional[int] = None
    warnings: List[str] = []


class QuestionResult(BaseModel):
    question_id: int
    question_text: str
    question_type: QuestionType
    option_counts: Dict[str, int]
    text_answers: List[str]
    avg_rating: Optional[float] = None


class PollResultsResponse(BaseModel):
    poll_id: int
    total_responses: int
    avg_score: Optional[int] = None
    question_results: List[QuestionResult]


# ============================================================================
# NOTIFICATIONS
# ============================================================================


class NotificationResponse(BaseModel):
    id: int
    title: str
    body: str
    type: NotificationType
    is_read: bool
    data: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UnreadCountResponse(BaseModel):
    unread_count: int


class MarkedReadResponse(BaseResponse):
    updated: int
