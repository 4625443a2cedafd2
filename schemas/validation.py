from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Any, Dict, List, Optional
from datetime import date as date_type, datetime

from models import PollTargetRole, PollType, QuestionType
from utils.competency import validate_ratings


def _ratings(v: Optional[Dict[str, int]]) -> Dict[str, int]:
    return validate_ratings(v or {})


class LogCreate(BaseModel):
    """Schema for creating a draft log"""

    date: Optional[date_type] = Field(default=None, description="Log date, defaults to today")
    title: str = Field(..., min_length=1, max_length=100)
    content: str = Field(default="", max_length=5000)
    activities_performed: str = Field(default="", max_length=5000)
    skills_learned: str = Field(default="", max_length=5000)
    challenges_faced: str = Field(default="", max_length=5000)
    hours_spent: int = Field(default=0, ge=0, le=24 * 60, description="Minutes")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        if not v.strip():
            raise ValueError("Title cannot be empty")
        return v


class LogUpdate(BaseModel):
    """Partial edit of a draft or needs_revision log"""

    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    content: Optional[str] = Field(default=None, max_length=5000)
    activities_performed: Optional[str] = Field(default=None, max_length=5000)
    skills_learned: Optional[str] = Field(default=None, max_length=5000)
    challenges_faced: Optional[str] = Field(default=None, max_length=5000)
    hours_spent: Optional[int] = Field(default=None, ge=0, le=24 * 60)


class SelfAssessmentUpsert(BaseModel):
    competency_ratings: Dict[str, int] = Field(default_factory=dict)
    reflection_notes: str = Field(default="", max_length=5000)

    @field_validator("competency_ratings")
    @classmethod
    def validate_competency_ratings(cls, v):
        return _ratings(v)


class FeedbackCreate(BaseModel):
    """Mentor review of a submitted log"""

    is_approved: bool
    rating: int = Field(..., ge=1, le=5)
    comments: str = Field(default="", max_length=5000)
    competency_ratings: Dict[str, int] = Field(default_factory=dict)
    revision_notes: Optional[str] = Field(default=None, max_length=5000)
    areas_of_excellence: Optional[str] = Field(default=None, max_length=5000)

    @field_validator("competency_ratings")
    @classmethod
    def validate_competency_ratings(cls, v):
        return _ratings(v)


class AdvisorValidate(BaseModel):
    notes: Optional[str] = Field(default=None, max_length=5000)


class AdvisorSendBack(BaseModel):
    # Emptiness is checked by the workflow so the error carries the field name
    notes: Optional[str] = Field(default=None, max_length=5000)


class PollOptionCreate(BaseModel):
    option_text: str = Field(..., min_length=1, max_length=500)
    sort_order: Optional[int] = None


class PollQuestionCreate(BaseModel):
    question_text: str = Field(..., min_length=1, max_length=2000)
    question_type: QuestionType = QuestionType.SINGLE_CHOICE
    sort_order: Optional[int] = None
    options: List[PollOptionCreate] = Field(default_factory=list, max_length=20)
    correct_option_index: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def validate_options(self):
        choice = self.question_type in (QuestionType.SINGLE_CHOICE, QuestionType.MULTIPLE_CHOICE)
        if choice and len(self.options) < 2:
            raise ValueError("Choice questions need at least 2 options")
        if self.correct_option_index is not None and self.correct_option_index >= len(self.options):
            raise ValueError("correct_option_index must point at one of the options")
        return self


class PollCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    poll_type: PollType = PollType.SURVEY
    target_role: PollTargetRole = PollTargetRole.STUDENT
    ends_at: Optional[datetime] = None
    questions: List[PollQuestionCreate] = Field(..., min_length=1, max_length=50)


class PollResponseCreate(BaseModel):
    """Answers keyed by question id"""

    answers: Dict[str, Any]

    @field_validator("answers")
    @classmethod
    def validate_answer_keys(cls, v):
        for key in v:
            if not str(key).isdigit():
                raise ValueError(f"Answer key {key!r} is not a question id")
        return v
