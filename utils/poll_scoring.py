"""
Polls and quiz scoring
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import (
    Poll,
    PollOption,
    PollQuestion,
    PollResponse,
    PollTargetRole,
    PollType,
    QuestionType,
    StudentProfile,
    User,
    UserRole,
    XpReason,
)
from utils.error_handling import ConflictError, NotFoundError, PermissionDeniedError, ValidationError, run_side_effect
from utils.gamification import GamificationEngine
from utils.permissions import Permission, PermissionChecker
from utils.structured_logging import get_logger, LogCategory

logger = get_logger("polls")

PERFECT_SCORE = 100


def _is_blank(answer: Any) -> bool:
    if answer is None:
        return True
    if isinstance(answer, str):
        return not answer.strip()
    if isinstance(answer, (list, tuple, dict)):
        return len(answer) == 0
    return False


def _matches(answer: Any, correct_option_id: int) -> bool:
    # Exact match only: "3" and True are not option 3
    return type(answer) is int and answer == correct_option_id


def score_quiz(questions: Sequence[PollQuestion], answers: Mapping[str, Any]) -> Optional[int]:
    """
    Percentage of graded questions answered with the correct option, rounded half up.

    Only questions with a correct option are graded. Returns None when nothing is graded.
    """
    graded = [q for q in questions if q.correct_option_id is not None]
    if not graded:
        return None
    correct = sum(1 for q in graded if _matches(answers.get(str(q.id)), q.correct_option_id))
    return (200 * correct + len(graded)) // (2 * len(graded))


def missing_answers(questions: Sequence[PollQuestion], answers: Mapping[str, Any]) -> List[int]:
    return [q.id for q in questions if _is_blank(answers.get(str(q.id)))]


def is_open(poll: Poll, now: Optional[datetime] = None) -> bool:
    now = now or datetime.utcnow()
    if not poll.is_active:
        return False
    if poll.starts_at and poll.starts_at > now:
        return False
    return poll.ends_at is None or poll.ends_at > now


def targets_role(poll: Poll, role: UserRole) -> bool:
    return poll.target_role == PollTargetRole.ALL or poll.target_role.value == UserRole(role).value


@dataclass
class SubmissionOutcome:
    response: PollResponse
    score: Optional[int]
    failed_side_effects: List[str] = field(default_factory=list)


class PollService:
    def __init__(self, db: Session, engine: Optional[GamificationEngine] = None):
        self.db = db
        self.engine = engine or GamificationEngine(db)

    def get_poll(self, poll_id: int) -> Poll:
        poll = self.db.get(Poll, poll_id)
        if poll is None:
            raise NotFoundError("Poll not found", extra={"poll_id": poll_id})
        return poll

    def has_responded(self, poll_id: int, user_id: int) -> bool:
        return (
            self.db.query(PollResponse.id)
            .filter(PollResponse.poll_id == poll_id, PollResponse.user_id == user_id)
            .first()
            is not None
        )

    def response_count(self, user_id: int) -> int:
        return self.db.query(PollResponse).filter(PollResponse.user_id == user_id).count()

    def create_poll(self, actor: User, data) -> Poll:
        PermissionChecker.require(actor, Permission.CREATE_POLL)

        poll = Poll(
            creator_id=actor.id,
            title=data.title,
            description=data.description,
            poll_type=data.poll_type,
            target_role=data.target_role,
            ends_at=data.ends_at,
        )
        self.db.add(poll)

        pending_answers = []
        for position, question_in in enumerate(data.questions):
            question = PollQuestion(
                question_text=question_in.question_text,
                question_type=question_in.question_type,
                sort_order=question_in.sort_order if question_in.sort_order is not None else position,
            )
            for option_position, option_in in enumerate(question_in.options):
                question.options.append(
                    PollOption(
                        option_text=option_in.option_text,
                        sort_order=option_in.sort_order if option_in.sort_order is not None else option_position,
                    )
                )
            poll.questions.append(question)
            if question_in.correct_option_index is not None:
                if not 0 <= question_in.correct_option_index < len(question.options):
                    self.db.rollback()
                    raise ValidationError(
                        "correct_option_index is out of range",
                        extra={"question": position, "correct_option_index": question_in.correct_option_index},
                    )
                pending_answers.append((question, question.options[question_in.correct_option_index]))

        # Option ids exist only after the flush
        self.db.flush()
        for question, option in pending_answers:
            question.correct_option_id = option.id
        self.db.commit()
        self.db.refresh(poll)

        logger.info(
            f"Poll created: {poll.title}",
            category=LogCategory.POLL,
            user_id=actor.id,
            extra={"poll_id": poll.id, "poll_type": poll.poll_type.value, "questions": len(poll.questions)},
        )
        return poll

    def active_polls(self, actor: User) -> List[Poll]:
        role_filter = [PollTargetRole.ALL]
        if actor.status.value in {r.value for r in PollTargetRole}:
            role_filter.append(PollTargetRole(actor.status.value))
        return (
            self.db.query(Poll)
            .filter(Poll.is_active.is_(True), Poll.target_role.in_(role_filter))
            .order_by(Poll.created_at.desc(), Poll.id.desc())
            .all()
        )

    def responded_poll_ids(self, user_id: int, poll_ids: Sequence[int]) -> set:
        if not poll_ids:
            return set()
        rows = (
            self.db.query(PollResponse.poll_id)
            .filter(PollResponse.user_id == user_id, PollResponse.poll_id.in_(poll_ids))
            .all()
        )
        return {row[0] for row in rows}

    def polls_created_by(self, actor: User) -> List[Dict[str, Any]]:
        PermissionChecker.require(actor, Permission.CREATE_POLL)
        rows = (
            self.db.query(Poll, func.count(PollResponse.id))
            .outerjoin(PollResponse, PollResponse.poll_id == Poll.id)
            .filter(Poll.creator_id == actor.id)
            .group_by(Poll.id)
            .order_by(Poll.created_at.desc(), Poll.id.desc())
            .all()
        )
        return [{"poll": poll, "response_count": count} for poll, count in rows]

    def submit_response(self, actor: User, poll_id: int, answers: Mapping[str, Any]) -> SubmissionOutcome:
        PermissionChecker.require(actor, Permission.RESPOND_POLL)
        poll = self.get_poll(poll_id)
        if not targets_role(poll, actor.status):
            raise PermissionDeniedError("Poll is not addressed to your role", extra={"poll_id": poll_id})
        if not is_open(poll):
            raise ConflictError("Poll is closed", extra={"poll_id": poll_id})
        if self.has_responded(poll_id, actor.id):
            raise ConflictError("You have already responded to this poll", extra={"poll_id": poll_id})

        answers = {str(key): value for key, value in answers.items()}
        missing = missing_answers(poll.questions, answers)
        if missing:
            raise ValidationError("Every question must be answered", extra={"missing_question_ids": missing})

        score = score_quiz(poll.questions, answers) if poll.poll_type == PollType.QUIZ else None

        response = PollResponse(poll_id=poll.id, user_id=actor.id, answers=answers, score=score)
        self.db.add(response)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("You have already responded to this poll", extra={"poll_id": poll_id})
        self.db.refresh(response)

        logger.info(
            "Poll response recorded",
            category=LogCategory.POLL,
            user_id=actor.id,
            extra={"poll_id": poll_id, "score": score},
        )

        outcome = SubmissionOutcome(response=response, score=score)
        if self.db.get(StudentProfile, actor.id) is not None:
            failures = outcome.failed_side_effects
            run_side_effect(
                self.db, "poll_completed XP", self.engine.grant, actor.id, XpReason.POLL_COMPLETED, failures=failures
            )
            if score == PERFECT_SCORE:
                run_side_effect(
                    self.db, "quiz_perfect_score XP", self.engine.grant, actor.id, XpReason.QUIZ_PERFECT_SCORE,
                    failures=failures,
                )
            run_side_effect(
                self.db, "quiz_master badge", self.engine.check_quiz_master, actor.id, failures=failures
            )
        return outcome

    def results(self, actor: User, poll_id: int) -> Dict[str, Any]:
        PermissionChecker.require(actor, Permission.VIEW_POLL_RESULTS)
        poll = self.get_poll(poll_id)
        if poll.creator_id != actor.id and actor.status != UserRole.ADMIN:
            raise PermissionDeniedError("Only the poll creator can view results", extra={"poll_id": poll_id})

        responses = poll.responses
        scores = [r.score for r in responses if r.score is not None]
        question_results = []
        for question in poll.questions:
            key = str(question.id)
            option_counts = {str(option.id): 0 for option in question.options}
            text_answers = []
            ratings = []
            for response in responses:
                answer = (response.answers or {}).get(key)
                if answer is None:
                    continue
                if question.question_type == QuestionType.TEXT:
                    text_answers.append(str(answer))
                elif question.question_type == QuestionType.RATING:
                    try:
                        ratings.append(float(answer))
                    except (TypeError, ValueError):
                        continue
                elif question.question_type == QuestionType.MULTIPLE_CHOICE and isinstance(answer, list):
                    for option_id in answer:
                        if str(option_id) in option_counts:
                            option_counts[str(option_id)] += 1
                elif str(answer) in option_counts:
                    option_counts[str(answer)] += 1

            question_results.append(
                {
                    "question_id": question.id,
                    "question_text": question.question_text,
                    "question_type": question.question_type,
                    "option_counts": option_counts,
                    "text_answers": text_answers,
                    "avg_rating": round(sum(ratings) / len(ratings), 1) if ratings else None,
                }
            )

        return {
            "poll_id": poll.id,
            "total_responses": len(responses),
            "avg_score": (2 * sum(scores) + len(scores)) // (2 * len(scores)) if scores else None,
            "question_results": question_results,
        }

    def close_poll(self, actor: User, poll_id: int) -> Poll:
        PermissionChecker.require(actor, Permission.CREATE_POLL)
        poll = self.get_poll(poll_id)
        if poll.creator_id != actor.id and actor.status != UserRole.ADMIN:
            raise PermissionDeniedError("Only the poll creator can close it", extra={"poll_id": poll_id})
        poll.is_active = False
        self.db.commit()
        self.db.refresh(poll)
        logger.info("Poll closed", category=LogCategory.POLL, user_id=actor.id, extra={"poll_id": poll_id})
        return poll
