"""
Daily Log Lifecycle
Owns a log's status, the transitions between student, mentor and advisor, and the side effects they trigger.

    draft ──submit──> submitted ──approve──────────> approved ──validate──> validated
                        ^   │                          │
                        │   └──request_revision──> needs_revision
                        │                              │
                        ├──────────submit──────────────┘
                        └──────────send_back───────── approved

Every transition is checked here (role, relationship to the student, source status, guards) so that no
caller can move a log along an edge that is not in TRANSITIONS. The status write itself is a
compare-and-set on the source status, so two concurrent actions on one log cannot both succeed.

Side effects (XP, streaks, badges, notifications) run after the status change has committed. Each one is
best-effort: a failure is logged and reported back in TransitionOutcome.failed_side_effects, the
transition stays committed.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import settings
from models import (
    DailyLog,
    LogDocument,
    LogPhoto,
    LogStatus,
    MentorFeedback,
    NotificationType,
    RevisionHistory,
    SelfAssessment,
    StudentProfile,
    User,
    UserRole,
    XpReason,
)
from utils.attachments import ALLOWED_DOCUMENT_TYPES, ALLOWED_PHOTO_TYPES, LocalAttachmentStorage
from utils.competency import CompetencyComparison, compare_ratings, is_complete, validate_ratings
from utils.error_handling import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
    run_side_effect,
    safe_database_operation,
)
from utils.gamification import GamificationEngine
from utils.notifications import NotificationDispatcher
from utils.permissions import Permission, PermissionChecker
from utils.structured_logging import get_logger, LogCategory

logger = get_logger("log_workflow")

MIN_TITLE_LENGTH = 5
MAX_TITLE_LENGTH = 100
MIN_CONTENT_LENGTH = 50
MAX_CONTENT_LENGTH = 5000

EDITABLE_STATUSES = frozenset({LogStatus.DRAFT, LogStatus.NEEDS_REVISION})
EDITABLE_FIELDS = (
    "title",
    "content",
    "activities_performed",
    "skills_learned",
    "challenges_faced",
    "hours_spent",
)


class LogAction(str, Enum):
    SUBMIT = "submit"
    APPROVE = "approve"
    REQUEST_REVISION = "request_revision"
    VALIDATE = "validate"
    SEND_BACK = "send_back"


@dataclass(frozen=True)
class Transition:
    source: LogStatus
    action: LogAction
    target: LogStatus
    role: UserRole


TRANSITIONS = (
    Transition(LogStatus.DRAFT, LogAction.SUBMIT, LogStatus.SUBMITTED, UserRole.STUDENT),
    Transition(LogStatus.NEEDS_REVISION, LogAction.SUBMIT, LogStatus.SUBMITTED, UserRole.STUDENT),
    Transition(LogStatus.SUBMITTED, LogAction.APPROVE, LogStatus.APPROVED, UserRole.MENTOR),
    Transition(LogStatus.SUBMITTED, LogAction.REQUEST_REVISION, LogStatus.NEEDS_REVISION, UserRole.MENTOR),
    Transition(LogStatus.APPROVED, LogAction.VALIDATE, LogStatus.VALIDATED, UserRole.ADVISOR),
    Transition(LogStatus.APPROVED, LogAction.SEND_BACK, LogStatus.SUBMITTED, UserRole.ADVISOR),
)

_TRANSITION_INDEX = {(t.source, t.action): t for t in TRANSITIONS}

ACTION_ROLES = {t.action: t.role for t in TRANSITIONS}


def resolve_transition(status: LogStatus, action: LogAction) -> Transition:
    transition = _TRANSITION_INDEX.get((LogStatus(status), LogAction(action)))
    if transition is None:
        raise InvalidTransitionError(
            f"Cannot {LogAction(action).value} a log in status '{LogStatus(status).value}'",
            extra={"status": LogStatus(status).value, "action": LogAction(action).value},
        )
    return transition


def allowed_actions(status: LogStatus) -> List[LogAction]:
    return [t.action for t in TRANSITIONS if t.source == LogStatus(status)]


def is_editable(log: DailyLog) -> bool:
    return LogStatus(log.status) in EDITABLE_STATUSES


def validate_submission(title: Optional[str], content: Optional[str]) -> None:
    """Length guards applied to the trimmed title and content"""
    title_length = len((title or "").strip())
    content_length = len((content or "").strip())
    if not MIN_TITLE_LENGTH <= title_length <= MAX_TITLE_LENGTH:
        raise ValidationError(
            f"Title must be between {MIN_TITLE_LENGTH} and {MAX_TITLE_LENGTH} characters",
            extra={"field": "title", "length": title_length},
        )
    if not MIN_CONTENT_LENGTH <= content_length <= MAX_CONTENT_LENGTH:
        raise ValidationError(
            f"Content must be between {MIN_CONTENT_LENGTH} and {MAX_CONTENT_LENGTH} characters",
            extra={"field": "content", "length": content_length},
        )


def _require_text(value: Optional[str], field_name: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field_name.replace('_', ' ').capitalize()} are required", extra={"field": field_name})
    return text


@dataclass
class TransitionOutcome:
    log: DailyLog
    transition: Transition
    feedback: Optional[MentorFeedback] = None
    failed_side_effects: List[str] = field(default_factory=list)


class LogWorkflow:
    def __init__(
        self,
        db: Session,
        engine: Optional[GamificationEngine] = None,
        notifier: Optional[NotificationDispatcher] = None,
        storage: Optional[LocalAttachmentStorage] = None,
    ):
        self.db = db
        self.notifier = notifier or NotificationDispatcher(db)
        self.engine = engine or GamificationEngine(db, self.notifier)
        self.storage = storage or LocalAttachmentStorage()

    # ------------------------------------------------------------------
    # Loading and authorization
    # ------------------------------------------------------------------

    def get_log(self, log_id: int) -> DailyLog:
        log = self.db.get(DailyLog, log_id)
        if log is None:
            raise NotFoundError("Log not found", extra={"log_id": log_id})
        return log

    def get_visible_log(self, actor: User, log_id: int) -> DailyLog:
        log = self.get_log(log_id)
        if not PermissionChecker.can_view_log(self.db, actor, log):
            raise PermissionDeniedError("Not allowed to view this log", extra={"log_id": log_id})
        return log

    def _authorize(self, actor: User, log: DailyLog, action: LogAction) -> None:
        required = ACTION_ROLES[action]
        if actor.status != required:
            raise PermissionDeniedError(
                f"Only a {required.value} may {action.value} a log",
                extra={"action": action.value, "role": actor.status.value},
            )
        if required == UserRole.STUDENT and log.student_id != actor.id:
            raise PermissionDeniedError("Log belongs to another student", extra={"log_id": log.id})
        if required == UserRole.MENTOR and not PermissionChecker.is_assigned_mentor(self.db, actor, log.student_id):
            raise PermissionDeniedError("Mentor is not assigned to this student", extra={"log_id": log.id})
        if required == UserRole.ADVISOR and not PermissionChecker.is_assigned_advisor(
            self.db, actor, log.student_id
        ):
            raise PermissionDeniedError("Advisor is not assigned to this student", extra={"log_id": log.id})

    def _get_own_editable_log(self, actor: User, log_id: int) -> DailyLog:
        PermissionChecker.require(actor, Permission.EDIT_OWN_LOG)
        log = self.get_log(log_id)
        if log.student_id != actor.id:
            raise PermissionDeniedError("Log belongs to another student", extra={"log_id": log_id})
        if not is_editable(log):
            raise InvalidTransitionError(
                f"Log cannot be edited in status '{LogStatus(log.status).value}'",
                extra={"log_id": log_id, "status": LogStatus(log.status).value},
            )
        return log

    def _apply(self, log: DailyLog, transition: Transition, changes: Optional[Dict[Any, Any]] = None) -> None:
        """Compare-and-set the status; the caller commits"""
        values = {DailyLog.status: transition.target}
        values.update(changes or {})
        updated = (
            self.db.query(DailyLog)
            .filter(DailyLog.id == log.id, DailyLog.status == transition.source)
            .update(values, synchronize_session=False)
        )
        if not updated:
            self.db.rollback()
            raise InvalidTransitionError(
                "Log status changed concurrently; reload and retry",
                extra={"log_id": log.id, "expected_status": transition.source.value},
            )

    def _commit_transition(self, log: DailyLog, transition: Transition, actor: User) -> None:
        with safe_database_operation(self.db, f"{transition.action.value} log {log.id}"):
            self.db.commit()
        self.db.refresh(log)
        logger.transition(
            log.id,
            log.student_id,
            transition.action.value,
            transition.source.value,
            transition.target.value,
            user_id=actor.id,
        )

    # ------------------------------------------------------------------
    # Student authoring
    # ------------------------------------------------------------------

    def create_log(self, actor: User, log_date: Optional[date] = None, **fields) -> DailyLog:
        PermissionChecker.require(actor, Permission.EDIT_OWN_LOG)
        log_date = log_date or date.today()
        if log_date > date.today():
            raise ValidationError(
                "Log date cannot be in the future", extra={"field": "date", "date": log_date.isoformat()}
            )

        existing = (
            self.db.query(DailyLog).filter(DailyLog.student_id == actor.id, DailyLog.date == log_date).first()
        )
        if existing:
            raise ConflictError("A log already exists for this date", extra={"log_id": existing.id})

        self.engine.ensure_profile(actor.id)
        values = {key: value for key, value in fields.items() if key in EDITABLE_FIELDS and value is not None}
        log = DailyLog(student_id=actor.id, date=log_date, status=LogStatus.DRAFT, **values)
        self.db.add(log)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("A log already exists for this date", extra={"date": log_date.isoformat()})
        self.db.refresh(log)
        logger.info("Draft log created", category=LogCategory.WORKFLOW, user_id=actor.id, extra={"log_id": log.id})
        return log

    def update_log(self, actor: User, log_id: int, changes: Mapping[str, Any]) -> DailyLog:
        log = self._get_own_editable_log(actor, log_id)

        new_content = changes.get("content")
        if (
            LogStatus(log.status) == LogStatus.NEEDS_REVISION
            and new_content is not None
            and new_content != log.content
        ):
            current = log.current_feedback
            self.db.add(
                RevisionHistory(
                    log_id=log.id,
                    previous_content=log.content,
                    new_content=new_content,
                    reason=(current.revision_notes if current else None) or "",
                )
            )

        for key, value in changes.items():
            if key in EDITABLE_FIELDS and value is not None:
                setattr(log, key, value)
        with safe_database_operation(self.db, "update log"):
            self.db.commit()
        self.db.refresh(log)
        return log

    def save_self_assessment(
        self, actor: User, log_id: int, competency_ratings: Mapping[str, int], reflection_notes: str = ""
    ) -> SelfAssessment:
        log = self._get_own_editable_log(actor, log_id)
        try:
            ratings = validate_ratings(competency_ratings)
        except ValueError as e:
            raise ValidationError(str(e), extra={"field": "competency_ratings"})

        assessment = log.self_assessment
        if assessment is None:
            assessment = SelfAssessment(log_id=log.id)
            self.db.add(assessment)
        assessment.competency_ratings = ratings
        assessment.reflection_notes = reflection_notes or ""
        with safe_database_operation(self.db, "save self-assessment"):
            self.db.commit()
        self.db.refresh(assessment)
        return assessment

    def _check_upload(self, data: bytes, content_type: Optional[str], allowed: set) -> None:
        max_bytes = settings.MAX_ATTACHMENT_MB * 1024 * 1024
        if len(data) > max_bytes:
            raise ValidationError(
                f"File exceeds {settings.MAX_ATTACHMENT_MB} MB", extra={"size": len(data), "max_bytes": max_bytes}
            )
        if content_type not in allowed:
            raise ValidationError(f"File type {content_type} not allowed", extra={"content_type": content_type})

    def add_photo(
        self,
        actor: User,
        log_id: int,
        data: bytes,
        filename: str,
        content_type: Optional[str],
        caption: Optional[str] = None,
    ) -> LogPhoto:
        log = self._get_own_editable_log(actor, log_id)
        if len(log.photos) >= settings.MAX_PHOTOS_PER_LOG:
            raise ValidationError(f"Maximum {settings.MAX_PHOTOS_PER_LOG} photos per log")
        self._check_upload(data, content_type, ALLOWED_PHOTO_TYPES)

        uri = self.storage.upload(actor.id, log.id, data, filename)
        photo = LogPhoto(log_id=log.id, uri=uri, caption=caption)
        self.db.add(photo)
        with safe_database_operation(self.db, "attach photo"):
            self.db.commit()
        self.db.refresh(photo)
        return photo

    def add_document(
        self, actor: User, log_id: int, data: bytes, filename: str, content_type: Optional[str]
    ) -> LogDocument:
        log = self._get_own_editable_log(actor, log_id)
        if len(log.documents) >= settings.MAX_DOCUMENTS_PER_LOG:
            raise ValidationError(f"Maximum {settings.MAX_DOCUMENTS_PER_LOG} documents per log")
        self._check_upload(data, content_type, ALLOWED_DOCUMENT_TYPES)

        uri = self.storage.upload(actor.id, log.id, data, filename)
        document = LogDocument(
            log_id=log.id, uri=uri, file_name=filename, file_type=content_type, file_size=len(data)
        )
        self.db.add(document)
        with safe_database_operation(self.db, "attach document"):
            self.db.commit()
        self.db.refresh(document)
        return document

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def submit(self, actor: User, log_id: int) -> TransitionOutcome:
        """draft | needs_revision -> submitted, then submission XP, streak and badges"""
        log = self.get_log(log_id)
        self._authorize(actor, log, LogAction.SUBMIT)
        transition = resolve_transition(log.status, LogAction.SUBMIT)
        validate_submission(log.title, log.content)

        self._apply(log, transition)
        self._commit_transition(log, transition, actor)

        outcome = TransitionOutcome(log=log, transition=transition)
        failures = outcome.failed_side_effects
        student_id, log_id = log.student_id, log.id
        photo_count = len(log.photos)
        assessment_complete = log.self_assessment is not None and is_complete(
            log.self_assessment.competency_ratings
        )
        first_submission = transition.source == LogStatus.DRAFT
        log_date = log.date

        run_side_effect(
            self.db, "daily_log_submit XP", self.engine.grant, student_id, XpReason.DAILY_LOG_SUBMIT, log_id,
            failures=failures,
        )
        for index in range(photo_count):
            run_side_effect(
                self.db, f"photo_attached XP ({index + 1}/{photo_count})", self.engine.grant, student_id,
                XpReason.PHOTO_ATTACHED, log_id, failures=failures,
            )
        if assessment_complete:
            run_side_effect(
                self.db, "self_assessment XP", self.engine.grant, student_id, XpReason.SELF_ASSESSMENT, log_id,
                failures=failures,
            )
        if first_submission:
            streak = run_side_effect(
                self.db, "streak update", self.engine.record_activity, student_id, log_date, failures=failures
            )
            if streak:
                run_side_effect(
                    self.db, "streak badges", self.engine.check_streak_badges, student_id, streak,
                    failures=failures,
                )
            run_side_effect(
                self.db, "first_log badge", self.engine.award_badge, student_id, "first_log", failures=failures
            )

        self.db.refresh(log)
        return outcome

    def review(
        self,
        actor: User,
        log_id: int,
        is_approved: bool,
        rating: int,
        comments: str = "",
        competency_ratings: Optional[Mapping[str, int]] = None,
        revision_notes: Optional[str] = None,
        areas_of_excellence: Optional[str] = None,
    ) -> TransitionOutcome:
        """Mentor decision on a submitted log; always records a new MentorFeedback row"""
        action = LogAction.APPROVE if is_approved else LogAction.REQUEST_REVISION
        log = self.get_log(log_id)
        self._authorize(actor, log, action)
        transition = resolve_transition(log.status, action)

        if not 1 <= rating <= 5:
            raise ValidationError("Rating must be between 1 and 5", extra={"field": "rating"})
        try:
            ratings = validate_ratings(competency_ratings or {})
        except ValueError as e:
            raise ValidationError(str(e), extra={"field": "competency_ratings"})
        if not is_approved:
            revision_notes = _require_text(revision_notes, "revision_notes")

        feedback = MentorFeedback(
            log_id=log.id,
            mentor_id=actor.id,
            rating=rating,
            comments=comments or "",
            competency_ratings=ratings,
            is_approved=is_approved,
            revision_required=not is_approved,
            revision_notes=revision_notes or None,
            areas_of_excellence=areas_of_excellence or None,
        )
        self.db.add(feedback)
        self._apply(log, transition)
        self._commit_transition(log, transition, actor)
        self.db.refresh(feedback)

        outcome = TransitionOutcome(log=log, transition=transition, feedback=feedback)
        failures = outcome.failed_side_effects
        student_id, title = log.student_id, log.title
        mentor_name = actor.full_name or "Your mentor"

        if is_approved:
            run_side_effect(
                self.db, "log_approved XP", self.engine.grant, student_id, XpReason.LOG_APPROVED, log.id,
                failures=failures,
            )
            run_side_effect(
                self.db, "quality badge", self.engine.check_quality_badge, student_id, failures=failures
            )
            run_side_effect(
                self.db, "approval notification", self.notifier.create, student_id, "Log Approved!",
                f'{mentor_name} approved your log "{title}". You earned XP!', NotificationType.LOG_APPROVED,
                {"log_id": log.id}, failures=failures,
            )
        else:
            run_side_effect(
                self.db, "revision notification", self.notifier.create, student_id, "Revision Requested",
                f'{mentor_name} requested revisions on your log "{title}".',
                NotificationType.LOG_REVISION_REQUESTED, {"log_id": log.id}, failures=failures,
            )

        self.db.refresh(log)
        return outcome

    def validate(self, actor: User, log_id: int, notes: Optional[str] = None) -> TransitionOutcome:
        """Advisor sign-off; validated is terminal"""
        log = self.get_log(log_id)
        self._authorize(actor, log, LogAction.VALIDATE)
        transition = resolve_transition(log.status, LogAction.VALIDATE)

        changes = {DailyLog.validated_at: datetime.utcnow(), DailyLog.validated_by: actor.id}
        if notes and notes.strip():
            changes[DailyLog.advisor_notes] = notes.strip()
        self._apply(log, transition, changes)
        self._commit_transition(log, transition, actor)
        return TransitionOutcome(log=log, transition=transition)

    def send_back(self, actor: User, log_id: int, notes: Optional[str]) -> TransitionOutcome:
        """Advisor returns an approved log to mentor review"""
        log = self.get_log(log_id)
        self._authorize(actor, log, LogAction.SEND_BACK)
        transition = resolve_transition(log.status, LogAction.SEND_BACK)
        notes = _require_text(notes, "notes")

        self._apply(log, transition, {DailyLog.advisor_notes: notes})
        self._commit_transition(log, transition, actor)

        outcome = TransitionOutcome(log=log, transition=transition)
        run_side_effect(
            self.db, "send back notification", self.notifier.create, log.student_id, "Log Sent Back",
            f'Your advisor sent your log "{log.title}" back for another review: {notes}',
            NotificationType.GENERAL, {"log_id": log.id, "event": "sent_back"}, failures=outcome.failed_side_effects,
        )
        self.db.refresh(log)
        return outcome

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_logs(self, student_id: int) -> List[DailyLog]:
        return (
            self.db.query(DailyLog)
            .filter(DailyLog.student_id == student_id)
            .order_by(DailyLog.date.desc())
            .all()
        )

    def get_log_by_date(self, student_id: int, log_date: date) -> DailyLog:
        log = (
            self.db.query(DailyLog).filter(DailyLog.student_id == student_id, DailyLog.date == log_date).first()
        )
        if log is None:
            raise NotFoundError("No log for this date", extra={"date": log_date.isoformat()})
        return log

    def pending_reviews(self, mentor: User) -> List[DailyLog]:
        PermissionChecker.require(mentor, Permission.REVIEW_LOG)
        student_ids = self.db.query(StudentProfile.id).filter(StudentProfile.mentor_id == mentor.id)
        return (
            self.db.query(DailyLog)
            .filter(DailyLog.status == LogStatus.SUBMITTED, DailyLog.student_id.in_(student_ids))
            .order_by(DailyLog.created_at.asc(), DailyLog.id.asc())
            .all()
        )

    def pending_validations(self, advisor: User) -> List[DailyLog]:
        PermissionChecker.require(advisor, Permission.VALIDATE_LOG)
        student_ids = self.db.query(StudentProfile.id).filter(StudentProfile.advisor_id == advisor.id)
        return (
            self.db.query(DailyLog)
            .filter(DailyLog.status == LogStatus.APPROVED, DailyLog.student_id.in_(student_ids))
            .order_by(DailyLog.date.asc(), DailyLog.id.asc())
            .all()
        )

    def feedback_history(self, mentor: User) -> List[MentorFeedback]:
        """The mentor's reviews, keeping only the latest one per log"""
        PermissionChecker.require(mentor, Permission.REVIEW_LOG)
        rows = (
            self.db.query(MentorFeedback)
            .filter(MentorFeedback.mentor_id == mentor.id)
            .order_by(MentorFeedback.created_at.desc(), MentorFeedback.id.desc())
            .all()
        )
        seen = set()
        latest = []
        for row in rows:
            if row.log_id in seen:
                continue
            seen.add(row.log_id)
            latest.append(row)
        return latest

    def competency_comparison(self, actor: User, log_id: int) -> List[CompetencyComparison]:
        log = self.get_visible_log(actor, log_id)
        own = log.self_assessment.competency_ratings if log.self_assessment else None
        current = log.current_feedback
        return compare_ratings(own, current.competency_ratings if current else None)

    def student_progress(self, actor: User, student_id: int) -> Dict[str, Any]:
        PermissionChecker.require(actor, Permission.VIEW_STUDENT_PROGRESS)
        PermissionChecker.require_student_access(self.db, actor, student_id)
        profile = self.engine.get_profile(student_id)

        counts = {status.value: 0 for status in LogStatus}
        rows = (
            self.db.query(DailyLog.status, func.count(DailyLog.id))
            .filter(DailyLog.student_id == student_id)
            .group_by(DailyLog.status)
            .all()
        )
        for status, count in rows:
            counts[LogStatus(status).value] = count

        average = (
            self.db.query(func.avg(MentorFeedback.rating))
            .join(DailyLog, MentorFeedback.log_id == DailyLog.id)
            .filter(DailyLog.student_id == student_id)
            .scalar()
        )
        return {
            "student_id": student_id,
            "total_logs": sum(counts.values()),
            "log_counts": counts,
            "avg_mentor_rating": round(float(average), 1) if average is not None else 0.0,
            "total_xp": profile.total_xp,
            "current_level": profile.current_level,
            "current_streak": profile.current_streak,
            "longest_streak": profile.longest_streak,
        }
