from sqlalchemy import Column, Integer, String, DateTime, Date, ForeignKey, func, Enum, Boolean, JSON, Text
from sqlalchemy import UniqueConstraint, Index
from sqlalchemy.orm import declarative_base, relationship, backref
import enum
from datetime import datetime

Base = declarative_base()


def _enum_values(enum_cls):
    """Persist enum values ("needs_revision") instead of member names"""
    return [member.value for member in enum_cls]


class UserRole(str, enum.Enum):
    STUDENT = "student"
    MENTOR = "mentor"
    ADVISOR = "advisor"
    ADMIN = "admin"


class LogStatus(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    NEEDS_REVISION = "needs_revision"
    VALIDATED = "validated"


class XpReason(str, enum.Enum):
    DAILY_LOG_SUBMIT = "daily_log_submit"
    PHOTO_ATTACHED = "photo_attached"
    SELF_ASSESSMENT = "self_assessment"
    LOG_APPROVED = "log_approved"
    POLL_COMPLETED = "poll_completed"
    QUIZ_PERFECT_SCORE = "quiz_perfect_score"


class NotificationType(str, enum.Enum):
    LOG_APPROVED = "log_approved"
    LOG_REVISION_REQUESTED = "log_revision_requested"
    NEW_FEEDBACK = "new_feedback"
    BADGE_EARNED = "badge_earned"
    LEVEL_UP = "level_up"
    GENERAL = "general"


class PollType(str, enum.Enum):
    QUIZ = "quiz"
    SURVEY = "survey"
    FEEDBACK = "feedback"


class PollTargetRole(str, enum.Enum):
    STUDENT = "student"
    MENTOR = "mentor"
    ALL = "all"


class QuestionType(str, enum.Enum):
    SINGLE_CHOICE = "single_choice"
    MULTIPLE_CHOICE = "multiple_choice"
    TEXT = "text"
    RATING = "rating"


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    status = Column(Enum(UserRole, values_callable=_enum_values), index=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip() or self.username


class StudentProfile(Base):
    """Gamification state and mentor/advisor assignment for one student"""

    __tablename__ = "student_profiles"

    id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    mentor_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    advisor_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    company_name = Column(String, nullable=True)
    internship_start_date = Column(Date, nullable=True)
    internship_end_date = Column(Date, nullable=True)

    # Derived from the XP ledger; only the gamification engine writes these
    total_xp = Column(Integer, default=0, nullable=False)
    current_level = Column(Integer, default=1, nullable=False)
    current_streak = Column(Integer, default=0, nullable=False)
    longest_streak = Column(Integer, default=0, nullable=False)
    last_activity_date = Column(Date, nullable=True)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    user = relationship("User", foreign_keys=[id], backref=backref("student_profile", uselist=False))
    mentor = relationship("User", foreign_keys=[mentor_id])
    advisor = relationship("User", foreign_keys=[advisor_id])

    __table_args__ = (Index("idx_student_profiles_total_xp", "total_xp"),)


class DailyLog(Base):
    __tablename__ = "daily_logs"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    title = Column(String(100), nullable=False)
    content = Column(Text, nullable=False, default="")
    activities_performed = Column(Text, nullable=False, default="")
    skills_learned = Column(Text, nullable=False, default="")
    challenges_faced = Column(Text, nullable=False, default="")
    hours_spent = Column(Integer, nullable=False, default=0)  # minutes
    status = Column(
        Enum(LogStatus, values_callable=_enum_values), nullable=False, default=LogStatus.DRAFT, index=True
    )
    advisor_notes = Column(Text, nullable=True)
    validated_at = Column(DateTime, nullable=True)
    validated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    xp_earned = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    student = relationship("User", foreign_keys=[student_id], backref="daily_logs")
    photos = relationship("LogPhoto", back_populates="log", cascade="all, delete-orphan", order_by="LogPhoto.id")
    documents = relationship(
        "LogDocument", back_populates="log", cascade="all, delete-orphan", order_by="LogDocument.id"
    )
    self_assessment = relationship(
        "SelfAssessment", back_populates="log", uselist=False, cascade="all, delete-orphan"
    )
    # Append-only review history, newest first
    feedbacks = relationship(
        "MentorFeedback",
        back_populates="log",
        cascade="all, delete-orphan",
        order_by="desc(MentorFeedback.id)",
    )
    revisions = relationship(
        "RevisionHistory",
        back_populates="log",
        cascade="all, delete-orphan",
        order_by="desc(RevisionHistory.id)",
    )

    __table_args__ = (UniqueConstraint("student_id", "date", name="unique_student_log_date"),)

    @property
    def current_feedback(self):
        """The most recent mentor review, or None if the log was never reviewed"""
        return self.feedbacks[0] if self.feedbacks else None


class LogPhoto(Base):
    __tablename__ = "log_photos"

    id = Column(Integer, primary_key=True, index=True)
    log_id = Column(Integer, ForeignKey("daily_logs.id", ondelete="CASCADE"), nullable=False, index=True)
    uri = Column(String, nullable=False)
    caption = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    log = relationship("DailyLog", back_populates="photos")


class LogDocument(Base):
    __tablename__ = "log_documents"

    id = Column(Integer, primary_key=True, index=True)
    log_id = Column(Integer, ForeignKey("daily_logs.id", ondelete="CASCADE"), nullable=False, index=True)
    uri = Column(String, nullable=False)
    file_name = Column(String, nullable=False)
    file_type = Column(String, nullable=False)
    file_size = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    log = relationship("DailyLog", back_populates="documents")


class SelfAssessment(Base):
    __tablename__ = "self_assessments"

    id = Column(Integer, primary_key=True, index=True)
    log_id = Column(Integer, ForeignKey("daily_logs.id", ondelete="CASCADE"), nullable=False, unique=True)
    competency_ratings = Column(JSON, nullable=False, default=dict)
    reflection_notes = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    log = relationship("DailyLog", back_populates="self_assessment")


class MentorFeedback(Base):
    """One mentor review of a log; never updated, a new review is a new row"""

    __tablename__ = "mentor_feedbacks"

    id = Column(Integer, primary_key=True, index=True)
    log_id = Column(Integer, ForeignKey("daily_logs.id", ondelete="CASCADE"), nullable=False, index=True)
    mentor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    comments = Column(Text, nullable=False, default="")
    competency_ratings = Column(JSON, nullable=False, default=dict)
    is_approved = Column(Boolean, nullable=False)
    revision_required = Column(Boolean, nullable=False)
    revision_notes = Column(Text, nullable=True)
    areas_of_excellence = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    log = relationship("DailyLog", back_populates="feedbacks")
    mentor = relationship("User")


class RevisionHistory(Base):
    __tablename__ = "revision_history"

    id = Column(Integer, primary_key=True, index=True)
    log_id = Column(Integer, ForeignKey("daily_logs.id", ondelete="CASCADE"), nullable=False, index=True)
    previous_content = Column(Text, nullable=False)
    new_content = Column(Text, nullable=False)
    reason = Column(Text, nullable=False, default="")
    revised_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    log = relationship("DailyLog", back_populates="revisions")


class XpTransaction(Base):
    """Append-only XP ledger entry"""

    __tablename__ = "xp_transactions"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    reason = Column(Enum(XpReason, values_callable=_enum_values), nullable=False)
    log_id = Column(Integer, ForeignKey("daily_logs.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class EarnedBadge(Base):
    __tablename__ = "earned_badges"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    badge_key = Column(String(50), nullable=False)
    earned_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("student_id", "badge_key", name="unique_student_badge"),)


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    body = Column(Text, nullable=False)
    type = Column(Enum(NotificationType, values_callable=_enum_values), nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (Index("idx_notifications_user_unread", "user_id", "is_read"),)


class Poll(Base):
    __tablename__ = "polls"

    id = Column(Integer, primary_key=True, index=True)
    creator_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    poll_type = Column(Enum(PollType, values_callable=_enum_values), nullable=False, default=PollType.SURVEY)
    target_role = Column(
        Enum(PollTargetRole, values_callable=_enum_values), nullable=False, default=PollTargetRole.STUDENT
    )
    is_active = Column(Boolean, default=True, nullable=False)
    starts_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    ends_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    questions = relationship(
        "PollQuestion", back_populates="poll", cascade="all, delete-orphan", order_by="PollQuestion.sort_order"
    )
    responses = relationship("PollResponse", back_populates="poll", cascade="all, delete-orphan")


class PollQuestion(Base):
    __tablename__ = "poll_questions"

    id = Column(Integer, primary_key=True, index=True)
    poll_id = Column(Integer, ForeignKey("polls.id", ondelete="CASCADE"), nullable=False, index=True)
    question_text = Column(Text, nullable=False)
    question_type = Column(
        Enum(QuestionType, values_callable=_enum_values), nullable=False, default=QuestionType.SINGLE_CHOICE
    )
    sort_order = Column(Integer, nullable=False, default=0)
    # Id of one of this question's options; NULL means the question is not graded
    correct_option_id = Column(Integer, nullable=True)

    poll = relationship("Poll", back_populates="questions")
    options = relationship(
        "PollOption", back_populates="question", cascade="all, delete-orphan", order_by="PollOption.sort_order"
    )


class PollOption(Base):
    __tablename__ = "poll_options"

    id = Column(Integer, primary_key=True, index=True)
    question_id = Column(Integer, ForeignKey("poll_questions.id", ondelete="CASCADE"), nullable=False, index=True)
    option_text = Column(String, nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)

    question = relationship("PollQuestion", back_populates="options")


class PollResponse(Base):
    __tablename__ = "poll_responses"

    id = Column(Integer, primary_key=True, index=True)
    poll_id = Column(Integer, ForeignKey("polls.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    answers = Column(JSON, nullable=False, default=dict)
    score = Column(Integer, nullable=True)
    submitted_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    poll = relationship("Poll", back_populates="responses")

    __table_args__ = (UniqueConstraint("poll_id", "user_id", name="unique_poll_user_response"),)
