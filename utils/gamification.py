"""
Gamification Engine
XP ledger, levels, streaks, badges and the leaderboard.

The engine is the only writer of StudentProfile's derived columns. Every XP grant appends a ledger row and
increments the stored total with a single SQL expression inside the same transaction, so concurrent grants
for one student serialize on the profile row instead of overwriting each other.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence, Tuple, Union

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import (
    DailyLog,
    EarnedBadge,
    MentorFeedback,
    NotificationType,
    PollResponse,
    StudentProfile,
    User,
    XpReason,
    XpTransaction,
)
from utils.error_handling import NotFoundError, ValidationError
from utils.notifications import NotificationDispatcher
from utils.point_table import (
    BADGES,
    LEVELS,
    POINT_VALUES,
    QUALITY_RATING_THRESHOLD,
    STREAK_BADGES,
    Level,
    calculate_level,
    get_level,
)
from utils.structured_logging import get_logger, LogCategory

logger = get_logger("gamification")

QUIZ_MASTER_RESPONSES = BADGES["quiz_master"].requirement


@dataclass
class XpGrantResult:
    total_xp: int
    level: int
    leveled_up: bool
    transaction_id: int


class GamificationEngine:
    def __init__(
        self,
        db: Session,
        notifier: Optional[NotificationDispatcher] = None,
        point_values: Optional[Dict[XpReason, int]] = None,
        levels: Sequence[Level] = LEVELS,
    ):
        self.db = db
        self.notifier = notifier or NotificationDispatcher(db)
        self.point_values = point_values or POINT_VALUES
        self.levels = levels

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def get_profile(self, student_id: int) -> StudentProfile:
        profile = self.db.get(StudentProfile, student_id)
        if profile is None:
            raise NotFoundError("Student profile not found", extra={"student_id": student_id})
        return profile

    def ensure_profile(self, student_id: int) -> StudentProfile:
        profile = self.db.get(StudentProfile, student_id)
        if profile is None:
            profile = StudentProfile(id=student_id, total_xp=0, current_level=1, current_streak=0, longest_streak=0)
            self.db.add(profile)
            self.db.commit()
        return profile

    def ledger_total(self, student_id: int) -> int:
        return (
            self.db.query(func.coalesce(func.sum(XpTransaction.amount), 0))
            .filter(XpTransaction.student_id == student_id)
            .scalar()
        )

    def reconcile_profile(self, student_id: int) -> StudentProfile:
        """Re-derive total XP and level from the ledger"""
        self.get_profile(student_id)
        total = self.ledger_total(student_id)
        self.db.query(StudentProfile).filter(StudentProfile.id == student_id).update(
            {
                StudentProfile.total_xp: total,
                StudentProfile.current_level: calculate_level(total, self.levels),
            },
            synchronize_session=False,
        )
        self.db.commit()
        profile = self.get_profile(student_id)
        self.db.refresh(profile)
        return profile

    # ------------------------------------------------------------------
    # XP
    # ------------------------------------------------------------------

    def add_xp(
        self,
        student_id: int,
        amount: int,
        reason: Union[XpReason, str],
        log_id: Optional[int] = None,
    ) -> XpGrantResult:
        if amount < 0:
            raise ValidationError("XP amount must not be negative", extra={"amount": amount})
        reason = XpReason(reason)

        updated = (
            self.db.query(StudentProfile)
            .filter(StudentProfile.id == student_id)
            .update({StudentProfile.total_xp: StudentProfile.total_xp + amount}, synchronize_session=False)
        )
        if not updated:
            self.db.rollback()
            raise NotFoundError("Student profile not found", extra={"student_id": student_id})

        transaction = XpTransaction(student_id=student_id, amount=amount, reason=reason, log_id=log_id)
        self.db.add(transaction)
        if log_id is not None:
            self.db.query(DailyLog).filter(DailyLog.id == log_id).update(
                {DailyLog.xp_earned: DailyLog.xp_earned + amount}, synchronize_session=False
            )

        new_total = (
            self.db.query(StudentProfile.total_xp).filter(StudentProfile.id == student_id).scalar()
        )
        new_level = calculate_level(new_total, self.levels)
        previous_level = calculate_level(new_total - amount, self.levels)
        self.db.query(StudentProfile).filter(StudentProfile.id == student_id).update(
            {StudentProfile.current_level: new_level}, synchronize_session=False
        )
        self.db.commit()

        leveled_up = new_level > previous_level
        logger.info(
            f"Granted {amount} XP for {reason.value}",
            category=LogCategory.GAMIFICATION,
            user_id=student_id,
            extra={"total_xp": new_total, "level": new_level, "leveled_up": leveled_up, "log_id": log_id},
        )

        if leveled_up:
            self._notify_level_up(student_id, new_level, new_total)

        return XpGrantResult(
            total_xp=new_total, level=new_level, leveled_up=leveled_up, transaction_id=transaction.id
        )

    def grant(self, student_id: int, reason: XpReason, log_id: Optional[int] = None) -> XpGrantResult:
        """Grant the configured amount for an activity kind"""
        return self.add_xp(student_id, self.point_values[reason], reason, log_id)

    def xp_history(self, student_id: int) -> List[XpTransaction]:
        return (
            self.db.query(XpTransaction)
            .filter(XpTransaction.student_id == student_id)
            .order_by(XpTransaction.created_at.desc(), XpTransaction.id.desc())
            .all()
        )

    def _notify_level_up(self, student_id: int, level: int, total_xp: int) -> None:
        level_data = get_level(level, self.levels)
        suffix = f" - {level_data.name.title()}" if level_data else ""
        try:
            self.notifier.create(
                student_id,
                "Level Up!",
                f"Congratulations! You reached Level {level}{suffix}!",
                NotificationType.LEVEL_UP,
                {"new_level": level, "total_xp": total_xp},
            )
        except Exception as e:
            self.db.rollback()
            logger.warning("Level up notification failed", category=LogCategory.NOTIFICATION, exception=e)

    # ------------------------------------------------------------------
    # Streaks
    # ------------------------------------------------------------------

    def update_streak(self, student_id: int) -> Tuple[int, int]:
        """Increment the current streak and raise the longest streak to match"""
        incremented = StudentProfile.current_streak + 1
        updated = (
            self.db.query(StudentProfile)
            .filter(StudentProfile.id == student_id)
            .update(
                {
                    StudentProfile.current_streak: incremented,
                    StudentProfile.longest_streak: case(
                        (incremented > StudentProfile.longest_streak, incremented),
                        else_=StudentProfile.longest_streak,
                    ),
                },
                synchronize_session=False,
            )
        )
        if not updated:
            self.db.rollback()
            raise NotFoundError("Student profile not found", extra={"student_id": student_id})
        self.db.commit()

        streak, longest = (
            self.db.query(StudentProfile.current_streak, StudentProfile.longest_streak)
            .filter(StudentProfile.id == student_id)
            .one()
        )
        return streak, longest

    def reset_streak(self, student_id: int) -> None:
        updated = (
            self.db.query(StudentProfile)
            .filter(StudentProfile.id == student_id)
            .update({StudentProfile.current_streak: 0}, synchronize_session=False)
        )
        if not updated:
            self.db.rollback()
            raise NotFoundError("Student profile not found", extra={"student_id": student_id})
        self.db.commit()

    def record_activity(self, student_id: int, activity_date: date) -> int:
        """
        Count one qualifying activity on `activity_date` towards the streak.

        Same date as the last activity: unchanged. The following day: extended.
        Any later date: the streak restarts at 1. Dates before the last activity are ignored.
        """
        profile = self.get_profile(student_id)
        last = profile.last_activity_date
        if last is not None and activity_date <= last:
            return profile.current_streak

        self.db.query(StudentProfile).filter(StudentProfile.id == student_id).update(
            {StudentProfile.last_activity_date: activity_date}, synchronize_session=False
        )
        self.db.commit()

        if last is None or activity_date - last != timedelta(days=1):
            self.reset_streak(student_id)
        streak, _ = self.update_streak(student_id)
        return streak

    # ------------------------------------------------------------------
    # Badges
    # ------------------------------------------------------------------

    def award_badge(self, student_id: int, badge_key: str) -> Optional[EarnedBadge]:
        """Insert the badge; a duplicate is a silent no-op and returns None"""
        if badge_key not in BADGES:
            raise ValidationError(f"Unknown badge '{badge_key}'", extra={"badge_key": badge_key})

        badge = EarnedBadge(student_id=student_id, badge_key=badge_key)
        self.db.add(badge)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.debug(
                f"Badge '{badge_key}' already earned", category=LogCategory.GAMIFICATION, user_id=student_id
            )
            return None

        logger.info(f"Badge '{badge_key}' earned", category=LogCategory.GAMIFICATION, user_id=student_id)
        try:
            self.notifier.create(
                student_id,
                "Badge Earned!",
                f'You earned the "{BADGES[badge_key].name}" badge! Keep up the great work!',
                NotificationType.BADGE_EARNED,
                {"badge_key": badge_key},
            )
        except Exception as e:
            self.db.rollback()
            logger.warning("Badge notification failed", category=LogCategory.NOTIFICATION, exception=e)
        return badge

    def earned_badges(self, student_id: int) -> List[EarnedBadge]:
        return (
            self.db.query(EarnedBadge)
            .filter(EarnedBadge.student_id == student_id)
            .order_by(EarnedBadge.earned_at.desc(), EarnedBadge.id.desc())
            .all()
        )

    def check_streak_badges(self, student_id: int, streak: int) -> List[str]:
        awarded = []
        for key in STREAK_BADGES:
            if streak >= BADGES[key].requirement and self.award_badge(student_id, key):
                awarded.append(key)
        return awarded

    def check_quality_badge(self, student_id: int) -> Optional[EarnedBadge]:
        # A log approved again after a send-back counts once
        quality_approvals = (
            self.db.query(func.count(func.distinct(MentorFeedback.log_id)))
            .select_from(MentorFeedback)
            .join(DailyLog, MentorFeedback.log_id == DailyLog.id)
            .filter(
                DailyLog.student_id == student_id,
                MentorFeedback.is_approved.is_(True),
                MentorFeedback.rating >= QUALITY_RATING_THRESHOLD,
            )
            .scalar()
        )
        if quality_approvals >= BADGES["quality_10"].requirement:
            return self.award_badge(student_id, "quality_10")
        return None

    def check_quiz_master(self, user_id: int) -> Optional[EarnedBadge]:
        responses = self.db.query(PollResponse).filter(PollResponse.user_id == user_id).count()
        if responses >= QUIZ_MASTER_RESPONSES:
            return self.award_badge(user_id, "quiz_master")
        return None

    # ------------------------------------------------------------------
    # Leaderboard
    # ------------------------------------------------------------------

    def leaderboard(self, limit: int) -> List[Tuple[StudentProfile, User]]:
        """Students by total XP, highest first"""
        return (
            self.db.query(StudentProfile, User)
            .join(User, StudentProfile.id == User.id)
            .order_by(StudentProfile.total_xp.desc())
            .limit(limit)
            .all()
        )
