"""
Role-Based Access Control
Who may perform which action, including the student/mentor/advisor relationship checks on logs
"""

from enum import Enum
from typing import Dict, Optional, Set

from sqlalchemy.orm import Session

from models import DailyLog, StudentProfile, User, UserRole
from utils.error_handling import PermissionDeniedError
from utils.structured_logging import get_logger, LogCategory

logger = get_logger("permissions")


class Permission(Enum):
    """Define specific permissions in the system"""

    # Student log authoring
    EDIT_OWN_LOG = "edit_own_log"
    SUBMIT_LOG = "submit_log"

    # Review chain
    REVIEW_LOG = "review_log"
    VALIDATE_LOG = "validate_log"

    # Polls
    CREATE_POLL = "create_poll"
    RESPOND_POLL = "respond_poll"
    VIEW_POLL_RESULTS = "view_poll_results"

    # Progress
    VIEW_OWN_PROGRESS = "view_own_progress"
    VIEW_STUDENT_PROGRESS = "view_student_progress"


STUDENT_PERMISSIONS = {
    Permission.EDIT_OWN_LOG,
    Permission.SUBMIT_LOG,
    Permission.RESPOND_POLL,
    Permission.VIEW_OWN_PROGRESS,
}

MENTOR_PERMISSIONS = {
    Permission.REVIEW_LOG,
    Permission.CREATE_POLL,
    Permission.RESPOND_POLL,
    Permission.VIEW_POLL_RESULTS,
    Permission.VIEW_STUDENT_PROGRESS,
}

ADVISOR_PERMISSIONS = {
    Permission.VALIDATE_LOG,
    Permission.CREATE_POLL,
    Permission.VIEW_POLL_RESULTS,
    Permission.VIEW_STUDENT_PROGRESS,
}

# Admins manage polls and read everything, but do not act inside the review chain
ADMIN_PERMISSIONS = {
    Permission.CREATE_POLL,
    Permission.VIEW_POLL_RESULTS,
    Permission.VIEW_STUDENT_PROGRESS,
}

ROLE_PERMISSIONS: Dict[UserRole, Set[Permission]] = {
    UserRole.STUDENT: STUDENT_PERMISSIONS,
    UserRole.MENTOR: MENTOR_PERMISSIONS,
    UserRole.ADVISOR: ADVISOR_PERMISSIONS,
    UserRole.ADMIN: ADMIN_PERMISSIONS,
}


class PermissionChecker:
    """Helper class for checking permissions"""

    @staticmethod
    def user_has_permission(user: Optional[User], permission: Permission) -> bool:
        if not user or not user.status:
            return False
        return permission in ROLE_PERMISSIONS.get(UserRole(user.status), set())

    @staticmethod
    def require(user: User, permission: Permission) -> None:
        if not PermissionChecker.user_has_permission(user, permission):
            logger.warning(
                f"Permission denied: {permission.value}",
                category=LogCategory.WORKFLOW,
                user_id=user.id if user else None,
                extra={"role": user.status.value if user and user.status else None},
            )
            raise PermissionDeniedError(
                f"Operation requires '{permission.value}' permission",
                extra={"permission": permission.value},
            )

    @staticmethod
    def is_assigned_mentor(db: Session, user: User, student_id: int) -> bool:
        profile = db.get(StudentProfile, student_id)
        return profile is not None and profile.mentor_id == user.id

    @staticmethod
    def is_assigned_advisor(db: Session, user: User, student_id: int) -> bool:
        profile = db.get(StudentProfile, student_id)
        return profile is not None and profile.advisor_id == user.id

    @staticmethod
    def can_view_student(db: Session, user: User, student_id: int) -> bool:
        """Students see themselves; mentors and advisors see assigned students; admins see everyone"""
        if user.id == student_id or user.status == UserRole.ADMIN:
            return True
        if user.status == UserRole.MENTOR:
            return PermissionChecker.is_assigned_mentor(db, user, student_id)
        if user.status == UserRole.ADVISOR:
            return PermissionChecker.is_assigned_advisor(db, user, student_id)
        return False

    @staticmethod
    def can_view_log(db: Session, user: User, log: DailyLog) -> bool:
        return PermissionChecker.can_view_student(db, user, log.student_id)

    @staticmethod
    def require_student_access(db: Session, user: User, student_id: int) -> None:
        if not PermissionChecker.can_view_student(db, user, student_id):
            raise PermissionDeniedError("Not allowed to access this student", extra={"student_id": student_id})
