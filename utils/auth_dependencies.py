"""
FastAPI Authentication Dependencies
Resolves the acting user and wires the per-request services into routes.

Authentication happens upstream; by the time a request reaches this service the gateway has put the
verified user id in the X-User-ID header.
"""

from fastapi import Depends, HTTPException, Request, Header, status
from sqlalchemy.orm import Session
from typing import Optional

from db import get_db
from models import User, UserRole
from utils.attachments import get_attachment_storage
from utils.gamification import GamificationEngine
from utils.log_workflow import LogWorkflow
from utils.notifications import NotificationDispatcher
from utils.poll_scoring import PollService
from utils.structured_logging import get_logger, LogCategory

logger = get_logger("auth")


def log_authentication_attempt(request: Request, success: bool, user_id=None, error: Optional[str] = None):
    """Log identity resolution for security monitoring"""
    extra = {
        "client_ip": request.client.host if request.client else "unknown",
        "user_agent": request.headers.get("User-Agent", "unknown"),
    }
    if error:
        extra["error"] = error
    log = logger.info if success else logger.warning
    log(
        "Authentication successful" if success else "Authentication failed",
        category=LogCategory.REQUEST,
        user_id=user_id,
        request_method=request.method,
        request_path=request.url.path,
        extra=extra,
    )


# =============================================================================
# CORE AUTHENTICATION DEPENDENCIES
# =============================================================================


async def get_current_user(
    request: Request,
    x_user_id: Optional[str] = Header(None, description="Id of the authenticated user"),
    db: Session = Depends(get_db),
) -> User:
    """
    Get current authenticated user - raises 401 if the header is missing or unknown
    """
    if not x_user_id or not x_user_id.strip().isdigit():
        log_authentication_attempt(request, False, error="Missing or malformed X-User-ID")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

    user = db.get(User, int(x_user_id))
    if not user:
        log_authentication_attempt(request, False, user_id=x_user_id, error="Unknown user")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

    request.state.user_id = user.id
    log_authentication_attempt(request, True, user_id=user.id)
    return user


# =============================================================================
# ROLE-BASED AUTHENTICATION DEPENDENCIES
# =============================================================================


def create_auth_dependency(*roles: UserRole):
    """
    Factory function to create role-restricted dependencies
    """

    async def auth_dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.status not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access requires one of: {', '.join(role.value for role in roles)}",
            )
        return current_user

    return auth_dependency


require_student = create_auth_dependency(UserRole.STUDENT)
require_mentor = create_auth_dependency(UserRole.MENTOR)
require_advisor = create_auth_dependency(UserRole.ADVISOR)
require_staff = create_auth_dependency(UserRole.MENTOR, UserRole.ADVISOR, UserRole.ADMIN)


# =============================================================================
# SERVICE DEPENDENCIES
# =============================================================================


def get_notifier(db: Session = Depends(get_db)) -> NotificationDispatcher:
    return NotificationDispatcher(db)


def get_engine(
    db: Session = Depends(get_db), notifier: NotificationDispatcher = Depends(get_notifier)
) -> GamificationEngine:
    return GamificationEngine(db, notifier)


def get_workflow(
    db: Session = Depends(get_db),
    engine: GamificationEngine = Depends(get_engine),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> LogWorkflow:
    return LogWorkflow(db, engine, notifier, get_attachment_storage())


def get_poll_service(
    db: Session = Depends(get_db), engine: GamificationEngine = Depends(get_engine)
) -> PollService:
    return PollService(db, engine)
