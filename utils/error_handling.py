"""
Centralized error handling utilities for consistent error responses
"""

from typing import Any, Callable, Dict, List, Optional

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from sqlalchemy.orm import Session

from utils.structured_logging import get_logger, LogCategory

logger = get_logger("errors")


class WorkflowError(Exception):
    """Base class for domain errors raised by the logbook services"""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "WORKFLOW_ERROR"

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}


class ValidationError(WorkflowError):
    """Input rejected by a guard before any state change"""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "VALIDATION_ERROR"


class InvalidTransitionError(WorkflowError):
    """Requested action is not allowed from the log's current status"""

    status_code = status.HTTP_409_CONFLICT
    error_code = "INVALID_TRANSITION"


class PermissionDeniedError(WorkflowError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "PERMISSION_DENIED"


class NotFoundError(WorkflowError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"


class ConflictError(WorkflowError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "CONFLICT"


def handle_database_error(e: Exception, operation: str = "database operation") -> None:
    """
    Translate a failed primary write into an HTTP error

    Args:
        e: The exception that occurred
        operation: Description of the operation that failed
    """
    if isinstance(e, IntegrityError):
        logger.warning(f"Database integrity error during {operation}", category=LogCategory.DATABASE, exception=e)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Data integrity constraint violated. This operation conflicts with existing data.",
        )
    elif isinstance(e, SQLAlchemyError):
        logger.error(f"Database error during {operation}", category=LogCategory.DATABASE, exception=e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database operation failed. Please try again later.",
        )
    raise e


def safe_database_operation(db: Session, operation_name: str):
    """
    Context manager for primary writes with automatic rollback

    Usage:
        with safe_database_operation(db, "create log"):
            db.add(new_log)
            db.commit()
    """

    class DatabaseOperationContext:
        def __init__(self, db: Session, operation_name: str):
            self.db = db
            self.operation_name = operation_name

        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc_val, exc_tb):
            if exc_type and issubclass(exc_type, SQLAlchemyError):
                self.db.rollback()
                handle_database_error(exc_val, self.operation_name)
            elif exc_type:
                self.db.rollback()
            return False

    return DatabaseOperationContext(db, operation_name)


def run_side_effect(
    db: Session,
    description: str,
    func: Callable[..., Any],
    *args,
    failures: Optional[List[str]] = None,
    **kwargs,
) -> Any:
    """
    Run a secondary effect (XP grant, badge, notification) after the primary write has committed.

    A failure is rolled back, logged and recorded in `failures`; it is never re-raised and never retried.
    """
    try:
        return func(*args, **kwargs)
    except Exception as e:
        db.rollback()
        logger.error(
            f"Side effect failed: {description}",
            category=LogCategory.WORKFLOW,
            exception=e,
            extra={"side_effect": description},
        )
        if failures is not None:
            failures.append(description)
        return None


def get_or_404(db: Session, model, resource_id: Any, resource_name: Optional[str] = None):
    """Load a row by primary key or raise NotFoundError"""
    resource = db.get(model, resource_id)
    if resource is None:
        name = resource_name or model.__name__
        logger.warning(f"{name} not found: {resource_id}", category=LogCategory.DATABASE)
        raise NotFoundError(f"{name} not found", extra={"id": resource_id})
    return resource


async def workflow_exception_handler(request: Request, exc: WorkflowError):
    """Render domain errors with the same envelope as HTTP errors"""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"{exc.error_code}: {exc.message}",
        category=LogCategory.ERROR,
        request_method=request.method,
        request_path=request.url.path,
        response_status=exc.status_code,
        extra=exc.extra,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.message,
            "error_code": exc.error_code,
            "detail": exc.extra or None,
            "status_code": exc.status_code,
            "request_id": getattr(request.state, "request_id", None),
            "correlation_id": getattr(request.state, "correlation_id", None),
        },
    )
