"""
Structured Logging with Correlation IDs
JSON log lines with request tracking shared by the API and the workflow services
"""

import logging
import json
import sys
import time
import traceback
import uuid
from typing import Dict, Any, Optional
from datetime import datetime
from contextvars import ContextVar
from enum import Enum
from fastapi import Request, Response
from pydantic import BaseModel, Field

# Context variable for storing correlation ID
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# ============================================================================
# LOG LEVELS AND CATEGORIES
# ============================================================================


class LogLevel(str, Enum):
    """Log severity levels"""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogCategory(str, Enum):
    """Log categories for filtering and analysis"""

    REQUEST = "request"
    RESPONSE = "response"
    DATABASE = "database"
    WORKFLOW = "workflow"
    GAMIFICATION = "gamification"
    POLL = "poll"
    NOTIFICATION = "notification"
    ERROR = "error"
    SYSTEM = "system"


# ============================================================================
# STRUCTURED LOG MODEL
# ============================================================================


class StructuredLogEntry(BaseModel):
    """One JSON log line"""

    timestamp: str = Field(default_factory=lambda: datetime.utcnow().isoformat())
    level: str
    category: str
    message: str
    logger: Optional[str] = None
    correlation_id: Optional[str] = None
    user_id: Optional[str] = Field(None, description="Acting user (X-User-ID)")

    # Request context
    request_id: Optional[str] = None
    request_method: Optional[str] = None
    request_path: Optional[str] = None
    response_status: Optional[int] = None
    response_time_ms: Optional[float] = None

    # Log workflow context
    log_id: Optional[int] = None
    student_id: Optional[int] = None
    action: Optional[str] = None
    from_status: Optional[str] = None
    to_status: Optional[str] = None

    # Error context
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    error_stack: Optional[str] = None

    extra: Optional[Dict[str, Any]] = Field(default_factory=dict)


# ============================================================================
# STRUCTURED LOGGER CLASS
# ============================================================================


class StructuredLogger:
    """Logger wrapper emitting one JSON document per record"""

    def __init__(self, name: str, level: str = "INFO"):
        self.name = name
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper()))

        self.logger.handlers = []
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        self.logger.addHandler(handler)

        # Disable propagation to avoid duplicate logs
        self.logger.propagate = False

    def _emit(
        self,
        level: LogLevel,
        category: str,
        message: str,
        exception: Optional[Exception] = None,
        **kwargs,
    ) -> None:
        if kwargs.get("user_id") is not None:
            kwargs["user_id"] = str(kwargs["user_id"])
        if exception is not None:
            kwargs["error_type"] = type(exception).__name__
            kwargs["error_message"] = str(exception)
            kwargs["error_stack"] = "".join(
                traceback.format_exception(type(exception), exception, exception.__traceback__)
            )
        entry = StructuredLogEntry(
            level=level.value,
            category=getattr(category, "value", category),
            message=message,
            logger=self.name,
            correlation_id=kwargs.pop("correlation_id", None) or correlation_id_var.get(),
            **kwargs,
        )
        self.logger.log(getattr(logging, level.value), entry.model_dump_json(exclude_none=True))

    def debug(self, message: str, category: str = LogCategory.SYSTEM, **kwargs):
        self._emit(LogLevel.DEBUG, category, message, **kwargs)

    def info(self, message: str, category: str = LogCategory.SYSTEM, **kwargs):
        self._emit(LogLevel.INFO, category, message, **kwargs)

    def warning(self, message: str, category: str = LogCategory.SYSTEM, **kwargs):
        self._emit(LogLevel.WARNING, category, message, **kwargs)

    def error(self, message: str, category: str = LogCategory.ERROR, **kwargs):
        """Log error message; pass `exception=` to attach the stack"""
        self._emit(LogLevel.ERROR, category, message, **kwargs)

    def critical(self, message: str, category: str = LogCategory.ERROR, **kwargs):
        self._emit(LogLevel.CRITICAL, category, message, **kwargs)

    def transition(self, log_id: int, student_id: int, action: str, from_status: str, to_status: str, **kwargs):
        """Log a committed status change of a daily log"""
        self._emit(
            LogLevel.INFO,
            LogCategory.WORKFLOW,
            f"Log {log_id}: {from_status} -> {to_status}",
            log_id=log_id,
            student_id=student_id,
            action=action,
            from_status=from_status,
            to_status=to_status,
            **kwargs,
        )

    def request(self, request: Request, **kwargs):
        self._emit(
            LogLevel.INFO,
            LogCategory.REQUEST,
            f"{request.method} {request.url.path}",
            request_method=request.method,
            request_path=request.url.path,
            **kwargs,
        )

    def response(self, request: Request, response: Response, elapsed_ms: float, **kwargs):
        self._emit(
            LogLevel.INFO,
            LogCategory.RESPONSE,
            f"{response.status_code} {request.method} {request.url.path}",
            request_method=request.method,
            request_path=request.url.path,
            response_status=response.status_code,
            response_time_ms=round(elapsed_ms, 2),
            **kwargs,
        )


# ============================================================================
# CUSTOM FORMATTER
# ============================================================================


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured JSON output"""

    def format(self, record: logging.LogRecord) -> str:
        # If message is already JSON, return as-is
        if isinstance(record.msg, str) and record.msg.startswith("{"):
            return record.msg

        entry = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": correlation_id_var.get(),
        }

        if record.exc_info:
            entry["error_stack"] = self.formatException(record.exc_info)

        return json.dumps(entry)


# ============================================================================
# CORRELATION ID MANAGEMENT
# ============================================================================


def generate_correlation_id() -> str:
    """Generate a unique correlation ID"""
    return f"corr_{uuid.uuid4().hex[:16]}"


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    if not correlation_id:
        correlation_id = generate_correlation_id()

    correlation_id_var.set(correlation_id)
    return correlation_id


# ============================================================================
# REQUEST LOGGING MIDDLEWARE
# ============================================================================


async def log_request_middleware(request: Request, call_next):
    """Middleware to log requests with correlation IDs"""

    correlation_id = set_correlation_id(request.headers.get("X-Correlation-ID"))

    request.state.correlation_id = correlation_id
    request.state.request_id = f"req_{uuid.uuid4().hex[:8]}"
    acting_user = request.headers.get("X-User-ID")

    logger = get_logger("api.request")
    logger.request(request, request_id=request.state.request_id, user_id=acting_user)

    started = time.perf_counter()

    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(
            f"Request failed: {str(e)}",
            exception=e,
            request_id=request.state.request_id,
            request_method=request.method,
            request_path=request.url.path,
            response_time_ms=(time.perf_counter() - started) * 1000,
        )
        raise

    response.headers["X-Correlation-ID"] = correlation_id
    response.headers["X-Request-ID"] = request.state.request_id

    logger.response(request, response, (time.perf_counter() - started) * 1000, request_id=request.state.request_id, user_id=acting_user)
    return response


# ============================================================================
# LOGGER FACTORY
# ============================================================================

_loggers: Dict[str, StructuredLogger] = {}
_default_level = "INFO"


def get_logger(name: str, level: Optional[str] = None) -> StructuredLogger:
    """Get or create a structured logger"""

    if name not in _loggers:
        _loggers[name] = StructuredLogger(name, level or _default_level)

    return _loggers[name]


def configure_logging(level: str = "INFO", json_output: bool = True):
    """Configure global logging settings"""
    global _default_level

    _default_level = level.upper()
    logging.getLogger().setLevel(getattr(logging, _default_level))
    for structured in _loggers.values():
        structured.logger.setLevel(getattr(logging, _default_level))

    if json_output:
        for handler in logging.getLogger().handlers:
            handler.setFormatter(StructuredFormatter())

    logger = get_logger("system")
    logger.info("Logging configured", category=LogCategory.SYSTEM, extra={"level": level, "json_output": json_output})
