"""
Internship Logbook API v1
Daily logs, mentor review, advisor validation, gamification and polls
"""

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from datetime import datetime

from routes import advisor, gamification, logs, notifications, polls, review
from config import settings
from db import get_db
from schemas.api_models import COMMON_RESPONSES, HealthCheckResponse
from utils.error_handling import WorkflowError, workflow_exception_handler

from utils.structured_logging import configure_logging, get_logger, log_request_middleware, LogCategory

API_VERSION = "1.0.0"

# Configure structured logging system
configure_logging(level=settings.LOG_LEVEL, json_output=True)
logger = get_logger("app")

app = FastAPI(
    title="Internship Logbook API",
    description="Daily internship logs with a mentor/advisor review workflow, XP, levels, streaks, badges and polls",
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# CORS configuration - Load from environment
origins = [origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Authorization",
        "Accept",
        "Origin",
        "X-User-ID",
        "X-Correlation-ID",
        "X-Request-ID",
    ],
    expose_headers=["Content-Length", "X-Correlation-ID", "X-Request-ID"],
)


# Structured logging middleware - adds correlation IDs and logs all requests
@app.middleware("http")
async def structured_logging_middleware(request: Request, call_next):
    """Add correlation IDs and structured logging to all requests"""
    return await log_request_middleware(request, call_next)


# Global exception handlers
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors with proper structure and logging"""
    errors = []
    for error in exc.errors():
        errors.append(
            {"field": ".".join(str(loc) for loc in error["loc"]), "message": error["msg"], "code": error["type"]}
        )

    logger.warning(
        "Validation error",
        category=LogCategory.ERROR,
        request_method=request.method,
        request_path=request.url.path,
        error_type="ValidationError",
        error_message=f"{len(errors)} validation errors",
        extra={"errors": errors},
    )

    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "error": "Validation Error",
            "error_code": "VALIDATION_ERROR",
            "detail": errors,
            "status_code": 422,
            "request_id": getattr(request.state, "request_id", None),
            "correlation_id": getattr(request.state, "correlation_id", None),
        },
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions with proper structure and logging"""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"HTTP {exc.status_code} error",
        category=LogCategory.ERROR,
        request_method=request.method,
        request_path=request.url.path,
        response_status=exc.status_code,
        error_message=str(exc.detail),
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.detail,
            "detail": exc.detail,
            "status_code": exc.status_code,
            "request_id": getattr(request.state, "request_id", None),
            "correlation_id": getattr(request.state, "correlation_id", None),
        },
        headers=getattr(exc, "headers", None),
    )


app.add_exception_handler(WorkflowError, workflow_exception_handler)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions with structured logging"""
    logger.critical(
        "Unexpected server error",
        category=LogCategory.ERROR,
        exception=exc,
        request_method=request.method,
        request_path=request.url.path,
        user_id=getattr(request.state, "user_id", None),
    )

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": "An unexpected error occurred. Please try again later.",
            "status_code": 500,
            "request_id": getattr(request.state, "request_id", None),
            "correlation_id": getattr(request.state, "correlation_id", None),
        },
    )


ROUTERS = [
    (logs.router, "/api/v1/logs", "Logs"),
    (review.router, "", "Mentor Review"),
    (advisor.router, "/api/v1/advisor", "Advisor"),
    (gamification.router, "/api/v1/gamification", "Gamification"),
    (polls.router, "/api/v1/polls", "Polls"),
    (notifications.router, "/api/v1/notifications", "Notifications"),
]

for router, prefix, tag in ROUTERS:
    app.include_router(router, prefix=prefix, tags=[tag], responses=COMMON_RESPONSES)


@app.get("/", tags=["System"], summary="API Information")
async def root():
    """
    ## API Root Information

    Version, status and the service directory. Can be used for API discovery.
    """
    return {
        "name": "Internship Logbook API",
        "version": API_VERSION,
        "status": "operational",
        "documentation": {"swagger": "/docs", "redoc": "/redoc", "openapi_spec": "/openapi.json"},
        "timestamp": datetime.utcnow().isoformat(),
        "services": {
            "logs": {"endpoint": "/api/v1/logs", "description": "Student daily logs"},
            "mentor": {"endpoint": "/api/v1/mentor", "description": "Mentor review queue and feedback"},
            "advisor": {"endpoint": "/api/v1/advisor", "description": "Advisor validation and progress"},
            "gamification": {"endpoint": "/api/v1/gamification", "description": "XP, levels, badges"},
            "polls": {"endpoint": "/api/v1/polls", "description": "Polls and quizzes"},
            "notifications": {"endpoint": "/api/v1/notifications", "description": "In-app notifications"},
        },
    }


@app.get("/health", response_model=HealthCheckResponse, tags=["System"], summary="Health Check")
async def health_check(db: Session = Depends(get_db)):
    """Service health for load balancers and uptime checks"""
    database = "operational"
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Health check database probe failed", category=LogCategory.DATABASE, exception=e)
        database = "unavailable"

    return {
        "status": "healthy" if database == "operational" else "degraded",
        "timestamp": datetime.utcnow().isoformat(),
        "version": API_VERSION,
        "database": database,
    }
