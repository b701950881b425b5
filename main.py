"""
LAV Tutoring Backend API Server

FastAPI application for the Learning Assistance tutoring service.
Owns the appointment lifecycle, evaluations, notifications and reports.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from datetime import datetime
import time

from lavtutor import config
from lavtutor.api.routes import (
    announcements,
    appointments,
    availability,
    evaluations,
    events,
    notifications,
    profile,
    reports,
    sync,
    users,
)
from lavtutor.database import close_redis, init_redis
from lavtutor.errors import LavError
from lavtutor.services.change_feed import get_data_sync
from lavtutor.services.events import get_event_bus, register_subscribers
from lavtutor.services.scheduler import start_scheduler, stop_scheduler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    # Startup
    logger.info("Starting LAV tutoring API server...")

    await init_redis()
    register_subscribers(get_event_bus(), get_data_sync())

    if config.ENABLE_SCHEDULER:
        start_scheduler()
        logger.info("Background scheduler started")

    yield

    # Shutdown
    logger.info("Shutting down LAV tutoring API server...")
    if config.ENABLE_SCHEDULER:
        stop_scheduler()
        logger.info("Background scheduler stopped")
    get_event_bus().clear()
    await close_redis()


# Create FastAPI application
app = FastAPI(
    title="LAV Tutoring API",
    description="Tutoring appointment lifecycle, evaluations and reports",
    version="1.0.0",
    lifespan=lifespan,
    debug=config.DEBUG,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests with timing"""
    start_time = time.time()

    # Process request
    response = await call_next(request)

    # Calculate duration
    duration_ms = (time.time() - start_time) * 1000

    # Log request
    logger.info(
        f"{request.method} {request.url.path} - "
        f"Status: {response.status_code} - "
        f"Duration: {duration_ms:.2f}ms"
    )

    return response


# Domain error handler
@app.exception_handler(LavError)
async def lav_error_handler(request: Request, exc: LavError):
    """Render service errors in the standard error envelope"""
    if exc.status_code >= 500:
        logger.error(f"{exc.code}: {exc.message}", exc_info=True)
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.code} {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# HTTP error handler
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Keep HTTPException responses in the same envelope"""
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        content = exc.detail
    else:
        content = {
            "error": {
                "code": f"HTTP_{exc.status_code}",
                "message": str(exc.detail),
                "details": None
            }
        }
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all uncaught exceptions"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An internal server error occurred",
                "details": str(exc) if app.debug else None
            }
        }
    )


# Validation error handler
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors"""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": jsonable_errors(exc)
            }
        }
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    """Pydantic error entries may carry exception objects in 'ctx'"""
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(error)
    return errors


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns server status and version information.
    """
    return {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "version": "1.0.0",
        "service": "lavtutor-api"
    }


# Include routers
app.include_router(appointments.router)
app.include_router(evaluations.router)
app.include_router(notifications.router)
app.include_router(availability.router)
app.include_router(profile.router)
app.include_router(announcements.router)
app.include_router(events.router)
app.include_router(reports.router)
app.include_router(users.router)
app.include_router(sync.router)


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """API root endpoint"""
    return {
        "name": "LAV Tutoring API",
        "version": "1.0.0",
        "description": "Tutoring appointment lifecycle, evaluations and reports",
        "docs": "/api/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
