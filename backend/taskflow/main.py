"""FastAPI application entry point"""
import os
import resource
import sys
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
from fastapi.staticfiles import StaticFiles
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from taskflow.api import auth, items, notifications, reminders
from taskflow.config import Settings, get_settings
from taskflow.database import Database
from taskflow.errors import register_error_handlers
from taskflow.middleware import (
    BodySizeLimitMiddleware,
    ErrorResponseMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    create_limiter,
    rate_limit_exceeded_handler,
)
from taskflow.services.auth import AuthService
from taskflow.services.email import EmailService
from taskflow.services.notification import NotificationService
from taskflow.utils.monitoring import RequestMetrics, StructuredLogger
from taskflow.utils.scheduler import create_scheduler, shutdown_scheduler, start_scheduler

VERSION = "1.0.0"
PROCESS_STARTED_AT = time.time()


class DatabaseConnectionError(RuntimeError):
    """Raised when the application cannot reach MongoDB at startup"""


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan"""
    settings: Settings = app.state.settings
    database: Database = app.state.database

    # Startup
    if not database.is_connected and not database.connect():
        raise DatabaseConnectionError(f"Could not connect to MongoDB at {database.uri}")

    if not settings.is_test:
        app.state.scheduler = create_scheduler(app.state.notification_service)
        start_scheduler(app.state.scheduler)

    StructuredLogger.log_event(
        "application_started",
        "TaskFlow API started",
        metadata={"environment": settings.ENVIRONMENT, "version": VERSION},
    )
    yield

    # Shutdown
    StructuredLogger.log_event("application_shutting_down", "Shutdown signal received, closing resources")
    if app.state.scheduler is not None:
        shutdown_scheduler(app.state.scheduler)
    database.close()


def memory_usage() -> dict:
    usage = resource.getrusage(resource.RUSAGE_SELF)
    return {
        "max_rss_kb": usage.ru_maxrss,
        "user_cpu_seconds": round(usage.ru_utime, 3),
        "system_cpu_seconds": round(usage.ru_stime, 3),
    }


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """
    Compose the application: middleware, route groups, informational
    endpoints and error handlers.

    Args:
        settings: Configuration, defaults to the environment
        database: Connector to inject, defaults to one built from MONGODB_URI

    Returns:
        The FastAPI application
    """
    settings = settings or get_settings()
    database = database or Database(
        settings.MONGODB_URI,
        server_selection_timeout_ms=settings.MONGODB_SERVER_SELECTION_TIMEOUT_MS,
    )

    app = FastAPI(
        title="TaskFlow API",
        description="Task, reminder and notification management API",
        version=VERSION,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.database = database
    app.state.auth_service = AuthService(settings)
    app.state.notification_service = NotificationService(database, EmailService(settings))
    app.state.scheduler = None
    app.state.metrics = RequestMetrics()
    app.state.limiter = create_limiter(settings)

    # Middleware - the last one added runs first:
    # security headers -> CORS -> body size limit -> logging -> rate limiter -> error responses -> routes
    app.add_middleware(ErrorResponseMiddleware, settings=settings)
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(RequestLoggingMiddleware, metrics=app.state.metrics)
    app.add_middleware(BodySizeLimitMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.CORS_ORIGIN],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware, hsts=settings.is_production)

    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    register_error_handlers(app, settings)

    # Static files are mounted, not routed, so the rate limiter skips them
    if os.path.isdir(settings.STATIC_DIR):
        app.mount("/static", StaticFiles(directory=settings.STATIC_DIR), name="static")

    # Include routers
    app.include_router(auth.router, prefix="/api/auth", tags=["authentication"])
    app.include_router(items.router, prefix="/api/items", tags=["items"])
    app.include_router(notifications.router, prefix="/api/notifications", tags=["notifications"])
    app.include_router(reminders.router, prefix="/api/reminders", tags=["reminders"])

    @app.get("/")
    async def root():
        """Root endpoint - API overview"""
        return {
            "success": True,
            "message": "TaskFlow API is running",
            "version": VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "features": [
                "CRUD operations for tasks (create, read, update, delete)",
                "User authentication and authorization (JWT)",
                "Reminders (one-time and recurring)",
                "Notifications (email and in-app)",
                "Search and filtering by text, category, priority and tag",
                "Statistics overview",
                "Multi-user support with public items",
                "Tags and categories",
                "Comments",
                "Like/unlike",
                "Security (rate limiting, CORS, security headers)",
                "Progress tracking",
                "Priority levels",
                "Due dates and overdue tracking",
                "Snoozing reminders",
            ],
            "endpoints": {
                "auth": {
                    "POST /api/auth/register": "Register",
                    "POST /api/auth/login": "Log in",
                    "GET /api/auth/profile": "Profile details",
                    "PUT /api/auth/profile": "Update profile",
                    "POST /api/auth/change-password": "Change password",
                },
                "items": {
                    "GET /api/items": "List items (filter, search, pagination)",
                    "GET /api/items/:id": "Get one item",
                    "POST /api/items": "Create an item",
                    "PUT /api/items/:id": "Update an item",
                    "DELETE /api/items/:id": "Delete an item",
                    "POST /api/items/:id/comments": "Add a comment",
                    "POST /api/items/:id/like": "Like/unlike",
                    "GET /api/items/stats/overview": "Statistics",
                },
                "reminders": {
                    "GET /api/reminders": "List reminders",
                    "GET /api/reminders/upcoming": "Upcoming reminders",
                    "GET /api/reminders/active": "Active reminders",
                    "POST /api/reminders": "Create a reminder",
                    "PUT /api/reminders/:id": "Update a reminder",
                    "PUT /api/reminders/:id/complete": "Mark a reminder completed",
                    "PUT /api/reminders/:id/snooze": "Snooze a reminder",
                    "DELETE /api/reminders/:id": "Delete a reminder",
                },
                "notifications": {
                    "GET /api/notifications": "List notifications",
                    "GET /api/notifications/unread-count": "Unread notification count",
                    "PUT /api/notifications/:id/read": "Mark a notification read",
                    "PUT /api/notifications/mark-all-read": "Mark all read",
                    "DELETE /api/notifications/:id": "Delete a notification",
                },
            },
            "technologies": [
                "Python + FastAPI",
                "MongoDB + PyMongo",
                "JWT Authentication (python-jose)",
                "Password hashing (passlib + bcrypt)",
                "SMTP email",
                "APScheduler (scheduled jobs)",
                "Pydantic validation",
                "SlowAPI (rate limiting)",
                "CORS and security headers",
            ],
        }

    @app.get("/api")
    async def api_docs_redirect():
        """API documentation route"""
        return RedirectResponse(url="/", status_code=302)

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint"""
        return {
            "success": True,
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": round(time.time() - PROCESS_STARTED_AT, 3),
            "memory": memory_usage(),
            "database": request.app.state.database.state,
            "metrics": request.app.state.metrics.get_metrics(),
        }

    return app


def serve(settings: Optional[Settings] = None) -> int:
    """
    Connect to the database, then run the server until a termination signal.

    Returns:
        Process exit code: 1 if the database is unreachable, 0 after a clean shutdown
    """
    settings = settings or get_settings()
    database = Database(
        settings.MONGODB_URI,
        server_selection_timeout_ms=settings.MONGODB_SERVER_SELECTION_TIMEOUT_MS,
    )

    if not database.connect():
        StructuredLogger.log_event(
            "startup_failed",
            "Could not connect to MongoDB, exiting",
            metadata={"uri": settings.MONGODB_URI},
            level="ERROR",
        )
        return 1

    application = create_app(settings, database)
    StructuredLogger.log_event(
        "server_starting",
        f"Server listening on http://{settings.HOST}:{settings.PORT}",
        metadata={
            "port": settings.PORT,
            "environment": settings.ENVIRONMENT,
            "health_check": f"http://localhost:{settings.PORT}/health",
        },
    )
    try:
        # uvicorn handles SIGINT/SIGTERM and runs the lifespan shutdown
        uvicorn.run(application, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())
    finally:
        database.close()
    return 0


if __name__ == "__main__":
    sys.exit(serve())
