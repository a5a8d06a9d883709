"""
Enrollment Desk - FastAPI Application Entry Point.

This is the main application module that:
1. Initializes the FastAPI app with CORS middleware
2. Sets up structured JSON logging
3. Implements request ID middleware (X-Request-ID header)
4. Maps service errors to HTTP responses
5. Registers all API route handlers

The application follows a modular architecture:
- routes/: API endpoint handlers
- services/: Import pipeline, roster read model, engagement tracking
- store/: Document store contract and its SQL / in-memory backends
- models/: SQLAlchemy ORM models behind the SQL store
- logging_config.py: Structured logging configuration
- database.py: Database connection management
"""

import os
import time
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from enrolldesk.logging_config import (
    setup_logging, get_logger, log_with_context,
    request_id_var, generate_request_id
)
from enrolldesk.errors import ServiceError
from enrolldesk.routes import imports, dashboard, users
from enrolldesk.database import create_tables

# ──────────────────────────────────────────────────────────────
# Initialize structured logging BEFORE anything else
# ──────────────────────────────────────────────────────────────
setup_logging()
logger = get_logger("http")

create_tables()

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:5173,http://localhost:5174,http://localhost:3000"
    ).split(",")
    if origin.strip()
]

# ──────────────────────────────────────────────────────────────
# Create FastAPI application
# ──────────────────────────────────────────────────────────────
app = FastAPI(
    title="Enrollment Desk",
    description=(
        "Administrative backend for a training-program operator: bulk roster "
        "import from spreadsheets, student listing, and tracking of which "
        "staff member viewed or called each student."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    expose_headers=["X-Request-ID"]
)


# ──────────────────────────────────────────────────────────────
# Request ID Middleware
#
# Generates a unique UUID per incoming request, stores it in a context
# variable for every log entry, returns it as X-Request-ID and logs the
# request start/end with latency.
# ──────────────────────────────────────────────────────────────
@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    req_id = generate_request_id()
    request_id_var.set(req_id)

    start_time = time.time()

    log_with_context(logger, "INFO",
        f"Request started: {request.method} {request.url.path}",
        context={"request_id": req_id},
        extra_data={
            "ip": request.client.host if request.client else "unknown",
            "user_agent": request.headers.get("user-agent", ""),
            "query_params": dict(request.query_params)
        })

    response = await call_next(request)

    duration_ms = (time.time() - start_time) * 1000
    response.headers["X-Request-ID"] = req_id

    log_with_context(logger, "INFO",
        f"Request completed: {request.method} {request.url.path} → {response.status_code}",
        context={"request_id": req_id},
        extra_data={
            "duration_ms": round(duration_ms, 2),
            "status_code": response.status_code
        })

    return response


# ──────────────────────────────────────────────────────────────
# Error handling
#
# Service errors carry their own status code. Only the message goes back
# to the caller; the context is logged.
# ──────────────────────────────────────────────────────────────
@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    level = "ERROR" if exc.status_code >= 500 else "WARNING"
    log_with_context(logger, level,
        f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}",
        context=exc.context,
        extra_data={"status_code": exc.status_code})
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = "Invalid request: {} {}".format(location, first.get("msg", "")).strip()
    log_with_context(logger, "WARNING",
        f"Request validation failed on {request.method} {request.url.path}",
        extra_data={"errors": len(errors)})
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    log_with_context(logger, "ERROR",
        f"Unhandled error on {request.method} {request.url.path}: {exc}",
        exc_info=True)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# ──────────────────────────────────────────────────────────────
# Register API routes
# ──────────────────────────────────────────────────────────────
app.include_router(imports.router, tags=["Import"])
app.include_router(dashboard.router, tags=["Dashboard"])
app.include_router(users.router, tags=["Users"])


@app.get("/health", tags=["Health"])
def health_check():
    """Health check endpoint for Docker health checks and monitoring."""
    return {"status": "healthy", "service": "enrolldesk-backend", "version": "1.0.0"}


@app.get("/", tags=["Root"])
def root():
    """Root endpoint with API information."""
    return {
        "service": "Enrollment Desk",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "import": "POST /api/File/students/import",
            "students_list": "GET /api/dashboard/students",
            "student_detail": "GET /api/dashboard/students/{id}",
            "call_status": "PATCH /api/dashboard/students/{id}/status",
            "me": "GET /api/users/GetLoginUserDetails"
        }
    }
