# pyright: reportMissingTypeStubs=false
"""
SmileSys Backend API

A FastAPI application providing the account endpoints of the SmileSys
dental-clinic platform.

Features:
- Email-code clinic signup with account provisioning
- Clinic and staff invites
- Password recovery and change
- Google account connection
- PostgreSQL database with SQLAlchemy ORM
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import admin, auth, invites, reports, signup, users
from core.constants import CORS_ORIGINS
from core.exceptions import AuthFlowError
from services import ephemeral_cipher
from services.cleanup_scheduler import start_cleanup_scheduler, stop_cleanup_scheduler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("Starting SmileSys Backend API")

    # A malformed PENDING_SIGNUP_AES_KEY must stop startup (raises CipherKeyError)
    ephemeral_cipher.get_key()

    # Note: Database sessions are created fresh for each scheduler run
    try:
        await start_cleanup_scheduler()
    except Exception as e:
        logger.exception(f"Failed to start cleanup scheduler: {e}")

    yield

    try:
        await stop_cleanup_scheduler()
    except Exception as e:
        logger.exception(f"Error stopping cleanup scheduler: {e}")

    logger.info("Shutting down SmileSys Backend API")


# Create FastAPI application
app = FastAPI(
    title="SmileSys Backend",
    description="Account provisioning and credential recovery for SmileSys",
    version="1.0.0",
    docs_url="/docs",  # Swagger UI
    redoc_url="/redoc",  # ReDoc
    lifespan=lifespan,
)

# CORS middleware for frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(
    auth.router,
    prefix="/api/auth",
    tags=["authentication"],
    responses={
        400: {"description": "Bad request"},
        401: {"description": "Unauthorized"},
        500: {"description": "Internal server error"},
    },
)
app.include_router(
    invites.router,
    prefix="/api/invites",
    tags=["invites"],
    responses={
        400: {"description": "Bad request"},
        403: {"description": "Forbidden"},
        404: {"description": "Resource not found"},
        500: {"description": "Internal server error"},
    },
)
app.include_router(
    admin.router,
    prefix="/api/admin",
    tags=["admin"],
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Forbidden"},
        409: {"description": "Conflict"},
        500: {"description": "Internal server error"},
    },
)
app.include_router(
    signup.router,
    prefix="/api/signup",
    tags=["signup"],
    responses={
        400: {"description": "Bad request"},
        500: {"description": "Internal server error"},
    },
)
app.include_router(
    users.router,
    prefix="/api/users",
    tags=["users"],
    responses={
        401: {"description": "Unauthorized"},
        500: {"description": "Internal server error"},
    },
)
app.include_router(
    reports.router,
    prefix="/api/reports",
    tags=["reports"],
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Forbidden"},
        500: {"description": "Internal server error"},
    },
)


@app.get(
    "/",
    summary="Root endpoint",
    description="Returns basic API information",
)
async def root() -> dict[str, str]:
    """Get API information."""
    return {
        "message": "SmileSys Backend API",
        "version": "1.0.0",
        "status": "running"
    }


@app.get(
    "/health",
    summary="Health check",
    description="Returns the health status of the API",
)
async def health_check() -> dict[str, str]:
    """Check if the API is healthy and responding."""
    return {"status": "healthy"}


# Global exception handlers
@app.exception_handler(AuthFlowError)
async def auth_flow_error_handler(request: Request, exc: AuthFlowError):
    """Render workflow errors with their status and stable code."""
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "type": exc.code},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors (400)."""
    logger.warning(f"Request validation failed on {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={"detail": "Solicitud inválida", "type": "validation_error"},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions globally."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Error interno", "type": "internal_error"},
    )
