# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the CRM Media API.
# It configures the FastAPI application with middleware, routers, and handlers.
#
# Usage:
#   poetry run uvicorn app.main:app --reload
# =============================================================================

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.exceptions import CRMMediaException, crm_media_exception_handler
from app.registry import uploader_registry
from app.routers import diagnostics, health, uploaders

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Runs on startup and shutdown:
    - Startup: Log configuration
    - Shutdown: Drop open uploaders
    """
    # Startup
    logger.info(f"Starting CRM Media API in {settings.ENVIRONMENT} mode")
    logger.info(f"CORS origins: {settings.cors_origins_list}")
    logger.info(
        f"Uploads: max {settings.MAX_UPLOAD_SIZE_MB}MB, "
        f"types {settings.allowed_mime_types_list}, users table {settings.USERS_TABLE}"
    )

    yield

    # Shutdown
    logger.info(f"Shutting down CRM Media API ({len(uploader_registry)} uploaders open)")
    uploader_registry.clear()


# Create FastAPI application
app = FastAPI(
    title="CRM Media API",
    description="""
## Image Uploads for CRM Records

Uploads avatars, contact photos and company logos to Supabase Storage and
keeps the user record pointing at the newest avatar.

### How It Works

1. **Open an Uploader** - storage readiness is checked immediately
2. **Fix Storage** - retry, or auto-create missing buckets
3. **Select a File** - PNG, JPG, JPEG or WebP up to 5MB
4. **Confirm** - the image is stored and its public URL returned
5. **Diagnose** - list or export the diagnostic log

### Quick Start

```bash
# 1. Open an uploader for a company logo
curl -X POST http://localhost:8000/api/v1/uploaders \\
  -H "Content-Type: application/json" \\
  -d '{"kind": "company", "entity_id": "c1"}'

# 2. Select a file
curl -X POST http://localhost:8000/api/v1/uploaders/{id}/file \\
  -F "file=@logo.png;type=image/png"

# 3. Upload it
curl -X POST http://localhost:8000/api/v1/uploaders/{id}/confirm
```
""",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Uploaders",
            "description": "Image uploader commands: probe, auto-fix, select, confirm, cancel",
        },
        {
            "name": "Diagnostics",
            "description": "Diagnostic event log and comprehensive upload checks",
        },
        {
            "name": "Health",
            "description": "API health and storage readiness checks",
        },
    ],
)


# =============================================================================
# Middleware
# =============================================================================

# CORS middleware - allows cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list if settings.is_production else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(CRMMediaException)
async def handle_crm_media_exception(request: Request, exc: CRMMediaException):
    """Handle custom CRM Media exceptions."""
    return await crm_media_exception_handler(request, exc)


@app.exception_handler(Exception)
async def handle_general_exception(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
        }
    )


# =============================================================================
# Routers
# =============================================================================

# Health check endpoints
app.include_router(
    health.router,
    prefix="/api/v1",
    tags=["Health"]
)

# Uploader endpoints
app.include_router(
    uploaders.router,
    prefix="/api/v1/uploaders",
    tags=["Uploaders"]
)

# Diagnostics endpoints
app.include_router(
    diagnostics.router,
    prefix="/api/v1/diagnostics",
    tags=["Diagnostics"]
)


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - returns API info.
    """
    return {
        "name": "CRM Media API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/v1/health",
    }
