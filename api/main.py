import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes.intake_templates import router as intake_templates_router
from api.routes.intake_sessions import router as intake_sessions_router
from config.settings import settings
from utils.exceptions import (
    IntakeError,
    ValidationError,
    NotFoundError,
    PreconditionError,
    ConflictError,
    IncompleteSessionError,
    GenerationBackendError,
    GenerationFailedError,
    AuthScopeError,
    DeliveryError,
)

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

DESCRIPTION = """
Intake meeting engine for recruiters: configurable intake questionnaires, client
intake sessions, and AI-generated job descriptions and interview templates.

## Authentication

All `/intake` endpoints require an API key via the `X-API-Key` header.

Use the **Authorize** button above to set your API key for testing.

## Quick Start

1. **Pick a template** → `GET /intake/templates/default`
2. **Start a session** → `POST /intake/sessions` with the template and client
3. **Record answers** → `PUT /intake/sessions/{session_id}/responses/{question_id}`
4. **Complete** → `POST /intake/sessions/{session_id}/complete`
5. **Generate** → `POST /intake/sessions/{session_id}/job-description`

## Session States

| Status | Description |
|------|-------------|
| `draft` | Answers are being captured |
| `completed` | All required questions answered; artifacts can be generated |
| `follow_up_needed` | Parked until open items are resolved with the client |

## Errors

Errors are returned as `{"kind", "message", "details"}`.
"""

tags_metadata = [
    {
        "name": "Health",
        "description": "Health check endpoints. No authentication required.",
    },
    {
        "name": "Intake Templates",
        "description": "Manage intake questionnaires. Hierarchy: Template → ordered Questions.",
    },
    {
        "name": "Intake Sessions",
        "description": "Run intake meetings. Create → Record answers → Complete → Generate artifacts → Invite.",
    },
]

# Error type -> HTTP status
ERROR_STATUS = {
    ValidationError: 422,
    NotFoundError: 404,
    PreconditionError: 409,
    ConflictError: 409,
    IncompleteSessionError: 422,
    GenerationFailedError: 502,
    GenerationBackendError: 502,
    AuthScopeError: 403,
    DeliveryError: 502,
}

app = FastAPI(
    title="Intake Meeting API",
    description=DESCRIPTION,
    version="1.0.0",
    openapi_tags=tags_metadata,
)

# Configure CORS
ALLOWED_ORIGINS = settings.ALLOWED_ORIGINS.split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(IntakeError)
async def intake_error_handler(request: Request, exc: IntakeError):
    status_code = ERROR_STATUS.get(type(exc), 400)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.get("/", tags=["Root"])
def root():
    """Root endpoint with API information and documentation links"""
    return {
        "message": "Welcome to the Intake Meeting API",
        "version": "1.0.0",
        "documentation": {
            "swagger": "/docs",
            "redoc": "/redoc"
        },
        "authentication": {
            "type": "API Key",
            "header": "X-API-Key",
            "note": "Required for all endpoints except /, /ping and /health"
        },
        "endpoints": {
            "health": "/health",
            "ping": "/ping",
            "templates": "/intake/templates",
            "sessions": "/intake/sessions"
        }
    }


# Health check endpoints (public - no authentication required)
@app.get("/ping", tags=["Health"])
def ping():
    """Simple ping endpoint to check if API is responding. No authentication required."""
    return {"message": "pong"}


@app.get("/health", tags=["Health"])
def health():
    """Health check endpoint with basic status information. No authentication required."""
    return {
        "status": "healthy",
        "service": "Intake Meeting API",
        "version": "1.0.0"
    }


# Register routers
app.include_router(intake_templates_router)
app.include_router(intake_sessions_router)
