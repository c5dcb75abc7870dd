"""
Campus Collab - Main Application

FastAPI backend with:
- MongoDB for users, projects and meetups
- External identity provider (bearer tokens verified here)
- LLM (OpenAI-compatible API) for project alignment blurbs
- Filtered / sorted project feed

Run: uvicorn collab.main:app --reload
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from collab.api.routes import api_router
from collab.core.config import get_settings
from collab.core.errors import CollabError, InvalidRequest, Unauthorized, error_body
from collab.core.logging_config import setup_logging
from collab.db.mongodb import init_mongo_indexes, test_mongo_connection

settings = get_settings()
setup_logging(settings.log_level, settings.log_file)

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Campus Collab",
    description="""
    Find student collaborators for your projects.

    ## Features
    - **Feed**: Browse projects, filtered by needed role and stage, sorted by match, recency or trend
    - **Projects**: Post a project with the roles you are missing
    - **Alignment**: AI summary of how your profile fits a project
    - **Meetups**: Ask a project owner to meet on campus

    ## Auth
    Send the identity provider's token as `Authorization: Bearer <token>`.
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api")


# ============================================================
# ERROR HANDLERS - every error body is JSON {"error", "code", "retryable"}
# ============================================================

@app.exception_handler(CollabError)
async def collab_error_handler(request: Request, exc: CollabError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
    return JSONResponse(status_code=exc.status_code, content=error_body(exc), headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    logger.info("Rejected request to %s: %s", request.url.path, errors)

    fields = {str(part) for err in errors for part in err.get("loc", ())}
    message = "Invalid project ID" if "projectId" in fields else "Invalid request"
    if "body" in fields and any(err.get("type") == "json_invalid" for err in errors):
        message = "Request body must be valid JSON"
    return JSONResponse(status_code=400, content=error_body(InvalidRequest(message)))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(status_code=500, content=error_body(CollabError()))


# Startup event
@app.on_event("startup")
async def startup_event():
    """Initialize MongoDB indexes on startup."""
    try:
        init_mongo_indexes()
    except Exception as e:
        logger.warning("MongoDB index initialization failed: %s", e)


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check."""
    return {
        "status": "healthy",
        "mongodb": "connected" if test_mongo_connection() else "disconnected",
        "llm": "configured" if settings.llm_configured else "not configured"
    }
