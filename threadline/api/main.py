"""
threadline.api.main — FastAPI application entry point
=======================================================

Run with::

    uvicorn threadline.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from threadline.api.deps import get_engine  # noqa: E402
from threadline.api.routes.categories import router as categories_router  # noqa: E402
from threadline.api.routes.posts import router as posts_router  # noqa: E402
from threadline.engine.errors import (  # noqa: E402
    ContentValidationError,
    DepthExceededError,
    InvalidStateError,
    PermissionDeniedError,
    PostLookupError,
    RetrievalError,
    ThreadlineError,
)

logger = logging.getLogger(__name__)

# Lookup walks the raised exception's MRO.
_ERROR_STATUS: dict[type[ThreadlineError], int] = {
    PostLookupError: status.HTTP_404_NOT_FOUND,
    PermissionDeniedError: status.HTTP_403_FORBIDDEN,
    DepthExceededError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ContentValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidStateError: status.HTTP_409_CONFLICT,
    RetrievalError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — warm the DB engine."""
    engine = get_engine()
    logger.info("Threadline API started — engine ready (%s)", engine.url.database)
    yield
    logger.info("Threadline API shutting down")


app = FastAPI(
    title="Threadline API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ThreadlineError)
async def threadline_error_handler(request: Request, exc: ThreadlineError):
    """Translate core failures into HTTP responses."""
    code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for exc_type in type(exc).__mro__:
        if exc_type in _ERROR_STATUS:
            code = _ERROR_STATUS[exc_type]
            break
    if code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=code, content={"detail": str(exc)})


# Mount routers
app.include_router(posts_router, prefix="/api")
app.include_router(categories_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
