"""
School Records API

Main FastAPI application for the school records system.
Exposes the session cache, owner-scoped school and student records, student
photos and ID card generation.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings, setup_logging, request_id_var, generate_request_id
from database import SessionLocal, init_db
from tools import (
    AppState,
    UnauthenticatedError,
    PermissionDenied,
    RecordNotFoundError,
    ValidationError,
    AssetPayloadTooLarge,
    AssetUploadFailed,
    AssetStoreUnavailable,
    StoreError,
    ComposeFailed,
)
from api import SessionRegistry, session_router, schools_router, students_router, users_router

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = [
    (UnauthenticatedError, 401),
    (PermissionDenied, 403),
    (RecordNotFoundError, 404),
    (ValidationError, 400),
    (AssetPayloadTooLarge, 413),
    (AssetStoreUnavailable, 503),
    (AssetUploadFailed, 502),
    (StoreError, 503),
    (ComposeFailed, 502),
]


def _default_registry() -> SessionRegistry:
    return SessionRegistry(
        lambda: AppState.from_settings(settings, SessionLocal),
        max_sessions=settings.max_sessions,
    )


def create_app(registry: Optional[SessionRegistry] = None, initialize_db: bool = True) -> FastAPI:
    """Build the FastAPI application around a session registry."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan handler: configure logging and initialise DB on startup."""
        setup_logging(settings.log_level)
        if initialize_db:
            logger.info("Initializing database...")
            init_db()
            logger.info("Database initialized.")
        yield

    app = FastAPI(
        title="School Records API",
        description="""
API for managing schools, classes and students with photos and ID cards.

## Features

### Session
- The identity provider forwards the signed-in user in `X-User-Id`, `X-User-Email` and `X-User-Name`
- Each user's schools and students are cached per session and patched after every change
- The administrator's session also lists every user profile

### Authorization Rules
- **Users**: Can only read and change their own schools and students
- **Administrator**: Can act on any user's records through `target_user_id` or the `/users/{user_id}` reads

### Photos
- Uploaded to the asset store before the student record is written
- Deleted best-effort when replaced, removed, or when the student or school goes away
        """,
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.sessions = registry if registry is not None else _default_registry()

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Tag every log line of the request with its request id."""
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers["X-Request-ID"] = request_id
        return response

    def _register(exc_class, status_code):
        async def handler(request: Request, exc: Exception):
            if status_code >= 500:
                logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc)
            return JSONResponse(
                status_code=status_code,
                content={"detail": str(exc), "error_type": type(exc).__name__},
            )
        app.add_exception_handler(exc_class, handler)

    for exc_class, status_code in ERROR_STATUS_CODES:
        _register(exc_class, status_code)

    # Exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler."""
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(
            status_code=500,
            content={"detail": str(exc), "error_type": type(exc).__name__},
        )

    # Include routers
    app.include_router(session_router)
    app.include_router(schools_router)
    app.include_router(students_router)
    app.include_router(users_router)

    @app.get("/", tags=["Health"])
    async def root():
        """Root endpoint - API health check."""
        return {
            "status": "online",
            "service": "School Records API",
            "version": "1.0.0",
        }

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "sessions": len(app.state.sessions)}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
