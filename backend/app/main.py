"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app import database
from app.config import settings
from app.rate_limiter import limiter
from app.services.auth import AccessTokenCodec, AuthError, TokenCleanupTask

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load keys, check the database and run token cleanup for the app's lifetime.

    Missing keys or an unreachable database abort startup.
    """
    app.state.token_codec = AccessTokenCodec.from_settings(settings)
    logger.info("Token signing keys loaded")

    database.check_connection(database.engine)
    logger.info("Database connection verified")

    cleanup_task = None
    if settings.token_cleanup_enabled:
        cleanup_task = TokenCleanupTask(
            database.SessionLocal,
            interval_seconds=settings.token_cleanup_interval_seconds,
            refresh_retention_days=settings.refresh_token_retention_days,
            reset_grace_hours=settings.reset_token_cleanup_grace_hours,
        )
        cleanup_task.start()

    try:
        yield
    finally:
        if cleanup_task is not None:
            await cleanup_task.stop()


# Create FastAPI app
app = FastAPI(
    title="Tenant Auth API",
    description="Sign-in, token rotation and password reset for multi-tenant accounts",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Add rate limiter to app state and exception handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render AuthError with its stable code. 5xx details stay generic."""
    detail = exc.detail if exc.status_code >= 500 else str(exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": detail, "code": exc.code, "errors": exc.errors},
    )


# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Tenant Auth API", "version": "0.1.0", "status": "running"}


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


# Import and include routers
from app.routers import auth

app.include_router(auth.router, prefix="/api")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000, reload=True)
