"""
Project Hub - Main Application Entry Point

Milestone tracking with staged, role-based approval workflows.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import get_settings
from app.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConcurrencyConflictError,
    InfrastructureError,
    NotFoundError,
    PreconditionError,
    ProjectHubError,
    ValidationError,
)
from app.core.logger import logger

# Most specific first; unlisted ProjectHubError subclasses fall back to 500.
ERROR_STATUS_CODES: dict[type[ProjectHubError], int] = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    PreconditionError: status.HTTP_409_CONFLICT,
    ConcurrencyConflictError: status.HTTP_409_CONFLICT,
    AuthenticationError: status.HTTP_401_UNAUTHORIZED,
    AuthorizationError: status.HTTP_403_FORBIDDEN,
    InfrastructureError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_code_for(exc: ProjectHubError) -> int:
    for exc_type, code in ERROR_STATUS_CODES.items():
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def project_hub_error_handler(request: Request, exc: ProjectHubError) -> JSONResponse:
    code = status_code_for(exc)
    if code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {code}: {exc.message}")
    return JSONResponse(
        status_code=code,
        content={"detail": exc.message, "errors": exc.details},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    settings = get_settings()
    logger.info(f"Starting Project Hub in {settings.ENVIRONMENT} mode...")

    from app.infrastructure.local.database import init_db

    await init_db()

    yield

    # Shutdown
    logger.info("Shutting down Project Hub...")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Project Hub",
        description="Milestones, phases and milestone approval workflows",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    app.add_exception_handler(ProjectHubError, project_hub_error_handler)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    from app.api import milestone_approvals, milestones, notifications, phases, users

    app.include_router(phases.router, prefix="/api")
    app.include_router(milestones.router, prefix="/api")
    app.include_router(milestone_approvals.router, prefix="/api")
    app.include_router(users.router, prefix="/api")
    app.include_router(notifications.router, prefix="/api")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "environment": settings.ENVIRONMENT,
            "version": "0.1.0"
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
