"""
LifeFlow authentication service

FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lifeflow_auth.api.middleware.request_id import RequestIdMiddleware
from lifeflow_auth.api.v1 import router as api_v1_router
from lifeflow_auth.config import Settings, SigningConfig, get_settings
from lifeflow_auth.database import close_db, init_db
from lifeflow_auth.exceptions import AuthError
from lifeflow_auth.kernel.identity.jwt import JWTManager
from lifeflow_auth.logging_config import configure_logging, get_logger
from lifeflow_auth.schemas.common import HealthResponse
from lifeflow_auth.services.email_service import build_email_sink
from lifeflow_auth.services.otp_service import TotpOtpService

logger = get_logger(__name__)


def build_app_state(app: FastAPI, settings: Settings) -> None:
    """
    Construct the process-wide collaborators.

    Raises:
        MissingSigningKey: No signing secret configured; startup must abort
    """
    signing = SigningConfig.from_settings(settings)
    email_sink = build_email_sink(settings)
    app.state.settings = settings
    app.state.jwt_manager = JWTManager(signing)
    app.state.email_sink = email_sink
    app.state.otp_service = TotpOtpService(
        email_sink,
        interval_seconds=settings.otp_interval_seconds,
        digits=settings.otp_digits,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan handler.

    Runs startup and shutdown tasks.
    """
    settings: Settings = app.state.settings
    configure_logging(
        log_level=settings.log_level,
        environment=settings.environment,
        debug=settings.debug,
    )

    # Startup
    logger.info("Starting %s v%s", settings.project_name, settings.version)
    build_app_state(app, settings)
    await init_db()
    logger.info("Database initialized")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await close_db()
    logger.info("Database connections closed")


def _error_response(request: Request, status_code: int, content: dict) -> JSONResponse:
    headers = {}
    req_id = getattr(request.state, "request_id", None)
    if req_id:
        headers["X-Request-ID"] = req_id
        content["request_id"] = req_id
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.project_name,
        description="Issues, refreshes and revokes bearer credentials for LifeFlow clients.",
        version=settings.version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    app.state.settings = settings

    # Last added = outermost
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        """Map each error kind to its status; messages never carry causes."""
        if exc.status_code >= 500:
            logger.error("Request failed: %s", exc.code)
        return _error_response(
            request,
            exc.status_code,
            {"detail": exc.message, "code": exc.code},
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        response = _error_response(request, exc.status_code, {"detail": exc.detail})
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors."""
        errors = [
            {
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            }
            for error in exc.errors()
        ]
        return _error_response(
            request,
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            {"detail": "Validation error", "errors": errors},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions without leaking their cause."""
        logger.exception("Unhandled exception: %s", type(exc).__name__)
        return _error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            {"detail": "Internal server error"},
        )

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check():
        """Check application health."""
        return HealthResponse(status="ok", version=settings.version)

    app.include_router(api_v1_router, prefix=settings.api_v1_prefix)
    return app


app = create_app()


# Main entry point for development
if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(
        "lifeflow_auth.main:app",
        host="0.0.0.0",
        port=8000,
        reload=_settings.debug,
    )
