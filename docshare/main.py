"""
FastAPI Application Entry Point
Application factory with routes, middleware and exception handlers
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from docshare.api.routes import auth, documents
from docshare.backend import Backend
from docshare.core.config import Settings, get_settings
from docshare.core.exceptions import AppException
from docshare.core.logging import get_logger, setup_logging
from docshare.models.common import ErrorDetail, ErrorResponse, HealthResponse

logger = get_logger(__name__)


def _error_response(status_code: int, code: str, message: str, details=None, timestamp=None) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, details=details, timestamp=timestamp))
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


# Documented error envelopes for the routers
ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse},
    status.HTTP_403_FORBIDDEN: {"model": ErrorResponse},
    status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
}


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        """Handle application-specific exceptions"""
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
        return _error_response(exc.status_code, exc.code, exc.message, exc.details, exc.timestamp)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Handle HTTP exceptions (unknown routes, wrong methods)"""
        return _error_response(
            exc.status_code,
            str(exc.detail).lower().replace(" ", "_"),
            str(exc.detail),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Handle validation errors"""
        errors = [
            {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
            for error in exc.errors()
        ]
        return _error_response(
            status.HTTP_400_BAD_REQUEST,
            "validation_error",
            "Invalid request parameters",
            {"errors": errors},
        )


def create_app(settings: Optional[Settings] = None, backend: Optional[Backend] = None) -> FastAPI:
    """
    Build the application

    Args:
        settings: Explicit settings; defaults to the cached environment settings
        backend: Prebuilt backend; when omitted one is built and started on startup
    """
    settings = settings or get_settings()
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator:
        """Application lifespan management"""
        logger.info(f"Starting {settings.APP_NAME}...")
        logger.info(f"Environment: {settings.ENVIRONMENT}")

        owned = getattr(app.state, "backend", None) is None
        if owned:
            app.state.backend = Backend.from_settings(settings)
            await app.state.backend.startup()

        yield

        logger.info("Shutting down...")
        if owned:
            await app.state.backend.shutdown()
        logger.info("Shutdown complete")

    app = FastAPI(
        title=settings.APP_NAME,
        description="Document storage and sharing service",
        version=settings.APP_VERSION,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    if backend is not None:
        app.state.backend = backend

    # CORS Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # GZip Middleware
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    register_exception_handlers(app)

    app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"], responses=ERROR_RESPONSES)
    app.include_router(documents.router, prefix="/api/documents", tags=["Documents"], responses=ERROR_RESPONSES)

    @app.get("/api/health", response_model=HealthResponse, tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint"""
        services = await request.app.state.backend.health()
        healthy = all(state == "healthy" for state in services.values())
        return HealthResponse(
            status="ok" if healthy else "degraded",
            message="Server is running",
            version=settings.APP_VERSION,
            services=services,
        )

    return app


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(
        "docshare.main:create_app",
        factory=True,
        host=_settings.HOST,
        port=_settings.PORT,
        reload=_settings.DEBUG,
        log_level="info",
    )
