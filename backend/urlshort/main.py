import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import links
from .config import Settings, get_settings
from .core.exceptions import (
    ConflictError,
    FormatError,
    NotFoundError,
    QRCodeError,
    StorageError,
    ValidationError,
)
from .database import create_db_engine
from .logging_config import setup_logging
from .services.click_tracker import ClickTracker, CompletionCallback
from .services.url_store import UrlStore


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": message})


def _register_exception_handlers(app: FastAPI, logger: logging.Logger) -> None:
    """Map domain errors to HTTP responses"""

    @app.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError):
        logger.warning("Invalid URL", extra={"path": request.url.path, "error": str(exc)})
        return _error_response(400, str(exc))

    @app.exception_handler(FormatError)
    async def format_handler(request: Request, exc: FormatError):
        return _error_response(400, str(exc))

    @app.exception_handler(RequestValidationError)
    async def request_body_handler(request: Request, exc: RequestValidationError):
        logger.warning("Invalid request body", extra={"path": request.url.path})
        return _error_response(400, "Invalid request body")

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        logger.warning("Short code not found", extra={"path": request.url.path})
        return _error_response(404, "Short code not found")

    @app.exception_handler(ConflictError)
    async def conflict_handler(request: Request, exc: ConflictError):
        logger.warning("Write conflict", extra={"path": request.url.path, "error": str(exc)})
        return _error_response(409, "Conflicting request, please retry")

    @app.exception_handler(StorageError)
    async def storage_handler(request: Request, exc: StorageError):
        logger.error("Storage failure", extra={"path": request.url.path, "error": str(exc)})
        return _error_response(500, "Internal server error")

    @app.exception_handler(QRCodeError)
    async def qr_handler(request: Request, exc: QRCodeError):
        logger.error("QR code failure", extra={"path": request.url.path, "error": str(exc)})
        return _error_response(500, "Failed to generate QR code")


def create_app(
    settings: Optional[Settings] = None,
    on_click_complete: Optional[CompletionCallback] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Explicit settings; loaded from the environment when omitted
        on_click_complete: Called after each background click is recorded
    """
    settings = settings or get_settings()
    logger = logging.getLogger("urlshort")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = create_db_engine(settings.DATABASE_URL)
        store = UrlStore(engine, logger=logger.getChild("store"))
        # Startup fails here if the database is unusable
        try:
            store.init_schema()
        except StorageError:
            logger.error("Failed to initialize database", extra={"database_url": settings.DATABASE_URL})
            engine.dispose()
            raise
        logger.info("Database connection established")

        tracker = ClickTracker(
            store,
            logger=logger.getChild("clicks"),
            max_workers=settings.CLICK_WORKERS,
            max_pending=settings.CLICK_QUEUE_SIZE,
            on_complete=on_click_complete
        )

        app.state.store = store
        app.state.tracker = tracker
        logger.info("Starting URL shortener", extra={"version": settings.VERSION})
        try:
            yield
        finally:
            tracker.shutdown(wait=True)
            engine.dispose()
            logger.info("Shutdown completed")

    app = FastAPI(
        title="URL Shortener",
        description="Short, non-sequential links with click tracking and QR codes",
        version=settings.VERSION,
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.logger = logger

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app, logger)

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        return {
            "status": "ok",
            "version": settings.VERSION,
            "buildTime": settings.BUILD_TIME,
            "commit": settings.COMMIT
        }

    # Redirect route is last in the router so it does not shadow the others
    app.include_router(links.router, tags=["links"])

    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.PORT)
