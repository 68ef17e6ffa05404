"""
FastAPI application entry point for the user directory.
Local command layer over the encrypted user store and the chat integration.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import structlog
import uvicorn

from .core.config import settings
from .core.database import init_db, close_db_connections, DatabaseHealthCheck
from .core.exceptions import ChatError, CryptoError, StorageError
from .core.encryption import KeyProvider
from .api.users import router as users_router
from .api.chat import router as chat_router
from .container.container import get_container, initialize_container, cleanup_container


def configure_logging(debug: bool = settings.DEBUG, level: str = settings.LOG_LEVEL) -> None:
    """Configure structured logging."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        logger_factory=structlog.WriteLoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.
    Key material lives from startup to shutdown and is dropped on exit.
    """
    logger.info("Starting user directory", version=settings.VERSION, environment=settings.ENVIRONMENT)

    container = await initialize_container()
    try:
        await init_db(container.engine)
        yield
    finally:
        logger.info("Shutting down user directory")
        engine = container.engine
        await cleanup_container()
        await close_db_connections(engine)
        logger.info("User directory shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    description="Local user directory with email encrypted at rest",
    version=settings.VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
    lifespan=lifespan
)

app.include_router(users_router, prefix=settings.API_V1_STR)
app.include_router(chat_router, prefix=settings.API_V1_STR)


# Custom exception handlers
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors."""
    logger.warning("Validation error", error_count=len(exc.errors()), path=request.url.path)

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Validation error",
            "errors": [
                {"loc": list(error.get("loc", [])), "msg": error.get("msg")}
                for error in exc.errors()
            ],
            "error_code": "VALIDATION_ERROR"
        }
    )


@app.exception_handler(CryptoError)
async def crypto_exception_handler(request: Request, exc: CryptoError):
    """Encryption failures are fatal to the request and never retried."""
    logger.error(
        "Encryption error",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        cause=type(exc.__cause__).__name__ if exc.__cause__ else None
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Stored data could not be encrypted or decrypted - check logs",
            "error_code": exc.error_code
        }
    )


@app.exception_handler(StorageError)
async def storage_exception_handler(request: Request, exc: StorageError):
    logger.error("Storage error", path=request.url.path, method=request.method, error=str(exc))

    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "detail": "The user database is unavailable - check logs",
            "error_code": exc.error_code
        }
    )


@app.exception_handler(ChatError)
async def chat_exception_handler(request: Request, exc: ChatError):
    logger.error("Chat error", path=request.url.path, error=str(exc))

    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={
            "detail": "The chat service failed - check logs",
            "error_code": exc.error_code
        }
    )


@app.get("/health")
async def health_check() -> JSONResponse:
    """Database connectivity and codec readiness."""
    container = get_container()
    database_ok = await DatabaseHealthCheck.check_connection(container.session_factory)

    try:
        codec_ok = container.get(KeyProvider).is_initialized
    except ValueError:
        codec_ok = False

    healthy = database_ok and codec_ok
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if healthy else "unhealthy",
            "database": database_ok,
            "encryption": codec_ok,
            "version": settings.VERSION
        }
    )


def run_dev():
    """Run development server."""
    uvicorn.run(
        "user_directory.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        log_level="debug" if settings.DEBUG else "info"
    )


def run_prod():
    """Run production server."""
    uvicorn.run(
        "user_directory.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=False,
        log_level="info",
        workers=1,  # Single process: key material and SQLite are process-local
        access_log=False  # Use structured logging instead
    )


def run():
    """Console entry point."""
    if settings.DEBUG:
        run_dev()
    else:
        run_prod()


if __name__ == "__main__":
    run()
