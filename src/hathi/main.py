"""
Hathi Backend Application

FastAPI application entrypoint with async lifespan management.
Handles the startup database check, maps store errors to HTTP responses
and disposes the engine on shutdown.

Start locally:
    uvicorn hathi.main:app --host 0.0.0.0 --port 8000 --reload
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from hathi.api.v1.contexts import router as contexts_router
from hathi.api.v1.notes import router as notes_router
from hathi.core.config import settings
from hathi.core.database import dispose_engine, get_engine
from hathi.core.exceptions import ErrorCode, HathiError
from hathi.core.logging import setup_logging

# Initialize logging before any log statements
setup_logging()
logger = logging.getLogger(__name__)

ERROR_STATUS: dict[ErrorCode, int] = {
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.CONTEXT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.NO_UPDATE_FIELDS: 422,
    ErrorCode.VALIDATION_FAILED: 422,
    ErrorCode.DIMENSION_MISMATCH: 422,
    ErrorCode.EMBEDDING_REQUIRED: 422,
    ErrorCode.CREATE_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.STORE_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


async def wait_for_db(retries: int = 10, delay: int = 1) -> bool:
    """
    Wait for the database to become available.

    Useful in containerized environments where the database may start
    after the application. Implements retry logic with linear delay.

    Args:
        retries: Maximum connection attempts.
        delay: Seconds between attempts.

    Returns:
        True if connection established, False if all retries exhausted.
    """
    engine = get_engine()
    for i in range(retries):
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
                logger.info("Database connection established")
                return True
        except Exception as e:
            logger.warning(f"Waiting for database ({i + 1}/{retries})... Error: {e}")
            await asyncio.sleep(delay)

    return False


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
        - Validates database connectivity (required, blocks startup on failure)
        - Warns when the agent API key is not configured

    Shutdown:
        - Disposes the database engine
    """
    logger.info("Starting Hathi...")
    logger.info(f"Log Level: {settings.LOG_LEVEL}")

    if not await wait_for_db():
        logger.critical("Could not connect to the database. Shutting down.")
        raise RuntimeError("Database connection failed")

    if not settings.HATHI_API_KEY:
        logger.warning("HATHI_API_KEY not set - agent API endpoints will answer 503")

    yield  # Application runs here

    await dispose_engine()
    logger.info("Shutting down Hathi...")


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

app.include_router(notes_router, prefix="/api/v1/notes", tags=["Notes"])
app.include_router(contexts_router, prefix="/api/v1/contexts", tags=["Contexts"])


@app.exception_handler(HathiError)
async def hathi_error_handler(request: Request, exc: HathiError) -> JSONResponse:
    """Translate store errors into ``{"error": message}`` responses."""
    status_code = ERROR_STATUS.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Same ``{"error": message}`` envelope for auth and routing errors."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.get("/health")
async def health_check():
    """
    Health check endpoint for load balancers and orchestrators.

    Returns:
        Static health status. Database connectivity is verified at startup.
    """
    return {
        "status": "ok",
        "service": "hathi",
        "environment": os.getenv("ENVIRONMENT", "unknown"),
        "db": "connected",
    }
