"""
deskbot API

The HTTP surface is deliberately small: probes for the platform and one
trigger the external scheduler calls to drain the queue. All message
handling happens inside the dispatcher.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from deskbot.api.routes import health, queue
from deskbot.bootstrap import build_container, setup_logging
from deskbot.config import get_settings

settings = get_settings()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the container on startup and release its pools on shutdown."""
    setup_logging(settings.debug)
    logger.info(f"{settings.app_name} starting ({settings.app_env}, provider={settings.llm_provider})")
    health.set_start_time()

    container = await build_container(settings)

    # Production schemas come from migrations
    if settings.is_development:
        try:
            await container.db.create_all()
        except Exception as e:
            logger.warning(f"Could not create tables: {e}")

    app.state.container = container
    try:
        yield
    finally:
        await container.close()
        logger.info(f"{settings.app_name} stopped")


app = FastAPI(
    title="deskbot API",
    description="Queue processor and booking engine for small service businesses.",
    version="1.0.0",
    docs_url="/docs" if settings.is_development else None,
    redoc_url=None,
    openapi_url="/openapi.json" if settings.is_development else None,
    lifespan=lifespan,
)


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": str(exc) if settings.is_development else None,
        },
    )


@app.middleware("http")
async def log_request_timing(request: Request, call_next):
    """Debug-level timing for every request."""
    started = time.perf_counter()
    response = await call_next(request)
    if settings.debug:
        logger.debug(f"{request.method} {request.url.path} -> {response.status_code} in {time.perf_counter() - started:.3f}s")
    return response


app.include_router(health.router)
app.include_router(queue.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "deskbot.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level="debug" if settings.debug else "info",
    )
