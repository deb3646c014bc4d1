"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from lichess_fetcher.api import games
from lichess_fetcher.config import config

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan hooks.

    Args:
        app: FastAPI application instance.

    Yields:
        None: Control is yielded back to FastAPI to run the app.
    """
    logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logger.info("Starting lichess game fetcher (origin=%s)", config.SITE_ORIGIN)
    yield
    logger.info("Shutting down lichess game fetcher")


app = FastAPI(
    title="lichess game fetcher",
    description="Renders public lichess game pages and extracts page, extension and DOM data as JSON",
    version="1.0.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def allow_any_origin(request: Request, call_next):
    """Attach the permissive CORS origin header to every response."""
    response = await call_next(request)
    response.headers["Access-Control-Allow-Origin"] = "*"
    return response


app.include_router(games.router)


@app.get("/")
def read_root():
    """Return service metadata.

    Returns:
        dict: Basic service information for smoke testing.
    """
    return {
        "message": "lichess game fetcher",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs",
    }


@app.get("/health")
def health_check():
    """Return a health probe response.

    Returns:
        dict: Status indicator for health checks.
    """
    return {"status": "healthy"}
