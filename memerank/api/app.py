"""FastAPI application setup and configuration.

Defines the FastAPI application with lifespan management for environment
validation, database initialization, the shared cache and queue
connections, and route registration.
"""

import sqlite3
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import redis
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from memerank.api.cache import ScoreCache, create_redis_client
from memerank.api.routes import admin, follows, interactions, recommend
from memerank.api.schemas import HealthResponse
from memerank.queue.redis_queue import RedisJobQueue, create_queue_client
from memerank.recommendation.assembler import RecommendationAssembler
from memerank.recommendation.invalidator import CacheInvalidator
from memerank.utils.config import config, settings
from memerank.utils.database import init_db
from memerank.utils.environment import (
    check_environment,
    database_uri,
    queue_url,
    sqlite_path,
)
from memerank.utils.exceptions import AppException, UpstreamError
from memerank.utils.logger import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifecycle: startup and shutdown.

    Validates the environment, initializes the database and opens one
    Redis connection for the cache and one for the queue. An unreachable
    queue or database aborts startup; an unreachable cache only degrades
    to recomputation.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application runtime.

    Raises:
        ConfigurationError: If the environment is invalid.
        UpstreamError: If the database or queue cannot be reached.
    """
    check_environment(settings)
    db_path = sqlite_path(database_uri(settings))
    try:
        init_db(db_path)
    except sqlite3.Error as e:
        raise UpstreamError("database", str(e)) from e

    cache_client = create_redis_client(settings.redis_url)
    queue_client = create_queue_client(queue_url(settings))
    try:
        queue = RedisJobQueue(queue_client)
        if not queue.ping():
            raise UpstreamError("queue", "ping failed")

        cache = ScoreCache(cache_client)
        if not cache.ping():
            logger.warning("Cache unreachable at startup, serving uncached results")

        app.state.db_path = db_path
        app.state.cache = cache
        app.state.queue = queue
        app.state.invalidator = CacheInvalidator(cache)
        app.state.assembler = RecommendationAssembler(db_path, cache)

        logger.info("Application started (%s)", settings.app_env)
        yield
    finally:
        cache_client.close()
        queue_client.close()
        logger.info("Application shutdown")


app = FastAPI(
    title="Meme Recommendation Service",
    version=config["app"]["version"],
    lifespan=lifespan,
)

app.include_router(recommend.router)
app.include_router(interactions.router)
app.include_router(follows.router)
app.include_router(admin.router)


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Render application errors as ``{success: false, error: {...}}``."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Check application health status.

    Returns:
        HealthResponse with cache and queue connectivity.
    """
    cache_stats = app.state.cache.stats()
    cache_ok = cache_stats["connected"]
    queue_ok = app.state.queue.ping()
    counts = None
    if queue_ok:
        try:
            counts = app.state.queue.counts()
        except redis.RedisError as e:
            logger.warning("Could not read queue counts: %s", e)
    return HealthResponse(
        status="healthy" if cache_ok and queue_ok else "degraded",
        cache_connected=cache_ok,
        cache_keys=cache_stats["keys"],
        queue_connected=queue_ok,
        queue=counts,
    )
