"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from dailyplay.cache import GameCache
from dailyplay.config import get_settings
from dailyplay.database import close_db, get_session, init_db
from dailyplay.game.router import router as game_router
from dailyplay.game.settings_store import load_config
from dailyplay.game.weekly_reset import check_and_perform_reset
from dailyplay.health.router import router as health_router
from dailyplay.middleware import setup_middleware
from dailyplay.redis_client import close_redis, get_redis, init_redis

logger = logging.getLogger(__name__)


async def startup_checks() -> None:
    """Fail fast without Redis, bootstrap settings and catch up a missed weekly reset."""
    cache = GameCache(get_redis())
    await cache.ping()

    async for db in get_session():
        config = await load_config(db, cache)
        if config.weekly_reset_enabled:
            logger.info("Weekly reset is enabled. Checking if reset is needed...")
            await check_and_perform_reset(db, cache)
        else:
            logger.info("Weekly reset is disabled.")


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)
    try:
        await startup_checks()
    except Exception:
        logger.critical("Startup checks failed", exc_info=True)
        await close_db()
        await close_redis()
        raise

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Daily Play API",
        description="Daily play quotas, login streaks, weekly leaderboards and referral plays",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(game_router)

    return app


app = create_app()
