"""Middleware registration."""

from fastapi import FastAPI

from dailyplay.config import Settings
from dailyplay.middleware.cors import setup_cors
from dailyplay.middleware.error_handler import setup_error_handlers
from dailyplay.middleware.logging import setup_logging
from dailyplay.middleware.rate_limit import RateLimitMiddleware
from dailyplay.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register middleware. Starlette runs them last-added outermost.

    CORS goes on last so its headers reach 429 responses from the limiter.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    if settings.rate_limit_requests > 0:
        app.add_middleware(
            RateLimitMiddleware,
            requests_per_window=settings.rate_limit_requests,
            window_seconds=settings.rate_limit_window_seconds,
        )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
