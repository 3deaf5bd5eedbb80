"""FastAPI application entry point for the finance dashboard API."""

import logging
import sys

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from database import init_models
from errors import RateLimitExceededError, error_response, register_error_handlers
from services.poller import QuotePoller
from services.rate_limit import check_rate_limit

# Structured logging: JSON for production, human-readable for local
if settings.is_production:
    logging.basicConfig(
        level=logging.INFO,
        format='{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}',
        stream=sys.stdout,
    )
else:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(title="Painel Financeiro API", version="1.0.0")

    # Per-IP rate limit
    @app.middleware("http")
    async def rate_limit(request: Request, call_next):
        try:
            await check_rate_limit(request)
        except RateLimitExceededError as exc:
            logger.warning("Rate limit exceeded for %s on %s", request.client, request.url.path)
            return error_response(exc)
        return await call_next(request)

    # Security headers
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    # CORS (added last, so it is the outermost layer)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Centralized error handlers
    register_error_handlers(app)

    from routes.auth import router as auth_router
    from routes.favorites import router as favorites_router
    from routes.health import router as health_router
    from routes.history import router as history_router
    from routes.market import router as market_router
    from routes.quotes import router as quotes_router

    app.include_router(health_router)
    app.include_router(quotes_router)
    app.include_router(market_router)
    app.include_router(auth_router)
    app.include_router(favorites_router)
    app.include_router(history_router)

    poller = QuotePoller(settings.default_symbols, settings.poll_interval)

    @app.on_event("startup")
    async def _startup() -> None:
        missing = settings.validate()
        if missing:
            logger.warning("Missing env vars (some features may fail): %s", ", ".join(missing))
        await init_models()
        if settings.poll_interval > 0:
            poller.start()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        await poller.stop()

    return app


app = create_app()
