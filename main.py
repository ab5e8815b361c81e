"""Campus Assistant - knowledge-grounded university chatbot."""

import asyncio
import contextlib
import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import admin_router, router
from app.api.schemas import RateLimitResponse
from app.config import get_settings
from app.core.exception import RateLimitExceeded
from app.db import close_db, init_db
from app.dependencies import get_llm_provider, get_rate_limiter


def _setup_logging(debug: bool = False) -> None:
    """Configure application logging."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = get_settings()
    _setup_logging(settings.debug)

    provider = get_llm_provider()
    limiter = get_rate_limiter()

    logger.info("Starting %s v%s", settings.app_name, settings.app_version)

    await init_db()
    logger.info("Database initialized")
    logger.info("Environment: %s", settings.env)
    logger.info("LLM Provider: %s (%s)", provider.provider_name, provider.model_name)
    if not provider.is_configured:
        logger.warning("OPENAI_API_KEY is not set; chat replies will use the fallback")
    logger.info(
        "Chat rate limit: %d messages per %ds, moderation %s (fail %s)",
        settings.chat_rate_limit,
        settings.chat_rate_window,
        "on" if settings.moderation_enabled else "off",
        settings.moderation_failure_policy,
    )

    sweeper = asyncio.create_task(limiter.run_sweeper(settings.rate_limit_sweep_interval))

    yield

    logger.info("Shutting down...")

    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper
    logger.debug("Rate limit sweeper stopped")

    await close_db()
    logger.info("Shutdown complete")


settings = get_settings()

allowed_origins = ["*"] if settings.is_development else settings.cors_origins

app = FastAPI(
    title=settings.app_name,
    description=f"AI assistant for {settings.institution_name} grounded in live site content",
    version=settings.app_version,
    debug=settings.debug,
    lifespan=lifespan,
)

# CORS middleware for the chat widget
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=not settings.is_development,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization", "X-Admin-Token"],
    expose_headers=["Retry-After"],
)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Reject over-limit chat messages with the wait time."""
    body = RateLimitResponse(message=str(exc), retry_after=exc.retry_after)
    return JSONResponse(
        status_code=429,
        content=body.model_dump(by_alias=True),
        headers={"Retry-After": str(exc.retry_after)},
    )


# Include API routes
app.include_router(router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
    )
