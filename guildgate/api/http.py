"""HTTP application factory for GuildGate.

Wires settings, the session codec, the guild configuration store, and the
Discord client onto ``app.state`` and mounts the auth and admin routers.
"""

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from guildgate import __version__
from guildgate.api import admin, auth
from guildgate.config import Settings
from guildgate.infra.guild_config import GuildConfigStore, create_guild_config_store
from guildgate.infra.observability import get_metrics_text
from guildgate.infra.observability.logging import set_correlation_id
from guildgate.security.discord import DiscordOAuthClient
from guildgate.security.session_codec import SessionCodec

logger = logging.getLogger(__name__)


def create_http_app(
    settings: Settings,
    store: GuildConfigStore | None = None,
    discord_client: DiscordOAuthClient | None = None,
) -> FastAPI:
    """Create FastAPI application.

    Args:
        settings: Application settings
        store: Guild configuration store (built from settings if omitted)
        discord_client: Discord client (built from settings if omitted)

    Returns:
        FastAPI application
    """
    guild_config_store = store or create_guild_config_store(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await guild_config_store.init()
        logger.info(
            "GuildGate started",
            extra={"environment": settings.environment, "guild_id": settings.discord_guild_id},
        )
        try:
            yield
        finally:
            await guild_config_store.close()

    app = FastAPI(
        title="GuildGate",
        description="Discord guild role based authorization",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.session_codec = SessionCodec(
        settings.session_secret or "", max_age_seconds=settings.session_max_age_seconds
    )
    app.state.guild_config_store = guild_config_store
    app.state.discord_client = discord_client or DiscordOAuthClient.from_settings(settings)

    if not settings.discord_oauth_configured:
        logger.warning("Discord OAuth credentials not configured, login will fail")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next: Any) -> Any:
        """Add correlation ID to request context."""
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
        set_correlation_id(correlation_id)

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    @app.get("/health")
    async def health_check() -> dict[str, Any]:
        return {
            "status": "healthy",
            "environment": settings.environment,
            "discord_configured": settings.discord_oauth_configured,
        }

    @app.get("/metrics")
    async def metrics() -> PlainTextResponse:
        """Prometheus metrics endpoint."""
        return PlainTextResponse(get_metrics_text())

    app.include_router(auth.router)
    app.include_router(admin.router)

    return app


__all__ = ["create_http_app"]
