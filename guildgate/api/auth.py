"""Discord login, identity, and logout routes.

Browser-facing endpoints redirect with ``/?error=<code>`` on failure; JSON
endpoints return ``{"error": ...}`` bodies.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse, RedirectResponse

from guildgate.api.dependencies import (
    SessionContext,
    clear_session_cookie,
    clear_state_cookie,
    get_app_settings,
    get_discord_client,
    get_guild_config_store,
    get_session_codec,
    get_session_context,
    require_user,
    set_session_cookie,
    set_state_cookie,
)
from guildgate.api.models import SetupRequest
from guildgate.config import Settings
from guildgate.domain.login import complete_login
from guildgate.domain.models import AuthenticatedUser, GuildConfiguration
from guildgate.domain.permissions import AccessDecision, check_guild_access
from guildgate.domain.role_mappings import initialize_guild_config, list_provider_roles
from guildgate.infra.guild_config import (
    GuildConfigAlreadyExistsError,
    GuildConfigStore,
    GuildConfigStoreError,
)
from guildgate.infra.observability import record_login_attempt
from guildgate.security.auth import (
    ERROR_AUTH_FAILED,
    ERROR_CALLBACK_FAILED,
    ERROR_DISCORD_DENIED,
    ERROR_INVALID_STATE,
    ERROR_NO_CODE,
    AuthenticationError,
    ConfigurationError,
    OAuthStateError,
    ProviderError,
)
from guildgate.security.discord import DiscordOAuthClient
from guildgate.security.oauth_state import issue_state, require_valid_state
from guildgate.security.session_codec import SessionCodec

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

CALLBACK_PATH = "/auth/callback"


def site_url(request: Request, settings: Settings, path: str) -> str:
    """Absolute URL on the public site, falling back to the request origin."""
    base = settings.site_base_url or str(request.base_url).rstrip("/")
    return f"{base}{path}"


def _error_redirect(request: Request, settings: Settings, error_code: str) -> RedirectResponse:
    record_login_attempt(error_code)
    response = RedirectResponse(
        site_url(request, settings, f"/?error={error_code}"),
        status_code=status.HTTP_302_FOUND,
    )
    clear_state_cookie(response, settings)
    return response


@router.get("/login")
async def login(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    client: DiscordOAuthClient = Depends(get_discord_client),
) -> RedirectResponse:
    """Issue a CSRF state cookie and redirect to Discord consent."""
    state = issue_state()
    try:
        url = client.build_authorization_url(site_url(request, settings, CALLBACK_PATH), state)
    except ConfigurationError as e:
        logger.error("Cannot start Discord login", extra={"error": str(e)})
        return _error_redirect(request, settings, ERROR_AUTH_FAILED)

    response = RedirectResponse(url, status_code=status.HTTP_302_FOUND)
    set_state_cookie(response, state, settings)
    return response


@router.get("/callback")
async def callback(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    settings: Settings = Depends(get_app_settings),
    client: DiscordOAuthClient = Depends(get_discord_client),
    codec: SessionCodec = Depends(get_session_codec),
    store: GuildConfigStore = Depends(get_guild_config_store),
) -> RedirectResponse:
    """Complete the OAuth flow and set the session cookie.

    Checks run in order (provider error, missing code, state mismatch) and
    the token exchange is only attempted once all of them pass.
    """
    if error:
        logger.warning("Discord OAuth returned an error", extra={"error": error})
        return _error_redirect(request, settings, ERROR_DISCORD_DENIED)

    if not code:
        return _error_redirect(request, settings, ERROR_NO_CODE)

    try:
        require_valid_state(state, request.cookies.get(settings.oauth_state_cookie_name))
    except OAuthStateError:
        return _error_redirect(request, settings, ERROR_INVALID_STATE)

    try:
        session, _ = await complete_login(
            client,
            store,
            code,
            site_url(request, settings, CALLBACK_PATH),
            settings.discord_guild_id,
        )
        token = codec.encode(session)
    except AuthenticationError as e:
        logger.error(
            "Discord callback failed",
            extra={"error": str(e), "error_code": ERROR_CALLBACK_FAILED},
        )
        return _error_redirect(request, settings, ERROR_CALLBACK_FAILED)

    record_login_attempt("success")
    response = RedirectResponse(site_url(request, settings, "/"), status_code=status.HTTP_302_FOUND)
    set_session_cookie(response, token, settings)
    clear_state_cookie(response, settings)
    return response


@router.get("/me")
async def me(
    context: SessionContext = Depends(get_session_context),
    settings: Settings = Depends(get_app_settings),
) -> JSONResponse:
    """Return the current user with a freshly resolved permission level."""
    body: dict[str, Any] = {
        "user": context.user.model_dump(mode="json", by_alias=True) if context.user else None
    }
    if context.error_message:
        body["error"] = context.error_message

    response = JSONResponse(body)
    if context.clear_cookie:
        clear_session_cookie(response, settings)
    return response


@router.get("/roles")
async def roles(
    context: SessionContext = Depends(get_session_context),
    settings: Settings = Depends(get_app_settings),
    client: DiscordOAuthClient = Depends(get_discord_client),
) -> JSONResponse:
    """List guild roles for the role-mapping UI.

    Without a bot token only the caller's own role ids are returned, flagged
    with ``needsBot``.
    """
    if context.session is None:
        response = JSONResponse(
            {"error": "Not authenticated"}, status_code=status.HTTP_401_UNAUTHORIZED
        )
        if context.clear_cookie:
            clear_session_cookie(response, settings)
        return response

    guild_id = settings.discord_guild_id
    if not guild_id:
        return JSONResponse(
            {"error": "Discord guild not configured"}, status_code=status.HTTP_400_BAD_REQUEST
        )

    try:
        result = await list_provider_roles(client, guild_id, context.session.access_token)
    except (ProviderError, ConfigurationError) as e:
        if client.has_bot_credential:
            logger.error("Failed to fetch guild roles", extra={"guild_id": guild_id, "error": str(e)})
            return JSONResponse(
                {"error": "Failed to fetch guild roles"},
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return JSONResponse(
            {"error": "Failed to fetch member roles", "needsBot": True},
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    return JSONResponse(result.to_response())


@router.post("/logout")
async def logout(settings: Settings = Depends(get_app_settings)) -> JSONResponse:
    """Clear the session cookie. Idempotent."""
    response = JSONResponse({"success": True})
    clear_session_cookie(response, settings)
    return response


@router.get("/logout")
async def logout_redirect(
    request: Request, settings: Settings = Depends(get_app_settings)
) -> RedirectResponse:
    response = RedirectResponse(site_url(request, settings, "/"), status_code=status.HTTP_302_FOUND)
    clear_session_cookie(response, settings)
    return response


@router.post("/setup")
async def setup(
    body: SetupRequest | None = None,
    user: AuthenticatedUser = Depends(require_user),
    settings: Settings = Depends(get_app_settings),
    store: GuildConfigStore = Depends(get_guild_config_store),
) -> dict[str, Any]:
    """Claim ownership of the guild configuration (first caller wins).

    Raises:
        HTTPException: 409 if already configured, 503 if the store is unavailable
    """
    try:
        config = await initialize_guild_config(
            store,
            owner_id=user.id,
            guild_id=settings.discord_guild_id,
            guild_name=body.guild_name if body else None,
        )
    except GuildConfigAlreadyExistsError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Guild is already configured",
        )
    except GuildConfigStoreError as e:
        logger.error("Guild setup failed", extra={"user_sub": user.id, "error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Guild configuration store unavailable",
        )

    return {"success": True, "config": config.model_dump(mode="json", by_alias=True)}


@router.get("/access")
async def access(
    context: SessionContext = Depends(get_session_context),
    store: GuildConfigStore = Depends(get_guild_config_store),
) -> dict[str, Any]:
    """Evaluate the guild membership gate for the current visitor.

    If the configuration cannot be read the gate is assumed to be on.
    """
    if context.config is not None:
        config = context.config
    else:
        try:
            config = await store.read()
        except GuildConfigStoreError:
            config = GuildConfiguration(require_discord_membership=True)

    decision = check_guild_access(context.user, config)
    return {"decision": decision.value, "allowed": decision is AccessDecision.ALLOWED}
