"""Session resolution and FastAPI dependencies.

Every request carrying a session cookie goes through ``resolve_session_context``:

    no cookie            -> anonymous
    decode fails         -> anonymous, clear cookie ("invalid_session")
    session expired      -> anonymous, clear cookie ("session_expired")
    config read fails    -> authenticated with the cached level
    config read succeeds -> authenticated with a freshly resolved level

The result is an explicit ``SessionContext`` value; nothing is attached to
ambient request state.
"""

import logging
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, Response, status

from guildgate.config import Settings
from guildgate.domain.models import AuthenticatedUser, GuildConfiguration, PermissionLevel, Session
from guildgate.domain.permissions import has_permission, reresolve_user
from guildgate.infra.guild_config import GuildConfigStore, GuildConfigStoreError
from guildgate.infra.observability import (
    record_auth_check,
    record_authz_check,
    record_guild_config_read_failure,
    record_permission_resolution,
    record_session_rejection,
)
from guildgate.security.auth import SessionDecodeError, SessionExpiredError
from guildgate.security.discord import DiscordOAuthClient
from guildgate.security.session_codec import SessionCodec

logger = logging.getLogger(__name__)

REASON_INVALID_SESSION = "invalid_session"
REASON_SESSION_EXPIRED = "session_expired"

REASON_MESSAGES = {
    REASON_INVALID_SESSION: "Invalid session",
    REASON_SESSION_EXPIRED: "Session expired",
}


@dataclass(frozen=True)
class SessionContext:
    """Per-request authentication state.

    Attributes:
        session: Decoded session (None when anonymous)
        user: Re-resolved user (None when anonymous)
        clear_cookie: The presented cookie must be deleted
        reason: Why a presented cookie was rejected, if it was
        config: Configuration snapshot used for resolution
        config_unavailable: The store read failed and the cached level was kept
    """

    session: Session | None = None
    user: AuthenticatedUser | None = None
    clear_cookie: bool = False
    reason: str | None = None
    config: GuildConfiguration | None = None
    config_unavailable: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def error_message(self) -> str | None:
        return REASON_MESSAGES.get(self.reason) if self.reason else None


async def resolve_session_context(
    cookie_value: str | None,
    codec: SessionCodec,
    store: GuildConfigStore,
) -> SessionContext:
    """Decode the session cookie and re-resolve permissions against live config.

    Never raises for expected failures: bad cookies become anonymous contexts
    and store failures fall back to the session's cached level.
    """
    if not cookie_value:
        return SessionContext()

    try:
        session = codec.decode(cookie_value)
    except SessionExpiredError:
        logger.info("Rejected session cookie past max age", extra={"reason": REASON_SESSION_EXPIRED})
        record_session_rejection(REASON_SESSION_EXPIRED)
        record_auth_check(success=False)
        return SessionContext(clear_cookie=True, reason=REASON_SESSION_EXPIRED)
    except SessionDecodeError as e:
        logger.info("Rejected session cookie", extra={"reason": REASON_INVALID_SESSION})
        logger.debug("Session decode failure detail", extra={"error": str(e)})
        record_session_rejection(REASON_INVALID_SESSION)
        record_auth_check(success=False)
        return SessionContext(clear_cookie=True, reason=REASON_INVALID_SESSION)

    if codec.is_expired(session):
        logger.info(
            "Rejected expired session",
            extra={"reason": REASON_SESSION_EXPIRED, "user_sub": session.user.id},
        )
        record_session_rejection(REASON_SESSION_EXPIRED)
        record_auth_check(success=False)
        return SessionContext(clear_cookie=True, reason=REASON_SESSION_EXPIRED)

    record_auth_check(success=True)

    try:
        config = await store.read()
    except GuildConfigStoreError as e:
        logger.warning(
            "Guild configuration unavailable, using cached permission level",
            extra={
                "user_sub": session.user.id,
                "permission_level": session.user.permission_level.name,
                "error": str(e),
            },
        )
        record_guild_config_read_failure()
        return SessionContext(session=session, user=session.user, config_unavailable=True)

    user, resolution = reresolve_user(session.user, config)
    record_permission_resolution(resolution.level.name, resolution.source)
    return SessionContext(session=session, user=user, config=config)


# ========================================
# Cookie helpers
# ========================================


def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.session_max_age_seconds,
        httponly=True,
        secure=settings.secure_cookies,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        settings.session_cookie_name,
        path="/",
        httponly=True,
        secure=settings.secure_cookies,
        samesite="lax",
    )


def set_state_cookie(response: Response, state: str, settings: Settings) -> None:
    response.set_cookie(
        settings.oauth_state_cookie_name,
        state,
        max_age=settings.oauth_state_max_age_seconds,
        httponly=True,
        secure=settings.secure_cookies,
        samesite="lax",
        path="/",
    )


def clear_state_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        settings.oauth_state_cookie_name,
        path="/",
        httponly=True,
        secure=settings.secure_cookies,
        samesite="lax",
    )


def clear_session_cookie_headers(settings: Settings) -> dict[str, str]:
    """Set-Cookie header that deletes the session, for use on HTTPException."""
    response = Response()
    clear_session_cookie(response, settings)
    return {"set-cookie": response.headers["set-cookie"]}


# ========================================
# FastAPI dependencies
# ========================================


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_session_codec(request: Request) -> SessionCodec:
    return request.app.state.session_codec


def get_guild_config_store(request: Request) -> GuildConfigStore:
    return request.app.state.guild_config_store


def get_discord_client(request: Request) -> DiscordOAuthClient:
    return request.app.state.discord_client


async def get_session_context(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    codec: SessionCodec = Depends(get_session_codec),
    store: GuildConfigStore = Depends(get_guild_config_store),
) -> SessionContext:
    """Resolve the session for the current request."""
    cookie_value = request.cookies.get(settings.session_cookie_name)
    return await resolve_session_context(cookie_value, codec, store)


async def require_session(
    context: SessionContext = Depends(get_session_context),
    settings: Settings = Depends(get_app_settings),
) -> SessionContext:
    """Require an authenticated session.

    Raises:
        HTTPException: 401 if the request is anonymous
    """
    if not context.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers=clear_session_cookie_headers(settings) if context.clear_cookie else None,
        )
    return context


async def require_user(context: SessionContext = Depends(require_session)) -> AuthenticatedUser:
    return context.user  # type: ignore[return-value]


def require_permission(required: PermissionLevel):
    """Build a dependency that requires at least ``required`` on the re-resolved user.

    Example:
        @router.put("/role-mappings")
        async def update(user: AuthenticatedUser = Depends(require_permission(PermissionLevel.ADMIN))):
            ...
    """

    async def dependency(user: AuthenticatedUser = Depends(require_user)) -> AuthenticatedUser:
        allowed = has_permission(user, required)
        record_authz_check(required.name, allowed)
        if not allowed:
            logger.warning(
                "Permission denied",
                extra={
                    "user_sub": user.id,
                    "permission_level": user.permission_level.name,
                    "required_level": required.name,
                },
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires {required.label} permission or higher",
            )
        return user

    return dependency
