"""Login orchestration: authorization code -> resolved session.

Runs after the CSRF state has been validated. Each step either succeeds or
raises an AuthenticationError subclass; the caller maps any failure to a
single ``callback_failed`` outcome and never retries.
"""

import logging
import time

from guildgate.domain.models import AuthenticatedUser, GuildConfiguration, Session
from guildgate.domain.permissions import PermissionResolution, resolve_permissions
from guildgate.infra.guild_config import GuildConfigStore, GuildConfigStoreError
from guildgate.security.auth import ProviderError
from guildgate.security.discord import DiscordOAuthClient

logger = logging.getLogger(__name__)


async def fetch_member_roles(
    client: DiscordOAuthClient, access_token: str, guild_id: str | None
) -> list[str]:
    """Return the user's role ids in the guild, or [] for non-members.

    Membership lookup failures degrade to "not a member" so that a flaky
    lookup lowers the level instead of failing the whole login.
    """
    if not guild_id:
        return []
    try:
        member = await client.fetch_guild_member(access_token, guild_id)
    except ProviderError as e:
        logger.warning(
            "Guild membership lookup failed, treating as non-member",
            extra={"guild_id": guild_id, "status_code": e.status_code},
        )
        return []
    return list(member.roles) if member is not None else []


async def read_guild_config(store: GuildConfigStore) -> GuildConfiguration | None:
    """Read the configuration, mapping store failures to None (resolves to VIEWER)."""
    try:
        return await store.read()
    except GuildConfigStoreError as e:
        logger.warning("Guild configuration unavailable at login", extra={"error": str(e)})
        return None


async def complete_login(
    client: DiscordOAuthClient,
    store: GuildConfigStore,
    code: str,
    redirect_uri: str,
    guild_id: str | None,
) -> tuple[Session, PermissionResolution]:
    """Exchange the code, fetch identity, and resolve permissions.

    Args:
        client: Discord client
        store: Guild configuration store
        code: Authorization code from the callback
        redirect_uri: Redirect URI used for the consent request
        guild_id: Configured guild id (None when not configured)

    Returns:
        Tuple of (new session, resolution that produced its level)

    Raises:
        ConfigurationError: If OAuth credentials are missing
        ProviderError: If the code exchange or profile fetch fails
    """
    tokens = await client.exchange_code(code, redirect_uri)
    profile = await client.fetch_profile(tokens.access_token)
    roles = await fetch_member_roles(client, tokens.access_token, guild_id)
    config = await read_guild_config(store)

    resolution = resolve_permissions(profile.id, roles, config)

    user = AuthenticatedUser(
        id=profile.id,
        discord_username=profile.username,
        display_name=profile.display_name,
        avatar_url=profile.avatar_url,
        permission_level=resolution.level,
        roles=roles,
    )
    session = Session(
        user=user,
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_at=int(time.time() * 1000) + tokens.expires_in * 1000,
    )

    logger.info(
        "User logged in",
        extra={
            "user_sub": user.id,
            "permission_level": resolution.level.name,
            "resolution_source": resolution.source,
        },
    )
    return session, resolution
