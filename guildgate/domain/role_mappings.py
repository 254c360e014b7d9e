"""Role-mapping administration and guild setup.

These operations do not check privilege themselves: the HTTP layer gates
them on the caller's freshly re-resolved permission level.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from guildgate.domain.models import DiscordRole, GuildConfiguration, RoleMapping
from guildgate.infra.guild_config import (
    GuildConfigAlreadyExistsError,
    GuildConfigStore,
)
from guildgate.security.auth import ProviderError
from guildgate.security.discord import DiscordOAuthClient

logger = logging.getLogger(__name__)

NEEDS_BOT_MESSAGE = "Add a Discord bot to see all server roles"


@dataclass
class ProviderRoles:
    """Roles available for mapping.

    Attributes:
        roles: Full role objects (only with the bot credential)
        role_ids: The caller's own role ids (partial fallback)
        needs_bot: True when full enumeration was not possible
    """

    roles: list[DiscordRole] = field(default_factory=list)
    role_ids: list[str] = field(default_factory=list)
    needs_bot: bool = False

    def to_response(self) -> dict:
        if self.needs_bot:
            return {"roleIds": self.role_ids, "needsBot": True, "message": NEEDS_BOT_MESSAGE}
        return {"roles": [role.model_dump(by_alias=True) for role in self.roles]}


async def list_provider_roles(
    client: DiscordOAuthClient, guild_id: str, access_token: str
) -> ProviderRoles:
    """List guild roles for the mapping UI.

    With the bot credential, every guild role is returned. Without it, only
    the caller's own role ids can be seen and the result is flagged partial.

    Args:
        client: Discord client
        guild_id: Configured guild id
        access_token: Caller's OAuth access token (used for the fallback)

    Returns:
        ProviderRoles result

    Raises:
        ProviderError: If the Discord lookup fails, or the caller is not a
            guild member in the fallback path
    """
    if client.has_bot_credential:
        roles = await client.list_guild_roles(guild_id)
        return ProviderRoles(roles=roles)

    member = await client.fetch_guild_member(access_token, guild_id)
    if member is None:
        raise ProviderError("Caller is not a member of the guild", status_code=404)
    return ProviderRoles(role_ids=list(member.roles), needs_bot=True)


def collapse_role_mappings(mappings: Iterable[RoleMapping]) -> list[RoleMapping]:
    """Drop duplicate role ids, keeping the last submission for each.

    Order follows the first occurrence of each role id.
    """
    by_role: dict[str, RoleMapping] = {}
    for mapping in mappings:
        by_role[mapping.discord_role_id] = mapping
    return list(by_role.values())


async def save_role_mappings(
    store: GuildConfigStore, mappings: Iterable[RoleMapping]
) -> GuildConfiguration:
    """Replace the guild's role mappings.

    Raises:
        GuildConfigStoreError: If the store rejects the write
    """
    collapsed = collapse_role_mappings(mappings)
    config = await store.write(
        {"role_mappings": [m.model_dump() for m in collapsed]}
    )
    logger.info("Role mappings saved", extra={"mapping_count": len(collapsed)})
    return config


async def initialize_guild_config(
    store: GuildConfigStore,
    owner_id: str,
    guild_id: str | None = None,
    guild_name: str | None = None,
) -> GuildConfiguration:
    """Claim ownership of an unconfigured guild.

    Raises:
        GuildConfigAlreadyExistsError: If an owner is already recorded
        GuildConfigStoreError: If the store is unavailable
    """
    current = await store.read()
    if current is not None and current.owner_id:
        raise GuildConfigAlreadyExistsError("Guild configuration already has an owner")

    config = await store.write(
        {"owner_id": owner_id, "guild_id": guild_id, "guild_name": guild_name}
    )
    logger.info("Guild ownership claimed", extra={"user_sub": owner_id, "guild_id": guild_id})
    return config
