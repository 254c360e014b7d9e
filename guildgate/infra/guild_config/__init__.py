"""Guild configuration storage.

Pluggable backends for the externally owned guild configuration:
- In-memory backend for the lab environment and tests
- SQLAlchemy backend for persistent deployments
"""

from guildgate.infra.guild_config.store import (
    DatabaseGuildConfigStore,
    GuildConfigAlreadyExistsError,
    GuildConfigStore,
    GuildConfigStoreError,
    InMemoryGuildConfigStore,
    create_guild_config_store,
)

__all__ = [
    "GuildConfigStore",
    "InMemoryGuildConfigStore",
    "DatabaseGuildConfigStore",
    "GuildConfigStoreError",
    "GuildConfigAlreadyExistsError",
    "create_guild_config_store",
]
