"""Guild configuration storage backends.

The authorization layer only consumes two operations from the store:
``read()`` on every permission decision and ``write(partial)`` from the
setup and role-mapping administration flows. Writes are last-writer-wins.

Example:
    store = create_guild_config_store(settings)
    await store.init()

    config = await store.read()
    await store.write({"role_mappings": [...]})

    await store.close()
"""

import logging
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from guildgate.config import Settings
from guildgate.domain.models import GuildConfiguration
from guildgate.infra.db.models import GUILD_CONFIG_ROW_ID, GuildConfigRecord
from guildgate.infra.db.session import DatabaseSessionManager

logger = logging.getLogger(__name__)

# Fields a partial write may touch; anything else is rejected
WRITABLE_FIELDS = frozenset(
    {"owner_id", "guild_id", "guild_name", "role_mappings", "require_discord_membership"}
)


class GuildConfigStoreError(Exception):
    """Base exception for guild configuration store errors."""


class GuildConfigAlreadyExistsError(GuildConfigStoreError):
    """Raised when setup is attempted on an already-owned configuration."""


def _merge(current: GuildConfiguration | None, partial: dict[str, Any]) -> GuildConfiguration:
    unknown = set(partial) - WRITABLE_FIELDS
    if unknown:
        raise GuildConfigStoreError(f"Unknown configuration fields: {sorted(unknown)}")

    data = current.model_dump() if current is not None else {}
    data.update(partial)
    data["updated_at"] = datetime.now(UTC)
    try:
        return GuildConfiguration.model_validate(data)
    except ValidationError as e:
        raise GuildConfigStoreError(f"Invalid guild configuration: {e.error_count()} errors") from e


class GuildConfigStore(ABC):
    """Abstract base class for guild configuration backends."""

    async def init(self) -> None:
        """Prepare the backend. No-op unless overridden."""

    async def close(self) -> None:
        """Release backend resources. No-op unless overridden."""

    @abstractmethod
    async def read(self) -> GuildConfiguration | None:
        """Read the current configuration.

        Returns:
            Configuration snapshot, or None if the guild was never set up

        Raises:
            GuildConfigStoreError: If the backend is unreachable
        """

    @abstractmethod
    async def write(self, partial: dict[str, Any]) -> GuildConfiguration:
        """Merge ``partial`` (snake_case keys) into the stored configuration.

        Returns:
            The configuration after the write

        Raises:
            GuildConfigStoreError: On unknown fields, invalid values, or backend failure
        """


class InMemoryGuildConfigStore(GuildConfigStore):
    """Process-local store for the lab environment and tests."""

    def __init__(self, initial: GuildConfiguration | None = None) -> None:
        self._config = initial

    async def read(self) -> GuildConfiguration | None:
        return self._config

    async def write(self, partial: dict[str, Any]) -> GuildConfiguration:
        self._config = _merge(self._config, partial)
        logger.debug("Guild configuration updated", extra={"fields": sorted(partial)})
        return self._config


class DatabaseGuildConfigStore(GuildConfigStore):
    """SQLAlchemy-backed store (SQLite or PostgreSQL)."""

    def __init__(self, session_manager: DatabaseSessionManager) -> None:
        self.session_manager = session_manager

    async def init(self) -> None:
        await self.session_manager.init()
        logger.info(
            "Guild configuration database initialized",
            extra={"sqlite": self.session_manager.is_sqlite},
        )

    async def close(self) -> None:
        await self.session_manager.close()

    async def read(self) -> GuildConfiguration | None:
        try:
            async with self.session_manager.session() as session:
                record = await session.get(GuildConfigRecord, GUILD_CONFIG_ROW_ID)
                if record is None:
                    return None
                return _to_domain(record)
        except (SQLAlchemyError, RuntimeError) as e:
            logger.error("Failed to read guild configuration", extra={"error": str(e)})
            raise GuildConfigStoreError("Guild configuration store unavailable") from e

    async def write(self, partial: dict[str, Any]) -> GuildConfiguration:
        try:
            async with self.session_manager.session() as session:
                record = await session.get(GuildConfigRecord, GUILD_CONFIG_ROW_ID)
                current = _to_domain(record) if record is not None else None
                merged = _merge(current, partial)

                if record is None:
                    record = GuildConfigRecord(id=GUILD_CONFIG_ROW_ID)
                    session.add(record)
                record.owner_id = merged.owner_id
                record.guild_id = merged.guild_id
                record.guild_name = merged.guild_name
                record.role_mappings = [
                    m.model_dump(mode="json", by_alias=True) for m in merged.role_mappings
                ]
                record.require_discord_membership = merged.require_discord_membership
        except (SQLAlchemyError, RuntimeError) as e:
            logger.error("Failed to write guild configuration", extra={"error": str(e)})
            raise GuildConfigStoreError("Guild configuration store unavailable") from e

        logger.info("Guild configuration updated", extra={"fields": sorted(partial)})
        return merged


def _to_domain(record: GuildConfigRecord) -> GuildConfiguration:
    try:
        return GuildConfiguration(
            owner_id=record.owner_id,
            guild_id=record.guild_id,
            guild_name=record.guild_name,
            role_mappings=record.role_mappings or [],
            require_discord_membership=record.require_discord_membership,
            updated_at=record.updated_at,
        )
    except ValidationError as e:
        raise GuildConfigStoreError("Stored guild configuration is corrupt") from e


def create_guild_config_store(settings: Settings) -> GuildConfigStore:
    """Build the backend selected by ``settings.guild_config_backend``."""
    if settings.guild_config_backend == "database":
        return DatabaseGuildConfigStore(
            DatabaseSessionManager(settings.database_url, echo=settings.database_echo)
        )
    return InMemoryGuildConfigStore()
