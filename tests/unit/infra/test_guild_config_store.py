"""Tests for guild configuration storage backends."""

import pytest

from guildgate.config import Settings
from guildgate.domain.models import PermissionLevel
from guildgate.infra.db.session import DatabaseSessionManager
from guildgate.infra.guild_config import (
    DatabaseGuildConfigStore,
    GuildConfigStoreError,
    InMemoryGuildConfigStore,
    create_guild_config_store,
)

MAPPINGS = [
    {"discord_role_id": "R1", "discord_role_name": "Officer", "permission_level": 3},
    {"discord_role_id": "R2", "discord_role_name": "Raider", "permission_level": 1},
]


class TestInMemoryGuildConfigStore:
    """Tests for InMemoryGuildConfigStore."""

    @pytest.mark.asyncio
    async def test_empty_store_reads_none(self):
        assert await InMemoryGuildConfigStore().read() is None

    @pytest.mark.asyncio
    async def test_partial_writes_merge(self):
        store = InMemoryGuildConfigStore()

        await store.write({"owner_id": "U1", "guild_id": "G1"})
        await store.write({"role_mappings": MAPPINGS})
        config = await store.read()

        assert config.owner_id == "U1"
        assert config.guild_id == "G1"
        assert [m.discord_role_id for m in config.role_mappings] == ["R1", "R2"]
        assert config.role_mappings[0].permission_level == PermissionLevel.ADMIN
        assert config.updated_at is not None

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self):
        store = InMemoryGuildConfigStore()

        with pytest.raises(GuildConfigStoreError):
            await store.write({"theme": "dark"})

    @pytest.mark.asyncio
    async def test_invalid_value_rejected(self):
        store = InMemoryGuildConfigStore()

        with pytest.raises(GuildConfigStoreError):
            await store.write({"role_mappings": [{"discord_role_id": "R1", "permission_level": 9}]})

        assert await store.read() is None


class TestDatabaseGuildConfigStore:
    """Tests for DatabaseGuildConfigStore on SQLite."""

    @pytest.fixture
    async def db_store(self, tmp_path):
        store = DatabaseGuildConfigStore(
            DatabaseSessionManager(f"sqlite+aiosqlite:///{tmp_path / 'guildgate.db'}")
        )
        await store.init()
        yield store
        await store.close()

    @pytest.mark.asyncio
    async def test_empty_database_reads_none(self, db_store):
        assert await db_store.read() is None

    @pytest.mark.asyncio
    async def test_write_then_read(self, db_store):
        await db_store.write({"owner_id": "U1", "guild_name": "Raid Night"})
        await db_store.write({"role_mappings": MAPPINGS, "require_discord_membership": True})

        config = await db_store.read()

        assert config.owner_id == "U1"
        assert config.guild_name == "Raid Night"
        assert config.require_discord_membership is True
        assert config.mapping_for("R1").permission_level == PermissionLevel.ADMIN
        assert config.mapping_for("R2").discord_role_name == "Raider"

    @pytest.mark.asyncio
    async def test_role_mappings_replaced_wholesale(self, db_store):
        await db_store.write({"role_mappings": MAPPINGS})
        await db_store.write({"role_mappings": MAPPINGS[1:]})

        config = await db_store.read()

        assert [m.discord_role_id for m in config.role_mappings] == ["R2"]

    @pytest.mark.asyncio
    async def test_uninitialized_store_raises_store_error(self, tmp_path):
        store = DatabaseGuildConfigStore(
            DatabaseSessionManager(f"sqlite+aiosqlite:///{tmp_path / 'never.db'}")
        )

        with pytest.raises(GuildConfigStoreError):
            await store.read()


def test_factory_selects_backend():
    memory = create_guild_config_store(Settings(session_secret="s"))
    database = create_guild_config_store(
        Settings(session_secret="s", guild_config_backend="database")
    )

    assert isinstance(memory, InMemoryGuildConfigStore)
    assert isinstance(database, DatabaseGuildConfigStore)
