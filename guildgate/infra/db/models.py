"""SQLAlchemy ORM models for GuildGate.

Only the guild configuration lives in the database; sessions are client-held
cookies and never touch storage.

Design Principles:
- Domain models are kept separate (no SQLAlchemy in guildgate/domain/)
- All timestamps use timezone-aware datetime
- Role mappings are stored as a JSON list and replaced wholesale on write
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Single-row table: one deployment serves one guild
GUILD_CONFIG_ROW_ID = "guild"


class Base(DeclarativeBase):
    """Base class for all database models."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        comment="Record creation timestamp",
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
        comment="Record last update timestamp",
    )


class GuildConfigRecord(Base):
    """Guild ownership and Discord role mappings."""

    __tablename__ = "guild_config"

    id: Mapped[str] = mapped_column(
        String(32), primary_key=True, default=GUILD_CONFIG_ROW_ID, comment="Row identifier"
    )

    owner_id: Mapped[str | None] = mapped_column(
        String(32), nullable=True, comment="Discord user ID of the site owner"
    )

    guild_id: Mapped[str | None] = mapped_column(
        String(32), nullable=True, comment="Discord guild ID"
    )

    guild_name: Mapped[str | None] = mapped_column(
        String(255), nullable=True, comment="Guild display name"
    )

    role_mappings: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="List of {discordRoleId, discordRoleName, permissionLevel}",
    )

    require_discord_membership: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Gate the whole site behind guild membership",
    )
