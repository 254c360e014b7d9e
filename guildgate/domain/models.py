"""Domain models for Discord-backed authorization.

Pure data: no I/O and no framework imports beyond pydantic. All models
serialize to camelCase on the wire (``by_alias=True``) and accept either
camelCase or snake_case on input.
"""

from datetime import UTC, datetime
from enum import IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class PermissionLevel(IntEnum):
    """Application permission tiers. Higher value means more privilege."""

    VIEWER = 0
    MEMBER = 1
    MODERATOR = 2
    ADMIN = 3
    SUPERADMIN = 4

    @property
    def label(self) -> str:
        return PERMISSION_LABELS[self]

    @property
    def description(self) -> str:
        return PERMISSION_DESCRIPTIONS[self]


PERMISSION_LABELS: dict[PermissionLevel, str] = {
    PermissionLevel.VIEWER: "Viewer",
    PermissionLevel.MEMBER: "Member",
    PermissionLevel.MODERATOR: "Moderator",
    PermissionLevel.ADMIN: "Admin",
    PermissionLevel.SUPERADMIN: "Owner",
}

PERMISSION_DESCRIPTIONS: dict[PermissionLevel, str] = {
    PermissionLevel.VIEWER: "Can view public content only",
    PermissionLevel.MEMBER: "Can sign up for raids and view full roster",
    PermissionLevel.MODERATOR: "Can manage class members and raid signups",
    PermissionLevel.ADMIN: "Can manage raids, roster, and most settings",
    PermissionLevel.SUPERADMIN: "Site owner with full control",
}

# Offered to administrators as a starting point when mapping roles by name
SUGGESTED_ROLE_MAPPINGS: list[tuple[str, PermissionLevel]] = [
    ("Guild Master", PermissionLevel.SUPERADMIN),
    ("Officer", PermissionLevel.ADMIN),
    ("Class Lead", PermissionLevel.MODERATOR),
    ("Raider", PermissionLevel.MEMBER),
]


class CamelModel(BaseModel):
    """Base model emitting camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _unique(values: list[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


class RoleMapping(CamelModel):
    """Administrator-configured association of a Discord role to a level."""

    discord_role_id: str = Field(..., min_length=1)
    discord_role_name: str = ""
    permission_level: PermissionLevel


class GuildConfiguration(CamelModel):
    """The slice of guild configuration the authorization layer consumes.

    Owned by the configuration-management side of the application; other
    metadata (theme, roster features) is ignored here.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    owner_id: str | None = None
    guild_id: str | None = None
    guild_name: str | None = None
    role_mappings: list[RoleMapping] = Field(default_factory=list)
    require_discord_membership: bool = False
    updated_at: datetime | None = None

    def mapping_for(self, role_id: str) -> RoleMapping | None:
        """Return the mapping for a role id, if any (last entry wins)."""
        found = None
        for mapping in self.role_mappings:
            if mapping.discord_role_id == role_id:
                found = mapping
        return found


class AuthenticatedUser(CamelModel):
    """Identity plus resolved authorization state.

    Frozen: permission changes produce a new instance via ``with_permission_level``.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(..., min_length=1)
    discord_username: str
    display_name: str
    avatar_url: str | None = None
    permission_level: PermissionLevel = PermissionLevel.VIEWER
    roles: list[str] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("roles")
    @classmethod
    def dedupe_roles(cls, v: list[str]) -> list[str]:
        return _unique(v)

    @property
    def is_guild_member(self) -> bool:
        return bool(self.roles)

    def with_permission_level(self, level: PermissionLevel) -> "AuthenticatedUser":
        """Return a copy carrying a freshly resolved level."""
        return self.model_copy(update={"permission_level": level, "last_updated": datetime.now(UTC)})


class Session(CamelModel):
    """Client-held session payload.

    ``user.permission_level`` is a cache from login time; request handlers
    re-resolve it against the live guild configuration.
    """

    user: AuthenticatedUser
    access_token: str = Field(..., min_length=1)
    refresh_token: str | None = None
    expires_at: int = Field(..., description="Unix epoch milliseconds")


# ========================================
# Discord API payloads
# ========================================


class DiscordModel(BaseModel):
    """Strict-enough decoding of Discord payloads: required fields must exist."""

    model_config = ConfigDict(extra="ignore")


class DiscordTokens(DiscordModel):
    access_token: str = Field(..., min_length=1)
    token_type: str = "Bearer"
    expires_in: int = Field(..., gt=0)
    refresh_token: str | None = None
    scope: str | None = None


class DiscordUser(DiscordModel):
    id: str = Field(..., min_length=1)
    username: str
    global_name: str | None = None
    avatar: str | None = None
    email: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_snowflake(cls, v: Any) -> Any:
        # Snowflakes arrive as strings but some fixtures use ints
        return str(v) if isinstance(v, int) else v

    @property
    def display_name(self) -> str:
        return self.global_name or self.username

    @property
    def avatar_url(self) -> str | None:
        if self.avatar:
            return f"https://cdn.discordapp.com/avatars/{self.id}/{self.avatar}.png"
        return None


class DiscordGuildMember(DiscordModel):
    roles: list[str]
    nick: str | None = None
    joined_at: datetime | None = None


class DiscordRole(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str
    name: str
    color: int = 0
    position: int = 0
