"""Request/Response models for the auth API."""

from pydantic import Field

from guildgate.domain.models import (
    SUGGESTED_ROLE_MAPPINGS,
    CamelModel,
    PermissionLevel,
    RoleMapping,
)


class RoleMappingsUpdate(CamelModel):
    """Full replacement of the guild's role mappings."""

    role_mappings: list[RoleMapping] = Field(default_factory=list)


class SetupRequest(CamelModel):
    """Claim ownership of an unconfigured guild."""

    guild_name: str | None = Field(default=None, max_length=100)


class PermissionLevelInfo(CamelModel):
    value: PermissionLevel
    label: str
    description: str


class SuggestedMapping(CamelModel):
    role_name: str
    permission_level: PermissionLevel


class RoleMappingsResponse(CamelModel):
    role_mappings: list[RoleMapping]
    permission_levels: list[PermissionLevelInfo]
    suggested_mappings: list[SuggestedMapping]

    @classmethod
    def build(cls, role_mappings: list[RoleMapping]) -> "RoleMappingsResponse":
        return cls(
            role_mappings=role_mappings,
            permission_levels=[
                PermissionLevelInfo(value=level, label=level.label, description=level.description)
                for level in PermissionLevel
            ],
            suggested_mappings=[
                SuggestedMapping(role_name=name, permission_level=level)
                for name, level in SUGGESTED_ROLE_MAPPINGS
            ],
        )
