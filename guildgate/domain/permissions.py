"""Permission resolution and access checks.

Resolution is a pure function of three inputs:
- the user's Discord id (fixed at login)
- the user's role ids in the configured guild
- a snapshot of the guild configuration (mutable by administrators)

Precedence: owner > role mapping > member default > viewer.

Key principles:
- Never fail open: a missing configuration resolves to VIEWER
- The resolved level is never read back from a cached value as truth
- Fallbacks only go down, or to a level that was previously granted
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from guildgate.domain.models import AuthenticatedUser, GuildConfiguration, PermissionLevel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PermissionResolution:
    """Outcome of a permission resolution.

    Attributes:
        level: Effective permission level
        roles: Role ids the user holds (empty for non-members)
        source: What decided the level (no_config/owner/non_member/member/role_mapping)
    """

    level: PermissionLevel
    roles: list[str] = field(default_factory=list)
    source: str = "member"


def resolve_permissions(
    user_id: str,
    member_roles: Iterable[str],
    config: GuildConfiguration | None,
) -> PermissionResolution:
    """Resolve a user's effective permission level.

    Args:
        user_id: Discord user id
        member_roles: Role ids the user holds in the guild (empty if not a member)
        config: Live guild configuration, or None if unavailable

    Returns:
        PermissionResolution with level and roles

    Example:
        resolution = resolve_permissions("123", ["r1"], config)
        if resolution.level >= PermissionLevel.ADMIN:
            ...
    """
    roles = list(dict.fromkeys(member_roles))

    if config is None:
        return PermissionResolution(PermissionLevel.VIEWER, [], source="no_config")

    if config.owner_id and user_id == config.owner_id:
        return PermissionResolution(PermissionLevel.SUPERADMIN, roles, source="owner")

    if not roles:
        return PermissionResolution(PermissionLevel.VIEWER, [], source="non_member")

    highest = PermissionLevel.MEMBER
    source = "member"
    for role_id in roles:
        mapping = config.mapping_for(role_id)
        if mapping is not None and mapping.permission_level > highest:
            highest = mapping.permission_level
            source = "role_mapping"

    return PermissionResolution(highest, roles, source=source)


def reresolve_user(
    user: AuthenticatedUser, config: GuildConfiguration | None
) -> tuple[AuthenticatedUser, PermissionResolution]:
    """Recompute a session user's level against a fresh configuration snapshot.

    The member role ids fetched at login are kept as-is; only the level changes.
    """
    resolution = resolve_permissions(user.id, user.roles, config)
    if resolution.level != user.permission_level:
        logger.info(
            "Permission level changed since login",
            extra={
                "user_sub": user.id,
                "previous_level": user.permission_level.name,
                "resolved_level": resolution.level.name,
            },
        )
    return user.with_permission_level(resolution.level), resolution


def has_permission(user: AuthenticatedUser | None, required: PermissionLevel) -> bool:
    """Check that a (resolved) user holds at least ``required``."""
    if user is None:
        return False
    return user.permission_level >= required


class AccessDecision(str, Enum):
    """Outcome of the guild membership gate."""

    ALLOWED = "allowed"
    LOGIN_REQUIRED = "login_required"
    MEMBERSHIP_REQUIRED = "membership_required"


def check_guild_access(
    user: AuthenticatedUser | None, config: GuildConfiguration | None
) -> AccessDecision:
    """Apply the ``require_discord_membership`` gate.

    Owners always pass. Users with no guild roles count as non-members.
    """
    if config is None or not config.require_discord_membership:
        return AccessDecision.ALLOWED
    if user is None:
        return AccessDecision.LOGIN_REQUIRED
    if config.owner_id and user.id == config.owner_id:
        return AccessDecision.ALLOWED
    if not user.is_guild_member:
        return AccessDecision.MEMBERSHIP_REQUIRED
    return AccessDecision.ALLOWED
