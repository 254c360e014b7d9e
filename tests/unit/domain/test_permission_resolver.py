"""Tests for permission resolution and the guild membership gate."""

import pytest

from guildgate.domain.models import AuthenticatedUser, GuildConfiguration, PermissionLevel, RoleMapping
from guildgate.domain.permissions import (
    AccessDecision,
    check_guild_access,
    has_permission,
    reresolve_user,
    resolve_permissions,
)


def _config(owner_id: str | None = "U1", **mappings: PermissionLevel) -> GuildConfiguration:
    return GuildConfiguration(
        owner_id=owner_id,
        role_mappings=[
            RoleMapping(discord_role_id=role_id, permission_level=level)
            for role_id, level in mappings.items()
        ],
    )


def _user(user_id: str = "U2", roles: list[str] | None = None, level=PermissionLevel.MEMBER):
    return AuthenticatedUser(
        id=user_id,
        discord_username="someone",
        display_name="Someone",
        permission_level=level,
        roles=roles if roles is not None else ["R1"],
    )


class TestResolvePermissions:
    """Tests for resolve_permissions."""

    def test_owner_is_superadmin_without_mappings(self):
        result = resolve_permissions("U1", [], _config())

        assert result.level == PermissionLevel.SUPERADMIN
        assert result.source == "owner"

    def test_owner_is_superadmin_despite_lower_mapping(self):
        """Owner supremacy wins over a mapping that would yield VIEWER."""
        config = _config(R1=PermissionLevel.VIEWER)

        result = resolve_permissions("U1", ["R1"], config)

        assert result.level == PermissionLevel.SUPERADMIN
        assert result.roles == ["R1"]

    def test_missing_config_is_viewer(self):
        result = resolve_permissions("U1", ["R1", "R2"], None)

        assert result.level == PermissionLevel.VIEWER
        assert result.roles == []
        assert result.source == "no_config"

    def test_highest_mapped_level_wins(self):
        config = _config(R1=PermissionLevel.MODERATOR, R2=PermissionLevel.ADMIN)

        result = resolve_permissions("U2", ["R1", "R2"], config)

        assert result.level == PermissionLevel.ADMIN
        assert result.source == "role_mapping"

    def test_low_mapped_role_does_not_lower_level(self):
        config = _config(
            R1=PermissionLevel.MODERATOR,
            R2=PermissionLevel.ADMIN,
            R3=PermissionLevel.VIEWER,
        )

        result = resolve_permissions("U2", ["R3", "R1", "R2"], config)

        assert result.level == PermissionLevel.ADMIN

    def test_member_without_mapped_roles_is_member(self):
        config = _config(R9=PermissionLevel.ADMIN)

        result = resolve_permissions("U2", ["R1"], config)

        assert result.level == PermissionLevel.MEMBER
        assert result.roles == ["R1"]
        assert result.source == "member"

    def test_viewer_mapping_keeps_member_baseline(self):
        config = _config(R1=PermissionLevel.VIEWER)

        assert resolve_permissions("U2", ["R1"], config).level == PermissionLevel.MEMBER

    def test_non_member_is_viewer_regardless_of_mappings(self):
        config = _config(R1=PermissionLevel.ADMIN, R2=PermissionLevel.SUPERADMIN)

        result = resolve_permissions("U2", [], config)

        assert result.level == PermissionLevel.VIEWER
        assert result.roles == []
        assert result.source == "non_member"

    def test_config_without_owner_never_matches_empty_user(self):
        config = _config(owner_id=None)

        assert resolve_permissions("", ["R1"], config).level == PermissionLevel.MEMBER

    def test_duplicate_roles_are_collapsed(self):
        result = resolve_permissions("U2", ["R1", "R1", "R2"], _config())

        assert result.roles == ["R1", "R2"]

    def test_duplicate_mapping_last_entry_wins(self):
        config = GuildConfiguration(
            owner_id="U1",
            role_mappings=[
                RoleMapping(discord_role_id="R1", permission_level=PermissionLevel.ADMIN),
                RoleMapping(discord_role_id="R1", permission_level=PermissionLevel.MODERATOR),
            ],
        )

        result = resolve_permissions("U2", ["R1"], config)

        assert result.level == PermissionLevel.MODERATOR
        assert result.source == "role_mapping"


class TestReresolveUser:
    """Tests for reresolve_user."""

    def test_demotion_is_visible_without_relogin(self):
        user = _user(roles=["R1"], level=PermissionLevel.ADMIN)

        updated, resolution = reresolve_user(user, _config())

        assert updated.permission_level == PermissionLevel.MEMBER
        assert resolution.source == "member"
        # The original user is immutable
        assert user.permission_level == PermissionLevel.ADMIN

    def test_promotion_after_mapping_added(self):
        user = _user(roles=["R1"], level=PermissionLevel.MEMBER)

        updated, _ = reresolve_user(user, _config(R1=PermissionLevel.MODERATOR))

        assert updated.permission_level == PermissionLevel.MODERATOR

    def test_missing_config_drops_to_viewer(self):
        updated, _ = reresolve_user(_user(level=PermissionLevel.ADMIN), None)

        assert updated.permission_level == PermissionLevel.VIEWER
        assert updated.roles == ["R1"]

    def test_roles_kept_for_later_configuration(self):
        unconfigured, _ = reresolve_user(_user(level=PermissionLevel.VIEWER), None)

        updated, resolution = reresolve_user(unconfigured, _config(R1=PermissionLevel.ADMIN))

        assert updated.permission_level == PermissionLevel.ADMIN
        assert resolution.source == "role_mapping"


class TestHasPermission:
    """Tests for has_permission."""

    @pytest.mark.parametrize(
        "level,required,expected",
        [
            (PermissionLevel.ADMIN, PermissionLevel.ADMIN, True),
            (PermissionLevel.SUPERADMIN, PermissionLevel.ADMIN, True),
            (PermissionLevel.MODERATOR, PermissionLevel.ADMIN, False),
            (PermissionLevel.VIEWER, PermissionLevel.MEMBER, False),
        ],
    )
    def test_numeric_comparison(self, level, required, expected):
        assert has_permission(_user(level=level), required) is expected

    def test_anonymous_has_no_permission(self):
        assert has_permission(None, PermissionLevel.VIEWER) is False


class TestCheckGuildAccess:
    """Tests for the membership gate."""

    def test_gate_disabled_allows_everyone(self):
        assert check_guild_access(None, _config()) == AccessDecision.ALLOWED

    def test_no_config_allows_everyone(self):
        assert check_guild_access(None, None) == AccessDecision.ALLOWED

    def test_gate_requires_login(self):
        config = _config().model_copy(update={"require_discord_membership": True})

        assert check_guild_access(None, config) == AccessDecision.LOGIN_REQUIRED

    def test_gate_rejects_non_member(self):
        config = _config().model_copy(update={"require_discord_membership": True})

        decision = check_guild_access(_user(roles=[]), config)

        assert decision == AccessDecision.MEMBERSHIP_REQUIRED

    def test_gate_allows_member(self):
        config = _config().model_copy(update={"require_discord_membership": True})

        assert check_guild_access(_user(roles=["R1"]), config) == AccessDecision.ALLOWED

    def test_gate_allows_owner_without_roles(self):
        config = _config().model_copy(update={"require_discord_membership": True})

        assert check_guild_access(_user(user_id="U1", roles=[]), config) == AccessDecision.ALLOWED
