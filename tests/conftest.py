"""Shared pytest fixtures.

Key goals:
- Keep the global settings singleton from leaking between tests.
- Provide a scriptable Discord double (httpx.MockTransport) so the real
  Authlib/httpx code paths run without network access.
- Provide helpers to mint session cookies directly.
"""

from __future__ import annotations

import time
from typing import Any

import httpx
import pytest

import guildgate.config
from guildgate.config import Settings
from guildgate.domain.models import AuthenticatedUser, GuildConfiguration, PermissionLevel, Session
from guildgate.infra.guild_config import InMemoryGuildConfigStore
from guildgate.security.discord import DiscordOAuthClient
from guildgate.security.session_codec import SessionCodec

TEST_SECRET = "test-session-secret"
GUILD_ID = "guild-1"


@pytest.fixture(autouse=True)
def _reset_global_settings(monkeypatch) -> None:
    """Ensure the global settings singleton does not leak between tests."""
    monkeypatch.setattr(guildgate.config, "_settings", None)


class DiscordStub:
    """Scriptable stand-in for the Discord OAuth and REST endpoints."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.token_status = 200
        self.token_payload: dict[str, Any] = {
            "access_token": "access-abc",
            "token_type": "Bearer",
            "expires_in": 604800,
            "refresh_token": "refresh-abc",
            "scope": "identify email guilds guilds.members.read",
        }
        self.user: dict[str, Any] = {
            "id": "U2",
            "username": "raider",
            "global_name": "Raider Two",
            "avatar": "abc123",
        }
        self.member_status = 200
        self.member_roles: list[str] = ["R1"]
        self.roles_status = 200
        self.guild_roles: list[dict[str, Any]] = [
            {"id": GUILD_ID, "name": "@everyone", "position": 0},
            {"id": "R1", "name": "Officer", "color": 3447003, "position": 5},
            {"id": "R2", "name": "Raider", "color": 0, "position": 2},
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/api/oauth2/token":
            return httpx.Response(self.token_status, json=self.token_payload)
        if path == "/api/v10/users/@me":
            return httpx.Response(200, json=self.user)
        if path.startswith("/api/v10/users/@me/guilds/") and path.endswith("/member"):
            if self.member_status != 200:
                return httpx.Response(self.member_status, json={"message": "Unknown Guild"})
            return httpx.Response(200, json={"roles": self.member_roles, "nick": None})
        if path.startswith("/api/v10/guilds/") and path.endswith("/roles"):
            return httpx.Response(self.roles_status, json=self.guild_roles)
        return httpx.Response(404, json={"message": "Not Found"})

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]

    @property
    def token_exchange_count(self) -> int:
        return self.paths().count("/api/oauth2/token")

    def client(self, bot_token: str | None = None) -> DiscordOAuthClient:
        return DiscordOAuthClient(
            client_id="client-id",
            client_secret="client-secret",
            bot_token=bot_token,
            timeout_seconds=5.0,
            transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture
def discord() -> DiscordStub:
    return DiscordStub()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        environment="lab",
        session_secret=TEST_SECRET,
        discord_client_id="client-id",
        discord_client_secret="client-secret",
        discord_guild_id=GUILD_ID,
    )


@pytest.fixture
def codec() -> SessionCodec:
    return SessionCodec(TEST_SECRET)


@pytest.fixture
def store() -> InMemoryGuildConfigStore:
    return InMemoryGuildConfigStore(
        GuildConfiguration(
            owner_id="U1",
            guild_id=GUILD_ID,
            role_mappings=[
                {"discord_role_id": "R1", "permission_level": PermissionLevel.ADMIN},
            ],
        )
    )


def make_session(
    user_id: str = "U2",
    roles: list[str] | None = None,
    level: PermissionLevel = PermissionLevel.MEMBER,
    expires_in_ms: int = 60 * 60 * 1000,
) -> Session:
    """Build a session as the callback would have produced it."""
    user = AuthenticatedUser(
        id=user_id,
        discord_username=f"user-{user_id}",
        display_name=f"User {user_id}",
        permission_level=level,
        roles=roles if roles is not None else ["R1"],
    )
    return Session(
        user=user,
        access_token=f"access-{user_id}",
        refresh_token=f"refresh-{user_id}",
        expires_at=int(time.time() * 1000) + expires_in_ms,
    )


@pytest.fixture
def session_factory():
    return make_session
