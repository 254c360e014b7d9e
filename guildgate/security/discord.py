"""Discord OAuth2 client: consent URL, code exchange, and identity lookups.

Wraps the three Discord touch points of the login flow:
- Authorization URL construction (Authlib)
- Authorization code -> token exchange (Authlib AsyncOAuth2Client)
- Profile, guild membership, and guild role lookups (httpx)

Every call has a bounded timeout and no retries: authorization codes are
single-use and a failed login is restarted by the user.
"""

import logging
from typing import Any, TypeVar

import httpx
from authlib.integrations.base_client import OAuthError
from authlib.integrations.httpx_client import AsyncOAuth2Client
from authlib.oauth2.rfc6749.parameters import prepare_grant_uri
from pydantic import BaseModel, ValidationError

from guildgate.config import Settings
from guildgate.domain.models import DiscordGuildMember, DiscordRole, DiscordTokens, DiscordUser
from guildgate.security.auth import ConfigurationError, ProviderError

logger = logging.getLogger(__name__)

DISCORD_API_BASE = "https://discord.com/api/v10"
DISCORD_OAUTH_URL = "https://discord.com/api/oauth2/authorize"
DISCORD_TOKEN_URL = "https://discord.com/api/oauth2/token"

DISCORD_SCOPES = " ".join(
    [
        "identify",  # user profile
        "email",
        "guilds",
        "guilds.members.read",  # roles in the configured guild
    ]
)

EVERYONE_ROLE_NAME = "@everyone"

M = TypeVar("M", bound=BaseModel)


class DiscordOAuthClient:
    """Discord OAuth2 and REST client.

    Example:
        client = DiscordOAuthClient.from_settings(settings)
        url = client.build_authorization_url(redirect_uri, state)
        tokens = await client.exchange_code(code, redirect_uri)
        user = await client.fetch_profile(tokens.access_token)
        member = await client.fetch_guild_member(tokens.access_token, guild_id)
    """

    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        api_base: str = DISCORD_API_BASE,
        bot_token: str | None = None,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            client_id: OAuth client ID
            client_secret: OAuth client secret
            api_base: Discord REST API base URL
            bot_token: Optional bot token for guild-wide role listing
            timeout_seconds: Timeout applied to every outbound call
            transport: Optional httpx transport (used by tests)
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.api_base = api_base.rstrip("/")
        self.bot_token = bot_token
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> "DiscordOAuthClient":
        return cls(
            client_id=settings.discord_client_id,
            client_secret=settings.discord_client_secret,
            api_base=settings.discord_api_base,
            bot_token=settings.discord_bot_token,
            timeout_seconds=settings.discord_timeout_seconds,
            transport=transport,
        )

    @property
    def has_bot_credential(self) -> bool:
        return bool(self.bot_token)

    def _require_credentials(self) -> None:
        if not self.client_id or not self.client_secret:
            raise ConfigurationError("Discord OAuth credentials not configured")

    def _oauth_client(self, redirect_uri: str) -> AsyncOAuth2Client:
        return AsyncOAuth2Client(
            client_id=self.client_id,
            client_secret=self.client_secret,
            token_endpoint_auth_method="client_secret_post",
            scope=DISCORD_SCOPES,
            redirect_uri=redirect_uri,
            timeout=self.timeout_seconds,
            transport=self._transport,
        )

    def _api_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_base,
            timeout=self.timeout_seconds,
            transport=self._transport,
        )

    def build_authorization_url(self, redirect_uri: str, state: str) -> str:
        """Build the Discord consent URL.

        Args:
            redirect_uri: Callback URL registered with Discord
            state: CSRF state token (also stored in the state cookie)

        Returns:
            Authorization URL to redirect the browser to

        Raises:
            ConfigurationError: If client credentials are missing
        """
        if not self.client_id:
            raise ConfigurationError("Discord client ID is not configured")

        return prepare_grant_uri(
            DISCORD_OAUTH_URL,
            client_id=self.client_id,
            response_type="code",
            redirect_uri=redirect_uri,
            scope=DISCORD_SCOPES,
            state=state,
        )

    async def exchange_code(self, code: str, redirect_uri: str) -> DiscordTokens:
        """Exchange an authorization code for access and refresh tokens.

        Args:
            code: Authorization code from the callback
            redirect_uri: Must match the URI used for the consent request

        Returns:
            Validated token response

        Raises:
            ConfigurationError: If client credentials are missing
            ProviderError: If Discord rejects the code or the call fails
        """
        self._require_credentials()
        if not code:
            raise ProviderError("Authorization code is empty")

        async with self._oauth_client(redirect_uri) as client:
            try:
                token = await client.fetch_token(
                    DISCORD_TOKEN_URL,
                    grant_type="authorization_code",
                    code=code,
                    redirect_uri=redirect_uri,
                )
            except OAuthError as e:
                logger.warning(
                    "Discord rejected authorization code",
                    extra={"error": e.error, "description": e.description},
                )
                raise ProviderError(f"Token exchange failed: {e.error}") from e
            except httpx.HTTPStatusError as e:
                logger.warning(
                    "Token exchange returned error status",
                    extra={"status_code": e.response.status_code},
                )
                raise ProviderError(
                    "Token exchange failed", status_code=e.response.status_code
                ) from e
            except httpx.HTTPError as e:
                logger.error("HTTP error during token exchange", extra={"error": str(e)})
                raise ProviderError(f"Token exchange failed: {e}") from e
            except ValueError as e:
                logger.error("Token endpoint returned non-JSON body")
                raise ProviderError("Token exchange failed: malformed response") from e

        tokens = _parse(DiscordTokens, dict(token), "token response")
        logger.info(
            "Token exchange successful",
            extra={
                "has_refresh_token": tokens.refresh_token is not None,
                "expires_in": tokens.expires_in,
            },
        )
        return tokens

    async def fetch_profile(self, access_token: str) -> DiscordUser:
        """Fetch the authenticated user's profile (``GET /users/@me``).

        Raises:
            ProviderError: On non-2xx, timeout, or malformed payload
        """
        response = await self._get("/users/@me", f"Bearer {access_token}")
        if not response.is_success:
            raise ProviderError("Failed to get Discord user", status_code=response.status_code)
        return _parse(DiscordUser, _json(response), "user profile")

    async def fetch_guild_member(
        self, access_token: str, guild_id: str
    ) -> DiscordGuildMember | None:
        """Fetch the user's membership in a guild.

        Returns:
            Member record, or None if the user is not in the guild (HTTP 404)

        Raises:
            ProviderError: On other non-2xx responses, timeouts, or malformed payloads
        """
        response = await self._get(
            f"/users/@me/guilds/{guild_id}/member", f"Bearer {access_token}"
        )
        if response.status_code == 404:
            logger.debug("User is not a member of the guild", extra={"guild_id": guild_id})
            return None
        if not response.is_success:
            raise ProviderError(
                "Failed to fetch guild membership", status_code=response.status_code
            )
        return _parse(DiscordGuildMember, _json(response), "guild member")

    async def list_guild_roles(self, guild_id: str) -> list[DiscordRole]:
        """List every role in a guild using the bot credential.

        ``@everyone`` is dropped; the rest are sorted by position, highest first.

        Raises:
            ConfigurationError: If no bot token is configured
            ProviderError: On non-2xx, timeout, or malformed payload
        """
        if not self.bot_token:
            raise ConfigurationError("Discord bot token is not configured")

        response = await self._get(f"/guilds/{guild_id}/roles", f"Bot {self.bot_token}")
        if not response.is_success:
            logger.error(
                "Failed to fetch guild roles",
                extra={"guild_id": guild_id, "status_code": response.status_code},
            )
            raise ProviderError("Failed to fetch guild roles", status_code=response.status_code)

        payload = _json(response)
        if not isinstance(payload, list):
            raise ProviderError("Malformed guild roles payload")
        roles = [_parse(DiscordRole, item, "guild role") for item in payload]
        roles = [role for role in roles if role.name != EVERYONE_ROLE_NAME]
        return sorted(roles, key=lambda role: role.position, reverse=True)

    async def _get(self, path: str, authorization: str) -> httpx.Response:
        try:
            async with self._api_client() as client:
                return await client.get(path, headers={"Authorization": authorization})
        except httpx.TimeoutException as e:
            logger.warning("Discord API call timed out", extra={"path": path})
            raise ProviderError(f"Discord API timeout: {path}") from e
        except httpx.HTTPError as e:
            logger.error("Discord API call failed", extra={"path": path, "error": str(e)})
            raise ProviderError(f"Discord API error: {path}") from e


def _json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise ProviderError("Discord returned a non-JSON body") from e


def _parse(model: type[M], data: Any, what: str) -> M:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.warning(
            "Malformed Discord payload",
            extra={"payload": what, "error_count": e.error_count()},
        )
        raise ProviderError(f"Malformed Discord {what}") from e
