"""Security module for GuildGate.

Provides the authentication building blocks:
- auth: Error taxonomy and redirect error codes
- oauth_state: OAuth CSRF state issue/validate
- discord: Discord OAuth2 token exchange and identity lookups
- session_codec: Encrypted session cookie encode/decode
"""

from guildgate.security.auth import (
    AuthenticationError,
    ConfigurationError,
    OAuthStateError,
    ProviderError,
    SessionDecodeError,
    SessionEncodeError,
    SessionExpiredError,
)
from guildgate.security.discord import DiscordOAuthClient
from guildgate.security.oauth_state import issue_state, require_valid_state, validate_state
from guildgate.security.session_codec import SessionCodec, derive_fernet_key

__all__ = [
    # Errors
    "AuthenticationError",
    "OAuthStateError",
    "ConfigurationError",
    "ProviderError",
    "SessionDecodeError",
    "SessionEncodeError",
    "SessionExpiredError",
    # OAuth
    "DiscordOAuthClient",
    "issue_state",
    "validate_state",
    "require_valid_state",
    # Sessions
    "SessionCodec",
    "derive_fernet_key",
]
