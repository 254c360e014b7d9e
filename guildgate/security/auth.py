"""Authentication error taxonomy.

Every failure in the login flow maps to one of these exceptions; the HTTP
layer translates them into redirect error codes or status codes and never
lets them escape a request.
"""


class AuthenticationError(Exception):
    """Base exception for authentication failures."""

    pass


class OAuthStateError(AuthenticationError):
    """Raised when the OAuth state echo does not match the state cookie."""

    pass


class ConfigurationError(AuthenticationError):
    """Raised when provider credentials or guild settings are missing."""

    pass


class ProviderError(AuthenticationError):
    """Raised when Discord rejects a request, times out, or returns a malformed payload."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SessionDecodeError(AuthenticationError):
    """Raised when a session cookie is malformed, tampered with, or unreadable."""

    pass


class SessionExpiredError(SessionDecodeError):
    """Raised when an authentic session cookie is older than the allowed age."""

    pass


class SessionEncodeError(AuthenticationError):
    """Raised when a session cannot be serialized into a cookie value."""

    pass


# Error codes appended to the post-login redirect (``/?error=<code>``)
ERROR_DISCORD_DENIED = "discord_denied"
ERROR_NO_CODE = "no_code"
ERROR_INVALID_STATE = "invalid_state"
ERROR_CALLBACK_FAILED = "callback_failed"
ERROR_AUTH_FAILED = "discord_auth_failed"
