"""OAuth CSRF state guard.

The state is a random, single-use token stored only in a short-lived
http-only cookie and compared against the ``state`` echoed back by Discord.
Nothing is persisted server-side.
"""

import hmac
import logging
import secrets

from guildgate.security.auth import OAuthStateError

logger = logging.getLogger(__name__)

STATE_TOKEN_BYTES = 32


def issue_state() -> str:
    """Generate a cryptographically random state token."""
    return secrets.token_urlsafe(STATE_TOKEN_BYTES)


def validate_state(received_state: str | None, stored_state: str | None) -> bool:
    """Compare the echoed state with the cookie value in constant time.

    Returns False when either side is missing or empty.
    """
    if not received_state or not stored_state:
        return False
    return hmac.compare_digest(received_state.encode("utf-8"), stored_state.encode("utf-8"))


def require_valid_state(received_state: str | None, stored_state: str | None) -> None:
    """Raise OAuthStateError unless the state round-trip matches."""
    if not validate_state(received_state, stored_state):
        logger.warning(
            "OAuth state mismatch",
            extra={
                "has_received_state": bool(received_state),
                "has_stored_state": bool(stored_state),
            },
        )
        raise OAuthStateError("OAuth state missing or mismatched")
