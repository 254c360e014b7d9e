"""Session cookie codec.

Sessions are serialized to canonical JSON and sealed with Fernet
(AES-128-CBC with HMAC-SHA256 authentication), so a cookie is both
confidential (it carries Discord tokens) and tamper-evident.

Security design:
- Key derived from a server-held secret (GUILDGATE_SESSION_SECRET)
- Any decode failure is reported as SessionDecodeError and treated as
  "no session" by callers, never as elevated trust
- Expiry is a separate, explicit check (``is_expired``); an authentic token
  older than ``max_age_seconds`` raises SessionExpiredError
"""

import base64
import hashlib
import json
import logging
import time
from typing import Final

from cryptography.fernet import Fernet, InvalidToken
from pydantic import ValidationError

from guildgate.domain.models import Session
from guildgate.security.auth import SessionDecodeError, SessionEncodeError, SessionExpiredError

logger = logging.getLogger(__name__)

# Browsers cap a single cookie at roughly 4 KB
MAX_SESSION_TOKEN_BYTES: Final[int] = 4096


def derive_fernet_key(secret: str) -> bytes:
    """Derive a Fernet key from an arbitrary-length secret string.

    Args:
        secret: Server-held session secret

    Returns:
        URL-safe base64-encoded 32-byte key
    """
    if not secret:
        raise ValueError("Session secret must be non-empty")
    return base64.urlsafe_b64encode(hashlib.sha256(secret.encode("utf-8")).digest())


class SessionCodec:
    """Encode and decode session cookies.

    Example:
        codec = SessionCodec(settings.session_secret)
        token = codec.encode(session)
        session = codec.decode(token)
        if codec.is_expired(session):
            ...
    """

    def __init__(self, secret: str, max_age_seconds: int | None = None) -> None:
        """Initialize the codec.

        Args:
            secret: Server-held secret (any length)
            max_age_seconds: Optional cap on token age enforced at decode time
        """
        self._fernet = Fernet(derive_fernet_key(secret))
        self.max_age_seconds = max_age_seconds

    def encode(self, session: Session) -> str:
        """Serialize and seal a session.

        Raises:
            SessionEncodeError: If the result would not fit in a cookie
        """
        payload = json.dumps(
            session.model_dump(mode="json", by_alias=True),
            separators=(",", ":"),
            sort_keys=True,
        )
        token = self._fernet.encrypt(payload.encode("utf-8")).decode("ascii")

        if len(token) > MAX_SESSION_TOKEN_BYTES:
            logger.error(
                "Session token exceeds cookie size bound",
                extra={"token_bytes": len(token), "user_sub": session.user.id},
            )
            raise SessionEncodeError(
                f"Session token is {len(token)} bytes, limit is {MAX_SESSION_TOKEN_BYTES}"
            )
        return token

    def decode(self, token: str) -> Session:
        """Open and validate a session token.

        Raises:
            SessionExpiredError: If the token is authentic but older than
                ``max_age_seconds``
            SessionDecodeError: If the token is oversized, tampered, truncated,
                sealed with another key, or not a valid session
        """
        if not token or len(token) > MAX_SESSION_TOKEN_BYTES:
            raise SessionDecodeError("Session token empty or oversized")

        try:
            sealed = token.encode("ascii")
        except UnicodeEncodeError as e:
            raise SessionDecodeError("Session token is not ASCII") from e

        try:
            raw = self._fernet.decrypt(sealed, ttl=self.max_age_seconds)
        except InvalidToken as e:
            if self._is_too_old(sealed):
                raise SessionExpiredError("Session token older than max age") from e
            raise SessionDecodeError("Session token failed authentication") from e

        try:
            return Session.model_validate_json(raw)
        except ValidationError as e:
            raise SessionDecodeError(
                f"Session payload invalid ({e.error_count()} errors)"
            ) from e

    def _is_too_old(self, sealed: bytes) -> bool:
        if self.max_age_seconds is None:
            return False
        try:
            # Verifies the HMAC before returning the timestamp
            issued_at = self._fernet.extract_timestamp(sealed)
        except InvalidToken:
            return False
        return issued_at + self.max_age_seconds < int(time.time())

    @staticmethod
    def is_expired(session: Session, now_ms: int | None = None) -> bool:
        """Check whether the provider tokens in the session have expired."""
        if now_ms is None:
            now_ms = int(time.time() * 1000)
        return now_ms > session.expires_at
