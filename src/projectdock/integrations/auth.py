"""Bearer token actor resolution.

Tokens are ``<payload>.<signature>`` where payload is the url-safe base64
of ``user_id:role[:inactive]`` and signature is the HMAC-SHA256 hex digest
of the payload under the configured secret. Issuing tokens belongs to the
identity provider; ``issue_token`` exists for the CLI and tests.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac

from projectdock.lifecycle.permissions import Actor


class AuthenticationError(Exception):
    """The bearer credential is missing, malformed or forged."""


class TokenActorResolver:
    """Resolves ``Authorization: Bearer`` credentials to an Actor."""

    def __init__(self, secret: str) -> None:
        self._secret = secret.encode()

    def _sign(self, payload: str) -> str:
        return hmac.new(self._secret, payload.encode(), hashlib.sha256).hexdigest()

    def issue_token(self, user_id: str, role: str, is_active: bool = True) -> str:
        """Create a signed token for a user."""
        if ":" in user_id:
            raise ValueError("user_id must not contain ':'")
        claims = f"{user_id}:{role}" if is_active else f"{user_id}:{role}:inactive"
        payload = base64.urlsafe_b64encode(claims.encode()).decode().rstrip("=")
        return f"{payload}.{self._sign(payload)}"

    def resolve(self, token: str) -> Actor:
        """Verify a token and return its actor.

        Raises:
            AuthenticationError: If the token is malformed or its signature is wrong.
        """
        payload, sep, signature = token.strip().partition(".")
        if not sep or not payload or not signature:
            raise AuthenticationError("Malformed token")
        if not hmac.compare_digest(self._sign(payload), signature):
            raise AuthenticationError("Invalid token signature")

        padded = payload + "=" * (-len(payload) % 4)
        try:
            claims = base64.urlsafe_b64decode(padded.encode()).decode()
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise AuthenticationError("Malformed token payload") from exc

        parts = claims.split(":")
        if len(parts) not in (2, 3) or not parts[0] or not parts[1]:
            raise AuthenticationError("Malformed token claims")

        return Actor(id=parts[0], role=parts[1], is_active=len(parts) == 2)
