"""
Service-to-Service Authentication with JWT.

Outbound calls to ML services carry a short-lived HS256 token whose
audience is the target service. A fresh token is signed per attempt so
long retry sequences never send an expired one.
"""

import base64
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Optional

import jwt

logger = logging.getLogger(__name__)

DEFAULT_ISSUER = "clinical-gateway"
DEFAULT_TTL_SECONDS = 300
MIN_SECRET_BYTES = 32


def _add_base64_padding(value: str) -> str:
    return value + ("=" * (-len(value) % 4))


def _normalize_secret_value(raw: str, allow_short: bool = False) -> bytes:
    candidate = (raw or "").strip()
    if not candidate:
        raise ValueError("JWT secret is empty")
    # Try base64/urlsafe base64 first
    for decoder in (base64.urlsafe_b64decode, base64.b64decode):
        try:
            decoded = decoder(_add_base64_padding(candidate))
        except (ValueError, TypeError):
            continue
        if decoded and (len(decoded) >= MIN_SECRET_BYTES or allow_short):
            return decoded
    data = candidate.encode("utf-8")
    if len(data) < MIN_SECRET_BYTES and not allow_short:
        raise ValueError(f"JWT secret must be at least {MIN_SECRET_BYTES} bytes")
    return data


@dataclass(frozen=True)
class ServiceAuthConfig:
    """Signing parameters for outbound service tokens."""

    secret: str
    issuer: str = DEFAULT_ISSUER
    ttl_seconds: int = DEFAULT_TTL_SECONDS
    allow_short_secret: bool = False


class ServiceTokenSigner:
    """
    Signs and verifies HS256 service tokens.

    Usage:
        signer = ServiceTokenSigner(ServiceAuthConfig(secret=...))
        headers = signer.auth_header("rag-embeddings")
    """

    algorithm = "HS256"

    def __init__(self, config: ServiceAuthConfig):
        self.config = config
        self._key = _normalize_secret_value(config.secret, allow_short=config.allow_short_secret)

    def create_token(self, audience: str, expires_in: Optional[int] = None, **extra_claims: Any) -> str:
        """
        Sign a token for one downstream service.

        Args:
            audience: Target service name
            expires_in: Lifetime in seconds (defaults to config ttl)
            **extra_claims: Added to the payload as-is

        Returns:
            Encoded JWT
        """
        now = int(time.time())
        payload: dict[str, Any] = {
            "iss": self.config.issuer,
            "aud": audience,
            "iat": now,
            "exp": now + (expires_in or self.config.ttl_seconds),
            "jti": uuid.uuid4().hex,
        }
        payload.update(extra_claims)
        return jwt.encode(payload, self._key, algorithm=self.algorithm)

    def verify_token(self, token: str, audience: str) -> dict[str, Any]:
        """
        Verify a token and return its claims.

        Raises:
            ValueError: If the signature, audience, issuer or expiry is invalid
        """
        try:
            return jwt.decode(
                token,
                self._key,
                algorithms=[self.algorithm],
                audience=audience,
                issuer=self.config.issuer,
            )
        except jwt.PyJWTError as exc:
            raise ValueError(f"Invalid service token: {exc}") from exc

    def auth_header(self, audience: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.create_token(audience)}"}
