# Structured (JWT) bearer tokens.
# Created: 2026-02-20
#
# A structured access token identifies its Authorization through the
# ``authorization_id`` claim instead of by hash.

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from grantgate.oauth2.errors import TokenDecodeError
from grantgate.oauth2.models import Authorization

logger = logging.getLogger(__name__)

AUTHORIZATION_CLAIM = "authorization_id"


@dataclass(frozen=True)
class StructuredToken:
    authorization_id: str
    claims: dict[str, Any] = field(default_factory=dict)


def looks_structured(token: str) -> bool:
    """JWS compact serialization has exactly three dot-separated parts."""
    return token.count(".") == 2


class JWTTokenCodec:
    """Signs and verifies JWT access tokens with PyJWT."""

    def __init__(self, secret: str, algorithm: str = "HS256", issuer: str = "grantgate"):
        if not secret:
            raise ValueError("JWT secret is required")
        self.secret = secret
        self.algorithm = algorithm
        self.issuer = issuer

    def encode(self, authorization: Authorization, expires_in: int | None = None) -> str:
        now = datetime.now(UTC)
        payload: dict[str, Any] = {
            "iss": self.issuer,
            "sub": str(authorization.owner),
            "iat": now,
            "jti": uuid.uuid4().hex,
            "scope": authorization.scope,
            AUTHORIZATION_CLAIM: authorization.id,
        }
        if expires_in:
            payload["exp"] = now + timedelta(seconds=expires_in)
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode(self, token: str) -> StructuredToken:
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"require": ["iss", AUTHORIZATION_CLAIM]},
            )
        except jwt.PyJWTError as exc:
            logger.debug("Rejected structured token: %s", exc)
            raise TokenDecodeError(str(exc)) from exc
        return StructuredToken(authorization_id=str(claims[AUTHORIZATION_CLAIM]), claims=claims)
