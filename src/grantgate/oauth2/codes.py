# Secure code scheme: random identifiers, lookup hashes, secret hashing, PKCE.
# Created: 2026-02-20
#
# Codes, access tokens and refresh tokens are high-entropy, so a fast
# deterministic SHA-256 digest is enough to look them up. Client secrets get
# bcrypt instead.

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets
from collections.abc import Callable
from typing import TypeVar

import bcrypt

from grantgate.oauth2.errors import CodeGenerationError, DuplicateRecordError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_ATTEMPTS = 10
DEFAULT_TOKEN_BYTES = 32
MIN_TOKEN_BYTES = 16  # 128 bits


class SecureCodeScheme:
    """Generates unguessable strings and verifies presented ones.

    Parameters
    ----------
    max_attempts : int
        How many candidates ``generate``/``write_unique`` try before giving up.
    token_bytes : int
        Random bytes per generated value (rendered URL-safe).
    bcrypt_rounds : int
        Cost factor for ``password_hash``.
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_ATTEMPTS,
        token_bytes: int = DEFAULT_TOKEN_BYTES,
        bcrypt_rounds: int = 12,
    ):
        if token_bytes < MIN_TOKEN_BYTES:
            raise ValueError(f"token_bytes must be at least {MIN_TOKEN_BYTES}")
        if max_attempts < 1:
            raise ValueError("max_attempts must be positive")
        self.max_attempts = max_attempts
        self.token_bytes = token_bytes
        self.bcrypt_rounds = bcrypt_rounds

    def random_string(self) -> str:
        return secrets.token_urlsafe(self.token_bytes)

    def generate(self, exists: Callable[[str], bool] | None = None) -> str:
        """Return a random string for which ``exists(candidate)`` is False.

        Raises CodeGenerationError after ``max_attempts`` collisions.
        """
        for _ in range(self.max_attempts):
            candidate = self.random_string()
            if exists is None or not exists(candidate):
                return candidate
        logger.error("Gave up generating a unique value after %d attempts", self.max_attempts)
        raise CodeGenerationError(
            f"Could not generate a unique value after {self.max_attempts} attempts"
        )

    def write_unique(
        self,
        write: Callable[[str], T],
        exists: Callable[[str], bool] | None = None,
    ) -> T:
        """Call ``write(candidate)`` with fresh candidates until storage accepts one.

        Candidates for which ``exists`` is True are skipped without writing.
        ``write`` signals a collision that slipped past the check by raising
        DuplicateRecordError; any other exception propagates unchanged.
        """
        for attempt in range(1, self.max_attempts + 1):
            candidate = self.random_string()
            if exists is not None and exists(candidate):
                continue
            try:
                return write(candidate)
            except DuplicateRecordError:
                logger.debug("Duplicate generated value on attempt %d, retrying", attempt)
        logger.error("Gave up writing a unique value after %d attempts", self.max_attempts)
        raise CodeGenerationError(
            f"Could not store a unique value after {self.max_attempts} attempts"
        )

    # -- hashing ----------------------------------------------------------

    @staticmethod
    def hashify(raw: str) -> str:
        """Deterministic lookup hash for codes and tokens."""
        return hashlib.sha256(raw.encode()).hexdigest()

    def password_hash(self, raw: str) -> str:
        return bcrypt.hashpw(raw.encode(), bcrypt.gensalt(rounds=self.bcrypt_rounds)).decode()

    @staticmethod
    def verify_password(hashed: str | None, candidate: str | None) -> bool:
        if not hashed or candidate is None:
            return False
        try:
            return bcrypt.checkpw(candidate.encode(), hashed.encode())
        except ValueError:
            # Stored value is not a bcrypt hash
            return False

    # -- PKCE (RFC 7636, S256) ------------------------------------------------

    @staticmethod
    def pkce_challenge(verifier: str) -> str:
        """S256 = BASE64URL(SHA256(code_verifier)) without padding."""
        digest = hashlib.sha256(verifier.encode("ascii", errors="strict")).digest()
        return base64.urlsafe_b64encode(digest).rstrip(b"=").decode()

    @classmethod
    def verify_pkce(cls, challenge: str | None, verifier: str | None) -> bool:
        if not challenge or not verifier:
            return False
        try:
            computed = cls.pkce_challenge(verifier)
        except UnicodeEncodeError:
            return False
        return hmac.compare_digest(computed, challenge)


def hashify(raw: str) -> str:
    return SecureCodeScheme.hashify(raw)
