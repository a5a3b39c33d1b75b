# Authorization lifecycle: lookup by presented credential, grants, token issuance.
# Created: 2026-02-20

from __future__ import annotations

import logging
from collections.abc import Hashable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from grantgate.oauth2.codes import SecureCodeScheme
from grantgate.oauth2.errors import ScopeError, TokenDecodeError
from grantgate.oauth2.models import Authorization, OAuthClient, parse_scope
from grantgate.oauth2.storage import OAuthStorage
from grantgate.oauth2.tokens import JWTTokenCodec

logger = logging.getLogger(__name__)

# Token lifetimes
ACCESS_TOKEN_TTL = timedelta(hours=1)
CODE_TTL = timedelta(minutes=10)


@dataclass
class IssuedTokens:
    """Raw credentials from a commit. Shown to the client once, never stored."""

    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None


class AuthorizationManager:
    """Reads and mutates Authorization records through the storage collaborator."""

    def __init__(
        self,
        storage: OAuthStorage,
        scheme: SecureCodeScheme | None = None,
        *,
        code_ttl: timedelta = CODE_TTL,
        access_token_ttl: timedelta | None = ACCESS_TOKEN_TTL,
        token_codec: JWTTokenCodec | None = None,
    ):
        self.storage = storage
        self.scheme = scheme or SecureCodeScheme()
        self.code_ttl = code_ttl
        self.access_token_ttl = access_token_ttl
        self.token_codec = token_codec

    # -- lookup ----------------------------------------------------------------

    def find_by_code(self, code: str | None) -> Authorization | None:
        """Authorization holding *code*, or None if unknown or expired."""
        if not code:
            return None
        auth = self.storage.find_by_code_hash(self.scheme.hashify(code))
        if auth is None or auth.expired():
            return None
        return auth

    def find_by_refresh_token(self, token: str | None) -> Authorization | None:
        if not token:
            return None
        return self.storage.find_by_refresh_token_hash(self.scheme.hashify(token))

    def find_by_access_token(
        self, token: str | None, *, structured: bool = False
    ) -> Authorization | None:
        """Authorization behind a live access token.

        Opaque tokens are looked up by hash. Structured tokens are decoded and
        looked up by their embedded authorization id; a decode failure is
        treated the same as an unknown token.
        """
        if not token:
            return None
        if structured:
            if self.token_codec is None:
                logger.debug("Structured token presented but no decoder is configured")
                return None
            try:
                decoded = self.token_codec.decode(token)
            except TokenDecodeError:
                return None
            auth = self.storage.get_authorization(decoded.authorization_id)
            if auth is None or auth.access_token_hash is None:
                return None
        else:
            auth = self.storage.find_by_access_token_hash(self.scheme.hashify(token))
        if auth is None or auth.expired():
            return None
        return auth

    # -- grants ----------------------------------------------------------------

    def grant_access(
        self,
        owner: Hashable,
        client: OAuthClient,
        scopes: Iterable[str] | str | None = None,
        duration: timedelta | None = None,
    ) -> Authorization:
        """Find or create the Authorization for (owner, client) and add *scopes* to it."""
        scopes = parse_scope(scopes)
        expires_at = datetime.now(UTC) + duration if duration else None

        while (existing := self.storage.find_authorization(owner, client.client_id)) is not None:
            changes: dict = {"scopes": existing.scopes | scopes}
            if duration:
                changes["expires_at"] = expires_at
            # Only scopes and expiry change; a concurrent scope grant forces a re-read.
            updated = self.storage.update_authorization_fields(
                existing.id, changes, expected={"scopes": existing.scopes}
            )
            if updated is not None:
                return updated

        def _write(authorization_id: str) -> Authorization:
            return self.storage.add_authorization(
                Authorization(
                    id=authorization_id,
                    owner=owner,
                    client_id=client.client_id,
                    scopes=scopes,
                    expires_at=expires_at,
                )
            )

        auth = self.scheme.write_unique(
            _write, exists=lambda c: self.storage.get_authorization(c) is not None
        )
        logger.info("Created authorization %s for client %s", auth.id, client.client_id)
        return auth

    def generate_code(self, authorization: Authorization, pkce_challenge: str | None = None) -> str:
        """Mint a fresh authorization code, replacing any previous one.

        Returns the raw code; only its hash is stored.
        """

        def _write(code: str) -> str:
            updated = self.storage.update_authorization_fields(
                authorization.id,
                {
                    "code_hash": self.scheme.hashify(code),
                    "expires_at": datetime.now(UTC) + self.code_ttl,
                    "pkce_challenge": pkce_challenge,
                },
            )
            if updated is None:
                raise LookupError(f"Authorization {authorization.id} no longer exists")
            authorization.code_hash = updated.code_hash
            authorization.expires_at = updated.expires_at
            authorization.pkce_challenge = pkce_challenge
            return code

        return self.scheme.write_unique(
            _write,
            exists=lambda c: self.storage.find_by_code_hash(self.scheme.hashify(c)) is not None,
        )

    # -- token issuance ----------------------------------------------------------

    def issue_tokens(
        self,
        authorization: Authorization,
        *,
        rotate_refresh: bool = False,
        clear_code: bool = True,
    ) -> IssuedTokens | None:
        """Store hashes of a new access token (and refresh token) on *authorization*.

        The update only applies if the code and refresh token are still the ones
        this caller read, so two concurrent exchanges of the same code or
        refresh token cannot both win. Returns None for the loser.
        """
        expected = {
            "code_hash": authorization.code_hash,
            "refresh_token_hash": authorization.refresh_token_hash,
        }
        ttl = self.access_token_ttl

        def _write(access_token: str) -> IssuedTokens | None:
            refresh_token = self.scheme.random_string() if rotate_refresh else None
            changes = {
                "access_token_hash": self.scheme.hashify(access_token),
                "expires_at": datetime.now(UTC) + ttl if ttl else None,
            }
            if clear_code:
                changes["code_hash"] = None
            if refresh_token is not None:
                changes["refresh_token_hash"] = self.scheme.hashify(refresh_token)
            if not self.storage.update_authorization_fields(authorization.id, changes, expected):
                return None
            return IssuedTokens(
                access_token=access_token,
                refresh_token=refresh_token,
                expires_in=int(ttl.total_seconds()) if ttl else None,
            )

        issued = self.scheme.write_unique(_write)
        if issued is None:
            logger.info("Lost commit race on authorization %s", authorization.id)
        return issued

    # -- scope -----------------------------------------------------------------

    @staticmethod
    def narrow_scope(
        authorization: Authorization, requested: Iterable[str] | str | None
    ) -> frozenset[str]:
        """Requested scopes if all were granted; the full grant if none were requested."""
        requested = parse_scope(requested)
        if not requested:
            return authorization.scopes
        if not authorization.in_scope(requested):
            raise ScopeError()
        return requested
