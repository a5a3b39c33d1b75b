# OAuth2 data models.
# Created: 2026-02-20

from __future__ import annotations

from collections.abc import Hashable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum


class ClientType(StrEnum):
    CONFIDENTIAL = "confidential"
    NATIVE = "native"  # public client, authenticates with PKCE instead of a secret


def parse_scope(scope: str | Iterable[str] | None) -> frozenset[str]:
    """Turn a space-delimited scope string (or iterable of scopes) into a set."""
    if scope is None:
        return frozenset()
    if isinstance(scope, str):
        return frozenset(scope.split())
    return frozenset(s for s in scope if s)


def format_scope(scopes: Iterable[str]) -> str:
    return " ".join(sorted(scopes))


@dataclass
class OAuthClient:
    """Registered OAuth2 client.

    ``owner`` is whatever registered the client; it is only ever handed to
    the client_credentials handler.
    """

    client_id: str
    name: str
    client_secret_hash: str | None = None
    redirect_uri: str | None = None
    client_type: ClientType = ClientType.CONFIDENTIAL
    owner: Hashable | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def native_app(self) -> bool:
        return self.client_type == ClientType.NATIVE


@dataclass
class Authorization:
    """A resource owner's grant to a client, with the live credentials derived from it.

    Raw codes and tokens are never stored, only their lookup hashes.
    """

    id: str
    owner: Hashable
    client_id: str
    scopes: frozenset[str] = field(default_factory=frozenset)
    code_hash: str | None = None
    access_token_hash: str | None = None
    refresh_token_hash: str | None = None
    expires_at: datetime | None = None
    pkce_challenge: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def scope(self) -> str:
        return format_scope(self.scopes)

    def expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or datetime.now(UTC)) >= self.expires_at

    def in_scope(self, requested: Iterable[str]) -> bool:
        return set(requested).issubset(self.scopes)
