# OAuth2 authorization server: wires storage, code scheme, handlers and exchange.
# Created: 2026-02-20

from __future__ import annotations

import logging
from collections.abc import Hashable, Iterable, Mapping
from datetime import timedelta
from typing import Any

from grantgate.config import Settings, get_settings
from grantgate.oauth2.authorizations import AuthorizationManager
from grantgate.oauth2.clients import create_client
from grantgate.oauth2.codes import SecureCodeScheme
from grantgate.oauth2.exchange import TokenExchange
from grantgate.oauth2.handlers import GrantHandlerRegistry
from grantgate.oauth2.models import Authorization, ClientType, OAuthClient
from grantgate.oauth2.storage import OAuthStorage
from grantgate.oauth2.tokens import JWTTokenCodec, looks_structured

logger = logging.getLogger(__name__)


class AuthorizationServer:
    """Token server for one process.

    Holds its own handler registry; nothing about grant handling is global
    except the optional ``get_oauth_server()`` singleton below.
    """

    def __init__(
        self,
        storage: OAuthStorage | None = None,
        handlers: GrantHandlerRegistry | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.storage = storage or OAuthStorage(self.settings.storage_path)
        self.handlers = handlers or GrantHandlerRegistry()
        self.scheme = SecureCodeScheme(
            max_attempts=self.settings.code_generation_attempts,
            token_bytes=self.settings.token_bytes,
            bcrypt_rounds=self.settings.bcrypt_rounds,
        )
        self.token_codec = (
            JWTTokenCodec(self.settings.jwt_secret, self.settings.jwt_algorithm)
            if self.settings.jwt_secret
            else None
        )
        ttl = self.settings.access_token_ttl
        self.authorizations = AuthorizationManager(
            self.storage,
            self.scheme,
            code_ttl=timedelta(seconds=self.settings.code_ttl),
            access_token_ttl=timedelta(seconds=ttl) if ttl else None,
            token_codec=self.token_codec,
        )

    # -- clients -----------------------------------------------------------------

    def create_client(
        self,
        name: str,
        redirect_uri: str | None = None,
        *,
        client_type: ClientType = ClientType.CONFIDENTIAL,
        owner: Hashable | None = None,
    ) -> tuple[OAuthClient, str | None]:
        """Register a client. The raw secret in the result is not retrievable later."""
        return create_client(
            self.storage,
            name,
            redirect_uri,
            client_type=client_type,
            owner=owner,
            scheme=self.scheme,
        )

    def get_client(self, client_id: str) -> OAuthClient | None:
        return self.storage.get_client(client_id)

    def delete_client(self, client_id: str) -> bool:
        return self.storage.delete_client(client_id)

    # -- authorizations ------------------------------------------------------------

    def grant_access(
        self,
        owner: Hashable,
        client: OAuthClient,
        scopes: Iterable[str] | str | None = None,
        duration: timedelta | None = None,
    ) -> Authorization:
        return self.authorizations.grant_access(owner, client, scopes, duration)

    def generate_code(self, authorization: Authorization, code_challenge: str | None = None) -> str:
        return self.authorizations.generate_code(authorization, code_challenge)

    # -- token endpoint --------------------------------------------------------------

    def exchange(
        self, params: Mapping[str, Any], resource_owner: Hashable | None = None
    ) -> TokenExchange:
        """Validate a token request. Call ``commit()`` on the result to issue tokens."""
        return TokenExchange(
            params,
            authorizations=self.authorizations,
            handlers=self.handlers,
            resource_owner=resource_owner,
            issue_refresh_tokens=self.settings.issue_refresh_tokens,
        )

    def verify_access_token(self, access_token: str) -> Authorization | None:
        """Authorization behind a live bearer token (opaque or JWT), else None."""
        return self.authorizations.find_by_access_token(
            access_token,
            structured=self.token_codec is not None and looks_structured(access_token),
        )

    def structured_access_token(self, authorization: Authorization) -> str:
        """Sign a JWT that resolves to *authorization* at resource servers."""
        if self.token_codec is None:
            raise RuntimeError("Structured tokens need GRANTGATE_JWT_SECRET to be set")
        return self.token_codec.encode(authorization, self.settings.access_token_ttl or None)


# Singleton
_server: AuthorizationServer | None = None


def get_oauth_server() -> AuthorizationServer:
    global _server
    if _server is None:
        _server = AuthorizationServer()
    return _server


def reset_oauth_server() -> None:
    """Reset singleton (for testing)."""
    global _server
    _server = None
