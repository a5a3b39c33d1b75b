# Token endpoint state machine: validate a token request, then commit it.
# Created: 2026-02-20
#
# Validation never raises for a bad request. The outcome is exposed as
# ``error``/``error_description`` (both None on success) and only a valid
# exchange may be committed.

from __future__ import annotations

import logging
from collections.abc import Hashable, Mapping
from typing import Any

from grantgate.oauth2.authorizations import AuthorizationManager, IssuedTokens
from grantgate.oauth2.clients import authenticate_client, is_absolute_uri
from grantgate.oauth2.errors import (
    INVALID_CLIENT,
    INVALID_GRANT,
    INVALID_GRANT_DESCRIPTION,
    INVALID_REQUEST,
    REDIRECT_MISMATCH,
    UNAUTHORIZED_CLIENT,
    UNSUPPORTED_GRANT_TYPE,
    ExchangeError,
    ExchangeStateError,
)
from grantgate.oauth2.handlers import GrantHandlerRegistry
from grantgate.oauth2.models import Authorization, OAuthClient, format_scope, parse_scope

logger = logging.getLogger(__name__)

AUTHORIZATION_CODE = "authorization_code"
PASSWORD = "password"
CLIENT_CREDENTIALS = "client_credentials"
REFRESH_TOKEN = "refresh_token"
ASSERTION = "assertion"

GRANT_TYPES = (AUTHORIZATION_CODE, PASSWORD, CLIENT_CREDENTIALS, REFRESH_TOKEN, ASSERTION)

# Grants that may hand out (and rotate) a refresh token
REFRESH_GRANTS = frozenset({AUTHORIZATION_CODE, REFRESH_TOKEN})
# Grants whose commit consumes the authorization code
CODE_CLEARING_GRANTS = frozenset({AUTHORIZATION_CODE, REFRESH_TOKEN})

TOKEN_TYPE = "bearer"

# Parameters read from a request; each must be a scalar (scope may also be a list)
REQUEST_PARAMETERS = (
    "grant_type",
    "client_id",
    "client_secret",
    "code",
    "redirect_uri",
    "code_verifier",
    "username",
    "password",
    "assertion_type",
    "assertion",
    "refresh_token",
    "scope",
)


def _invalid_grant() -> ExchangeError:
    return ExchangeError(INVALID_GRANT, INVALID_GRANT_DESCRIPTION)


class TokenExchange:
    """One token request against the authorization store.

    Parameters
    ----------
    params : Mapping
        Flat request parameters. A key mapped to None counts as absent; an
        empty string counts as present.
    authorizations : AuthorizationManager
        Access to clients and authorizations.
    handlers : GrantHandlerRegistry
        Callbacks for password, client_credentials and assertion grants.
    resource_owner : Hashable, optional
        The principal making the request, if the caller knows one.
    issue_refresh_tokens : bool
        Whether authorization_code and refresh_token grants issue a new
        refresh token on commit.
    """

    def __init__(
        self,
        params: Mapping[str, Any],
        *,
        authorizations: AuthorizationManager,
        handlers: GrantHandlerRegistry,
        resource_owner: Hashable | None = None,
        issue_refresh_tokens: bool = True,
    ):
        self.params = dict(params)
        self.resource_owner = resource_owner
        self.issue_refresh_tokens = issue_refresh_tokens
        self._authorizations = authorizations
        self._handlers = handlers

        self.grant_type: str | None = self._param("grant_type")
        self.client: OAuthClient | None = None
        self.authorization: Authorization | None = None
        self.scopes: frozenset[str] = frozenset()
        self.error: str | None = None
        self.error_description: str | None = None
        self._committed = False

        self._validate()

    @property
    def valid(self) -> bool:
        return self.error is None

    @property
    def scope(self) -> str:
        return format_scope(self.scopes)

    # -- commit ----------------------------------------------------------------

    def commit(self) -> dict[str, Any] | None:
        """Issue tokens for a validated request and return the token response body.

        Returns None (and sets ``invalid_grant``) if a concurrent request
        consumed the same code or refresh token first.
        """
        if not self.valid:
            raise ExchangeStateError(f"Cannot commit a failed exchange ({self.error})")
        if self._committed:
            raise ExchangeStateError("Exchange has already been committed")

        issued = self._authorizations.issue_tokens(
            self.authorization,
            rotate_refresh=self.issue_refresh_tokens and self.grant_type in REFRESH_GRANTS,
            clear_code=self.grant_type in CODE_CLEARING_GRANTS,
        )
        if issued is None:
            self._fail(_invalid_grant())
            return None

        self._committed = True
        self.authorization = self._authorizations.storage.get_authorization(
            self.authorization.id
        )
        logger.info(
            "Issued %s tokens to client %s (scope=%r)",
            self.grant_type,
            self.client.client_id,
            self.scope,
        )
        return self._token_body(issued)

    def error_body(self) -> dict[str, str] | None:
        if self.valid:
            return None
        return {"error": self.error, "error_description": self.error_description}

    def _token_body(self, issued: IssuedTokens) -> dict[str, Any]:
        body: dict[str, Any] = {
            "access_token": issued.access_token,
            "token_type": TOKEN_TYPE,
        }
        if issued.expires_in is not None:
            body["expires_in"] = issued.expires_in
        if issued.refresh_token is not None:
            body["refresh_token"] = issued.refresh_token
        body["scope"] = self.scope
        return body

    # -- validation ------------------------------------------------------------

    def _validate(self) -> None:
        try:
            self._validate_param_types()
            self._validate_grant_type()
            native = self._native_client()
            if native is not None:
                self.client = native
                self._validate_native_app()
            else:
                self._validate_client()
                getattr(self, f"_validate_{self.grant_type}")()
            self._validate_scope()
        except ExchangeError as exc:
            self._fail(exc)
            return
        logger.debug("Accepted %s request from client %s", self.grant_type, self.client.client_id)

    def _fail(self, exc: ExchangeError) -> None:
        self.error = exc.error
        self.error_description = exc.description
        logger.info("Rejected %s request: %s (%s)", self.grant_type, exc.error, exc.description)

    def _param(self, name: str) -> str | None:
        value = self.params.get(name)
        if value is None:
            return None
        if isinstance(value, (list, tuple)):
            return " ".join(str(item) for item in value)
        return str(value)

    def _validate_param_types(self) -> None:
        for name in REQUEST_PARAMETERS:
            value = self.params.get(name)
            if value is None or isinstance(value, (str, int, float)):
                continue
            if (
                name == "scope"
                and isinstance(value, (list, tuple))
                and all(isinstance(item, str) for item in value)
            ):
                continue
            raise ExchangeError(INVALID_REQUEST, f"Parameter {name} must be a string")

    def _require(self, *names: str) -> None:
        for name in names:
            if self._param(name) is None:
                raise ExchangeError(INVALID_REQUEST, f"Missing required parameter {name}")

    def _validate_grant_type(self) -> None:
        self._require("grant_type")
        if self.grant_type not in GRANT_TYPES:
            raise ExchangeError(
                UNSUPPORTED_GRANT_TYPE, f"The grant type {self.grant_type} is not recognized"
            )

    def _validate_client(self) -> None:
        # With both missing the secret is reported
        self._require("client_secret", "client_id")
        client_id = self._param("client_id")
        client = self._authorizations.storage.get_client(client_id)
        if client is None:
            raise ExchangeError(INVALID_CLIENT, f"Unknown client ID {client_id}")
        secret = self._param("client_secret")
        if not authenticate_client(client, secret, self._authorizations.scheme):
            raise ExchangeError(INVALID_CLIENT, "Parameter client_secret does not match")
        self.client = client

    def _native_client(self) -> OAuthClient | None:
        """The native client behind an authorization_code request, if there is one.

        An explicit client_id decides; without one, the client owning the
        presented code does (expired codes included, so expiry still reports
        invalid_grant rather than a missing secret).
        """
        if self.grant_type != AUTHORIZATION_CODE:
            return None
        storage = self._authorizations.storage
        client_id = self._param("client_id")
        if client_id is not None:
            client = storage.get_client(client_id)
        else:
            code = self._param("code")
            if code is None:
                return None
            auth = storage.find_by_code_hash(self._authorizations.scheme.hashify(code))
            client = storage.get_client(auth.client_id) if auth else None
        if client is not None and client.native_app:
            return client
        return None

    def _validate_native_app(self) -> None:
        if self._param("client_secret") is not None:
            raise ExchangeError(
                INVALID_REQUEST, "[:client_secret] must not be provided for native app"
            )
        self._require("code", "code_verifier")
        self._validate_authorization_code(pkce=True)

    def _validate_authorization_code(self, pkce: bool = False) -> None:
        self._require("code")
        registered_uri = self.client.redirect_uri
        if registered_uri:
            self._require("redirect_uri")

        auth = self._authorizations.find_by_code(self._param("code"))
        if auth is None or auth.client_id != self.client.client_id:
            raise _invalid_grant()
        if pkce and not self._authorizations.scheme.verify_pkce(
            auth.pkce_challenge, self._param("code_verifier")
        ):
            raise _invalid_grant()

        if registered_uri and self._param("redirect_uri") != registered_uri:
            raise ExchangeError(
                REDIRECT_MISMATCH, "Parameter redirect_uri does not match registered URI"
            )
        self.authorization = auth

    def _validate_password(self) -> None:
        self._require("username", "password")
        handler = self._handlers.password_handler
        if handler is None:
            logger.warning("Password grant requested but no password handler is registered")
            raise _invalid_grant()
        auth = handler(
            self.client,
            self._param("username"),
            self._param("password"),
            parse_scope(self._param("scope")),
        )
        self._accept_handler_result(auth)

    def _validate_client_credentials(self) -> None:
        handler = self._handlers.client_credentials_handler
        if handler is None:
            logger.warning("client_credentials grant requested but no handler is registered")
            raise _invalid_grant()
        auth = handler(self.client, self.client.owner, parse_scope(self._param("scope")))
        self._accept_handler_result(auth)

    def _validate_assertion(self) -> None:
        self._require("assertion_type", "assertion")
        assertion_type = self._param("assertion_type")
        if not is_absolute_uri(assertion_type):
            raise ExchangeError(
                INVALID_REQUEST, "Parameter assertion_type must be an absolute URI"
            )
        handler = self._handlers.assertion_handler(self.client, assertion_type)
        if handler is None:
            raise ExchangeError(UNAUTHORIZED_CLIENT, "Client cannot use the given assertion type")
        self._accept_handler_result(handler(self.client, self._param("assertion")))

    def _validate_refresh_token(self) -> None:
        self._require("refresh_token")
        auth = self._authorizations.find_by_refresh_token(self._param("refresh_token"))
        if auth is None or auth.client_id != self.client.client_id:
            raise _invalid_grant()
        self.authorization = auth

    def _accept_handler_result(self, auth: Authorization | None) -> None:
        if auth is None or auth.client_id != self.client.client_id:
            raise _invalid_grant()
        # Re-read so commit compares against what storage actually holds
        stored = self._authorizations.storage.get_authorization(auth.id)
        if stored is None:
            raise _invalid_grant()
        self.authorization = stored

    def _validate_scope(self) -> None:
        self.scopes = self._authorizations.narrow_scope(self.authorization, self._param("scope"))
