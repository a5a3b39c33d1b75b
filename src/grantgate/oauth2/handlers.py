# Host-supplied callbacks for grants that need external credential checks.
# Created: 2026-02-20
#
# Register once at startup:
#
#     registry = GrantHandlerRegistry()
#
#     @registry.handle_passwords
#     def check_password(client, username, password, scopes):
#         user = users.authenticate(username, password)
#         return server.grant_access(user.id, client, scopes) if user else None
#
#     @registry.handle_assertions("https://graph.facebook.com/me")
#     def facebook(client, assertion): ...

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable
from typing import TypeAlias

from grantgate.oauth2.models import Authorization, OAuthClient

logger = logging.getLogger(__name__)

PasswordHandler: TypeAlias = Callable[
    [OAuthClient, str, str, frozenset[str]], Authorization | None
]
ClientCredentialsHandler: TypeAlias = Callable[
    [OAuthClient, Hashable | None, frozenset[str]], Authorization | None
]
AssertionHandler: TypeAlias = Callable[[OAuthClient, str], Authorization | None]
AssertionFilter: TypeAlias = Callable[[OAuthClient], bool]


class GrantHandlerRegistry:
    """Password, client_credentials and assertion handlers for one server.

    Every ``handle_*``/``filter_*`` method returns the callback it was given, so
    each can be used as a decorator.
    """

    def __init__(self):
        self._password: PasswordHandler | None = None
        self._client_credentials: ClientCredentialsHandler | None = None
        self._assertions: dict[str, AssertionHandler] = {}
        self._assertion_filters: list[AssertionFilter] = []

    def handle_passwords(self, handler: PasswordHandler) -> PasswordHandler:
        self._password = handler
        return handler

    def handle_client_credentials(
        self, handler: ClientCredentialsHandler
    ) -> ClientCredentialsHandler:
        self._client_credentials = handler
        return handler

    def handle_assertions(self, assertion_type: str, handler: AssertionHandler | None = None):
        """Register *handler* for one assertion type URI (decorator if handler is omitted)."""

        def _register(fn: AssertionHandler) -> AssertionHandler:
            self._assertions[assertion_type] = fn
            logger.debug("Registered assertion handler for %s", assertion_type)
            return fn

        if handler is None:
            return _register
        return _register(handler)

    def filter_assertions(self, predicate: AssertionFilter) -> AssertionFilter:
        """Only clients accepted by every registered filter may use assertion grants."""
        self._assertion_filters.append(predicate)
        return predicate

    def clear_assertion_handlers(self) -> None:
        self._assertions.clear()
        self._assertion_filters.clear()

    def clear(self) -> None:
        """Drop every registered callback (for testing)."""
        self._password = None
        self._client_credentials = None
        self.clear_assertion_handlers()

    @property
    def password_handler(self) -> PasswordHandler | None:
        return self._password

    @property
    def client_credentials_handler(self) -> ClientCredentialsHandler | None:
        return self._client_credentials

    def assertion_handler(
        self, client: OAuthClient, assertion_type: str
    ) -> AssertionHandler | None:
        """Handler *client* may use for *assertion_type*, or None if it may not."""
        if not all(accept(client) for accept in self._assertion_filters):
            return None
        return self._assertions.get(assertion_type)
