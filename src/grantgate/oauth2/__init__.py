# OAuth2 token exchange: grant validation, client/authorization model, code scheme.
# Created: 2026-02-20

from grantgate.oauth2.exchange import TokenExchange
from grantgate.oauth2.handlers import GrantHandlerRegistry
from grantgate.oauth2.server import AuthorizationServer, get_oauth_server, reset_oauth_server

__all__ = [
    "AuthorizationServer",
    "GrantHandlerRegistry",
    "TokenExchange",
    "get_oauth_server",
    "reset_oauth_server",
]
