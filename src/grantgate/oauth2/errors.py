# OAuth2 error codes and exception types.
# Created: 2026-02-20
#
# Error codes and descriptions are part of the token endpoint's wire contract.

from __future__ import annotations

INVALID_REQUEST = "invalid_request"
UNSUPPORTED_GRANT_TYPE = "unsupported_grant_type"
INVALID_CLIENT = "invalid_client"
INVALID_GRANT = "invalid_grant"
INVALID_SCOPE = "invalid_scope"
REDIRECT_MISMATCH = "redirect_uri_mismatch"
UNAUTHORIZED_CLIENT = "unauthorized_client"

INVALID_GRANT_DESCRIPTION = "The access grant you supplied is invalid"
INVALID_SCOPE_DESCRIPTION = "The request scope was never granted by the user"


class OAuth2Error(Exception):
    """Base class for all grantgate OAuth2 errors."""


class ExchangeError(OAuth2Error):
    """A token request failed validation.

    Carries the ``(error, error_description)`` pair returned to the client.
    """

    def __init__(self, error: str, description: str):
        super().__init__(f"{error}: {description}")
        self.error = error
        self.description = description


class ScopeError(ExchangeError):
    def __init__(self, description: str = INVALID_SCOPE_DESCRIPTION):
        super().__init__(INVALID_SCOPE, description)


class ExchangeStateError(OAuth2Error):
    """commit() was called on an exchange that did not validate."""


class FormatError(OAuth2Error, ValueError):
    """Malformed client registration input."""


class DuplicateRecordError(OAuth2Error):
    """Storage rejected a write because a unique value already exists."""


class CodeGenerationError(OAuth2Error, RuntimeError):
    """No unique value could be generated within the retry bound."""


class TokenDecodeError(OAuth2Error):
    """A structured bearer token could not be decoded or verified."""
