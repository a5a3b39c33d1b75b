# OAuth2 client registration and authentication.
# Created: 2026-02-20
#
# The raw client secret is returned once at creation; only its bcrypt hash is
# stored (like GitHub PATs).

from __future__ import annotations

import logging
from collections.abc import Hashable
from urllib.parse import urlparse

from grantgate.oauth2.codes import SecureCodeScheme
from grantgate.oauth2.errors import DuplicateRecordError, FormatError
from grantgate.oauth2.models import ClientType, OAuthClient
from grantgate.oauth2.storage import OAuthStorage

logger = logging.getLogger(__name__)


def is_absolute_uri(value: str | None) -> bool:
    """True if *value* parses as a URI with a scheme."""
    if not value:
        return False
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return bool(parsed.scheme)


def create_client(
    storage: OAuthStorage,
    name: str,
    redirect_uri: str | None = None,
    *,
    client_type: ClientType = ClientType.CONFIDENTIAL,
    owner: Hashable | None = None,
    scheme: SecureCodeScheme | None = None,
) -> tuple[OAuthClient, str | None]:
    """Register a client. Returns (client, raw_secret).

    Native clients get no secret (raw_secret is None). Raises FormatError for
    a missing name, a missing or relative redirect URI, or a taken name.
    """
    scheme = scheme or SecureCodeScheme()
    client_type = ClientType(client_type)

    if not name:
        raise FormatError("name can't be blank")
    if redirect_uri is None or redirect_uri == "":
        if client_type == ClientType.CONFIDENTIAL:
            raise FormatError("redirect_uri can't be blank")
        redirect_uri = None
    elif not is_absolute_uri(redirect_uri):
        raise FormatError("redirect_uri must be an absolute URI")
    if storage.client_name_exists(name):
        raise FormatError("name has already been taken")

    raw_secret = None
    secret_hash = None
    if client_type == ClientType.CONFIDENTIAL:
        raw_secret = scheme.random_string()
        secret_hash = scheme.password_hash(raw_secret)

    def _write(client_id: str) -> OAuthClient:
        client = OAuthClient(
            client_id=client_id,
            name=name,
            client_secret_hash=secret_hash,
            redirect_uri=redirect_uri,
            client_type=client_type,
            owner=owner,
        )
        try:
            return storage.add_client(client)
        except DuplicateRecordError:
            # A concurrent registration took the name; retrying won't help
            if storage.client_name_exists(name):
                raise FormatError("name has already been taken") from None
            raise

    client = scheme.write_unique(_write, exists=storage.client_id_exists)
    logger.info("Registered %s client %r (%s)", client_type.value, name, client.client_id)
    return client, raw_secret


def authenticate_client(
    client: OAuthClient, secret: str | None, scheme: SecureCodeScheme | None = None
) -> bool:
    """Check a presented client secret. Native clients always pass."""
    if client.native_app:
        return True
    scheme = scheme or SecureCodeScheme()
    return scheme.verify_password(client.client_secret_hash, secret)
