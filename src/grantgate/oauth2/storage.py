# OAuth2 client and authorization storage.
# Created: 2026-02-20
#
# In-memory, optionally mirrored to a JSON file so registered clients and live
# grants survive restarts. Records are copied on the way in and out so callers
# can only change stored state through the update methods, which are atomic
# under a single lock.

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Hashable
from dataclasses import asdict, replace
from datetime import datetime
from pathlib import Path
from typing import Any

from grantgate.oauth2.errors import DuplicateRecordError
from grantgate.oauth2.models import Authorization, ClientType, OAuthClient

logger = logging.getLogger(__name__)

# Hash columns with a uniqueness constraint
_UNIQUE_HASHES = ("code_hash", "access_token_hash", "refresh_token_hash")


class OAuthStorage:
    """Thread-safe storage.

    Uniqueness violations raise DuplicateRecordError, the only storage error
    the code scheme retries on. With a *persist_path*, owners must be
    JSON-serializable (str or int ids).
    """

    def __init__(self, persist_path: Path | None = None):
        self._lock = threading.RLock()
        self._clients: dict[str, OAuthClient] = {}
        self._authorizations: dict[str, Authorization] = {}
        self._persist_path = persist_path
        self._load()

    # -- persistence ---------------------------------------------------------

    def _load(self) -> None:
        """Load records from disk on startup."""
        path = self._persist_path
        if path is None or not path.exists():
            return
        try:
            data = json.loads(path.read_text())
            for entry in data.get("clients", []):
                entry["client_type"] = ClientType(entry["client_type"])
                entry["created_at"] = datetime.fromisoformat(entry["created_at"])
                client = OAuthClient(**entry)
                self._clients[client.client_id] = client
            for entry in data.get("authorizations", []):
                entry["scopes"] = frozenset(entry["scopes"])
                entry["created_at"] = datetime.fromisoformat(entry["created_at"])
                if entry.get("expires_at"):
                    entry["expires_at"] = datetime.fromisoformat(entry["expires_at"])
                auth = Authorization(**entry)
                self._authorizations[auth.id] = auth
            logger.debug(
                "Loaded %d clients, %d authorizations from %s",
                len(self._clients),
                len(self._authorizations),
                path,
            )
        except (json.JSONDecodeError, OSError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Failed to load OAuth2 records from %s: %s", path, exc)

    def _save(self) -> None:
        """Persist records to disk. Caller holds the lock."""
        path = self._persist_path
        if path is None:
            return
        clients = []
        for client in self._clients.values():
            entry = asdict(client)
            entry["client_type"] = client.client_type.value
            entry["created_at"] = client.created_at.isoformat()
            clients.append(entry)
        authorizations = []
        for auth in self._authorizations.values():
            entry = asdict(auth)
            entry["scopes"] = sorted(auth.scopes)
            entry["created_at"] = auth.created_at.isoformat()
            entry["expires_at"] = auth.expires_at.isoformat() if auth.expires_at else None
            authorizations.append(entry)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps({"clients": clients, "authorizations": authorizations}, indent=2)
        )
        try:
            path.chmod(0o600)
        except OSError:
            pass

    # -- clients -------------------------------------------------------------

    def add_client(self, client: OAuthClient) -> OAuthClient:
        with self._lock:
            if client.client_id in self._clients:
                raise DuplicateRecordError(f"client_id {client.client_id!r} already exists")
            if self._client_by_name(client.name) is not None:
                raise DuplicateRecordError(f"client name {client.name!r} already exists")
            self._clients[client.client_id] = replace(client)
            self._save()
        return replace(client)

    def update_client(self, client: OAuthClient) -> None:
        with self._lock:
            if client.client_id not in self._clients:
                raise KeyError(client.client_id)
            other = self._client_by_name(client.name)
            if other is not None and other.client_id != client.client_id:
                raise DuplicateRecordError(f"client name {client.name!r} already exists")
            self._clients[client.client_id] = replace(client)
            self._save()

    def get_client(self, client_id: str) -> OAuthClient | None:
        with self._lock:
            client = self._clients.get(client_id)
            return replace(client) if client else None

    def client_id_exists(self, client_id: str) -> bool:
        with self._lock:
            return client_id in self._clients

    def client_name_exists(self, name: str) -> bool:
        with self._lock:
            return self._client_by_name(name) is not None

    def delete_client(self, client_id: str) -> bool:
        """Delete a client and every authorization issued to it."""
        with self._lock:
            if self._clients.pop(client_id, None) is None:
                return False
            doomed = [k for k, a in self._authorizations.items() if a.client_id == client_id]
            for k in doomed:
                del self._authorizations[k]
            self._save()
        logger.info("Deleted client %s and %d authorizations", client_id, len(doomed))
        return True

    def _client_by_name(self, name: str) -> OAuthClient | None:
        for client in self._clients.values():
            if client.name == name:
                return client
        return None

    # -- authorizations ------------------------------------------------------

    def add_authorization(self, authorization: Authorization) -> Authorization:
        with self._lock:
            if authorization.id in self._authorizations:
                raise DuplicateRecordError(f"authorization {authorization.id!r} already exists")
            self._check_unique_hashes(authorization)
            self._authorizations[authorization.id] = replace(authorization)
            self._save()
        return replace(authorization)

    def get_authorization(self, authorization_id: str) -> Authorization | None:
        with self._lock:
            auth = self._authorizations.get(authorization_id)
            return replace(auth) if auth else None

    def find_authorization(self, owner: Hashable, client_id: str) -> Authorization | None:
        with self._lock:
            for auth in self._authorizations.values():
                if auth.owner == owner and auth.client_id == client_id:
                    return replace(auth)
        return None

    def find_by_code_hash(self, code_hash: str) -> Authorization | None:
        return self._find_by("code_hash", code_hash)

    def find_by_access_token_hash(self, token_hash: str) -> Authorization | None:
        return self._find_by("access_token_hash", token_hash)

    def find_by_refresh_token_hash(self, token_hash: str) -> Authorization | None:
        return self._find_by("refresh_token_hash", token_hash)

    def update_authorization(
        self, authorization: Authorization, expected: dict[str, Any] | None = None
    ) -> bool:
        """Replace the stored record if its current values match ``expected``.

        Returns False without writing when another writer got there first.
        Raises DuplicateRecordError if a new hash collides with another record.
        """
        with self._lock:
            current = self._authorizations.get(authorization.id)
            if current is None:
                return False
            for attr, value in (expected or {}).items():
                if getattr(current, attr) != value:
                    logger.debug("Authorization %s changed underneath update", authorization.id)
                    return False
            self._check_unique_hashes(authorization)
            self._authorizations[authorization.id] = replace(authorization)
            self._save()
        return True

    def update_authorization_fields(
        self,
        authorization_id: str,
        changes: dict[str, Any],
        expected: dict[str, Any] | None = None,
    ) -> Authorization | None:
        """Apply *changes* to the current stored record, leaving other fields alone.

        Returns the updated record, or None if the record is gone or its
        current values don't match ``expected``.
        """
        with self._lock:
            current = self._authorizations.get(authorization_id)
            if current is None:
                return None
            for attr, value in (expected or {}).items():
                if getattr(current, attr) != value:
                    logger.debug("Authorization %s changed underneath update", authorization_id)
                    return None
            updated = replace(current, **changes)
            self._check_unique_hashes(updated)
            self._authorizations[authorization_id] = updated
            self._save()
            return replace(updated)

    def count_authorizations(self) -> int:
        with self._lock:
            return len(self._authorizations)

    def _find_by(self, attr: str, value: str) -> Authorization | None:
        if not value:
            return None
        with self._lock:
            for auth in self._authorizations.values():
                if getattr(auth, attr) == value:
                    return replace(auth)
        return None

    def _check_unique_hashes(self, authorization: Authorization) -> None:
        for attr in _UNIQUE_HASHES:
            value = getattr(authorization, attr)
            if value is None:
                continue
            for other in self._authorizations.values():
                if other.id != authorization.id and getattr(other, attr) == value:
                    raise DuplicateRecordError(f"{attr} already exists")
