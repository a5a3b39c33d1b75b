# Tests for client registration, authentication and storage.
# Created: 2026-02-20

import pytest

from grantgate.oauth2.clients import authenticate_client, create_client, is_absolute_uri
from grantgate.oauth2.codes import SecureCodeScheme
from grantgate.oauth2.errors import CodeGenerationError, DuplicateRecordError, FormatError
from grantgate.oauth2.models import Authorization, ClientType
from grantgate.oauth2.storage import OAuthStorage


@pytest.fixture
def storage():
    return OAuthStorage()


@pytest.fixture
def scheme():
    return SecureCodeScheme(max_attempts=3, bcrypt_rounds=4)


class TestCreateClient:
    def test_create_confidential(self, storage, scheme):
        client, secret = create_client(storage, "App", "https://app.example/cb", scheme=scheme)
        assert client.client_id
        assert client.client_type == ClientType.CONFIDENTIAL
        assert secret
        assert client.client_secret_hash != secret
        assert storage.get_client(client.client_id) == client

    def test_secret_is_not_stored(self, storage, scheme):
        client, secret = create_client(storage, "App", "https://app.example/cb", scheme=scheme)
        stored = storage.get_client(client.client_id)
        assert secret not in vars(stored).values()
        assert scheme.verify_password(stored.client_secret_hash, secret)

    def test_create_native_without_redirect(self, storage, scheme):
        client, secret = create_client(
            storage, "Phone", client_type=ClientType.NATIVE, scheme=scheme
        )
        assert secret is None
        assert client.native_app
        assert client.redirect_uri is None

    def test_owner_is_kept(self, storage, scheme):
        client, _ = create_client(
            storage, "App", "https://app.example/cb", owner=("org", 7), scheme=scheme
        )
        assert storage.get_client(client.client_id).owner == ("org", 7)

    @pytest.mark.parametrize("name", ["", None])
    def test_name_required(self, storage, scheme, name):
        with pytest.raises(FormatError):
            create_client(storage, name, "https://app.example/cb", scheme=scheme)

    def test_confidential_requires_redirect(self, storage, scheme):
        with pytest.raises(FormatError, match="redirect_uri can't be blank"):
            create_client(storage, "App", None, scheme=scheme)

    @pytest.mark.parametrize("uri", ["not a uri", "/relative/path", "app.example/cb"])
    def test_redirect_must_be_absolute(self, storage, scheme, uri):
        with pytest.raises(FormatError, match="must be an absolute URI"):
            create_client(storage, "App", uri, scheme=scheme)

    def test_duplicate_name(self, storage, scheme):
        create_client(storage, "App", "https://app.example/cb", scheme=scheme)
        with pytest.raises(FormatError, match="already been taken"):
            create_client(storage, "App", "https://other.example/cb", scheme=scheme)

    def test_client_id_collision_is_retried(self, storage, scheme, monkeypatch):
        first, _ = create_client(storage, "First", "https://app.example/cb", scheme=scheme)
        values = iter(["secret-1", first.client_id, "fresh-id"])
        monkeypatch.setattr(scheme, "random_string", lambda: next(values))

        second, secret = create_client(storage, "Second", "https://app.example/cb", scheme=scheme)

        assert secret == "secret-1"
        assert second.client_id == "fresh-id"

    def test_client_id_generation_exhausted(self, storage, scheme, monkeypatch):
        first, _ = create_client(storage, "First", "https://app.example/cb", scheme=scheme)
        monkeypatch.setattr(scheme, "random_string", lambda: first.client_id)
        with pytest.raises(CodeGenerationError):
            create_client(storage, "Second", "https://app.example/cb", scheme=scheme)


class TestAuthenticateClient:
    def test_confidential(self, storage, scheme):
        client, secret = create_client(storage, "App", "https://app.example/cb", scheme=scheme)
        assert authenticate_client(client, secret, scheme)
        assert not authenticate_client(client, "wrong", scheme)
        assert not authenticate_client(client, None, scheme)

    def test_native_always_passes(self, storage, scheme):
        client, _ = create_client(storage, "Phone", client_type=ClientType.NATIVE, scheme=scheme)
        assert authenticate_client(client, None, scheme)
        assert authenticate_client(client, "anything", scheme)


class TestIsAbsoluteUri:
    @pytest.mark.parametrize(
        "uri",
        [
            "https://app.example/cb",
            "http://localhost:1420/cb",
            "com.example.app:/cb",
            "http://",
            "urn:example",
        ],
    )
    def test_absolute(self, uri):
        assert is_absolute_uri(uri)

    @pytest.mark.parametrize("uri", [None, "", "invalid", "/cb", "//host/cb"])
    def test_not_absolute(self, uri):
        assert not is_absolute_uri(uri)


class TestStorage:
    def test_records_are_copies(self, storage, scheme):
        client, _ = create_client(storage, "App", "https://app.example/cb", scheme=scheme)
        client.redirect_uri = "https://changed.example"
        assert storage.get_client(client.client_id).redirect_uri == "https://app.example/cb"

    def test_update_client_name_clash(self, storage, scheme):
        create_client(storage, "One", "https://app.example/cb", scheme=scheme)
        two, _ = create_client(storage, "Two", "https://app.example/cb", scheme=scheme)
        two.name = "One"
        with pytest.raises(DuplicateRecordError):
            storage.update_client(two)

    def test_duplicate_hash_rejected(self, storage):
        storage.add_authorization(Authorization(id="a", owner="bob", client_id="c", code_hash="h"))
        with pytest.raises(DuplicateRecordError):
            storage.add_authorization(
                Authorization(id="b", owner="alice", client_id="c", code_hash="h")
            )

    def test_conditional_update(self, storage):
        storage.add_authorization(Authorization(id="a", owner="bob", client_id="c", code_hash="h"))
        auth = storage.get_authorization("a")
        auth.code_hash = None
        assert not storage.update_authorization(auth, {"code_hash": "other"})
        assert storage.update_authorization(auth, {"code_hash": "h"})
        assert storage.get_authorization("a").code_hash is None

    def test_update_missing_authorization(self, storage):
        assert not storage.update_authorization(Authorization(id="x", owner="o", client_id="c"))

    def test_field_update_leaves_other_fields(self, storage):
        storage.add_authorization(
            Authorization(
                id="a", owner="bob", client_id="c", code_hash="h", refresh_token_hash="r"
            )
        )
        updated = storage.update_authorization_fields("a", {"code_hash": "h2"})
        assert updated.code_hash == "h2"
        assert storage.get_authorization("a").refresh_token_hash == "r"

    def test_field_update_expectation(self, storage):
        storage.add_authorization(Authorization(id="a", owner="bob", client_id="c", code_hash="h"))
        stale = {"code_hash": "x"}
        assert storage.update_authorization_fields("a", {"code_hash": None}, stale) is None
        assert storage.get_authorization("a").code_hash == "h"
        assert storage.update_authorization_fields("x", {"code_hash": None}) is None

    def test_field_update_duplicate_hash(self, storage):
        storage.add_authorization(Authorization(id="a", owner="bob", client_id="c", code_hash="h"))
        storage.add_authorization(Authorization(id="b", owner="amy", client_id="c"))
        with pytest.raises(DuplicateRecordError):
            storage.update_authorization_fields("b", {"code_hash": "h"})

    def test_delete_client_cascades(self, storage, scheme):
        client, _ = create_client(storage, "App", "https://app.example/cb", scheme=scheme)
        storage.add_authorization(Authorization(id="a", owner="bob", client_id=client.client_id))
        storage.add_authorization(Authorization(id="b", owner="bob", client_id="someone-else"))

        assert storage.delete_client(client.client_id)
        assert storage.get_client(client.client_id) is None
        assert storage.get_authorization("a") is None
        assert storage.get_authorization("b") is not None
        assert not storage.delete_client(client.client_id)

    def test_persistence_roundtrip(self, tmp_path, scheme):
        path = tmp_path / "oauth2.json"
        storage = OAuthStorage(path)
        client, secret = create_client(storage, "App", "https://app.example/cb", scheme=scheme)
        storage.add_authorization(
            Authorization(
                id="a",
                owner="bob",
                client_id=client.client_id,
                scopes=frozenset({"foo", "bar"}),
                code_hash="h",
            )
        )

        reloaded = OAuthStorage(path)
        loaded = reloaded.get_client(client.client_id)
        assert loaded == client
        assert scheme.verify_password(loaded.client_secret_hash, secret)
        auth = reloaded.find_by_code_hash("h")
        assert auth.scopes == frozenset({"foo", "bar"})
        assert auth.owner == "bob"

    def test_corrupt_file_is_ignored(self, tmp_path):
        path = tmp_path / "oauth2.json"
        path.write_text("{not json")
        storage = OAuthStorage(path)
        assert storage.count_authorizations() == 0
