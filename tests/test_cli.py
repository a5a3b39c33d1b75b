# Tests for the grantgate command line.
# Created: 2026-02-20

import sys

import pytest

from grantgate.__main__ import main
from grantgate.config import reset_settings
from grantgate.oauth2.storage import OAuthStorage
from grantgate.oauth2.server import reset_oauth_server


@pytest.fixture(autouse=True)
def _env(monkeypatch, tmp_path):
    monkeypatch.setenv("GRANTGATE_STORAGE_PATH", str(tmp_path / "oauth2.json"))
    monkeypatch.setenv("GRANTGATE_BCRYPT_ROUNDS", "4")
    reset_settings()
    reset_oauth_server()
    yield
    reset_settings()
    reset_oauth_server()


def _run(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["grantgate", *argv])
    with pytest.raises(SystemExit) as exc_info:
        main()
    return exc_info.value.code


class TestCreateClient:
    def test_confidential(self, monkeypatch, capsys, tmp_path):
        code = _run(monkeypatch, "create-client", "App", "--redirect-uri", "https://app.example/cb")
        out = capsys.readouterr().out
        assert code == 0
        assert "client_id:" in out
        assert "client_secret:" in out
        assert OAuthStorage(tmp_path / "oauth2.json").client_name_exists("App")

    def test_native(self, monkeypatch, capsys):
        assert _run(monkeypatch, "create-client", "Phone", "--native") == 0
        assert "client_secret" not in capsys.readouterr().out

    def test_bad_redirect(self, monkeypatch, capsys):
        assert _run(monkeypatch, "create-client", "App", "--redirect-uri", "nope") == 2
        assert "absolute URI" in capsys.readouterr().err

    def test_serve_uses_settings(self, monkeypatch):
        calls = []
        monkeypatch.setattr(
            "grantgate.api.serve.run_api_server", lambda **kw: calls.append(kw)
        )
        monkeypatch.setenv("GRANTGATE_PORT", "9999")
        monkeypatch.setattr(sys, "argv", ["grantgate", "serve"])
        main()
        assert calls == [{"host": "127.0.0.1", "port": 9999, "dev": False}]

    def test_command_required(self, monkeypatch):
        assert _run(monkeypatch) == 2
