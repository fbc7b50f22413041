# Tests for settings, logging setup and the CLI.
# Created: 2026-10-05

import json
import logging

import pytest
from pydantic import ValidationError

import tokenwarden.config as config_mod
from tokenwarden.__main__ import main
from tokenwarden.config import ConfigError, Settings, get_settings
from tokenwarden.logging_setup import JSONFormatter

A = "a" * 32
B = "b" * 32
C = "c" * 32


@pytest.fixture
def env(monkeypatch):
    for var in ("ACCESS_TOKEN_SECRET", "REFRESH_TOKEN_SECRET", "SESSION_SECRET"):
        monkeypatch.delenv(f"TOKENWARDEN_{var}", raising=False)
    monkeypatch.setattr(config_mod, "_settings", None)
    # Keep a developer's .env out of the tests
    monkeypatch.setitem(Settings.model_config, "env_file", None)
    return monkeypatch


def _set_secrets(env, access=A, refresh=B, session=C):
    env.setenv("TOKENWARDEN_ACCESS_TOKEN_SECRET", access)
    env.setenv("TOKENWARDEN_REFRESH_TOKEN_SECRET", refresh)
    env.setenv("TOKENWARDEN_SESSION_SECRET", session)


class TestSettings:
    def test_defaults(self):
        s = Settings(access_token_secret=A, refresh_token_secret=B, session_secret=C)
        assert s.access_token_ttl == 3600
        assert s.refresh_token_ttl == 30 * 24 * 3600
        assert s.pkce_session_ttl == 300
        assert s.jwt_algorithm == "HS256"
        assert s.is_production is False
        assert s.json_logs is False

    def test_secrets_are_not_printed(self):
        s = Settings(access_token_secret=A, refresh_token_secret=B, session_secret=C)
        assert A not in repr(s)

    def test_short_secret(self):
        with pytest.raises(ValidationError, match="at least 32 bytes"):
            Settings(access_token_secret="short", refresh_token_secret=B, session_secret=C)

    def test_shared_secret(self):
        with pytest.raises(ValidationError, match="distinct"):
            Settings(access_token_secret=A, refresh_token_secret=A, session_secret=C)

    def test_production_requires_https_issuer(self):
        with pytest.raises(ValidationError, match="HTTPS"):
            Settings(
                access_token_secret=A,
                refresh_token_secret=B,
                session_secret=C,
                environment="production",
                issuer="http://auth.example.test",
            )

    def test_production_defaults_to_json_logs(self):
        s = Settings(
            access_token_secret=A,
            refresh_token_secret=B,
            session_secret=C,
            environment="production",
            issuer="https://auth.example.test",
        )
        assert s.json_logs is True
        assert s.is_production is True

    def test_from_environment(self, env):
        _set_secrets(env)
        env.setenv("TOKENWARDEN_ACCESS_TOKEN_TTL", "600")
        env.setenv(
            "TOKENWARDEN_CLIENTS",
            '[{"client_id": "web", "redirect_uris": ["https://web/cb"]}]',
        )
        s = Settings.load()
        assert s.access_token_ttl == 600
        assert s.clients[0].client_id == "web"
        assert s.clients[0].default_scopes == ["profile"]

    def test_missing_secret_is_config_error(self, env):
        with pytest.raises(ConfigError):
            get_settings()

    def test_weak_secret_is_config_error(self, env):
        _set_secrets(env, access="too-short")
        with pytest.raises(ConfigError, match="access_token_secret"):
            Settings.load()

    def test_get_settings_is_cached(self, env):
        _set_secrets(env)
        assert get_settings() is get_settings()


class TestJSONFormatter:
    def test_one_object_per_line_with_extra(self):
        record = logging.LogRecord("tokenwarden.audit", logging.INFO, "", 0, "hello %s", ("x",), None)
        record.audit = {"action": "token_issued"}
        line = JSONFormatter().format(record)
        assert "\n" not in line
        data = json.loads(line)
        assert data["message"] == "hello x"
        assert data["level"] == "info"
        assert data["logger"] == "tokenwarden.audit"
        assert data["audit"] == {"action": "token_issued"}


class TestCLI:
    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "serve" in capsys.readouterr().out

    def test_check_config_ok(self, env, monkeypatch):
        _set_secrets(env)
        monkeypatch.setattr("tokenwarden.logging_setup._configured", True)
        assert main(["check-config"]) == 0

    def test_refuses_to_start_without_secrets(self, env, monkeypatch):
        monkeypatch.setattr("tokenwarden.logging_setup._configured", True)
        assert main(["serve"]) == 2

    def test_serve_runs_uvicorn(self, env, monkeypatch):
        _set_secrets(env)
        monkeypatch.setattr("tokenwarden.logging_setup._configured", True)
        calls = []
        monkeypatch.setattr(
            "tokenwarden.api.serve.run_api_server", lambda **kw: calls.append(kw)
        )
        assert main(["serve", "--port", "9000"]) == 0
        assert calls == [{"host": "127.0.0.1", "port": 9000, "dev": False}]

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["--version"])
        assert exc.value.code == 0
        assert "tokenwarden" in capsys.readouterr().out
