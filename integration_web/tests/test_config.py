"""Tests for configuration loading and fail-fast behaviour."""
import pytest

from integration_web.config import (
    DEFAULT_ACCESS_TOKEN_URL,
    DEFAULT_AUTHORIZE_URL,
    DEFAULT_REDIRECT_URI,
    DEFAULT_SCOPE,
    load_settings,
)
from integration_web.errors import ConfigurationError
from integration_web.main import create_app

CREDS = {"CLIENT_ID": "cid", "CLIENT_SECRET": "csecret"}


def test_defaults_applied():
    s = load_settings(CREDS)
    assert s.client_id == "cid"
    assert s.client_secret == "csecret"
    assert s.authorize_url == DEFAULT_AUTHORIZE_URL
    assert s.access_token_url == DEFAULT_ACCESS_TOKEN_URL
    assert s.redirect_uri == DEFAULT_REDIRECT_URI
    assert s.scope == DEFAULT_SCOPE
    assert s.host == "0.0.0.0"
    assert s.port == 10000
    assert s.http_retries == 3
    assert s.session_store_url is None


def test_environment_overrides():
    s = load_settings(
        {
            **CREDS,
            "AUTH_AUTHORIZE_URL": "https://idp/authorize",
            "AUTH_ACCESS_TOKEN_URL": "https://idp/token",
            "REDIRECT_URI": "https://app.example/",
            "SCOPE": "a b",
            "SESSION_SECRET": "x" * 32,
            "PORT": "4242",
            "HTTP_TIMEOUT": "2.5",
            "SESSION_STORE_URL": "sqlite:///./sessions.db",
            "LOG_LEVEL": "debug",
        }
    )
    assert s.authorize_url == "https://idp/authorize"
    assert s.access_token_url == "https://idp/token"
    assert s.redirect_uri == "https://app.example/"
    assert s.scope == "a b"
    assert s.port == 4242
    assert s.http_timeout == 2.5
    assert s.session_store_url == "sqlite:///./sessions.db"
    assert s.log_level == "DEBUG"


@pytest.mark.parametrize(
    "env",
    [
        {},
        {"CLIENT_ID": "cid"},
        {"CLIENT_SECRET": "csecret"},
        {"CLIENT_ID": "  ", "CLIENT_SECRET": "csecret"},
    ],
)
def test_missing_credentials_fail_fast(env):
    with pytest.raises(ConfigurationError):
        load_settings(env)


@pytest.mark.parametrize(
    "extra",
    [{"PORT": "abc"}, {"PORT": "70000"}, {"HTTP_TIMEOUT": "fast"}, {"HTTP_RETRIES": "-1"}],
)
def test_malformed_numbers_rejected(extra):
    with pytest.raises(ConfigurationError):
        load_settings({**CREDS, **extra})


def test_secrets_hidden_from_repr():
    s = load_settings({**CREDS, "SESSION_SECRET": "session-secret-value"})
    assert "csecret" not in repr(s)
    assert "session-secret-value" not in repr(s)


def test_default_session_secret_warns(caplog):
    with caplog.at_level("WARNING", logger="integration_web.config"):
        load_settings(CREDS)
    assert "SESSION_SECRET" in caplog.text


def test_create_app_without_credentials_fails(monkeypatch):
    monkeypatch.delenv("CLIENT_ID", raising=False)
    monkeypatch.delenv("CLIENT_SECRET", raising=False)
    with pytest.raises(ConfigurationError):
        create_app()
