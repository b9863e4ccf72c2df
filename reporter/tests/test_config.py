"""
Settings and credential resolution tests.

Exactly one credential variant is resolved per process. Pre-issued
tokens win over signing secrets, and a mode with neither fails fast.
"""

import pytest
from jose import jwt
from pydantic import TypeAdapter, ValidationError

from reporter.app.core.config import Settings
from reporter.app.core.errors import ConfigurationError
from reporter.app.schemas.credentials import (
    Credentials,
    ServiceBearer,
    SessionCookies,
)
from reporter.app.services.tokens import csrf_binding_matches


def _settings(**values) -> Settings:
    return Settings(_env_file=None, **values)


def test_defaults():
    settings = _settings()

    assert settings.base_url == "http://localhost:5007"
    assert settings.port == 8080
    assert settings.auth_mode == "service"


def test_reads_prefixed_environment(monkeypatch):
    monkeypatch.setenv("REPORTER_BACKEND_URL", "http://records.internal:9000/")
    monkeypatch.setenv("REPORTER_AUTH_MODE", "session")

    settings = _settings()

    assert settings.base_url == "http://records.internal:9000"
    assert settings.auth_mode == "session"


def test_secrets_are_redacted():
    settings = _settings(service_token="very-secret-token")

    assert "very-secret-token" not in repr(settings)


# ---------------------------------------------------------------------------
# Service mode
# ---------------------------------------------------------------------------

def test_service_mode_prefers_pre_issued_token():
    credentials = _settings(
        service_token="pre-issued",
        service_token_secret="secret",
    ).resolve_credentials()

    assert isinstance(credentials, ServiceBearer)
    assert credentials.token.get_secret_value() == "pre-issued"


def test_service_mode_issues_token_from_secret():
    credentials = _settings(
        service_token_secret="service-secret",
        service_name="report-service",
    ).resolve_credentials()

    claims = jwt.decode(
        credentials.token.get_secret_value(),
        "service-secret",
        algorithms=["HS256"],
    )
    assert claims == {"service": "report-service"}


def test_service_mode_without_token_or_secret_fails():
    with pytest.raises(ConfigurationError):
        _settings(auth_mode="service").resolve_credentials()


# ---------------------------------------------------------------------------
# Session mode
# ---------------------------------------------------------------------------

def test_session_mode_uses_configured_cookies():
    credentials = _settings(
        auth_mode="session",
        access_token="acc",
        csrf_token="csrf",
        refresh_token="ref",
    ).resolve_credentials()

    assert isinstance(credentials, SessionCookies)
    assert credentials.access.get_secret_value() == "acc"
    assert credentials.csrf.get_secret_value() == "csrf"
    assert credentials.refresh.get_secret_value() == "ref"


def test_session_mode_issues_bound_access_token_from_secret():
    credentials = _settings(
        auth_mode="session",
        access_token_secret="access-secret",
    ).resolve_credentials()

    claims = jwt.decode(
        credentials.access.get_secret_value(),
        "access-secret",
        algorithms=["HS256"],
    )
    assert csrf_binding_matches(
        claims["csrf_hmac"],
        credentials.csrf.get_secret_value(),
        "access-secret",
    )
    assert credentials.refresh.get_secret_value() == ""


def test_session_mode_requires_csrf_with_access_token():
    with pytest.raises(ConfigurationError):
        _settings(auth_mode="session", access_token="acc").resolve_credentials()


def test_invalid_auth_mode_is_rejected():
    with pytest.raises(ValueError):
        _settings(auth_mode="both")


# ---------------------------------------------------------------------------
# Credential variants
# ---------------------------------------------------------------------------

def test_credentials_cannot_mix_variants():
    with pytest.raises(ValidationError):
        SessionCookies(access="a", csrf="c", token="svc-token")

    with pytest.raises(ValidationError):
        ServiceBearer(token="svc-token", access="a")


def test_credentials_union_dispatches_on_kind():
    adapter = TypeAdapter(Credentials)

    assert isinstance(adapter.validate_python({"kind": "service", "token": "t"}), ServiceBearer)
    assert isinstance(
        adapter.validate_python({"kind": "session", "access": "a", "csrf": "c"}),
        SessionCookies,
    )
    with pytest.raises(ValidationError):
        adapter.validate_python({"token": "t", "access": "a", "csrf": "c"})
