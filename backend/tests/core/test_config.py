"""Tests for application settings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from leakscan.config import Settings


def test_probe_defaults() -> None:
    settings = Settings(AUTH_JWT_SECRET="configured")

    assert settings.PROBE_TIMEOUT_SECONDS == 5.0
    assert settings.PROBE_VERIFY_TLS is True
    assert settings.PROBE_MAX_CONCURRENCY is None


def test_cors_origins_accept_comma_separated_string() -> None:
    settings = Settings(
        AUTH_JWT_SECRET="configured",
        CORS_ORIGINS="https://app.example.com, http://localhost:5173,",
    )

    assert settings.CORS_ORIGINS == ["https://app.example.com", "http://localhost:5173"]


def test_cors_origins_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CORS_ORIGINS", '["https://a.example"]')

    assert Settings(AUTH_JWT_SECRET="configured").CORS_ORIGINS == ["https://a.example"]


@pytest.mark.parametrize("timeout", [0, -1.5])
def test_probe_timeout_must_be_positive(timeout: float) -> None:
    with pytest.raises(ValidationError):
        Settings(AUTH_JWT_SECRET="configured", PROBE_TIMEOUT_SECONDS=timeout)


def test_probe_concurrency_must_allow_one_probe() -> None:
    with pytest.raises(ValidationError):
        Settings(AUTH_JWT_SECRET="configured", PROBE_MAX_CONCURRENCY=0)


def test_default_secret_warns() -> None:
    with pytest.warns(UserWarning, match="AUTH_JWT_SECRET"):
        Settings()
