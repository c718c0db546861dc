"""Tests for Settings defaults and environment overrides."""

import pytest

from app.core.config import Settings

pytestmark = pytest.mark.unit


def test_defaults_use_sql_backend_and_utc_periods(monkeypatch):
    monkeypatch.delenv("ARTIFACT_BACKEND", raising=False)
    monkeypatch.delenv("ARTIFACT_PERIOD_TIMEZONE", raising=False)

    settings = Settings(_env_file=None)

    assert settings.artifact_backend == "sql"
    assert settings.artifact_period_timezone == "UTC"
    assert settings.is_production is False


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "production")
    monkeypatch.setenv("ARTIFACT_RETENTION_DAYS", "7")

    settings = Settings(_env_file=None)

    assert settings.is_production is True
    assert settings.artifact_retention_days == 7


def test_only_artifact_service_settings_are_declared():
    assert "public_routes" not in Settings.model_fields
