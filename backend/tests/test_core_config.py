"""
Tests for app/core/config.py - Configuration and settings validation.
"""
import importlib

import pytest

from app.core import config


@pytest.fixture(autouse=True)
def restore_settings():
    yield
    importlib.reload(config)


class TestSettingsValidation:
    """Test configuration validation logic."""

    def test_development_mode_allows_default_secrets(self, monkeypatch):
        """Development mode should allow default/insecure secrets."""
        monkeypatch.setenv("ENVIRONMENT", "development")
        monkeypatch.setenv("DEBUG", "true")
        monkeypatch.delenv("SECRET_KEY", raising=False)

        importlib.reload(config)

        assert config.settings.ENVIRONMENT == "development"
        assert config.settings.DEBUG is True

    def test_production_mode_rejects_default_secret_key(self, monkeypatch):
        """Production mode must reject default SECRET_KEY."""
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("DEBUG", "false")
        monkeypatch.setenv("ALLOWED_ORIGINS", "https://hse.example.com")
        monkeypatch.delenv("SECRET_KEY", raising=False)

        with pytest.raises(ValueError) as exc_info:
            importlib.reload(config)

        assert "Configuration errors" in str(exc_info.value)
        assert "SECRET_KEY is insecure" in str(exc_info.value)

    def test_production_mode_rejects_insecure_db_password(self, monkeypatch):
        """Production mode must reject insecure database passwords."""
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("DEBUG", "false")
        monkeypatch.setenv("ALLOWED_ORIGINS", "https://hse.example.com")
        monkeypatch.setenv("SECRET_KEY", "a-very-secure-secret-key-that-is-long-enough-32chars")
        monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://hse:postgres@db:5432/hse_portal")

        with pytest.raises(ValueError) as exc_info:
            importlib.reload(config)

        assert "insecure password" in str(exc_info.value)

    def test_production_mode_requires_real_origins(self, monkeypatch):
        """Localhost CORS defaults are not accepted in production."""
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("DEBUG", "false")
        monkeypatch.setenv("SECRET_KEY", "a-very-secure-secret-key-that-is-long-enough-32chars")
        monkeypatch.delenv("ALLOWED_ORIGINS", raising=False)

        with pytest.raises(ValueError) as exc_info:
            importlib.reload(config)

        assert "ALLOWED_ORIGINS" in str(exc_info.value)

    def test_production_mode_rejects_debug(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("DEBUG", "true")
        monkeypatch.setenv("ALLOWED_ORIGINS", "https://hse.example.com")
        monkeypatch.setenv("SECRET_KEY", "a-very-secure-secret-key-that-is-long-enough-32chars")

        with pytest.raises(ValueError) as exc_info:
            importlib.reload(config)

        assert "DEBUG must be False" in str(exc_info.value)

    def test_production_mode_accepts_secure_configuration(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("DEBUG", "false")
        monkeypatch.setenv("ALLOWED_ORIGINS", "https://hse.example.com,https://app.example.com")
        monkeypatch.setenv("SECRET_KEY", "a-very-secure-secret-key-that-is-long-enough-32chars")
        monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://hse:s3cure-pw@db:5432/hse_portal")

        importlib.reload(config)

        assert config.settings.COOKIE_SECURE is True
        assert config.settings.ALLOWED_ORIGINS == ["https://hse.example.com", "https://app.example.com"]

    def test_recurrence_interval_must_be_positive(self, monkeypatch):
        monkeypatch.setenv("CHECKUP_RECURRENCE_YEARS", "0")

        with pytest.raises(ValueError) as exc_info:
            importlib.reload(config)

        assert "CHECKUP_RECURRENCE_YEARS" in str(exc_info.value)


class TestDerivedSettings:
    """Test values computed from other settings."""

    def test_database_url_built_from_postgres_parts(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.setenv("POSTGRES_USER", "hse")
        monkeypatch.setenv("POSTGRES_PASSWORD", "pw")
        monkeypatch.setenv("POSTGRES_SERVER", "db.internal")
        monkeypatch.setenv("POSTGRES_DB", "portal")

        importlib.reload(config)

        assert config.settings.DATABASE_URL == "postgresql+asyncpg://hse:pw@db.internal:5432/portal"

    def test_upload_limit_in_bytes(self, monkeypatch):
        monkeypatch.setenv("MAX_UPLOAD_SIZE_MB", "2")

        importlib.reload(config)

        assert config.settings.MAX_UPLOAD_SIZE_BYTES == 2 * 1024 * 1024
        assert config.settings.COOKIE_SECURE is False
