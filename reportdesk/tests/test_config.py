"""
Tests for configuration validation
"""
import pytest
from pydantic import ValidationError
from reportdesk.core.config import Settings


def test_prod_settings_rejects_wildcard_origins():
    settings = Settings(
        DATABASE_URL="postgresql://test",
        JWT_SECRET_KEY="a" * 32,
        APP_ENV="prod",
        ALLOWED_ORIGINS="*"
    )
    with pytest.raises(ValueError, match="ALLOWED_ORIGINS"):
        settings.validate_production()


def test_prod_settings_rejects_short_jwt_secret():
    settings = Settings(
        DATABASE_URL="postgresql://test",
        JWT_SECRET_KEY="short",
        APP_ENV="prod",
        ALLOWED_ORIGINS="https://example.com"
    )
    with pytest.raises(ValueError, match="JWT_SECRET_KEY"):
        settings.validate_production()


def test_local_settings_allows_wildcard_origins():
    settings = Settings(
        DATABASE_URL="postgresql://test",
        JWT_SECRET_KEY="test-key",
        APP_ENV="local",
        ALLOWED_ORIGINS="*"
    )
    settings.validate_production()
    assert settings.get_allowed_origins_list() == ["*"]


def test_get_allowed_origins_list():
    settings = Settings(
        DATABASE_URL="postgresql://test",
        JWT_SECRET_KEY="test-key",
        ALLOWED_ORIGINS="https://example.com, https://app.example.com"
    )
    assert settings.get_allowed_origins_list() == ["https://example.com", "https://app.example.com"]


def test_report_and_notification_defaults():
    settings = Settings(DATABASE_URL="sqlite://", JWT_SECRET_KEY="test-key")
    assert settings.MAX_UPLOAD_BYTES == 10 * 1024 * 1024
    assert settings.NOTIFICATION_MAX_ATTEMPTS == 3
    assert settings.AUDIT_ON_USER_DELETE == "delete"
    assert settings.DB_TIMEOUT_SECONDS > 0


def test_invalid_app_env_rejected():
    with pytest.raises(ValidationError):
        Settings(DATABASE_URL="sqlite://", JWT_SECRET_KEY="test-key", APP_ENV="production")


def test_audit_policy_validated():
    assert Settings(DATABASE_URL="sqlite://", JWT_SECRET_KEY="k", AUDIT_ON_USER_DELETE="Anonymize").AUDIT_ON_USER_DELETE == "anonymize"
    with pytest.raises(ValidationError):
        Settings(DATABASE_URL="sqlite://", JWT_SECRET_KEY="k", AUDIT_ON_USER_DELETE="keep")


def test_notification_attempts_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(DATABASE_URL="sqlite://", JWT_SECRET_KEY="k", NOTIFICATION_MAX_ATTEMPTS=0)
