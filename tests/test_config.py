"""Tests for configuration selection and startup checks"""
import pytest

from api import create_app
from api.config import (
    DEV_ACCESS_SECRET,
    DEV_REFRESH_SECRET,
    DevelopmentConfig,
    ProductionConfig,
    TestingConfig,
    get_config,
)


@pytest.mark.parametrize(
    "name, expected",
    [
        ("prod", ProductionConfig),
        ("production", ProductionConfig),
        ("test", TestingConfig),
        ("TESTING", TestingConfig),
        ("dev", DevelopmentConfig),
        ("anything-else", DevelopmentConfig),
    ],
)
def test_get_config_by_name(name, expected):
    assert get_config(name) is expected


def test_get_config_falls_back_to_app_env(monkeypatch):
    monkeypatch.setenv("APP_ENV", "prod")
    assert get_config(None) is ProductionConfig


def test_testing_config_lifetimes():
    assert TestingConfig.ACCESS_TOKEN_EXPIRES.total_seconds() == 60
    assert TestingConfig.REFRESH_TOKEN_EXPIRES.days == 7
    assert TestingConfig.JWT_ACCESS_SECRET != TestingConfig.JWT_REFRESH_SECRET


def test_equal_secrets_refuse_to_start(monkeypatch):
    monkeypatch.setattr(TestingConfig, "JWT_REFRESH_SECRET", TestingConfig.JWT_ACCESS_SECRET)
    with pytest.raises(RuntimeError):
        create_app("test")


def test_production_refuses_development_secrets(monkeypatch):
    monkeypatch.setattr(ProductionConfig, "JWT_ACCESS_SECRET", DEV_ACCESS_SECRET)
    monkeypatch.setattr(ProductionConfig, "JWT_REFRESH_SECRET", DEV_REFRESH_SECRET)
    with pytest.raises(RuntimeError):
        create_app("prod")


def test_production_app_uses_strict_cookie_policy(monkeypatch):
    monkeypatch.setattr(ProductionConfig, "JWT_ACCESS_SECRET", "prod-access-secret")
    monkeypatch.setattr(ProductionConfig, "JWT_REFRESH_SECRET", "prod-refresh-secret")
    monkeypatch.setattr(ProductionConfig, "DATABASE_URL", "sqlite://")
    monkeypatch.setattr(ProductionConfig, "COOKIE_DOMAIN", "example.com")

    app = create_app("prod")
    try:
        policy = app.extensions["cookie_policy"]
        assert policy.production is True
        assert policy.domain == "example.com"
    finally:
        app.extensions["storage"].close()
