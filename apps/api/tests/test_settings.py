"""Tests for settings validation."""

import pytest

from riskmate_api.settings import DEFAULT_LEDGER_SALT, Settings


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def test_development_defaults_are_accepted():
    _settings(environment="development").validate_production_settings()


def test_production_rejects_default_salt():
    with pytest.raises(ValueError, match="LEDGER_SECRET_SALT"):
        _settings(
            environment="production",
            ledger_secret_salt=DEFAULT_LEDGER_SALT,
            reporting_cache_backend="redis",
        ).validate_production_settings()


def test_production_rejects_memory_cache():
    with pytest.raises(ValueError, match="REPORTING_CACHE_BACKEND=memory"):
        _settings(environment="production", ledger_secret_salt="s").validate_production_settings()


def test_production_with_redis_cache_is_accepted():
    _settings(
        environment="production", ledger_secret_salt="s", reporting_cache_backend="redis"
    ).validate_production_settings()


def test_unknown_cache_backend_is_rejected():
    with pytest.raises(ValueError, match="Unknown REPORTING_CACHE_BACKEND"):
        _settings(reporting_cache_backend="memcached").validate_production_settings()


@pytest.mark.parametrize("environment", ["development", "test", "production"])
def test_async_warmup_needs_shared_cache(environment):
    with pytest.raises(ValueError, match="REPORTING_WARM_ASYNC"):
        _settings(
            environment=environment,
            ledger_secret_salt="s",
            reporting_cache_backend="memory",
            reporting_warm_async=True,
        ).validate_production_settings()


def test_async_warmup_with_redis_is_accepted():
    _settings(reporting_cache_backend="redis", reporting_warm_async=True).validate_production_settings()
