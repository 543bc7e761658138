"""Unit tests for the reconciliation worker's Redis settings."""

import pytest
from libs.common.arq_config import get_redis_settings
from libs.common.config import get_settings


@pytest.fixture
def redis_url(monkeypatch):
    def _set(url):
        monkeypatch.setenv("REDIS_URL", url)
        get_settings.cache_clear()

    yield _set
    get_settings.cache_clear()


@pytest.mark.unit
def test_plain_url(redis_url):
    redis_url("redis://cache.internal:6380/2")

    settings = get_redis_settings()

    assert settings.host == "cache.internal"
    assert settings.port == 6380
    assert settings.database == 2
    assert settings.ssl is False


@pytest.mark.unit
def test_tls_url_with_password(redis_url):
    redis_url("rediss://:s3cret@redis.example.com")

    settings = get_redis_settings()

    assert settings.password == "s3cret"
    assert settings.port == 6379
    assert settings.database == 0
    assert settings.ssl is True
