"""Tests for fieldguard/config/settings.py — Settings."""

from fieldguard.config.settings import get_settings


class TestSettings:

    def test_defaults(self, override_settings, monkeypatch):
        monkeypatch.delenv("STORE_BACKEND", raising=False)
        override_settings()
        s = get_settings()
        assert s.store_backend == "redis"
        assert s.redis_url == "redis://localhost:6379/0"
        assert s.store_ttl_seconds == 600
        assert s.key_prefix == "ratelimit"
        assert s.operation_key_prefix == "graphql-query-"
        assert s.store_failure_policy == "closed"
        assert s.log_level == "INFO"

    def test_env_override(self, override_settings):
        override_settings(
            STORE_BACKEND="bucketed",
            BUCKET_SECONDS="10",
            STORE_TTL_SECONDS="3600",
            KEY_PREFIX="rl",
        )
        s = get_settings()
        assert s.store_backend == "bucketed"
        assert s.bucket_seconds == 10
        assert s.store_ttl_seconds == 3600
        assert s.key_prefix == "rl"

    def test_fail_closed_by_default(self, override_settings):
        override_settings()
        assert get_settings().fail_open is False

    def test_fail_open(self, override_settings):
        override_settings(STORE_FAILURE_POLICY=" OPEN ")
        assert get_settings().fail_open is True
