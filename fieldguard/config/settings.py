"""Application settings loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Window counter store
    store_backend: str = "redis"  # "redis" | "memory" | "bucketed"
    redis_url: str = "redis://localhost:6379/0"
    store_ttl_seconds: int = 600  # Longest interval any limit may use
    bucket_seconds: int = 5  # Bucket width for the "bucketed" backend

    # Store key layout: {key_prefix}:{identity}:{operation_key_prefix}{field}
    key_prefix: str = "ratelimit"
    operation_key_prefix: str = "graphql-query-"

    # Optional JSON file with per-field limits, merged over schema extensions
    rate_limits_path: str = ""

    # What the HTTP host does when the store is unreachable
    store_failure_policy: str = "closed"  # closed | open

    # Logging
    log_level: str = "INFO"
    audit_log_file: str = ""  # Empty = stdout only

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def fail_open(self) -> bool:
        return self.store_failure_policy.strip().lower() == "open"


@lru_cache
def get_settings() -> Settings:
    return Settings()
