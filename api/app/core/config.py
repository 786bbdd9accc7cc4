from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "linkpost-api"
    environment: str = "dev"
    actor_header: str = "X-User-Id"
    database_url: str | None = None
    database_pool_min_size: int = 1
    database_pool_max_size: int = 10
    database_command_timeout_seconds: float | None = None
    posts_page_size: int = 20
    posts_page_size_max: int = 100
    cursor_secret: str = "local-cursor-secret"
    otel_enabled: bool = True
    otel_service_name: str = "linkpost-api"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0
    otel_log_correlation: bool = True

    model_config = SettingsConfigDict(env_prefix="LP_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
