"""Application settings via Pydantic BaseSettings."""

from __future__ import annotations

import warnings
from functools import lru_cache

from pydantic_settings import BaseSettings

DEFAULT_TENANT_SCOPED_RESOURCES = [
    "documents",
    "search_logs",
    "tenant_api_keys",
    "daily_usage_stats",
    "cms_integrations",
    "widgets",
    "cms_connections",
    "cms_webhook_events",
    "tenant_billing",
    "search_analytics",
    "usage_metrics",
    "embedding_analytics",
    "audit_logs",
    "search_queries_log",
    "sync_errors",
    "team_invitations",
]

DEFAULT_NATIVE_SEARCH_RESOURCES = [
    "typesense-collections",
    "typesense-keys",
    "typesense-aliases",
    "typesense-synonyms",
    "typesense-curations",
    "typesense-stopwords",
    "typesense-presets",
    "typesense-analytics-rules",
    "typesense-nl-models",
    "typesense-stemming",
    "typesense-system",
    "presets",
]

# Columns matched with ilike when a free-text listing is served relationally.
DEFAULT_RELATIONAL_SEARCH_COLUMNS = {
    "documents": ["title", "content", "url"],
    "search_logs": ["query"],
}


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Relational store (Supabase)
    supabase_url: str | None = None
    supabase_key: str | None = None
    supabase_schema: str = "public"
    supabase_timeout_seconds: float = 10.0
    relational_search_columns: dict[str, list[str]] = DEFAULT_RELATIONAL_SEARCH_COLUMNS

    # Search engine (Typesense). Absent unless both url and key are set.
    typesense_url: str | None = None
    typesense_api_key: str | None = None
    typesense_additional_nodes: str | None = None  # JSON array, failover order
    typesense_timeout_seconds: float = 10.0
    typesense_num_retries: int = 3
    typesense_retry_interval_seconds: float = 0.1
    typesense_healthcheck_interval_seconds: int = 60

    # Search retry policy (search reads only)
    search_retry_attempts: int = 3
    search_retry_delay_ms: int = 500
    search_retry_backoff: float = 2.0
    search_retry_max_delay_ms: int = 10_000

    # Search defaults
    search_num_typos: int = 2
    search_prefix: bool = True

    # Resource classification
    tenant_scoped_resources: list[str] = DEFAULT_TENANT_SCOPED_RESOURCES
    native_search_resources: list[str] = DEFAULT_NATIVE_SEARCH_RESOURCES

    # Scope persistence
    scope_state_path: str = "~/.tenantroute/scope.json"

    # App
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    log_level: str = "INFO"

    @property
    def search_configured(self) -> bool:
        return bool(self.typesense_url and self.typesense_api_key)


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    settings = Settings()
    if bool(settings.typesense_url) != bool(settings.typesense_api_key):
        warnings.warn(
            "Only one of TYPESENSE_URL / TYPESENSE_API_KEY is set. "
            "Search is disabled and free-text listings use the relational store.",
            UserWarning,
            stacklevel=2,
        )
    if bool(settings.supabase_url) != bool(settings.supabase_key):
        warnings.warn(
            "Only one of SUPABASE_URL / SUPABASE_KEY is set. "
            "Relational requests will fail until both are configured.",
            UserWarning,
            stacklevel=2,
        )
    return settings
