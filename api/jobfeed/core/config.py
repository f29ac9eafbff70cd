from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

EmptyResultMode = Literal["empty", "suggest_broaden"]
StoreBackend = Literal["postgres", "memory"]

DEFAULT_KEYWORDS = 'warehouse OR healthcare OR manufacturing OR culinary OR retail OR "entry level"'


class ConfigurationError(Exception):
    """Raised when a required credential or secret is not configured."""


class Settings(BaseSettings):
    app_name: str = "jobfeed-api"
    environment: str = "dev"

    adzuna_app_id: str | None = None
    adzuna_app_key: str | None = None
    adzuna_country: str = "us"
    adzuna_base_url: str = "https://api.adzuna.com/v1/api/jobs"

    store_backend: StoreBackend = "postgres"
    database_url: str | None = None
    database_pool_min_size: int = 1
    database_pool_max_size: int = 10

    ingest_secret: str | None = None
    ingest_header: str = "X-Ingest-Secret"
    ingest_retry_attempts: int = 3
    ingest_retry_max_wait_seconds: float = 8.0
    ingest_page_size: int = 50
    ingest_max_age_days: int = 3

    target_state: str = "NJ"
    target_county: str = "Mercer"
    default_keywords: str = DEFAULT_KEYWORDS
    default_location: str = "Mercer County, New Jersey"
    default_max_age_days: int = 3
    default_page_size: int = 20

    source_timeout_seconds: float = 8.0
    cache_ttl_seconds: float = 300.0
    cache_max_entries: int = 256
    empty_result_mode: EmptyResultMode = "empty"
    feed_cache_control: str = "s-maxage=300, stale-while-revalidate=60"

    bad_title_words: list[str] = Field(
        default_factory=lambda: [
            "bitcoin",
            "crypto",
            "forex",
            "nft",
            "escort",
            "adult",
            "fee required",
            "training fee",
            "wire transfer",
            "deposit required",
        ]
    )
    trusted_hosts: list[str] = Field(
        default_factory=lambda: [
            "indeed.com",
            "ziprecruiter.com",
            "glassdoor.com",
            "linkedin.com",
            "adzuna.com",
        ]
    )
    locality_tokens: list[str] = Field(
        default_factory=lambda: ["mercer", "trenton", "hamilton", "ewing", "princeton", "lawrence"]
    )
    outside_geography_flag: str = "outside_target_geography"
    min_hourly_wage: float = 12.0
    max_hourly_wage: float = 60.0

    otel_enabled: bool = True
    otel_service_name: str = "jobfeed-api"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0
    otel_log_correlation: bool = True

    model_config = SettingsConfigDict(env_prefix="JF_", extra="ignore")

    def require_adzuna_credentials(self) -> tuple[str, str]:
        if not self.adzuna_app_id or not self.adzuna_app_key:
            raise ConfigurationError("JF_ADZUNA_APP_ID and JF_ADZUNA_APP_KEY are required")
        return self.adzuna_app_id, self.adzuna_app_key


@lru_cache
def get_settings() -> Settings:
    return Settings()
