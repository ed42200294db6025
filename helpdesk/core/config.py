from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration read from environment variables."""

    app_name: str = Field(default="Helpdesk API")
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="%(levelname)s %(name)s %(message)s")
    # Level for helpdesk.tickets; falls back to log_level when unset.
    ticket_log_level: str | None = Field(default=None)

    # Storage configuration
    store_path: str | None = Field(default=None)
    catalog_path: str | None = Field(default=None)

    # Ticket engine configuration
    ticket_id_prefix: str = Field(default="TKT")
    ticket_id_width: int = Field(default=3)
    default_page_size: int = Field(default=10)
    max_page_size: int = Field(default=100)

    # Observability configuration
    otel_enabled: bool = Field(default=False)
    otel_service_name: str = Field(default="helpdesk-api")
    otel_exporter_otlp_endpoint: str | None = Field(default=None)
    otel_exporter_otlp_headers: str | None = Field(default=None)

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of the application settings."""

    return Settings()
