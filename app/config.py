from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(RuntimeError):
    """Raised at startup when required settings are missing."""


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    pipedrive_api_token: str = Field(default="", alias="PIPEDRIVE_API_TOKEN")
    pipedrive_company_domain: str = Field(default="", alias="PIPEDRIVE_COMPANY_DOMAIN")
    upstream_timeout_seconds: float = Field(default=10.0, alias="UPSTREAM_TIMEOUT_SECONDS")
    disconnect_poll_seconds: float = Field(default=0.25, alias="DISCONNECT_POLL_SECONDS")

    metrics_backend: Literal["prometheus", "memory"] = Field(default="prometheus", alias="METRICS_BACKEND")
    enable_metrics_endpoint: bool = Field(default=True, alias="ENABLE_METRICS_ENDPOINT")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=True, alias="LOG_JSON")

    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8080, alias="PORT")

    @property
    def pipedrive_base_url(self) -> str:
        return f"https://{self.pipedrive_company_domain}.pipedrive.com/api/v1"

    def missing_upstream_settings(self) -> list[str]:
        required = [
            ("PIPEDRIVE_API_TOKEN", self.pipedrive_api_token),
            ("PIPEDRIVE_COMPANY_DOMAIN", self.pipedrive_company_domain),
        ]
        return [name for name, value in required if not value.strip()]


def ensure_upstream_configured(settings: Settings) -> None:
    missing = settings.missing_upstream_settings()
    if missing:
        raise ConfigurationError(f"Missing required environment variables: {', '.join(missing)}")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
