from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    apm_app_name: str = Field(default="POC", alias="APM_APP_NAME")
    apm_license_key: str = Field(default="", alias="APM_LICENSE_KEY")
    apm_enabled: bool = Field(default=True, alias="APM_ENABLED")
    apm_distributed_tracing_enabled: bool = Field(default=True, alias="APM_DISTRIBUTED_TRACING_ENABLED")
    apm_browser_application_id: str = Field(default="", alias="APM_BROWSER_APPLICATION_ID")
    apm_browser_beacon: str = Field(default="bam.nr-data.net", alias="APM_BROWSER_BEACON")
    apm_harvest_interval_seconds: float = Field(default=60.0, alias="APM_HARVEST_INTERVAL_SECONDS")
    apm_sink: Literal["log", "memory"] = Field(default="log", alias="APM_SINK")

    external_url: str = Field(default="https://api.github.com/users/defunkt", alias="EXTERNAL_URL")
    external_timeout_seconds: float = Field(default=10.0, alias="EXTERNAL_TIMEOUT_SECONDS")
    enable_metrics_endpoint: bool = Field(default=True, alias="ENABLE_METRICS_ENDPOINT")

    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: Literal["json", "console"] = Field(default="json", alias="LOG_FORMAT")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
