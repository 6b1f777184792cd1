from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    service_name: str = Field(default="logging-challenge", alias="SERVICE_NAME")
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8080, alias="PORT")

    log_dir: str = Field(default="logs", alias="LOG_DIR")
    log_file: str = Field(default="app.log", alias="LOG_FILE")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    enable_tracing: bool = Field(default=True, alias="ENABLE_TRACING")
    span_exporter: Literal["log", "memory", "console", "otlp"] = Field(default="log", alias="SPAN_EXPORTER")
    otlp_endpoint: str = Field(default="localhost:4317", alias="OTEL_EXPORTER_OTLP_ENDPOINT")
    enable_metrics: bool = Field(default=True, alias="ENABLE_METRICS")

    min_name_length: int = Field(default=2, alias="MIN_NAME_LENGTH")
    deployment_environment: str = Field(default="Staging", alias="DEPLOYMENT_ENVIRONMENT")
    deployment_location: str = Field(default="Indonesia", alias="DEPLOYMENT_LOCATION")

    @property
    def log_path(self) -> Path:
        return Path(self.log_dir) / self.log_file


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
