# category_hierarchy/core/config.py
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "Category Service"
    API_V1_STR: str = "/api/v1"

    # Database Settings
    DATABASE_URL: str = "sqlite:///./category_hierarchy.db"
    # 읽기 전용 replica (없으면 DATABASE_URL 사용)
    READ_DATABASE_URL: Optional[str] = None
    DATABASE_ECHO: bool = False
    DATABASE_POOL_RECYCLE: int = 3600

    # Reparent cascade retry
    CASCADE_MAX_RETRIES: int = 3
    CASCADE_RETRY_DELAY: float = 0.2  # seconds

    LOG_LEVEL: str = "INFO"

    # OpenTelemetry Settings
    OTEL_ENABLED: bool = False
    OTEL_SERVICE_NAME: str = "category-service"
    OTEL_EXPORTER_OTLP_ENDPOINT: str = "http://otel-collector:4317"
    INSTRUMENT_SQLALCHEMY: bool = True

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)


settings = Settings()
