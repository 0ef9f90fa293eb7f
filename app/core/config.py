from functools import lru_cache
from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Recall Meeting Bridge"
    app_env: str = "development"
    app_version: str = "0.1.0"
    api_prefix: str = ""
    allowed_origins: Annotated[list[str], NoDecode] = ["*"]
    host: str = "0.0.0.0"
    port: int = 4000
    recall_api_key: str = ""
    recall_base_url: str = "https://us-east-1.recall.ai/api/v1"
    recall_api_timeout_seconds: float = 15.0
    recall_api_user_agent: str = "RecallMeetingBridge/1.0"
    recall_bot_name: str = ""
    recall_transcript_language_code: str = "en"
    n8n_bot_status_webhook_url: str = ""
    n8n_webhook_api_key: str = ""
    n8n_webhook_timeout_seconds: float = 10.0
    shared_secret: str = ""
    meetings_store: str = "mongodb"
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db_name: str = "recall_bridge"
    mongodb_meetings_collection: str = "meetings"
    mongodb_connect_timeout_ms: int = 2000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def parse_allowed_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("recall_base_url", mode="before")
    @classmethod
    def normalize_recall_base_url(cls, value: str) -> str:
        return value.strip().rstrip("/")

    @field_validator("meetings_store", mode="before")
    @classmethod
    def normalize_meetings_store(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("port", mode="before")
    @classmethod
    def normalize_port(cls, value: int | str) -> int:
        parsed_value = int(value)
        if parsed_value <= 0:
            return 4000
        return parsed_value

    @field_validator("recall_api_timeout_seconds", mode="before")
    @classmethod
    def normalize_recall_timeout(cls, value: float | str) -> float:
        parsed_value = float(value)
        if parsed_value <= 0:
            return 15.0
        return parsed_value

    @field_validator("n8n_webhook_timeout_seconds", mode="before")
    @classmethod
    def normalize_n8n_timeout(cls, value: float | str) -> float:
        parsed_value = float(value)
        if parsed_value <= 0:
            return 10.0
        return parsed_value


@lru_cache
def get_settings() -> Settings:
    return Settings()
