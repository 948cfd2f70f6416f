from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from veo_studio.services.errors import ConfigurationError

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    api_key: str = Field(..., validation_alias=AliasChoices("API_KEY", "GEMINI_API_KEY"))
    veo_model_id: str = "veo-2.0-generate-001"

    host: str = "127.0.0.1"
    port: int = 8080

    poll_interval_seconds: float = 10.0
    # None polls until the job reports done.
    poll_max_attempts: Optional[int] = None
    media_fetch_timeout_seconds: float = 300.0

    default_image_mime_type: str = "image/png"
    log_level: str = "INFO"

    @field_validator("api_key")
    @classmethod
    def require_api_key(cls, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise ValueError("API_KEY must not be empty")
        return value

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return (value or "INFO").upper()


@lru_cache()
def get_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as exc:
        if any(_is_api_key_error(error) for error in exc.errors()):
            raise ConfigurationError("API_KEY environment variable not set.") from exc
        raise ConfigurationError(f"Invalid application settings: {exc}") from exc


def _is_api_key_error(error: dict) -> bool:
    location = [str(part).lower() for part in error.get("loc", ())]
    return any(part in {"api_key", "gemini_api_key"} for part in location)
