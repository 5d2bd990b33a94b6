"""
Configuration loader for the cutout service.

Environment variables are centralized here to keep the rest of the code
focused on business logic and to make operational tuning clear.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BACKGROUND_OPTIONS = ("transparent", "color", "image")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Inference service
    replicate_api_token: Optional[SecretStr] = None
    replicate_api_base_url: str = "https://api.replicate.com/v1"
    # Placeholder version id; point it at the background-removal model you deploy.
    replicate_model_version: str = "b4a8ce3f6e0f1a8a723af3073b90551c73c4a7e4b2a7d2f2f2d1f2b3f4a5b6c7"
    replicate_input_key: str = "image"

    # Polling budget
    poll_interval_seconds: float = Field(1.0, gt=0)
    poll_max_attempts: Optional[int] = Field(300, ge=1)
    poll_timeout_seconds: Optional[float] = Field(600.0, gt=0)

    # HTTP
    request_timeout_seconds: int = 30
    log_level: str = "INFO"

    # Form defaults
    default_background_option: str = "transparent"
    default_background_color: str = "#ffffff"

    @field_validator("default_background_option")
    @classmethod
    def validate_background_option(cls, v: str) -> str:
        if v not in BACKGROUND_OPTIONS:
            raise ValueError("DEFAULT_BACKGROUND_OPTION must be one of transparent|color|image")
        return v

    @field_validator("replicate_api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings to avoid reparsing env on every call."""
    return Settings()
