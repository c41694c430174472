"""Application configuration pulled from environment variables via pydantic."""
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="config")


class Settings(BaseSettings):
    """Environment-driven configuration for the UrbanPulse backend."""
    model_config = SettingsConfigDict(env_prefix="URBANPULSE_", extra="ignore", populate_by_name=True)

    # Provider credentials keep the variable names the web frontend already uses.
    tomtom_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("TOMTOM_API_KEY", "NEXT_PUBLIC_TOMTOM_API_KEY"),
    )
    gemini_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("GEMINI_API_KEY", "NEXT_PUBLIC_GEMINI_API_KEY"),
    )
    gemini_model: str = Field(default="gemini-2.0-flash", validation_alias=AliasChoices("GEMINI_MODEL"))
    firebase_project_id: str | None = Field(default=None, validation_alias=AliasChoices("FIREBASE_PROJECT_ID"))
    firebase_credentials_path: str | None = Field(
        default=None,
        validation_alias=AliasChoices("GOOGLE_APPLICATION_CREDENTIALS"),
    )

    geocode_cache_ttl_seconds: int = 3600
    search_cache_ttl_seconds: int = 1800
    cache_max_entries: int | None = 1024
    geocode_radius_m: int = 100
    search_limit: int = 10
    search_language: str = "en-US"
    provider_timeout_seconds: float = 10.0

    default_latitude: float = 19.0760
    default_longitude: float = 72.8777
    default_timezone: str = "auto"

    incident_source: str = "memory"  # options: memory, firestore
    aggregator_workers: int = 4
    max_insights: int = 4

    @field_validator(
        "tomtom_api_key",
        "gemini_api_key",
        "firebase_project_id",
        "firebase_credentials_path",
        mode="before",
    )
    @classmethod
    def blank_is_unset(cls, v):
        """Treat empty or whitespace-only values as not configured."""
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @property
    def tomtom_configured(self) -> bool:
        return bool(self.tomtom_api_key)

    @property
    def gemini_configured(self) -> bool:
        return bool(self.gemini_api_key)


settings = Settings()


if __name__ == "__main__":
    logger.logger.setLevel("DEBUG")
    logger.debug(
        "Loaded settings: %s",
        settings.model_dump_json(indent=4, exclude={"tomtom_api_key", "gemini_api_key"}),
    )
