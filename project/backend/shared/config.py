"""
Configuration management.

Centralized environment variable management and validation.
"""

from typing import Literal
from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from shared.errors import ConfigError

# field -> (environment variable, required prefix)
_TOKEN_PREFIXES = {
    "openai_api_key": ("OPENAI_API_KEY", "sk-"),
    "replicate_api_token": ("REPLICATE_API_TOKEN", "r8_"),
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Supabase configuration
    supabase_url: str
    supabase_service_key: str

    # API keys
    openai_api_key: str
    replicate_api_token: str

    # Environment
    environment: Literal["development", "staging", "production"] = "development"

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_dir: str = "logs"

    # Asset storage
    assets_bucket: str = "ad-assets"
    presigned_url_ttl: int = 3600  # 1 hour, used for continuity frames

    # Pipeline
    max_concurrent_jobs: int = 10
    job_timeout_seconds: int = 900  # 15 minutes
    poll_interval_seconds: float = 5.0
    video_max_poll_attempts: int = 120
    music_max_poll_attempts: int = 60
    ffmpeg_timeout_seconds: int = 300

    # COMPOSITION_MODE: "mux" burns narration/music into the final video,
    # "separate" keeps the final video silent and audio as separate deliverables
    composition_mode: Literal["mux", "separate"] = "separate"

    # Narration
    disclosure_speed_factor: float = 1.4
    tts_model: str = "tts-1"

    # Models
    # VIDEO_MODEL options: "kling_v25_turbo" (default), "veo_31"
    video_model: str = "kling_v25_turbo"
    music_model: str = "minimax/music-1.5"
    script_model: str = "gpt-4o"

    @field_validator("supabase_url")
    @classmethod
    def validate_supabase_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ConfigError("SUPABASE_URL must be a valid HTTP/HTTPS URL")
        return v

    @field_validator("supabase_service_key")
    @classmethod
    def validate_supabase_service_key(cls, v: str) -> str:
        if len(v) < 50:
            raise ConfigError("SUPABASE_SERVICE_KEY appears to be invalid")
        return v

    @field_validator("openai_api_key", "replicate_api_token")
    @classmethod
    def validate_token_prefix(cls, v: str, info: ValidationInfo) -> str:
        """Provider credentials carry a fixed prefix."""
        env_name, prefix = _TOKEN_PREFIXES[info.field_name]
        if not v.startswith(prefix):
            raise ConfigError(f"{env_name} must start with '{prefix}'")
        return v

    @field_validator("max_concurrent_jobs", "video_max_poll_attempts", "music_max_poll_attempts")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ConfigError(f"Value must be >= 1, got {v}")
        return v

    @field_validator("disclosure_speed_factor")
    @classmethod
    def validate_speed_factor(cls, v: float) -> float:
        """atempo accepts 0.5-2.0 in a single filter."""
        if not 0.5 <= v <= 2.0:
            raise ConfigError(f"DISCLOSURE_SPEED_FACTOR must be between 0.5 and 2.0, got {v}")
        return v


try:
    settings = Settings()
except ConfigError:
    raise
except Exception as e:
    raise ConfigError(f"Failed to load configuration: {str(e)}") from e
