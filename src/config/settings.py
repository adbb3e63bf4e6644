# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for backend endpoints, upload sizing, polling
cadence and logging. Cross-field rules are enforced in
``validate_config_consistency`` and raise ConfigurationError.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MB = 1024 * 1024


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Backend API ===
    api_base_url: str = "http://localhost:3000"
    api_token: str = ""
    http_timeout_s: float = 60.0

    # === Upload ===
    upload_backend: Literal["http", "s3"] = "http"
    multipart_threshold_bytes: int = 100 * MB
    s3_bucket: str = ""
    s3_region: str = ""
    s3_endpoint_url: str = ""
    s3_key_prefix: str = "videos/"
    presigned_url_expiry_s: int = 3600

    # === Remote processing ===
    poll_interval_s: float = 2.0
    poll_timeout_s: float = 600.0
    poll_timeout_behavior: Literal["error", "stall"] = "error"

    # === Media URLs ===
    mux_stream_base_url: str = "https://stream.mux.com"
    mux_image_base_url: str = "https://image.mux.com"

    # === Pipeline ===
    completion_delay_s: float = 1.0
    default_visibility: Literal["public", "private", "unlisted"] = "private"
    default_category: str = ""
    speaker_default_confidence: float = 0.9
    ffmpeg_binary: str = "ffmpeg"

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("poll_interval_s", "http_timeout_s")
    @classmethod
    def validate_positive_seconds(cls, v: float, info) -> float:  # noqa: N805
        if v <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return v

    @field_validator("completion_delay_s")
    @classmethod
    def validate_completion_delay(cls, v: float) -> float:  # noqa: N805
        if v < 0:
            raise ValueError("completion_delay_s must be >= 0")
        return v

    @field_validator("speaker_default_confidence")
    @classmethod
    def validate_confidence(cls, v: float) -> float:  # noqa: N805
        if not 0.0 <= v <= 1.0:
            raise ValueError("speaker_default_confidence must be within [0, 1]")
        return v

    @field_validator("api_base_url", "mux_stream_base_url", "mux_image_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:  # noqa: N805
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.multipart_threshold_bytes <= 0:
            errors.append("MULTIPART_THRESHOLD_BYTES must be positive")

        if self.poll_timeout_s < self.poll_interval_s:
            errors.append("POLL_TIMEOUT_S must be >= POLL_INTERVAL_S")

        if self.upload_backend == "s3" and not self.s3_bucket:
            errors.append("UPLOAD_BACKEND=s3 requires S3_BUCKET")

        if self.presigned_url_expiry_s <= 0:
            errors.append("PRESIGNED_URL_EXPIRY_S must be positive")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def auth_headers(self) -> dict[str, str]:
        """Authorization header for backend API calls (empty without a token)."""
        if not self.api_token:
            return {}
        return {"Authorization": f"Bearer {self.api_token}"}


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-session config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
