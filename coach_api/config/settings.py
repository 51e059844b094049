"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like cors_origins), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Coaching Platform API"
    api_version: str = "v1"
    api_path_prefix: str = Field(
        default="/api",
        description="Path prefix of API routes. Requests under it get the X-API-* id headers."
    )
    upload_path_prefix: str = Field(
        default="/api/v1/uploads",
        description="Path prefix of upload routes. Requests under it get the X-Upload-* id headers."
    )

    # Request Timing
    slow_request_threshold_ms: float = Field(
        default=500.0,
        description="Requests slower than this are logged as warnings."
    )
    upload_slow_request_threshold_ms: float = Field(
        default=2000.0,
        description="Slow request threshold for upload routes. Uploads legitimately take longer."
    )
    slow_request_logging_enabled: bool = Field(
        default=True,
        description="Emit a warning log for requests over the slow threshold."
    )

    # Sensitive Resources
    access_reason_min_length: int = Field(
        default=5,
        description="Minimum length of the justification required to open sensitive resources."
    )

    # Uploads
    max_upload_size_mb: int = Field(
        default=10,
        description="Maximum declared upload size in MB."
    )
    allowed_upload_mime_types: str = Field(
        default="image/*,audio/*,video/*",
        description="Comma-separated MIME types accepted for upload. 'type/*' matches a whole family."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:5173,http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Requests from other origins are rejected."
    )
    cors_max_age: int = Field(
        default=24 * 60 * 60,
        description="How long browsers may cache preflight responses, in seconds."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def allowed_upload_mime_types_list(self) -> list[str]:
        """Parse comma-separated MIME types into a list."""
        return [
            mime.strip().lower()
            for mime in self.allowed_upload_mime_types.split(",")
            if mime.strip()
        ]

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    def validate_required_fields(self) -> list[str]:
        """
        Validate settings that Pydantic alone can't check.

        Returns list of problems, empty when configuration is usable.
        """
        problems = []

        if not self.cors_origins_list:
            problems.append("CORS_ORIGINS")
        if self.access_reason_min_length < 1:
            problems.append("ACCESS_REASON_MIN_LENGTH")
        if self.slow_request_threshold_ms < 0 or self.upload_slow_request_threshold_ms < 0:
            problems.append("SLOW_REQUEST_THRESHOLD_MS")
        if not self.upload_path_prefix.startswith(self.api_path_prefix):
            problems.append("UPLOAD_PATH_PREFIX")

        return problems


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    This is safe because settings don't change during runtime.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
