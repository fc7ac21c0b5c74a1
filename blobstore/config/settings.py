"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock mode enables local development without a real bucket.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.storage.models import DEFAULT_CONCURRENCY, DEFAULT_PART_SIZE, MIN_PART_SIZE


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like cors_origins), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Blobstore API"
    api_version: str = "v1"

    # AWS credentials and endpoint
    aws_access_key_id: str = Field(
        default="",
        description="Access key ID. Required unless in mock mode."
    )
    aws_secret_access_key: str = Field(
        default="",
        description="Secret access key. Required unless in mock mode."
    )
    aws_session_token: Optional[str] = Field(
        default=None,
        description="Session token for temporary credentials (optional)"
    )
    aws_default_region: Optional[str] = Field(
        default=None,
        description="Default region. Falls back to eu-west-2 when unset."
    )
    aws_endpoint_url: Optional[str] = Field(
        default=None,
        description="Endpoint override for S3-compatible backends (MinIO, R2, ...)"
    )

    # Bucket
    aws_s3_bucket_name: str = Field(
        default="",
        description="Bucket all objects are stored in"
    )
    aws_s3_region: Optional[str] = Field(
        default=None,
        description="Region of the bucket. Overrides the default region for S3 only."
    )

    # Upload sizing
    s3_upload_concurrency: int = Field(
        default=DEFAULT_CONCURRENCY,
        ge=1,
        description="Multipart parts in flight per upload"
    )
    s3_upload_part_size: int = Field(
        default=DEFAULT_PART_SIZE,
        ge=MIN_PART_SIZE,
        description="Multipart part size in bytes. S3 requires at least 5 MiB."
    )
    s3_leave_parts_on_error: bool = Field(
        default=False,
        description="Keep uploaded parts when a multipart upload fails, for manual cleanup"
    )

    s3_mock_mode: bool = Field(
        default=False,
        description="Use in-memory store instead of S3. Enables local dev without a bucket."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required environment variables.
        This is separate from Pydantic validation because requirements
        depend on whether we're in mock mode.
        """
        if self.s3_mock_mode:
            return []

        missing = []
        if not self.aws_access_key_id:
            missing.append("AWS_ACCESS_KEY_ID")
        if not self.aws_secret_access_key:
            missing.append("AWS_SECRET_ACCESS_KEY")
        if not self.aws_s3_bucket_name:
            missing.append("AWS_S3_BUCKET_NAME")
        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, call get_settings.cache_clear() to reset.
    """
    return Settings()
