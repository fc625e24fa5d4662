# src/document_gateway/config/settings.py
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ROOT_FOLDER_NAME = "Files"


class Settings(BaseSettings):
    """
    Single source of truth for all gateway settings.

    Configuration precedence:
    1. Environment variables (highest priority)
    2. .env file (if exists)
    3. Default values in this class (lowest priority)

    Values are read once at process start; there is no hot reload.

    Usage:
        from document_gateway.config.settings import get_settings
        settings = get_settings()
        bucket_name = settings.s3_bucket_name
    """

    # Application Settings
    app_name: str = Field(
        default="document-gateway",
        description="Application name"
    )

    # AWS Core Settings
    aws_region: str = Field(
        default="us-east-1",
        alias="AWS_DEFAULT_REGION"
    )

    aws_access_key_id: Optional[str] = Field(
        default=None,
        alias="AWS_ACCESS_KEY_ID"
    )

    aws_secret_access_key: Optional[str] = Field(
        default=None,
        alias="AWS_SECRET_ACCESS_KEY"
    )

    aws_endpoint_url: Optional[str] = Field(
        default=None,
        alias="AWS_ENDPOINT_URL",
        description="Custom endpoint for S3-compatible stores (MinIO, moto server)"
    )

    # S3 Configuration
    s3_bucket_name: str = Field(
        default="document-storage",
        description="S3 bucket holding the documents"
    )

    root_folder_name: str = Field(
        default=DEFAULT_ROOT_FOLDER_NAME,
        description="Folder inside the bucket that every object key is placed under"
    )

    s3_connect_timeout: float = Field(default=5.0, gt=0)
    s3_read_timeout: float = Field(default=30.0, gt=0)
    s3_max_attempts: int = Field(default=3, ge=1, description="Attempts per S3 call, the first one included")

    # Transfer Configuration
    document_content_type: str = Field(
        default="application/pdf",
        description="Registered content type for fetched documents"
    )

    stream_chunk_size: int = Field(
        default=64 * 1024,
        ge=1024,
        description="Bytes read from the backend per streamed chunk"
    )

    zip_spool_max_size: int = Field(
        default=8 * 1024 * 1024,
        ge=0,
        description="Archive bytes kept in memory before spilling to a temp file"
    )

    # HTTP
    cors_allow_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="Origins allowed to call the gateway from a browser"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    @field_validator("root_folder_name")
    @classmethod
    def normalize_root_folder_name(cls, v: str) -> str:
        """Strip surrounding slashes so keys never contain `//`."""
        v = v.strip().strip("/")
        if not v:
            raise ValueError("root_folder_name must not be empty")
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()

    def public_dict(self) -> dict:
        """Settings safe to print or return: credentials are masked."""
        values = self.model_dump()
        for secret in ("aws_access_key_id", "aws_secret_access_key"):
            if values.get(secret):
                values[secret] = "****"
        return values

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one Settings instance per process.
    """
    return Settings()
