# src/nl_files_api/settings.py
from functools import lru_cache
from typing import List, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

VALID_DEPLOYMENT_MODES = ["local-dev", "memory", "aws-mock", "aws-prod"]


class Settings(BaseSettings):
    """
    Single source of truth for all application settings.

    Configuration precedence:
    1. Environment variables (highest priority)
    2. .env file (if exists)
    3. Default values in this class (lowest priority)

    The storage backend is derived from `deployment_mode` once, when the app
    is created. Changing the environment afterwards has no effect on a running
    process.
    """

    # Application Settings
    app_name: str = Field(default="nl-files-api", description="Application name")

    # Deployment Mode
    deployment_mode: str = Field(
        default="local-dev",
        validation_alias=AliasChoices("DEPLOYMENT_MODE", "NODE_ENV", "deployment_mode"),
        description="Deployment mode: local-dev, memory, aws-mock, or aws-prod",
    )

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3001, description="Port the API listens on")

    # Filesystem backend
    uploads_dir: str = Field(default="uploads", description="Directory used by the filesystem backend")

    # Completion API
    openai_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_API_KEY", "openai_api_key"),
    )
    openai_model: str = Field(default="gpt-3.5-turbo", description="Chat model used to resolve commands")
    openai_base_url: Optional[str] = Field(default=None, description="Override for OpenAI-compatible endpoints")

    # Object store backend
    s3_bucket_name: Optional[str] = Field(default=None, description="Bucket used by the S3 backend")
    aws_region: str = Field(
        default="us-east-1",
        validation_alias=AliasChoices("AWS_DEFAULT_REGION", "aws_region"),
    )
    aws_endpoint_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("AWS_ENDPOINT_URL", "aws_endpoint_url"),
    )
    aws_access_key_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("AWS_ACCESS_KEY_ID", "aws_access_key_id"),
    )
    aws_secret_access_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("AWS_SECRET_ACCESS_KEY", "aws_secret_access_key"),
    )

    # Upload limits
    max_upload_files: int = Field(default=100, ge=1)
    max_upload_file_size: int = Field(default=50 * 1024 * 1024, ge=1, description="Per-file ceiling in bytes")

    # CORS is permissive; it is not an access-control boundary
    cors_allow_origins: List[str] = Field(default=["*"])

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("deployment_mode", mode="before")
    @classmethod
    def normalize_deployment_mode(cls, v):
        """Map NODE_ENV-style values onto deployment modes."""
        if v:
            mode_mapping = {
                "development": "local-dev",
                "local": "local-dev",
                "production": "aws-prod",
            }
            return mode_mapping.get(str(v).lower(), str(v).lower())
        return "local-dev"

    @field_validator("deployment_mode")
    @classmethod
    def validate_deployment_mode(cls, v):
        if v not in VALID_DEPLOYMENT_MODES:
            raise ValueError(f"Invalid deployment_mode: {v}. Must be one of {VALID_DEPLOYMENT_MODES}")
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v):
        return v.upper()

    @property
    def storage_backend(self) -> str:
        """Which storage implementation this process uses: filesystem, memory or s3."""
        if self.deployment_mode == "local-dev":
            return "filesystem"
        if self.deployment_mode in ["aws-mock", "aws-prod"] and self.s3_bucket_name:
            return "s3"
        return "memory"

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
