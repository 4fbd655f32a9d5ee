"""
Configuration and settings for the wedding invitation backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="")
    port: int = Field(default=5000)
    log_level: str = Field(default="INFO")

    # Comma separated list of allowed browser origins.
    cors_origins: str = Field(default="*")

    # Document store: "memory", "firestore" or "sql"
    document_store: Literal["memory", "firestore", "sql"] = Field(
        default="firestore"
    )
    database_url: Optional[str] = Field(default=None)

    # Firebase (Firestore + Auth)
    firebase_project_id: Optional[str] = Field(default=None)
    firebase_credentials: Optional[str] = Field(
        default=None, description="Path to a service account JSON file"
    )
    firebase_client_email: Optional[str] = Field(default=None)
    firebase_private_key: Optional[str] = Field(default=None)
    firebase_api_key: Optional[str] = Field(
        default=None, description="Web API key used for password sign-in"
    )

    # S3-compatible asset host
    asset_bucket: Optional[str] = Field(default=None)
    asset_endpoint: Optional[str] = Field(default=None)
    asset_region: Optional[str] = Field(default=None)
    asset_public_base_url: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)

    # Deadlines
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    upstream_timeout_seconds: float = Field(default=10.0, gt=0)

    # Development toggles
    wedding_use_in_memory_backends: bool = Field(default=False)

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
