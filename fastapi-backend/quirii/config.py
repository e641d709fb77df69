"""
Centralized settings for the Quirii complaint forum backend.

Provides a lightweight wrapper around environment variables (with `.env`
support for local development) so the rest of the codebase can import a single
`get_settings()` helper when configuration is needed.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional, FrozenSet
import os

from dotenv import dotenv_values


DEFAULT_MAX_IMAGE_BYTES = 5 * 1024 * 1024


@dataclass(frozen=True)
class Settings:
    """Immutable view of application configuration."""

    # General
    environment: str
    allowed_hosts: tuple[str, ...]
    sentry_dsn: Optional[str]

    # Database
    database_url: str

    # Auth
    jwt_secret: Optional[str]
    jwt_access_minutes: int
    auto_admin_emails: FrozenSet[str]

    # Categories
    hostel_mapping_path: Optional[str]

    # Image storage
    storage_provider: str
    local_storage_path: str
    public_base_url: str
    max_image_bytes: int
    s3_bucket: str
    s3_region: str
    s3_endpoint: Optional[str]
    s3_access_key_id: Optional[str]
    s3_secret_access_key: Optional[str]
    cloudfront_domain: Optional[str]


def _env_lookup(key: str, env: dict[str, str], default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key) or env.get(key) or default


def _as_csv(value: Optional[str]) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def normalize_database_url(url: str) -> str:
    """Force the async drivers the engine expects."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql+psycopg2://"):
        return url.replace("postgresql+psycopg2://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return url


@lru_cache()
def get_settings() -> Settings:
    """Load settings once per process."""

    env_path = Path(__file__).resolve().parents[2] / ".env"
    env_file = dotenv_values(str(env_path)) if env_path.exists() else {}

    root = Path(__file__).resolve().parents[1]

    return Settings(
        environment=_env_lookup("APP_ENV", env_file, "development"),
        allowed_hosts=tuple(_as_csv(_env_lookup("ALLOWED_HOSTS", env_file, "*"))),
        sentry_dsn=_env_lookup("SENTRY_DSN", env_file),
        database_url=normalize_database_url(
            _env_lookup("DATABASE_URL", env_file, "sqlite+aiosqlite:///./quirii.db")
        ),
        jwt_secret=_env_lookup("JWT_SECRET", env_file),
        jwt_access_minutes=int(_env_lookup("JWT_ACCESS_MINUTES", env_file, "60")),
        auto_admin_emails=frozenset(
            addr.lower() for addr in _as_csv(_env_lookup("AUTO_ADMIN_EMAILS", env_file))
        ),
        hostel_mapping_path=_env_lookup("HOSTEL_MAPPING_PATH", env_file),
        storage_provider=_env_lookup("STORAGE_PROVIDER", env_file, "local").lower(),
        local_storage_path=_env_lookup("LOCAL_STORAGE_PATH", env_file, str(root / "storage")),
        public_base_url=(_env_lookup("PUBLIC_BASE_URL", env_file, "") or "").rstrip("/"),
        max_image_bytes=int(
            _env_lookup("MAX_IMAGE_BYTES", env_file, str(DEFAULT_MAX_IMAGE_BYTES))
        ),
        s3_bucket=_env_lookup("S3_BUCKET", env_file, "complaint-images"),
        s3_region=_env_lookup("S3_REGION", env_file, "us-east-1"),
        s3_endpoint=_env_lookup("S3_ENDPOINT", env_file) or _env_lookup("S3_ENDPOINT_URL", env_file),
        s3_access_key_id=_env_lookup("S3_ACCESS_KEY_ID", env_file) or _env_lookup("S3_ACCESS_KEY", env_file),
        s3_secret_access_key=_env_lookup("S3_SECRET_ACCESS_KEY", env_file) or _env_lookup("S3_SECRET_KEY", env_file),
        cloudfront_domain=_env_lookup("CLOUDFRONT_DOMAIN", env_file),
    )


__all__ = ["Settings", "get_settings", "normalize_database_url", "DEFAULT_MAX_IMAGE_BYTES"]
