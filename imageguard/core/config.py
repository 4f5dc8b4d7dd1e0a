"""
Application configuration using pydantic-settings.
"""
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import field_validator, model_validator, ValidationInfo, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from imageguard import __version__

logger = logging.getLogger(__name__)

DEFAULT_SQLITE_URL = "sqlite:////data/imageguard.db"
DEFAULT_IMAGES_DIR = "/data/uploads/categories"
DEFAULT_BACKUP_DIR = "/data/backups"

# Define the project root directory
PROJECT_ROOT = Path(__file__).parent.parent.parent.resolve()


class Settings(BaseSettings):
    """Application settings."""

    # Application
    app_name: str = "Category Image Integrity Service"
    app_version: str = __version__
    debug: bool = False
    environment: str = "development"

    # API
    api_v1_prefix: str = "/api/v1"

    # Database Configuration
    # Primary database URL (defaults to SQLite)
    database_url: str = DEFAULT_SQLITE_URL

    # PostgreSQL override (optional - for advanced users)
    postgres_url: Optional[str] = None

    # Individual PostgreSQL components (optional - used in Docker)
    postgres_user: Optional[str] = None
    postgres_password: Optional[str] = None
    postgres_db: Optional[str] = None
    postgres_host: Optional[str] = None
    postgres_port: Optional[int] = None

    # Upper bound for a single database query, in seconds
    db_query_timeout_seconds: int = 30

    # Image storage
    images_dir: str = DEFAULT_IMAGES_DIR
    image_url_prefix: str = "/uploads/categories"
    backup_dir: str = DEFAULT_BACKUP_DIR

    # Integrity scanning
    hash_workers: int = Field(
        default_factory=lambda: min(8, (os.cpu_count() or 1) + 4)
    )
    # Count categories without any image as integrity issues
    missing_reference_is_issue: bool = False

    # Logging
    log_level: str = "INFO"
    log_dir: str = "/data/logs"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def database_type(self) -> str:
        """Detect database type from configuration."""
        # Check if PostgreSQL override is configured
        if self.postgres_url or (self.postgres_host and self.postgres_user):
            return "postgresql"

        # Check if primary database URL is PostgreSQL
        if self.database_url.startswith(("postgresql", "postgres")):
            return "postgresql"

        # Default to SQLite
        return "sqlite"

    @property
    def effective_database_url(self) -> str:
        """Get the effective database URL based on configuration hierarchy."""
        # Priority 1: Explicit PostgreSQL URL
        if self.postgres_url:
            return self.postgres_url

        # Priority 2: PostgreSQL components (Docker environment)
        if self.postgres_host and self.postgres_user and self.postgres_db:
            password = self.postgres_password or ""
            port = self.postgres_port or 5432
            return f"postgresql://{self.postgres_user}:{password}@{self.postgres_host}:{port}/{self.postgres_db}"

        # Priority 3: Primary database URL (defaults to SQLite)
        return self.database_url

    @property
    def images_path(self) -> Path:
        return Path(self.images_dir)

    @property
    def backup_path(self) -> Path:
        return Path(self.backup_dir)

    @field_validator('database_url')
    @classmethod
    def validate_database_url(cls, v: str, info: ValidationInfo) -> str:
        """Validate primary database URL."""
        if not v or not v.strip():
            logger.info(
                "DATABASE_URL not provided; defaulting to SQLite at %s", DEFAULT_SQLITE_URL
            )
            return DEFAULT_SQLITE_URL

        url = v.strip()

        if url.startswith(("sqlite", "postgresql", "postgres")):
            return url

        logger.warning(
            "DATABASE_URL uses unsupported or untested dialect '%s'. Proceed with caution.",
            url.split("://", 1)[0]
        )
        return url

    @field_validator('postgres_url')
    @classmethod
    def validate_postgres_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate PostgreSQL override URL."""
        if not v or not v.strip():
            return None

        url = v.strip()
        if not url.startswith(("postgresql", "postgres")):
            raise ValueError(
                "POSTGRES_URL must be a PostgreSQL URL (postgresql:// or postgres://)"
            )
        return url

    @field_validator('image_url_prefix')
    @classmethod
    def validate_image_url_prefix(cls, v: str) -> str:
        """Normalize the URL prefix stored in front of image filenames."""
        v = v.strip()
        if not v:
            raise ValueError("IMAGE_URL_PREFIX must not be empty")
        if '..' in v or '\\' in v:
            raise ValueError("IMAGE_URL_PREFIX contains invalid path characters")
        if not v.startswith("/"):
            v = f"/{v}"
        return v.rstrip("/")

    @field_validator('hash_workers')
    @classmethod
    def validate_hash_workers(cls, v: int) -> int:
        """Keep the hashing pool within a sane range."""
        if v < 1:
            raise ValueError("HASH_WORKERS must be at least 1")
        if v > 64:
            logger.warning(f"HASH_WORKERS={v} is very high, capping at 64")
            return 64
        return v

    @field_validator('db_query_timeout_seconds')
    @classmethod
    def validate_timeout_settings(cls, v: int) -> int:
        """Validate timeout settings are reasonable."""
        if v <= 0:
            raise ValueError("Timeout must be positive")
        if v > 3600:  # 1 hour max
            raise ValueError("Timeout cannot exceed 3600 seconds (1 hour)")
        return v

    @model_validator(mode='after')
    def validate_storage_layout(self) -> 'Settings':
        """The backup directory must not live inside the scanned images directory."""
        images = Path(self.images_dir).resolve()
        backups = Path(self.backup_dir).resolve()
        if backups == images or images in backups.parents:
            raise ValueError(
                "BACKUP_DIR must not be inside IMAGES_DIR; migration backups would be "
                "reported as orphaned images."
            )
        return self


# Create settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get settings instance."""
    return settings
