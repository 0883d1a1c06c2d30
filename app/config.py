"""
Listing Image Service - Configuration
Environment configuration using Pydantic Settings
"""
from functools import lru_cache
from pathlib import Path
from typing import List, Optional
from pydantic_settings import BaseSettings


PROJECT_ROOT = Path(__file__).parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Listing Image Service"
    log_level: str = "INFO"

    # JWT Authentication
    jwt_secret_key: str = "your-super-secret-jwt-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24 * 7  # 7 days

    # Local image storage
    uploads_dir: Optional[str] = None  # defaults to <project root>/uploads
    public_url_prefix: str = "/uploads/listings"

    # Upload limits
    max_file_size_bytes: int = 5 * 1024 * 1024  # 5MB
    max_files_per_request: int = 20
    storage_quota_bytes: int = 5 * 1024 * 1024 * 1024  # 5GB
    allowed_mime_types: List[str] = ["image/jpeg", "image/png", "image/webp"]

    # Image serving
    placeholder_image_url: str = (
        "https://via.placeholder.com/800x600/e0e0e0/808080?text=Image+Not+Available"
    )
    image_cache_max_age: int = 31536000  # 1 year

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    @property
    def uploads_path(self) -> Path:
        """Root uploads directory."""
        if self.uploads_dir:
            return Path(self.uploads_dir)
        return PROJECT_ROOT / "uploads"

    @property
    def listings_path(self) -> Path:
        """Directory holding every listing image."""
        return self.uploads_path / "listings"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
