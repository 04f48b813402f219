"""Configuration management.

Reads settings from env vars. This is intentionally simple.
"""
import os
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """App settings loaded from environment variables"""

    # Database
    database_url: str = os.getenv(
        "DATABASE_URL",
        "sqlite:///./content_variants.db"
    )
    # seconds to wait on a locked sqlite database before giving up
    database_timeout: float = float(os.getenv("DATABASE_TIMEOUT", "30"))

    # Cache settings (all TTLs in seconds)
    cache_max_size: int = int(os.getenv("CACHE_MAX_SIZE", "10000"))
    cache_default_ttl: int = int(os.getenv("CACHE_DEFAULT_TTL", "1800"))
    content_cache_ttl: int = int(os.getenv("CONTENT_CACHE_TTL", "900"))
    # per-user rows embed the assigned variant, keep them short lived
    user_content_cache_ttl: int = int(os.getenv("USER_CONTENT_CACHE_TTL", "300"))

    log_level: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
