from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Database
    DATABASE_URL: str = "sqlite:///./shortlinks.db"

    # Server
    PORT: int = 7000
    BASE_URL: str = "http://localhost:7000"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"  # "text" or "json"

    # QR codes
    QR_SIZE: int = 256  # pixels
    QR_ERROR_CORRECTION: str = "M"  # L, M, Q or H

    # Background click tracking
    CLICK_WORKERS: int = 4
    CLICK_QUEUE_SIZE: int = 1000  # pending clicks beyond this are dropped

    # Build info reported by /health
    VERSION: str = "dev"
    BUILD_TIME: str = "unknown"
    COMMIT: str = "none"

    class Config:
        env_file = ".env"
        env_prefix = "UL_"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance, loaded from the environment once."""
    return Settings()
