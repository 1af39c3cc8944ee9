# backend/config.py
from pydantic import Field
from pydantic_settings import BaseSettings
from typing import ClassVar, List, Optional, Tuple
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./catalog.db"

    # Redis cache (advisory only, the database stays authoritative)
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_SOCKET_TIMEOUT: float = 2.0
    CACHE_ENABLED: bool = True
    CACHE_TTL_PRODUCT: int = Field(600, gt=0)
    CACHE_TTL_PRODUCT_LIST: int = Field(300, gt=0)
    CACHE_TTL_CART: int = Field(60, gt=0)

    # Product images
    UPLOAD_DIR: str = "static/uploads"
    UPLOAD_URL_PREFIX: str = "/uploads"
    MAX_IMAGE_SIZE_BYTES: int = 5 * 1024 * 1024

    # (name, window in seconds, max requests per window)
    RATE_LIMIT_ENABLED: bool = False
    RATE_LIMITS: List[Tuple[str, int, int]] = [
        ("short", 60, 100),
        ("medium", 600, 500),
        ("long", 3600, 1000),
    ]

    FRONTEND_URL: Optional[str] = None
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file: ClassVar[str] = str(env_path)
        extra: ClassVar[str] = "ignore"

settings = Settings()
