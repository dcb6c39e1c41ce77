from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Upstream (SWAPI)
    SWAPI_BASE_URL: str = "https://swapi.dev/api"
    REQUEST_TIMEOUT: float = 10.0
    UPSTREAM_PAGE_SIZE: int = 10  # fixed by upstream
    FETCH_CONCURRENCY: int = 5  # max in-flight page fetches per collection

    # Cache (override via env)
    CACHE_BACKEND: str = "memory"  # "memory" | "redis"
    CACHE_TTL_SECONDS: int = 3600
    CACHE_MAXSIZE: int = 1024  # in-process store only
    REDIS_URL: str = "redis://localhost:6379/0"

    # Sync worker
    SYNC_WORKER_ENABLED: bool = True
    SYNC_INTERVAL_SECONDS: float = 86400.0  # daily
    SYNC_MAX_ATTEMPTS: int = 3

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE_PATH: Optional[str] = None  # WatchedFileHandler target when set

    class Config:
        env_file = ".env"


settings = Settings()
