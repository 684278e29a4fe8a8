from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DB_URL: str = "sqlite+aiosqlite:///./pos_edge.sqlite"
    DB_ECHO: bool = False

    STORE_TX_RETRIES: int = 2
    STORE_TX_RETRY_DELAY_MS: int = 100
    STORE_CACHE_SIZE: int = 1000

    # No endpoint means local-only mode: push drains the outbox, pull is skipped
    SYNC_ENDPOINT: Optional[str] = None
    SYNC_BATCH_SIZE: int = 50
    SYNC_INTERVAL_MS: int = 15000
    SYNC_TIMEOUT_SECONDS: float = 10.0
    SYNC_BACKOFF_BASE_MS: int = 1000
    SYNC_BACKOFF_MAX_MS: int = 30000
    SYNC_BACKOFF_FACTOR: float = 2.0
    SYNC_BACKOFF_JITTER: float = 0.25
    SYNC_AUTOSTART: bool = True

    PRINT_MAX_ATTEMPTS: int = 5
    PRINT_RETRY_BASE_MS: int = 1000
    PRINT_RETRY_MAX_MS: int = 30000
    PRINT_IDLE_MS: int = 400
    PRINT_LOOP_DELAY_MS: int = 200
    PRINT_AUTOSTART: bool = True

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"


settings = Settings()
