from pathlib import Path
from typing import Annotated, List, Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


_PROJECT_ROOT = Path(__file__).resolve().parents[3]
_ENV_PATH = _PROJECT_ROOT / '.env'
_ENV_FILE = _ENV_PATH if _ENV_PATH.exists() else (_PROJECT_ROOT / '.env.example')


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_ignore_empty=True,
        extra='ignore',
    )

    PROJECT_NAME: str = 'Ticket Inventory Service'
    VERSION: str = '0.1.0'
    DEBUG: bool = True  # Set to False in production

    # Logging; LOG_LEVEL defaults to DEBUG when DEBUG is on, INFO otherwise
    LOG_LEVEL: str | None = None
    LOG_FILE_RETENTION: str = '7 days'

    # CORS
    BACKEND_CORS_ORIGINS: Annotated[List[str], NoDecode] = []  # add your frontend URL here

    @field_validator('BACKEND_CORS_ORIGINS', mode='before')
    @classmethod
    def assemble_cors_origins(cls, v: str | List[str]) -> List[str]:
        if isinstance(v, str) and not v.startswith('['):
            return [i.strip() for i in v.split(',')]
        elif isinstance(v, list):
            return v
        return []

    # PostgreSQL
    POSTGRES_SERVER: str = 'localhost'
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = 'postgres'
    POSTGRES_PASSWORD: SecretStr = SecretStr('postgres')
    POSTGRES_DB: str = 'ticket_inventory'

    DB_POOL_SIZE: int = 10
    DB_POOL_MAX_OVERFLOW: int = 5
    DB_POOL_TIMEOUT: int = 30  # seconds
    DB_POOL_RECYCLE: int = 3600  # seconds
    DB_POOL_PRE_PING: bool = True

    @property
    def DATABASE_URL_ASYNC(self) -> str:
        return (
            f'postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD.get_secret_value()}'
            f'@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}'
        )

    # Inventory store: 'memory' keeps state in-process (single instance / tests)
    INVENTORY_STORE_BACKEND: Literal['memory', 'postgres'] = 'memory'

    # Hold timeouts per purchase channel (minutes)
    HOLD_TIMEOUT_ONLINE_MINUTES: int = 15
    HOLD_TIMEOUT_CASH_MINUTES: int = 4 * 60
    HOLD_TIMEOUT_ADMIN_MINUTES: int = 60
    HOLD_TIMEOUT_BULK_MINUTES: int = 30

    # Optimistic concurrency
    HOLD_MAX_RETRIES: int = 3
    CONFLICT_COALESCING_WINDOW_SECONDS: float = 0.05
    CONFLICT_RESOLUTION_STRATEGY: str = 'first_come_first_served'
    # Requests leaving this many units or fewer are arbitrated, never raced
    CONFLICT_SCARCITY_THRESHOLD: int = 0

    # Expiry sweeper
    SWEEPER_ENABLED: bool = True
    INVENTORY_SWEEP_INTERVAL_SECONDS: float = 300.0
    INVENTORY_SWEEP_BATCH_SIZE: int = 500

    # Status facade
    LOW_STOCK_THRESHOLD: int = 10
    VERY_LOW_STOCK_THRESHOLD: int = 3
    INVENTORY_STATUS_CACHE_TTL_SECONDS: float = 5.0

    @property
    def HOLD_TIMEOUT_MINUTES(self) -> dict[str, int]:
        return {
            'online': self.HOLD_TIMEOUT_ONLINE_MINUTES,
            'cash': self.HOLD_TIMEOUT_CASH_MINUTES,
            'admin': self.HOLD_TIMEOUT_ADMIN_MINUTES,
            'bulk': self.HOLD_TIMEOUT_BULK_MINUTES,
        }


settings = Settings()  # type: ignore
