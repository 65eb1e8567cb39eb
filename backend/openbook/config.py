from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    DATABASE_URL: str
    REDIS_URL: str = "redis://localhost:6379/0"
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440
    CORS_ORIGINS: str = ""
    LOG_LEVEL: str = "INFO"

    # Price feed
    COINGECKO_URL: str = "https://api.coingecko.com/api/v3/simple/price"
    BINANCE_BASE_URL: str = "https://api.binance.com"
    PRICE_REQUEST_TIMEOUT_SEC: float = 3.5
    PRICE_PREFER_CACHE_SEC: int = 12
    PRICE_MAX_STALE_SEC: int = 3600

    # Mining
    MINING_SWEEP_INTERVAL_SEC: int = 60
    MINING_REFUND_ON_DECLINE: bool = True

    # How a user with no access-control row is treated
    ACCESS_UNKNOWN_POLICY: Literal["restricted", "unrestricted"] = "unrestricted"

    @field_validator('DATABASE_URL', mode='before')
    @classmethod
    def convert_database_url(cls, v):
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()] or ["http://localhost:3000"]

settings = Settings()
