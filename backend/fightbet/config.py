from typing import Dict
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

DEFAULT_PAYMENT_LIMITS = {
    "deposit_min": 500,
    "deposit_max": 1_000_000,
    "withdrawal_min": 1_000,
    "withdrawal_max": 500_000,
}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    DATABASE_URL: str
    REDIS_URL: str = "redis://localhost:6379/0"
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]
    LOG_LEVEL: str = "INFO"

    # Betting (amounts in minor units)
    COMMISSION_RATE: float = 0.10
    MIN_BET_AMOUNT: int = 100
    MAX_BET_AMOUNT: int = 1_000_000
    BETTING_CUTOFF_MINUTES: int = 30

    # Login throttle. The defaults are short so the window is observable in tests;
    # production should run with something like 900 seconds.
    LOGIN_WINDOW_SECONDS: float = 10.0
    LOGIN_MAX_ATTEMPTS: int = 5
    LOGIN_SWEEP_INTERVAL_SECONDS: float = 15 * 60
    LOGIN_THROTTLE_BACKEND: str = "memory"
    # Reverse proxies in front of the app that append to X-Forwarded-For.
    # 0 keys the throttle on the socket peer and ignores the header.
    TRUSTED_PROXY_HOPS: int = 0

    # Payment rail (WAVE / ORANGE_MONEY / FREE_MONEY)
    PAYMENT_PROVIDER_MODE: str = "mock"
    PAYMENT_API_BASE_URL: str = ""
    PAYMENT_API_KEY: str = ""
    PAYMENT_WEBHOOK_SECRET: str = ""
    PAYMENT_LIMITS: Dict[str, Dict[str, int]] = {}

    @field_validator('DATABASE_URL', mode='before')
    @classmethod
    def convert_database_url(cls, v):
        """Convert postgresql:// to postgresql+asyncpg:// for async support"""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    @field_validator('LOGIN_THROTTLE_BACKEND', 'PAYMENT_PROVIDER_MODE')
    @classmethod
    def lower_choice(cls, v: str) -> str:
        return v.lower()

    def payment_limits(self, provider: str) -> Dict[str, int]:
        """Deposit/withdrawal bounds for a provider, falling back to the platform defaults."""
        limits = dict(DEFAULT_PAYMENT_LIMITS)
        limits.update(self.PAYMENT_LIMITS.get(provider, {}))
        return limits


settings = Settings()
