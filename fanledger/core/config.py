from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    DB_URL: str
    REDIS_URL: str = "redis://localhost:6379/0"

    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_COOKIE_NAME: str = "access_token"

    model_config = SettingsConfigDict(
        env_file=Path(__file__).resolve().parents[1].parent / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Wallet
    WALLET_ENABLED: bool = True
    WALLET_CURRENCY: str = "EUR"
    MAX_TOPUP_CENTS: int = 50_000
    MAX_PURCHASE_AMOUNT: int = 500  # major units, per purchase
    ALLOW_FAKE_PAYMENTS: bool = Field(
        default=False,
        validation_alias=AliasChoices("ALLOW_FAKE_PAYMENTS", "ALLOW_FAKE_TOPUP"),
    )
    ALLOW_FREE_UNLOCKS: bool = True

    ENGAGEMENT_PURCHASE_BOOST: int = 50

    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PURCHASE_MAX: int = 20
    RATE_LIMIT_PURCHASE_WINDOW: int = 60

    EVENT_HUB_MAX_LISTENERS: int = 200
    CORS_ORIGINS: list[str] = []

settings = Settings()
