"""
Application settings
Loaded from environment variables (and .env when present)
"""

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    APP_NAME: str = "Wingside API"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    APP_URL: str = "https://www.wingside.ng"
    CORS_ORIGINS: List[str] = ["*"]

    # Supabase (service role: bypasses RLS, never expose to clients)
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""

    # Paystack
    PAYSTACK_SECRET_KEY: str = ""
    PAYSTACK_BASE_URL: str = "https://api.paystack.co"

    # Nomba
    NOMBA_CLIENT_ID: str = ""
    NOMBA_CLIENT_SECRET: str = ""
    NOMBA_ACCOUNT_ID: str = ""
    NOMBA_WEBHOOK_SECRET: str = ""
    NOMBA_BASE_URL: str = "https://api.nomba.com"

    # Email
    RESEND_API_KEY: str = ""
    FROM_EMAIL: str = "Wingside <noreply@wingside.ng>"
    ADMIN_EMAIL: str = "reachus@wingside.ng"

    # Scheduled jobs
    CRON_SECRET: str = ""

    # Business rules (amounts in Naira)
    MIN_ORDER_AMOUNT: float = 2000
    FREE_DELIVERY_THRESHOLD: float = 10000
    MAX_ORDER_AMOUNT: float = 10_000_000
    MAX_ITEM_QUANTITY: int = 50
    NAIRA_PER_POINT: int = 100
    FIRST_ORDER_BONUS_POINTS: int = 15
    POINTS_EXPIRY_DAYS: int = 365
    TIER_INACTIVITY_DAYS: int = 180
    REFERRAL_REWARD_AMOUNT: float = 500
    REFERRAL_MIN_ORDER_AMOUNT: float = 1000
    GIFT_CARD_VALIDITY_MONTHS: int = 6
    WEBHOOK_TOLERANCE_SECONDS: int = 300
    HTTP_TIMEOUT_SECONDS: float = 30.0

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


settings = Settings()
