from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Dict, Optional
from urllib.parse import quote_plus


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file="missionapi/.env",
        env_file_encoding="utf-8",
        extra="allow",
    )
    # Application
    APP_NAME: str = "Mission Marketplace API"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    POSTGRES_HOST: str = ""
    POSTGRES_PORT: int = 5432
    POSTGRES_USERNAME: str = ""
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DATABASE: str = ""

    # 직접 지정하면 POSTGRES_* 보다 우선 (테스트/로컬은 sqlite 사용 가능)
    DATABASE_URL: Optional[str] = None
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    @property
    def database_url(self) -> str:
        """Construct database URL from individual components"""
        if self.DATABASE_URL:
            return self.DATABASE_URL

        # URL encode the password to handle special characters
        encoded_password = quote_plus(self.POSTGRES_PASSWORD)
        return f"postgresql+psycopg2://{self.POSTGRES_USERNAME}:{encoded_password}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DATABASE}"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    # Security
    SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Cron / Webhook
    CRON_SECRET: str = ""
    PAYMENT_WEBHOOK_SECRET: str = ""

    # Payout Policy
    MIN_PAYOUT_KRW: int = 1000
    MAX_PAYOUT_KRW: int = 10_000_000

    # Top-up Policy
    TOPUP_MIN_KRW: int = 1000
    TOPUP_MAX_KRW: int = 100_000_000

    # Order / Pricing Policy
    MIN_ORDER_DAYS: int = 1
    DEFAULT_VAT_PERCENT: int = 10
    REWARD_RATIO_BY_MISSION_TYPE: Dict[str, float] = {
        "TRAFFIC": 0.25,
        "SAVE": 0.25,
        "SHARE": 0.25,
    }

    # Mission Limits Policy (미션 타입별 제한 시간, 초)
    MISSION_TIMEOUT_SECONDS_BY_TYPE: Dict[str, int] = {
        "TRAFFIC": 180,
        "SAVE": 300,
        "SHARE": 120,
    }
    DEFAULT_MISSION_TIMEOUT_SECONDS: int = 120


settings = Settings()
