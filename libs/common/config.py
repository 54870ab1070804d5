from decimal import Decimal
from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings."""

    # Application
    ENVIRONMENT: Literal["local", "development", "production"] = "local"
    LOG_LEVEL: str = "INFO"
    TIMEZONE: str = "America/Denver"

    # Regional legacy databases (one per club group)
    NM_DATABASE_URL: Optional[str] = None
    DNV_DATABASE_URL: Optional[str] = None
    MAC_DATABASE_URL: Optional[str] = None
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 5
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # Stored procedure definitions
    PROCEDURES_DIR: Optional[str] = None

    # Billing
    INITIATION_FEE: Decimal = Decimal("19.00")
    PRORATED_DUES_UPC: str = "PRORATEDDUES"
    ONLINE_SALES_REP_CODE: int = 1109779
    NM_TAX_RATE: Decimal = Decimal("0.07625")

    # Contract archive
    CONTRACTS_DIR: str = "contracts"

    # Email
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 25
    SMTP_USERNAME: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_STARTTLS: bool = False
    DEFAULT_FROM_EMAIL: str = "onlineenrollment@example.com"
    DEFAULT_FROM_NAME: str = "Online Enrollment"
    NEW_MEMBER_NOTIFICATION_EMAILS: str = ""
    CRITICAL_ALERT_EMAILS: str = ""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("NM_DATABASE_URL", "DNV_DATABASE_URL", "MAC_DATABASE_URL")
    @classmethod
    def blank_url_is_unset(cls, v: Optional[str]) -> Optional[str]:
        if isinstance(v, str) and not v.strip():
            return None
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Return the global settings instance, cached.
    """
    return Settings()
