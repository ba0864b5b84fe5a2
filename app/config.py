from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Optional
from functools import lru_cache
from decimal import Decimal
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str

    # Database Connection Pool Settings
    DB_POOL_SIZE: int = 10  # Base number of connections in pool
    DB_MAX_OVERFLOW: int = 20  # Extra connections allowed beyond pool_size
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for connection from pool
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes

    # JWT Settings
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # App Settings
    APP_NAME: str = "EcoVale HR"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Bootstrap admin, created on startup when both are set and the user is missing
    FIRST_ADMIN_EMAIL: Optional[str] = None
    FIRST_ADMIN_PASSWORD: Optional[str] = None

    # Letterhead
    COMPANY_NAME: str = "EcoVale Technologies Pvt. Ltd."
    COMPANY_ADDRESS: str = "Bangalore, Karnataka, India"

    # Payroll
    PAYROLL_DEFAULT_WORKING_DAYS: int = 26  # Used when no attendance is recorded
    PF_WAGE_CEILING: Decimal = Decimal("15000")  # Monthly PF wage cap
    PF_EMPLOYEE_RATE: Decimal = Decimal("0.12")
    PF_EMPLOYER_RATE: Decimal = Decimal("0.12")
    ESI_EMPLOYEE_RATE: Decimal = Decimal("0.0075")
    ESI_EMPLOYER_RATE: Decimal = Decimal("0.0325")
    ESI_WAGE_CEILING: Decimal = Decimal("21000")  # ESI applies strictly below this gross
    BASIC_PERCENT_OF_CTC: Decimal = Decimal("0.50")
    GRATUITY_RATE: Decimal = Decimal("0.0481")  # Annual provision on annual basic
    PT_THRESHOLD: Decimal = Decimal("25000")
    PT_AMOUNT: Decimal = Decimal("200")

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(',')]
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin for origin in self.CORS_ORIGINS if origin]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
