# stock_ledger/core/config.py
import os
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from .env"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Database ===
    DATABASE_URL: str
    AUTO_CREATE_TABLES: bool = False

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v):
        """Ensure database URL is safe for current environment"""
        env = os.getenv("ENVIRONMENT", "development").lower()
        if env == "production" and ("localhost" in v or v.startswith("sqlite")):
            raise ValueError("Production environment cannot use a local database")
        return v

    # === Redis (stock update fan-out across workers) ===
    REDIS_URL: Optional[str] = None

    # === JWT ===
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # === CORS ===
    ALLOWED_ORIGINS: List[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]
    ALLOWED_METHODS: List[str] = ["*"]
    ALLOWED_HEADERS: List[str] = ["*"]

    # === System ===
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = True

    # === Stock engine ===
    STOCK_UPDATES_CHANNEL: str = "stockUpdate"
    STOCK_USE_TRANSACTIONS: bool = True
    STOCK_ALLOW_NEGATIVE: bool = True
    LOW_STOCK_THRESHOLD: int = 10
    # Stand-in unit value for dashboard totals; real costing lives elsewhere.
    STOCK_PLACEHOLDER_UNIT_VALUE: int = 10


# Create a global settings instance
settings = Settings()
