"""
tutorhub/core/config.py
Configuration settings using Pydantic
"""
from pydantic_settings import BaseSettings
from typing import List, Literal
from functools import lru_cache

class Settings(BaseSettings):
    """Application settings"""

    # Application
    PROJECT_NAME: str = "TutorHub Admin"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development, staging, production
    API_V1_PREFIX: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    # Security (tokens are issued by the identity provider, verified here)
    SECRET_KEY: str
    ALGORITHM: str = "HS256"

    # Supabase
    SUPABASE_URL: str
    SUPABASE_KEY: str  # anon/public key

    # Email (SendGrid)
    SENDGRID_API_KEY: str = ""
    FROM_EMAIL: str = "noreply@tutorhub.app"
    FROM_NAME: str = "TutorHub"

    # CORS
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Payment ledger
    DEFAULT_CURRENCY: str = "XAF"
    RECEIPT_PREFIX: str = "TUT"
    DEFAULT_PAYMENT_METHOD: str = "cash"
    TRACK_OVERPAID_STATUS: bool = False
    # allow: duplicates permitted, reject: 409, merge: append to the existing record
    DUPLICATE_PERIOD_POLICY: Literal["allow", "reject", "merge"] = "allow"
    LEDGER_WRITE_RETRIES: int = 3

    class Config:
        env_file = ".env"
        case_sensitive = True

@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()

settings = get_settings()
