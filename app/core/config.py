import logging
from functools import lru_cache
from typing import ClassVar, List

from dotenv import load_dotenv
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file
load_dotenv(".env")
logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Class to store all the settings of the Samadhan application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------
    # Environment
    # ------------------------------
    ENVIRONMENT: str = "development"

    # ------------------------------
    # Database - Required
    # ------------------------------
    DATABASE_URL: str
    DB_ECHO: bool = False

    # ------------------------------
    # Auth - Required
    # ------------------------------
    ACCESS_TOKEN_SECRET: str
    REFRESH_TOKEN_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 30
    BCRYPT_ROUNDS: int = 12

    # ------------------------------
    # Verification
    # ------------------------------
    EMAIL_VERIFICATION_EXPIRE_HOURS: int = 24
    PHONE_CODE_EXPIRE_MINUTES: int = 10
    PASSWORD_RESET_EXPIRE_MINUTES: int = 60
    AUTO_VERIFY: bool = False

    # ------------------------------
    # Rate limiting
    # ------------------------------
    RATE_LIMIT_ENABLED: bool = True
    AUTH_RATE_LIMIT: str = "10/15minutes"
    VERIFICATION_RATE_LIMIT: str = "3/5minutes"

    # ------------------------------
    # URLs
    # ------------------------------
    FRONTEND_URL: str = "http://localhost:8080"
    CORS_ORIGINS: str = (
        "http://localhost:8080,http://localhost:5173,http://localhost:3000,"
        "http://localhost,capacitor://localhost,ionic://localhost"
    )

    # ------------------------------
    # Email (Microsoft Graph) - Optional
    # ------------------------------
    MICROSOFT_TENANT_ID: str = ""
    MICROSOFT_CLIENT_ID: str = ""
    MICROSOFT_CLIENT_SECRET: str = ""
    EMAIL_SENDER: str = "no-reply@samadhan.app"

    # ------------------------------
    # SMS (Twilio) - Optional
    # ------------------------------
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_FROM_NUMBER: str = ""

    # ------------------------------
    # AWS - Optional (avatar uploads)
    # ------------------------------
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "ap-south-1"
    AWS_S3_BUCKET: str = ""
    AWS_S3_BASE_URL: str = ""

    # ------------------------------
    # Database models
    # ------------------------------
    DB_MODELS: ClassVar[List[str]] = [
        "app.models.user",
        "app.models.refreshtoken",
        "app.models.verificationchallenge",
    ]

    @model_validator(mode="after")
    def check_token_secrets(self) -> "Settings":
        if self.ACCESS_TOKEN_SECRET == self.REFRESH_TOKEN_SECRET:
            raise ValueError("ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET must differ")
        return self

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Build the process-wide settings object once."""
    return Settings()
