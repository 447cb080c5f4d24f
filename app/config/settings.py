"""
Application settings and configuration
"""
import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    # Application
    APP_NAME = os.getenv("APP_NAME", "Logistics HR Core")
    VERSION = "1.0.0"
    DEBUG = os.getenv("DEBUG", "False") == "True"
    APP_ENV = os.getenv("APP_ENV", "production")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Security
    SECRET_KEY = os.getenv("SECRET_KEY", "your-secret-key-change-in-production")
    ALGORITHM = os.getenv("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24  # 24 hours
    ENABLE_AUTH = os.getenv("ENABLE_AUTH", "false").lower() == "true"

    # External auth service (optional)
    AUTH_SERVICE_URL = os.getenv("AUTH_SERVICE_URL", "")
    AUTH_SERVICE_TIMEOUT = float(os.getenv("AUTH_SERVICE_TIMEOUT", "5"))

    # CORS
    ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.getenv(
            "ALLOWED_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000"
        ).split(",")
        if origin.strip()
    ]

    # Pagination
    DEFAULT_PAGE_SIZE = 20
    MAX_PAGE_SIZE = 100

    # Locale
    TIMEZONE = os.getenv("TIMEZONE", "Asia/Jakarta")
    DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "IDR")

    # Leave defaults
    DEFAULT_ANNUAL_ALLOCATION = 12

    @property
    def auth_bypass(self) -> bool:
        """Development mode without ENABLE_AUTH skips token checks"""
        return self.APP_ENV == "development" and not self.ENABLE_AUTH

settings = Settings()
