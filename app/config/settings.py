"""
Application settings and configuration
"""
import os
from datetime import datetime
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


class Settings:
    # Application
    APP_NAME = "Plany Commission Ledger"
    VERSION = "1.0.0"
    DEBUG = os.getenv("DEBUG", "True") == "True"
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    TIMEZONE = os.getenv("TIMEZONE", "Africa/Tunis")

    # Security
    SECRET_KEY = os.getenv("SECRET_KEY", "your-secret-key-change-in-production")
    ALGORITHM = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24  # 24 hours

    # CORS
    ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.getenv(
            "ALLOWED_ORIGINS",
            "http://localhost:3000,http://localhost:3001,http://127.0.0.1:3000",
        ).split(",")
        if origin.strip()
    ]

    # Pagination
    DEFAULT_PAGE_SIZE = 20
    MAX_PAGE_SIZE = 100

    # Commission rules
    COMMISSION_ENABLED = _env_bool("COMMISSION_ENABLED", "true")
    COMMISSION_RATE = float(os.getenv("COMMISSION_RATE", "5"))
    COMMISSION_EFFECTIVE_DATE = datetime.fromisoformat(
        os.getenv("COMMISSION_EFFECTIVE_DATE", "2025-01-01")
    )
    COMMISSION_MONTHLY_THRESHOLD = float(os.getenv("COMMISSION_MONTHLY_THRESHOLD", "50"))

    # Mail (Mailgun-style HTTP API)
    MAIL_ACTIVE = _env_bool("MAIL_ACTIVE", "false")
    MAIL_API_URL = os.getenv("MAIL_API_URL", "https://api.mailgun.net/v3/mg.plany.tn/messages")
    MAIL_API_KEY = os.getenv("MAIL_API_KEY", "")
    MAIL_FROM = os.getenv("MAIL_FROM", "Plany <no-reply@plany.tn>")
    INFO_EMAIL = os.getenv("INFO_EMAIL", "info@plany.tn")

    # SMS gateway
    SMS_ACTIVE = _env_bool("SMS_ACTIVE", "false")
    SMS_API_URL = os.getenv("SMS_API_URL", "https://app.tunisiesms.tn/Api/Api.aspx")
    SMS_API_KEY = os.getenv("SMS_API_KEY", "")
    SMS_SENDER = os.getenv("SMS_SENDER", "PLANY.TN")

settings = Settings()
