import logging
import os
from dataclasses import dataclass, field
from dotenv import load_dotenv

load_dotenv()

@dataclass
class Settings:
    # API settings
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "5001"))
    cors_origins: list = field(
        default_factory=lambda: [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    )

    # Database settings
    database_name: str = os.getenv("DATABASE_NAME", "libraryDB")

    # Circulation rules
    fine_per_day: int = int(os.getenv("FINE_PER_DAY", "5"))
    default_loan_days: int = int(os.getenv("DEFAULT_LOAN_DAYS", "14"))

    # Payment settings
    upi_id: str = os.getenv("UPI_ID", "raitlibrary@axisbank")
    payment_method: str = os.getenv("PAYMENT_METHOD", "UPI")

    # Application settings
    app_name: str = os.getenv("APP_NAME", "Library Desk")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()


def configure_logging() -> None:
    """Set up root logging at the configured level. Called by the API and CLI entry points."""
    level = getattr(logging, settings.log_level, logging.INFO)
    logging.basicConfig(level=level)
    # basicConfig leaves the level alone when handlers already exist
    logging.getLogger().setLevel(level)
