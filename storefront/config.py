import os
import logging
from pathlib import Path
from dotenv import load_dotenv
from typing import List

# Load environment variables
load_dotenv()

# Base directory of the project
BASE_DIR = Path(__file__).resolve().parent.parent

TRANSACTION_MODES = ("auto", "always", "never")


class Config:
    """Configuration settings for the storefront back office"""

    # Database settings
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")
    DB_POOL_MIN_SIZE: int = int(os.getenv("DB_POOL_MIN_SIZE", "2"))
    DB_POOL_MAX_SIZE: int = int(os.getenv("DB_POOL_MAX_SIZE", "10"))
    # pgbouncer in statement/transaction pooling mode needs this set to 0
    DB_STATEMENT_CACHE_SIZE: int = int(os.getenv("DB_STATEMENT_CACHE_SIZE", "100"))

    # auto: probe and fall back, always: never fall back, never: always sequential
    TRANSACTION_MODE: str = os.getenv("TRANSACTION_MODE", "auto").lower()

    # Notification settings
    TELEGRAM_TOKEN: str = os.getenv("TELEGRAM_TOKEN", "")

    # Admin settings
    ADMIN_IDS: List[int] = [
        int(id_) for id_ in os.getenv("ADMIN_IDS", "").split(",")
        if id_.strip().isdigit()
    ]

    # Other settings
    TIMEZONE: str = os.getenv("TZ", "UTC")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    DEBUG: bool = os.getenv("DEBUG", "").lower() in ("1", "true", "yes")

    # Paths
    LOG_DIR = Path(os.getenv("LOG_DIR", str(BASE_DIR / "logs")))

    @classmethod
    def validate(cls):
        """Check required settings before the application starts"""
        if not cls.DATABASE_URL:
            raise ValueError("No DATABASE_URL set in environment")
        if cls.TRANSACTION_MODE not in TRANSACTION_MODES:
            raise ValueError(
                f"TRANSACTION_MODE must be one of {', '.join(TRANSACTION_MODES)}, "
                f"got {cls.TRANSACTION_MODE!r}"
            )
        if cls.DB_POOL_MIN_SIZE > cls.DB_POOL_MAX_SIZE:
            raise ValueError("DB_POOL_MIN_SIZE cannot exceed DB_POOL_MAX_SIZE")


def setup_logging():
    """Configure logging settings"""
    Config.LOG_DIR.mkdir(parents=True, exist_ok=True)
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    log_file = Config.LOG_DIR / "storefront.log"

    logging.basicConfig(
        level=getattr(logging, Config.LOG_LEVEL, logging.INFO),
        format=log_format,
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )
