
import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///local.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    STORE_TIMEZONE = os.getenv("STORE_TIMEZONE", "UTC")
    SLOTS_PER_DAY = int(os.getenv("SLOTS_PER_DAY", "4"))
    CANCELLATION_CUTOFF_HOURS = int(os.getenv("CANCELLATION_CUTOFF_HOURS", "0"))
    BANK_ACCOUNT_INFO = os.getenv("BANK_ACCOUNT_INFO", "Please contact the store for account details.")

    NOTIFY_WEBHOOK_URL = os.getenv("NOTIFY_WEBHOOK_URL")
    NOTIFY_TIMEOUT_SECONDS = float(os.getenv("NOTIFY_TIMEOUT_SECONDS", "5"))

    RATE_LIMIT_WINDOW = 60
    TRUSTED_PROXY_COUNT = int(os.getenv("TRUSTED_PROXY_COUNT", "0"))
    RATE_LIMIT_MAX = int(os.getenv("RATE_LIMIT_MAX", "12"))


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    STORE_TIMEZONE = "UTC"
    CANCELLATION_CUTOFF_HOURS = 0
    NOTIFY_WEBHOOK_URL = None
    RATE_LIMIT_MAX = 1000
