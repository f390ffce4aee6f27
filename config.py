import os

from dotenv import load_dotenv

load_dotenv()

class Settings:
    # --- Database ---
    DATABASE_URL = os.environ.get("DATABASE_URL")
    DATABASE_PUBLIC_URL = os.environ.get("DATABASE_PUBLIC_URL")

    # --- Redis (Celery broker) ---
    REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

    # --- Telnyx (SMS) ---
    TELNYX_API_KEY = os.environ.get("TELNYX_API_KEY")
    TELNYX_FROM_NUMBER = os.environ.get("TELNYX_FROM_NUMBER")

    # --- Google Calendar (optional, best-effort) ---
    GOOGLE_CALENDAR_TOKEN_FILE = os.environ.get("GOOGLE_CALENDAR_TOKEN_FILE")
    GOOGLE_CALENDAR_ID = os.environ.get("GOOGLE_CALENDAR_ID", "primary")

    # --- Scheduler (in-process ticker; leave off when Celery beat drives ticks) ---
    SCHEDULER_ENABLED = os.environ.get("SCHEDULER_ENABLED", "false").lower() in ("1", "true", "yes")
    SCHEDULER_INTERVAL_SECONDS = float(os.environ.get("SCHEDULER_INTERVAL_SECONDS", "60"))
    DEFAULT_TIMEZONE = os.environ.get("DEFAULT_TIMEZONE", "America/Argentina/Buenos_Aires")
    DEFAULT_DIGEST_HOUR = int(os.environ.get("DEFAULT_DIGEST_HOUR", "8"))
    WEEKLY_SUMMARY_HOUR = int(os.environ.get("WEEKLY_SUMMARY_HOUR", "8"))
    MONTHLY_SUMMARY_HOUR = int(os.environ.get("MONTHLY_SUMMARY_HOUR", "8"))

    # --- Delivery retry policy: none | fixed | exponential ---
    DELIVERY_RETRY_MODE = os.environ.get("DELIVERY_RETRY_MODE", "none")
    DELIVERY_RETRY_ATTEMPTS = int(os.environ.get("DELIVERY_RETRY_ATTEMPTS", "3"))
    DELIVERY_RETRY_DELAY = float(os.environ.get("DELIVERY_RETRY_DELAY", "5"))
    DELIVERY_RETRY_CAP = float(os.environ.get("DELIVERY_RETRY_CAP", "60"))

    # --- Logging ---
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

settings = Settings()
