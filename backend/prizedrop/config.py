import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    DB_URL: str = os.getenv("DATABASE_URL")
    DB_ECHO: bool = os.getenv("DB_ECHO", "false").lower() in ("true", "1", "yes")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    PAYMENT_GATEWAY_URL: str = os.getenv("PAYMENT_GATEWAY_URL")
    PAYMENT_API_KEY: str = os.getenv("PAYMENT_API_KEY")
    PAYMENT_TIMEOUT_SECONDS: float = float(os.getenv("PAYMENT_TIMEOUT_SECONDS", "30"))
    PAYMENT_TRANSPORT_RETRIES: int = int(os.getenv("PAYMENT_TRANSPORT_RETRIES", "2"))
    CURRENCY: str = os.getenv("CURRENCY", "usd")
    DEPOSIT_REDIRECT_URL: str = os.getenv("DEPOSIT_REDIRECT_URL")

    NOTIFICATION_URL: str = os.getenv("NOTIFICATION_URL")
    NOTIFICATION_API_KEY: str = os.getenv("NOTIFICATION_API_KEY")

    SCHEDULER_URL: str = os.getenv("SCHEDULER_URL")
    SCHEDULER_EVENT_KEY: str = os.getenv("SCHEDULER_EVENT_KEY")
    APP_URL: str = os.getenv("APP_URL", "http://localhost:8000")
    CALLBACK_SECRET: str = os.getenv("CALLBACK_SECRET")

    # product policy
    MIN_PRIZE_AMOUNT: int = int(os.getenv("MIN_PRIZE_AMOUNT", "1"))
    MAX_GIVEAWAY_DURATION_HOURS: int = int(os.getenv("MAX_GIVEAWAY_DURATION_HOURS", "0"))
    START_DATE_GRACE_SECONDS: int = int(os.getenv("START_DATE_GRACE_SECONDS", "60"))


settings = Settings()
