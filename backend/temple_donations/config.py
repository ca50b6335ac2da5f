"""
Application Configuration — Environment & Settings
Centralizes all config from .env with Pydantic Settings for validation.
"""
from pathlib import Path
from functools import lru_cache
from pydantic_settings import BaseSettings

from temple_donations.utils.validators import validate_upi_vpa

# Resolve paths relative to backend/ directory
BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # --- Core ---
    APP_NAME: str = "Temple Donations API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # --- Database ---
    DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'data' / 'donations.db'}"

    # --- Organisation (printed on receipts and UPI intents) ---
    ORG_NAME: str = "ISKCON Juhu"
    ORG_ADDRESS: str = "Hare Krishna Land, Juhu, Mumbai - 400049"
    ORG_CONTACT: str = "Phone: +91-22-2620-6860 | Email: donations@iskconjuhu.org"
    DEFAULT_PURPOSE: str = "ISKCON Juhu Donation"

    # --- Payment gateway (PayU) ---
    PAYU_MERCHANT_KEY: str = ""
    PAYU_MERCHANT_SALT: str = ""
    PAYU_MODE: str = "LIVE"
    PAYU_PAYMENT_URL: str = "https://secure.payu.in/_payment"
    PAYU_VERIFY_URL: str = "https://info.payu.in/merchant/postservice.php?form=2"
    GATEWAY_TIMEOUT_SECONDS: float = 15.0
    VERIFY_FAILURE_CALLBACKS: bool = False

    # --- Transactions ---
    TXN_PREFIX: str = "ISKCON"
    MIN_AMOUNT: int = 1
    MAX_AMOUNT: int = 500000  # 5 lakh limit for online donations

    # --- UPI ---
    UPI_VPA: str = "iskconjuhu@sbi"
    UPI_PAYEE_NAME: str = "ISKCON Juhu"

    # --- Redirect targets after gateway callbacks ---
    THANK_YOU_URL: str = "/donate/thank-you"
    FAILURE_URL: str = "/donate/payment-failed"
    INVALID_CALLBACK_URL: str = "/donate?status=invalid"

    # --- Email (SMTP) ---
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = True
    EMAIL_FROM: str = "ISKCON Juhu <donations@iskconjuhu.org>"

    # --- WhatsApp (Twilio) ---
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_PHONE_NUMBER: str = ""
    TWILIO_API_URL: str = "https://api.twilio.com/2010-04-01"
    NOTIFY_TIMEOUT_SECONDS: float = 10.0

    # --- Receipt media published for WhatsApp attachments ---
    PUBLIC_BASE_URL: str = ""
    RECEIPT_DIR: str = str(BASE_DIR / "data" / "receipts")
    RECEIPT_FILE_TTL_MINUTES: int = 5

    # --- Security ---
    CORS_ORIGINS: list[str] = ["*"]

    # --- Logging ---
    LOG_DIR: str = str(BASE_DIR / "logs")
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = str(BASE_DIR / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True

    @property
    def payments_enabled(self) -> bool:
        return bool(self.PAYU_MERCHANT_KEY and self.PAYU_MERCHANT_SALT)

    @property
    def email_enabled(self) -> bool:
        return bool(self.SMTP_HOST)

    @property
    def whatsapp_enabled(self) -> bool:
        return bool(self.TWILIO_ACCOUNT_SID and self.TWILIO_AUTH_TOKEN and self.TWILIO_PHONE_NUMBER)


def validate_payment_config(settings: Settings) -> list[str]:
    """Return a list of configuration problems for the payment features.

    An empty list means live payments and WhatsApp receipts are fully usable.
    """
    errors = []
    if not settings.PAYU_MERCHANT_KEY:
        errors.append("PAYU_MERCHANT_KEY is required for live payments")
    if not settings.PAYU_MERCHANT_SALT:
        errors.append("PAYU_MERCHANT_SALT is required for live payments")
    if not settings.TWILIO_ACCOUNT_SID:
        errors.append("TWILIO_ACCOUNT_SID is required for WhatsApp notifications")
    if not settings.TWILIO_AUTH_TOKEN:
        errors.append("TWILIO_AUTH_TOKEN is required for WhatsApp notifications")
    if not settings.TWILIO_PHONE_NUMBER:
        errors.append("TWILIO_PHONE_NUMBER is required for WhatsApp notifications")
    if not settings.SMTP_HOST:
        errors.append("SMTP_HOST is required for email receipts")
    if not validate_upi_vpa(settings.UPI_VPA):
        errors.append(f"UPI_VPA {settings.UPI_VPA!r} is not a valid UPI address")
    return errors


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
