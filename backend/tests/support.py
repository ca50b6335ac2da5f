"""Shared fixtures for the test suites: in-memory database, test settings, fake channels."""
import tempfile

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from temple_donations.config import Settings
from temple_donations.database import init_db
from temple_donations.services import build_services
from temple_donations.utils.hashing import HashFields, compute_response_signature

MERCHANT_KEY = "testkey"
MERCHANT_SALT = "testsalt"


def make_settings(**overrides) -> Settings:
    values = dict(
        PAYU_MERCHANT_KEY=MERCHANT_KEY,
        PAYU_MERCHANT_SALT=MERCHANT_SALT,
        DATABASE_URL="sqlite://",
        LOG_DIR=tempfile.mkdtemp(prefix="donations-logs-"),
        RECEIPT_DIR=tempfile.mkdtemp(prefix="donations-receipts-"),
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_session_factory(path=None):
    """In-memory database shared by every session, or a real SQLite file at ``path``."""
    if path:
        engine = create_engine(f"sqlite:///{path}", connect_args={"check_same_thread": False, "timeout": 30})
    else:
        engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    init_db(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeEmailChannel:
    enabled = True

    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.sent = []

    def send_receipt(self, data, document, filename):
        self.sent.append((data, document, filename))
        return self.succeed


class FakeWhatsAppChannel:
    enabled = True

    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.receipts = []
        self.failure_notices = []

    def send_receipt(self, data, media_url=None):
        self.receipts.append((data, media_url))
        return self.succeed

    def send_failure_notice(self, phone, name, amount, purpose):
        self.failure_notices.append((phone, name, amount, purpose))
        return self.succeed


def make_services(settings=None, gateway=None, email=None, whatsapp=None):
    settings = settings or make_settings()
    return build_services(
        settings,
        gateway=gateway,
        email=email or FakeEmailChannel(),
        whatsapp=whatsapp or FakeWhatsAppChannel(),
    )


def signed_callback(donation, status="success", key=MERCHANT_KEY, salt=MERCHANT_SALT, **extra) -> dict:
    """A gateway callback body for ``donation`` carrying a valid response hash."""
    body = {
        "txnid": donation.payment_id,
        "amount": f"{donation.amount}.00",
        "productinfo": "Donation for ISKCON Juhu - General Donation",
        "firstname": donation.name,
        "email": donation.email,
        "status": status,
        "mihpayid": "403993715521937565",
        "udf1": donation.payment_method or "",
    }
    body.update(extra)
    body["hash"] = compute_response_signature(HashFields.from_mapping(body, key), status, salt)
    return body
