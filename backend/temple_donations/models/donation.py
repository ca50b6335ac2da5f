"""
Donation Model — The ledger entry for every donation and its payment lifecycle.
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, JSON, Boolean, Text, ForeignKey

from temple_donations.database import Base


class DonationStatus:
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    PENDING_UPI = "pending_upi"
    COMPLETED_UPI = "completed_upi"
    FAILED_UPI = "failed_upi"

    OPEN = (PENDING, PENDING_UPI)
    COMPLETED_STATES = (COMPLETED, COMPLETED_UPI)
    FAILED_STATES = (FAILED, FAILED_UPI)
    ALL = (PENDING, COMPLETED, FAILED, REFUNDED, PENDING_UPI, COMPLETED_UPI, FAILED_UPI)


class Donation(Base):
    __tablename__ = "donations"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    payment_id = Column(String(64), unique=True, nullable=False, index=True)  # txnid sent to the gateway

    user_id = Column(Integer, nullable=True)
    category_id = Column(Integer, ForeignKey("donation_categories.id"), nullable=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=True)

    amount = Column(Integer, nullable=False)  # Whole rupees
    name = Column(String(128), nullable=False)
    email = Column(String(256), nullable=False)
    phone = Column(String(32), nullable=False)
    message = Column(Text, nullable=True)
    pan_card = Column(String(10), nullable=True)
    payment_method = Column(String(16), default="netbanking")  # netbanking | upi

    # pending | completed | failed | refunded | pending_upi | completed_upi | failed_upi
    status = Column(String(16), default=DonationStatus.PENDING, nullable=False, index=True)
    invoice_number = Column(String(32), unique=True, nullable=True)

    receipt_sent = Column(Boolean, default=False, nullable=False)
    notification_sent = Column(Boolean, default=False, nullable=False)

    gateway_txn_id = Column(String(64), nullable=True)  # mihpayid
    gateway_response = Column(JSON, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_completed(self) -> bool:
        return self.status in DonationStatus.COMPLETED_STATES

    @property
    def is_upi(self) -> bool:
        return "upi" in (self.status or "") or self.payment_method == "upi"
