"""
Donation Service — Turns a donation intent into a pending ledger entry and a signed gateway form.
"""
import logging
import secrets
import string
from dataclasses import dataclass, field
from typing import Dict, Optional

from sqlalchemy.orm import Session

from temple_donations.config import Settings, get_settings
from temple_donations.exceptions import DonationValidationError
from temple_donations.models.donation import Donation, DonationStatus
from temple_donations.schemas.schemas import DonationIntent
from temple_donations.services.gateway_service import PayUGateway
from temple_donations.services.ledger import DonationLedger
from temple_donations.services.upi_service import UpiService
from temple_donations.utils.validators import validate_email, validate_pan, sanitize_name

logger = logging.getLogger(__name__)

_TOKEN_ALPHABET = string.ascii_letters + string.digits


def generate_payment_id(prefix: str, length: int = 10) -> str:
    """Random merchant transaction id, e.g. ISKCON_aB3dE5fG7h."""
    token = "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(length))
    return f"{prefix}_{token}"


@dataclass
class InitiatedPayment:
    donation: Donation
    gateway_url: str
    form_fields: Dict[str, str]
    upi_data: Optional[Dict] = field(default=None)

    @property
    def payment_id(self) -> str:
        return self.donation.payment_id


class DonationService:
    """Starts donation payments."""

    def __init__(self, gateway: PayUGateway, upi: UpiService, settings: Optional[Settings] = None):
        self.gateway = gateway
        self.upi = upi
        self.settings = settings or get_settings()

    def validate(self, intent: DonationIntent):
        if intent.amount <= 0:
            raise DonationValidationError("Amount must be a positive number of rupees")
        if intent.amount < self.settings.MIN_AMOUNT or intent.amount > self.settings.MAX_AMOUNT:
            raise DonationValidationError(
                f"Amount must be between {self.settings.MIN_AMOUNT} and {self.settings.MAX_AMOUNT}"
            )
        if not sanitize_name(intent.name):
            raise DonationValidationError("Name is required")
        if not validate_email(intent.email):
            raise DonationValidationError("A valid email is required")
        if not intent.phone or not intent.phone.strip():
            raise DonationValidationError("Phone is required")
        if intent.pan_card and not validate_pan(intent.pan_card):
            raise DonationValidationError("Invalid PAN format")
        if intent.category_id and intent.event_id:
            raise DonationValidationError("A donation can reference a category or an event, not both")

    def product_info(self, intent: DonationIntent) -> str:
        if intent.category_id:
            label = "Temple Donation"
        elif intent.event_id:
            label = "Event Donation"
        else:
            label = "General Donation"
        return f"Donation for {self.settings.ORG_NAME} - {label}"

    def initiate(
        self,
        db: Session,
        intent: DonationIntent,
        success_url: str,
        failure_url: str,
        user_id: Optional[int] = None,
    ) -> InitiatedPayment:
        """Validate, persist the pending donation, then sign the gateway form.

        Raises:
            DonationValidationError: intent is incomplete; nothing is persisted.
            GatewayConfigError: merchant key/salt missing; nothing is persisted.
        """
        self.validate(intent)
        self.gateway.require_configured()

        txnid = generate_payment_id(self.settings.TXN_PREFIX)
        donation = DonationLedger.create(
            db,
            payment_id=txnid,
            amount=intent.amount,
            name=sanitize_name(intent.name),
            email=intent.email.strip(),
            phone=intent.phone.strip(),
            message=intent.message or None,
            pan_card=intent.pan_card.strip().upper() if intent.pan_card else None,
            category_id=intent.category_id,
            event_id=intent.event_id,
            user_id=user_id,
            payment_method=intent.payment_method,
            status=DonationStatus.PENDING,
        )
        logger.info(f"Donation {donation.id} created as pending with txnid {txnid}")

        productinfo = self.product_info(intent)
        request = {
            "txnid": txnid,
            "amount": str(intent.amount),
            "productinfo": productinfo,
            "firstname": donation.name,
            "email": donation.email,
            "phone": donation.phone,
            "surl": success_url,
            "furl": failure_url,
            "udf1": intent.payment_method,
        }
        if intent.payment_method == "upi":
            request["pg"] = "UPI"

        form = self.gateway.build_payment_form(request)

        upi_data = None
        if intent.payment_method == "upi":
            upi_data = {
                "payeeVpa": self.upi.vpa,
                "payeeName": self.upi.payee_name,
                "amount": intent.amount,
                "transactionId": txnid,
                "transactionNote": productinfo,
            }

        return InitiatedPayment(
            donation=donation,
            gateway_url=self.gateway.payment_url,
            form_fields=form,
            upi_data=upi_data,
        )
