"""
Callback Reconciler — Applies gateway outcomes to the donation ledger.

Inputs are gateway success/failure callbacks and UPI verification polls.
Each input produces at most one status transition and, only for the
invocation that performed the transition, at most one dispatch. The
transition is committed before anything is sent, so a crash in between
leaves a completed-but-undelivered donation rather than a double send.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from temple_donations.config import Settings, get_settings
from temple_donations.exceptions import DonationValidationError, GatewayConfigError
from temple_donations.models.donation import Donation, DonationStatus
from temple_donations.schemas.schemas import FailureCallback, SuccessCallback, VerificationResult
from temple_donations.services.dispatcher import ReceiptDispatcher
from temple_donations.services.gateway_service import PayUGateway
from temple_donations.services.ledger import DonationLedger
from temple_donations.services.upi_service import UpiService

logger = logging.getLogger(__name__)


class ReconcileOutcome(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    PENDING = "pending"
    DUPLICATE = "duplicate"   # already terminal, nothing changed
    ORPHAN = "orphan"         # no donation with this txnid
    REJECTED = "rejected"     # callback could not be trusted


@dataclass
class ReconcileResult:
    outcome: ReconcileOutcome
    donation: Optional[Donation] = None
    message: str = ""
    verification: Optional[VerificationResult] = None

    @property
    def applied(self) -> bool:
        return self.outcome in (ReconcileOutcome.COMPLETED, ReconcileOutcome.FAILED)


def make_invoice_number(donation: Donation, now: Optional[datetime] = None) -> str:
    """INV-YYMM-NNNN, where NNNN is the donation id (unique per ledger)."""
    now = now or datetime.utcnow()
    return f"INV-{now.strftime('%y%m')}-{donation.id:04d}"


def _same_amount(reported: str, expected: int) -> bool:
    try:
        return Decimal(str(reported).strip()) == Decimal(expected)
    except (InvalidOperation, ValueError):
        return False


class CallbackReconciler:
    def __init__(
        self,
        gateway: PayUGateway,
        dispatcher: ReceiptDispatcher,
        upi: UpiService,
        settings: Optional[Settings] = None,
    ):
        self.gateway = gateway
        self.dispatcher = dispatcher
        self.upi = upi
        self.settings = settings or get_settings()

    # ─── Gateway callbacks ──────────────────────────────────────────

    def handle_success(self, db: Session, callback: SuccessCallback) -> ReconcileResult:
        payload = callback.payload()
        try:
            authentic = self.gateway.verify_callback(payload)
        except GatewayConfigError as e:
            logger.error(f"Cannot verify success callback for {callback.txnid}: {e}")
            return ReconcileResult(ReconcileOutcome.REJECTED, message=str(e))

        if not authentic:
            logger.warning(f"Invalid payment hash on success callback for {callback.txnid}")
            return ReconcileResult(ReconcileOutcome.REJECTED, message="Invalid payment hash")

        donation = DonationLedger.get_by_payment_id(db, callback.txnid)
        if not donation:
            logger.warning(f"Success callback for unknown txnid {callback.txnid}")
            return ReconcileResult(ReconcileOutcome.ORPHAN, message="Donation not found")

        if callback.status.lower() != "success":
            return self._fail(db, donation, payload, DonationStatus.FAILED)

        if not _same_amount(callback.amount, donation.amount):
            logger.warning(
                f"Amount mismatch for {callback.txnid}: gateway reported {callback.amount}, "
                f"ledger has {donation.amount}"
            )
            return ReconcileResult(ReconcileOutcome.REJECTED, donation, message="Amount mismatch")

        return self._complete(
            db, donation, DonationStatus.COMPLETED,
            gateway_response=payload,
            gateway_txn_id=callback.mihpayid,
        )

    def handle_failure(self, db: Session, callback: FailureCallback) -> ReconcileResult:
        payload = callback.payload()
        if self.settings.VERIFY_FAILURE_CALLBACKS:
            try:
                authentic = self.gateway.verify_callback(payload)
            except GatewayConfigError as e:
                logger.error(f"Cannot verify failure callback for {callback.txnid}: {e}")
                authentic = False
            if not authentic:
                logger.warning(f"Invalid payment hash on failure callback for {callback.txnid}")
                return ReconcileResult(ReconcileOutcome.REJECTED, message="Invalid payment hash")

        donation = DonationLedger.get_by_payment_id(db, callback.txnid)
        if not donation:
            logger.warning(f"Failure callback for unknown txnid {callback.txnid}")
            return ReconcileResult(ReconcileOutcome.ORPHAN, message="Donation not found")

        return self._fail(db, donation, payload, DonationStatus.FAILED, gateway_txn_id=callback.mihpayid)

    # ─── UPI channel ────────────────────────────────────────────────

    def issue_upi_intent(self, db: Session, txnid: str, amount: int) -> tuple[ReconcileResult, Optional[str]]:
        """Move a pending donation onto the UPI channel and return its intent URL."""
        donation = DonationLedger.get_by_payment_id(db, txnid)
        if not donation:
            return ReconcileResult(ReconcileOutcome.ORPHAN, message="Donation not found"), None
        if donation.amount != amount:
            raise DonationValidationError("Amount does not match the donation")
        if donation.status not in DonationStatus.OPEN:
            return ReconcileResult(ReconcileOutcome.DUPLICATE, donation, message="Donation already processed"), None

        DonationLedger.transition(
            db, txnid, [DonationStatus.PENDING], DonationStatus.PENDING_UPI, payment_method="upi",
        )
        DonationLedger.reload(db, donation)
        return ReconcileResult(ReconcileOutcome.PENDING, donation), self.upi.intent_url(txnid, amount)

    def verify_upi(self, db: Session, txnid: str) -> ReconcileResult:
        """Poll the gateway for a UPI payment and apply a settled outcome."""
        donation = DonationLedger.get_by_payment_id(db, txnid)
        if not donation:
            return ReconcileResult(ReconcileOutcome.ORPHAN, message="Donation record not found")

        if donation.status not in DonationStatus.OPEN:
            return ReconcileResult(ReconcileOutcome.DUPLICATE, donation, message="Payment already processed")

        result = self.gateway.verify_payment(txnid)
        logger.info(f"UPI verification for {txnid}: {result.status}")

        if result.status == "success":
            outcome = self._complete(db, donation, DonationStatus.COMPLETED_UPI, gateway_response=result.raw)
        elif result.status == "failed":
            outcome = self._fail(db, donation, result.raw, DonationStatus.FAILED_UPI)
        else:
            outcome = ReconcileResult(ReconcileOutcome.PENDING, donation)

        outcome.verification = result
        outcome.message = result.message
        return outcome

    # ─── Transitions ────────────────────────────────────────────────

    def _complete(self, db: Session, donation: Donation, to_status: str, **fields) -> ReconcileResult:
        invoice_number = make_invoice_number(donation)
        fields = {k: v for k, v in fields.items() if v is not None}
        applied = DonationLedger.transition(
            db,
            donation.payment_id,
            DonationStatus.OPEN,
            to_status,
            invoice_number=func.coalesce(Donation.invoice_number, invoice_number),
            **fields,
        )
        DonationLedger.reload(db, donation)
        if not applied:
            logger.info(f"Duplicate completion for {donation.payment_id} (status={donation.status})")
            return ReconcileResult(ReconcileOutcome.DUPLICATE, donation, message="Payment already processed")

        logger.info(f"Donation {donation.payment_id} -> {to_status}, invoice {donation.invoice_number}")
        self.dispatcher.dispatch_receipt(db, donation)
        DonationLedger.reload(db, donation)
        return ReconcileResult(ReconcileOutcome.COMPLETED, donation, message="Payment verified successfully")

    def _fail(self, db: Session, donation: Donation, payload: Dict, to_status: str, **fields) -> ReconcileResult:
        fields = {k: v for k, v in fields.items() if v is not None}
        applied = DonationLedger.transition(
            db,
            donation.payment_id,
            DonationStatus.OPEN,
            to_status,
            gateway_response=payload,
            **fields,
        )
        DonationLedger.reload(db, donation)
        if not applied:
            logger.info(f"Duplicate failure for {donation.payment_id} (status={donation.status})")
            return ReconcileResult(ReconcileOutcome.DUPLICATE, donation, message="Payment already processed")

        logger.info(f"Donation {donation.payment_id} -> {to_status}")
        self.dispatcher.dispatch_failure_notice(db, donation)
        DonationLedger.reload(db, donation)
        return ReconcileResult(ReconcileOutcome.FAILED, donation, message="Payment failed")
