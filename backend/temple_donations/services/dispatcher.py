"""
Receipt Dispatcher — Renders a donation receipt and delivers it over email and WhatsApp.

The ledger flags are the guard: ``receipt_sent`` / ``notification_sent`` are
checked before sending and set right after the first successful send.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from temple_donations.models.donation import Donation
from temple_donations.services.ledger import DonationLedger
from temple_donations.services.receipt_service import (
    ReceiptData,
    ReceiptFileStore,
    ReceiptService,
    resolve_purpose,
)

logger = logging.getLogger(__name__)


@dataclass
class DispatchReport:
    emailed: bool = False
    messaged: bool = False
    skipped: bool = False

    @property
    def delivered(self) -> bool:
        return self.emailed or self.messaged


class ReceiptDispatcher:
    def __init__(
        self,
        receipts: ReceiptService,
        email,
        whatsapp,
        file_store: Optional[ReceiptFileStore] = None,
    ):
        self.receipts = receipts
        self.email = email
        self.whatsapp = whatsapp
        self.file_store = file_store

    def receipt_data(self, db: Session, donation: Donation) -> ReceiptData:
        return ReceiptData.from_donation(donation, resolve_purpose(db, donation, self.receipts.settings))

    def dispatch_receipt(self, db: Session, donation: Donation, force: bool = False) -> DispatchReport:
        """Send the receipt over both channels, at most once per donation.

        ``force`` is for operator-initiated resends; it skips the flag check
        but still records the flag.
        """
        if donation.receipt_sent and not force:
            logger.info(f"Receipt already sent for {donation.payment_id}, skipping")
            return DispatchReport(skipped=True)

        data = self.receipt_data(db, donation)
        document = self._render(data)
        if document is None:
            return DispatchReport()

        report = DispatchReport(
            emailed=self._send_email(data, document),
            messaged=self._send_whatsapp(data, document),
        )
        if report.delivered:
            DonationLedger.mark_flag(db, donation.id, "receipt_sent")
        else:
            logger.warning(f"Receipt for {donation.payment_id} was not delivered on any channel")
        return report

    def dispatch_failure_notice(self, db: Session, donation: Donation) -> bool:
        """Tell the donor their payment failed. Never sends twice."""
        if donation.notification_sent:
            return False
        if not donation.phone:
            return False
        purpose = resolve_purpose(db, donation, self.receipts.settings)
        try:
            sent = self.whatsapp.send_failure_notice(donation.phone, donation.name, donation.amount, purpose)
        except Exception:
            logger.exception(f"Failed payment notification crashed for {donation.payment_id}")
            sent = False
        if sent:
            DonationLedger.mark_flag(db, donation.id, "notification_sent")
            logger.info(f"Failed payment notification sent for {donation.payment_id}")
        return sent

    def resend_email(self, db: Session, donation: Donation) -> bool:
        data = self.receipt_data(db, donation)
        document = self._render(data)
        sent = document is not None and self._send_email(data, document)
        if sent:
            DonationLedger.mark_flag(db, donation.id, "receipt_sent")
        return sent

    def resend_whatsapp(self, db: Session, donation: Donation) -> bool:
        data = self.receipt_data(db, donation)
        document = self._render(data)
        sent = document is not None and self._send_whatsapp(data, document)
        if sent:
            DonationLedger.mark_flag(db, donation.id, "receipt_sent")
        return sent

    def _render(self, data: ReceiptData) -> Optional[bytes]:
        try:
            return self.receipts.render(data)
        except Exception:
            logger.exception(f"Failed to render receipt for {data.txnid}")
            return None

    def _send_email(self, data: ReceiptData, document: bytes) -> bool:
        if not data.email:
            return False
        try:
            return self.email.send_receipt(data, document, ReceiptService.filename(data))
        except Exception:
            logger.exception(f"Email channel crashed for {data.txnid}")
            return False

    def _send_whatsapp(self, data: ReceiptData, document: bytes) -> bool:
        if not data.phone or not self.whatsapp.enabled:
            return False
        try:
            media_url = self.file_store.publish(document) if self.file_store else None
            return self.whatsapp.send_receipt(data, media_url)
        except Exception:
            logger.exception(f"WhatsApp channel crashed for {data.txnid}")
            return False
