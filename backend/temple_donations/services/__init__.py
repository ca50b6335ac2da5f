"""
Service wiring — provider clients are built once at startup and injected into routes.
"""
from dataclasses import dataclass

from fastapi import Request

from temple_donations.config import Settings
from temple_donations.services.dispatcher import ReceiptDispatcher
from temple_donations.services.donation_service import DonationService
from temple_donations.services.gateway_service import PayUGateway
from temple_donations.services.notification_service import build_email_channel, build_whatsapp_channel
from temple_donations.services.receipt_service import ReceiptFileStore, ReceiptService
from temple_donations.services.reconciler import CallbackReconciler
from temple_donations.services.upi_service import UpiService


@dataclass
class PaymentServices:
    settings: Settings
    gateway: PayUGateway
    donations: DonationService
    reconciler: CallbackReconciler
    dispatcher: ReceiptDispatcher
    receipts: ReceiptService
    file_store: ReceiptFileStore


def build_services(settings: Settings, gateway=None, email=None, whatsapp=None) -> PaymentServices:
    """Construct the payment stack. Channels without credentials get their disabled variant."""
    gateway = gateway or PayUGateway.from_settings(settings)
    upi = UpiService.from_settings(settings)
    receipts = ReceiptService(settings)
    file_store = ReceiptFileStore(
        settings.RECEIPT_DIR,
        public_base_url=settings.PUBLIC_BASE_URL,
        ttl_minutes=settings.RECEIPT_FILE_TTL_MINUTES,
    )
    dispatcher = ReceiptDispatcher(
        receipts,
        email=email or build_email_channel(settings),
        whatsapp=whatsapp or build_whatsapp_channel(settings),
        file_store=file_store,
    )
    return PaymentServices(
        settings=settings,
        gateway=gateway,
        donations=DonationService(gateway, upi, settings),
        reconciler=CallbackReconciler(gateway, dispatcher, upi, settings),
        dispatcher=dispatcher,
        receipts=receipts,
        file_store=file_store,
    )


def get_services(request: Request) -> PaymentServices:
    """FastAPI dependency: the services built at startup."""
    return request.app.state.services


__all__ = ["PaymentServices", "build_services", "get_services"]
