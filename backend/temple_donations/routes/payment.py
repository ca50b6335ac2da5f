"""
Payment Routes — Gateway checkout initiation, gateway callbacks and UPI verification.

The /success and /failure endpoints are called by the gateway (form POST)
and always answer with a redirect for the payer's browser, never an error
status, so the gateway does not keep retrying.
"""
import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse, Response
from pydantic import ValidationError
from sqlalchemy.orm import Session

from temple_donations.database import get_db
from temple_donations.exceptions import DonationValidationError, GatewayConfigError
from temple_donations.models.donation import DonationStatus
from temple_donations.schemas.schemas import (
    ActionResponse, DonationIntent, FailureCallback, PaymentInitResponse, SendReceiptRequest,
    SuccessCallback, UpiIntentRequest, UpiIntentResponse, UpiVerifyRequest, UpiVerifyResponse,
)
from temple_donations.services import PaymentServices, get_services
from temple_donations.services.ledger import DonationLedger
from temple_donations.services.receipt_service import ReceiptService, resolve_purpose
from temple_donations.services.reconciler import ReconcileOutcome

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["Payments"])


def _with_query(url: str, params: dict) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urlencode(params)}"


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=302)


def _base_url(request: Request, services: PaymentServices) -> str:
    if services.settings.PUBLIC_BASE_URL:
        return services.settings.PUBLIC_BASE_URL.rstrip("/")
    proto = request.headers.get("x-forwarded-proto") or request.url.scheme
    host = request.headers.get("host") or request.url.netloc
    return f"{proto}://{host}"


async def success_callback_form(request: Request) -> Optional[SuccessCallback]:
    form = await request.form()
    try:
        return SuccessCallback.model_validate({k: str(v) for k, v in form.items()})
    except ValidationError as e:
        logger.warning(f"Malformed success callback: {e.errors()}")
        return None


async def failure_callback_form(request: Request) -> Optional[FailureCallback]:
    form = await request.form()
    try:
        return FailureCallback.model_validate({k: str(v) for k, v in form.items()})
    except ValidationError as e:
        logger.warning(f"Malformed failure callback: {e.errors()}")
        return None


@router.post("/initiate", response_model=PaymentInitResponse, response_model_exclude_none=True)
def initiate_payment(
    payload: DonationIntent,
    request: Request,
    db: Session = Depends(get_db),
    services: PaymentServices = Depends(get_services),
):
    """Create a pending donation and return the signed gateway form."""
    base_url = _base_url(request, services)
    try:
        initiated = services.donations.initiate(
            db,
            payload,
            success_url=f"{base_url}/api/payments/success",
            failure_url=f"{base_url}/api/payments/failure",
        )
    except DonationValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except GatewayConfigError as e:
        logger.error(f"Payment initiation refused: {e}")
        raise HTTPException(status_code=503, detail="Online payments are currently unavailable")

    return PaymentInitResponse(
        txnid=initiated.payment_id,
        payuUrl=initiated.gateway_url,
        paymentData=initiated.form_fields,
        upiData=initiated.upi_data,
    )


@router.post("/success")
def payment_success(
    callback: Optional[SuccessCallback] = Depends(success_callback_form),
    db: Session = Depends(get_db),
    services: PaymentServices = Depends(get_services),
):
    """Gateway success callback."""
    settings = services.settings
    if callback is None:
        return _redirect(settings.INVALID_CALLBACK_URL)

    try:
        result = services.reconciler.handle_success(db, callback)
    except Exception:
        logger.exception(f"Payment success callback error for {callback.txnid}")
        return _redirect(settings.FAILURE_URL)

    if result.outcome == ReconcileOutcome.REJECTED:
        return _redirect(settings.INVALID_CALLBACK_URL)

    donation = result.donation
    if donation is not None and donation.status in DonationStatus.FAILED_STATES:
        return _redirect(_with_query(settings.FAILURE_URL, {
            "txnid": callback.txnid,
            "amount": callback.amount,
            "status": "failure",
            "error": callback.model_extra.get("error_Message") or "Payment failed",
        }))

    purpose = resolve_purpose(db, donation, settings) if donation is not None else settings.DEFAULT_PURPOSE
    return _redirect(_with_query(settings.THANK_YOU_URL, {
        "txnid": callback.txnid,
        "amount": callback.amount,
        "status": "success",
        "purpose": purpose,
    }))


@router.post("/failure")
def payment_failure(
    callback: Optional[FailureCallback] = Depends(failure_callback_form),
    db: Session = Depends(get_db),
    services: PaymentServices = Depends(get_services),
):
    """Gateway failure callback."""
    settings = services.settings
    if callback is None:
        return _redirect(settings.FAILURE_URL)

    try:
        result = services.reconciler.handle_failure(db, callback)
    except Exception:
        logger.exception(f"Payment failure callback error for {callback.txnid}")
        return _redirect(settings.FAILURE_URL)

    if result.outcome == ReconcileOutcome.REJECTED:
        return _redirect(settings.INVALID_CALLBACK_URL)

    return _redirect(_with_query(settings.FAILURE_URL, {
        "txnid": callback.txnid,
        "amount": callback.amount,
        "status": "failure",
        "error": callback.error_Message or "Payment failed",
    }))


@router.post("/upi-intent", response_model=UpiIntentResponse)
def create_upi_intent(
    payload: UpiIntentRequest,
    db: Session = Depends(get_db),
    services: PaymentServices = Depends(get_services),
):
    """Switch a pending donation to UPI and return the upi://pay intent."""
    try:
        result, intent = services.reconciler.issue_upi_intent(db, payload.txnid, payload.amount)
    except DonationValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if result.outcome == ReconcileOutcome.ORPHAN:
        raise HTTPException(status_code=404, detail="Donation not found")
    if intent is None:
        raise HTTPException(status_code=409, detail=result.message)

    upi = services.reconciler.upi
    return UpiIntentResponse(
        upiIntent=intent,
        qrCodeData=upi.qr_data_url(intent),
        txnid=payload.txnid,
        payeeVpa=upi.vpa,
        payeeName=upi.payee_name,
    )


@router.post("/verify-upi", response_model=UpiVerifyResponse, response_model_exclude_none=True)
def verify_upi_payment(
    payload: UpiVerifyRequest,
    db: Session = Depends(get_db),
    services: PaymentServices = Depends(get_services),
):
    """Poll the settled status of a UPI payment."""
    result = services.reconciler.verify_upi(db, payload.txnid)
    donation = result.donation

    if result.outcome == ReconcileOutcome.ORPHAN:
        raise HTTPException(status_code=404, detail="Donation record not found")

    if donation is not None and donation.is_completed:
        return UpiVerifyResponse(
            success=True,
            status="success",
            message=result.message or "Payment verified successfully",
            donation={"id": donation.id, "amount": donation.amount, "name": donation.name, "email": donation.email},
        )
    if donation is not None and donation.status in DonationStatus.FAILED_STATES:
        return UpiVerifyResponse(success=False, status="failed", message=result.message or "Payment failed")
    if result.outcome == ReconcileOutcome.DUPLICATE:
        return UpiVerifyResponse(success=False, status=donation.status, message=result.message)
    return UpiVerifyResponse(success=False, status="pending", message=result.message)


@router.get("/receipt/{txnid}")
def download_receipt_by_txnid(
    txnid: str,
    db: Session = Depends(get_db),
    services: PaymentServices = Depends(get_services),
):
    """Download the PDF receipt of a completed donation."""
    donation = DonationLedger.get_by_payment_id(db, txnid)
    if not donation:
        raise HTTPException(status_code=404, detail="Donation not found")
    if not donation.is_completed:
        raise HTTPException(status_code=409, detail="Receipt is available only for completed donations")

    data = services.dispatcher.receipt_data(db, donation)
    return Response(
        content=services.receipts.render(data),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{ReceiptService.filename(data)}"'},
    )


@router.post("/send-receipt", response_model=ActionResponse)
def send_receipt_email(
    payload: SendReceiptRequest,
    db: Session = Depends(get_db),
    services: PaymentServices = Depends(get_services),
):
    """Re-send the receipt email for a completed donation (operator action)."""
    donation = DonationLedger.get_by_payment_id(db, payload.txnid)
    if not donation:
        raise HTTPException(status_code=404, detail="Donation not found")
    if not donation.is_completed:
        raise HTTPException(status_code=409, detail="Receipt is available only for completed donations")

    if not services.dispatcher.resend_email(db, donation):
        raise HTTPException(status_code=502, detail="Failed to send receipt email")
    return ActionResponse(success=True, message="Receipt sent successfully")
