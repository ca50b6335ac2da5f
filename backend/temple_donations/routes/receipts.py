"""
Receipt Routes — PDF downloads, WhatsApp resends and published receipt media.
"""
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse, Response
from sqlalchemy.orm import Session

from temple_donations.database import get_db
from temple_donations.schemas.schemas import ActionResponse, SendWhatsAppReceiptRequest
from temple_donations.services import PaymentServices, get_services
from temple_donations.services.ledger import DonationLedger
from temple_donations.services.receipt_service import ReceiptService

router = APIRouter(prefix="/api/receipts", tags=["Receipts"])


@router.post("/send-whatsapp", response_model=ActionResponse)
def send_whatsapp_receipt(
    payload: SendWhatsAppReceiptRequest,
    db: Session = Depends(get_db),
    services: PaymentServices = Depends(get_services),
):
    """Re-send a completed donation's receipt over WhatsApp (operator action)."""
    donation = DonationLedger.get(db, payload.donationId)
    if not donation:
        raise HTTPException(status_code=404, detail="Donation not found")
    if not donation.is_completed:
        raise HTTPException(status_code=409, detail="Receipt is available only for completed donations")
    if not donation.phone:
        raise HTTPException(status_code=400, detail="Donor phone number is required for WhatsApp receipt")

    if not services.dispatcher.resend_whatsapp(db, donation):
        raise HTTPException(status_code=502, detail="Failed to send receipt via WhatsApp")
    return ActionResponse(success=True, message="Receipt sent successfully via WhatsApp")


@router.get("/download/{donation_id}")
def download_receipt(
    donation_id: int,
    db: Session = Depends(get_db),
    services: PaymentServices = Depends(get_services),
):
    donation = DonationLedger.get(db, donation_id)
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


@router.get("/files/{filename}")
def serve_receipt_file(filename: str, services: PaymentServices = Depends(get_services)):
    """Serve a temporary receipt copy referenced by a WhatsApp media URL."""
    path = services.file_store.path_for(filename)
    if path is None:
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(path, media_type="application/pdf", filename=filename)
