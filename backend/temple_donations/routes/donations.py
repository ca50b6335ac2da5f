"""
Donation Routes — Public lookup by transaction id for the thank-you and payment result pages.
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from temple_donations.database import get_db
from temple_donations.schemas.schemas import CategoryOut, DonationDetails, DonationOut, EventOut
from temple_donations.services import PaymentServices, get_services
from temple_donations.services.ledger import DonationLedger
from temple_donations.services.receipt_service import resolve_purpose

router = APIRouter(prefix="/api", tags=["Donations"])


@router.get("/donations/by-payment-id/{payment_id}", response_model=DonationOut)
def get_donation_by_payment_id(payment_id: str, db: Session = Depends(get_db)):
    donation = DonationLedger.get_by_payment_id(db, payment_id)
    if not donation:
        raise HTTPException(status_code=404, detail="Donation not found")
    return donation


@router.get("/donation/{txnid}", response_model=DonationDetails, response_model_exclude_none=True)
def get_donation_details(
    txnid: str,
    db: Session = Depends(get_db),
    services: PaymentServices = Depends(get_services),
):
    """Donation plus the category or event it was made for."""
    donation = DonationLedger.get_by_payment_id(db, txnid)
    if not donation:
        raise HTTPException(status_code=404, detail="Donation not found")

    category = DonationLedger.get_category(db, donation.category_id) if donation.category_id else None
    event = DonationLedger.get_event(db, donation.event_id) if donation.event_id else None
    if category:
        kind = "category"
    elif event:
        kind = "event"
    else:
        kind = "general"

    return DonationDetails(
        donation=DonationOut.model_validate(donation),
        purpose=resolve_purpose(db, donation, services.settings),
        type=kind,
        category=CategoryOut.model_validate(category) if category else None,
        event=EventOut.model_validate(event) if event else None,
    )
