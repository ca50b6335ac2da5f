"""
Admin Routes — Donation ledger inspection and manual status override.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from temple_donations.database import get_db
from temple_donations.models.donation import DonationStatus
from temple_donations.schemas.schemas import DonationOut, StatusOverrideRequest
from temple_donations.services.ledger import DonationLedger
from temple_donations.services.reconciler import make_invoice_number

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.get("/donations")
def list_donations(
    status: str = None,
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    """List donations, newest first, with an optional status filter."""
    if status and status not in DonationStatus.ALL:
        raise HTTPException(status_code=400, detail=f"Unknown status: {status}")
    total, donations = DonationLedger.list_donations(db, status=status, limit=limit, offset=offset)
    return {
        "total": total,
        "donations": [DonationOut.model_validate(d).model_dump(mode="json") for d in donations],
    }


@router.get("/donations/{donation_id}", response_model=DonationOut)
def get_donation(donation_id: int, db: Session = Depends(get_db)):
    donation = DonationLedger.get(db, donation_id)
    if not donation:
        raise HTTPException(status_code=404, detail="Donation not found")
    return donation


@router.patch("/donations/{donation_id}/status", response_model=DonationOut)
def override_status(donation_id: int, payload: StatusOverrideRequest, db: Session = Depends(get_db)):
    """Human-operated status override. Bypasses the payment state machine."""
    donation = DonationLedger.get(db, donation_id)
    if not donation:
        raise HTTPException(status_code=404, detail="Donation not found")

    fields = {"status": payload.status}
    if payload.status in DonationStatus.COMPLETED_STATES and not donation.invoice_number:
        fields["invoice_number"] = make_invoice_number(donation)

    logger.warning(
        f"Manual status override for donation {donation_id}: {donation.status} -> {payload.status}"
        f" (reason: {payload.reason or 'n/a'})"
    )
    return DonationLedger.update(db, donation_id, **fields)
