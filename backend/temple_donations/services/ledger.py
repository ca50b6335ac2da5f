"""
Donation Ledger — Persistence and guarded state transitions for donations.

Every status change made by the payment flow goes through ``transition``,
a conditional UPDATE that only applies while the row is still in one of the
expected source states. Two concurrent callbacks for the same txnid can both
read ``pending``; only one of them gets ``True`` back.
"""
import logging
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from temple_donations.models.donation import Donation
from temple_donations.models.catalog import DonationCategory, Event

logger = logging.getLogger(__name__)

_DELIVERY_FLAGS = ("receipt_sent", "notification_sent")


class DonationLedger:
    """Read/write access to donation records."""

    @staticmethod
    def create(db: Session, **fields) -> Donation:
        donation = Donation(**fields)
        db.add(donation)
        db.commit()
        db.refresh(donation)
        return donation

    @staticmethod
    def get(db: Session, donation_id: int) -> Optional[Donation]:
        return db.query(Donation).filter(Donation.id == donation_id).first()

    @staticmethod
    def get_by_payment_id(db: Session, payment_id: str) -> Optional[Donation]:
        return db.query(Donation).filter(Donation.payment_id == payment_id).first()

    @staticmethod
    def update(db: Session, donation_id: int, **fields) -> Optional[Donation]:
        """Unconditional partial update. Not used by the reconciliation path."""
        donation = DonationLedger.get(db, donation_id)
        if not donation:
            return None
        for name, value in fields.items():
            setattr(donation, name, value)
        db.commit()
        db.refresh(donation)
        return donation

    @staticmethod
    def transition(
        db: Session,
        payment_id: str,
        from_statuses: Iterable[str],
        to_status: str,
        **fields,
    ) -> bool:
        """Compare-and-set the status of a donation.

        Args:
            db: Database session.
            payment_id: The donation's txnid.
            from_statuses: States the row must currently be in.
            to_status: New status.
            **fields: Extra columns written in the same UPDATE.

        Returns:
            True if this call moved the row, False if it was not in an
            expected state (or does not exist).
        """
        values = {Donation.status: to_status}
        for name, value in fields.items():
            values[getattr(Donation, name)] = value

        count = (
            db.query(Donation)
            .filter(
                Donation.payment_id == payment_id,
                Donation.status.in_(list(from_statuses)),
            )
            .update(values, synchronize_session=False)
        )
        db.commit()
        applied = count == 1
        logger.debug("transition %s -> %s applied=%s", payment_id, to_status, applied)
        return applied

    @staticmethod
    def mark_flag(db: Session, donation_id: int, flag: str) -> bool:
        """Flip a delivery flag from False to True. Returns False if it was already set."""
        if flag not in _DELIVERY_FLAGS:
            raise ValueError(f"Unknown delivery flag: {flag}")
        column = getattr(Donation, flag)
        count = (
            db.query(Donation)
            .filter(Donation.id == donation_id, column.is_(False))
            .update({column: True}, synchronize_session=False)
        )
        db.commit()
        return count == 1

    @staticmethod
    def list_donations(
        db: Session,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[int, list[Donation]]:
        query = db.query(Donation).order_by(Donation.created_at.desc(), Donation.id.desc())
        if status:
            query = query.filter(Donation.status == status)
        total = query.count()
        return total, query.offset(offset).limit(limit).all()

    @staticmethod
    def get_category(db: Session, category_id: int) -> Optional[DonationCategory]:
        return db.query(DonationCategory).filter(DonationCategory.id == category_id).first()

    @staticmethod
    def get_event(db: Session, event_id: int) -> Optional[Event]:
        return db.query(Event).filter(Event.id == event_id).first()

    @staticmethod
    def reload(db: Session, donation: Donation) -> Donation:
        """Re-read a row after a conditional UPDATE so attributes reflect the database."""
        db.refresh(donation)
        return donation
