from temple_donations.models.donation import Donation, DonationStatus
from temple_donations.models.catalog import DonationCategory, Event

__all__ = ["Donation", "DonationStatus", "DonationCategory", "Event"]
