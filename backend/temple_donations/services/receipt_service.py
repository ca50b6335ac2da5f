"""
Receipt Service — PDF donation receipts and their temporary public copies.
"""
import logging
import os
import re
import secrets
import time
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO
from typing import Optional

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from sqlalchemy.orm import Session

from temple_donations.config import Settings, get_settings
from temple_donations.models.donation import Donation
from temple_donations.services.ledger import DonationLedger

logger = logging.getLogger(__name__)

TAX_NOTICE = (
    "This donation is eligible for tax deduction under Section 80G of the Income Tax Act, 1961. "
    "Please retain this receipt for your tax filing purposes."
)
SIGNATURE_NOTICE = "This is a computer-generated receipt and does not require a signature."

_RECEIPT_FILENAME = re.compile(r"^[A-Za-z0-9_-]+\.pdf$")

ACCENT = colors.HexColor("#FF6B35")


@dataclass(frozen=True)
class ReceiptData:
    txnid: str
    invoice_number: str
    amount: int
    name: str
    email: str
    phone: str
    purpose: str
    date: datetime
    payment_method: str
    pan_card: Optional[str] = None

    @classmethod
    def from_donation(cls, donation: Donation, purpose: str) -> "ReceiptData":
        return cls(
            txnid=donation.payment_id,
            invoice_number=donation.invoice_number or "",
            amount=donation.amount,
            name=donation.name,
            email=donation.email,
            phone=donation.phone,
            purpose=purpose,
            date=donation.created_at or datetime.utcnow(),
            payment_method="UPI" if donation.is_upi else "Online Payment",
            pan_card=donation.pan_card or None,
        )


def format_amount(amount: int) -> str:
    """Indian digit grouping: 150000 -> 'Rs. 1,50,000'."""
    digits = str(int(amount))
    if len(digits) > 3:
        head, tail = digits[:-3], digits[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        digits = ",".join(groups + [tail])
    return f"Rs. {digits}"


def resolve_purpose(db: Session, donation: Donation, settings: Optional[Settings] = None) -> str:
    """Category name, else event title, else the generic donation label."""
    settings = settings or get_settings()
    if donation.category_id:
        category = DonationLedger.get_category(db, donation.category_id)
        if category:
            return category.name
    elif donation.event_id:
        event = DonationLedger.get_event(db, donation.event_id)
        if event:
            return event.title
    return settings.DEFAULT_PURPOSE


class ReceiptService:
    """Renders the proof-of-donation document."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @staticmethod
    def receipt_lines(data: ReceiptData) -> list[tuple[str, str]]:
        lines = [
            ("Receipt No", data.invoice_number),
            ("Transaction ID", data.txnid),
            ("Date", data.date.strftime("%d/%m/%Y")),
            ("Donor Name", data.name),
            ("Email", data.email),
            ("Phone", data.phone),
        ]
        if data.pan_card:
            lines.append(("PAN Card", data.pan_card))
        lines += [
            ("Donation Purpose", data.purpose),
            ("Amount", format_amount(data.amount)),
            ("Payment Method", data.payment_method),
        ]
        return lines

    def render(self, data: ReceiptData) -> bytes:
        """Build the receipt PDF. Same input always yields the same bytes."""
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            title=f"Donation Receipt {data.invoice_number}",
            author=self.settings.ORG_NAME,
            invariant=1,
            pageCompression=0,
        )
        styles = getSampleStyleSheet()
        title_style = ParagraphStyle(
            "ReceiptTitle",
            parent=styles["Heading1"],
            fontSize=20,
            textColor=ACCENT,
            alignment=TA_CENTER,
        )
        center_style = ParagraphStyle("ReceiptCenter", parent=styles["Normal"], alignment=TA_CENTER)
        small_style = ParagraphStyle("ReceiptSmall", parent=center_style, fontSize=8, textColor=colors.grey)

        elements = [
            Paragraph(self.settings.ORG_NAME.upper(), title_style),
            Paragraph(self.settings.ORG_ADDRESS, center_style),
            Paragraph(self.settings.ORG_CONTACT, center_style),
            Spacer(1, 20),
            Paragraph("DONATION RECEIPT", title_style),
            Paragraph("(Eligible for Tax Deduction under Section 80G)", center_style),
            Spacer(1, 20),
        ]

        table = Table([[f"{label}:", value] for label, value in self.receipt_lines(data)], colWidths=[150, 300])
        table.setStyle(TableStyle([
            ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 11),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 8),
            ("TEXTCOLOR", (0, -3), (-1, -2), ACCENT),
            ("BOX", (0, 0), (-1, -1), 1, colors.black),
        ]))
        elements += [
            table,
            Spacer(1, 30),
            Paragraph(TAX_NOTICE, center_style),
            Spacer(1, 30),
            Paragraph(f"Thank you for your generous contribution to {self.settings.ORG_NAME}", center_style),
            Spacer(1, 40),
            Paragraph(SIGNATURE_NOTICE, small_style),
        ]
        doc.build(elements)
        return buffer.getvalue()

    @staticmethod
    def filename(data: ReceiptData) -> str:
        return f"Receipt_{data.invoice_number or data.txnid}.pdf"


class ReceiptFileStore:
    """Temporary receipt copies served at a public URL for WhatsApp media attachments."""

    def __init__(self, directory: str, public_base_url: str = "", ttl_minutes: int = 5):
        self.directory = directory
        self.public_base_url = public_base_url.rstrip("/")
        self.ttl_minutes = ttl_minutes

    @property
    def can_publish(self) -> bool:
        return bool(self.public_base_url)

    def publish(self, document: bytes) -> Optional[str]:
        """Write the document and return its public URL, or None without a public base URL."""
        if not self.can_publish:
            return None
        os.makedirs(self.directory, exist_ok=True)
        self.purge_expired()
        filename = f"donation_receipt_{secrets.token_hex(8)}.pdf"
        with open(os.path.join(self.directory, filename), "wb") as f:
            f.write(document)
        return f"{self.public_base_url}/api/receipts/files/{filename}"

    def path_for(self, filename: str) -> Optional[str]:
        """Resolve a published filename; rejects anything that is not a plain receipt name."""
        if not _RECEIPT_FILENAME.match(filename):
            return None
        path = os.path.join(self.directory, filename)
        return path if os.path.isfile(path) else None

    def purge_expired(self) -> int:
        if not os.path.isdir(self.directory):
            return 0
        cutoff = time.time() - self.ttl_minutes * 60
        count_deleted = 0
        for item in os.listdir(self.directory):
            if not _RECEIPT_FILENAME.match(item):
                continue
            item_path = os.path.join(self.directory, item)
            try:
                if os.path.getmtime(item_path) < cutoff:
                    os.remove(item_path)
                    count_deleted += 1
            except OSError as e:
                logger.error(f"Error deleting receipt file {item}: {e}")
        if count_deleted:
            logger.debug(f"Purged {count_deleted} expired receipt files from {self.directory}")
        return count_deleted
