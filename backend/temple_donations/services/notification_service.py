"""
Notification Service — Email and WhatsApp delivery of receipts and payment notices.

Every channel method returns a bool and never raises: delivery is best-effort
and a provider outage must not affect the payment record.
"""
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

import httpx

from temple_donations.config import Settings
from temple_donations.services.receipt_service import ReceiptData, format_amount
from temple_donations.utils.validators import format_phone_number

logger = logging.getLogger(__name__)


class EmailChannel:
    """Sends receipts as PDF attachments over SMTP."""

    enabled = True

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        org_name: str,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.sender = sender
        self.org_name = org_name
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def build_message(self, data: ReceiptData, document: bytes, filename: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = data.email
        msg["Subject"] = f"Donation Receipt - {data.invoice_number} | {self.org_name}"
        msg.set_content(
            f"Dear {data.name},\n\n"
            f"We are deeply grateful for your generous contribution of {format_amount(data.amount)} "
            f"to {self.org_name}.\n\n"
            f"Receipt No: {data.invoice_number}\n"
            f"Transaction ID: {data.txnid}\n"
            f"Date: {data.date.strftime('%d/%m/%Y')}\n"
            f"Purpose: {data.purpose}\n"
            f"Amount: {format_amount(data.amount)}\n\n"
            "This donation is eligible for tax deduction under Section 80G of the Income Tax Act, 1961. "
            "Please retain the attached receipt for your tax filing purposes.\n\n"
            f"With gratitude,\n{self.org_name} Team\n"
        )
        msg.add_attachment(document, maintype="application", subtype="pdf", filename=filename)
        return msg

    def send_receipt(self, data: ReceiptData, document: bytes, filename: str) -> bool:
        try:
            msg = self.build_message(data, document, filename)
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username:
                    smtp.login(self.username, self.password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Error sending receipt email for {data.txnid}: {e}")
            return False
        logger.info(f"PDF receipt emailed to {data.email} ({data.txnid})")
        return True


class DisabledEmailChannel:
    enabled = False

    def send_receipt(self, data: ReceiptData, document: bytes, filename: str) -> bool:
        logger.warning("SMTP not configured - email receipt not sent")
        return False


class WhatsAppChannel:
    """Sends WhatsApp messages through the Twilio Messages API."""

    enabled = True

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        org_name: str,
        api_url: str = "https://api.twilio.com/2010-04-01",
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.org_name = org_name
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _send(self, phone: str, body: str, media_url: Optional[str] = None) -> bool:
        to_number = format_phone_number(phone)
        if not to_number:
            logger.error(f"Invalid phone number format: {phone}")
            return False

        data = {
            "From": f"whatsapp:{self.from_number}",
            "To": f"whatsapp:{to_number}",
            "Body": body,
        }
        if media_url:
            data["MediaUrl"] = media_url

        url = f"{self.api_url}/Accounts/{self.account_sid}/Messages.json"
        try:
            with httpx.Client(
                timeout=self.timeout,
                auth=(self.account_sid, self.auth_token),
                transport=self._transport,
            ) as client:
                response = client.post(url, data=data)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Error sending WhatsApp message to {to_number}: {e}")
            return False

        logger.info(f"WhatsApp message sent to {to_number}")
        return True

    def send_receipt(self, data: ReceiptData, media_url: Optional[str] = None) -> bool:
        body = (
            f"Hare Krishna, {data.name}! 🙏\n\n"
            f"Thank you for your donation of {format_amount(data.amount)} towards {data.purpose}.\n"
            f"Receipt No: {data.invoice_number}\n"
            f"Transaction ID: {data.txnid}\n\n"
        )
        body += "Please find attached your donation receipt." if media_url else "Your receipt has been emailed to you."
        return self._send(data.phone, body, media_url)

    def send_failure_notice(self, phone: str, name: str, amount: int, purpose: str) -> bool:
        body = (
            f"Hare Krishna, {name}! 🙏\n\n"
            f"We noticed there was an issue with your donation payment of {format_amount(amount)} towards {purpose}.\n\n"
            f"Please try again or contact the {self.org_name} support team if you need assistance.\n\n"
            "Thank you for your support."
        )
        return self._send(phone, body)


class DisabledWhatsAppChannel:
    enabled = False

    def send_receipt(self, data: ReceiptData, media_url: Optional[str] = None) -> bool:
        logger.warning("Twilio not configured - WhatsApp receipt not sent")
        return False

    def send_failure_notice(self, phone: str, name: str, amount: int, purpose: str) -> bool:
        logger.warning("Twilio not configured - failed payment notification not sent")
        return False


def build_email_channel(settings: Settings):
    if not settings.email_enabled:
        return DisabledEmailChannel()
    return EmailChannel(
        host=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        sender=settings.EMAIL_FROM,
        org_name=settings.ORG_NAME,
        username=settings.SMTP_USER,
        password=settings.SMTP_PASSWORD,
        use_tls=settings.SMTP_USE_TLS,
        timeout=settings.NOTIFY_TIMEOUT_SECONDS,
    )


def build_whatsapp_channel(settings: Settings):
    if not settings.whatsapp_enabled:
        return DisabledWhatsAppChannel()
    return WhatsAppChannel(
        account_sid=settings.TWILIO_ACCOUNT_SID,
        auth_token=settings.TWILIO_AUTH_TOKEN,
        from_number=settings.TWILIO_PHONE_NUMBER,
        org_name=settings.ORG_NAME,
        api_url=settings.TWILIO_API_URL,
        timeout=settings.NOTIFY_TIMEOUT_SECONDS,
    )
