"""
Validators — Regex and rule-based validation for donor details.
"""
import re


def validate_pan(pan: str | None) -> bool:
    """Validate Indian PAN format: 5 letters + 4 digits + 1 letter (e.g. ABCPK1234F)."""
    if not pan:
        return False
    return bool(re.match(r"^[A-Z]{5}[0-9]{4}[A-Z]$", pan.strip().upper()))


def validate_email(email: str | None) -> bool:
    if not email:
        return False
    return bool(re.match(r"^[^@\s]+@[^@\s]+\.[^@\s]+$", email.strip()))


def validate_upi_vpa(vpa: str | None) -> bool:
    """Validate UPI VPA format: user@provider."""
    if not vpa:
        return False
    return bool(re.match(r"^[\w.-]+@[\w]+$", vpa.strip()))


def format_phone_number(phone: str | None) -> str | None:
    """Normalise a phone number to E.164 for WhatsApp.

    10-digit numbers are treated as Indian mobiles (+91). Returns None when the
    number cannot be interpreted.
    """
    if not phone:
        return None
    digits = re.sub(r"\D", "", phone)
    if phone.strip().startswith("+"):
        return f"+{digits}" if digits else None
    if len(digits) == 10:
        return f"+91{digits}"
    if len(digits) > 10:
        return f"+{digits}"
    return None


def sanitize_name(name: str | None) -> str:
    """Basic sanitization for names: collapse whitespace, strip."""
    if not name:
        return ""
    return re.sub(r"\s+", " ", name).strip()
