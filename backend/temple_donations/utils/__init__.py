from temple_donations.utils.hashing import (
    HashFields, compute_request_signature, compute_response_signature,
    verify_response_signature, compute_command_signature,
)
from temple_donations.utils.validators import validate_pan, validate_email, format_phone_number

__all__ = [
    "HashFields", "compute_request_signature", "compute_response_signature",
    "verify_response_signature", "compute_command_signature",
    "validate_pan", "validate_email", "format_phone_number",
]
