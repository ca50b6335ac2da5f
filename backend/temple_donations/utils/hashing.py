"""
Gateway Signature Utilities — SHA-512 digests for the PayU hash protocol.

Request:  key|txnid|amount|productinfo|firstname|email|udf1..udf5|<5 reserved>|SALT
Response: SALT|status|<5 reserved>|udf5..udf1|email|firstname|productinfo|amount|txnid|key

The response sequence is the request sequence reversed, so both are derived
from the single ``HASH_SEQUENCE`` below.
"""
import hashlib
import hmac
from dataclasses import dataclass, fields as dataclass_fields
from typing import Mapping, Optional

from temple_donations.exceptions import GatewayConfigError

SEPARATOR = "|"
RESERVED_SLOTS = 5


@dataclass(frozen=True)
class HashFields:
    """The ordered field set covered by the gateway signature."""

    key: str
    txnid: str
    amount: str
    productinfo: str
    firstname: str
    email: str
    udf1: str = ""
    udf2: str = ""
    udf3: str = ""
    udf4: str = ""
    udf5: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping, key: str) -> "HashFields":
        """Build from a request/callback mapping; missing optional fields become empty."""
        values = {"key": key}
        for f in dataclass_fields(cls):
            if f.name == "key":
                continue
            raw = data.get(f.name)
            values[f.name] = "" if raw is None else str(raw)
        return cls(**values)

    def sequence(self) -> list[str]:
        ordered = [getattr(self, f.name) for f in dataclass_fields(self)]
        return ordered + [""] * RESERVED_SLOTS


def _require(value: Optional[str], name: str) -> str:
    if not value:
        raise GatewayConfigError(f"PayU merchant {name} is missing")
    return value


def _sha512(parts: list[str]) -> str:
    return hashlib.sha512(SEPARATOR.join(parts).encode("utf-8")).hexdigest()


def compute_request_signature(fields: HashFields, salt: str) -> str:
    """Hash for an outbound payment request."""
    _require(fields.key, "key")
    _require(salt, "salt")
    return _sha512(fields.sequence() + [salt])


def compute_response_signature(
    fields: HashFields,
    status: str,
    salt: str,
    additional_charges: Optional[str] = None,
) -> str:
    """Hash the gateway is expected to send back with a callback."""
    _require(fields.key, "key")
    _require(salt, "salt")
    parts = [salt, status] + list(reversed(fields.sequence()))
    if additional_charges:
        parts = [additional_charges] + parts
    return _sha512(parts)


def verify_response_signature(callback: Mapping, salt: str, key: str) -> bool:
    """Recompute the response hash from callback fields and compare in constant time."""
    _require(key, "key")
    _require(salt, "salt")
    received = str(callback.get("hash") or "")
    if not received:
        return False
    expected = compute_response_signature(
        HashFields.from_mapping(callback, key),
        status=str(callback.get("status") or ""),
        salt=salt,
        additional_charges=callback.get("additionalCharges") or None,
    )
    return hmac.compare_digest(expected.encode("ascii"), received.lower().encode("utf-8"))


def compute_command_signature(key: str, command: str, var1: str, salt: str) -> str:
    """Hash for gateway web-service commands (e.g. verify_payment)."""
    return _sha512([_require(key, "key"), command, var1, _require(salt, "salt")])
