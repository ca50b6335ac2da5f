"""
Gateway Service — PayU hosted checkout and verify_payment web service.
"""
import logging
from typing import Dict, Optional

import httpx

from temple_donations.config import Settings
from temple_donations.exceptions import GatewayConfigError
from temple_donations.schemas.schemas import VerificationResult
from temple_donations.utils.hashing import (
    HashFields,
    compute_command_signature,
    compute_request_signature,
    verify_response_signature,
)

logger = logging.getLogger(__name__)

# verify_payment reports per-transaction status strings; anything not listed is still in flight.
_SETTLED_SUCCESS = {"success", "captured"}
_SETTLED_FAILURE = {"failure", "failed", "dropped", "bounced", "usercancelled", "cancelled"}


class PayUGateway:
    """Signs outbound payment requests and authenticates gateway responses."""

    def __init__(
        self,
        merchant_key: str,
        merchant_salt: str,
        payment_url: str,
        verify_url: str,
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.merchant_key = merchant_key
        self.merchant_salt = merchant_salt
        self.payment_url = payment_url
        self.verify_url = verify_url
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "PayUGateway":
        return cls(
            merchant_key=settings.PAYU_MERCHANT_KEY,
            merchant_salt=settings.PAYU_MERCHANT_SALT,
            payment_url=settings.PAYU_PAYMENT_URL,
            verify_url=settings.PAYU_VERIFY_URL,
            timeout=settings.GATEWAY_TIMEOUT_SECONDS,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.merchant_key and self.merchant_salt)

    def require_configured(self):
        if not self.is_configured:
            raise GatewayConfigError("PayU merchant key or salt is missing")

    def build_payment_form(self, request: Dict[str, str]) -> Dict[str, str]:
        """Assemble the auto-submit form fields for the hosted checkout page.

        ``request`` must contain txnid, amount, productinfo, firstname, email,
        phone, surl and furl; udf1-udf5 and pg are passed through when set.
        """
        self.require_configured()
        fields = HashFields.from_mapping(request, self.merchant_key)
        form = {
            "key": self.merchant_key,
            "txnid": fields.txnid,
            "amount": fields.amount,
            "productinfo": fields.productinfo,
            "firstname": fields.firstname,
            "email": fields.email,
            "phone": str(request["phone"]),
            "surl": str(request["surl"]),
            "furl": str(request["furl"]),
            "hash": compute_request_signature(fields, self.merchant_salt),
        }
        for optional in ("udf1", "udf2", "udf3", "udf4", "udf5", "pg"):
            if request.get(optional):
                form[optional] = str(request[optional])
        return form

    def verify_callback(self, callback: Dict[str, str]) -> bool:
        """Check the ``hash`` of a gateway callback. Raises GatewayConfigError if unconfigured."""
        self.require_configured()
        return verify_response_signature(callback, self.merchant_salt, self.merchant_key)

    def verify_payment(self, txnid: str) -> VerificationResult:
        """Ask the gateway for the settled status of a transaction.

        Network or protocol errors are reported as ``pending`` so the caller
        can poll again; they never move a donation to a terminal state.
        """
        if not self.is_configured:
            return VerificationResult(status="pending", message="Payment verification is not configured")

        command = "verify_payment"
        data = {
            "key": self.merchant_key,
            "command": command,
            "var1": txnid,
            "hash": compute_command_signature(self.merchant_key, command, txnid, self.merchant_salt),
        }
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(self.verify_url, data=data)
                response.raise_for_status()
                body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("verify_payment failed for %s: %s", txnid, e)
            return VerificationResult(status="pending", message="Unable to verify transaction status")

        details = (body.get("transaction_details") or {}).get(txnid) or {}
        gateway_status = str(details.get("status") or "").lower()
        if gateway_status in _SETTLED_SUCCESS:
            return VerificationResult(status="success", message="Transaction completed successfully", raw=body)
        if gateway_status in _SETTLED_FAILURE:
            return VerificationResult(
                status="failed",
                message=details.get("error_Message") or "Transaction failed or was canceled by the user",
                raw=body,
            )
        return VerificationResult(status="pending", message="Transaction is still being processed", raw=body)
