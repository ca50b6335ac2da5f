"""
Pydantic Schemas — Request & Response models for API validation.
"""
from datetime import datetime
from typing import Optional, Dict, Literal
from pydantic import BaseModel, ConfigDict, Field


# ──────────────── Donation intent ────────────────

class DonationIntent(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    amount: int = Field(..., gt=0, description="Amount in whole rupees")
    name: str = Field(..., min_length=1, max_length=128)
    email: str = Field(..., min_length=3, max_length=256)
    phone: str = Field(..., min_length=5, max_length=32)
    message: Optional[str] = None
    pan_card: Optional[str] = Field(None, alias="panCard")
    category_id: Optional[int] = Field(None, alias="categoryId")
    event_id: Optional[int] = Field(None, alias="eventId")
    payment_method: Literal["netbanking", "upi"] = Field("netbanking", alias="paymentMethod")


class UpiPayeeData(BaseModel):
    payeeVpa: str
    payeeName: str
    amount: int
    transactionId: str
    transactionNote: str


class PaymentInitResponse(BaseModel):
    success: bool = True
    txnid: str
    payuUrl: str
    paymentData: Dict[str, str]
    upiData: Optional[UpiPayeeData] = None


# ──────────────── Gateway callbacks ────────────────

class SuccessCallback(BaseModel):
    """Form body POSTed by the gateway to the success URL."""
    model_config = ConfigDict(extra="allow")

    txnid: str
    amount: str
    productinfo: str = ""
    firstname: str = ""
    email: str = ""
    status: str
    hash: str = ""
    mihpayid: Optional[str] = None
    udf1: str = ""
    udf2: str = ""
    udf3: str = ""
    udf4: str = ""
    udf5: str = ""
    additionalCharges: Optional[str] = None

    def payload(self) -> Dict[str, str]:
        return self.model_dump(exclude_none=True)


class FailureCallback(BaseModel):
    """Form body POSTed by the gateway to the failure URL."""
    model_config = ConfigDict(extra="allow")

    txnid: str
    status: str = "failure"
    amount: str = ""
    firstname: str = ""
    email: str = ""
    error_Message: Optional[str] = None
    mihpayid: Optional[str] = None

    def payload(self) -> Dict[str, str]:
        return self.model_dump(exclude_none=True)


class VerificationResult(BaseModel):
    """Outcome of a UPI polling verification."""
    status: Literal["success", "pending", "failed"]
    message: str = ""
    raw: Dict = Field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.status == "success"


# ──────────────── UPI ────────────────

class UpiIntentRequest(BaseModel):
    txnid: str
    amount: int = Field(..., gt=0)


class UpiIntentResponse(BaseModel):
    success: bool = True
    upiIntent: str
    qrCodeData: str
    txnid: str
    payeeVpa: str
    payeeName: str


class UpiVerifyRequest(BaseModel):
    txnid: str = Field(..., min_length=1)


class UpiVerifyResponse(BaseModel):
    success: bool
    status: str
    message: Optional[str] = None
    donation: Optional[Dict] = None


# ──────────────── Receipts ────────────────

class SendReceiptRequest(BaseModel):
    txnid: str


class SendWhatsAppReceiptRequest(BaseModel):
    donationId: int


class ActionResponse(BaseModel):
    success: bool
    message: str = ""


# ──────────────── Admin ────────────────

class DonationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    payment_id: str
    amount: int
    name: str
    email: str
    phone: str
    message: Optional[str] = None
    pan_card: Optional[str] = None
    category_id: Optional[int] = None
    event_id: Optional[int] = None
    payment_method: Optional[str] = None
    status: str
    invoice_number: Optional[str] = None
    receipt_sent: bool = False
    notification_sent: bool = False
    gateway_txn_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class StatusOverrideRequest(BaseModel):
    status: Literal["pending", "completed", "failed", "refunded", "pending_upi", "completed_upi", "failed_upi"]
    reason: Optional[str] = None


# ──────────────── Public donation lookup ────────────────

class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None


class EventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str] = None
    date: Optional[datetime] = None


class DonationDetails(BaseModel):
    donation: DonationOut
    purpose: str
    type: Literal["category", "event", "general"]
    category: Optional[CategoryOut] = None
    event: Optional[EventOut] = None
