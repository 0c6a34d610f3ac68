"""
Agency commission ledger models and request schemas
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum


# ─── Enums ────────────────────────────────────────────────────────────────────

class BookingStatus(str, Enum):
    VOID = "void"
    PENDING = "pending"
    DEPOSIT = "deposit"
    PAID = "paid"
    RESERVED = "reserved"
    CANCELLED = "cancelled"


# Only these bookings generate a commission obligation
ELIGIBLE_BOOKING_STATUSES = (
    BookingStatus.RESERVED.value,
    BookingStatus.DEPOSIT.value,
    BookingStatus.PAID.value,
)


class CommissionEventType(str, Enum):
    PAYMENT = "payment"
    REMINDER = "reminder"
    BLOCK = "block"
    UNBLOCK = "unblock"
    NOTE = "note"


class ReminderChannel(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    EMAIL_AND_SMS = "email+sms"


class AgencyCommissionStatus(str, Enum):
    ACTIVE = "active"
    BLOCKED = "blocked"
    NEEDS_FOLLOW_UP = "needs_follow_up"


class PaymentStatus(str, Enum):
    PAID = "paid"
    PARTIAL = "partial"
    UNPAID = "unpaid"


# ─── Stored documents ─────────────────────────────────────────────────────────

class CommissionEvent(BaseModel):
    """Append-only fact about an agency's commission account"""
    agency_id: str
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=1970)
    type: CommissionEventType
    admin_id: str
    amount: float = Field(default=0, ge=0)
    payment_date: Optional[datetime] = None
    reference: Optional[str] = None
    channel: Optional[ReminderChannel] = None
    success: Optional[bool] = None
    message: Optional[str] = None
    note: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class CommissionState(BaseModel):
    """Mutable suspension flags, one row per agency"""
    agency_id: str
    blocked: bool = False
    blocked_at: Optional[datetime] = None
    blocked_by: Optional[str] = None
    disabled_cars: List[str] = Field(default_factory=list)


class RibDetails(BaseModel):
    account_holder: str = ""
    bank_name: str = ""
    bank_address: Optional[str] = None
    iban: str = ""
    bic: str = ""
    account_number: str = ""


# ─── Requests ─────────────────────────────────────────────────────────────────

class PeriodRequest(BaseModel):
    # Optional so the service can answer a missing month/year with a 400
    month: Optional[int] = None
    year: Optional[int] = None


class CommissionListRequest(PeriodRequest):
    search: Optional[str] = None
    status: Optional[str] = "all"
    above_threshold: Optional[bool] = None
    with_carry_over: Optional[bool] = None


class PaymentRequest(PeriodRequest):
    agency_id: str
    amount: Optional[float] = None
    payment_date: Optional[datetime] = None
    reference: Optional[str] = Field(None, max_length=200)


class ReminderRequest(PeriodRequest):
    agency_id: str
    channel: Optional[ReminderChannel] = None
    subject: Optional[str] = Field(None, max_length=300)
    message: Optional[str] = None


class BlockRequest(PeriodRequest):
    agency_id: str
    block: bool


class NoteRequest(PeriodRequest):
    agency_id: str
    note: Optional[str] = None


class CommissionSettingsUpdate(BaseModel):
    reminder_channel: Optional[ReminderChannel] = None
    email_template: Optional[str] = None
    sms_template: Optional[str] = None
    bank_transfer_enabled: Optional[bool] = None
    card_payment_enabled: Optional[bool] = None
    d17_payment_enabled: Optional[bool] = None
    bank_transfer_rib_details: Optional[RibDetails] = None
