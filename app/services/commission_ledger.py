"""
Commission ledger reducers - pure functions shared by the monthly overview
and the per-agency detail.

Nothing here touches the database: collected amounts, last payment and last
reminder are always re-derived by folding the event list, and the per-booking
payment status is re-derived from (bookings ordered by start date, collected).
"""
import unicodedata
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from app.config.settings import settings
from app.models.commission import (
    AgencyCommissionStatus,
    CommissionEventType,
    ELIGIBLE_BOOKING_STATUSES,
    PaymentStatus,
)
from app.utils.helpers import as_float, month_bounds, round_money, round_whole


# ─── Period ───────────────────────────────────────────────────────────────────

def validate_period(year: Any, month: Any) -> Tuple[int, int]:
    """Reject a missing/out-of-range period before anything is queried."""
    if year is None or month is None or isinstance(year, bool) or isinstance(month, bool):
        raise ValueError("month and year are required")
    try:
        year, month = int(year), int(month)
    except (TypeError, ValueError):
        raise ValueError("month and year must be integers")
    if not 1 <= month <= 12:
        raise ValueError("month must be between 1 and 12")
    if year < 1970:
        raise ValueError("year must be 1970 or later")
    return year, month


def effective_date() -> datetime:
    """Commission start as a naive UTC datetime, comparable with stored dates"""
    effective = settings.COMMISSION_EFFECTIVE_DATE
    if effective.tzinfo is not None:
        effective = effective.astimezone(timezone.utc).replace(tzinfo=None)
    return effective


def period_closed(year: int, month: int, now: Optional[datetime] = None) -> bool:
    _, end = month_bounds(year, month)
    return end <= (now or datetime.utcnow())


def commission_window(year: int, month: int) -> Optional[Tuple[datetime, datetime]]:
    """
    [start, end) of the month, with start clamped to the commission effective
    date. None when commission did not apply yet during that month.
    """
    if not settings.COMMISSION_ENABLED:
        return None
    start, end = month_bounds(year, month)
    start = max(start, effective_date())
    if start >= end:
        return None
    return start, end


# ─── Bookings ─────────────────────────────────────────────────────────────────

def is_eligible(booking: Dict) -> bool:
    return booking.get("status") in ELIGIBLE_BOOKING_STATUSES


def booking_commission(booking: Dict) -> float:
    """Stored commission of a booking, else the configured rate applied to its price"""
    if booking.get("commission_total") is not None:
        return as_float(booking.get("commission_total"))
    return round_money(as_float(booking.get("price")) * settings.COMMISSION_RATE / 100)


def owed_commission(booking: Dict) -> float:
    return booking_commission(booking) if is_eligible(booking) else 0.0


def group_bookings(bookings: Iterable[Dict]) -> Dict[str, Dict[str, float]]:
    """Sum reservations, gross turnover and commission due per agency (eligible only)."""
    groups: Dict[str, Dict[str, float]] = {}
    for booking in bookings:
        if not is_eligible(booking):
            continue
        agency_id = str(booking.get("agency_id") or "")
        if not agency_id:
            continue
        group = groups.setdefault(agency_id, {"reservations": 0, "gross_turnover": 0.0, "commission_due": 0.0})
        group["reservations"] += 1
        group["gross_turnover"] += as_float(booking.get("price"))
        group["commission_due"] += booking_commission(booking)
    return groups


def allocate_payments(owed_amounts: Sequence[float], collected: float) -> List[PaymentStatus]:
    """
    FIFO allocation of the collected pool over owed amounts ordered oldest first.

    Once a booking is partial or unpaid, no later booking can be paid: a partial
    consumes whatever is left of the pool.
    """
    remaining = Decimal(str(collected or 0))
    statuses: List[PaymentStatus] = []
    for owed_value in owed_amounts:
        owed = Decimal(str(owed_value or 0))
        if owed <= 0:
            statuses.append(PaymentStatus.PAID)
        elif remaining >= owed:
            statuses.append(PaymentStatus.PAID)
            remaining -= owed
        elif remaining > 0:
            statuses.append(PaymentStatus.PARTIAL)
            remaining = Decimal("0")
        else:
            statuses.append(PaymentStatus.UNPAID)
    return statuses


# ─── Events ───────────────────────────────────────────────────────────────────

def _event_date(event: Dict, *fields: str) -> Optional[datetime]:
    for field in fields:
        value = event.get(field)
        if isinstance(value, datetime):
            return value
    return None


def reduce_events(events: Iterable[Dict]) -> Dict[str, Any]:
    """
    Fold an agency/month event list into collected total, last payment date and
    last reminder. Order of the input does not matter.
    """
    collected = Decimal("0")
    last_payment: Optional[datetime] = None
    last_reminder: Optional[Dict[str, Any]] = None

    for event in events:
        event_type = event.get("type")
        if event_type == CommissionEventType.PAYMENT.value:
            collected += Decimal(str(as_float(event.get("amount"))))
            paid_on = _event_date(event, "payment_date", "created_at")
            if paid_on and (last_payment is None or paid_on > last_payment):
                last_payment = paid_on
        elif event_type == CommissionEventType.REMINDER.value:
            sent_on = _event_date(event, "created_at")
            if sent_on and (last_reminder is None or sent_on > last_reminder["date"]):
                last_reminder = {
                    "date": sent_on,
                    "channel": event.get("channel"),
                    "success": bool(event.get("success")),
                }

    return {
        "collected": round_money(float(collected)),
        "last_payment": last_payment,
        "last_reminder": last_reminder,
    }


# ─── Status ───────────────────────────────────────────────────────────────────

def derive_status(blocked: bool, balance: float) -> AgencyCommissionStatus:
    if blocked:
        return AgencyCommissionStatus.BLOCKED
    if balance > 0:
        return AgencyCommissionStatus.NEEDS_FOLLOW_UP
    return AgencyCommissionStatus.ACTIVE


def summarize_agency_month(
    commission_due: float,
    commission_collected: float,
    blocked: bool,
    threshold: Optional[float] = None,
) -> Dict[str, Any]:
    """balance / above_threshold / status for one agency and month"""
    if threshold is None:
        threshold = settings.COMMISSION_MONTHLY_THRESHOLD
    balance = round_whole(as_float(commission_due) - as_float(commission_collected))
    return {
        "balance": balance,
        "threshold": threshold,
        "above_threshold": as_float(commission_due) >= threshold,
        "blocked": bool(blocked),
        "status": derive_status(bool(blocked), balance).value,
    }


# ─── Carry-over ───────────────────────────────────────────────────────────────

def outstanding_by_month(
    bookings: Iterable[Dict],
    payments: Iterable[Dict],
    before: Tuple[int, int],
) -> Dict[str, List[Dict[str, Any]]]:
    """
    Unpaid balance of every earlier month, per agency.

    A month's due comes from the eligible bookings starting in it, its payments
    from the payment events recorded against it. Only months before `before`
    (year, month) with a positive remainder are returned, oldest first.
    """
    due: Dict[Tuple[str, int, int], Decimal] = {}
    for booking in bookings:
        started = booking.get("from_date")
        agency_id = str(booking.get("agency_id") or "")
        if not is_eligible(booking) or not agency_id or not isinstance(started, datetime):
            continue
        if (started.year, started.month) >= before:
            continue
        key = (agency_id, started.year, started.month)
        due[key] = due.get(key, Decimal("0")) + Decimal(str(booking_commission(booking)))

    paid: Dict[Tuple[str, int, int], Decimal] = {}
    for event in payments:
        if event.get("type") != CommissionEventType.PAYMENT.value:
            continue
        key = (str(event.get("agency_id")), event.get("year"), event.get("month"))
        paid[key] = paid.get(key, Decimal("0")) + Decimal(str(as_float(event.get("amount"))))

    items: Dict[str, List[Dict[str, Any]]] = {}
    for key in sorted(due):
        remainder = round_money(float(due[key] - paid.get(key, Decimal("0"))))
        if remainder > 0:
            agency_id, year, month = key
            items.setdefault(agency_id, []).append({"year": year, "month": month, "amount": remainder})
    return items


def summarize_carry_over(
    commission_due: float,
    commission_collected: float,
    carry_over_items: Sequence[Dict],
    threshold: Optional[float] = None,
) -> Dict[str, Any]:
    """
    carry_over / total_to_pay / payable for one agency and month. An amount
    below the threshold is not payable yet and keeps rolling forward.
    """
    if threshold is None:
        threshold = settings.COMMISSION_MONTHLY_THRESHOLD
    carry_over = sum((Decimal(str(item["amount"])) for item in carry_over_items), Decimal("0"))
    current = max(Decimal(str(as_float(commission_due))) - Decimal(str(as_float(commission_collected))), Decimal("0"))
    total_to_pay = round_money(float(current + carry_over))
    return {
        "carry_over": round_money(float(carry_over)),
        "total_to_pay": total_to_pay,
        "payable": total_to_pay > 0 and total_to_pay >= threshold,
        "carry_over_items": list(carry_over_items),
    }


# ─── Listing ──────────────────────────────────────────────────────────────────

def _fold(value: Any) -> str:
    text = unicodedata.normalize("NFKD", str(value or ""))
    return "".join(c for c in text if not unicodedata.combining(c)).casefold()


def matches_search(row: Dict, search: Optional[str]) -> bool:
    term = (search or "").strip().casefold()
    if not term:
        return True
    agency = row.get("agency") or {}
    haystack = (agency.get("name"), agency.get("id"), agency.get("city"), agency.get("slug"))
    return any(term in str(value).casefold() for value in haystack if value)


def filter_rows(
    rows: Iterable[Dict],
    search: Optional[str] = None,
    status: Optional[str] = None,
    above_threshold: Optional[bool] = None,
    with_carry_over: Optional[bool] = None,
) -> List[Dict]:
    status_filter = None if status in (None, "", "all") else status
    result = []
    for row in rows:
        if not matches_search(row, search):
            continue
        if status_filter and row.get("status") != status_filter:
            continue
        if above_threshold and not row.get("above_threshold"):
            continue
        if with_carry_over and not as_float(row.get("carry_over")) > 0:
            continue
        result.append(row)
    return result


def sort_rows(rows: Iterable[Dict]) -> List[Dict]:
    """Commission due descending, then agency name (accent/case-insensitive)."""
    return sorted(
        rows,
        key=lambda row: (-as_float(row.get("commission_due")), _fold((row.get("agency") or {}).get("name"))),
    )


def paginate(rows: Sequence[Dict], page: int, size: int) -> List[Dict]:
    offset = (page - 1) * size
    return list(rows[offset:offset + size])
