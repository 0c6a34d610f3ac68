"""
Monthly commission overview - every agency with eligible bookings in a month
or an unpaid balance carried from earlier months, joined with its commission
state and event log.

Filtering, sorting and pagination run in memory over the month's agency set,
which is already small once bookings are grouped.
"""
from typing import Any, Dict, List, Optional, Sequence

from app.config.database import Collections
from app.config.settings import settings
from app.database.db_operations import db_ops
from app.models.commission import CommissionEventType, ELIGIBLE_BOOKING_STATUSES
from app.services import commission_ledger as ledger
from app.services.commission_events import list_events
from app.utils.helpers import month_bounds, round_money


def _page_params(page: Any, size: Any) -> tuple:
    try:
        page = 1 if page is None else int(page)
        size = settings.DEFAULT_PAGE_SIZE if size is None else int(size)
    except (TypeError, ValueError):
        raise ValueError("page and size must be integers")
    if page < 1:
        raise ValueError("page must be 1 or greater")
    if not 1 <= size <= settings.MAX_PAGE_SIZE:
        raise ValueError(f"size must be between 1 and {settings.MAX_PAGE_SIZE}")
    return page, size


def _empty_response(page: int, size: int) -> Dict:
    return {
        "summary": {
            "gross_turnover": 0,
            "commission_due": 0,
            "commission_collected": 0,
            "agencies_above_threshold": 0,
            "carry_over_total": 0,
            "payable_total": 0,
            "agencies_under_threshold": 0,
            "threshold": settings.COMMISSION_MONTHLY_THRESHOLD,
        },
        "agencies": [],
        "total": 0,
        "page": page,
        "size": size,
    }


def agency_card(agency_id: str, agency: Optional[Dict]) -> Dict:
    agency = agency or {}
    return {
        "id": agency_id,
        "name": agency.get("name") or "",
        "city": agency.get("city"),
        "email": agency.get("email"),
        "phone": agency.get("phone"),
        "slug": agency.get("slug"),
    }


async def load_carry_over(agency_ids: Optional[Sequence[str]], year: int, month: int) -> Dict[str, List[Dict]]:
    """
    Unpaid balances of the months between the commission start and (year, month),
    keyed by agency. None loads every agency.
    """
    if not settings.COMMISSION_ENABLED:
        return {}
    start, _ = month_bounds(year, month)
    effective = ledger.effective_date()
    if start <= effective:
        return {}

    booking_query: Dict[str, Any] = {
        "status": {"$in": list(ELIGIBLE_BOOKING_STATUSES)},
        "from_date": {"$gte": effective, "$lt": start},
    }
    if agency_ids is not None:
        booking_query["agency_id"] = {"$in": [str(a) for a in agency_ids]}
    bookings = await db_ops.find(Collections.BOOKINGS, booking_query)
    owing = sorted({str(b.get("agency_id")) for b in bookings if b.get("agency_id")})
    if not owing:
        return {}

    payments = await db_ops.find(
        Collections.COMMISSION_EVENTS,
        {"agency_id": {"$in": owing}, "type": CommissionEventType.PAYMENT.value},
    )
    return ledger.outstanding_by_month(bookings, payments, (year, month))


def build_row(
    agency_id: str,
    agency: Optional[Dict],
    totals: Dict[str, float],
    state: Optional[Dict],
    events: List[Dict],
    carry_over_items: Optional[List[Dict]] = None,
    closed: bool = True,
) -> Dict:
    reduced = ledger.reduce_events(events)
    blocked = bool((state or {}).get("blocked")) or bool((agency or {}).get("blacklisted"))
    due = round_money(totals["commission_due"])
    derived = ledger.summarize_agency_month(due, reduced["collected"], blocked)
    carried = ledger.summarize_carry_over(due, reduced["collected"], carry_over_items or [])
    return {
        "agency": agency_card(agency_id, agency),
        "reservations": int(totals["reservations"]),
        "gross_turnover": round_money(totals["gross_turnover"]),
        "commission_due": due,
        "commission_collected": reduced["collected"],
        "balance": derived["balance"],
        "last_payment": reduced["last_payment"],
        "last_reminder": reduced["last_reminder"],
        "status": derived["status"],
        "blocked": derived["blocked"],
        "above_threshold": derived["above_threshold"],
        **carried,
        "period_closed": closed,
    }


async def get_monthly_commissions(
    year: Any,
    month: Any,
    search: Optional[str] = None,
    status: Optional[str] = None,
    above_threshold: Optional[bool] = None,
    page: Any = 1,
    size: Any = None,
    with_carry_over: Optional[bool] = None,
) -> Dict:
    year, month = ledger.validate_period(year, month)
    page, size = _page_params(page, size)

    window = ledger.commission_window(year, month)
    if window is None:
        # Commission rules were not in force yet during that month
        return _empty_response(page, size)
    start, end = window

    bookings = await db_ops.find(
        Collections.BOOKINGS,
        {"status": {"$in": list(ELIGIBLE_BOOKING_STATUSES)}, "from_date": {"$gte": start, "$lt": end}},
    )
    groups = ledger.group_bookings(bookings)
    carry_over = await load_carry_over(None, year, month)
    # Agencies with nothing booked this month still show while they owe earlier months
    for agency_id in carry_over:
        groups.setdefault(agency_id, {"reservations": 0, "gross_turnover": 0.0, "commission_due": 0.0})
    if not groups:
        return _empty_response(page, size)

    agency_ids = list(groups)
    agencies = await db_ops.get_many_by_ids(Collections.AGENCIES, agency_ids)
    states = {
        doc["agency_id"]: doc
        for doc in await db_ops.find(Collections.COMMISSION_STATE, {"agency_id": {"$in": agency_ids}})
    }
    events_by_agency: Dict[str, List[Dict]] = {}
    for event in await list_events(agency_ids, month, year):
        events_by_agency.setdefault(event["agency_id"], []).append(event)

    closed = ledger.period_closed(year, month)
    rows = [
        build_row(
            agency_id, agencies.get(agency_id), totals, states.get(agency_id),
            events_by_agency.get(agency_id, []), carry_over.get(agency_id), closed,
        )
        for agency_id, totals in groups.items()
    ]

    summary = {
        "gross_turnover": round_money(sum(r["gross_turnover"] for r in rows)),
        "commission_due": round_money(sum(r["commission_due"] for r in rows)),
        "commission_collected": round_money(sum(r["commission_collected"] for r in rows)),
        "agencies_above_threshold": sum(1 for r in rows if r["above_threshold"]),
        "carry_over_total": round_money(sum(r["carry_over"] for r in rows)),
        "payable_total": round_money(sum(r["total_to_pay"] for r in rows if r["payable"])),
        "agencies_under_threshold": sum(1 for r in rows if r["total_to_pay"] > 0 and not r["payable"]),
        "threshold": settings.COMMISSION_MONTHLY_THRESHOLD,
    }

    filtered = ledger.sort_rows(ledger.filter_rows(rows, search, status, above_threshold, with_carry_over))
    return {
        "summary": summary,
        "agencies": ledger.paginate(filtered, page, size),
        "total": len(filtered),
        "page": page,
        "size": size,
    }
