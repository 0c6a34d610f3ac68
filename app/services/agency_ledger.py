"""
Agency monthly ledger - one agency's commission detail for a month:
summary figures with carry-over, audit log and the per-booking payment
allocation.
"""
from typing import Any, Dict, List

from app.config.database import Collections
from app.database.db_operations import db_ops
from app.services import commission_ledger as ledger
from app.services.commission_events import get_agency, list_events
from app.services.commission_period import agency_card, load_carry_over
from app.utils.helpers import as_float, round_money


async def _admin_cards(admin_ids: List[str]) -> Dict[str, Dict]:
    admins = await db_ops.get_many_by_ids(Collections.ADMINS, sorted(set(admin_ids)))
    return {
        admin_id: {
            "id": admin_id,
            "name": doc.get("name") or doc.get("full_name") or "",
            "email": doc.get("email"),
        }
        for admin_id, doc in admins.items()
    }


def to_log_entry(event: Dict, admins: Dict[str, Dict]) -> Dict:
    admin_id = event.get("admin_id")
    return {
        "id": str(event.get("_id")),
        "type": event.get("type"),
        "date": event.get("created_at"),
        "admin": admins.get(admin_id) or ({"id": admin_id, "name": "", "email": None} if admin_id else None),
        "channel": event.get("channel"),
        "success": event.get("success"),
        "amount": event.get("amount"),
        "payment_date": event.get("payment_date"),
        "reference": event.get("reference"),
        "note": event.get("note"),
        "message": event.get("message"),
        "metadata": event.get("metadata") or {},
    }


def allocate_bookings(bookings: List[Dict], collected: float) -> List[Dict]:
    """Map bookings (already ordered oldest first) to their allocation rows"""
    statuses = ledger.allocate_payments([ledger.owed_commission(b) for b in bookings], collected)
    return [
        {
            "id": str(booking.get("_id")),
            "from": booking.get("from_date"),
            "to": booking.get("to_date"),
            "total_price": round_money(as_float(booking.get("price"))),
            "commission": round_money(ledger.booking_commission(booking)),
            "status": booking.get("status"),
            "payment_status": payment_status.value,
            "driver_name": booking.get("driver_name"),
        }
        for booking, payment_status in zip(bookings, statuses)
    ]


async def get_agency_commission_detail(agency_id: str, year: Any, month: Any) -> Dict:
    year, month = ledger.validate_period(year, month)
    agency = await get_agency(agency_id)
    agency_id = str(agency["_id"])

    state = await db_ops.get_one(Collections.COMMISSION_STATE, {"agency_id": agency_id})
    events = await list_events([agency_id], month, year, newest_first=True)

    bookings: List[Dict] = []
    window = ledger.commission_window(year, month)
    if window is not None:
        start, end = window
        # Oldest first: the allocation below depends on this order
        bookings = await db_ops.find(
            Collections.BOOKINGS,
            {"agency_id": agency_id, "from_date": {"$gte": start, "$lt": end}},
            sort=[("from_date", 1), ("_id", 1)],
        )

    totals = ledger.group_bookings(bookings).get(
        agency_id, {"reservations": 0, "gross_turnover": 0.0, "commission_due": 0.0}
    )
    reduced = ledger.reduce_events(events)
    blocked = bool((state or {}).get("blocked")) or bool(agency.get("blacklisted"))
    commission_due = round_money(totals["commission_due"])
    derived = ledger.summarize_agency_month(commission_due, reduced["collected"], blocked)
    carry_over_items = (await load_carry_over([agency_id], year, month)).get(agency_id, [])
    carried = ledger.summarize_carry_over(commission_due, reduced["collected"], carry_over_items)

    admins = await _admin_cards([e["admin_id"] for e in events if e.get("admin_id")])

    return {
        "agency": {**agency_card(agency_id, agency), "status": derived["status"], "blocked": derived["blocked"]},
        "summary": {
            "reservations": int(totals["reservations"]),
            "gross_turnover": round_money(totals["gross_turnover"]),
            "commission_due": commission_due,
            "commission_collected": reduced["collected"],
            "balance": derived["balance"],
            "threshold": derived["threshold"],
            "above_threshold": derived["above_threshold"],
            "carry_over": carried["carry_over"],
            "total_to_pay": carried["total_to_pay"],
            "payable": carried["payable"],
            "period_closed": ledger.period_closed(year, month),
        },
        "logs": [to_log_entry(event, admins) for event in events],
        "bookings": allocate_bookings(bookings, reduced["collected"]),
        "carry_over_items": carried["carry_over_items"],
        "month": month,
        "year": year,
    }
