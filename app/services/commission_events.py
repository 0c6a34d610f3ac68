"""
Commission event store - append-only log of payments, reminders, blocks,
unblocks and notes for an agency's monthly commission account.

Events are inserted once and never updated or deleted; every derived figure
is recomputed from them on read.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from app.config.database import db_config, Collections
from app.database.db_operations import db_ops
from app.models.commission import CommissionEvent, CommissionEventType
from app.services.commission_ledger import validate_period

logger = logging.getLogger(__name__)


async def get_agency(agency_id: str) -> Dict:
    """Load an agency or raise LookupError"""
    if not agency_id:
        raise ValueError("agency_id is required")
    agency = await db_ops.get_by_id(Collections.AGENCIES, agency_id)
    if not agency:
        raise LookupError(f"Agency {agency_id} not found")
    return agency


async def append_event(
    agency_id: str,
    month: int,
    year: int,
    event_type: CommissionEventType,
    admin_id: str,
    **fields: Any,
) -> Dict:
    """Validate and insert one event, returns the stored document."""
    event = CommissionEvent(
        agency_id=str(agency_id),
        month=month,
        year=year,
        type=event_type,
        admin_id=str(admin_id),
        **fields,
    )
    document = event.model_dump(mode="python")
    document["type"] = event.type.value
    if event.channel is not None:
        document["channel"] = event.channel.value

    coll = db_config.get_collection(Collections.COMMISSION_EVENTS)
    result = await coll.insert_one(document)
    document["_id"] = result.inserted_id
    return document


async def list_events(
    agency_ids: Sequence[str],
    month: int,
    year: int,
    newest_first: bool = True,
) -> List[Dict]:
    """All events of the given agencies for one month"""
    if not agency_ids:
        return []
    return await db_ops.find(
        Collections.COMMISSION_EVENTS,
        {"agency_id": {"$in": [str(a) for a in agency_ids]}, "month": month, "year": year},
        sort=[("created_at", -1 if newest_first else 1)],
    )


async def record_payment(
    agency_id: str,
    month: Any,
    year: Any,
    amount: Any,
    admin_id: str,
    payment_date: Optional[datetime] = None,
    reference: Optional[str] = None,
) -> Dict:
    year, month = validate_period(year, month)
    if amount is None:
        raise ValueError("amount is required")
    try:
        amount = float(amount)
    except (TypeError, ValueError):
        raise ValueError("amount must be a number")
    if amount <= 0:
        raise ValueError("amount must be greater than zero")

    await get_agency(agency_id)
    if payment_date is not None and payment_date.tzinfo is not None:
        payment_date = payment_date.astimezone(timezone.utc).replace(tzinfo=None)

    event = await append_event(
        agency_id, month, year, CommissionEventType.PAYMENT, admin_id,
        amount=amount,
        payment_date=payment_date or datetime.utcnow(),
        reference=(reference or "").strip() or None,
    )
    logger.info("💰 Payment of %.2f recorded for agency %s (%02d/%d)", amount, agency_id, month, year)
    return event


async def add_note(agency_id: str, month: Any, year: Any, note: Optional[str], admin_id: str) -> Dict:
    year, month = validate_period(year, month)
    text = (note or "").strip()
    if not text:
        raise ValueError("note is required")
    await get_agency(agency_id)
    return await append_event(agency_id, month, year, CommissionEventType.NOTE, admin_id, note=text)
