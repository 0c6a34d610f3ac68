"""
Commission blocking - suspends an agency's cars from sale when commission is
unpaid, and restores exactly the cars it suspended when the block is lifted.

Writes (cars, state, agency, event) are independent documents and are not
wrapped in a transaction. If any write after the car batch fails, the car
batch is reverted along with the state and agency writes already applied,
then the error is re-raised. scripts/repair_commission_state.py realigns
records when a revert itself fails.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List

from pymongo.errors import DuplicateKeyError

from app.config.database import Collections
from app.database.db_operations import db_ops
from app.models.commission import CommissionEventType, CommissionState
from app.services.commission_events import append_event, get_agency
from app.services.commission_ledger import validate_period

logger = logging.getLogger(__name__)

STATE_FIELDS = ("blocked", "blocked_at", "blocked_by", "disabled_cars")


async def get_or_create_state(agency_id: str) -> Dict:
    state = await db_ops.get_one(Collections.COMMISSION_STATE, {"agency_id": agency_id})
    if state:
        return state
    try:
        return await db_ops.create(Collections.COMMISSION_STATE, CommissionState(agency_id=agency_id).model_dump())
    except DuplicateKeyError:
        # Another request created it first
        return await db_ops.get_one(Collections.COMMISSION_STATE, {"agency_id": agency_id})


async def _apply_cascade(
    agency: Dict,
    state: Dict,
    car_ids: List[str],
    available: bool,
    state_update: Dict,
    event_type: CommissionEventType,
    month: int,
    year: int,
    admin_id: str,
    metadata: Dict[str, Any],
) -> Dict:
    """Cars, then state, agency flag and event; undo the applied writes on failure"""
    agency_id = str(agency["_id"])
    blacklisted = event_type == CommissionEventType.BLOCK
    state_written = agency_written = False

    await db_ops.set_many(Collections.CARS, car_ids, {"available": available})
    try:
        updated = await db_ops.update(Collections.COMMISSION_STATE, state["_id"], dict(state_update))
        if updated is None:
            raise LookupError(f"Commission state {state['_id']} disappeared")
        state_written = True
        await db_ops.update(Collections.AGENCIES, agency_id, {"blacklisted": blacklisted})
        agency_written = True
        event = await append_event(agency_id, month, year, event_type, admin_id, metadata=metadata)
    except Exception:
        logger.error("❌ %s cascade failed for agency %s, reverting %d car(s)", event_type.value, agency_id, len(car_ids))
        await db_ops.set_many(Collections.CARS, car_ids, {"available": not available})
        if state_written:
            await db_ops.update(Collections.COMMISSION_STATE, state["_id"], {k: state.get(k) for k in STATE_FIELDS})
        if agency_written:
            await db_ops.update(Collections.AGENCIES, agency_id, {"blacklisted": bool(agency.get("blacklisted"))})
        raise
    return {"state": updated, "event": event}


async def block_agency(agency: Dict, month: int, year: int, admin_id: str) -> Dict:
    agency_id = str(agency["_id"])
    state = await get_or_create_state(agency_id)
    already_blocked = bool(state.get("blocked"))
    previous = list(state.get("disabled_cars") or []) if already_blocked else []

    available = await db_ops.find(Collections.CARS, {"agency_id": agency_id, "available": True}, sort=[("_id", 1)])
    to_disable = [str(car["_id"]) for car in available]
    newly_disabled = [car_id for car_id in to_disable if car_id not in previous]

    result = await _apply_cascade(
        agency, state, to_disable, False,
        {
            "blocked": True,
            # Re-blocking keeps the original snapshot and timestamps
            "blocked_at": state.get("blocked_at") if already_blocked else datetime.utcnow(),
            "blocked_by": state.get("blocked_by") if already_blocked else str(admin_id),
            "disabled_cars": previous + newly_disabled,
        },
        CommissionEventType.BLOCK, month, year, admin_id,
        {"disabled_cars": to_disable, "already_blocked": already_blocked},
    )
    logger.info("🚫 Agency %s blocked, %d car(s) disabled", agency_id, len(to_disable))
    return result


async def unblock_agency(agency: Dict, month: int, year: int, admin_id: str) -> Dict:
    agency_id = str(agency["_id"])
    state = await get_or_create_state(agency_id)
    reactivated = list(state.get("disabled_cars") or [])

    result = await _apply_cascade(
        agency, state, reactivated, True,
        {"blocked": False, "blocked_at": None, "blocked_by": None, "disabled_cars": []},
        CommissionEventType.UNBLOCK, month, year, admin_id,
        {"reactivated_cars": reactivated},
    )
    logger.info("✅ Agency %s unblocked, %d car(s) reactivated", agency_id, len(reactivated))
    return result


async def set_agency_blocked(agency_id: str, month: Any, year: Any, block: bool, admin_id: str) -> Dict:
    year, month = validate_period(year, month)
    agency = await get_agency(agency_id)
    if block:
        return await block_agency(agency, month, year, admin_id)
    return await unblock_agency(agency, month, year, admin_id)
