"""
Admin commission routes - monthly overview, agency ledger, payments,
reminders, blocking, notes and commission settings
"""
from typing import Optional

from fastapi import APIRouter, HTTPException, status, Depends, Query

from app.models.commission import (
    BlockRequest,
    CommissionListRequest,
    CommissionSettingsUpdate,
    NoteRequest,
    PaymentRequest,
    ReminderRequest,
)
from app.services.agency_ledger import get_agency_commission_detail
from app.services.commission_blocking import set_agency_blocked
from app.services.commission_events import add_note, record_payment
from app.services.commission_period import get_monthly_commissions
from app.services.commission_reminders import send_commission_reminder
from app.services.commission_settings import get_commission_settings, update_commission_settings
from app.utils.auth import require_admin
from app.utils.helpers import serialize_doc

router = APIRouter(prefix="/admin", tags=["Commissions"])


def http_error(exc: Exception) -> HTTPException:
    """Translate a service error into an HTTP error"""
    if isinstance(exc, LookupError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.post("/commissions")
async def list_commissions(
    body: CommissionListRequest,
    page: int = Query(1),
    size: Optional[int] = Query(None),
    current_user: dict = Depends(require_admin)
):
    """Monthly commission overview across agencies"""
    try:
        result = await get_monthly_commissions(
            body.year, body.month,
            search=body.search,
            status=body.status,
            above_threshold=body.above_threshold,
            with_carry_over=body.with_carry_over,
            page=page,
            size=size,
        )
    except (ValueError, LookupError) as e:
        raise http_error(e)
    return serialize_doc(result)


@router.get("/commissions/agencies/{agency_id}")
async def get_agency_commissions(
    agency_id: str,
    year: Optional[int] = Query(None),
    month: Optional[int] = Query(None),
    current_user: dict = Depends(require_admin)
):
    """One agency's commission detail for a month"""
    try:
        detail = await get_agency_commission_detail(agency_id, year, month)
    except (ValueError, LookupError) as e:
        raise http_error(e)
    return serialize_doc(detail)


@router.post("/commissions/payments", status_code=status.HTTP_201_CREATED)
async def create_payment(
    payment: PaymentRequest,
    current_user: dict = Depends(require_admin)
):
    """Record a commission payment received from an agency"""
    try:
        event = await record_payment(
            payment.agency_id, payment.month, payment.year, payment.amount,
            current_user["sub"],
            payment_date=payment.payment_date,
            reference=payment.reference,
        )
    except (ValueError, LookupError) as e:
        raise http_error(e)
    return serialize_doc(event)


@router.post("/commissions/reminders")
async def send_reminder(
    reminder: ReminderRequest,
    current_user: dict = Depends(require_admin)
):
    """Send a reminder; a failed dispatch answers 400 but stays in the log"""
    try:
        result = await send_commission_reminder(
            reminder.agency_id, reminder.month, reminder.year,
            current_user["sub"],
            channel=reminder.channel,
            subject=reminder.subject,
            message=reminder.message,
        )
    except (ValueError, LookupError) as e:
        raise http_error(e)

    if not result["success"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": "Reminder could not be delivered",
                "errors": result["errors"],
                "event_id": str(result["event"]["_id"]),
            }
        )
    return serialize_doc(result)


@router.post("/commissions/block")
async def toggle_block(
    request: BlockRequest,
    current_user: dict = Depends(require_admin)
):
    """Block or unblock an agency's cars over unpaid commission"""
    try:
        result = await set_agency_blocked(
            request.agency_id, request.month, request.year, request.block, current_user["sub"]
        )
    except (ValueError, LookupError) as e:
        raise http_error(e)
    return serialize_doc(result)


@router.post("/commissions/notes", status_code=status.HTTP_201_CREATED)
async def create_note(
    request: NoteRequest,
    current_user: dict = Depends(require_admin)
):
    """Attach an internal note to an agency's month"""
    try:
        event = await add_note(request.agency_id, request.month, request.year, request.note, current_user["sub"])
    except (ValueError, LookupError) as e:
        raise http_error(e)
    return serialize_doc(event)


@router.get("/commission-settings")
async def read_settings(current_user: dict = Depends(require_admin)):
    return serialize_doc(await get_commission_settings())


@router.put("/commission-settings")
async def write_settings(
    payload: CommissionSettingsUpdate,
    current_user: dict = Depends(require_admin)
):
    try:
        updated = await update_commission_settings(payload, current_user["sub"])
    except ValueError as e:
        raise http_error(e)
    return serialize_doc(updated)
