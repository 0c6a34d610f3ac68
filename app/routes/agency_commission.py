"""
Agency-facing commission routes
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.routes.commission import http_error
from app.services.agency_ledger import get_agency_commission_detail
from app.services.commission_settings import get_payment_options
from app.utils.auth import get_current_user, require_agency_access
from app.utils.helpers import serialize_doc

router = APIRouter(prefix="/agency-commissions", tags=["Agency Commissions"])


@router.get("/payment-options")
async def payment_options(current_user: dict = Depends(get_current_user)):
    """Enabled ways to settle a commission balance"""
    return serialize_doc(await get_payment_options())


@router.get("/{agency_id}")
async def get_own_commissions(
    agency_id: str,
    year: Optional[int] = Query(None),
    month: Optional[int] = Query(None),
    current_user: dict = Depends(get_current_user)
):
    """An agency's own monthly commission detail; admins may read any agency"""
    require_agency_access(current_user, agency_id)
    try:
        detail = await get_agency_commission_detail(agency_id, year, month)
    except (ValueError, LookupError) as e:
        raise http_error(e)
    return serialize_doc(detail)
