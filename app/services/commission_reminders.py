"""
Commission reminders - mail and/or SMS to an agency about an unpaid balance.

Each channel fails independently; the outcome of every attempt is kept as a
reminder event, including failed ones.
"""
import logging
from typing import Any, Dict, List, Optional

from app.models.commission import CommissionEventType, ReminderChannel
from app.services.agency_ledger import get_agency_commission_detail
from app.services.commission_events import append_event, get_agency
from app.services.commission_ledger import validate_period
from app.services.commission_settings import get_commission_settings
from app.services.mail_service import send_mail
from app.services.sms_service import send_sms, validate_and_format_phone
from app.utils.helpers import html_to_text, month_label

logger = logging.getLogger(__name__)


def render_template(template: str, agency_name: str, amount: Any, month: int, year: int) -> str:
    values = {
        "{{agencyName}}": agency_name or "",
        "{{amount}}": str(amount),
        "{{month}}": month_label(month),
        "{{year}}": str(year),
    }
    for placeholder, value in values.items():
        template = template.replace(placeholder, value)
    return template


def _channels(channel: ReminderChannel) -> tuple:
    return (
        channel in (ReminderChannel.EMAIL, ReminderChannel.EMAIL_AND_SMS),
        channel in (ReminderChannel.SMS, ReminderChannel.EMAIL_AND_SMS),
    )


async def send_commission_reminder(
    agency_id: str,
    month: Any,
    year: Any,
    admin_id: str,
    channel: Optional[ReminderChannel] = None,
    subject: Optional[str] = None,
    message: Optional[str] = None,
) -> Dict:
    """Dispatch a reminder and record it. Returns {"success", "event", "errors"}."""
    year, month = validate_period(year, month)
    agency = await get_agency(agency_id)
    agency_id = str(agency["_id"])

    config = await get_commission_settings()
    channel = ReminderChannel(channel or config.get("reminder_channel") or ReminderChannel.EMAIL)
    use_email, use_sms = _channels(channel)

    subject = (subject or "").strip() or f"Rappel commission {month_label(month)} {year}"
    message = (message or "").strip()
    email_html = sms_text = message
    if not message:
        detail = await get_agency_commission_detail(agency_id, year, month)
        amount = detail["summary"]["balance"]
        name = agency.get("name") or ""
        email_html = render_template(config["email_template"], name, amount, month, year).replace("\n", "<br>")
        sms_text = render_template(config["sms_template"], name, amount, month, year)
        message = email_html if use_email else sms_text

    errors: List[str] = []

    if use_email:
        email = (agency.get("email") or "").strip()
        if not email:
            errors.append("email: agency has no email address")
        else:
            try:
                await send_mail(email, subject, email_html)
            except Exception as exc:
                errors.append(f"email: {exc}")

    if use_sms:
        phone = validate_and_format_phone(agency.get("phone"))
        if not phone["is_valid"]:
            errors.append("sms: agency phone number is invalid")
        else:
            try:
                await send_sms(phone["phone"], html_to_text(sms_text))
            except Exception as exc:
                errors.append(f"sms: {exc}")

    success = not errors
    if not success:
        logger.warning("⚠️ Reminder to agency %s via %s failed: %s", agency_id, channel.value, "; ".join(errors))

    event = await append_event(
        agency_id, month, year, CommissionEventType.REMINDER, admin_id,
        channel=channel,
        success=success,
        message=message,
        metadata={"subject": subject, "errors": errors},
    )
    if success:
        logger.info("🔔 Reminder sent to agency %s via %s", agency_id, channel.value)
    return {"success": success, "event": event, "errors": errors}
