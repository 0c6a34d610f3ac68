"""
SMS gateway client and Tunisian mobile number validation
"""
import logging
import random
import re
from typing import Dict, Optional

import httpx

from app.config.settings import settings
from app.services.mail_service import send_mail

logger = logging.getLogger(__name__)

COUNTRY_PREFIX = "216"

# Ooredoo, Orange, Tunisie Telecom, Elissa/Nessma
_MOBILE_RE = re.compile(r"^[2459]\d{7}$")


def validate_and_format_phone(raw: Optional[str]) -> Dict:
    """
    Normalize a Tunisian mobile number to 216XXXXXXXX.

    Returns {"phone": ..., "is_valid": ...}; an invalid number is returned as given.
    """
    if not raw:
        return {"phone": "", "is_valid": False}

    cleaned = re.sub(r"\s+", "", raw.strip())
    cleaned = re.sub(r"^(\+|00)", "", cleaned)
    if not cleaned.startswith(COUNTRY_PREFIX):
        cleaned = COUNTRY_PREFIX + cleaned

    local = cleaned[len(COUNTRY_PREFIX):]
    is_valid = bool(_MOBILE_RE.match(local))
    return {"phone": COUNTRY_PREFIX + local if is_valid else raw, "is_valid": is_valid}


def _message_id() -> str:
    return str(random.randint(100000, 999999))


async def send_sms(phone: str, text: str) -> Dict:
    """Send a plain-text SMS. Raises when the gateway call fails."""
    if not settings.SMS_ACTIVE:
        logger.info("📵 SMS disabled, forwarding message for %s to %s", phone, settings.INFO_EMAIL)
        await send_mail(
            settings.INFO_EMAIL,
            f"SMS désactivé - Message non envoyé à {phone}",
            f"<p>Le service SMS est désactivé.</p><ul><li><strong>Numéro :</strong> {phone}</li>"
            f"<li><strong>Message :</strong> {text}</li></ul>",
        )
        return {"status": "inactive"}

    params = {
        "fct": "sms",
        "key": settings.SMS_API_KEY,
        "mobile": phone,
        "sms": text,
        "sender": settings.SMS_SENDER,
        "msg_id": _message_id(),
    }
    try:
        async with httpx.AsyncClient(timeout=30) as client:
            resp = await client.get(settings.SMS_API_URL, params=params)
            resp.raise_for_status()
    except httpx.HTTPError as exc:
        logger.error("❌ SMS to %s failed: %s", phone, exc)
        raise

    logger.info("📱 SMS sent to %s", phone)
    return {"status": "sent", "response": resp.text}
