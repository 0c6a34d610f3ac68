"""
Outgoing mail through a Mailgun-style HTTP API
"""
import logging

import httpx

from app.config.settings import settings

logger = logging.getLogger(__name__)


async def send_mail(to: str, subject: str, html: str) -> dict:
    """Send one HTML email. Raises on any transport or HTTP error."""
    if not to:
        raise ValueError("Recipient email is required")

    if not settings.MAIL_ACTIVE:
        logger.info("📭 Mail disabled, not sending '%s' to %s", subject, to)
        return {"status": "inactive"}

    async with httpx.AsyncClient(timeout=30) as client:
        resp = await client.post(
            settings.MAIL_API_URL,
            auth=("api", settings.MAIL_API_KEY),
            data={
                "from": settings.MAIL_FROM,
                "to": to,
                "subject": subject,
                "html": html,
            },
        )
        resp.raise_for_status()

    logger.info("📧 Mail '%s' sent to %s", subject, to)
    return resp.json()
