"""
Commission settings - singleton record holding reminder templates, the
default reminder channel and the payment methods agencies may use.
"""
import logging
import re
from typing import Any, Dict, List, Optional

from app.config.database import Collections
from app.database.db_operations import db_ops
from app.models.commission import CommissionSettingsUpdate, ReminderChannel

logger = logging.getLogger(__name__)

DEFAULT_EMAIL_TEMPLATE = (
    "Bonjour {{agencyName}},\n\n"
    "Nous vous rappelons que la commission de {{amount}} TND pour {{month}} {{year}} reste due.\n"
    "Merci de procéder au règlement.\n\n"
    "Cordialement,\n"
    "L'équipe Plany"
)
DEFAULT_SMS_TEMPLATE = (
    "Plany: Commission de {{amount}} TND pour {{month}}/{{year}} toujours en attente. Merci de régulariser."
)

DEFAULTS = {
    "reminder_channel": ReminderChannel.EMAIL.value,
    "email_template": DEFAULT_EMAIL_TEMPLATE,
    "sms_template": DEFAULT_SMS_TEMPLATE,
    "bank_transfer_enabled": True,
    "card_payment_enabled": False,
    "d17_payment_enabled": False,
    "bank_transfer_rib_details": None,
    "updated_by": None,
}

RIB_FIELDS = ("account_holder", "bank_name", "bank_address", "iban", "bic", "account_number")

BIC_RE = re.compile(r"^[A-Z]{4}[A-Z]{2}[0-9A-Z]{2}([0-9A-Z]{3})?$")
IBAN_RE = re.compile(r"^[A-Z]{2}[0-9]{2}[A-Z0-9]{11,30}$")
_WHITESPACE_RE = re.compile(r"\s+")


# ─── RIB ──────────────────────────────────────────────────────────────────────

def sanitize_rib(rib: Optional[Dict]) -> Optional[Dict]:
    """Trim every field, uppercase IBAN/BIC and drop inner whitespace from bank codes"""
    if rib is None:
        return None

    def clean(key: str) -> str:
        return str(rib.get(key) or "").strip()

    address = clean("bank_address")
    return {
        "account_holder": clean("account_holder"),
        "bank_name": clean("bank_name"),
        "bank_address": address or None,
        "iban": _WHITESPACE_RE.sub("", clean("iban")).upper(),
        "bic": _WHITESPACE_RE.sub("", clean("bic")).upper(),
        "account_number": _WHITESPACE_RE.sub("", clean("account_number")),
    }


def rib_has_details(rib: Optional[Dict]) -> bool:
    return bool(rib) and any(rib.get(key) for key in RIB_FIELDS)


def is_valid_iban(iban: str) -> bool:
    """ISO 13616 mod-97 check on an already sanitized IBAN"""
    if not iban or not IBAN_RE.match(iban):
        return False
    rearranged = iban[4:] + iban[:4]
    digits = "".join(str(int(ch, 36)) for ch in rearranged)
    return int(digits) % 97 == 1


def rib_errors(rib: Optional[Dict]) -> List[str]:
    if not rib:
        return ["bank transfer details are required"]
    errors = []
    if not rib.get("account_holder"):
        errors.append("account holder is required")
    if not rib.get("bank_name"):
        errors.append("bank name is required")
    if not is_valid_iban(rib.get("iban") or ""):
        errors.append("IBAN is invalid")
    if not BIC_RE.match(rib.get("bic") or ""):
        errors.append("BIC is invalid")
    if len(rib.get("account_number") or "") < 6:
        errors.append("account number must have at least 6 characters")
    return errors


# ─── Settings record ──────────────────────────────────────────────────────────

async def _resolve_updated_by(doc: Dict) -> Dict:
    admin_id = doc.get("updated_by")
    if admin_id:
        admin = await db_ops.get_by_id(Collections.ADMINS, admin_id)
        doc["updated_by"] = {
            "id": admin_id,
            "name": (admin or {}).get("name") or (admin or {}).get("full_name") or "",
            "email": (admin or {}).get("email"),
        }
    return doc


async def _load_or_create() -> Dict:
    doc = await db_ops.get_one(Collections.COMMISSION_SETTINGS, {})
    if doc:
        return doc
    logger.info("⚙️ Creating default commission settings")
    return await db_ops.create(Collections.COMMISSION_SETTINGS, dict(DEFAULTS))


async def get_commission_settings() -> Dict:
    doc = await _load_or_create()
    # Records written before a toggle existed fall back to its default
    for key, value in DEFAULTS.items():
        if doc.get(key) is None and key not in ("bank_transfer_rib_details", "updated_by"):
            doc[key] = value
    return await _resolve_updated_by(doc)


async def update_commission_settings(payload: CommissionSettingsUpdate, admin_id: str) -> Dict:
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValueError("No settings provided")

    current = await _load_or_create()
    merged: Dict[str, Any] = {}
    for key in DEFAULTS:
        if key == "updated_by":
            continue
        if key in changes and (changes[key] is not None or key == "bank_transfer_rib_details"):
            merged[key] = changes[key]
        elif current.get(key) is not None:
            merged[key] = current[key]
        else:
            merged[key] = DEFAULTS[key]

    if isinstance(merged["reminder_channel"], ReminderChannel):
        merged["reminder_channel"] = merged["reminder_channel"].value

    rib = sanitize_rib(merged["bank_transfer_rib_details"])
    submitted_rib = "bank_transfer_rib_details" in changes and rib_has_details(rib)
    if merged["bank_transfer_enabled"] or submitted_rib:
        errors = rib_errors(rib)
        if errors:
            raise ValueError("Invalid bank transfer details: " + "; ".join(errors))
    merged["bank_transfer_rib_details"] = rib
    merged["updated_by"] = str(admin_id)

    updated = await db_ops.update(Collections.COMMISSION_SETTINGS, current["_id"], merged)
    logger.info("⚙️ Commission settings updated by %s (%s)", admin_id, ", ".join(sorted(changes)))

    return await _resolve_updated_by(updated or {**current, **merged})


async def get_payment_options() -> Dict:
    """Payment methods an agency can use to settle its commission"""
    doc = await get_commission_settings()
    bank_transfer = bool(doc.get("bank_transfer_enabled"))
    return {
        "bank_transfer_enabled": bank_transfer,
        "card_payment_enabled": bool(doc.get("card_payment_enabled")),
        "d17_payment_enabled": bool(doc.get("d17_payment_enabled")),
        "bank_transfer_rib_details": doc.get("bank_transfer_rib_details") if bank_transfer else None,
    }
