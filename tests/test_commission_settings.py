import asyncio

import pytest

from app.config.database import Collections
from app.database.db_operations import db_ops, DBOperations
from app.models.commission import CommissionSettingsUpdate
from app.services.commission_settings import (
    DEFAULT_EMAIL_TEMPLATE,
    get_commission_settings,
    get_payment_options,
    is_valid_iban,
    rib_errors,
    sanitize_rib,
    update_commission_settings,
)

VALID_RIB = {
    "account_holder": "  Plany SARL ",
    "bank_name": "BIAT",
    "bank_address": "",
    "iban": "tn59 1000 6035 1835 9847 8831",
    "bic": "biat tntt",
    "account_number": "1000 6035 1835",
}


def update(admin_id="admin-1", **fields):
    return asyncio.run(update_commission_settings(CommissionSettingsUpdate(**fields), admin_id))


def test_defaults_created_once(seed):
    first = asyncio.run(get_commission_settings())
    second = asyncio.run(get_commission_settings())

    assert first["reminder_channel"] == "email"
    assert first["email_template"] == DEFAULT_EMAIL_TEMPLATE
    assert first["bank_transfer_enabled"] is True
    assert first["card_payment_enabled"] is False
    assert first["d17_payment_enabled"] is False
    assert first["bank_transfer_rib_details"] is None
    assert second["_id"] == first["_id"]
    assert len(seed.collection(Collections.COMMISSION_SETTINGS)) == 1


def test_empty_update_rejected():
    with pytest.raises(ValueError):
        update()


def test_bank_transfer_requires_valid_rib():
    with pytest.raises(ValueError):
        update(sms_template="Rappel {{amount}}")


def test_omitted_fields_keep_previous_values(seed):
    admin_id = seed.admin(name="Leila")
    update(admin_id=admin_id, bank_transfer_rib_details=VALID_RIB, card_payment_enabled=True)

    result = update(admin_id=admin_id, sms_template="Rappel {{amount}}")

    assert result["card_payment_enabled"] is True
    assert result["bank_transfer_enabled"] is True
    assert result["sms_template"] == "Rappel {{amount}}"
    assert result["email_template"] == DEFAULT_EMAIL_TEMPLATE
    assert result["bank_transfer_rib_details"]["iban"] == "TN5910006035183598478831"
    assert result["updated_by"] == {"id": admin_id, "name": "Leila", "email": "admin@plany.tn"}


def test_invalid_rib_writes_nothing(seed):
    asyncio.run(get_commission_settings())
    before = [dict(doc) for doc in seed.collection(Collections.COMMISSION_SETTINGS)]

    with pytest.raises(ValueError):
        update(bank_transfer_rib_details={**VALID_RIB, "iban": "TN5910006035183598478832"}, card_payment_enabled=True)

    assert seed.collection(Collections.COMMISSION_SETTINGS) == before


def test_update_stored_through_db_operations(seed, monkeypatch):
    calls = []

    async def recording_update(collection_name, doc_id, update_data):
        calls.append(collection_name)
        return await DBOperations.update(collection_name, doc_id, update_data)

    monkeypatch.setattr(db_ops, "update", recording_update)

    update(bank_transfer_rib_details=VALID_RIB, d17_payment_enabled=True)

    assert calls == [Collections.COMMISSION_SETTINGS]
    stored = seed.collection(Collections.COMMISSION_SETTINGS)
    assert len(stored) == 1
    assert stored[0]["d17_payment_enabled"] is True
    assert stored[0]["updated_by"] == "admin-1"
    assert stored[0]["updated_at"] >= stored[0]["created_at"]


def test_rib_checked_even_when_bank_transfer_disabled():
    with pytest.raises(ValueError):
        update(bank_transfer_enabled=False, bank_transfer_rib_details={**VALID_RIB, "bic": "NOPE"})


def test_clear_rib_with_bank_transfer_disabled():
    update(bank_transfer_rib_details=VALID_RIB)

    result = update(bank_transfer_enabled=False, bank_transfer_rib_details=None)

    assert result["bank_transfer_enabled"] is False
    assert result["bank_transfer_rib_details"] is None


def test_payment_options_hide_rib_when_transfer_disabled():
    update(bank_transfer_rib_details=VALID_RIB, d17_payment_enabled=True)
    options = asyncio.run(get_payment_options())
    assert options["bank_transfer_enabled"] is True
    assert options["d17_payment_enabled"] is True
    assert options["bank_transfer_rib_details"]["bic"] == "BIATTNTT"

    update(bank_transfer_enabled=False)
    options = asyncio.run(get_payment_options())
    assert options["bank_transfer_rib_details"] is None


def test_sanitize_rib():
    assert sanitize_rib(VALID_RIB) == {
        "account_holder": "Plany SARL",
        "bank_name": "BIAT",
        "bank_address": None,
        "iban": "TN5910006035183598478831",
        "bic": "BIATTNTT",
        "account_number": "100060351835",
    }


@pytest.mark.parametrize("iban,valid", [
    ("TN5910006035183598478831", True),
    ("GB82WEST12345698765432", True),
    ("TN5910006035183598478832", False),
    ("TN59", False),
    ("", False),
])
def test_iban_checksum(iban, valid):
    assert is_valid_iban(iban) is valid


def test_rib_errors_list_every_problem():
    errors = rib_errors({"account_holder": "", "bank_name": "", "iban": "x", "bic": "y", "account_number": "123"})
    assert len(errors) == 5
