from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from app.config.database import Collections
from app.config.settings import settings
from app.main import app
from app.services import commission_reminders
from app.utils.auth import create_access_token

client = TestClient(app)


@pytest.fixture(autouse=True)
def commission_rules(monkeypatch):
    monkeypatch.setattr(settings, "COMMISSION_EFFECTIVE_DATE", datetime(2025, 1, 1))
    monkeypatch.setattr(settings, "COMMISSION_MONTHLY_THRESHOLD", 50)


@pytest.fixture
def admin_headers(seed):
    admin_id = seed.admin()
    token = create_access_token({"sub": admin_id, "role": "admin"})
    return {"Authorization": f"Bearer {token}"}


def agency_headers(agency_id):
    token = create_access_token({"sub": agency_id, "role": "agency"})
    return {"Authorization": f"Bearer {token}"}


def test_health():
    assert client.get("/health").json() == {"status": "healthy"}


def test_listing_requires_token():
    response = client.post("/api/admin/commissions", json={"month": 3, "year": 2025})
    assert response.status_code in (401, 403)


def test_bad_token_is_rejected():
    response = client.post(
        "/api/admin/commissions",
        json={"month": 3, "year": 2025},
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert response.status_code == 401


def test_agency_cannot_use_admin_routes(seed):
    agency = seed.agency()
    response = client.post(
        "/api/admin/commissions/block",
        json={"agency_id": agency, "month": 3, "year": 2025, "block": True},
        headers=agency_headers(agency),
    )
    assert response.status_code == 403
    assert seed.collection(Collections.COMMISSION_EVENTS) == []


def test_inactive_admin_is_forbidden(seed):
    admin_id = seed.admin(is_active=False)
    token = create_access_token({"sub": admin_id, "role": "admin"})
    response = client.get("/api/admin/commission-settings", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 403


def test_listing(seed, admin_headers):
    agency = seed.agency("Agence Sahel")
    seed.booking(agency, datetime(2025, 3, 2), 100)
    seed.booking(agency, datetime(2025, 3, 9), 150)
    seed.payment(agency, 3, 2025, 120)

    response = client.post(
        "/api/admin/commissions?page=1&size=10",
        json={"month": 3, "year": 2025, "search": "sahel", "status": "all"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["agencies"][0]["balance"] == 130
    assert body["agencies"][0]["agency"]["id"] == agency


def test_listing_without_month_is_400(admin_headers):
    response = client.post("/api/admin/commissions", json={"year": 2025}, headers=admin_headers)
    assert response.status_code == 400


def test_agency_detail_not_found(admin_headers):
    response = client.get(
        "/api/admin/commissions/agencies/64b000000000000000000000?year=2025&month=3",
        headers=admin_headers,
    )
    assert response.status_code == 404


def test_record_payment(seed, admin_headers):
    agency = seed.agency()

    created = client.post(
        "/api/admin/commissions/payments",
        json={"agency_id": agency, "month": 3, "year": 2025, "amount": 75.5, "reference": "VIR-01"},
        headers=admin_headers,
    )
    rejected = client.post(
        "/api/admin/commissions/payments",
        json={"agency_id": agency, "month": 3, "year": 2025, "amount": 0},
        headers=admin_headers,
    )

    assert created.status_code == 201
    assert created.json()["amount"] == 75.5
    assert created.json()["reference"] == "VIR-01"
    assert rejected.status_code == 400
    assert len(seed.collection(Collections.COMMISSION_EVENTS)) == 1


def test_failed_reminder_is_400_but_logged(seed, admin_headers, monkeypatch):
    agency = seed.agency()

    async def broken_mail(to, subject, html):
        raise RuntimeError("smtp down")

    monkeypatch.setattr(commission_reminders, "send_mail", broken_mail)

    response = client.post(
        "/api/admin/commissions/reminders",
        json={"agency_id": agency, "month": 3, "year": 2025, "channel": "email", "message": "Bonjour"},
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert response.json()["detail"]["errors"] == ["email: smtp down"]
    events = seed.collection(Collections.COMMISSION_EVENTS)
    assert len(events) == 1
    assert events[0]["success"] is False
    assert str(events[0]["_id"]) == response.json()["detail"]["event_id"]


def test_block_and_note(seed, admin_headers):
    agency = seed.agency()
    seed.car(agency)

    blocked = client.post(
        "/api/admin/commissions/block",
        json={"agency_id": agency, "month": 3, "year": 2025, "block": True},
        headers=admin_headers,
    )
    note = client.post(
        "/api/admin/commissions/notes",
        json={"agency_id": agency, "month": 3, "year": 2025, "note": "Relance téléphonique"},
        headers=admin_headers,
    )
    empty_note = client.post(
        "/api/admin/commissions/notes",
        json={"agency_id": agency, "month": 3, "year": 2025, "note": "  "},
        headers=admin_headers,
    )

    assert blocked.status_code == 200
    assert blocked.json()["state"]["blocked"] is True
    assert note.status_code == 201
    assert empty_note.status_code == 400


def test_settings_routes(admin_headers):
    current = client.get("/api/admin/commission-settings", headers=admin_headers)
    empty = client.put("/api/admin/commission-settings", json={}, headers=admin_headers)
    disabled = client.put(
        "/api/admin/commission-settings",
        json={"bank_transfer_enabled": False, "reminder_channel": "sms"},
        headers=admin_headers,
    )

    assert current.status_code == 200
    assert current.json()["reminder_channel"] == "email"
    assert empty.status_code == 400
    assert disabled.status_code == 200
    assert disabled.json()["reminder_channel"] == "sms"
    assert disabled.json()["updated_by"]["name"] == "Admin Plany"


def test_agency_reads_own_ledger_only(seed):
    mine = seed.agency("Mine")
    other = seed.agency("Other")
    seed.booking(mine, datetime(2025, 3, 2), 40)

    own = client.get(f"/api/agency-commissions/{mine}?year=2025&month=3", headers=agency_headers(mine))
    foreign = client.get(f"/api/agency-commissions/{other}?year=2025&month=3", headers=agency_headers(mine))

    assert own.status_code == 200
    assert own.json()["summary"]["commission_due"] == 40.0
    assert own.json()["bookings"][0]["payment_status"] == "unpaid"
    assert foreign.status_code == 403


def test_admin_reads_any_agency_ledger(seed, admin_headers):
    agency = seed.agency()
    response = client.get(f"/api/agency-commissions/{agency}?year=2025&month=3", headers=admin_headers)
    assert response.status_code == 200


def test_payment_options_for_agency(seed):
    agency = seed.agency()
    response = client.get("/api/agency-commissions/payment-options", headers=agency_headers(agency))
    assert response.status_code == 200
    assert response.json() == {
        "bank_transfer_enabled": True,
        "card_payment_enabled": False,
        "d17_payment_enabled": False,
        "bank_transfer_rib_details": None,
    }
