import asyncio

import pytest

from app.config.database import Collections, db_config
from scripts import repair_commission_state


@pytest.fixture(autouse=True)
def offline(monkeypatch):
    async def noop():
        return None

    monkeypatch.setattr(db_config, "connect_db", noop)
    monkeypatch.setattr(db_config, "close_db", noop)


@pytest.fixture
def half_finished(seed, fake_db):
    """One block that never reached the agency, one unblock that never reached the cars"""
    blocked = seed.agency("Bloquee")
    on_sale = seed.car(blocked)
    suspended = seed.car(blocked, available=False)
    fake_db[Collections.COMMISSION_STATE].insert(
        {"agency_id": blocked, "blocked": True, "disabled_cars": [on_sale, suspended]}
    )

    released = seed.agency("Liberee", blacklisted=True)
    forgotten = seed.car(released, available=False)
    fake_db[Collections.COMMISSION_STATE].insert(
        {"agency_id": released, "blocked": False, "disabled_cars": [forgotten]}
    )
    return {"blocked": blocked, "on_sale": on_sale, "released": released, "forgotten": forgotten}


def agencies(seed):
    return {doc["name"]: doc["blacklisted"] for doc in seed.collection(Collections.AGENCIES)}


def cars(seed):
    return {str(doc["_id"]): doc["available"] for doc in seed.collection(Collections.CARS)}


def test_apply_realigns_agencies_and_cars(seed, half_finished, capsys):
    asyncio.run(repair_commission_state.main(dry_run=False))

    assert agencies(seed) == {"Bloquee": True, "Liberee": False}
    assert cars(seed)[half_finished["on_sale"]] is False
    assert cars(seed)[half_finished["forgotten"]] is True
    states = {doc["agency_id"]: doc for doc in seed.collection(Collections.COMMISSION_STATE)}
    assert states[half_finished["released"]]["disabled_cars"] == []
    assert states[half_finished["blocked"]]["disabled_cars"] != []
    assert "Repaired 4 issue(s)" in capsys.readouterr().out

    asyncio.run(repair_commission_state.main(dry_run=False))
    assert "Nothing to repair" in capsys.readouterr().out


def test_dry_run_changes_nothing(seed, half_finished, capsys):
    before_agencies, before_cars = agencies(seed), cars(seed)

    asyncio.run(repair_commission_state.main())

    assert agencies(seed) == before_agencies
    assert cars(seed) == before_cars
    assert "nothing changed" in capsys.readouterr().out
