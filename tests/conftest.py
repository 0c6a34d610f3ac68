"""
Shared fixtures: an in-memory stand-in for the Motor database and helpers
to seed agencies, cars, bookings and admins.
"""
import copy
from datetime import datetime
from types import SimpleNamespace

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from app.config.database import db_config, Collections


def _compare(value, op, expected):
    if op == "$in":
        if isinstance(value, list):
            return any(v in expected for v in value)
        return value in expected
    if op == "$nin":
        return value not in expected
    if op == "$ne":
        return value != expected
    if op == "$exists":
        return (value is not None) == bool(expected)
    if value is None:
        return False
    if op == "$gte":
        return value >= expected
    if op == "$gt":
        return value > expected
    if op == "$lte":
        return value <= expected
    if op == "$lt":
        return value < expected
    raise NotImplementedError(op)


def matches(doc, query):
    for key, condition in (query or {}).items():
        value = doc.get(key)
        if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
            if not all(_compare(value, op, expected) for op, expected in condition.items()):
                return False
        elif isinstance(value, list) and not isinstance(condition, list):
            if condition not in value:
                return False
        elif value != condition:
            return False
    return True


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs
        self._limit = 0

    def sort(self, keys, direction=None):
        if isinstance(keys, str):
            keys = [(keys, direction or 1)]
        for field, order in reversed(list(keys)):
            self._docs.sort(
                key=lambda d: (d.get(field) is not None, d.get(field) if d.get(field) is not None else 0),
                reverse=order < 0,
            )
        return self

    def limit(self, count):
        self._limit = count
        return self

    def _result(self):
        return self._docs[: self._limit] if self._limit else list(self._docs)

    async def to_list(self, length=None):
        docs = self._result()
        return docs[:length] if length else docs

    def __aiter__(self):
        self._iter = iter(self._result())
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    def __init__(self, name):
        self.name = name
        self.docs = []
        self.unique_keys = []

    # Sync helper for tests
    def insert(self, doc):
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", ObjectId())
        self.docs.append(doc)
        return doc

    def _check_unique(self, doc):
        for key in self.unique_keys:
            if any(existing.get(key) == doc.get(key) for existing in self.docs):
                raise DuplicateKeyError(f"duplicate {key}")

    def find(self, query=None, *args, **kwargs):
        return FakeCursor([copy.deepcopy(d) for d in self.docs if matches(d, query)])

    async def find_one(self, query=None, *args, **kwargs):
        for doc in self.docs:
            if matches(doc, query):
                return copy.deepcopy(doc)
        return None

    async def insert_one(self, document):
        self._check_unique(document)
        document.setdefault("_id", ObjectId())
        self.docs.append(copy.deepcopy(document))
        return SimpleNamespace(inserted_id=document["_id"])

    def _apply(self, doc, update):
        for key, value in update.get("$set", {}).items():
            doc[key] = copy.deepcopy(value)

    async def find_one_and_update(self, query, update, return_document=False, **kwargs):
        for doc in self.docs:
            if matches(doc, query):
                before = copy.deepcopy(doc)
                self._apply(doc, update)
                return copy.deepcopy(doc) if return_document else before
        return None

    async def update_one(self, query, update, **kwargs):
        for doc in self.docs:
            if matches(doc, query):
                self._apply(doc, update)
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def update_many(self, query, update, **kwargs):
        matched = [doc for doc in self.docs if matches(doc, query)]
        for doc in matched:
            self._apply(doc, update)
        return SimpleNamespace(matched_count=len(matched), modified_count=len(matched))

    async def count_documents(self, query=None):
        return sum(1 for d in self.docs if matches(d, query))

    async def create_index(self, keys, unique=False, **kwargs):
        if unique and isinstance(keys, str):
            self.unique_keys.append(keys)
        return keys


class FakeDatabase:
    def __init__(self):
        self._collections = {}

    def __getitem__(self, name):
        if name not in self._collections:
            self._collections[name] = FakeCollection(name)
            if name == Collections.COMMISSION_STATE:
                self._collections[name].unique_keys.append("agency_id")
        return self._collections[name]


class Seeder:
    """Synchronous helpers that write straight into the fake collections"""

    def __init__(self, database):
        self.db = database

    def admin(self, name="Admin Plany", email="admin@plany.tn", **fields):
        doc = self.db[Collections.ADMINS].insert({"name": name, "email": email, "is_active": True, **fields})
        return str(doc["_id"])

    def agency(self, name="Agence Test", **fields):
        doc = {
            "name": name,
            "email": "contact@agence.tn",
            "phone": "22 123 456",
            "city": "Tunis",
            "slug": name.lower().replace(" ", "-"),
            "language": "fr",
            "blacklisted": False,
        }
        doc.update(fields)
        return str(self.db[Collections.AGENCIES].insert(doc)["_id"])

    def car(self, agency_id, available=True, **fields):
        doc = self.db[Collections.CARS].insert({"agency_id": agency_id, "available": available, **fields})
        return str(doc["_id"])

    def booking(self, agency_id, from_date, commission_total, price=None, status="paid", **fields):
        doc = {
            "agency_id": agency_id,
            "from_date": from_date,
            "to_date": fields.pop("to_date", from_date),
            "price": price if price is not None else commission_total * 10,
            "commission_total": commission_total,
            "status": status,
        }
        doc.update(fields)
        return str(self.db[Collections.BOOKINGS].insert(doc)["_id"])

    def payment(self, agency_id, month, year, amount, created_at=None, **fields):
        doc = {
            "agency_id": agency_id,
            "month": month,
            "year": year,
            "type": "payment",
            "admin_id": "seed",
            "amount": amount,
            "created_at": created_at or datetime(year, month, 20),
        }
        doc.update(fields)
        return self.db[Collections.COMMISSION_EVENTS].insert(doc)

    def collection(self, name):
        return self.db[name].docs


@pytest.fixture(autouse=True)
def fake_db():
    previous = db_config.database
    database = FakeDatabase()
    db_config.database = database
    yield database
    db_config.database = previous


@pytest.fixture
def seed(fake_db):
    return Seeder(fake_db)
