"""Shared fixtures: an in-memory Firestore and sample data."""

import itertools
from datetime import datetime, timedelta, timezone

import pytest
from google.api_core import exceptions as gcp_exceptions

from parcel_tracker.database import DatabaseManager
from parcel_tracker.firestore_db import FirestoreManager
from parcel_tracker.schemas import Parcel, ParcelCreate

_OPS = {
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    ">=": lambda a, b: a is not None and a >= b,
    "<=": lambda a, b: a is not None and a <= b,
    ">": lambda a, b: a is not None and a > b,
    "<": lambda a, b: a is not None and a < b,
}


class FakeSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class FakeDocument:
    def __init__(self, collection, doc_id):
        self.collection = collection
        self.id = doc_id

    def get(self):
        return FakeSnapshot(self.id, self.collection.docs.get(self.id))

    def set(self, data):
        self.collection.docs[self.id] = dict(data)

    def update(self, data):
        if self.id not in self.collection.docs:
            raise gcp_exceptions.NotFound(f"No document to update: {self.id}")
        self.collection.docs[self.id].update(data)

    def delete(self):
        self.collection.docs.pop(self.id, None)


class FakeQuery:
    def __init__(self, collection, filters=(), order=None, limit=None):
        self.collection = collection
        self.filters = list(filters)
        self.order = order
        self._limit = limit

    def where(self, filter):
        return FakeQuery(
            self.collection,
            self.filters + [(filter.field_path, filter.op_string, filter.value)],
            self.order,
            self._limit,
        )

    def order_by(self, field, direction="ASCENDING"):
        return FakeQuery(self.collection, self.filters, (field, direction), self._limit)

    def limit(self, count):
        return FakeQuery(self.collection, self.filters, self.order, count)

    def stream(self):
        client = self.collection.client
        if client.missing_index and self.order and self.filters:
            if any(field != self.order[0] for field, _, _ in self.filters):
                raise gcp_exceptions.FailedPrecondition("The query requires an index.")

        items = list(self.collection.docs.items())
        for field, op, value in self.filters:
            items = [(i, d) for i, d in items if _OPS[op](d.get(field), value)]
        if self.order:
            field, direction = self.order
            items.sort(key=lambda item: item[1].get(field), reverse=direction == "DESCENDING")
        if self._limit is not None:
            items = items[:self._limit]
        return iter([FakeSnapshot(i, dict(d)) for i, d in items])

    def on_snapshot(self, callback):
        self.collection.client.listeners.append((self, callback))
        callback(list(self.stream()), [], None)
        return FakeWatch(self.collection.client, callback)


class FakeWatch:
    def __init__(self, client, callback):
        self.client = client
        self.callback = callback
        self.unsubscribed = False

    def unsubscribe(self):
        self.unsubscribed = True
        self.client.listeners = [l for l in self.client.listeners if l[1] is not self.callback]


class FakeCollection(FakeQuery):
    def __init__(self, client, name):
        self.client = client
        self.name = name
        self.docs = {}
        super().__init__(self)

    def document(self, doc_id=None):
        return FakeDocument(self, doc_id or self.client.new_id())

    def add(self, data):
        ref = self.document()
        ref.set(data)
        return datetime.now(timezone.utc), ref


class FakeBatch:
    def __init__(self, client):
        self.client = client
        self.operations = []

    def set(self, ref, data):
        self.operations.append(lambda: ref.set(data))

    def update(self, ref, data):
        self.operations.append(lambda: ref.update(data))

    def delete(self, ref):
        self.operations.append(ref.delete)

    def commit(self):
        if len(self.operations) > 500:
            raise gcp_exceptions.InvalidArgument("maximum 500 writes allowed per request")
        for operation in self.operations:
            operation()
        self.client.commits.append(len(self.operations))


class FakeFirestore:
    """Small in-memory stand-in for ``google.cloud.firestore.Client``."""

    def __init__(self, missing_index=False):
        self.missing_index = missing_index
        self.collections = {}
        self.commits = []
        self.listeners = []
        self._ids = itertools.count(1)

    def new_id(self):
        return f"doc{next(self._ids):04d}"

    def collection(self, name):
        if name not in self.collections:
            self.collections[name] = FakeCollection(self, name)
        return self.collections[name]

    def batch(self):
        return FakeBatch(self)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def fake_client():
    return FakeFirestore()


@pytest.fixture
def store(fake_client):
    return FirestoreManager(fake_client)


@pytest.fixture
def offline_db(tmp_path):
    db = DatabaseManager(tmp_path / "pending.db")
    db.create_tables()
    return db


def make_parcel(**overrides) -> Parcel:
    data = {
        "id": "p1",
        "lr_number": "LR100",
        "party_name": "Sharma Traders",
        "transport": "VRL Logistics",
        "state": "DELHI",
        "weight": 10.0,
        "rate": 12.0,
        "total_amount": 120.0,
        "paid_amount": 0.0,
        "status": "pending",
        "payment_mode": "cash",
        "date": "2024-03-10",
    }
    data.update(overrides)
    return Parcel(**data)


@pytest.fixture
def sample_parcels():
    base = datetime(2024, 3, 10, 9, 0, tzinfo=timezone.utc)
    return [
        make_parcel(id="p1", lr_number="LR100", date="2024-03-10", created_at=base),
        make_parcel(
            id="p2", lr_number="LR101", party_name="Gupta & Sons", state="PUNJAB",
            weight=5, rate=20, total_amount=100, paid_amount=100, status="paid",
            date="2024-03-09", created_at=base - timedelta(days=1),
        ),
        make_parcel(
            id="p3", lr_number="LR100", party_name="Sharma Traders", state="DELHI",
            weight=2, rate=50, total_amount=100, paid_amount=40, status="partial",
            payment_mode="bank", date="2024-03-08", created_at=base - timedelta(days=2),
        ),
        make_parcel(
            id="p4", lr_number="AB-77", party_name="Mehta Textiles", transport="",
            state="HARYANA", weight=20, rate=5, total_amount=100, date="2024-03-07",
            created_at=base - timedelta(days=3),
        ),
    ]


@pytest.fixture
def new_parcel():
    return ParcelCreate(
        lr_number=" LR500 ",
        party_name="Sharma Traders",
        transport="VRL Logistics",
        state="delhi",
        weight=12.5,
        rate=8,
        total_amount=0,
        paid_amount=None,
        date="2024-03-12",
    )


@pytest.fixture(autouse=True)
def ticking_clock(monkeypatch):
    """Give every write a distinct, increasing createdAt."""
    ticks = itertools.count()
    start = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)
    monkeypatch.setattr(
        "parcel_tracker.firestore_db._now", lambda: start + timedelta(seconds=next(ticks))
    )
