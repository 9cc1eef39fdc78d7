import copy
import os
import uuid

import pytest

os.environ.setdefault("FLASK_ENV", "test")

from interactive_video import create_app, runtime  # noqa: E402


class FakeIncrement:
    def __init__(self, value):
        self.value = value


class FakeFirestoreModule:
    """Stands in for firebase_admin.firestore inside services and repos."""

    Increment = FakeIncrement

    class Query:
        ASCENDING = "ASCENDING"
        DESCENDING = "DESCENDING"

    @staticmethod
    def transactional(func):
        def wrapper(transaction, *args, **kwargs):
            return func(transaction, *args, **kwargs)

        return wrapper


def _apply_updates(existing, updates):
    result = copy.deepcopy(existing)
    for key, value in updates.items():
        if isinstance(value, FakeIncrement):
            result[key] = (result.get(key) or 0) + value.value
        else:
            result[key] = copy.deepcopy(value)
    return result


def _matches(data, field, op, value):
    if field not in data:
        return False
    current = data[field]
    if op == "==":
        return current == value
    if op == "in":
        return current in value
    if op == "array_contains":
        return isinstance(current, list) and value in current
    if current is None:
        return False
    if op == ">=":
        return current >= value
    if op == "<=":
        return current <= value
    raise ValueError(f"Unsupported operator in fake query: {op}")


class FakeSnapshot:
    def __init__(self, reference, data):
        self.reference = reference
        self.id = reference.id
        self.exists = data is not None
        self._data = copy.deepcopy(data)

    def to_dict(self):
        return copy.deepcopy(self._data)


class FakeDocumentRef:
    def __init__(self, db, collection_name, doc_id):
        self._db = db
        self._collection_name = collection_name
        self.id = doc_id

    def _docs(self):
        return self._db.store.setdefault(self._collection_name, {})

    def get(self, transaction=None):
        return FakeSnapshot(self, self._docs().get(self.id))

    def set(self, data, merge=False):
        docs = self._docs()
        base = docs.get(self.id, {}) if merge else {}
        docs[self.id] = _apply_updates(base, data)

    def update(self, updates):
        docs = self._docs()
        if self.id not in docs:
            raise ValueError(f"No document to update: {self._collection_name}/{self.id}")
        docs[self.id] = _apply_updates(docs[self.id], updates)

    def delete(self):
        self._docs().pop(self.id, None)


class _AggregateValue:
    def __init__(self, value):
        self.value = value


class _FakeAggregation:
    def __init__(self, value):
        self._value = value

    def get(self):
        return [[_AggregateValue(self._value)]]


class FakeQuery:
    """Positional-only where(), like older SDKs, so apply_where takes its fallback path."""

    def __init__(self, db, collection_name, filters=(), order=None, limit_value=None):
        self._db = db
        self._collection_name = collection_name
        self._filters = tuple(filters)
        self._order = order
        self._limit = limit_value

    def where(self, *args, **kwargs):
        if "filter" in kwargs:
            raise TypeError("filter keyword unsupported")
        return FakeQuery(self._db, self._collection_name, self._filters + (tuple(args),), self._order, self._limit)

    def order_by(self, field, direction="ASCENDING"):
        return FakeQuery(self._db, self._collection_name, self._filters, (field, direction), self._limit)

    def limit(self, count):
        return FakeQuery(self._db, self._collection_name, self._filters, self._order, count)

    def stream(self):
        docs = self._db.store.get(self._collection_name, {})
        rows = [
            (doc_id, data)
            for doc_id, data in list(docs.items())
            if all(_matches(data, *condition) for condition in self._filters)
        ]
        if self._order:
            field, direction = self._order
            rows.sort(key=lambda row: row[1].get(field) or 0, reverse=direction == "DESCENDING")
        if self._limit is not None:
            rows = rows[:self._limit]
        return iter([FakeSnapshot(FakeDocumentRef(self._db, self._collection_name, doc_id), data) for doc_id, data in rows])

    def count(self):
        return _FakeAggregation(len(list(self.stream())))


class FakeCollection(FakeQuery):
    def document(self, doc_id=None):
        return FakeDocumentRef(self._db, self._collection_name, doc_id or uuid.uuid4().hex[:20])

    def add(self, payload):
        ref = self.document()
        ref.set(payload)
        return None, ref


class FakeTransaction:
    def set(self, ref, data, merge=False):
        ref.set(data, merge=merge)

    def update(self, ref, updates):
        ref.update(updates)

    def delete(self, ref):
        ref.delete()


class FakeFirestore:
    def __init__(self):
        self.store = {}

    def collection(self, name):
        return FakeCollection(self, name)

    def transaction(self):
        return FakeTransaction()

    def seed(self, collection_name, doc_id, data):
        self.collection(collection_name).document(doc_id).set(data)
        return doc_id

    def docs(self, collection_name):
        return copy.deepcopy(self.store.get(collection_name, {}))


@pytest.fixture()
def fake_db(monkeypatch):
    db = FakeFirestore()
    monkeypatch.setattr(runtime, "db", db)
    monkeypatch.setattr(runtime, "firestore", FakeFirestoreModule)
    return db


@pytest.fixture()
def app(fake_db, monkeypatch):
    monkeypatch.setattr(runtime, "SENTRY_BACKEND_DSN", "")
    monkeypatch.setattr(runtime, "RATE_LIMIT_EVENTS", {})
    monkeypatch.setattr(runtime, "SMTP_HOST", "")
    flask_app = create_app()
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture()
def client(app):
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture()
def login(monkeypatch):
    def _login(uid="creator-1", email="creator@example.com", admin=False):
        monkeypatch.setattr(runtime, "verify_firebase_token", lambda _request: {"uid": uid, "email": email})
        monkeypatch.setattr(runtime, "is_admin_user", lambda _decoded: admin)

    return _login


@pytest.fixture()
def no_rate_limit(monkeypatch):
    monkeypatch.setattr(runtime, "check_rate_limit", lambda **_kwargs: (True, 0))
