from __future__ import annotations

import copy
import re
from types import SimpleNamespace

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from app.config.database import db_config
from app.config.settings import settings

def _resolve(value, parts):
    """Every value reachable through a dotted path, descending into arrays"""
    if not parts:
        return [value]
    if isinstance(value, list):
        out = []
        for item in value:
            out.extend(_resolve(item, parts))
        return out
    if isinstance(value, dict) and parts[0] in value:
        return _resolve(value[parts[0]], parts[1:])
    return []


def _equals(values, expected):
    if not values:
        return expected is None
    for value in values:
        if value == expected:
            return True
        if isinstance(value, list) and expected in value:
            return True
    return False


def _compare(values, expected, op):
    for value in values:
        candidates = value if isinstance(value, list) else [value]
        for candidate in candidates:
            if candidate is None or expected is None:
                continue
            try:
                if op(candidate, expected):
                    return True
            except TypeError:
                continue
    return False


def _match_condition(values, condition):
    if not (isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition)):
        return _equals(values, condition)
    for op, arg in condition.items():
        if op == "$in":
            if not any(_equals(values, item) for item in arg):
                return False
        elif op == "$nin":
            if any(_equals(values, item) for item in arg):
                return False
        elif op == "$ne":
            if _equals(values, arg):
                return False
        elif op == "$gt":
            if not _compare(values, arg, lambda a, b: a > b):
                return False
        elif op == "$gte":
            if not _compare(values, arg, lambda a, b: a >= b):
                return False
        elif op == "$lt":
            if not _compare(values, arg, lambda a, b: a < b):
                return False
        elif op == "$lte":
            if not _compare(values, arg, lambda a, b: a <= b):
                return False
        elif op == "$regex":
            flags = re.IGNORECASE if "i" in condition.get("$options", "") else 0
            if not any(isinstance(v, str) and re.search(arg, v, flags) for v in values):
                return False
        elif op == "$options":
            continue
        elif op == "$exists":
            if bool(values) != bool(arg):
                return False
        elif op == "$size":
            if not any(isinstance(v, list) and len(v) == arg for v in values):
                return False
        else:
            raise NotImplementedError(f"FakeCollection does not support {op}")
    return True


def matches(doc, query):
    for key, condition in (query or {}).items():
        if key == "$or":
            if not any(matches(doc, sub) for sub in condition):
                return False
        elif key == "$and":
            if not all(matches(doc, sub) for sub in condition):
                return False
        else:
            values = _resolve(doc, key.split("."))
            if not _match_condition(values, condition):
                return False
    return True


def _set_path(doc, path, value):
    parts = path.split(".")
    for part in parts[:-1]:
        doc = doc.setdefault(part, {})
    doc[parts[-1]] = value


def _get_path(doc, path, default=None):
    for part in path.split("."):
        if not isinstance(doc, dict) or part not in doc:
            return default
        doc = doc[part]
    return doc


def apply_update(doc, update):
    for op, fields in update.items():
        for path, value in fields.items():
            if op == "$set":
                _set_path(doc, path, copy.deepcopy(value))
            elif op == "$unset":
                parts = path.split(".")
                parent = _get_path(doc, ".".join(parts[:-1])) if len(parts) > 1 else doc
                if isinstance(parent, dict):
                    parent.pop(parts[-1], None)
            elif op == "$inc":
                _set_path(doc, path, _get_path(doc, path, 0) + value)
            elif op == "$push":
                items = value["$each"] if isinstance(value, dict) and "$each" in value else [value]
                current = _get_path(doc, path)
                if current is None:
                    current = []
                    _set_path(doc, path, current)
                current.extend(copy.deepcopy(items))
            elif op == "$pull":
                current = _get_path(doc, path) or []
                if isinstance(value, dict):
                    kept = [item for item in current if not (isinstance(item, dict) and matches(item, value))]
                else:
                    kept = [item for item in current if item != value]
                _set_path(doc, path, kept)
            else:
                raise NotImplementedError(f"FakeCollection does not support {op}")


def _sort_key(field):
    def key(doc):
        value = _get_path(doc, field)
        return (0, "") if value is None else (1, value)
    return key


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs
        self._skip = 0
        self._limit = 0

    def sort(self, keys):
        for field, direction in reversed(keys):
            self._docs.sort(key=_sort_key(field), reverse=direction < 0)
        return self

    def skip(self, n):
        self._skip = n
        return self

    def limit(self, n):
        self._limit = n
        return self

    async def to_list(self, length=None):
        docs = self._docs[self._skip:]
        if self._limit:
            docs = docs[:self._limit]
        return [copy.deepcopy(d) for d in docs]


class FakeCollection:
    def __init__(self, name):
        self.name = name
        self.docs = []
        self.indexes = []

    def find(self, query=None):
        return FakeCursor([d for d in self.docs if matches(d, query)])

    async def find_one(self, query=None):
        for doc in self.docs:
            if matches(doc, query):
                return copy.deepcopy(doc)
        return None

    async def insert_one(self, document):
        document.setdefault("_id", ObjectId())
        self.docs.append(copy.deepcopy(document))
        return SimpleNamespace(inserted_id=document["_id"])

    async def find_one_and_update(self, query, update, return_document=None):
        for doc in self.docs:
            if matches(doc, query):
                apply_update(doc, update)
                return copy.deepcopy(doc)
        return None

    async def update_many(self, query, update):
        hits = [d for d in self.docs if matches(d, query)]
        for doc in hits:
            apply_update(doc, update)
        return SimpleNamespace(modified_count=len(hits))

    async def delete_one(self, query):
        for i, doc in enumerate(self.docs):
            if matches(doc, query):
                del self.docs[i]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    async def delete_many(self, query):
        before = len(self.docs)
        self.docs = [d for d in self.docs if not matches(d, query)]
        return SimpleNamespace(deleted_count=before - len(self.docs))

    async def count_documents(self, query):
        return sum(1 for d in self.docs if matches(d, query))

    async def create_index(self, keys, **options):
        self.indexes.append((keys, options))
        return "_".join(f"{k}_{v}" for k, v in keys)


class FakeDatabase:
    def __init__(self):
        self.collections = {}

    def __getitem__(self, name):
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]


@pytest.fixture
def fake_db(monkeypatch):
    db = FakeDatabase()
    monkeypatch.setattr(db_config, "get_collection", lambda name: db[name])
    return db


@pytest.fixture
def dev_mode(monkeypatch):
    monkeypatch.setattr(settings, "APP_ENV", "development")
    monkeypatch.setattr(settings, "ENABLE_AUTH", False)


@pytest.fixture
def client(fake_db, dev_mode):
    from app.main import app

    # No context manager: the lifespan would connect to a real MongoDB.
    return TestClient(app)


def data(response):
    body = response.json()
    assert body["success"] is True, body
    return body["data"]


@pytest.fixture
def make_branch(client):
    def _make(code, parent=None, **extra):
        payload = {
            "code": code,
            "name": f"Branch {code}",
            "type": "BRANCH",
            "address": {"street": "Jl. Sudirman 1", "city": "Jakarta", "province": "DKI Jakarta", "postal_code": "10220"},
            "contact_info": {"phone": "+62215550100", "email": f"{code.lower()}@example.com"},
            **extra,
        }
        if parent:
            payload["parent"] = parent
        r = client.post("/api/branches/", json=payload)
        assert r.status_code == 201, r.json()
        return data(r)
    return _make


@pytest.fixture
def make_employee(client):
    def _make(employee_id="EMP001", **extra):
        payload = {
            "employee_id": employee_id,
            "first_name": "Budi",
            "last_name": "Santoso",
            "gender": "MALE",
            "date_of_birth": "1990-05-17",
            "join_date": "2020-03-01",
            **extra,
        }
        r = client.post("/api/employees/", json=payload)
        assert r.status_code == 201, r.json()
        return data(r)
    return _make
