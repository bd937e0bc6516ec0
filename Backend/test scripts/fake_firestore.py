"""
In-memory stand-in for the slice of the Firestore client the backend uses:
collections and sub-collections, documents, where/order_by/limit queries,
batches and transactions, plus the SERVER_TIMESTAMP and Increment transforms.

Transactions buffer their writes and apply them on commit, so a transaction
that raises leaves the store untouched. Set `db.commit_error` to an exception
to make the next batch or transaction commit fail.
"""

import copy
import uuid
from datetime import datetime, timezone

from firebase_admin import firestore
from google.api_core.exceptions import NotFound

_OPS = {
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "<": lambda a, b: a is not None and a < b,
    "<=": lambda a, b: a is not None and a <= b,
    ">": lambda a, b: a is not None and a > b,
    ">=": lambda a, b: a is not None and a >= b,
    "in": lambda a, b: a in b,
    "array_contains": lambda a, b: isinstance(a, list) and b in a,
}


def _resolve(value, current):
    if value is firestore.SERVER_TIMESTAMP:
        return datetime.now(timezone.utc)
    if isinstance(value, firestore.Increment):
        return (current or 0) + value.value
    return copy.deepcopy(value)


class FakeSnapshot:
    def __init__(self, reference, data):
        self.reference = reference
        self.id = reference.id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None

    def get(self, field):
        return (self._data or {}).get(field)


class FakeDocumentRef:
    def __init__(self, db, path):
        self._db = db
        self.path = path
        self.id = path[-1]

    def collection(self, name):
        return FakeCollection(self._db, self.path + (name,))

    def get(self, transaction=None):
        return FakeSnapshot(self, self._db._docs.get(self.path))

    def set(self, data, merge=False):
        self._db._apply_set(self.path, data, merge)

    def update(self, data):
        self._db._apply_update(self.path, data)

    def delete(self):
        self._db._docs.pop(self.path, None)


class FakeQuery:
    def __init__(self, db, path, filters=(), orders=(), limit_to=None):
        self._db = db
        self._path = path
        self._filters = tuple(filters)
        self._orders = tuple(orders)
        self._limit = limit_to

    def where(self, field, op, value):
        return FakeQuery(self._db, self._path, self._filters + ((field, op, value),), self._orders, self._limit)

    def order_by(self, field, direction="ASCENDING"):
        return FakeQuery(self._db, self._path, self._filters, self._orders + ((field, direction),), self._limit)

    def limit(self, count):
        return FakeQuery(self._db, self._path, self._filters, self._orders, count)

    def stream(self, transaction=None):
        rows = [
            (path, data) for path, data in self._db._docs.items()
            if len(path) == len(self._path) + 1 and path[:-1] == self._path
        ]
        for field, op, value in self._filters:
            rows = [(p, d) for p, d in rows if field in d and _OPS[op](d[field], value)]
        for field, direction in reversed(self._orders):
            # documents without the ordered field are left out, as in Firestore
            rows = [(p, d) for p, d in rows if field in d and d[field] is not None]
            rows.sort(key=lambda row: row[1][field], reverse=direction == "DESCENDING")
        if self._limit is not None:
            rows = rows[:self._limit]
        return iter([FakeSnapshot(FakeDocumentRef(self._db, p), d) for p, d in rows])

    def get(self, transaction=None):
        return list(self.stream())


class FakeCollection(FakeQuery):
    def __init__(self, db, path):
        super().__init__(db, path)
        self.id = path[-1]

    def document(self, doc_id=None):
        return FakeDocumentRef(self._db, self._path + (doc_id or uuid.uuid4().hex[:20],))

    def add(self, data):
        ref = self.document()
        ref.set(data)
        return None, ref


class FakeWriteBatch:
    def __init__(self, db):
        self._db = db
        self._ops = []

    def set(self, ref, data, merge=False):
        self._ops.append(("set", ref.path, data, merge))

    def update(self, ref, data):
        self._ops.append(("update", ref.path, data, None))

    def delete(self, ref):
        self._ops.append(("delete", ref.path, None, None))

    def commit(self):
        self._db._raise_commit_error()
        for op, path, data, merge in self._ops:
            if op == "set":
                self._db._apply_set(path, data, merge)
            elif op == "update":
                self._db._apply_update(path, data)
            else:
                self._db._docs.pop(path, None)
        self._ops = []


class FakeTransaction(FakeWriteBatch):
    pass


def fake_transactional(fn):
    """Replacement for firestore.transactional: run once, commit on success."""
    def run(transaction, *args, **kwargs):
        result = fn(transaction, *args, **kwargs)
        transaction.commit()
        return result
    return run


class FakeFirestore:
    def __init__(self):
        self._docs = {}
        self.commit_error = None

    def collection(self, name):
        return FakeCollection(self, (name,))

    def batch(self):
        return FakeWriteBatch(self)

    def transaction(self):
        return FakeTransaction(self)

    # -------------------- helpers for tests --------------------

    def seed(self, collection_path, doc_id, data):
        """seed("users/u1/progress", "quiz-1", {...})"""
        self._docs[tuple(collection_path.split("/")) + (doc_id,)] = copy.deepcopy(data)

    def doc(self, doc_path):
        data = self._docs.get(tuple(doc_path.split("/")))
        return copy.deepcopy(data) if data is not None else None

    def docs_under(self, collection_path):
        prefix = tuple(collection_path.split("/"))
        return {
            path[-1]: copy.deepcopy(data) for path, data in self._docs.items()
            if len(path) == len(prefix) + 1 and path[:-1] == prefix
        }

    # -------------------- write application --------------------

    def _raise_commit_error(self):
        if self.commit_error is not None:
            err, self.commit_error = self.commit_error, None
            raise err

    def _apply_set(self, path, data, merge):
        current = dict(self._docs.get(path) or {}) if merge else {}
        for key, value in data.items():
            current[key] = _resolve(value, current.get(key))
        self._docs[path] = current

    def _apply_update(self, path, data):
        if path not in self._docs:
            raise NotFound(f"No document to update: {'/'.join(path)}")
        current = dict(self._docs[path])
        for key, value in data.items():
            current[key] = _resolve(value, current.get(key))
        self._docs[path] = current
