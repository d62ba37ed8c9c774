"""
In-memory stand-in for the supabase-py client.

Implements the query-builder calls the service makes (select/insert/update/
delete/upsert with eq, neq, lt, lte, gt, gte, in_, is_, order, limit) over
plain dict rows, plus auth.get_user for bearer tokens.
"""

import copy
import uuid
from datetime import datetime
from types import SimpleNamespace

from postgrest.exceptions import APIError

from wingside.core.clock import parse_ts


class FakeResponse:
    def __init__(self, data):
        self.data = data


def _comparable(value):
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and "T" in value and ":" in value:
        try:
            return parse_ts(value)
        except ValueError:
            return value
    return value


def _compare(a, b, op):
    if a is None or b is None:
        return False
    a, b = _comparable(a), _comparable(b)
    try:
        if op == "lt":
            return a < b
        if op == "lte":
            return a <= b
        if op == "gt":
            return a > b
        return a >= b
    except TypeError:
        return False


class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.action = "select"
        self.payload = None
        self.filters = []
        self.ordering = []
        self.row_limit = None

    # actions
    def select(self, *columns, **kwargs):
        self.action = "select"
        return self

    def insert(self, values):
        self.action = "insert"
        self.payload = values
        return self

    def upsert(self, values, on_conflict=None):
        self.action = "upsert"
        self.payload = values
        self.on_conflict = on_conflict or "id"
        return self

    def update(self, values):
        self.action = "update"
        self.payload = values
        return self

    def delete(self):
        self.action = "delete"
        return self

    # filters
    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self.filters.append(lambda row: row.get(column) != value)
        return self

    def lt(self, column, value):
        self.filters.append(lambda row: _compare(row.get(column), value, "lt"))
        return self

    def lte(self, column, value):
        self.filters.append(lambda row: _compare(row.get(column), value, "lte"))
        return self

    def gt(self, column, value):
        self.filters.append(lambda row: _compare(row.get(column), value, "gt"))
        return self

    def gte(self, column, value):
        self.filters.append(lambda row: _compare(row.get(column), value, "gte"))
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def is_(self, column, value):
        if value in (None, "null"):
            self.filters.append(lambda row: row.get(column) is None)
        else:
            self.filters.append(lambda row: row.get(column) == value)
        return self

    def order(self, column, desc=False):
        self.ordering.append((column, desc))
        return self

    def limit(self, count):
        self.row_limit = count
        return self

    # execution
    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def execute(self):
        self.db.calls.append((self.table, self.action))
        if (self.table, self.action) in self.db.fail_on:
            raise APIError({"message": f"forced failure on {self.table}.{self.action}", "code": "XX000"})

        rows = self.db.tables.setdefault(self.table, [])

        if self.action == "select":
            result = [row for row in rows if self._matches(row)]
            for column, desc in reversed(self.ordering):
                result.sort(key=lambda r: (r.get(column) is None, _comparable(r.get(column))), reverse=desc)
            if self.row_limit is not None:
                result = result[: self.row_limit]
            return FakeResponse(copy.deepcopy(result))

        if self.action in ("insert", "upsert"):
            values = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = []
            for value in values:
                row = copy.deepcopy(value)
                if self.action == "upsert":
                    key = self.on_conflict
                    existing = next((r for r in rows if r.get(key) == row.get(key)), None)
                    if existing is not None:
                        existing.update(row)
                        inserted.append(copy.deepcopy(existing))
                        continue
                row.setdefault("id", str(uuid.uuid4()))
                self.db.check_unique(self.table, row)
                rows.append(row)
                inserted.append(copy.deepcopy(row))
            return FakeResponse(inserted)

        if self.action == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(copy.deepcopy(self.payload))
                    updated.append(copy.deepcopy(row))
            return FakeResponse(updated)

        if self.action == "delete":
            deleted = [row for row in rows if self._matches(row)]
            self.db.tables[self.table] = [row for row in rows if not self._matches(row)]
            return FakeResponse(copy.deepcopy(deleted))

        raise ValueError(f"Unsupported action {self.action}")


class FakeAuth:
    def __init__(self, db):
        self.db = db

    def get_user(self, token):
        user = self.db.tokens.get(token)
        if user is None:
            raise APIError({"message": "invalid JWT", "code": "401"})
        return SimpleNamespace(user=SimpleNamespace(id=user["id"], email=user.get("email")))


class FakeSupabase:
    UNIQUE = {
        "webhook_events": [("provider", "event_id")],
        "promo_codes": [("code",)],
        "gift_cards": [("code",)],
        "orders": [("order_number",)],
    }

    def __init__(self):
        self.tables = {}
        self.tokens = {}
        self.fail_on = set()
        self.calls = []
        self.auth = FakeAuth(self)

    def table(self, name):
        return FakeQuery(self, name)

    def check_unique(self, table, row):
        for columns in self.UNIQUE.get(table, []):
            key = tuple(row.get(c) for c in columns)
            if any(tuple(r.get(c) for c in columns) == key for r in self.tables.get(table, [])):
                raise APIError({"message": "duplicate key value violates unique constraint", "code": "23505"})

    # helpers for tests
    def seed(self, table, *rows):
        stored = []
        for row in rows:
            row = dict(row)
            row.setdefault("id", str(uuid.uuid4()))
            self.tables.setdefault(table, []).append(row)
            stored.append(row)
        return stored[0] if len(stored) == 1 else stored

    def rows(self, table, **match):
        return [r for r in self.tables.get(table, []) if all(r.get(k) == v for k, v in match.items())]

    def one(self, table, **match):
        found = self.rows(table, **match)
        assert len(found) == 1, f"expected one {table} row matching {match}, found {len(found)}"
        return found[0]

    def add_user(self, token, role="customer", **profile):
        """Register a bearer token and its profile row"""
        profile = {"role": role, "total_points": 0, "email": f"{role}-{token}@example.com", **profile}
        row = self.seed("profiles", profile)
        self.tokens[token] = {"id": row["id"], "email": row["email"]}
        return row
