"""
Shared fixtures: an in-memory stand-in for the hosted backend
"""

import itertools

import pytest

from backend_client import BackendError


class FakeBackend:
    """Implements the BackendClient surface over in-memory tables"""

    def __init__(self, tables=None, functions=None):
        self.tables = {name: [dict(r) for r in rows] for name, rows in (tables or {}).items()}
        # name -> dict reply, Exception to raise, or callable(body) -> reply
        self.functions = functions or {}
        self.failing_tables = set()
        self.fail_storage = False
        self.calls = []
        self.uploads = []
        self._ids = itertools.count(1)

    @property
    def configured(self):
        return True

    def _check(self, table):
        if table in self.failing_tables:
            raise BackendError(f"{table} unavailable", status_code=500)

    def select(self, table, columns="*", eq=None, in_=None, or_=None, gte=None,
               order=None, desc=False, limit=None, offset=None):
        self.calls.append(("select", table))
        self._check(table)

        rows = list(self.tables.get(table, []))
        for column, value in (eq or {}).items():
            rows = [r for r in rows if r.get(column) == value]
        for column, values in (in_ or {}).items():
            values = list(values)
            rows = [r for r in rows if r.get(column) in values]
        if or_:
            clauses = [clause.split(".", 2) for clause in or_.split(",")]
            rows = [
                r for r in rows
                if any(str(r.get(col)) == val for col, _, val in clauses)
            ]
        for column, value in (gte or {}).items():
            rows = [r for r in rows if str(r.get(column) or "") >= str(value)]
        if order:
            rows.sort(key=lambda r: str(r.get(order) or ""), reverse=desc)
        if offset:
            rows = rows[offset:]
        if limit is not None:
            rows = rows[:limit]
        return [dict(r) for r in rows]

    def select_one(self, table, **kwargs):
        rows = self.select(table, limit=1, **kwargs)
        return rows[0] if rows else None

    def insert(self, table, rows):
        self.calls.append(("insert", table))
        self._check(table)

        rows = rows if isinstance(rows, list) else [rows]
        stored = []
        for row in rows:
            row = dict(row)
            row.setdefault("id", f"{table}-{next(self._ids)}")
            self.tables.setdefault(table, []).append(row)
            stored.append(dict(row))
        return stored

    def invoke(self, name, body=None):
        self.calls.append(("invoke", name, body))
        reply = self.functions.get(name, {})
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            reply = reply(body or {})
        return reply

    def upload_file(self, bucket, path, content, content_type=None):
        self.calls.append(("upload", bucket, path))
        if self.fail_storage:
            raise BackendError("storage unavailable", status_code=503)
        self.uploads.append((bucket, path, content, content_type))
        return path

    def invoked(self, name):
        return [call for call in self.calls if call[0] == "invoke" and call[1] == name]


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def scenario_csv():
    return "Ref fournisseur;Prix HT;Stock\nSKU1;19,99;5\n"
