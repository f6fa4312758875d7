"""Pytest fixtures for FarmTrack tests."""

import uuid
from datetime import datetime, timezone

import pytest

from app import create_app
from errors import RemoteConflict, RemoteNotConfigured, RemoteRejected
from identity import InMemoryIdentityProvider
from local_store import LocalStore
from repository import RecordRepository
from retry import RetryPolicy


def _matches(row, filters):
    for col, value in (filters or {}).items():
        if isinstance(value, (list, tuple, set)):
            if str(row.get(col)) not in {str(v) for v in value}:
                return False
        elif row.get(col) != value:
            return False
    return True


class FakeRemoteStore:
    """In-memory stand-in for RemoteStore with switchable failures.

    ``calls`` records every operation attempted, failed ones included.
    """

    def __init__(self):
        self.tables = {'farmers': [], 'farmlands': [], 'crops': []}
        self.configured = True
        self.calls = []
        self.rpc_results = {}
        self._failures = {}

    def fail(self, op, exc, times=None):
        """Make ``op`` ('select', 'insert', ..., or '*') raise ``exc``; ``times=None`` means forever."""
        self._failures[op] = [exc, times]

    def recover(self):
        self._failures.clear()

    def _enter(self, op, table=None):
        self.calls.append((op, table))
        if not self.configured:
            raise RemoteNotConfigured()
        for key in (op, '*'):
            failure = self._failures.get(key)
            if not failure:
                continue
            exc, remaining = failure
            if remaining is not None:
                if remaining <= 0:
                    continue
                failure[1] = remaining - 1
            raise exc

    def ops(self, op, table=None):
        return [c for c in self.calls if c[0] == op and (table is None or c[1] == table)]

    def select(self, table, filters=None, columns='*', order=None, limit=None, single=False):
        self._enter('select', table)
        rows = [dict(r) for r in self.tables[table] if _matches(r, filters)]
        if order:
            col = order.lstrip('-')
            rows.sort(key=lambda r: r.get(col) or '', reverse=order.startswith('-'))
        if single:
            return rows[0] if rows else None
        return rows[:limit] if limit is not None else rows

    def insert(self, table, row):
        self._enter('insert', table)
        row = dict(row)
        if row.get('id') and any(r['id'] == row['id'] for r in self.tables[table]):
            raise RemoteConflict('duplicate key value violates unique constraint', status=409, code='23505')
        row.setdefault('id', str(uuid.uuid4()))
        row.setdefault('created_at', datetime.now(timezone.utc).isoformat())
        self.tables[table].append(row)
        return dict(row)

    def update(self, table, values, filters):
        self._enter('update', table)
        updated = []
        for r in self.tables[table]:
            if _matches(r, filters):
                r.update(values)
                updated.append(dict(r))
        return updated

    def delete(self, table, filters):
        self._enter('delete', table)
        removed = [r for r in self.tables[table] if _matches(r, filters)]
        self.tables[table] = [r for r in self.tables[table] if not _matches(r, filters)]
        return removed

    def rpc(self, fn, params=None):
        self._enter('rpc', fn)
        if fn not in self.rpc_results:
            raise RemoteRejected(f'Could not find the function public.{fn}', status=404, code='PGRST202')
        result = self.rpc_results[fn]
        return result(params) if callable(result) else result

    def probe(self):
        try:
            self._enter('probe')
        except Exception:
            return False
        return True


@pytest.fixture
def identity():
    return {'id': '123456', 'email': 'test@example.com', 'name': 'Test User'}


@pytest.fixture
def remote():
    return FakeRemoteStore()


@pytest.fixture
def app(remote):
    app = create_app(
        'testing',
        identity_provider=InMemoryIdentityProvider(),
        remote_store=remote,
        retry_policy=RetryPolicy(max_attempts=2, backoff=0),
    )
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def app_ctx(app):
    with app.app_context():
        yield


@pytest.fixture
def local(app_ctx):
    return LocalStore()


@pytest.fixture
def repo(remote, local):
    return RecordRepository(remote, local, RetryPolicy(max_attempts=2, backoff=0))


@pytest.fixture
def auth_headers(client):
    resp = client.post('/api/auth/login', json={'email': 'test@example.com', 'password': 'password123'})
    assert resp.status_code == 200
    return {'Authorization': f"Bearer {resp.get_json()['access_token']}"}
