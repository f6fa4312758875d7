"""Client for the hosted remote store (Supabase).

Tables used: ``farmers``, ``farmlands``, ``crops``.
Server procedures used: ``create_farmer``, ``get_farmer_dashboard``.

Query building is left to the supabase client; this module only turns its
failures into the ``errors.py`` types the repository understands.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import Client, SupabaseException, create_client
from supabase.client import ClientOptions

from config import is_remote_configured
from errors import RemoteConflict, RemoteNotConfigured, RemoteRejected, RemoteUnavailable

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = '23505'

# PostgREST could not reach or query the database in time
TRANSIENT_CODES = {'PGRST000', 'PGRST001', 'PGRST002', 'PGRST003', '57014', '53300'}


def _http_status(code: Optional[str]) -> Optional[int]:
    # postgrest reports non-JSON error bodies with the HTTP status as the code
    if code and len(code) == 3 and code.isdigit():
        return int(code)
    return None


def translate_error(e: APIError, what: str):
    code = str(e.code) if e.code is not None else None
    status = _http_status(code)
    message = e.message or e.hint or 'Request rejected'

    if code in TRANSIENT_CODES or (status is not None and status >= 500):
        return RemoteUnavailable(f'Remote store error on {what}: {message}', details={'code': code})
    if code == UNIQUE_VIOLATION or status == 409:
        return RemoteConflict(message, status=409, code=code)
    return RemoteRejected(message, status=status, code=code)


def apply_filters(query, filters: Optional[Dict[str, Any]]):
    for col, value in (filters or {}).items():
        if isinstance(value, (list, tuple, set)):
            query = query.in_(col, list(value))
        elif value is None:
            query = query.is_(col, 'null')
        else:
            query = query.eq(col, value)
    return query


class RemoteStore:

    def __init__(self, url: str, key: str, timeout: float = 10, client: Optional[Client] = None):
        self.url = (url or '').rstrip('/')
        self.key = key or ''
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_config(cls, cfg) -> 'RemoteStore':
        return cls(cfg.get('SUPABASE_URL', ''), cfg.get('SUPABASE_ANON_KEY', ''), timeout=cfg.get('REMOTE_TIMEOUT', 10))

    @property
    def configured(self) -> bool:
        return is_remote_configured(self.url, self.key)

    @property
    def client(self) -> Client:
        if not self.configured:
            raise RemoteNotConfigured()
        if self._client is None:
            try:
                self._client = create_client(
                    self.url, self.key,
                    options=ClientOptions(postgrest_client_timeout=self.timeout),
                )
            except SupabaseException as e:
                raise RemoteNotConfigured(f'Remote store is not configured: {e}')
        return self._client

    def _execute(self, what: str, build) -> Any:
        query = build(self.client)
        try:
            resp = query.execute()
        except APIError as e:
            raise translate_error(e, what)
        except httpx.TransportError as e:
            raise RemoteUnavailable(f'Network error on {what}: {e}')
        logger.debug("%s ok", what)
        return resp.data

    # ------------------------------------------------------------
    # TABLE OPERATIONS
    # ------------------------------------------------------------
    def select(self, table: str, filters: Optional[Dict[str, Any]] = None, columns: str = '*',
               order: Optional[str] = None, limit: Optional[int] = None, single: bool = False):
        """Select rows. ``order`` is ``"col"`` or ``"-col"`` for descending.

        With ``single=True`` returns the first row or None (maybe-single).
        """
        if single:
            limit = 1

        def build(client):
            query = apply_filters(client.table(table).select(columns), filters)
            if order:
                query = query.order(order.lstrip('-'), desc=order.startswith('-'))
            if limit is not None:
                query = query.limit(limit)
            return query

        rows = self._execute(f'select {table}', build) or []
        if single:
            return rows[0] if rows else None
        return rows

    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        rows = self._execute(f'insert {table}', lambda client: client.table(table).insert(row))
        if isinstance(rows, list):
            rows = rows[0] if rows else None
        if not rows:
            raise RemoteRejected('Insert returned no representation')
        return rows

    def update(self, table: str, values: Dict[str, Any], filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self._execute(
            f'update {table}',
            lambda client: apply_filters(client.table(table).update(values), filters),
        ) or []

    def delete(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self._execute(
            f'delete {table}',
            lambda client: apply_filters(client.table(table).delete(), filters),
        ) or []

    def rpc(self, fn: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self._execute(f'rpc {fn}', lambda client: client.rpc(fn, params or {}))

    def probe(self) -> bool:
        """Read-based connectivity check. Never raises."""
        try:
            self.select('farmers', columns='id', limit=1)
            return True
        except (RemoteUnavailable, RemoteRejected) as e:
            logger.info("Remote probe failed: %s", e)
            return False
