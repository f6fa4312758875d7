"""Single entry point for farmer, farmland and crop records.

Precedence: a local profile is checked before the remote store; every
other read goes to the remote store and is merged with unsynced local rows.
Writes go to the remote store and fall back to the local store on any
remote failure. ``sync`` pushes local-only state back to the remote store.

Every record handed out carries ``source`` ("remote" or "local"), the store
it was read from and the only store a delete will touch.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from errors import RecordNotFound, RemoteConflict, RemoteRejected, RemoteStoreError, ValidationError
from local_store import CROPS_KEY, FARMLANDS_KEY, LocalStore, profile_key
from models import db, ActivityLog
from resolver import FarmerIdResolver, placeholder_profile
from retry import RetryPolicy, new_idempotency_key
from validation import validate_crop, validate_farmland

logger = logging.getLogger(__name__)

REMOTE = 'remote'
LOCAL = 'local'
SOURCES = (REMOTE, LOCAL)

# Keys that only exist on the local copy
_LOCAL_ONLY_KEYS = ('source', 'synced')


def now_iso():
    return datetime.now(timezone.utc).isoformat()


def tag(record, source):
    data = dict(record)
    data['source'] = source
    return data


def strip_local_keys(record):
    return {k: v for k, v in record.items() if k not in _LOCAL_ONLY_KEYS}


@dataclass
class SaveResult:
    record: Dict[str, Any]
    stored: str
    reason: Optional[str] = None

    @property
    def saved_locally(self):
        return self.stored == LOCAL


@dataclass
class ListResult:
    records: List[Dict[str, Any]]
    remote_ok: bool


@dataclass
class SyncReport:
    remote_ok: bool = True
    rejected: bool = False
    profile_promoted: Optional[str] = None
    farmlands_pushed: int = 0
    crops_pushed: int = 0
    failed: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self):
        return asdict(self)


class RecordRepository:

    def __init__(self, remote, local: Optional[LocalStore] = None, retry: Optional[RetryPolicy] = None):
        self.remote = remote
        self.local = local or LocalStore()
        self.retry = retry or RetryPolicy()
        self.resolver = FarmerIdResolver(remote, self.retry)
        self.diagnostics: List[str] = []

    # ------------------------------------------------------------
    # HELPERS
    # ------------------------------------------------------------
    def _record(self, user_id, action, entity_type=None, entity_id=None, details=None):
        try:
            db.session.add(ActivityLog(
                user_id=user_id,
                action=action,
                entity_type=entity_type,
                entity_id=str(entity_id) if entity_id else None,
                details=details,
            ))
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.warning("Activity log write failed for %s: %s", action, e)

    def _remote_insert(self, table, row):
        """Insert under the retry policy. The row id is the idempotency key."""
        row = dict(row)
        row.setdefault('id', new_idempotency_key())
        try:
            return self.retry.call(self.remote.insert, table, row)
        except RemoteConflict:
            # An earlier attempt may have landed before its response was lost
            existing = self.remote.select(table, {'id': row['id']}, single=True)
            if existing is None:
                raise
            return existing

    def _save(self, table, key, row, user_id, entity_type):
        try:
            created = self._remote_insert(table, row)
            return SaveResult(tag(created, REMOTE), stored=REMOTE)
        except RemoteStoreError as e:
            local_row = dict(row, created_at=now_iso(), synced=False)
            self.local.prepend(key, local_row)
            logger.warning("%s %s saved locally: %s", entity_type, row['id'], e.message)
            self._record(user_id, f'{entity_type.upper()}_SAVED_LOCALLY', entity_type, row['id'], e.message)
            return SaveResult(tag(local_row, LOCAL), stored=LOCAL, reason=e.message)

    def _list(self, table, key, filters, local_filter):
        local_rows = [tag(r, LOCAL) for r in self.local.get_list(key) if local_filter(r)]
        try:
            rows = self.retry.call(self.remote.select, table, filters, order='-created_at')
            remote_rows = [tag(r, REMOTE) for r in rows]
            remote_ok = True
        except RemoteStoreError as e:
            logger.warning("Listing %s from the remote store failed, serving local copy: %s", table, e.message)
            remote_rows = []
            remote_ok = False

        remote_ids = {r.get('id') for r in remote_rows}
        merged = remote_rows + [r for r in local_rows if r.get('id') not in remote_ids]
        merged.sort(key=lambda r: r.get('created_at') or '', reverse=True)
        return ListResult(records=merged, remote_ok=remote_ok)

    def _delete(self, table, key, record_id, source, owner_filter=None):
        if source not in SOURCES:
            raise ValidationError({'source': "Source must be 'remote' or 'local'"})

        owner_filter = owner_filter or {}
        if source == LOCAL:
            if not self.local.remove_from_list(key, record_id, match=owner_filter):
                raise RecordNotFound(f'No local {table} record {record_id}')
            return

        filters = dict(owner_filter, id=record_id)
        rows = self.retry.call(self.remote.delete, table, filters)
        if not rows:
            raise RecordNotFound(f'No remote {table} record {record_id}')

    # ------------------------------------------------------------
    # PROFILES
    # ------------------------------------------------------------
    def local_profile(self, user_id):
        profile = self.local.get(profile_key(user_id))
        return tag(profile, LOCAL) if profile else None

    def ensure_profile(self, identity):
        self.diagnostics = []
        local = self.local_profile(identity['id'])
        if local:
            return local

        try:
            resolution = self.resolver.resolve(identity)
        except RemoteStoreError as e:
            self.diagnostics = list(getattr(e, 'diagnostics', None) or [e.message])
            return self._create_local_profile(identity, '; '.join(self.diagnostics))

        self.diagnostics = resolution.diagnostics
        return tag(resolution.profile, REMOTE)

    def _create_local_profile(self, identity, reason):
        profile = placeholder_profile(identity)
        profile.update(id=new_idempotency_key(), created_at=now_iso(), synced=False)
        self.local.set(profile_key(identity['id']), profile)
        logger.warning("Created local-only profile %s for user %s: %s", profile['id'], identity['id'], reason)
        self._record(identity['id'], 'PROFILE_CREATED_LOCALLY', 'Farmer', profile['id'], reason)
        return tag(profile, LOCAL)

    def update_profile(self, profile, fields):
        """Blind overwrite in the store the profile came from."""
        if profile.get('source') == LOCAL:
            key = profile_key(profile['user_id'])
            stored = self.local.get(key) or strip_local_keys(profile)
            stored.update(fields)
            self.local.set(key, stored)
            return tag(stored, LOCAL)

        rows = self.retry.call(self.remote.update, 'farmers', fields, {'id': profile['id']})
        if not rows:
            raise RecordNotFound(f"No remote profile {profile['id']}")
        return tag(rows[0], REMOTE)

    # ------------------------------------------------------------
    # FARMLANDS
    # ------------------------------------------------------------
    def list_farmlands(self, farmer_id):
        return self._list('farmlands', FARMLANDS_KEY, {'farmer_id': farmer_id},
                          lambda r: r.get('farmer_id') == farmer_id)

    def create_farmland(self, farmer_id, data, user_id=None):
        fields = validate_farmland(data)
        row = dict(fields, id=new_idempotency_key(), farmer_id=farmer_id)
        return self._save('farmlands', FARMLANDS_KEY, row, user_id, 'Farmland')

    def delete_farmland(self, farmer_id, farmland_id, source):
        self._delete('farmlands', FARMLANDS_KEY, farmland_id, source, owner_filter={'farmer_id': farmer_id})

    # ------------------------------------------------------------
    # CROPS
    # ------------------------------------------------------------
    def list_crops(self):
        return self._list('crops', CROPS_KEY, None, lambda r: True)

    def create_crop(self, data, user_id=None):
        fields = validate_crop(data)
        row = dict(fields, id=new_idempotency_key())
        return self._save('crops', CROPS_KEY, row, user_id, 'Crop')

    def delete_crop(self, crop_id, source):
        self._delete('crops', CROPS_KEY, crop_id, source)

    # ------------------------------------------------------------
    # DASHBOARD
    # ------------------------------------------------------------
    def dashboard(self, profile):
        if profile.get('source') == REMOTE:
            try:
                summary = self.retry.call(self.remote.rpc, 'get_farmer_dashboard', {'p_farmer_id': profile['id']})
                if isinstance(summary, list):
                    summary = summary[0] if summary else None
                if isinstance(summary, dict):
                    return dict(summary, source=REMOTE)
            except RemoteStoreError as e:
                logger.warning("get_farmer_dashboard failed, computing summary locally: %s", e.message)

        farmlands = self.list_farmlands(profile['id']).records
        crops = self.list_crops().records
        return {
            'farmland_count': len(farmlands),
            'total_hectares': round(sum(float(f.get('size_hectares') or 0) for f in farmlands), 2),
            'crop_count': len(crops),
            'source': 'computed',
        }

    # ------------------------------------------------------------
    # SYNC
    # ------------------------------------------------------------
    def sync(self, identity):
        report = SyncReport()
        local_profile = self.local.get(profile_key(identity['id']))

        try:
            if local_profile:
                farmer_id = self._promote_profile(identity, local_profile)
                report.profile_promoted = farmer_id
            else:
                found = self.resolver.lookup(identity)
                farmer_id = found['id'] if found else None
        except RemoteRejected as e:
            report.rejected = True
            report.error = e.message
            logger.error("Sync aborted, remote store rejected the profile: %s", e.message)
            return report
        except RemoteStoreError as e:
            report.remote_ok = False
            report.error = e.message
            logger.warning("Sync aborted, remote store unavailable: %s", e.message)
            return report

        if farmer_id:
            report.farmlands_pushed = self._push(
                'farmlands', FARMLANDS_KEY,
                lambda r: r.get('farmer_id') == farmer_id and not r.get('synced'), report)
        report.crops_pushed = self._push('crops', CROPS_KEY, lambda r: not r.get('synced'), report)

        self._record(identity['id'], 'SYNC_COMPLETED', 'Sync', farmer_id,
                     f"farmlands={report.farmlands_pushed} crops={report.crops_pushed} failed={len(report.failed)}")
        return report

    def _promote_profile(self, identity, local_profile):
        found = self.resolver.lookup(identity)
        if found:
            remote_id = found['id']
        else:
            remote_id = self._remote_insert('farmers', strip_local_keys(local_profile))['id']

        if remote_id != local_profile['id']:
            items = self.local.get_list(FARMLANDS_KEY)
            for item in items:
                if item.get('farmer_id') == local_profile['id']:
                    item['farmer_id'] = remote_id
            self.local.replace_list(FARMLANDS_KEY, items)

        self.local.remove(profile_key(identity['id']))
        logger.info("Promoted local profile %s to remote profile %s", local_profile['id'], remote_id)
        self._record(identity['id'], 'PROFILE_SYNCED', 'Farmer', remote_id, f"local id {local_profile['id']}")
        return remote_id

    def _push(self, table, key, predicate, report):
        kept = []
        pushed = 0
        for item in self.local.get_list(key):
            if not predicate(item):
                kept.append(item)
                continue
            try:
                self._remote_insert(table, strip_local_keys(item))
                pushed += 1
            except RemoteStoreError as e:
                kept.append(item)
                report.failed.append({'table': table, 'id': item.get('id'), 'error': e.message})
        self.local.replace_list(key, kept)
        return pushed
