"""Farmer-id resolution ladder.

Strategies run in order, each only after the previous one failed:

1. ``lookup``          select the farmer row owned by the identity
2. ``insert``          insert a placeholder profile, server-generated id
3. ``insert_derived``  insert with a client id and a UUID owner reference
                       derived from the identity (for schemas whose
                       ``user_id`` column only accepts UUIDs)
4. ``rpc``             the ``create_farmer`` server procedure

Every strategy runs under the shared RetryPolicy.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from errors import FarmerResolutionError, RemoteNotConfigured, RemoteStoreError
from retry import RetryPolicy, new_idempotency_key

logger = logging.getLogger(__name__)

# Fixed namespace so every device derives the same owner UUID for an identity
OWNER_NAMESPACE = uuid.UUID('6f1c2a52-9d1e-4c64-8a53-3f0b7c0e2d11')

PLACEHOLDER_CONTACT = '000-000-0000'
PLACEHOLDER_ADDRESS = 'No address provided'


def derived_owner_id(user_id: str) -> str:
    return str(uuid.uuid5(OWNER_NAMESPACE, str(user_id)))


def owner_ids(user_id: str) -> List[str]:
    derived = derived_owner_id(user_id)
    return [str(user_id)] if derived == str(user_id) else [str(user_id), derived]


def placeholder_profile(identity: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'user_id': identity['id'],
        'name': identity.get('name') or 'Farmer',
        'email': identity.get('email') or '',
        'contact_number': PLACEHOLDER_CONTACT,
        'address': PLACEHOLDER_ADDRESS,
    }


@dataclass
class Resolution:
    profile: Dict[str, Any]
    strategy: str
    diagnostics: List[str] = field(default_factory=list)

    @property
    def farmer_id(self) -> str:
        return self.profile['id']


class FarmerIdResolver:

    def __init__(self, remote, retry: Optional[RetryPolicy] = None):
        self.remote = remote
        self.retry = retry or RetryPolicy()
        self.strategies = [
            ('lookup', self._lookup),
            ('insert', self._insert),
            ('insert_derived', self._insert_derived),
            ('rpc', self._rpc),
        ]

    def lookup(self, identity) -> Optional[Dict[str, Any]]:
        return self.retry.call(self.remote.select, 'farmers', {'user_id': owner_ids(identity['id'])}, single=True)

    def _lookup(self, identity):
        found = self.lookup(identity)
        if found is None:
            return None, 'lookup: no profile for this identity'
        return found, f"lookup: found profile {found['id']}"

    def _insert(self, identity):
        row = self.retry.call(self.remote.insert, 'farmers', placeholder_profile(identity))
        return row, f"insert: created profile {row['id']}"

    def _insert_derived(self, identity):
        row = placeholder_profile(identity)
        row['id'] = new_idempotency_key()
        row['user_id'] = derived_owner_id(identity['id'])
        created = self.retry.call(self.remote.insert, 'farmers', row)
        return created, f"insert_derived: created profile {created['id']} owned by {row['user_id']}"

    def _rpc(self, identity):
        result = self.retry.call(self.remote.rpc, 'create_farmer', {
            'p_user_id': identity['id'],
            'p_name': identity.get('name') or 'Farmer',
            'p_email': identity.get('email') or '',
        })
        if isinstance(result, list):
            result = result[0] if result else None
        if isinstance(result, dict) and result.get('id'):
            return result, f"rpc: create_farmer returned {result['id']}"
        if isinstance(result, str) and result:
            profile = placeholder_profile(identity)
            profile['id'] = result
            return profile, f'rpc: create_farmer returned {result}'
        return None, 'rpc: create_farmer returned no id'

    def resolve(self, identity) -> Resolution:
        diagnostics: List[str] = []
        for name, strategy in self.strategies:
            try:
                profile, note = strategy(identity)
            except RemoteNotConfigured as e:
                diagnostics.append(f'{name}: {e.message}')
                break
            except RemoteStoreError as e:
                diagnostics.append(f'{name}: failed ({e.message})')
                logger.warning("Farmer resolution strategy %s failed: %s", name, e)
                continue
            diagnostics.append(note)
            if profile is not None:
                logger.info("Resolved farmer %s via %s", profile['id'], name)
                return Resolution(profile=profile, strategy=name, diagnostics=diagnostics)
        raise FarmerResolutionError(diagnostics)
