"""On-device key/value storage used when the remote store can't take a write.

Values are JSON documents kept in the ``local_entries`` table of the local
SQLite database. Every call commits immediately.
"""

import json
import logging

from models import db, LocalEntry, utcnow

logger = logging.getLogger(__name__)

SESSION_KEY = 'farmtrack_user'
FARMLANDS_KEY = 'farmtrack_farmlands'
CROPS_KEY = 'farmtrack_crops'


def profile_key(user_id):
    return f'farmtrack_farmer:{user_id}'


class LocalStore:

    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def get(self, key, default=None):
        entry = self.session.get(LocalEntry, key)
        if entry is None:
            return default
        try:
            return json.loads(entry.value)
        except ValueError:
            logger.warning("Discarding unreadable local entry %s", key)
            return default

    def set(self, key, value):
        entry = self.session.get(LocalEntry, key)
        payload = json.dumps(value)
        if entry is None:
            entry = LocalEntry(key=key, value=payload)
            self.session.add(entry)
        else:
            entry.value = payload
            entry.updated_at = utcnow()
        self.session.commit()
        return value

    def remove(self, key):
        entry = self.session.get(LocalEntry, key)
        if entry is None:
            return False
        self.session.delete(entry)
        self.session.commit()
        return True

    def keys(self, prefix=''):
        query = self.session.query(LocalEntry.key)
        if prefix:
            query = query.filter(LocalEntry.key.startswith(prefix, autoescape=True))
        return [row[0] for row in query.order_by(LocalEntry.key).all()]

    # --- list helpers (record collections are stored newest first) ---

    def get_list(self, key):
        value = self.get(key, [])
        return value if isinstance(value, list) else []

    def prepend(self, key, item):
        items = self.get_list(key)
        items.insert(0, item)
        self.set(key, items)
        return item

    def remove_from_list(self, key, item_id, match=None):
        """Remove the item with ``item_id``, only if it also has every field in ``match``."""
        match = match or {}
        items = self.get_list(key)
        kept = [i for i in items
                if not (i.get('id') == item_id and all(i.get(k) == v for k, v in match.items()))]
        if len(kept) == len(items):
            return False
        self.set(key, kept)
        return True

    def replace_list(self, key, items):
        return self.set(key, list(items))
