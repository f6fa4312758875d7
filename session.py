from functools import wraps

from flask import current_app, g, jsonify
from flask_jwt_extended import get_jwt_identity, get_jwt, verify_jwt_in_request

from config import is_remote_configured
from local_store import LocalStore, SESSION_KEY


class SessionStore:
    """The single signed-in identity of this device, kept in the local store."""

    def __init__(self, store=None):
        self.store = store or LocalStore()

    def load(self):
        identity = self.store.get(SESSION_KEY)
        if isinstance(identity, dict) and identity.get('id'):
            return identity
        return None

    def save(self, identity):
        return self.store.set(SESSION_KEY, {
            'id': identity['id'],
            'email': identity.get('email', ''),
            'name': identity.get('name', ''),
        })

    def clear(self):
        self.store.remove(SESSION_KEY)


def _token_identity():
    verify_jwt_in_request(optional=True)
    user_id = get_jwt_identity()
    if not user_id:
        return None
    claims = get_jwt()
    return {'id': user_id, 'email': claims.get('email', ''), 'name': claims.get('name', '')}


def check_session(cfg=None, sessions=None):
    """Return ``(identity, redirect_to)``.

    A bearer token wins over the persisted device session. The persisted
    session is not re-validated. No redirect is suggested while the remote
    store is unconfigured.
    """
    cfg = cfg if cfg is not None else current_app.config
    identity = _token_identity() or (sessions or SessionStore()).load()
    if identity:
        return identity, None
    if not is_remote_configured(cfg.get('SUPABASE_URL'), cfg.get('SUPABASE_ANON_KEY')):
        return None, None
    return None, cfg.get('LOGIN_ROUTE', '/login')


def session_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        identity, redirect_to = check_session()
        if identity is None:
            body = {'error': 'Not signed in'}
            if redirect_to:
                body['redirect'] = redirect_to
            return jsonify(body), 401
        g.identity = identity
        return fn(*args, **kwargs)
    return wrapper
