"""Identity providers used by the auth routes.

``create_app`` takes one as a dependency; the SQL-backed provider is the
default and the in-memory one serves demos and tests.
"""

import time

from werkzeug.security import generate_password_hash, check_password_hash

from errors import AuthenticationError, ValidationError
from models import db, User

DEMO_USER = {
    'id': '123456',
    'email': 'test@example.com',
    'password': 'password123',
    'name': 'Test User',
}


def _new_user_id():
    # numeric string ids, like the demo user's
    return str(int(time.time() * 1000))


class IdentityProvider:
    """Registers and authenticates users; returns identity dicts ``{id, email, name}``."""

    def authenticate(self, email, password):
        raise NotImplementedError

    def register(self, email, password, name='New Farmer'):
        raise NotImplementedError

    def get(self, user_id):
        raise NotImplementedError


class InMemoryIdentityProvider(IdentityProvider):

    def __init__(self, users=None, seed_demo=True):
        self._users = {}
        if seed_demo:
            self._add(DEMO_USER['id'], DEMO_USER['email'], DEMO_USER['password'], DEMO_USER['name'])
        for u in users or []:
            self._add(u['id'], u['email'], u['password'], u.get('name', 'New Farmer'))

    def _add(self, user_id, email, password, name):
        self._users[email.lower()] = {
            'id': user_id,
            'email': email.lower(),
            'password_hash': generate_password_hash(password),
            'name': name,
        }

    @staticmethod
    def _identity(record):
        return {'id': record['id'], 'email': record['email'], 'name': record['name']}

    def authenticate(self, email, password):
        record = self._users.get((email or '').lower())
        if not record or not check_password_hash(record['password_hash'], password or ''):
            raise AuthenticationError('Invalid email or password')
        return self._identity(record)

    def register(self, email, password, name='New Farmer'):
        email = (email or '').strip().lower()
        if not email or not password:
            raise ValidationError({'email': 'Email and password are required'})
        if email in self._users:
            raise ValidationError({'email': 'Email already in use'})
        self._add(_new_user_id(), email, password, name or 'New Farmer')
        return self._identity(self._users[email])

    def get(self, user_id):
        for record in self._users.values():
            if record['id'] == user_id:
                return self._identity(record)
        return None


class SqlIdentityProvider(IdentityProvider):
    """Users stored in the local database ``users`` table."""

    @staticmethod
    def _identity(user):
        return {'id': user.id, 'email': user.email, 'name': user.name}

    def authenticate(self, email, password):
        user = User.query.filter_by(email=(email or '').lower()).first()
        if not user or not user.check_password(password or ''):
            raise AuthenticationError('Invalid email or password')
        if not user.is_active:
            raise AuthenticationError('Account is inactive')
        return self._identity(user)

    def register(self, email, password, name='New Farmer', user_id=None):
        email = (email or '').strip().lower()
        if not email or not password:
            raise ValidationError({'email': 'Email and password are required'})
        if User.query.filter_by(email=email).first():
            raise ValidationError({'email': 'Email already in use'})

        user = User(id=user_id or _new_user_id(), email=email, name=name or 'New Farmer')
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return self._identity(user)

    def get(self, user_id):
        user = db.session.get(User, user_id)
        return self._identity(user) if user else None
