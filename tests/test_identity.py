import pytest

from errors import AuthenticationError, ValidationError
from identity import DEMO_USER, InMemoryIdentityProvider, SqlIdentityProvider
from session import SessionStore


def test_in_memory_provider_has_demo_user():
    provider = InMemoryIdentityProvider()

    identity = provider.authenticate('Test@Example.com', 'password123')

    assert identity == {'id': '123456', 'email': 'test@example.com', 'name': 'Test User'}
    with pytest.raises(AuthenticationError):
        provider.authenticate('test@example.com', 'nope')


def test_providers_are_independent():
    first = InMemoryIdentityProvider()
    second = InMemoryIdentityProvider()

    first.register('a@farm.io', 'pw', 'A')

    assert second.get(first.authenticate('a@farm.io', 'pw')['id']) is None


def test_sql_provider_register_and_authenticate(app_ctx):
    provider = SqlIdentityProvider()

    created = provider.register(DEMO_USER['email'], DEMO_USER['password'], DEMO_USER['name'], user_id=DEMO_USER['id'])

    assert provider.authenticate('test@example.com', 'password123') == created
    assert provider.get('123456')['name'] == 'Test User'
    with pytest.raises(ValidationError):
        provider.register('TEST@example.com', 'other')
    with pytest.raises(AuthenticationError):
        provider.authenticate('test@example.com', 'wrong')


def test_session_store_round_trip(local):
    sessions = SessionStore(local)
    assert sessions.load() is None

    sessions.save({'id': '1', 'email': 'a@farm.io', 'name': 'A', 'extra': 'dropped'})
    assert sessions.load() == {'id': '1', 'email': 'a@farm.io', 'name': 'A'}

    sessions.clear()
    assert sessions.load() is None
