import pytest
import responses

from app import create_app
from config import Config

API = 'http://api.test'

USER = {
    'id': 7,
    'name': 'Rahim Uddin',
    'email': 'rahim@example.com',
    'role': 'admin',
    'status': 'active',
}


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    API_BASE_URL = API
    API_TIMEOUT = 2
    CACHE_TYPE = 'NullCache'
    RATELIMIT_ENABLED = False


class CachingConfig(TestingConfig):
    CACHE_TYPE = 'SimpleCache'


@pytest.fixture
def app():
    return create_app(TestingConfig)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def mocked_api():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


def set_token(client, token):
    with client.session_transaction() as sess:
        sess[Config.TOKEN_SESSION_KEY] = token


@pytest.fixture
def logged_in(client, mocked_api):
    """A client holding a valid token whose profile lookup succeeds."""
    set_token(client, 'abc123')
    mocked_api.get(f'{API}/auth/me', json=USER)
    return client


def api_calls(mocked_api, path):
    return [c for c in mocked_api.calls if c.request.url.split('?')[0] == f'{API}{path}']
