import json

import pytest
import responses

from app import create_app
from config import Config
from routes.session_gate import SHOW_LOADING
from tests.conftest import API, USER, CachingConfig, api_calls, set_token


def session_token(client):
    with client.session_transaction() as sess:
        return sess.get(Config.TOKEN_SESSION_KEY)


def test_protected_page_without_token_redirects_to_login(client, mocked_api):
    response = client.get('/')

    assert response.status_code == 302
    assert response.headers['Location'].endswith('/login')
    assert len(mocked_api.calls) == 0


def test_login_page_without_token_renders_without_api_calls(client, mocked_api):
    response = client.get('/login')

    assert response.status_code == 200
    assert b'Sign in to your account' in response.data
    assert len(mocked_api.calls) == 0


def test_rejected_token_is_cleared(client, mocked_api):
    set_token(client, 'abc123')
    mocked_api.get(f'{API}/auth/me', json={'message': 'Unauthorized'}, status=401)

    response = client.get('/')

    assert response.status_code == 302
    assert response.headers['Location'].endswith('/login')
    assert session_token(client) is None
    assert len(api_calls(mocked_api, '/auth/me')) == 1


def test_unreachable_backend_clears_token(client, mocked_api):
    # no /auth/me registered: the request fails to connect
    set_token(client, 'abc123')

    response = client.get('/sale', follow_redirects=True)

    assert response.status_code == 200
    assert b'session has expired' in response.data
    assert session_token(client) is None


def test_authenticated_user_is_redirected_from_login(logged_in):
    response = logged_in.get('/login')

    assert response.status_code == 302
    assert response.headers['Location'].endswith('/')


def test_login_success_stores_token(client, mocked_api):
    mocked_api.post(f'{API}/auth/login', json={'token': 'fresh', 'user': USER})

    response = client.post('/login', data={'email': USER['email'], 'password': 'secret'})

    assert response.status_code == 302
    assert response.headers['Location'].endswith('/')
    assert session_token(client) == 'fresh'
    sent = api_calls(mocked_api, '/auth/login')[0].request
    assert json.loads(sent.body) == {'email': USER['email'], 'password': 'secret'}


def test_login_fetches_profile_when_response_has_no_user(client, mocked_api):
    mocked_api.post(f'{API}/auth/login', json={'token': 'fresh'})
    mocked_api.get(f'{API}/auth/me', json=USER)

    response = client.post('/login', data={'email': USER['email'], 'password': 'secret'})

    assert response.status_code == 302
    assert session_token(client) == 'fresh'


def test_login_with_bad_credentials(client, mocked_api):
    mocked_api.post(f'{API}/auth/login', json={'message': 'Invalid credentials'}, status=401)

    response = client.post('/login', data={'email': USER['email'], 'password': 'nope'})

    assert response.status_code == 401
    assert b'Invalid credentials' in response.data
    assert session_token(client) is None


def test_login_requires_both_fields(client, mocked_api):
    response = client.post('/login', data={'email': USER['email']})

    assert response.status_code == 400
    assert b'Please fill in all fields.' in response.data
    assert len(mocked_api.calls) == 0


def test_login_when_backend_is_down(client, mocked_api):
    response = client.post('/login', data={'email': USER['email'], 'password': 'secret'})

    assert response.status_code == 400
    assert b'Login failed. Please try again.' in response.data


def test_register_validates_passwords(client, mocked_api):
    response = client.post('/register', data={
        'name': 'New', 'email': 'new@example.com',
        'password': 'secret1', 'password_confirmation': 'secret2',
    })

    assert response.status_code == 400
    assert b'Passwords do not match.' in response.data
    assert len(mocked_api.calls) == 0


def test_register_logs_in_when_token_returned(client, mocked_api):
    mocked_api.post(f'{API}/auth/register', json={'token': 'reg-token', 'user': USER})

    response = client.post('/register', data={
        'name': 'New', 'email': 'new@example.com',
        'password': 'secret1', 'password_confirmation': 'secret1',
    })

    assert response.status_code == 302
    assert response.headers['Location'].endswith('/')
    assert session_token(client) == 'reg-token'


def test_register_without_token_sends_user_to_login(client, mocked_api):
    mocked_api.post(f'{API}/auth/register', json={'id': 3}, status=201)

    response = client.post('/register', data={
        'name': 'New', 'email': 'new@example.com',
        'password': 'secret1', 'password_confirmation': 'secret1',
    })

    assert response.status_code == 302
    assert response.headers['Location'].endswith('/login')
    assert session_token(client) is None


def test_logout_clears_token(logged_in, mocked_api):
    mocked_api.post(f'{API}/auth/logout', status=204)

    response = logged_in.post('/logout')

    assert response.status_code == 302
    assert response.headers['Location'].endswith('/login')
    assert session_token(logged_in) is None
    assert api_calls(mocked_api, '/auth/logout')[0].request.headers['Authorization'] == 'Bearer abc123'


def test_logout_clears_token_even_if_backend_fails(logged_in, mocked_api):
    mocked_api.post(f'{API}/auth/logout', status=500)

    response = logged_in.post('/logout')

    assert response.status_code == 302
    assert session_token(logged_in) is None


def test_profile_page_shows_user(logged_in):
    response = logged_in.get('/profile')

    assert response.status_code == 200
    assert b'rahim@example.com' in response.data


def test_profile_update(logged_in, mocked_api):
    mocked_api.put(f'{API}/auth/profile', json={'user': dict(USER, name='Rahim U.')})

    response = logged_in.post('/profile', data={'name': 'Rahim U.'}, follow_redirects=True)

    assert response.status_code == 200
    assert b'Profile updated successfully!' in response.data
    sent = api_calls(mocked_api, '/auth/profile')[0].request
    assert json.loads(sent.body) == {'name': 'Rahim U.'}


def test_profile_update_failure_is_flashed(logged_in, mocked_api):
    mocked_api.put(f'{API}/auth/profile', json={'message': 'Email already taken'}, status=422)
    mocked_api.get(f'{API}/dashboard', json={})

    response = logged_in.post('/profile', data={'email': 'taken@example.com'}, follow_redirects=True)

    assert response.status_code == 200
    assert b'Failed to update profile. Email already taken' in response.data
    assert session_token(logged_in) == 'abc123'


@pytest.mark.parametrize('user', ['oops', ['x'], {'name': 'No Id'}, None])
def test_login_fetches_profile_when_user_is_unusable(client, mocked_api, user):
    mocked_api.post(f'{API}/auth/login', json={'token': 'fresh', 'user': user})
    mocked_api.get(f'{API}/auth/me', json=USER)

    response = client.post('/login', data={'email': USER['email'], 'password': 'secret'})

    assert response.status_code == 302
    assert session_token(client) == 'fresh'
    assert len(api_calls(mocked_api, '/auth/me')) == 1


def test_unconfirmed_session_is_left_to_login_required(client, mocked_api, monkeypatch):
    monkeypatch.setattr('routes.auth.SessionGate.evaluate', lambda self, path: SHOW_LOADING)
    set_token(client, 'abc123')

    protected = client.get('/sale')
    public = client.get('/login')

    assert protected.status_code == 302
    assert '/login' in protected.headers['Location']
    assert 'Refresh' not in protected.headers
    assert public.status_code == 200
    assert len(mocked_api.calls) == 0


def test_logout_during_profile_fetch_is_honoured_by_every_tab(mocked_api):
    app = create_app(CachingConfig)
    tab_a, tab_b, tab_c = app.test_client(), app.test_client(), app.test_client()
    for tab in (tab_a, tab_b, tab_c):
        set_token(tab, 'abc123')
    backend = {'revoked': False, 'me_calls': 0}

    def me(request):
        backend['me_calls'] += 1
        if backend['revoked']:
            return 401, {}, json.dumps({'message': 'Unauthenticated'})
        if backend['me_calls'] == 1:
            # tab B logs out while tab A is still waiting for its profile
            assert tab_b.post('/logout').status_code == 302
        return 200, {}, json.dumps(USER)

    def logout(request):
        backend['revoked'] = True
        return 204, {}, ''

    mocked_api.add_callback(responses.GET, f'{API}/auth/me', callback=me)
    mocked_api.add_callback(responses.POST, f'{API}/auth/logout', callback=logout)
    mocked_api.get(f'{API}/dashboard', json={})

    response_a = tab_a.get('/')

    assert backend['revoked']
    assert response_a.status_code == 302
    assert response_a.headers['Location'].endswith('/login')
    assert session_token(tab_a) is None
    assert session_token(tab_b) is None

    me_calls = backend['me_calls']
    response_c = tab_c.get('/')

    assert response_c.status_code == 302
    assert response_c.headers['Location'].endswith('/login')
    assert backend['me_calls'] == me_calls
    assert api_calls(mocked_api, '/dashboard') == []
