import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

PRODUCT_HISTORY_KINDS = ('sales', 'exchanges', 'sales-returns', 'purchases')


class ApiError(Exception):
    """Error raised for any failed call to the REST backend."""

    def __init__(self, message, status_code=None, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    @property
    def is_auth_error(self):
        return self.status_code in (401, 403)


class ApiConnectionError(ApiError):
    """The backend could not be reached (DNS, refused connection, timeout)."""


def _error_message(response):
    """Pull a human readable message out of an error response."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ('message', 'error', 'detail'):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip(), body
    return f"{response.status_code} {response.reason or 'Error'}".strip(), body


class ApiClient:
    """
    Thin wrapper around the dashboard's REST backend.

    The client holds no session state: every call that needs authentication
    takes the bearer token explicitly, so one instance can be shared by all
    request threads.
    """

    def __init__(self, base_url=None, timeout=10.0, session=None):
        self.base_url = (base_url or '').rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    def init_app(self, app):
        self.base_url = app.config['API_BASE_URL'].rstrip('/')
        self.timeout = app.config.get('API_TIMEOUT', self.timeout)
        app.extensions['api_client'] = self

    def _request(self, method: str, endpoint: str, token: Optional[str] = None, **kwargs) -> Any:
        url = f"{self.base_url}/{endpoint.lstrip('/')}"

        headers = {
            'Accept': 'application/json',
            'Content-Type': 'application/json',
        }
        if token:
            headers['Authorization'] = f'Bearer {token}'

        try:
            response = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            logger.error("Connection error calling %s %s: %s", method, url, e)
            raise ApiConnectionError(f"Could not reach the server: {e}") from e

        if not response.ok:
            message, body = _error_message(response)
            logger.warning("API %s %s failed: %s", method, url, message)
            raise ApiError(message, status_code=response.status_code, payload=body)

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.error("Invalid JSON from %s %s", method, url)
            raise ApiError("The server returned an invalid response.", status_code=response.status_code) from e

    # --- Authentication ---

    def login(self, email, password) -> Dict[str, Any]:
        result = self._request('POST', '/auth/login', json={'email': email, 'password': password})
        if not isinstance(result, dict) or not result.get('token'):
            raise ApiError("Login response did not include a token.")
        return result

    def register(self, data) -> Dict[str, Any]:
        result = self._request('POST', '/auth/register', json=data)
        if not isinstance(result, dict):
            raise ApiError("Unexpected registration response.")
        return result

    def logout(self, token):
        return self._request('POST', '/auth/logout', token=token)

    def get_me(self, token) -> Dict[str, Any]:
        result = self._request('GET', '/auth/me', token=token)
        # Some deployments wrap the profile as {"user": {...}}
        if isinstance(result, dict) and isinstance(result.get('user'), dict):
            result = result['user']
        if not isinstance(result, dict) or result.get('id') is None:
            raise ApiError("Malformed profile response.")
        return result

    def update_profile(self, token, data) -> Dict[str, Any]:
        return self._request('PUT', '/auth/profile', token=token, json=data)

    # --- Dashboard & statistics ---

    def get_dashboard_metrics(self, token) -> Dict[str, Any]:
        result = self._request('GET', '/dashboard', token=token)
        return result if isinstance(result, dict) else {}

    def get_stats(self, resource, token):
        """Backend-computed statistics (``/sale/stats``, ``/customer/stats``)."""
        return self._request('GET', f'/{resource}/stats', token=token)

    # --- Generic CRUD ---

    def list(self, resource, token, params=None):
        result = self._request('GET', f'/{resource}', token=token, params=params)
        if result is None:
            return []
        return result

    def get(self, resource, record_id, token):
        return self._request('GET', f'/{resource}/{record_id}', token=token)

    def create(self, resource, data, token):
        return self._request('POST', f'/{resource}', token=token, json=data)

    def update(self, resource, record_id, data, token):
        return self._request('PUT', f'/{resource}/{record_id}', token=token, json=data)

    def delete(self, resource, record_id, token):
        return self._request('DELETE', f'/{resource}/{record_id}', token=token)

    # --- Resource specific lookups ---

    def get_product_history(self, product_id, kind, token):
        if kind not in PRODUCT_HISTORY_KINDS:
            raise ValueError(f"Unknown product history kind: {kind!r}")
        return self._request('GET', f'/product/{product_id}/{kind}', token=token) or []

    def search_customers(self, query, token):
        return self._request('GET', '/customers/search', token=token, params={'query': query}) or []
