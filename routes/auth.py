from flask import (Blueprint, current_app, flash, g, redirect, render_template, request,
                   session as flask_session, url_for)
from flask_login import login_required, current_user
import hashlib
import logging

from api_client import ApiError, ApiConnectionError
from config import Config
from extensions import api, limiter
from models import ApiUser
from routes.decorators import flash_api_errors
from routes.core import forget_dashboard
from routes.session_gate import SessionGate, SessionStore, HOME_ROUTE, LOGIN_ROUTE, REDIRECT
from routes.utils import cache, log_action

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)


class SessionTokenStorage:
    """Persists the bearer token in the signed Flask session cookie."""

    def __init__(self, key):
        self.key = key

    def load(self):
        return flask_session.get(self.key)

    def save(self, token):
        flask_session[self.key] = token
        flask_session.permanent = True

    def clear(self):
        flask_session.pop(self.key, None)


class CacheRevocations:
    """
    Logged-out tokens kept in the shared cache so every worker thread sees them.

    Entries live as long as the session cookie could, after which the token
    cannot come back anyway.
    """
    prefix = 'auth:revoked:'

    def __init__(self, timeout):
        self.timeout = timeout

    def _key(self, token):
        return self.prefix + hashlib.sha256(token.encode('utf-8')).hexdigest()

    def is_revoked(self, token):
        return bool(cache.get(self._key(token)))

    def revoke(self, token):
        cache.set(self._key(token), True, timeout=self.timeout)

    def restore(self, token):
        cache.delete(self._key(token))


@cache.memoize(timeout=Config.PROFILE_CACHE_SECONDS)
def fetch_profile(token):
    return api.get_me(token)


def forget_profile(token):
    try:
        cache.delete_memoized(fetch_profile, token)
    except Exception:
        logger.exception("Failed to drop cached profile")


@auth_bp.before_app_request
def enforce_session():
    """
    Resolve the session for this request and apply the gate decision.

    - Static assets are never gated.
    - Unauthenticated requests for protected paths go to /login.
    - Authenticated requests for /login or /register go to /.
    - A token logged out by any other request is dropped before it is trusted.
    """
    if request.endpoint == 'static':
        return None

    revocations = CacheRevocations(int(current_app.permanent_session_lifetime.total_seconds()))
    store = SessionStore(SessionTokenStorage(current_app.config['TOKEN_SESSION_KEY']), revocations)
    g.auth_store = store
    decision = SessionGate(store, fetch_profile).evaluate(request.path)
    logger.debug("Session gate: path=%r decision=%r", request.path, decision)

    if decision.kind == REDIRECT:
        if store.last_failure is not None and decision.target == LOGIN_ROUTE:
            flash('Your session has expired. Please log in again.', 'warning')
        return redirect(decision.target)
    return None


def _failure_message(error, fallback):
    if isinstance(error, ApiConnectionError):
        return fallback
    if isinstance(error.payload, dict) and error.payload.get('message'):
        return error.message
    return fallback


@auth_bp.route('/login', methods=['GET', 'POST'])
@limiter.limit("10 per minute", methods=['POST'])
def login():
    if request.method == 'POST':
        email = (request.form.get('email') or '').strip()
        password = request.form.get('password') or ''

        if not email or not password:
            flash('Please fill in all fields.', 'danger')
            return render_template('login.html', email=email), 400

        try:
            result = api.login(email, password)
            token = result['token']
            user_payload = result.get('user')
            if not isinstance(user_payload, dict) or user_payload.get('id') is None:
                user_payload = api.get_me(token)
        except ApiError as e:
            log_action(f'Failed login attempt for {email}.')
            flash(_failure_message(e, 'Login failed. Please try again.'), 'danger')
            return render_template('login.html', email=email), (401 if e.is_auth_error else 400)

        user = ApiUser.from_payload(user_payload)
        g.auth_store.login(token, user)
        log_action('User logged in successfully.', user=user)
        flash('Logged in successfully!', 'success')
        return redirect(HOME_ROUTE)

    return render_template('login.html', email='')


@auth_bp.route('/register', methods=['GET', 'POST'])
@limiter.limit("5 per minute", methods=['POST'])
def register():
    form = {
        'name': (request.form.get('name') or '').strip(),
        'email': (request.form.get('email') or '').strip(),
    }
    if request.method == 'POST':
        password = request.form.get('password') or ''
        confirmation = request.form.get('password_confirmation') or ''

        if not form['name'] or not form['email'] or not password:
            flash('Please fill in all fields.', 'danger')
            return render_template('register.html', form=form), 400
        if len(password) < 6:
            flash('Password must be at least 6 characters.', 'danger')
            return render_template('register.html', form=form), 400
        if password != confirmation:
            flash('Passwords do not match.', 'danger')
            return render_template('register.html', form=form), 400

        try:
            result = api.register(dict(form, password=password, password_confirmation=confirmation))
        except ApiError as e:
            flash(_failure_message(e, 'Registration failed. Please try again.'), 'danger')
            return render_template('register.html', form=form), 400

        token = result.get('token')
        if not token or not isinstance(result.get('user'), dict):
            flash('Account created. Please log in.', 'success')
            return redirect(url_for('auth.login'))

        user = ApiUser.from_payload(result['user'])
        g.auth_store.login(token, user)
        log_action('Registered a new account.', user=user)
        flash('Account created successfully!', 'success')
        return redirect(HOME_ROUTE)

    return render_template('register.html', form=form)


@auth_bp.route('/logout', methods=['GET', 'POST'])
@login_required
def logout():
    store = g.auth_store
    token = store.session.token
    try:
        api.logout(token)
    except ApiError as e:
        # The local session is cleared regardless
        logger.warning("Backend logout failed: %s", e.message)

    log_action('User logged out.')
    # Revocation first: results of fetches still in flight are then never trusted
    store.logout()
    forget_profile(token)
    forget_dashboard(token)
    flash('You have been logged out.', 'info')
    return redirect(url_for('auth.login'))


@auth_bp.route('/profile', methods=['GET', 'POST'])
@login_required
@flash_api_errors('Failed to update profile.')
def profile():
    if request.method == 'POST':
        data = {}
        for key in ('name', 'email'):
            value = (request.form.get(key) or '').strip()
            if value:
                data[key] = value
        if not data:
            flash('Nothing to update.', 'warning')
            return redirect(url_for('auth.profile'))

        store = g.auth_store
        updated = api.update_profile(store.session.token, data)
        forget_profile(store.session.token)
        if isinstance(updated, dict) and isinstance(updated.get('user'), dict):
            updated = updated['user']
        if isinstance(updated, dict) and updated.get('id') is not None:
            store.profile_updated(ApiUser.from_payload(updated))
        log_action('Updated profile.')
        flash('Profile updated successfully!', 'success')
        return redirect(url_for('auth.profile'))

    return render_template('profile.html', user=current_user)
