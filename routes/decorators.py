from functools import wraps
import logging

from flask import flash, redirect, url_for, g

from api_client import ApiError

logger = logging.getLogger(__name__)


def end_session_on_auth_error(error):
    """
    Clear the session after the backend rejected our token.

    Returns a redirect to the login page, or None if ``error`` is not an
    authentication failure.
    """
    if not error.is_auth_error:
        return None
    store = g.get('auth_store')
    if store is not None:
        store.logout()
    flash('Your session has expired. Please log in again.', 'warning')
    return redirect(url_for('auth.login'))


def flash_api_errors(message='Request failed. Please try again.'):
    """
    Surface backend failures of a mutating view as a flash notification.

    The wrapped view is expected to touch no local state before the backend
    call succeeds. On ApiError the user is sent back to the resource list
    (or the dashboard when the view has no ``resource`` argument).
    ``message`` is formatted with the view's keyword arguments.
    Example: @flash_api_errors('Failed to delete {resource} #{record_id}.')
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except ApiError as e:
                logger.warning("%s failed: %s", f.__name__, e.message)
                expired = end_session_on_auth_error(e)
                if expired is not None:
                    return expired
                flash(f'{message.format(**kwargs)} {e.message}', 'danger')
                resource = kwargs.get('resource')
                if resource:
                    return redirect(url_for('records.index', resource=resource))
                return redirect(url_for('core.index'))
        return decorated_function
    return decorator
