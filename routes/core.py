from flask import Blueprint, render_template, flash, jsonify, current_app
from flask_login import login_required
import logging

from api_client import ApiError
from extensions import api
from models import RESOURCES
from routes.decorators import end_session_on_auth_error
from routes.metrics import build_dashboard
from routes.utils import cache, current_token, lookup, to_decimal

logger = logging.getLogger(__name__)

core_bp = Blueprint('core', __name__)


def _money_filter(value):
    """Format Decimal/number to string with two decimals and thousands separators."""
    try:
        return format(to_decimal(value), ',.2f')
    except (TypeError, ValueError):
        return "0.00"


def _num_filter(value):
    """Return a native float suitable for JSON/JS usage (use with tojson in templates)."""
    return float(to_decimal(value))


def _pct_filter(value):
    """Percentages that could not be computed (zero denominator) show as N/A."""
    if value is None:
        return 'N/A'
    d = to_decimal(value)
    sign = '+' if d > 0 else ''
    return f'{sign}{d:.1f}%'


@core_bp.record
def _register_jinja_filters(state):
    """
    Register Jinja filters at blueprint registration time (avoids import-time app access).
    Usage in templates:
      - Display money: {{ value | money }}
      - Embed number for JS: data-total='{{ value | num | tojson }}'
      - Percent change or N/A: {{ summary.change | pct }}
    """
    app = state.app
    app.jinja_env.filters['money'] = _money_filter
    app.jinja_env.filters['num'] = _num_filter
    app.jinja_env.filters['pct'] = _pct_filter
    app.jinja_env.globals['lookup'] = lookup


@core_bp.app_context_processor
def inject_navigation():
    return dict(
        nav_resources=list(RESOURCES.values()),
        currency=current_app.config.get('CURRENCY_SYMBOL', ''),
    )


@cache.memoize()
def fetch_dashboard(token):
    return api.get_dashboard_metrics(token)


def invalidate_dashboard():
    """Drop every cached dashboard payload after a successful mutation."""
    try:
        cache.delete_memoized(fetch_dashboard)
    except Exception:
        logger.exception("Failed to invalidate dashboard cache")


def forget_dashboard(token):
    try:
        cache.delete_memoized(fetch_dashboard, token)
    except Exception:
        logger.exception("Failed to drop cached dashboard")


@core_bp.route('/')
@core_bp.route('/dashboard')
@login_required
def index():
    load_error = None
    try:
        payload = fetch_dashboard(current_token())
    except ApiError as e:
        expired = end_session_on_auth_error(e)
        if expired is not None:
            return expired
        logger.error("Failed to fetch dashboard metrics: %s", e.message)
        flash('Failed to fetch dashboard data.', 'danger')
        load_error = e.message
        payload = {}

    summary = build_dashboard(payload)
    return render_template('dashboard.html', summary=summary, load_error=load_error)


@core_bp.route('/api/dashboard/summary')
@login_required
def dashboard_summary():
    try:
        payload = fetch_dashboard(current_token())
    except ApiError as e:
        status = e.status_code if e.status_code and e.status_code >= 400 else 502
        return jsonify({'error': e.message}), status
    return jsonify(build_dashboard(payload).as_dict())
