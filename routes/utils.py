from flask import request, g
from flask_login import current_user
from flask_caching import Cache
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
import logging

cache = Cache()

audit_logger = logging.getLogger('storefront.audit')


def to_decimal(value):
    """Coerce value (None, float, int, str, Decimal) -> Decimal quantized to 2dp.

    - Accepts strings with commas "1,234.56", parentheses for negatives "(1,234.56)".
    - Strips whitespace.
    - Returns Decimal('0.00') for invalid inputs instead of raising.
    """
    if value is None or value == '' or isinstance(value, bool):
        return Decimal('0.00')
    try:
        if isinstance(value, Decimal):
            d = value
        elif isinstance(value, int):
            d = Decimal(value)
        elif isinstance(value, float):
            d = Decimal(str(value))
        elif isinstance(value, str):
            s = value.strip().replace(',', '')
            # parentheses negative notation
            if s.startswith('(') and s.endswith(')'):
                s = '-' + s[1:-1]
            d = Decimal(s)
        else:
            return Decimal('0.00')
        if not d.is_finite():
            return Decimal('0.00')
        return d.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        return Decimal('0.00')


def safe_int(value, default=0):
    try:
        if value is None or (isinstance(value, str) and value.strip() == ''):
            return default
        return int(value)
    except (ValueError, TypeError):
        return default


def lookup(record, path, default=None):
    """Resolve a dotted path ("Customers.name") inside nested dicts."""
    current = record
    for part in path.split('.'):
        if not isinstance(current, dict):
            return default
        current = current.get(part)
        if current is None:
            return default
    return current


class Pagination:
    def __init__(self, page, per_page, total_count, total_pages):
        self.page = page
        self.per_page = per_page
        self.total = total_count
        self.pages = total_pages
        self.has_prev = page > 1
        self.has_next = page < total_pages
        self.prev_num = page - 1 if self.has_prev else None
        self.next_num = page + 1 if self.has_next else None

    def iter_pages(self, left_edge=2, left_current=2, right_current=5, right_edge=2):
        last = 0
        for num in range(1, self.pages + 1):
            if (num <= left_edge or
                    (num > self.page - left_current - 1 and num < self.page + right_current) or
                    num > self.pages - right_edge):
                if last + 1 != num:
                    yield None
                yield num
                last = num


def paginate_items(items, per_page=20):
    """Slice an already-fetched list according to the ?page= parameter.

    Returns (page_items, Pagination). Out-of-range pages are clamped.
    """
    page = safe_int(request.args.get('page'), 1)
    total_items = len(items)
    total_pages = (total_items + per_page - 1) // per_page if total_items > 0 else 1
    page = min(max(page, 1), total_pages)
    start_idx = (page - 1) * per_page
    return items[start_idx:start_idx + per_page], Pagination(page, per_page, total_items, total_pages)


def current_token():
    store = g.get('auth_store')
    return store.session.token if store else None


def log_action(action_description, user=None):
    """
    Write one audit line (user, IP, action) to the audit logger.

    Never raises; audit failures must not break the request.
    """
    try:
        user_to_log = user
        if user_to_log is None and getattr(current_user, 'is_authenticated', False):
            user_to_log = current_user

        try:
            ip_addr = request.remote_addr
        except RuntimeError:
            ip_addr = None

        audit_logger.info(
            "user=%s ip=%s action=%s",
            getattr(user_to_log, 'email', None) or '-',
            ip_addr or '-',
            action_description if action_description is not None else '',
        )
    except Exception:
        logging.exception("Failed to write audit log for action: %s", action_description)
