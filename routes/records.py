from flask import Blueprint, render_template, request, redirect, url_for, flash, abort
from flask_login import login_required, current_user
from decimal import Decimal, InvalidOperation
import logging

from api_client import ApiError, PRODUCT_HISTORY_KINDS
from extensions import api
from models import RESOURCES
from routes.core import invalidate_dashboard
from routes.decorators import end_session_on_auth_error, flash_api_errors
from routes.utils import current_token, log_action, paginate_items, safe_int

logger = logging.getLogger(__name__)

records_bp = Blueprint('records', __name__)

PER_PAGE = 20
RESOURCE = 'any(' + ', '.join(sorted(RESOURCES)) + ')'


def _parse_number(raw):
    try:
        value = Decimal(raw.replace(',', ''))
    except InvalidOperation:
        return None
    return float(value) if value.is_finite() else None


def _coerce(field, raw, errors):
    """Convert one submitted form value; appends to ``errors`` and returns None if invalid."""
    if field.kind == 'int':
        value = safe_int(raw, None)
        if value is None:
            errors.append(f'{field.label} must be a whole number.')
        return value
    if field.kind == 'number':
        value = _parse_number(raw)
        if value is None:
            errors.append(f'{field.label} must be a number.')
        return value
    if field.kind == 'select' and field.choices and raw not in field.choices:
        errors.append(f'{field.label} must be one of: {", ".join(field.choices)}.')
        return None
    return raw


def _line_items(resource, errors):
    columns = [request.form.getlist(f.name) for f in resource.item_fields]
    items = []
    for row in zip(*columns):
        if not any((cell or '').strip() for cell in row):
            continue
        item = {}
        for field, raw in zip(resource.item_fields, row):
            raw = (raw or '').strip()
            if not raw:
                errors.append(f'Item {field.label} is required.')
                continue
            value = _coerce(field, raw, errors)
            if value is not None:
                item[field.name] = value
        items.append(item)
    return items


def form_payload(resource, creating):
    """Build the JSON body for a create/update call from the submitted form.

    Returns (data, errors). Blank optional fields are left out so updates
    only send what the user filled in.
    """
    errors = []
    data = {}
    for field in resource.editable_fields(creating):
        raw = (request.form.get(field.name) or '').strip()
        if not raw:
            if field.required and creating:
                errors.append(f'{field.label} is required.')
            continue
        value = _coerce(field, raw, errors)
        if value is not None:
            data[field.name] = value

    if resource.item_fields and creating:
        items = _line_items(resource, errors)
        if not items:
            errors.append('Add at least one item.')
        data['items'] = items

    if resource.attach_user and creating:
        data['user_id'] = current_user.id
    return data, errors


def _matches(record, needle):
    for value in record.values():
        if isinstance(value, dict):
            if _matches(value, needle):
                return True
        elif isinstance(value, (str, int, float)) and needle in str(value).lower():
            return True
    return False


@records_bp.route(f'/<{RESOURCE}:resource>')
@login_required
def index(resource):
    res = RESOURCES[resource]
    token = current_token()
    search = request.args.get('q', '').strip()

    try:
        if search and res.server_search:
            records = api.search_customers(search, token)
        else:
            records = api.list(res.name, token)
    except ApiError as e:
        expired = end_session_on_auth_error(e)
        if expired is not None:
            return expired
        flash(f'Failed to load {res.label.lower()}. {e.message}', 'danger')
        records = []

    if not isinstance(records, list):
        records = []
    records = [r for r in records if isinstance(r, dict)]
    if search and not res.server_search:
        needle = search.lower()
        records = [r for r in records if _matches(r, needle)]

    stats = None
    if res.has_stats:
        try:
            stats = api.get_stats(res.name, token)
        except ApiError as e:
            logger.warning("Could not load %s stats: %s", res.name, e.message)

    page_items, pagination = paginate_items(records, per_page=PER_PAGE)
    safe_args = {k: v for k, v in request.args.items() if k not in ('page', 'resource')}
    return render_template(
        'records/list.html',
        resource=res,
        records=page_items,
        pagination=pagination,
        search=search,
        stats=stats if isinstance(stats, dict) else None,
        safe_args=safe_args,
    )


@records_bp.route(f'/<{RESOURCE}:resource>/<int:record_id>')
@login_required
def detail(resource, record_id):
    res = RESOURCES[resource]
    token = current_token()
    try:
        record = api.get(res.name, record_id, token)
    except ApiError as e:
        expired = end_session_on_auth_error(e)
        if expired is not None:
            return expired
        if e.status_code == 404:
            abort(404)
        flash(f'Failed to load {res.singular.lower()}. {e.message}', 'danger')
        return redirect(url_for('records.index', resource=resource))
    if not isinstance(record, dict):
        abort(404)

    history = None
    history_kind = request.args.get('history')
    if resource == 'product' and history_kind in PRODUCT_HISTORY_KINDS:
        try:
            history = api.get_product_history(record_id, history_kind, token)
        except ApiError as e:
            flash(f'Failed to load product {history_kind}. {e.message}', 'warning')
            history = []

    return render_template(
        'records/detail.html',
        resource=res,
        record=record,
        history=history,
        history_kind=history_kind,
        history_kinds=PRODUCT_HISTORY_KINDS if resource == 'product' else (),
    )


@records_bp.route(f'/<{RESOURCE}:resource>/new', methods=['GET', 'POST'])
@login_required
@flash_api_errors('Failed to create {resource}.')
def create(resource):
    res = RESOURCES[resource]
    if request.method == 'POST':
        data, errors = form_payload(res, creating=True)
        if errors:
            for message in errors:
                flash(message, 'danger')
            return render_template('records/form.html', resource=res, record=request.form, creating=True), 400

        created = api.create(res.name, data, current_token())
        invalidate_dashboard()
        log_action(f'Created {res.singular.lower()}.')
        flash(f'{res.singular} created successfully.', 'success')
        if isinstance(created, dict) and created.get('id') is not None:
            return redirect(url_for('records.detail', resource=resource, record_id=created['id']))
        return redirect(url_for('records.index', resource=resource))

    return render_template('records/form.html', resource=res, record={}, creating=True)


@records_bp.route(f'/<{RESOURCE}:resource>/<int:record_id>/edit', methods=['GET', 'POST'])
@login_required
@flash_api_errors('Failed to update {resource} #{record_id}.')
def edit(resource, record_id):
    res = RESOURCES[resource]
    token = current_token()
    if request.method == 'POST':
        data, errors = form_payload(res, creating=False)
        if errors:
            for message in errors:
                flash(message, 'danger')
            return render_template('records/form.html', resource=res, record=request.form,
                                   record_id=record_id, creating=False), 400

        api.update(res.name, record_id, data, token)
        invalidate_dashboard()
        log_action(f'Updated {res.singular.lower()} #{record_id}.')
        flash(f'{res.singular} updated successfully.', 'success')
        return redirect(url_for('records.detail', resource=resource, record_id=record_id))

    record = api.get(res.name, record_id, token)
    if not isinstance(record, dict):
        abort(404)
    return render_template('records/form.html', resource=res, record=record,
                           record_id=record_id, creating=False)


@records_bp.route(f'/<{RESOURCE}:resource>/<int:record_id>/delete', methods=['POST'])
@login_required
@flash_api_errors('Failed to delete {resource} #{record_id}.')
def delete(resource, record_id):
    res = RESOURCES[resource]
    api.delete(res.name, record_id, current_token())
    invalidate_dashboard()
    log_action(f'Deleted {res.singular.lower()} #{record_id}.')
    flash(f'{res.singular} #{record_id} has been deleted.', 'success')
    return redirect(url_for('records.index', resource=resource))
