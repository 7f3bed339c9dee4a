from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flask import Blueprint, current_app, jsonify, render_template, request

from app.auth.routes import request_payload
from app.db import fetch_order, fetch_reports, insert_report
from app.errors import Forbidden, NotFound, unwrap_store_result
from app.guards import (
    api_login_required,
    current_user,
    is_admin,
    login_required,
)
from app.reports import (
    ADMIN_REPORT_LIMIT,
    OPERATOR_REPORT_LIMIT,
    build_report_filters,
    build_report_record,
    operator_today_filters,
    parse_submission,
)

main_bp = Blueprint('main', __name__)


def _report_timezone():
    """Return the timezone used for report timestamps.

    Prefers the configured ``LOCAL_TIMEZONE`` and falls back to UTC if the zone
    cannot be loaded.
    """

    tz_name = current_app.config.get("LOCAL_TIMEZONE") or "UTC"
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        current_app.logger.warning(
            "Timezone %s unavailable; falling back to UTC", tz_name
        )
    return timezone.utc


def _now() -> datetime:
    return datetime.now(_report_timezone())


@main_bp.route('/index.html')
@login_required
def index_page():
    return render_template('index.html')


@main_bp.route('/repo.html')
@login_required
def reports_page():
    return render_template('repo.html', is_admin=is_admin(current_user()))


@main_bp.route('/api/order/<path:order_no>')
@api_login_required
def get_order(order_no: str):
    order = unwrap_store_result(fetch_order(order_no), 'Order lookup failed.')
    if order is None:
        raise NotFound('Order not found.')
    return jsonify({'ok': True, 'order': order})


@main_bp.route('/api/report', methods=['POST'])
@api_login_required
def submit_report():
    user = current_user()
    submission = parse_submission(request_payload())
    record = build_report_record(submission, user, _now())
    unwrap_store_result(insert_report(record), 'Failed to save report.')
    return jsonify({'ok': True})


@main_bp.route('/api/reports')
@api_login_required
def list_reports():
    user = current_user()
    tz = _report_timezone()

    if is_admin(user):
        predicates = build_report_filters(request.args, tz)
        limit = ADMIN_REPORT_LIMIT
    else:
        # Query parameters are ignored: operators only see their own rows from today.
        predicates = operator_today_filters(user.get('operator') or '', _now().date(), tz)
        limit = OPERATOR_REPORT_LIMIT

    rows = unwrap_store_result(fetch_reports(predicates, limit), 'Report query failed.')
    return jsonify({'ok': True, 'rows': rows or []})


@main_bp.route('/api/reports/clear', methods=['POST'])
@api_login_required
def clear_reports():
    raise Forbidden('Clearing reports is disabled.')
