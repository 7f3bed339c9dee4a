from flask import (
    Blueprint,
    current_app,
    jsonify,
    redirect,
    render_template,
    request,
    session,
    url_for,
)
from werkzeug.security import check_password_hash

from app import db as db_module
from app.errors import (
    AccountDisabled,
    InvalidCredentials,
    ValidationError,
    unwrap_store_result,
)
from app.guards import LANDING_PAGE, LOGIN_PAGE, api_login_required, current_user

auth_bp = Blueprint('auth', __name__)

SESSION_USER_FIELDS = ('id', 'username', 'station', 'operator', 'role')


def request_payload() -> dict:
    """Return the JSON or form body of the current request as a dict."""

    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        return payload
    return request.form.to_dict()


def is_truthy(value) -> bool:
    """Interpret checkbox, JSON and numeric flags (``1``, ``"true"``, ``"on"``)."""

    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return False


def session_snapshot(record: dict) -> dict:
    return {field: record.get(field) for field in SESSION_USER_FIELDS}


@auth_bp.route('/')
def root():
    if current_user():
        return redirect(url_for(LANDING_PAGE))
    return redirect(url_for(LOGIN_PAGE))


@auth_bp.route('/login.html')
def login_page():
    return render_template('login.html')


@auth_bp.route('/api/login', methods=['POST'])
def login():
    payload = request_payload()
    username = payload.get('username') or ''
    password = payload.get('password') or ''
    if not isinstance(username, str) or not isinstance(password, str):
        raise ValidationError('Username and password must be text.')
    if not username or not password:
        raise ValidationError('Username and password are required.')

    record = unwrap_store_result(
        db_module.fetch_user_by_username(username), 'Login failed.'
    )
    if record is None:
        raise InvalidCredentials()

    # Checked before the password, so a disabled account is distinguishable.
    if not is_truthy(record.get('is_active')):
        raise AccountDisabled()

    if not check_password_hash(record.get('password_hash') or '', password):
        raise InvalidCredentials()

    session.clear()
    session.rotate()
    session['user'] = session_snapshot(record)
    current_app.logger.info("User %s logged in", record.get('username'))
    return jsonify({'ok': True})


@auth_bp.route('/api/logout', methods=['POST'])
def logout():
    user = current_user()
    session.clear()
    if user:
        current_app.logger.info("User %s logged out", user.get('username'))
    return jsonify({'ok': True})


@auth_bp.route('/api/me')
@api_login_required
def me():
    return jsonify({'ok': True, 'user': current_user()})
