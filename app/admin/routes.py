from flask import Blueprint, current_app, jsonify, render_template, session
from werkzeug.security import generate_password_hash

from app.auth.routes import is_truthy, request_payload
from app.db import (
    fetch_users,
    insert_user,
    update_user,
    update_user_password,
    username_exists,
)
from app.errors import Conflict, NotFound, ValidationError, unwrap_store_result
from app.guards import (
    ROLE_VIEWER,
    VALID_ROLES,
    admin_api_required,
    admin_page_required,
    current_user,
)

admin_bp = Blueprint('admin', __name__)

USER_LIST_LIMIT = 5000
SELF_SYNCED_FIELDS = ('station', 'operator', 'role')


def _parse_user_id(raw: str) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError('Invalid user id.') from None


def _validate_role(role) -> str:
    value = str(role).strip()
    if value not in VALID_ROLES:
        raise ValidationError('Role must be one of admin, editor or viewer.')
    return value


def _text(value) -> str:
    return '' if value is None else str(value).strip()


@admin_bp.route('/admin_users.html')
@admin_page_required
def admin_users_page():
    return render_template('admin_users.html')


@admin_bp.route('/api/admin/users', methods=['GET'])
@admin_api_required
def list_users():
    rows = unwrap_store_result(fetch_users(USER_LIST_LIMIT), 'Failed to load users.')
    return jsonify({'ok': True, 'rows': rows or []})


@admin_bp.route('/api/admin/users', methods=['POST'])
@admin_api_required
def create_user():
    payload = request_payload()
    username = _text(payload.get('username'))
    password = payload.get('password')
    if not username or not password:
        raise ValidationError('Username and password are required.')

    role = payload.get('role')
    role = ROLE_VIEWER if role is None or role == '' else _validate_role(role)

    exists = unwrap_store_result(username_exists(username), 'Failed to create user.')
    if exists:
        raise Conflict(f"User '{username}' already exists.")

    record = {
        'username': username,
        'password_hash': generate_password_hash(str(password)),
        'station': _text(payload.get('station')),
        'operator': _text(payload.get('operator')),
        'role': role,
        'is_active': True,
    }
    unwrap_store_result(insert_user(record), 'Failed to create user.')
    current_app.logger.info("User %s created with role %s", username, role)
    return jsonify({'ok': True})


@admin_bp.route('/api/admin/users/<user_id>', methods=['PUT'])
@admin_api_required
def update_user_account(user_id: str):
    target_id = _parse_user_id(user_id)
    payload = request_payload()
    actor = current_user()
    editing_self = str(actor.get('id')) == str(target_id)

    updates: dict[str, object] = {}
    if 'station' in payload:
        updates['station'] = _text(payload.get('station'))
    if 'operator' in payload:
        updates['operator'] = _text(payload.get('operator'))
    if 'role' in payload:
        updates['role'] = _validate_role(payload.get('role'))
    if 'is_active' in payload:
        updates['is_active'] = is_truthy(payload.get('is_active'))
        if editing_self and not updates['is_active']:
            raise ValidationError('You cannot deactivate your own account.')

    if not updates:
        raise ValidationError('No fields to update.')

    updated = unwrap_store_result(update_user(target_id, updates), 'Failed to update user.')
    if not updated:
        raise NotFound('User not found.')

    if editing_self:
        snapshot = dict(actor)
        snapshot.update({key: updates[key] for key in SELF_SYNCED_FIELDS if key in updates})
        session['user'] = snapshot

    current_app.logger.info(
        "User %s updated by %s: %s", target_id, actor.get('username'), sorted(updates)
    )
    return jsonify({'ok': True})


@admin_bp.route('/api/admin/users/<user_id>/reset_password', methods=['POST'])
@admin_api_required
def reset_password(user_id: str):
    target_id = _parse_user_id(user_id)
    password = request_payload().get('password')
    if not password:
        raise ValidationError('A new password is required.')

    # Existing sessions of the target user stay valid until they log out.
    updated = unwrap_store_result(
        update_user_password(target_id, generate_password_hash(str(password))),
        'Failed to reset password.',
    )
    if not updated:
        raise NotFound('User not found.')

    current_app.logger.info("Password reset for user %s", target_id)
    return jsonify({'ok': True})
