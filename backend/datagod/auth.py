from __future__ import annotations

from functools import wraps

from flask import jsonify
from flask_login import current_user

from datagod.extensions import db, login_manager
from datagod.models import User
from datagod.utils.jwt_utils import decode_token, get_bearer_token


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


@login_manager.request_loader
def load_user_from_request(req):
    """Resolve the caller from an `Authorization: Bearer <jwt>` header."""
    token = get_bearer_token(req.headers.get("Authorization", ""))
    if not token:
        return None
    payload = decode_token(token)
    if not payload or payload.get("type") != "access":
        return None
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        return None
    return db.session.get(User, user_id)


def admin_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({"message": "Authentication required"}), 401
        if not current_user.is_admin:
            return jsonify({"message": "Admin required"}), 403
        return fn(*args, **kwargs)
    return wrapper
