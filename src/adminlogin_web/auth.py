"""Session helpers.

The session only remembers who logged in and as which admin type. When
REQUIRE_ADMIN_SESSION is on, user-management endpoints require it.
"""
import time
from functools import wraps

from flask import current_app, jsonify, session

SESSION_USER = "user"
SESSION_ADMIN_TYPE = "admin_type"
SESSION_LOGIN_AT = "login_at"


def login_session(username: str, admin_type: str) -> None:
    session.clear()
    session.permanent = True
    session[SESSION_USER] = username
    session[SESSION_ADMIN_TYPE] = admin_type
    session[SESSION_LOGIN_AT] = time.time()


def logout_session() -> None:
    session.clear()


def current_admin():
    """(username, admin_type) of the logged-in admin, or None."""
    user = session.get(SESSION_USER)
    if not user:
        return None
    return user, session.get(SESSION_ADMIN_TYPE)


def require_admin(fn):
    @wraps(fn)
    def _wrap(*args, **kwargs):
        if current_app.config.get("REQUIRE_ADMIN_SESSION") and current_admin() is None:
            return jsonify({"message": "Login required"}), 401
        return fn(*args, **kwargs)
    return _wrap
