import atexit
import os
import time
from datetime import timedelta

from flask import Blueprint, Flask, current_app, jsonify, request, send_from_directory, session
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

import config as cfg
from adminlogin_common.logutil import kv
from adminlogin_common.request_context import get_or_set_req_id, maybe_set_response_headers
from adminlogin_store.store import CredentialStore, StoreError

from . import auth as auth_mod
from .admin_types import admin_type_label, redirect_url
from .credentials import CredentialService
from .errors import CredentialError, ValidationError
from .logging_setup import app_log, log

bp = Blueprint("api", __name__)


def _service() -> CredentialService:
    return current_app.extensions["adminlogin.credentials"]


def _body() -> dict:
    # Accept both JSON and form posts
    if request.is_json:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Invalid request body")
        return data
    form = request.form
    return {k: (form.getlist(k) if len(form.getlist(k)) > 1 else form.get(k)) for k in form}


def _message(message: str, status: int = 200, **extra):
    return jsonify({"message": message, **extra}), status


# ---- Static login page ----

@bp.get("/")
def index():
    return send_from_directory(current_app.config["STATIC_DIR"], "login.html")


@bp.get("/<path:filename>")
def static_asset(filename):
    return send_from_directory(current_app.config["STATIC_DIR"], filename)


@bp.get("/healthz")
def healthz():
    return jsonify({"ok": True})


# ---- Session ----

@bp.post("/api/login")
def login():
    data = _body()
    result = _service().authenticate(data.get("username"), data.get("password"), data.get("adminType"))
    auth_mod.login_session(result.username, result.admin_type)
    app_log("INFO", "login ok", user=result.username, admin_type=result.admin_type)
    return _message(
        "Login successful",
        username=result.username,
        adminType=result.admin_type,
        adminTypeLabel=admin_type_label(result.admin_type),
        redirect=redirect_url(result.admin_type),
    )


@bp.post("/api/logout")
def logout():
    who = auth_mod.current_admin()
    auth_mod.logout_session()
    if who:
        app_log("INFO", "logout", user=who[0], admin_type=who[1])
    return _message("Logged out")


@bp.get("/api/session")
def session_info():
    who = auth_mod.current_admin()
    if who is None:
        return jsonify({"loggedIn": False})
    return jsonify({"loggedIn": True, "username": who[0], "adminType": who[1]})


# ---- User management ----

@bp.post("/api/add-user")
@auth_mod.require_admin
def add_user():
    data = _body()
    if not data.get("username") or not data.get("password") or not data.get("adminType"):
        raise ValidationError("Missing fields")
    types = _service().add_user(data["username"], data["password"], data["adminType"])
    return _message("User(s) added", 201, adminType=list(types))


@bp.get("/api/users")
@auth_mod.require_admin
def list_users():
    return jsonify([u.to_dict() for u in _service().list_users()])


@bp.delete("/api/users/<username>")
@auth_mod.require_admin
def delete_user_all(username):
    removed = _service().delete_user(username)
    return _message("User deleted", removed=removed)


@bp.delete("/api/users/<username>/<admin_type>")
@auth_mod.require_admin
def delete_user(username, admin_type):
    _service().delete_user(username, admin_type)
    return _message("User deleted")


@bp.put("/api/users/<username>/<admin_type>")
@auth_mod.require_admin
def update_user(username, admin_type):
    data = _body()
    result = _service().update_user(
        username,
        admin_type,
        new_username=data.get("newUsername"),
        new_password=data.get("newPassword"),
        new_admin_type=data.get("newAdminType"),
    )
    return _message("User updated", username=result.username, adminType=result.admin_type)


@bp.put("/api/update-user")
@auth_mod.require_admin
def replace_user():
    data = _body()
    if not data.get("oldUsername") or not data.get("adminType"):
        raise ValidationError("Missing fields")
    user = _service().replace_user(
        data["oldUsername"],
        data.get("newUsername"),
        data["adminType"],
        new_password=data.get("newPassword"),
    )
    return _message("User updated", **user.to_dict())


# ---- Error mapping ----

@bp.app_errorhandler(CredentialError)
def _handle_credential_error(e: CredentialError):
    return _message(e.message, e.status)


@bp.app_errorhandler(StoreError)
def _handle_store_error(e: StoreError):
    app_log("ERROR", "store failure", path=request.path, method=request.method, err=repr(e.__cause__ or e))
    return _message("Server error", 500)


@bp.app_errorhandler(HTTPException)
def _handle_http_exception(e: HTTPException):
    return jsonify({
        "ok": False,
        "error": e.name,
        "message": e.description,
    }), e.code


@bp.app_errorhandler(Exception)
def _handle_unexpected(e: Exception):
    log.exception(kv("unhandled error", path=request.path, method=request.method))
    return _message("Server error", 500)


def create_app(store: CredentialStore = None, **overrides) -> Flask:
    """Build the Flask app around `store` (a CredentialStore on cfg.DB_PATH by default)."""
    app = Flask(__name__, static_folder=None)
    app.config.update(
        SECRET_KEY=None,
        SESSION_TIMEOUT=cfg.SESSION_TIMEOUT,
        REQUIRE_ADMIN_SESSION=cfg.REQUIRE_ADMIN_SESSION,
        STATIC_DIR=cfg.STATIC_DIR,
        CORS_ORIGINS=cfg.CORS_ORIGINS,
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        SESSION_REFRESH_EACH_REQUEST=False,
    )
    app.config.update(overrides)
    if not app.config["SECRET_KEY"]:
        app.config["SECRET_KEY"] = cfg.get_session_secret()
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(seconds=int(app.config["SESSION_TIMEOUT"]))

    CORS(
        app,
        supports_credentials=True,
        resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}},
        allow_headers=["Content-Type", "X-Requested-With"],
        methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        max_age=600,
    )

    if store is None:
        store = CredentialStore(cfg.DB_PATH)
        atexit.register(store.close)
    store.open()
    app.extensions["adminlogin.store"] = store
    app.extensions["adminlogin.credentials"] = CredentialService(store)

    @app.before_request
    def _check_session_timeout():
        get_or_set_req_id()
        # Fixed lifetime counted from login; activity does not extend it.
        login_at = session.get(auth_mod.SESSION_LOGIN_AT)
        if login_at is not None and time.time() - login_at > app.config["SESSION_TIMEOUT"]:
            session.clear()

    @app.after_request
    def _response_headers(resp):
        resp.headers["Cache-Control"] = "no-store"
        return maybe_set_response_headers(resp)

    app.register_blueprint(bp)
    app_log("INFO", "app ready", db=store.path, static=os.path.basename(app.config["STATIC_DIR"]))
    return app
