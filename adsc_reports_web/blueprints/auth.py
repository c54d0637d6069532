"""Define the authentication blueprint and its JSON routes.

- ``/api/login`` checks the account lockout, verifies credentials and starts
  a session via :func:`flask_login.login_user`.
- ``/api/logout`` ends the session.
- ``/api/user`` returns the signed-in admin.
- ``/api/change-password`` rotates the signed-in admin's password.
- ``/api/csrf-token`` hands out the token expected in ``X-CSRFToken``.
"""

from __future__ import annotations

from typing import Any

from flask import Blueprint, current_app, jsonify, request, session
from flask_limiter.util import get_remote_address
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import CSRFError, generate_csrf

from .. import get_lockout, get_users_repository, limiter
from ..auth_utils import SessionUser, hash_password, verify_password
from ..forms import parse_password_change
from ..lockout import normalize_login_key

auth_bp = Blueprint("auth", __name__, url_prefix="/api")


def _login_rate_limit_value() -> str:
    """Return ``AUTH_LOGIN_RATE_LIMIT``, defaulting to ``"5 per 15 minutes"``."""

    value = current_app.config.get("AUTH_LOGIN_RATE_LIMIT", "5 per 15 minutes")
    return str(value or "5 per 15 minutes")


def _login_rate_limit_key() -> str:
    """Throttle per client address and submitted username.

    The username goes through :func:`normalize_login_key` so the rate limit
    and the lockout agree on which spellings name the same account.
    """

    address = request.remote_addr or get_remote_address()
    payload = request.get_json(silent=True)
    username = payload.get("username") if isinstance(payload, dict) else None
    account = normalize_login_key(username) if isinstance(username, str) else ""
    return f"{address}:{account}" if account else address


@auth_bp.app_errorhandler(429)
def too_many_requests(_: Any) -> Any:
    return (
        jsonify({"error": "Too many login attempts. Please try again after 15 minutes."}),
        429,
    )


@auth_bp.app_errorhandler(CSRFError)
def csrf_failed(exc: CSRFError) -> Any:
    return jsonify({"error": exc.description}), 400


@auth_bp.post("/login")
@limiter.limit(
    _login_rate_limit_value,
    key_func=_login_rate_limit_key,
    deduct_when=lambda response: response.status_code != 200,
)
def login() -> Any:
    """Authenticate an admin and start a session.

    Failed attempts are counted per username by the lockout store; once the
    account is locked even correct credentials are refused until the lock
    expires. Successful logins clear the counter and do not count towards
    the rate limit.
    """

    payload = request.get_json(silent=True)
    payload = payload if isinstance(payload, dict) else {}
    username = payload.get("username")
    password = payload.get("password")
    if not isinstance(username, str) or not isinstance(password, str) or not username:
        return jsonify({"error": "Username and password are required"}), 400

    lockout = get_lockout()
    status = lockout.check(username)
    if status.locked:
        return (
            jsonify(
                {
                    "error": "Account temporarily locked. Try again in "
                    f"{status.remaining_minutes} minutes."
                }
            ),
            401,
        )

    stored = get_users_repository().get_by_username(username)
    if stored is None or not verify_password(stored.password_hash, password):
        lockout.record_failure(username)
        return jsonify({"error": "Invalid username or password"}), 401

    lockout.clear(username)
    user = SessionUser.from_stored(stored)
    login_user(user)
    session.permanent = True
    current_app.logger.info("User %s signed in", user.username)
    return jsonify(user.to_dict())


@auth_bp.post("/logout")
def logout() -> Any:
    logout_user()
    return jsonify({"success": True})


@auth_bp.get("/user")
def whoami() -> Any:
    if not current_user.is_authenticated:
        return jsonify({"error": "Unauthorized"}), 401
    return jsonify(current_user.to_dict())


@auth_bp.get("/csrf-token")
def csrf_token() -> Any:
    return jsonify({"csrfToken": generate_csrf()})


@auth_bp.post("/change-password")
@login_required
def change_password() -> Any:
    """Replace the signed-in admin's password after verifying the current one."""

    form_data, errors = parse_password_change(request.get_json(silent=True))
    if errors or form_data is None:
        first = next(iter(errors.values()))
        return jsonify({"error": first, "errors": errors}), 400

    users = get_users_repository()
    stored = users.get_by_username(current_user.username)
    if stored is None:
        return jsonify({"error": "User not found"}), 404
    if not verify_password(stored.password_hash, form_data.current_password):
        return jsonify({"error": "Current password is incorrect"}), 401

    users.set_password_hash(stored.id, hash_password(form_data.new_password))
    current_app.logger.info("Password changed for %s", stored.username)
    return jsonify({"message": "Password changed successfully"})
