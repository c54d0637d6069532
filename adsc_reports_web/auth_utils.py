"""Authentication helper functions shared across blueprints."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from .forms import is_valid_username
from .repositories import StoredUser, UsersRepository

logger = logging.getLogger(__name__)


class SessionUser(UserMixin):
    """Identity stored in the Flask-Login session.

    Carries no password material so it is safe to serialise in responses.
    """

    def __init__(self, id: str, username: str, created_at: datetime):
        self.id = id
        self.username = username
        self.created_at = created_at

    @classmethod
    def from_stored(cls, user: StoredUser) -> "SessionUser":
        return cls(id=user.id, username=user.username, created_at=user.created_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "createdAt": self.created_at.isoformat(),
        }


def hash_password(password: str) -> str:
    """Return a salted hash for ``password`` using :mod:`werkzeug.security`."""

    return generate_password_hash(password)


def verify_password(password_hash: str, candidate: str) -> bool:
    """Return whether ``candidate`` matches ``password_hash``."""

    return check_password_hash(password_hash, candidate)


def ensure_admin_user(users: UsersRepository, username: str, password: str) -> bool:
    """Create the bootstrap admin account when it does not exist yet.

    Args:
        users: Repository bound to the application's engine.
        username: Value of ``ADMIN_USERNAME``.
        password: Value of ``ADMIN_PASSWORD``; hashed before storage.

    Returns:
        bool: ``True`` when a new account was created.

    Raises:
        ValueError: If ``username`` is not 3-30 letters, digits or underscores.
    """

    if not is_valid_username(username):
        raise ValueError(
            "ADMIN_USERNAME must be 3-30 characters of letters, numbers, and underscores"
        )
    if users.get_by_username(username) is not None:
        logger.info("Admin user already exists: %s", username)
        return False
    try:
        users.create(username, hash_password(password))
    except ValueError:
        logger.info("Admin user created concurrently: %s", username)
        return False
    logger.info("Admin user created: %s", username)
    return True
