"""Tests for admin bootstrapping and password hashing."""

from __future__ import annotations

import pytest

from adsc_reports_web.auth_utils import (
    SessionUser,
    ensure_admin_user,
    hash_password,
    verify_password,
)
from adsc_reports_web.repositories import UsersRepository


def test_password_hash_round_trip() -> None:
    hashed = hash_password("Admin!2345")

    assert hashed != "Admin!2345"
    assert verify_password(hashed, "Admin!2345")
    assert not verify_password(hashed, "admin!2345")


def test_ensure_admin_user_is_idempotent(engine) -> None:
    users = UsersRepository(engine)

    assert ensure_admin_user(users, "owner", "Owner!2345") is True
    assert ensure_admin_user(users, "owner", "Other!2345") is False

    stored = users.get_by_username("owner")
    assert verify_password(stored.password_hash, "Owner!2345")


def test_ensure_admin_user_rejects_bad_username(engine) -> None:
    with pytest.raises(ValueError):
        ensure_admin_user(UsersRepository(engine), "no spaces allowed", "Owner!2345")


def test_session_user_omits_password(engine) -> None:
    users = UsersRepository(engine)
    stored = users.create("owner", hash_password("Owner!2345"))

    payload = SessionUser.from_stored(stored).to_dict()

    assert payload == {
        "id": stored.id,
        "username": "owner",
        "createdAt": stored.created_at.isoformat(),
    }
    assert SessionUser.from_stored(stored).get_id() == stored.id
