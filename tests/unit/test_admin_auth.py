"""Unit tests for operator authentication helpers."""

import pytest

from soylenti.db.models import AdminUser
from soylenti.web.auth import (
    UserInfo,
    authenticate_admin,
    create_or_update_admin_user,
    hash_password,
    verify_password,
)


def test_hash_and_verify_password():
    hashed = hash_password("secret123")
    assert hashed.startswith("pbkdf2_sha256$")
    assert verify_password("secret123", hashed)
    assert not verify_password("wrong", hashed)


def test_malformed_hash_never_verifies():
    assert not verify_password("secret123", "not-a-hash")
    assert not verify_password("secret123", "pbkdf2_sha256$abc$zz$zz")
    assert not verify_password("secret123", "md5$1$00$00")


def test_empty_password_rejected():
    with pytest.raises(ValueError):
        hash_password("")


def test_create_or_update_admin_user(db_session):
    created = create_or_update_admin_user(db_session, "Admin", "onepass")
    db_session.commit()
    assert created.username == "admin"
    assert created.role == "admin"

    updated = create_or_update_admin_user(db_session, "admin", "twopass", role="editor", is_active=False)
    db_session.commit()
    assert updated.id == created.id
    assert updated.role == "editor"
    assert not updated.is_active
    assert verify_password("twopass", updated.password_hash)


def test_unknown_role_rejected(db_session):
    with pytest.raises(ValueError):
        create_or_update_admin_user(db_session, "cammy", "strongpass", role="owner")
    assert db_session.query(AdminUser).count() == 0


def test_authenticate_admin_success_and_failure(db_session):
    create_or_update_admin_user(db_session, "cammy", "strongpass")
    db_session.commit()

    ok = authenticate_admin(db_session, " Cammy ", "strongpass")
    assert ok is not None
    assert ok.username == "cammy"

    assert authenticate_admin(db_session, "cammy", "wrong") is None
    assert authenticate_admin(db_session, "nobody", "strongpass") is None

    user = db_session.query(AdminUser).filter(AdminUser.username == "cammy").first()
    user.is_active = False
    db_session.commit()

    assert authenticate_admin(db_session, "cammy", "strongpass") is None


def test_user_info_roles():
    assert UserInfo(user_id=1, role="admin").is_admin
    assert not UserInfo(user_id=2, role="editor").is_admin
