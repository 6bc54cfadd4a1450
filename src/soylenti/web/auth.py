"""
Authentication for the admin API.

Route handlers only see the AuthProvider protocol: something that turns a
request into a UserInfo (or None). The concrete provider reads the
operator id from the Starlette session cookie and loads the matching
admin_users row. Tests swap in a stub provider.
"""

from __future__ import annotations

import hashlib
import hmac
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from fastapi import Request
from sqlalchemy.orm import Session

from soylenti.db.models import ADMIN_ROLES, AdminUser

PBKDF2_ALGORITHM = "sha256"
PBKDF2_ITERATIONS = 390_000
SALT_SIZE = 16

ADMIN_SESSION_KEY = "admin_user_id"


@dataclass(frozen=True)
class UserInfo:
    user_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class AuthProvider(Protocol):
    def current_user(self, request: Request) -> Optional[UserInfo]:
        ...


class SessionAuthProvider:
    """Resolves the operator stored in the session cookie against admin_users."""

    def __init__(self, db: Session):
        self.db = db

    def current_user(self, request: Request) -> Optional[UserInfo]:
        admin_id = request.session.get(ADMIN_SESSION_KEY)
        if not admin_id:
            return None
        admin = (
            self.db.query(AdminUser)
            .filter(AdminUser.id == admin_id, AdminUser.is_active.is_(True))
            .first()
        )
        if admin is None:
            return None
        return UserInfo(user_id=admin.id, role=admin.role)


# =============================================================================
# Password handling
# =============================================================================

def hash_password(password: str) -> str:
    """Hash a plaintext password using PBKDF2-HMAC-SHA256."""
    if not password:
        raise ValueError("Password cannot be empty")

    salt = os.urandom(SALT_SIZE).hex()
    derived = hashlib.pbkdf2_hmac(
        PBKDF2_ALGORITHM,
        password.encode("utf-8"),
        bytes.fromhex(salt),
        PBKDF2_ITERATIONS,
    ).hex()
    return f"pbkdf2_{PBKDF2_ALGORITHM}${PBKDF2_ITERATIONS}${salt}${derived}"


def verify_password(password: str, stored_hash: str) -> bool:
    """Verify a plaintext password against a stored PBKDF2 hash."""
    try:
        scheme, iter_raw, salt_hex, expected_hex = stored_hash.split("$", 3)
        if scheme != f"pbkdf2_{PBKDF2_ALGORITHM}":
            return False
        actual_hex = hashlib.pbkdf2_hmac(
            PBKDF2_ALGORITHM,
            password.encode("utf-8"),
            bytes.fromhex(salt_hex),
            int(iter_raw),
        ).hex()
        return hmac.compare_digest(actual_hex, expected_hex)
    except ValueError:
        # Malformed hash (wrong field count, bad hex or iteration count)
        return False


# =============================================================================
# Operator accounts
# =============================================================================

def authenticate_admin(
    db: Session,
    username: str,
    password: str,
) -> Optional[AdminUser]:
    """Return the active operator when credentials are valid."""
    normalized = username.strip().lower()
    admin = db.query(AdminUser).filter(AdminUser.username == normalized).first()
    if not admin or not admin.is_active:
        return None
    if not verify_password(password, admin.password_hash):
        return None
    return admin


def create_or_update_admin_user(
    db: Session,
    username: str,
    password: str,
    role: str = "admin",
    is_active: bool = True,
) -> AdminUser:
    """Create an operator account, or update an existing one by username."""
    normalized = username.strip().lower()
    if not normalized:
        raise ValueError("Username cannot be empty")
    if role not in ADMIN_ROLES:
        raise ValueError(f"Unknown role '{role}', expected one of {', '.join(ADMIN_ROLES)}")

    admin = db.query(AdminUser).filter(AdminUser.username == normalized).first()
    password_hash = hash_password(password)
    if admin:
        admin.password_hash = password_hash
        admin.role = role
        admin.is_active = is_active
    else:
        admin = AdminUser(
            username=normalized,
            password_hash=password_hash,
            role=role,
            is_active=is_active,
        )
        db.add(admin)
    db.flush()
    return admin


def mark_admin_login(db: Session, admin: AdminUser) -> None:
    """Record login timestamp for auditability."""
    admin.last_login_at = datetime.utcnow()
    db.flush()
