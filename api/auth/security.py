"""
Auth security helpers.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta

import bcrypt


class AuthSecurityError(RuntimeError):
    pass


def credentials_match(
    username: str,
    password: str,
    *,
    expected_user: str,
    expected_password: str,
) -> bool:
    # Compare both halves even when the first fails.
    user_ok = secrets.compare_digest(username.encode("utf-8"), expected_user.encode("utf-8"))
    password_ok = secrets.compare_digest(password.encode("utf-8"), expected_password.encode("utf-8"))
    return user_ok and password_ok


def hash_password(plain_password: str) -> str:
    password = (plain_password or "").encode("utf-8")
    if not password:
        raise AuthSecurityError("Password is empty.")
    return bcrypt.hashpw(password, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    password = (plain_password or "").encode("utf-8")
    hashed = (password_hash or "").encode("utf-8")
    if not password or not hashed:
        return False
    try:
        return bcrypt.checkpw(password, hashed)
    except ValueError:
        return False


def generate_otp(digits: int) -> str:
    if digits <= 0:
        raise AuthSecurityError("OTP length must be > 0.")
    return "".join(secrets.choice("0123456789") for _ in range(digits))


def otp_matches(
    supplied: str,
    stored: str | None,
    *,
    issued_at: datetime | None,
    now: datetime,
    ttl_seconds: int,
) -> bool:
    """
    Exact string match against an unexpired, unconsumed code.
    """
    if not stored or not supplied or issued_at is None:
        return False
    if now - issued_at > timedelta(seconds=ttl_seconds):
        return False
    return secrets.compare_digest(supplied.encode("utf-8"), stored.encode("utf-8"))
