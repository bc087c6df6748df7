"""
Auth dependencies for protected FastAPI routes.

Every endpoint sits behind a single HTTP Basic credential pair taken from
settings; the check runs before any handler code.
"""

from __future__ import annotations

import base64
import binascii

from fastapi import Depends, Header, HTTPException, status

from core.settings import Settings, get_settings

from . import security

CHALLENGE = {"WWW-Authenticate": 'Basic realm="API Authentication"'}


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers=CHALLENGE,
    )


def _extract_basic_credentials(authorization: str | None) -> tuple[str, str]:
    raw = (authorization or "").strip()
    if not raw:
        raise _unauthorized("Missing Authorization header.")

    parts = raw.split(" ", 1)
    if len(parts) != 2:
        raise _unauthorized("Invalid Authorization header format.")

    scheme, encoded = parts[0].strip().lower(), parts[1].strip()
    if scheme != "basic" or not encoded:
        raise _unauthorized("Authorization must be: Basic <credentials>.")

    try:
        decoded = base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise _unauthorized("Invalid Basic credentials encoding.") from exc

    username, sep, password = decoded.partition(":")
    if not sep:
        raise _unauthorized("Invalid Basic credentials format.")
    return username, password


async def require_basic_auth(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> str:
    username, password = _extract_basic_credentials(authorization)
    if not security.credentials_match(
        username,
        password,
        expected_user=settings.basic_auth_user,
        expected_password=settings.basic_auth_password,
    ):
        raise _unauthorized("Invalid credentials.")
    return username
