"""
Application settings.

Everything is read from the environment exactly once, at startup, into a frozen
`Settings` object. Request handlers receive it through `get_settings`; nothing
below the routers reads `os.environ`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from fastapi import Request

DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024  # 10 MiB
DEFAULT_BULK_MAX_ROWS = 5000


def _env_str(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip() or default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_list(name: str) -> tuple[str, ...]:
    raw = os.environ.get(name, "")
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def sanitize_database_url(url: str) -> str:
    """
    asyncpg rejects the libpq-only `sslmode` query parameter; drop it.
    """
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = [(k, v) for (k, v) in parse_qsl(parts.query, keep_blank_values=True) if k != "sslmode"]
    query = urlencode(params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


@dataclass(frozen=True)
class Settings:
    database_url: str
    basic_auth_user: str
    basic_auth_password: str = field(repr=False)
    db_pool_min_size: int = 1
    db_pool_max_size: int = 5
    db_command_timeout: int = 30
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    bulk_max_rows: int = DEFAULT_BULK_MAX_ROWS
    otp_digits: int = 6
    otp_ttl_seconds: int = 600
    site_url: str = "http://www.supergst.com"
    storage_dir: str = "uploads"
    thumbnail_size: int = 90
    smtp_host: str = ""
    smtp_port: int = 465
    smtp_user: str = ""
    smtp_password: str = field(default="", repr=False)
    mail_from: str = ""
    sms_api_url: str = "https://api.textlocal.in/send/"
    sms_api_key: str = field(default="", repr=False)
    sms_sender: str = ""
    cors_origins: tuple[str, ...] = ()
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not self.database_url:
            raise RuntimeError("DATABASE_URL is not set.")
        if not self.basic_auth_user or not self.basic_auth_password:
            raise RuntimeError("BASIC_AUTH_USER and BASIC_AUTH_PASSWORD must both be set.")
        for name in (
            "db_pool_min_size",
            "db_pool_max_size",
            "max_upload_bytes",
            "bulk_max_rows",
            "otp_digits",
            "otp_ttl_seconds",
            "thumbnail_size",
        ):
            if getattr(self, name) <= 0:
                raise RuntimeError(f"Invalid {name.upper()}. It must be > 0.")
        if self.db_pool_min_size > self.db_pool_max_size:
            raise RuntimeError("DB_POOL_MIN_SIZE cannot exceed DB_POOL_MAX_SIZE.")

    @property
    def email_enabled(self) -> bool:
        return bool(self.smtp_host and self.mail_from)

    @property
    def sms_enabled(self) -> bool:
        return bool(self.sms_api_url and self.sms_api_key)

    @classmethod
    def from_env(cls) -> Settings:
        url = os.environ.get("DATABASE_URL", "").strip()
        return cls(
            database_url=sanitize_database_url(url) if url else "",
            basic_auth_user=os.environ.get("BASIC_AUTH_USER", "").strip(),
            basic_auth_password=os.environ.get("BASIC_AUTH_PASSWORD", "").strip(),
            db_pool_min_size=_env_int("DB_POOL_MIN_SIZE", 1),
            db_pool_max_size=_env_int("DB_POOL_MAX_SIZE", 5),
            db_command_timeout=_env_int("DB_COMMAND_TIMEOUT", 30),
            max_upload_bytes=_env_int("MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES),
            bulk_max_rows=_env_int("BULK_MAX_ROWS", DEFAULT_BULK_MAX_ROWS),
            otp_digits=_env_int("OTP_DIGITS", 6),
            otp_ttl_seconds=_env_int("OTP_TTL_SECONDS", 600),
            site_url=_env_str("SITE_URL", "http://www.supergst.com"),
            storage_dir=_env_str("STORAGE_DIR", "uploads"),
            thumbnail_size=_env_int("THUMBNAIL_SIZE", 90),
            smtp_host=_env_str("SMTP_HOST"),
            smtp_port=_env_int("SMTP_PORT", 465),
            smtp_user=_env_str("SMTP_USER"),
            smtp_password=os.environ.get("SMTP_PASSWORD", ""),
            mail_from=_env_str("MAIL_FROM"),
            sms_api_url=_env_str("SMS_API_URL", "https://api.textlocal.in/send/"),
            sms_api_key=_env_str("SMS_API_KEY"),
            sms_sender=_env_str("SMS_SENDER"),
            cors_origins=_env_list("CORS_ORIGINS"),
            log_level=_env_str("LOG_LEVEL", "INFO").upper(),
        )


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
