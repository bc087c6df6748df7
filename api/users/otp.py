"""
One-time codes for e-mail and mobile verification.

A code lives on the user row together with its issuance time. It matches only
by exact string equality, only within `OTP_TTL_SECONDS` of being issued, and
only once: a successful verification clears it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from auth import security
from core import notify
from core.errors import NotFoundError, ValidationError
from core.settings import Settings

from . import repository

logger = logging.getLogger(__name__)

VERIFIED_MESSAGES = {
    "email": "Your email has been verified Successfully. Login to Super GST Invoice to continue.",
    "mob": "Your Mobile Number has been verified Successfully. Login to Super GST Invoice to continue.",
}
NOT_VERIFIED_MESSAGE = "Your Credential could not be verified. Please contact Super GST Help for assistance."


@dataclass(frozen=True)
class OtpChannel:
    name: str
    address_column: str
    code_column: str
    issued_column: str
    verified_column: str
    last_verified_column: str


EMAIL = OtpChannel(
    name="email",
    address_column="emailid",
    code_column="emailotp",
    issued_column="emailotp_issued_at",
    verified_column="emailverified",
    last_verified_column="lastveremail",
)

MOBILE = OtpChannel(
    name="mob",
    address_column="mobileno",
    code_column="mobotp",
    issued_column="mobotp_issued_at",
    verified_column="mobileverified",
    last_verified_column="lastvermobile",
)

CHANNELS = {EMAIL.name: EMAIL, MOBILE.name: MOBILE}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def channel_for(otp_type: str) -> OtpChannel:
    channel = CHANNELS.get((otp_type or "").strip())
    if channel is None:
        raise ValidationError("Invalid OTP type")
    return channel


async def _deliver(settings: Settings, channel: OtpChannel, user: dict[str, Any], code: str) -> str:
    address = str(user.get(channel.address_column) or "").strip()
    fullname = user.get("fullname") or ""
    if channel is EMAIL:
        link = f"{settings.site_url.rstrip('/')}/VerifyUserLink/{channel.name}/{user['userid']}/{code}"
        await notify.send_email(
            settings,
            to=address,
            subject="Verify your Email ID for SuperGST Invoice Application",
            text=(
                f"Hi {fullname}, Thank you for registering with Super GST Invoice. "
                f"Click on the link {link} to verify your Email. "
                "Thanks SUPER GST Invoice. Happy Invoicing."
            ),
        )
        return f"Please check your email - {address} for a verification email"

    isdcode = await repository.get_country_isd_code(user.get("countryid"))
    await notify.send_sms(
        settings,
        numbers=f"{(isdcode or '').strip().lstrip('+')}{address}",
        message=(
            f"Dear Customer, {code} is your OTP for Super GST Invoice. "
            "For security reasons, Do not share this OTP with anyone."
        ),
    )
    return f"Please check your mobile. An SMS has been sent to mobile number {address}, for a mobile number verification"


async def issue(settings: Settings, channel: OtpChannel, user: dict[str, Any]) -> dict[str, Any]:
    """
    Store a fresh code for `user` on `channel` and try to deliver it.

    A delivery failure does not undo the stored code; the caller is told the
    message could not be sent and may ask again.
    """
    userid = int(user["userid"])
    code = security.generate_otp(settings.otp_digits)
    await repository.store_otp(
        userid,
        code_column=channel.code_column,
        issued_column=channel.issued_column,
        code=code,
        issued_at=_utc_now(),
    )

    address = user.get(channel.address_column)
    try:
        message = await _deliver(settings, channel, user, code)
        delivered = True
    except notify.NotifyError as exc:
        logger.warning("otp_delivery_failed userid=%s channel=%s error=%s", userid, channel.name, exc)
        message = f"Please try later. Could not send a verification message to {address}"
        delivered = False

    logger.info("otp_issued userid=%s channel=%s delivered=%s", userid, channel.name, delivered)
    return {channel.name: address, "delivered": delivered, "Message": message}


async def verify(settings: Settings, otp_type: str, userid: int, otp: str) -> dict[str, Any]:
    channel = channel_for(otp_type)
    if not (otp or "").strip():
        raise ValidationError("Invalid request or missing parameters")

    user = await repository.get_user(userid)
    if user is None:
        raise NotFoundError("User not found")

    stored = user.get(channel.code_column)
    matched = security.otp_matches(
        otp,
        stored,
        issued_at=user.get(channel.issued_column),
        now=_utc_now(),
        ttl_seconds=settings.otp_ttl_seconds,
    )
    if matched:
        matched = await repository.consume_otp(
            userid,
            code_column=channel.code_column,
            issued_column=channel.issued_column,
            verified_column=channel.verified_column,
            last_verified_column=channel.last_verified_column,
            code=stored,
            address=user.get(channel.address_column),
        )

    logger.info("otp_verified userid=%s channel=%s matched=%s", userid, channel.name, matched)
    if not matched:
        return {"Message": NOT_VERIFIED_MESSAGE, "verified": False}
    return {"Message": VERIFIED_MESSAGES[channel.name], "verified": True}
