"""
User business logic.

Scope:
- administrator registration (creates the company too)
- credential check and password changes
- OTP issuance/verification (see `otp.py`)
- profile details and avatar
- sub-users and their role flags
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import UploadFile

from auth import security
from company import repository as company_repository
from core import audit, db, storage
from core.errors import ConflictError, NotFoundError, ValidationError
from core.settings import Settings
from masterdata import engine
from masterdata import repository as masterdata_repository
from masterdata.descriptors import USER

from . import otp, repository, schemas

logger = logging.getLogger(__name__)

DEFAULT_PICTURE = "emptyface.jpg"
MISSING_PARAMETERS = "Invalid request or missing parameters"


def _is_email(user_input: str) -> bool:
    return "@" in user_input


async def _require_user(userid: int) -> dict[str, Any]:
    user = await repository.get_user(userid)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def register(payload: schemas.RegisterRequest) -> dict[str, int]:
    emailid = payload.emailid.strip()
    mobileno = payload.mobileno.strip()
    password_hash = security.hash_password(payload.password)

    async with db.transaction() as conn:
        if await repository.find_user_by_email(emailid, conn=conn) is not None:
            raise ConflictError("Email is already registered.")
        if await repository.find_user_by_mobile(mobileno, conn=conn) is not None:
            raise ConflictError("Mobile number is already registered.")

        compid = await company_repository.insert_company(
            {"compname": payload.company.strip(), "countryid": payload.countryid},
            conn=conn,
        )
        userid = await masterdata_repository.insert_row(
            USER,
            {
                "emailid": emailid,
                "salid": payload.salid,
                "fullname": payload.fullname.strip(),
                "compid": compid,
                "mobileno": mobileno,
                "usertype": "A",
                "company": payload.company.strip(),
                "location": payload.location,
                "countryid": payload.countryid,
                "password": password_hash,
                "emailverified": False,
                "mobileverified": False,
            },
            conn=conn,
        )
        await audit.write_user_log(userid, f"Registered User - {emailid}", compid, payload.isweb, conn=conn)

    logger.info("user_registered userid=%s compid=%s", userid, compid)
    return {"userid": userid, "compid": compid}


async def check_credentials(userind: str, password: str) -> int:
    """
    Id of the user `userind` (e-mail or mobile) if `password` matches, else 0.
    """
    userind = (userind or "").strip()
    if not userind or not password:
        raise ValidationError(MISSING_PARAMETERS)

    if _is_email(userind):
        user = await repository.find_user_by_email(userind)
    else:
        user = await repository.find_user_by_mobile(userind)
    if user is None or not security.verify_password(password, str(user.get("password") or "")):
        return 0
    return int(user["userid"])


async def send_otp(settings: Settings, user_input: str) -> dict[str, Any]:
    user_input = (user_input or "").strip()
    if not user_input:
        raise ValidationError(MISSING_PARAMETERS)

    if _is_email(user_input):
        user, channel = await repository.find_user_by_email(user_input), otp.EMAIL
    else:
        user, channel = await repository.find_user_by_mobile(user_input), otp.MOBILE
    if user is None:
        raise NotFoundError("User not found")
    return await otp.issue(settings, channel, user)


async def send_email_otp(settings: Settings, emailid: str) -> dict[str, Any]:
    user = await repository.find_user_by_email(emailid)
    if user is None:
        raise NotFoundError("Email ID not found")
    return await otp.issue(settings, otp.EMAIL, user)


async def send_mobile_otp(settings: Settings, mobileno: str) -> dict[str, Any]:
    user = await repository.find_user_by_mobile(mobileno)
    if user is None:
        raise NotFoundError("Mobile Number not found")
    return await otp.issue(settings, otp.MOBILE, user)


async def verify_otp(settings: Settings, otp_type: str, userid: int, code: str) -> dict[str, Any]:
    return await otp.verify(settings, otp_type, userid, code)


async def update_password(payload: schemas.UpdatePasswordRequest) -> dict[str, str]:
    if not payload.userid or not payload.password:
        raise ValidationError(MISSING_PARAMETERS)

    if not await repository.update_password(payload.userid, security.hash_password(payload.password)):
        raise NotFoundError("User not found")
    await audit.write_user_log(payload.userid, "Updated Password")
    return {"message": "Password updated successfully"}


async def user_details(userid: int) -> dict[str, Any]:
    profile = await repository.get_user_profile(userid)
    if profile is None:
        raise NotFoundError("User not found")
    return profile


async def user_picture(userid: int, store: storage.LocalObjectStore) -> tuple[bytes, str]:
    user = await _require_user(userid)
    return await storage.get_with_fallback(store, user.get("picture"), DEFAULT_PICTURE)


def _still_verified(last_verified: str | None, address: str | None) -> bool:
    return bool(last_verified) and last_verified == address


async def update_user_details(
    form: schemas.UserDetailsForm,
    picture: UploadFile | None,
    *,
    settings: Settings,
    store: storage.LocalObjectStore,
) -> dict[str, str]:
    if not form.userid:
        raise ValidationError(MISSING_PARAMETERS)
    user = await _require_user(form.userid)

    emailid = form.emailid.strip() if form.emailid else user.get("emailid")
    mobileno = form.mobileno.strip() if form.mobileno else user.get("mobileno")
    values: dict[str, Any] = {
        "salid": form.salid,
        "fullname": form.fullname,
        "emailid": emailid,
        "mobileno": mobileno,
        # Verification follows the addresses being saved, not the old ones.
        "emailverified": _still_verified(user.get("lastveremail"), emailid),
        "mobileverified": _still_verified(user.get("lastvermobile"), mobileno),
    }
    if emailid != user.get("emailid"):
        values.update(emailotp=None, emailotp_issued_at=None)
    if mobileno != user.get("mobileno"):
        values.update(mobotp=None, mobotp_issued_at=None)
    if picture is not None:
        values["picture"] = await storage.save_thumbnail(
            store,
            picture,
            key_stem=f"UP{form.userid}",
            size=settings.thumbnail_size,
            max_bytes=settings.max_upload_bytes,
        )

    if await masterdata_repository.update_row(USER, form.userid, values) is None:
        raise NotFoundError("User not found")
    await audit.write_user_log(form.userid, f"Updated User - {emailid}", user.get("compid"), form.isweb)
    return {"message": "User details updated successfully"}


async def save_user(payload: schemas.SaveUserRequest) -> engine.UpsertResult:
    """
    Create or update a sub-user of a company, matched by e-mail address first
    and by `userid` second.
    """
    required = (payload.fullname, payload.compid, payload.mobileno, payload.emailid, payload.password)
    if not all(required) or not (payload.emailid or "").strip():
        raise ValidationError(MISSING_PARAMETERS)

    admin = await repository.get_company_admin(payload.compid)
    if admin is None:
        raise NotFoundError("Other user not found")

    existing = await repository.find_user_by_email(payload.emailid)
    if existing is not None and (existing["usertype"] != "U" or existing["compid"] != payload.compid):
        raise ConflictError("Email is already registered.")

    identifier = payload.userid
    if identifier:
        target = await repository.get_user(identifier)
        if target is None or target["usertype"] != "U" or target["compid"] != payload.compid:
            identifier = None

    request = engine.UpsertRequest(
        key=payload.emailid,
        attributes={
            "salid": payload.salid,
            "fullname": payload.fullname,
            "compid": payload.compid,
            "mobileno": payload.mobileno,
            "usertype": "U",
            "company": admin["company"],
            "location": admin["location"],
            "countryid": admin["countryid"],
        },
        identifier=identifier,
        insert_only={"password": security.hash_password(payload.password)},
    )
    return await engine.upsert(USER, request, actor=engine.Actor(compid=payload.compid, isweb=payload.isweb))


async def save_user_role(payload: schemas.SaveUserRoleRequest) -> dict[str, str]:
    if not payload.userid:
        raise ValidationError(MISSING_PARAMETERS)
    user = await _require_user(payload.userid)

    await repository.upsert_user_role(payload.model_dump())
    await audit.write_user_log(payload.userid, f"Updated User Role - {payload.userid}", user.get("compid"))
    return {"message": "Record added or updated successfully"}


async def list_users(compid: int) -> list[dict[str, Any]]:
    return await repository.list_sub_users(compid)


async def header_details(userid: int) -> list[dict[str, Any]]:
    return await repository.get_header_details(userid)
