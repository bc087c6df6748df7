"""
FastAPI router for user endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse

from core import storage, uploads
from core.settings import Settings, get_settings

from . import schemas, service

router = APIRouter()


@router.post("/RegisterUser", status_code=status.HTTP_201_CREATED)
async def register_user(payload: schemas.RegisterRequest) -> dict:
    return await service.register(payload)


@router.get("/CheckCred/{userind}/{password}")
async def check_credentials(userind: str, password: str) -> JSONResponse:
    """
    200 with the user id on success; 201 with `userid: 0` when the
    credentials do not match (kept for existing clients).
    """
    userid = await service.check_credentials(userind, password)
    if userid:
        return JSONResponse(status_code=status.HTTP_200_OK, content={"userid": userid})
    return JSONResponse(status_code=status.HTTP_201_CREATED, content={"userid": 0})


@router.post("/SendOTP")
async def send_otp(
    payload: schemas.SendOTPRequest,
    settings: Settings = Depends(get_settings),
) -> dict:
    return await service.send_otp(settings, payload.user_input)


@router.post("/SendEmailOTP")
async def send_email_otp(
    payload: schemas.SendEmailOTPRequest,
    settings: Settings = Depends(get_settings),
) -> dict:
    return await service.send_email_otp(settings, payload.emailid)


@router.post("/SendMobileOTP")
async def send_mobile_otp(
    payload: schemas.SendMobileOTPRequest,
    settings: Settings = Depends(get_settings),
) -> dict:
    return await service.send_mobile_otp(settings, payload.mobileno)


@router.post("/VerifyOTP/{otp_type}/{userid}/{otp}")
async def verify_otp(
    otp_type: str,
    userid: int,
    otp: str,
    settings: Settings = Depends(get_settings),
) -> dict:
    return await service.verify_otp(settings, otp_type, userid, otp)


@router.post("/UpdatePassword")
async def update_password(payload: schemas.UpdatePasswordRequest) -> dict:
    return await service.update_password(payload)


@router.get("/GetUserDet/{userid}")
async def get_user_details(userid: int) -> dict:
    return await service.user_details(userid)


@router.get("/GetUserPic/{userid}")
async def get_user_picture(
    userid: int,
    store: storage.LocalObjectStore = Depends(storage.get_object_store),
) -> Response:
    data, content_type = await service.user_picture(userid, store)
    return Response(content=data, media_type=content_type)


@router.put("/UpdateUserDet")
async def update_user_details(
    request: Request,
    settings: Settings = Depends(get_settings),
    store: storage.LocalObjectStore = Depends(storage.get_object_store),
) -> dict:
    """
    Multipart form: profile fields plus an optional `picture` image.
    """
    fields, files = await uploads.read_form(request)
    form = uploads.validate_form(schemas.UserDetailsForm, fields)
    return await service.update_user_details(form, files.get("picture"), settings=settings, store=store)


@router.post("/SaveUser")
async def save_user(payload: schemas.SaveUserRequest) -> JSONResponse:
    result = await service.save_user(payload)
    code = status.HTTP_201_CREATED if result.created else status.HTTP_200_OK
    return JSONResponse(
        status_code=code,
        content={"userid": result.id, "message": "Record added or updated successfully"},
    )


@router.post("/SaveUserRole")
async def save_user_role(payload: schemas.SaveUserRoleRequest) -> dict:
    return await service.save_user_role(payload)


@router.get("/GetUserList/{compid}")
async def get_user_list(compid: int) -> list:
    return await service.list_users(compid)


@router.get("/GetUserDetForHeader/{userid}")
async def get_user_header(userid: int) -> list:
    return await service.header_details(userid)
