"""
User API schemas (request models).
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator


class RegisterRequest(BaseModel):
    fullname: str = Field(..., min_length=1, max_length=200)
    emailid: str = Field(..., min_length=3, max_length=320)
    mobileno: str = Field(..., min_length=4, max_length=20)
    password: str = Field(..., min_length=8, max_length=128)
    company: str = Field(..., min_length=1, max_length=200)
    salid: int | None = None
    location: str | None = None
    countryid: int | None = None
    isweb: bool = True


class SendOTPRequest(BaseModel):
    # Either an e-mail address or a mobile number.
    user_input: str = Field(..., alias="userInput", min_length=1, max_length=320)


class SendEmailOTPRequest(BaseModel):
    emailid: str = Field(..., min_length=3, max_length=320)


class SendMobileOTPRequest(BaseModel):
    mobileno: str = Field(..., min_length=4, max_length=20)


class UpdatePasswordRequest(BaseModel):
    userid: int | None = None
    password: str | None = None


class SaveUserRequest(BaseModel):
    userid: int | None = None
    salid: int | None = None
    fullname: str | None = None
    compid: int | None = None
    mobileno: str | None = None
    emailid: str | None = None
    password: str | None = None
    isweb: bool = True


class SaveUserRoleRequest(BaseModel):
    userid: int | None = None
    masters: bool | None = None
    invoice: bool | None = None
    payment: bool | None = None
    adjustment: bool | None = None
    reports: bool | None = None
    isactive: bool | None = Field(default=None, validation_alias=AliasChoices("isactive", "isActive"))


class UserDetailsForm(BaseModel):
    """
    Multipart form fields of `PUT /api/UpdateUserDet`.
    """

    userid: int | None = None
    salid: int | None = None
    fullname: str | None = None
    emailid: str | None = None
    mobileno: str | None = None
    isweb: bool = True

    @field_validator("*", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value
