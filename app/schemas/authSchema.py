import re
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from app.constants.constants import AuthMethod

PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{6,14}$")
CODE_PATTERN = re.compile(r"^\d{6}$")


def validate_name(value: str) -> str:
    value = value.strip()
    if not 2 <= len(value) <= 100:
        raise ValueError("Name must be between 2 and 100 characters")
    return value


def validate_phone(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip().replace(" ", "")
    if not PHONE_PATTERN.match(value):
        raise ValueError("Please provide a valid phone number")
    return value


def validate_password(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    if not 6 <= len(value) <= 128:
        raise ValueError("Password must be between 6 and 128 characters")
    if not (re.search(r"[a-z]", value) and re.search(r"[A-Z]", value) and re.search(r"\d", value)):
        raise ValueError("Password must contain at least one lowercase letter, one uppercase letter, and one number")
    return value


class AuthBaseModel(BaseModel):
    class Config:
        populate_by_name = True


class IdentifierMixin(AuthBaseModel):
    """email|phone selected by authMethod; the matching identifier is required."""

    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    auth_method: AuthMethod = Field(alias="authMethod")

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: Optional[str]) -> Optional[str]:
        return validate_phone(v)

    @model_validator(mode="after")
    def check_identifier(self):
        if self.auth_method == AuthMethod.email and not self.email:
            raise ValueError("Email is required when authMethod is email")
        if self.auth_method == AuthMethod.phone and not self.phone:
            raise ValueError("Phone is required when authMethod is phone")
        return self


class RegisterRequest(IdentifierMixin):
    name: str
    password: Optional[str] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        return validate_name(v)

    @field_validator("password")
    @classmethod
    def check_password(cls, v: Optional[str]) -> Optional[str]:
        return validate_password(v)

    @model_validator(mode="after")
    def check_email_password(self):
        if self.auth_method == AuthMethod.email and not self.password:
            raise ValueError("Password is required for email registration")
        return self


class LoginRequest(IdentifierMixin):
    # not strength-checked: existing hashes predate any policy change
    password: Optional[str] = Field(default=None, max_length=128)

    @model_validator(mode="after")
    def check_email_password(self):
        if self.auth_method == AuthMethod.email and not self.password:
            raise ValueError("Password is required")
        return self


class ResendVerificationRequest(IdentifierMixin):
    pass


class ForgotPasswordRequest(IdentifierMixin):
    pass


class VerifyPhoneRequest(AuthBaseModel):
    phone: str
    code: str
    password: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: str) -> str:
        return validate_phone(v)

    @field_validator("code")
    @classmethod
    def check_code(cls, v: str) -> str:
        if not CODE_PATTERN.match(v):
            raise ValueError("Verification code must be 6 digits")
        return v

    @field_validator("password")
    @classmethod
    def check_password(cls, v: Optional[str]) -> Optional[str]:
        return validate_password(v)


class RefreshTokenRequest(AuthBaseModel):
    refresh_token: Optional[str] = Field(default=None, alias="refreshToken")


class LogoutRequest(AuthBaseModel):
    refresh_token: Optional[str] = Field(default=None, alias="refreshToken")


class ResetPasswordRequest(AuthBaseModel):
    """Either an emailed token, or a phone number with its SMS code."""

    token: Optional[str] = None
    phone: Optional[str] = None
    code: Optional[str] = None
    new_password: str = Field(alias="newPassword")

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: Optional[str]) -> Optional[str]:
        return validate_phone(v)

    @field_validator("code")
    @classmethod
    def check_code(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not CODE_PATTERN.match(v):
            raise ValueError("Verification code must be 6 digits")
        return v

    @field_validator("new_password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return validate_password(v)

    @model_validator(mode="after")
    def check_proof(self):
        if not self.token and not (self.phone and self.code):
            raise ValueError("Provide either token, or phone and code")
        return self


class BanRequest(AuthBaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)
