import logging
from typing import Optional

from fastapi import APIRouter, Depends

from app.core.dependencies import get_auth_service
from app.core.ratelimit import auth_rate_limit, verification_rate_limit
from app.core.security import get_current_user, get_optional_user
from app.models.user import User
from app.schemas.authSchema import (
    ForgotPasswordRequest,
    LoginRequest,
    LogoutRequest,
    RefreshTokenRequest,
    RegisterRequest,
    ResendVerificationRequest,
    ResetPasswordRequest,
    VerifyPhoneRequest,
)
from app.schemas.userSchema import UserResponse, UserSummary, serialize_user
from app.services.AuthOrchestrator import AuthOrchestrator
from app.utils.responses import api_response

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["auth"]
)


def _session_payload(result: dict) -> dict:
    return {
        "user": serialize_user(result["user"], UserSummary),
        "accessToken": result["accessToken"],
        "refreshToken": result["refreshToken"],
    }


# -----------------------------
# Register
# -----------------------------
@router.post("/register", status_code=201, dependencies=[Depends(auth_rate_limit)])
async def register(payload: RegisterRequest, auth: AuthOrchestrator = Depends(get_auth_service)):
    logger.info(f"📝 Registration attempt via {payload.auth_method.value}")
    result = await auth.register(
        name=payload.name,
        auth_method=payload.auth_method,
        email=payload.email,
        phone=payload.phone,
        password=payload.password,
    )
    return api_response(result["message"], result["data"], status_code=201)


# -----------------------------
# Login
# -----------------------------
@router.post("/login", dependencies=[Depends(auth_rate_limit)])
async def login(payload: LoginRequest, auth: AuthOrchestrator = Depends(get_auth_service)):
    result = await auth.login(
        auth_method=payload.auth_method,
        email=payload.email,
        phone=payload.phone,
        password=payload.password,
    )
    if result.get("needsVerification"):
        return api_response(
            "Phone number not verified. Verification code sent.",
            success=False,
            needsVerification=True,
            userId=result["userId"],
        )
    return api_response("Login successful", _session_payload(result))


# -----------------------------
# Verification
# -----------------------------
@router.post("/verify-phone", dependencies=[Depends(verification_rate_limit)])
async def verify_phone(payload: VerifyPhoneRequest, auth: AuthOrchestrator = Depends(get_auth_service)):
    result = await auth.verify_phone(payload.phone, payload.code, payload.password)
    return api_response("Phone verified successfully", _session_payload(result))


@router.get("/verify-email/{token}")
async def verify_email(token: str, auth: AuthOrchestrator = Depends(get_auth_service)):
    await auth.verify_email(token)
    return api_response("Email verified successfully", {"isVerified": True})


@router.post("/resend-verification", dependencies=[Depends(verification_rate_limit)])
async def resend_verification(
    payload: ResendVerificationRequest, auth: AuthOrchestrator = Depends(get_auth_service)
):
    message = await auth.resend_verification(payload.auth_method, payload.email, payload.phone)
    return api_response(message)


# -----------------------------
# Tokens
# -----------------------------
@router.post("/refresh-token")
async def refresh_token(payload: RefreshTokenRequest, auth: AuthOrchestrator = Depends(get_auth_service)):
    tokens = await auth.refresh(payload.refresh_token)
    return api_response("Token refreshed", tokens)


@router.post("/logout")
async def logout(
    payload: Optional[LogoutRequest] = None,
    current_user: Optional[User] = Depends(get_optional_user),
    auth: AuthOrchestrator = Depends(get_auth_service),
):
    await auth.logout(current_user, payload.refresh_token if payload else None)
    return api_response("Logged out successfully")


@router.get("/me")
async def me(
    current_user: User = Depends(get_current_user),
    auth: AuthOrchestrator = Depends(get_auth_service),
):
    user = await auth.get_current_identity(current_user)
    return api_response(data={"user": serialize_user(user, UserResponse)})


# -----------------------------
# Password reset
# -----------------------------
@router.post("/forgot-password", dependencies=[Depends(auth_rate_limit)])
async def forgot_password(payload: ForgotPasswordRequest, auth: AuthOrchestrator = Depends(get_auth_service)):
    message = await auth.forgot_password(payload.auth_method, payload.email, payload.phone)
    return api_response(message)


@router.post("/reset-password", dependencies=[Depends(verification_rate_limit)])
async def reset_password(payload: ResetPasswordRequest, auth: AuthOrchestrator = Depends(get_auth_service)):
    await auth.reset_password(
        payload.new_password,
        token=payload.token,
        phone=payload.phone,
        code=payload.code,
    )
    return api_response("Password reset successfully. Please log in with your new password.")
