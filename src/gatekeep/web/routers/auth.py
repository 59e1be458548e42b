from typing import Annotated

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from gatekeep.core.modules.account.models import AccountView, DeletedAccountView, OtpIssued, ProfileView
from gatekeep.web.deps import AccessTokenDep, AppDep, OptionalAccessTokenDep, RequestIdDep
from gatekeep.web.openapi import ErrorResponse

router = APIRouter(tags=["auth"])


class JoinRequest(BaseModel):
    """Request to create an account."""

    email: str = Field(..., min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$", description="Email address")
    nickname: str = Field(..., min_length=1, max_length=64, description="Unique nickname")


class SendOtpRequest(BaseModel):
    """Request to mail a one-time password."""

    email: str = Field(..., min_length=3, description="Email address of the account")


class SignInRequest(BaseModel):
    """Sign in with email and one-time password."""

    email: str = Field(..., min_length=3, description="Email address of the account")
    otp: str = Field(..., min_length=1, description="One-time password received by mail")


class GoogleSignInRequest(BaseModel):
    """Sign in with a Google OAuth access token."""

    access_token: str = Field(..., min_length=1, description="Google OAuth access token")


class KakaoSignInRequest(BaseModel):
    """Sign in with a Kakao authorization code."""

    code: str = Field(..., min_length=1, description="Kakao authorization code")
    redirect_uri: str = Field(..., min_length=1, description="Redirect URI used to obtain the code")


@router.get(
    "/auth/check-email",
    summary="Check email availability",
    description="Succeeds when the email is not used by any account.",
    operation_id="checkEmail",
    status_code=204,
    responses={
        204: {"description": "Email is available"},
        409: {"model": ErrorResponse, "description": "Email is already in use"},
    },
)
async def check_email(
    app: AppDep, request_id: RequestIdDep, email: Annotated[str, Query(min_length=1, description="Email to check")]
) -> None:
    await app.check_email(email, request_id=request_id)


@router.get(
    "/auth/check-nickname",
    summary="Check nickname availability",
    description="Succeeds when the nickname is not used by any account.",
    operation_id="checkNickname",
    status_code=204,
    responses={
        204: {"description": "Nickname is available"},
        409: {"model": ErrorResponse, "description": "Nickname is already in use"},
    },
)
async def check_nickname(
    app: AppDep,
    request_id: RequestIdDep,
    nickname: Annotated[str, Query(min_length=1, description="Nickname to check")],
) -> None:
    await app.check_nickname(nickname, request_id=request_id)


@router.post(
    "/auth/join",
    summary="Create account",
    description="Create an account and send a welcome mail. Sign in afterwards with a one-time password.",
    operation_id="join",
    status_code=201,
    responses={
        201: {"description": "Account created"},
        409: {"model": ErrorResponse, "description": "Email or nickname is already in use"},
    },
)
async def join(request: JoinRequest, app: AppDep, request_id: RequestIdDep) -> AccountView:
    return await app.join(request.email, request.nickname, request_id=request_id)


@router.post(
    "/auth/send-otp",
    summary="Send one-time password",
    description="Mail a one-time password to the account. Any previously issued password stops working.",
    operation_id="sendOtp",
    responses={
        200: {"description": "One-time password sent"},
        404: {"model": ErrorResponse, "description": "Account not found"},
    },
)
async def send_otp(request: SendOtpRequest, app: AppDep, request_id: RequestIdDep) -> OtpIssued:
    return await app.send_otp(request.email, request_id=request_id)


@router.post(
    "/auth/sign-in",
    summary="Sign in with one-time password",
    description="Exchange an email and one-time password for an access token. The password is single use.",
    operation_id="signIn",
    responses={
        200: {"description": "Signed in"},
        401: {"model": ErrorResponse, "description": "One-time password is invalid or expired"},
        404: {"model": ErrorResponse, "description": "Account or one-time password not found"},
    },
)
async def sign_in(request: SignInRequest, app: AppDep, request_id: RequestIdDep) -> ProfileView:
    return await app.sign_in(request.email, request.otp, request_id=request_id)


@router.post(
    "/auth/sign-in/token",
    summary="Sign in with access token",
    description="Validate a stored access token, extending its session.",
    operation_id="signInWithToken",
    responses={
        200: {"description": "Signed in"},
        401: {"model": ErrorResponse, "description": "Sign in required"},
    },
)
async def sign_in_with_token(app: AppDep, access_token: AccessTokenDep, request_id: RequestIdDep) -> ProfileView:
    return await app.sign_in_with_token(access_token, request_id=request_id)


@router.post(
    "/auth/google",
    summary="Start with Google",
    description="Sign in with a Google account, creating a new account on first use.",
    operation_id="startByGoogle",
    responses={
        200: {"description": "Signed in"},
        400: {"model": ErrorResponse, "description": "Google account is not verified or lacks profile data"},
        401: {"model": ErrorResponse, "description": "Google rejected the token"},
        409: {"model": ErrorResponse, "description": "Email is already used by another account"},
        503: {"model": ErrorResponse, "description": "Google is unavailable"},
    },
)
async def start_by_google(request: GoogleSignInRequest, app: AppDep, request_id: RequestIdDep) -> ProfileView:
    return await app.start_by_google(request.access_token, request_id=request_id)


@router.post(
    "/auth/kakao",
    summary="Start with Kakao",
    description="Sign in with a Kakao account, creating a new account on first use.",
    operation_id="startByKakao",
    responses={
        200: {"description": "Signed in"},
        400: {"model": ErrorResponse, "description": "Kakao token lacks profile data"},
        401: {"model": ErrorResponse, "description": "Kakao rejected the code"},
        409: {"model": ErrorResponse, "description": "Email is already used by another account"},
        503: {"model": ErrorResponse, "description": "Kakao is unavailable"},
    },
)
async def start_by_kakao(request: KakaoSignInRequest, app: AppDep, request_id: RequestIdDep) -> ProfileView:
    return await app.start_by_kakao(request.code, request.redirect_uri, request_id=request_id)


@router.post(
    "/auth/logout",
    summary="End session",
    description="Revoke the session of the access token. Always succeeds.",
    operation_id="logout",
    status_code=204,
    responses={204: {"description": "Logged out"}},
)
async def logout(app: AppDep, access_token: OptionalAccessTokenDep, request_id: RequestIdDep) -> None:
    await app.logout(access_token, request_id=request_id)


@router.delete(
    "/auth/account",
    summary="Delete account",
    description="Delete the signed-in account with all of its sessions. A notice is mailed to the account.",
    operation_id="deleteAccount",
    responses={
        200: {"description": "Account deleted"},
        401: {"model": ErrorResponse, "description": "Sign in required"},
    },
)
async def delete_account(app: AppDep, access_token: AccessTokenDep, request_id: RequestIdDep) -> DeletedAccountView:
    return await app.delete_account(access_token, request_id=request_id)
