from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from gatekeep.core.modules.account.models import ProfileView
from gatekeep.core.modules.session.models import SessionView
from gatekeep.core.pagination import CursorPage
from gatekeep.web.deps import AccessTokenDep, AppDep, RequestIdDep
from gatekeep.web.openapi import ErrorResponse

router = APIRouter(tags=["profile"])


class UpdateProfileRequest(BaseModel):
    """Request to update the signed-in account's profile."""

    nickname: str | None = Field(None, min_length=1, max_length=64, description="New nickname, omit to keep")
    avatar_url: str | None = Field(None, description="New avatar image URL, null to remove")


@router.get(
    "/profile",
    summary="Get current profile",
    description="Get the profile of the signed-in account.",
    operation_id="getProfile",
    responses={
        200: {"description": "Current profile"},
        401: {"model": ErrorResponse, "description": "Sign in required"},
    },
)
async def get_profile(app: AppDep, access_token: AccessTokenDep, request_id: RequestIdDep) -> ProfileView:
    return await app.get_profile(access_token, request_id=request_id)


@router.patch(
    "/profile",
    summary="Update profile",
    description="Change the nickname and avatar of the signed-in account.",
    operation_id="updateProfile",
    responses={
        200: {"description": "Updated profile"},
        401: {"model": ErrorResponse, "description": "Sign in required"},
        409: {"model": ErrorResponse, "description": "Nickname is already in use"},
    },
)
async def update_profile(
    request: UpdateProfileRequest, app: AppDep, access_token: AccessTokenDep, request_id: RequestIdDep
) -> ProfileView:
    return await app.update_profile(access_token, request.nickname, request.avatar_url, request_id=request_id)


@router.get(
    "/profile/sessions",
    summary="List sessions",
    description="Get the live sessions of the signed-in account, newest first.",
    operation_id="listSessions",
    responses={
        200: {"description": "Page of sessions"},
        400: {"model": ErrorResponse, "description": "Invalid cursor"},
        401: {"model": ErrorResponse, "description": "Sign in required"},
    },
)
async def list_sessions(
    app: AppDep,
    access_token: AccessTokenDep,
    request_id: RequestIdDep,
    take: Annotated[int, Query(ge=1, le=100, description="Maximum items to return")] = 20,
    next_cursor: Annotated[str | None, Query(description="Cursor of the next page")] = None,
    previous_cursor: Annotated[str | None, Query(description="Cursor of the previous page")] = None,
) -> CursorPage[SessionView]:
    return await app.list_sessions(access_token, take, next_cursor, previous_cursor, request_id=request_id)


@router.delete(
    "/profile/sessions/{session_id}",
    summary="Revoke session",
    description="Sign out one session of the signed-in account.",
    operation_id="revokeSession",
    status_code=204,
    responses={
        204: {"description": "Session revoked"},
        401: {"model": ErrorResponse, "description": "Sign in required"},
        404: {"model": ErrorResponse, "description": "Session not found"},
    },
)
async def revoke_session(
    session_id: UUID, app: AppDep, access_token: AccessTokenDep, request_id: RequestIdDep
) -> None:
    await app.revoke_session(access_token, session_id, request_id=request_id)
