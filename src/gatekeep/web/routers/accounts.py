from typing import Annotated

from fastapi import APIRouter, Query

from gatekeep.core.modules.account.models import AccountView
from gatekeep.core.pagination import CursorPage
from gatekeep.web.deps import AppDep, RequestIdDep
from gatekeep.web.openapi import ErrorResponse

router = APIRouter(tags=["accounts"])


@router.get(
    "/accounts",
    summary="List accounts",
    description="Get the public account directory ordered by nickname.",
    operation_id="listAccounts",
    responses={
        200: {"description": "Page of accounts"},
        400: {"model": ErrorResponse, "description": "Invalid cursor"},
    },
)
async def list_accounts(
    app: AppDep,
    request_id: RequestIdDep,
    take: Annotated[int, Query(ge=1, le=100, description="Maximum items to return")] = 20,
    next_cursor: Annotated[str | None, Query(description="Cursor of the next page")] = None,
    previous_cursor: Annotated[str | None, Query(description="Cursor of the previous page")] = None,
) -> CursorPage[AccountView]:
    return await app.list_accounts(take, next_cursor, previous_cursor, request_id=request_id)
