from typing import Annotated, cast
from uuid import uuid4

from fastapi import Depends, Header, Request

from gatekeep.app import App
from gatekeep.errors import SignInRequiredError

BEARER_PREFIX = "Bearer "


async def get_app(request: Request) -> App:
    return cast(App, request.app.state.app)


def strip_bearer(authorization: str | None) -> str | None:
    """Return the raw token from an Authorization header value, with or without the Bearer prefix."""
    if authorization is None:
        return None
    token = authorization.strip()
    if token[: len(BEARER_PREFIX)].lower() == BEARER_PREFIX.lower():
        token = token[len(BEARER_PREFIX) :].strip()
    return token or None


async def get_optional_access_token(
    authorization: Annotated[str | None, Header(description="Access token, optionally prefixed with 'Bearer '")] = None,
) -> str | None:
    return strip_bearer(authorization)


async def get_access_token(
    access_token: Annotated[str | None, Depends(get_optional_access_token)],
) -> str:
    """Require an access token. It is validated by the App use case, which also renews the session."""
    if access_token is None:
        raise SignInRequiredError
    return access_token


async def get_request_id(
    x_request_id: Annotated[str | None, Header(description="Correlation id echoed into logs")] = None,
) -> str:
    return x_request_id or str(uuid4())


# Type aliases for dependencies
AppDep = Annotated[App, Depends(get_app)]
AccessTokenDep = Annotated[str, Depends(get_access_token)]
OptionalAccessTokenDep = Annotated[str | None, Depends(get_optional_access_token)]
RequestIdDep = Annotated[str, Depends(get_request_id)]
