"""Signed access token codec (HS512 JWT)."""

from typing import Any

import jwt
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from gatekeep.core.crypto import create_uuid

ALGORITHM = "HS512"


class InvalidTokenError(Exception):
    """Raised when a token has a bad signature, bad issuer or malformed payload."""


class TokenClaims(BaseModel):
    """Claims embedded in an access token.

    There is no expiry claim: expiry is enforced by the signed session ledger.
    """

    account_id: str = Field(..., alias="id")
    email: str
    token_id: str = Field(default_factory=create_uuid, alias="jti")

    model_config = {"populate_by_name": True, "frozen": True}


class TokenCodec:
    """Signs and verifies access tokens with a shared secret and a fixed issuer."""

    def __init__(self, secret: str, issuer: str) -> None:
        if not secret:
            raise ValueError("Token secret must not be empty")
        self._secret = secret
        self._issuer = issuer

    def sign(self, claims: TokenClaims) -> str:
        payload: dict[str, Any] = claims.model_dump(by_alias=True)
        payload["iss"] = self._issuer
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> TokenClaims:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                issuer=self._issuer,
                options={"require": ["iss"]},
            )
        except jwt.PyJWTError as e:
            raise InvalidTokenError(str(e)) from e

        try:
            return TokenClaims.model_validate(payload)
        except PydanticValidationError as e:
            raise InvalidTokenError("Token payload is missing required claims") from e
