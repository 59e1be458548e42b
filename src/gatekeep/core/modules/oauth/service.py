"""OAuth provider clients for Google and Kakao."""

from typing import Any

import httpx
import jwt
import structlog
from pydantic import ValidationError as PydanticValidationError

from gatekeep.config import Config
from gatekeep.core.modules.oauth.models import KakaoTokenResponse, OAuthProfile
from gatekeep.errors import InvalidTokenPayloadError, SignInRequiredError, TransientError

logger = structlog.get_logger(__name__)


class OAuthService:
    """Calls provider endpoints and normalizes their identity payloads."""

    def __init__(self, config: Config, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._client = client or httpx.AsyncClient(timeout=config.oauth_timeout_seconds)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def verify_google_access_token(self, access_token: str) -> OAuthProfile:
        """Fetch the Google userinfo for an access token."""
        data = await self._request("GET", self._config.google_userinfo_url, params={"access_token": access_token})
        return _parse_profile(_normalize_google(data))

    async def verify_google_id_token(self, id_token: str) -> OAuthProfile:
        """Validate a Google ID token with the tokeninfo endpoint."""
        data = await self._request("GET", self._config.google_tokeninfo_url, params={"id_token": id_token})
        return _parse_profile(_normalize_google(data))

    async def exchange_kakao_code(self, code: str, redirect_uri: str) -> KakaoTokenResponse:
        """Exchange a Kakao authorization code for tokens."""
        data = await self._request(
            "POST",
            self._config.kakao_token_url,
            data={
                "grant_type": "authorization_code",
                "client_id": self._config.kakao_client_id,
                "client_secret": self._config.kakao_client_secret,
                "redirect_uri": redirect_uri,
                "code": code,
            },
        )
        try:
            return KakaoTokenResponse.model_validate(data)
        except PydanticValidationError as e:
            raise InvalidTokenPayloadError from e

    def decode_kakao_id_token(self, id_token: str) -> OAuthProfile:
        """Decode the payload of a Kakao ID token received directly from the token endpoint."""
        try:
            payload = jwt.decode(id_token, options={"verify_signature": False})
        except jwt.PyJWTError as e:
            raise InvalidTokenPayloadError from e
        payload.setdefault("name", payload.get("nickname"))
        return _parse_profile(payload)

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning("oauth_timeout", url=url)
            raise TransientError(f"OAuth provider timed out: {url}") from e
        except httpx.TransportError as e:
            logger.warning("oauth_unreachable", url=url, error=str(e))
            raise TransientError(f"OAuth provider unreachable: {url}") from e

        if response.status_code in (400, 401, 403):
            logger.info("oauth_rejected", url=url, status_code=response.status_code)
            raise SignInRequiredError("OAuth provider rejected the credentials")
        if response.status_code >= 500:
            raise TransientError(f"OAuth provider failed with {response.status_code}: {url}")
        response.raise_for_status()
        return response.json()


def _normalize_google(data: dict[str, Any]) -> dict[str, Any]:
    # tokeninfo returns email_verified as the string "true"/"false"
    verified = data.get("email_verified")
    if isinstance(verified, str):
        data["email_verified"] = verified.lower() == "true"
    return data


def _parse_profile(data: dict[str, Any]) -> OAuthProfile:
    try:
        return OAuthProfile.model_validate(data)
    except PydanticValidationError as e:
        raise InvalidTokenPayloadError from e
