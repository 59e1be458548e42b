from pydantic import BaseModel, ConfigDict


class OAuthProfile(BaseModel):
    """Identity payload returned by an OAuth provider, normalized across providers."""

    sub: str  # Provider-scoped subject id
    email: str | None = None
    email_verified: bool | None = None
    name: str | None = None
    picture: str | None = None

    model_config = ConfigDict(extra="ignore")


class KakaoTokenResponse(BaseModel):
    """Kakao authorization code exchange response."""

    access_token: str
    id_token: str
    token_type: str | None = None
    refresh_token: str | None = None
    expires_in: int | None = None

    model_config = ConfigDict(extra="ignore")
