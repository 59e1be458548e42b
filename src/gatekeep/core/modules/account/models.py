from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, Field

from gatekeep.core.db import MongoModel
from gatekeep.utils import now


class OAuthProvider(StrEnum):
    GOOGLE = "google"
    KAKAO = "kakao"


class Account(MongoModel):
    """Account domain model.

    `salt` is a per-account secret used to encrypt the OTP and session tokens.
    `otp` holds the encrypted OTP, never the raw value.
    """

    email: str
    nickname: str
    salt: str
    otp: str | None = None
    otp_expires_at: datetime | None = None
    avatar_url: str | None = None
    oauth_provider: OAuthProvider | None = None
    oauth_id: str | None = None
    created_at: datetime = Field(default_factory=now)


class AccountView(BaseModel):
    """Public account information (API representation)."""

    id: UUID = Field(..., description="Account ID")
    nickname: str = Field(..., description="Nickname")
    avatar_url: str | None = Field(None, description="Avatar image URL")

    @classmethod
    def from_domain(cls, account: Account) -> "AccountView":
        """Create view model from domain model."""
        return cls(id=account.id, nickname=account.nickname, avatar_url=account.avatar_url)


class ProfileView(BaseModel):
    """Profile of the signed-in account, including the access token."""

    id: UUID = Field(..., description="Account ID")
    email: str = Field(..., description="Email")
    nickname: str = Field(..., description="Nickname")
    avatar_url: str | None = Field(None, description="Avatar image URL")
    access_token: str = Field(..., description="Access token for subsequent requests")

    @classmethod
    def from_domain(cls, account: Account, access_token: str) -> "ProfileView":
        return cls(
            id=account.id,
            email=account.email,
            nickname=account.nickname,
            avatar_url=account.avatar_url,
            access_token=access_token,
        )


class DeletedAccountView(BaseModel):
    """Summary of a deleted account."""

    id: UUID
    email: str
    nickname: str
    oauth_provider: OAuthProvider | None = None
    oauth_id: str | None = None

    @classmethod
    def from_domain(cls, account: Account) -> "DeletedAccountView":
        return cls(
            id=account.id,
            email=account.email,
            nickname=account.nickname,
            oauth_provider=account.oauth_provider,
            oauth_id=account.oauth_id,
        )


class OtpIssued(BaseModel):
    """Result of sending an OTP."""

    otp_expires_at: datetime = Field(..., description="When the issued OTP stops being accepted")
