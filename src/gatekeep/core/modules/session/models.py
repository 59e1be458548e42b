"""Signed session ledger models."""

from datetime import datetime
from typing import NewType
from uuid import UUID

from pydantic import BaseModel, Field

from gatekeep.core.db import MongoModel
from gatekeep.utils import now

AccessToken = NewType("AccessToken", str)


class SignedSession(MongoModel):
    """One live bearer-token grant of an account.

    Only the token digest (encrypted with the account salt) is stored.
    Indexed on (account_id, encrypted_token) - unique, expires_at (TTL).
    """

    account_id: UUID
    encrypted_token: str
    expires_at: datetime
    created_at: datetime = Field(default_factory=now)


class SessionView(BaseModel):
    """Signed session information (API representation)."""

    id: UUID = Field(..., description="Session ID")
    created_at: datetime = Field(..., description="When the session was signed in")
    expires_at: datetime = Field(..., description="Sliding expiry, extended on every use")

    @classmethod
    def from_domain(cls, session: SignedSession) -> "SessionView":
        return cls(id=session.id, created_at=session.created_at, expires_at=session.expires_at)
