from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

import structlog
from pymongo.asynchronous.database import AsyncDatabase

from gatekeep.core.core import Service
from gatekeep.core.crypto import encrypt
from gatekeep.core.db import Txn
from gatekeep.core.modules.session.models import AccessToken, SignedSession
from gatekeep.core.pagination import CursorPage, OrderDirection, cursor_paginate
from gatekeep.core.token import TokenClaims
from gatekeep.errors import NotFoundError, SessionNotFoundError
from gatekeep.utils import now

logger = structlog.get_logger(__name__)


class SessionService(Service):
    """Ledger of issued access tokens with sliding expiry."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("signed_sessions")

    async def on_start(self) -> None:
        """Create indexes on startup."""
        # One row per issued token, also the lookup path for authentication
        await self._collection.create_index([("account_id", 1), ("encrypted_token", 1)], unique=True)
        # Listing sessions of an account, newest first
        await self._collection.create_index([("account_id", 1), ("created_at", -1), ("_id", -1)])
        # Reaper for sessions that were not used for a full TTL
        await self._collection.create_index([("expires_at", 1)], expireAfterSeconds=0)

    @property
    def session_ttl(self) -> timedelta:
        return timedelta(days=self.core.config.session_ttl_days)

    async def create_session(self, account_id: UUID, email: str, salt: str, txn: Txn = None) -> AccessToken:
        """Issue a new access token and record its digest in the ledger.

        Returns the raw token; it is never stored.
        """
        access_token = AccessToken(self.core.token_codec.sign(TokenClaims(account_id=str(account_id), email=email)))
        signed_session = SignedSession(
            account_id=account_id,
            encrypted_token=encrypt(access_token, salt),
            expires_at=now() + self.session_ttl,
        )
        await self._collection.insert_one(signed_session.to_mongo(), session=txn)
        logger.debug("session_created", account_id=account_id, session_id=signed_session.id)
        return access_token

    async def find_session(self, account_id: UUID, encrypted_token: str, txn: Txn = None) -> SignedSession:
        """Find the live session matching an encrypted token.

        Raises:
            SessionNotFoundError: If no unexpired row matches
        """
        doc = await self._collection.find_one(
            {"account_id": account_id, "encrypted_token": encrypted_token, "expires_at": {"$gt": now()}},
            session=txn,
        )
        if doc is None:
            raise SessionNotFoundError
        return SignedSession.model_validate(doc)

    async def renew(self, session_id: UUID, txn: Txn = None) -> datetime:
        """Extend the sliding expiry of a session, returning the new expiry."""
        expires_at = now() + self.session_ttl
        await self._collection.update_one({"_id": session_id}, {"$set": {"expires_at": expires_at}}, session=txn)
        return expires_at

    async def delete(self, session_id: UUID, txn: Txn = None) -> None:
        """Delete a session. Deleting a missing session is not an error."""
        await self._collection.delete_one({"_id": session_id}, session=txn)

    async def delete_by_account(self, account_id: UUID, txn: Txn = None) -> int:
        """Delete all sessions of an account and return count of deleted sessions."""
        result = await self._collection.delete_many({"account_id": account_id}, session=txn)
        return result.deleted_count

    async def get_session(self, account_id: UUID, session_id: UUID) -> SignedSession:
        """Get a session owned by account_id.

        Raises:
            NotFoundError: If the session does not exist or belongs to another account
        """
        doc = await self._collection.find_one({"_id": session_id, "account_id": account_id})
        if doc is None:
            raise NotFoundError("Session not found")
        return SignedSession.model_validate(doc)

    async def list_sessions(
        self,
        account_id: UUID,
        take: int = 20,
        next_cursor: str | None = None,
        previous_cursor: str | None = None,
    ) -> CursorPage[SignedSession]:
        """Get live sessions of an account, newest first."""
        return await cursor_paginate(
            self._collection,
            {"account_id": account_id, "expires_at": {"$gt": now()}},
            SignedSession,
            keys=["created_at", "_id"],
            direction=OrderDirection.DESC,
            take=take,
            cursor_builder=lambda s: [s.created_at.isoformat(), str(s.id)],
            cursor_parser=lambda values: [datetime.fromisoformat(values[0]), UUID(values[1])],
            next_cursor=next_cursor,
            previous_cursor=previous_cursor,
        )
