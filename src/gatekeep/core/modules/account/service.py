from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

import structlog
from pymongo import ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from gatekeep.core.core import Service
from gatekeep.core.crypto import create_otp, create_salt, create_uuid, encrypt
from gatekeep.core.db import Txn
from gatekeep.core.modules.account.models import Account, OAuthProvider
from gatekeep.core.modules.account.nickname import create_random_nickname, nickname_prefix
from gatekeep.core.modules.session.models import SignedSession
from gatekeep.core.pagination import CursorPage, OrderDirection, cursor_paginate
from gatekeep.core.token import InvalidTokenError
from gatekeep.errors import (
    AccountNotFoundError,
    DuplicatedEmailError,
    DuplicatedNicknameError,
    ExpiredOtpError,
    InvalidOtpError,
    OtpNotFoundError,
    SignInRequiredError,
)
from gatekeep.utils import now

logger = structlog.get_logger(__name__)

# Attempts per suffix length when generating a free nickname: (suffix_length, attempts)
NICKNAME_ATTEMPTS = ((8, 8), (16, 8))


class AccountService(Service):
    """Owns account records and resolves access tokens to accounts."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("accounts")

    async def on_start(self) -> None:
        """Create indexes on startup."""
        await self._collection.create_index([("email", 1)], unique=True)
        await self._collection.create_index([("nickname", 1)], unique=True)
        await self._collection.create_index([("oauth_provider", 1), ("oauth_id", 1)])

    async def create_account(
        self,
        email: str,
        nickname: str,
        oauth_provider: OAuthProvider | None = None,
        oauth_id: str | None = None,
        avatar_url: str | None = None,
        txn: Txn = None,
    ) -> Account:
        """Create account with a fresh salt."""
        account = Account(
            email=email,
            nickname=nickname,
            salt=create_salt(),
            oauth_provider=oauth_provider,
            oauth_id=oauth_id,
            avatar_url=avatar_url,
        )
        try:
            await self._collection.insert_one(account.to_mongo(), session=txn)
        except DuplicateKeyError as e:
            raise _duplicated_error(e) from e
        logger.debug("account_created", account_id=account.id, oauth_provider=oauth_provider)
        return account

    async def get_account_by_id(self, account_id: UUID, txn: Txn = None) -> Account:
        doc = await self._collection.find_one({"_id": account_id}, session=txn)
        if doc is None:
            raise AccountNotFoundError
        return Account.model_validate(doc)

    async def get_account_by_email(self, email: str, txn: Txn = None) -> Account:
        doc = await self._collection.find_one({"email": email}, session=txn)
        if doc is None:
            raise AccountNotFoundError
        return Account.model_validate(doc)

    async def find_account_by_oauth(self, oauth_provider: OAuthProvider, oauth_id: str, txn: Txn = None) -> Account | None:
        doc = await self._collection.find_one({"oauth_provider": oauth_provider, "oauth_id": oauth_id}, session=txn)
        return None if doc is None else Account.model_validate(doc)

    async def is_email_duplicated(self, email: str, txn: Txn = None) -> bool:
        return await self._collection.count_documents({"email": email}, limit=1, session=txn) > 0

    async def is_nickname_duplicated(self, nickname: str, txn: Txn = None) -> bool:
        return await self._collection.count_documents({"nickname": nickname}, limit=1, session=txn) > 0

    async def check_duplicated(self, email: str | None = None, nickname: str | None = None) -> None:
        """Raise if the email or nickname is already taken.

        Raises:
            DuplicatedEmailError: If email is taken
            DuplicatedNicknameError: If nickname is taken
        """
        if email and await self.is_email_duplicated(email):
            raise DuplicatedEmailError
        if nickname and await self.is_nickname_duplicated(nickname):
            raise DuplicatedNicknameError

    async def get_random_nickname(self, name: str | None = None, txn: Txn = None) -> str:
        """Generate a nickname that is not taken yet.

        Tries a short random suffix first, then a longer one, then falls back to a UUID suffix.
        """
        prefix = nickname_prefix(name)
        for suffix_length, attempts in NICKNAME_ATTEMPTS:
            for _ in range(attempts):
                nickname = create_random_nickname(prefix, suffix_length)
                if not await self.is_nickname_duplicated(nickname, txn=txn):
                    return nickname
        logger.warning("random_nickname_exhausted", prefix=prefix)
        return prefix + create_uuid().replace("-", "")

    async def issue_otp(self, account: Account, txn: Txn = None) -> tuple[str, datetime]:
        """Issue a new OTP for the account, replacing any previous one.

        Returns the raw OTP (to be mailed) and its expiry.
        """
        otp = create_otp()
        otp_expires_at = now() + timedelta(minutes=self.core.config.otp_ttl_minutes)
        await self._collection.update_one(
            {"_id": account.id},
            {"$set": {"otp": encrypt(otp, account.salt), "otp_expires_at": otp_expires_at}},
            session=txn,
        )
        return otp, otp_expires_at

    async def validate_otp(self, account: Account, otp: str) -> None:
        """Consume the issued OTP and check the candidate against it.

        The stored OTP is taken and cleared in one atomic update, so an issued OTP
        is checked at most once even when sign-ins race. It is cleared whatever the outcome.

        Raises:
            OtpNotFoundError: If no OTP is issued
            ExpiredOtpError: If the OTP has expired
            InvalidOtpError: If the OTP does not match
        """
        issued = await self._collection.find_one_and_update(
            {"_id": account.id, "otp": {"$ne": None}},
            {"$set": {"otp": None, "otp_expires_at": None}},
            projection={"otp": 1, "otp_expires_at": 1},
            return_document=ReturnDocument.BEFORE,
        )
        if issued is None or issued.get("otp_expires_at") is None:
            raise OtpNotFoundError

        if issued["otp_expires_at"] < now():
            raise ExpiredOtpError
        if encrypt(otp, account.salt) != issued["otp"]:
            raise InvalidOtpError

    async def update_profile(self, account_id: UUID, nickname: str, avatar_url: str | None, txn: Txn = None) -> Account:
        """Update nickname and avatar URL, returning the updated account."""
        try:
            result = await self._collection.update_one(
                {"_id": account_id}, {"$set": {"nickname": nickname, "avatar_url": avatar_url}}, session=txn
            )
        except DuplicateKeyError as e:
            raise _duplicated_error(e) from e
        if result.matched_count == 0:
            raise AccountNotFoundError
        return await self.get_account_by_id(account_id, txn=txn)

    async def delete_account(self, account_id: UUID, txn: Txn = None) -> None:
        """Delete an account together with all of its sessions."""
        deleted_sessions = await self.core.services.session.delete_by_account(account_id, txn=txn)
        result = await self._collection.delete_one({"_id": account_id}, session=txn)
        if result.deleted_count == 0:
            raise AccountNotFoundError
        logger.debug("account_deleted", account_id=account_id, deleted_sessions=deleted_sessions)

    async def validate_access_token(self, access_token: str) -> Account:
        """Resolve an access token to its account and renew the session.

        Steps run strictly in order, each one a hard gate:
        verify token, resolve account by email claim, re-derive the token digest
        with the account salt, confirm the ledger row, renew its expiry.

        Raises:
            SignInRequiredError: If the token is invalid or has no live session
            AccountNotFoundError: If the token's account does not exist
        """
        account, signed_session = await self._authenticate(access_token)
        await self.core.services.session.renew(signed_session.id)
        return account

    async def revoke_access_token(self, access_token: str) -> None:
        """Delete the session backing an access token."""
        account, signed_session = await self._authenticate(access_token)
        await self.core.services.session.delete(signed_session.id)
        logger.debug("session_revoked", account_id=account.id, session_id=signed_session.id)

    async def list_accounts(
        self, take: int = 20, next_cursor: str | None = None, previous_cursor: str | None = None
    ) -> CursorPage[Account]:
        """Get accounts ordered by nickname."""
        return await cursor_paginate(
            self._collection,
            {},
            Account,
            keys=["nickname", "_id"],
            direction=OrderDirection.ASC,
            take=take,
            cursor_builder=lambda a: [a.nickname, str(a.id)],
            cursor_parser=lambda values: [str(values[0]), UUID(values[1])],
            next_cursor=next_cursor,
            previous_cursor=previous_cursor,
        )

    async def _authenticate(self, access_token: str) -> tuple[Account, SignedSession]:
        try:
            claims = self.core.token_codec.verify(access_token)
        except InvalidTokenError as e:
            logger.info("access_token_rejected", reason=str(e))
            raise SignInRequiredError from e

        account = await self.get_account_by_email(claims.email)
        if str(account.id) != claims.account_id:
            # Email now belongs to a different account than the one the token was issued to
            raise SignInRequiredError

        encrypted_token = encrypt(access_token, account.salt)
        signed_session = await self.core.services.session.find_session(account.id, encrypted_token)
        return account, signed_session


def _duplicated_error(error: DuplicateKeyError) -> DuplicatedEmailError | DuplicatedNicknameError:
    """Map a unique index violation to the conflicting field."""
    key_pattern = (error.details or {}).get("keyPattern", {})
    if "nickname" in key_pattern:
        return DuplicatedNicknameError()
    return DuplicatedEmailError()
