from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any
from uuid import UUID

import structlog
from pymongo.asynchronous.database import AsyncDatabase

from gatekeep.config import Config
from gatekeep.core.core import Core
from gatekeep.core.db import Transactions
from gatekeep.core.modules.account.models import (
    Account,
    AccountView,
    DeletedAccountView,
    OAuthProvider,
    OtpIssued,
    ProfileView,
)
from gatekeep.core.modules.file.models import FileUpload, StoredFile
from gatekeep.core.modules.file.service import file_id_from_name
from gatekeep.core.modules.mail.service import MailService
from gatekeep.core.modules.mail.templates import MailTemplate
from gatekeep.core.modules.oauth.models import OAuthProfile
from gatekeep.core.modules.oauth.service import OAuthService
from gatekeep.core.modules.session.models import SessionView
from gatekeep.core.pagination import CursorPage
from gatekeep.errors import (
    DuplicatedEmailError,
    DuplicatedNicknameError,
    InvalidTokenPayloadError,
    NotVerifiedOAuthAccountError,
)

logger = structlog.get_logger(__name__)


class App:
    """Facade for all use cases. Owns transaction boundaries and authenticates before delegating to Core.

    Every method takes the request correlation id and binds it onto its logger.
    """

    def __init__(
        self,
        config: Config,
        database: AsyncDatabase[dict[str, Any]] | None = None,
        transactions: Transactions | None = None,
        mailer: MailService | None = None,
        oauth: OAuthService | None = None,
    ) -> None:
        self._core = Core(config, database=database, transactions=transactions, mailer=mailer, oauth=oauth)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Application lifespan management - delegates to Core."""
        async with self._core.lifespan():
            yield

    # === Join & duplicate checks ===
    async def check_email(self, email: str, request_id: str = "") -> None:
        """Raise DuplicatedEmailError if the email is taken."""
        logger.debug("check_email", request_id=request_id)
        await self._core.services.account.check_duplicated(email=email)

    async def check_nickname(self, nickname: str, request_id: str = "") -> None:
        """Raise DuplicatedNicknameError if the nickname is taken."""
        logger.debug("check_nickname", request_id=request_id)
        await self._core.services.account.check_duplicated(nickname=nickname)

    async def join(self, email: str, nickname: str, request_id: str = "") -> AccountView:
        """Create an account and send the welcome mail. A mail failure rolls the account back."""
        log = logger.bind(request_id=request_id)
        await self._core.services.account.check_duplicated(email=email, nickname=nickname)

        async with self._core.transactions.transaction() as txn:
            account = await self._core.services.account.create_account(email, nickname, txn=txn)
            await self._core.mailer.send_mail(
                account.email, f"Welcome to {self._core.config.app_name}", MailTemplate.WELCOME, {"nickname": nickname}
            )

        log.info("account_joined", account_id=account.id)
        return AccountView.from_domain(account)

    # === Sign-in ===
    async def send_otp(self, email: str, request_id: str = "") -> OtpIssued:
        """Issue a one-time password and mail it. A mail failure discards the OTP."""
        log = logger.bind(request_id=request_id)
        account = await self._core.services.account.get_account_by_email(email)

        async with self._core.transactions.transaction() as txn:
            otp, otp_expires_at = await self._core.services.account.issue_otp(account, txn=txn)
            await self._core.mailer.send_mail(
                account.email,
                f"{self._core.config.app_name} sign-in code",
                MailTemplate.OTP,
                {"otp": otp, "ttl_minutes": self._core.config.otp_ttl_minutes},
            )

        log.info("otp_issued", account_id=account.id)
        return OtpIssued(otp_expires_at=otp_expires_at)

    async def sign_in(self, email: str, otp: str, request_id: str = "") -> ProfileView:
        """Exchange an email and OTP for a new access token."""
        log = logger.bind(request_id=request_id)
        account = await self._core.services.account.get_account_by_email(email)
        # The OTP is consumed outside the transaction so a failed attempt still burns it
        await self._core.services.account.validate_otp(account, otp)

        async with self._core.transactions.transaction() as txn:
            access_token = await self._core.services.session.create_session(
                account.id, account.email, account.salt, txn=txn
            )

        log.info("signed_in", account_id=account.id, method="otp")
        return ProfileView.from_domain(account, access_token)

    async def sign_in_with_token(self, access_token: str, request_id: str = "") -> ProfileView:
        """Validate a stored access token and return the profile it belongs to."""
        account = await self._authenticate(access_token, request_id)
        return ProfileView.from_domain(account, access_token)

    async def start_by_google(self, access_token: str, request_id: str = "") -> ProfileView:
        """Sign in with a Google access token, creating the account on first use."""
        profile = await self._core.oauth.verify_google_access_token(access_token)
        if not profile.email_verified:
            raise NotVerifiedOAuthAccountError
        if not profile.name or not profile.email:
            raise InvalidTokenPayloadError
        return await self._start_by_oauth(OAuthProvider.GOOGLE, profile, request_id)

    async def start_by_kakao(self, code: str, redirect_uri: str, request_id: str = "") -> ProfileView:
        """Sign in with a Kakao authorization code, creating the account on first use."""
        tokens = await self._core.oauth.exchange_kakao_code(code, redirect_uri)
        profile = self._core.oauth.decode_kakao_id_token(tokens.id_token)
        if not profile.email:
            raise InvalidTokenPayloadError
        return await self._start_by_oauth(OAuthProvider.KAKAO, profile, request_id)

    async def logout(self, access_token: str | None, request_id: str = "") -> None:
        """Revoke the session of an access token. Never fails."""
        log = logger.bind(request_id=request_id)
        if not access_token:
            return
        try:
            await self._core.services.account.revoke_access_token(access_token)
        except Exception:
            log.warning("logout_failed", exc_info=True)
            return
        log.info("logged_out")

    # === Account ===
    async def delete_account(self, access_token: str, request_id: str = "") -> DeletedAccountView:
        """Archive and delete the account with all its sessions, then mail a notice."""
        log = logger.bind(request_id=request_id)
        account = await self._authenticate(access_token, request_id)
        deleted = DeletedAccountView.from_domain(account)

        async with self._core.transactions.transaction() as txn:
            await self._core.services.archive.archive_account(account, txn=txn)
            await self._core.services.account.delete_account(account.id, txn=txn)
            await self._core.mailer.send_mail(
                account.email,
                f"Your {self._core.config.app_name} account was deleted",
                MailTemplate.ACCOUNT_DELETED,
                {"nickname": account.nickname},
            )

        log.info("account_deleted", account_id=account.id)
        return deleted

    async def get_profile(self, access_token: str, request_id: str = "") -> ProfileView:
        account = await self._authenticate(access_token, request_id)
        return ProfileView.from_domain(account, access_token)

    async def update_profile(
        self, access_token: str, nickname: str | None, avatar_url: str | None, request_id: str = ""
    ) -> ProfileView:
        """Update nickname and avatar. Omitted nickname keeps the current one."""
        log = logger.bind(request_id=request_id)
        account = await self._authenticate(access_token, request_id)
        nickname = nickname or account.nickname

        async with self._core.transactions.transaction() as txn:
            if nickname != account.nickname and await self._core.services.account.is_nickname_duplicated(
                nickname, txn=txn
            ):
                raise DuplicatedNicknameError
            updated = await self._core.services.account.update_profile(account.id, nickname, avatar_url, txn=txn)

        log.info("profile_updated", account_id=account.id)
        return ProfileView.from_domain(updated, access_token)

    # === Sessions & directory ===
    async def list_sessions(
        self,
        access_token: str,
        take: int = 20,
        next_cursor: str | None = None,
        previous_cursor: str | None = None,
        request_id: str = "",
    ) -> CursorPage[SessionView]:
        """Get live sessions of the signed-in account, newest first."""
        account = await self._authenticate(access_token, request_id)
        page = await self._core.services.session.list_sessions(account.id, take, next_cursor, previous_cursor)
        return CursorPage[SessionView](
            data=[SessionView.from_domain(s) for s in page.data],
            next_cursor=page.next_cursor,
            previous_cursor=page.previous_cursor,
        )

    async def revoke_session(self, access_token: str, session_id: UUID, request_id: str = "") -> None:
        """Sign out one session of the signed-in account."""
        log = logger.bind(request_id=request_id)
        account = await self._authenticate(access_token, request_id)
        signed_session = await self._core.services.session.get_session(account.id, session_id)
        await self._core.services.session.delete(signed_session.id)
        log.info("session_revoked", account_id=account.id, session_id=session_id)

    async def list_accounts(
        self,
        take: int = 20,
        next_cursor: str | None = None,
        previous_cursor: str | None = None,
        request_id: str = "",
    ) -> CursorPage[AccountView]:
        """Get public account directory ordered by nickname."""
        page = await self._core.services.account.list_accounts(take, next_cursor, previous_cursor)
        return CursorPage[AccountView](
            data=[AccountView.from_domain(a) for a in page.data],
            next_cursor=page.next_cursor,
            previous_cursor=page.previous_cursor,
        )

    # === Files ===
    async def upload_files(self, access_token: str, files: list[FileUpload], request_id: str = "") -> list[str]:
        """Store uploaded files and return their public URLs, in upload order."""
        log = logger.bind(request_id=request_id)
        account = await self._authenticate(access_token, request_id)

        async with self._core.transactions.transaction() as txn:
            details = await self._core.services.file.upload_files(account.id, files, txn=txn)

        log.info("files_uploaded", account_id=account.id, count=len(details))
        base_url = self._core.config.files_base_url.rstrip("/")
        return [f"{base_url}/{detail.filename}" for detail in details]

    async def get_file(self, file_name: str, request_id: str = "") -> StoredFile:
        """Resolve a public file name to the stored file. No sign-in needed."""
        logger.debug("get_file", request_id=request_id, file_name=file_name)
        return await self._core.services.file.get_stored_file(file_id_from_name(file_name))

    async def delete_file(self, access_token: str, file_name: str, request_id: str = "") -> None:
        """Delete a file uploaded by the signed-in account."""
        log = logger.bind(request_id=request_id)
        account = await self._authenticate(access_token, request_id)
        file_id = file_id_from_name(file_name)

        async with self._core.transactions.transaction() as txn:
            detail = await self._core.services.file.delete_upload_detail(account.id, file_id, txn=txn)
        self._core.services.file.remove_from_disk(detail)

        log.info("file_deleted", account_id=account.id, file_id=file_id)

    # === Private helpers ===
    async def _authenticate(self, access_token: str, request_id: str) -> Account:
        account = await self._core.services.account.validate_access_token(access_token)
        logger.debug("authenticated", request_id=request_id, account_id=account.id)
        return account

    async def _start_by_oauth(self, provider: OAuthProvider, profile: OAuthProfile, request_id: str) -> ProfileView:
        """Sign in the account linked to an OAuth identity, creating it on first use."""
        log = logger.bind(request_id=request_id)
        account_service = self._core.services.account

        async with self._core.transactions.transaction() as txn:
            account = await account_service.find_account_by_oauth(provider, profile.sub, txn=txn)
            if account is None:
                email = str(profile.email)
                if await account_service.is_email_duplicated(email, txn=txn):
                    raise DuplicatedEmailError
                nickname = await account_service.get_random_nickname(profile.name, txn=txn)
                account = await account_service.create_account(
                    email, nickname, oauth_provider=provider, oauth_id=profile.sub, avatar_url=profile.picture, txn=txn
                )
                log.info("account_joined", account_id=account.id, oauth_provider=provider)
            access_token = await self._core.services.session.create_session(
                account.id, account.email, account.salt, txn=txn
            )

        log.info("signed_in", account_id=account.id, method=provider)
        return ProfileView.from_domain(account, access_token)
