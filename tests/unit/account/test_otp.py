"""Tests for one-time password issuance and sign-in."""

import asyncio
import smtplib
from datetime import timedelta

import pytest

from gatekeep.core.crypto import encrypt
from gatekeep.core.modules.mail.templates import MailTemplate
from gatekeep.errors import AccountNotFoundError, ExpiredOtpError, InvalidOtpError, OtpNotFoundError
from gatekeep.utils import now


@pytest.fixture
def accounts(database):
    return database.get_collection("accounts")


class TestSendOtp:
    @pytest.mark.asyncio
    async def test_stores_encrypted_otp_and_mails_raw_one(self, app, accounts, outbox):
        await app.join("alice@example.com", "alice")
        issued = await app.send_otp("alice@example.com")

        mail = outbox.last(MailTemplate.OTP)
        otp = mail.params["otp"]
        [doc] = accounts.docs
        assert doc["otp"] == encrypt(otp, doc["salt"])
        assert doc["otp_expires_at"] == issued.otp_expires_at
        assert otp in mail.html
        assert mail.to == "alice@example.com"

    @pytest.mark.asyncio
    async def test_otp_ttl_is_three_minutes(self, app):
        await app.join("alice@example.com", "alice")
        before = now()
        issued = await app.send_otp("alice@example.com")
        assert before + timedelta(minutes=3) <= issued.otp_expires_at <= now() + timedelta(minutes=3)

    @pytest.mark.asyncio
    async def test_unknown_email(self, app):
        with pytest.raises(AccountNotFoundError):
            await app.send_otp("ghost@example.com")

    @pytest.mark.asyncio
    async def test_mail_failure_discards_otp(self, app, accounts, outbox):
        await app.join("alice@example.com", "alice")
        outbox.fail = True
        with pytest.raises(smtplib.SMTPException):
            await app.send_otp("alice@example.com")
        assert accounts.docs[0]["otp"] is None

    @pytest.mark.asyncio
    async def test_new_otp_replaces_previous(self, app, outbox):
        await app.join("alice@example.com", "alice")
        await app.send_otp("alice@example.com")
        first = outbox.sent[-1].params["otp"]
        await app.send_otp("alice@example.com")
        second = outbox.sent[-1].params["otp"]

        assert first != second
        with pytest.raises(InvalidOtpError):
            await app.sign_in("alice@example.com", first)


class TestSignIn:
    @pytest.mark.asyncio
    async def test_correct_otp(self, app, core, outbox):
        await app.join("alice@example.com", "alice")
        await app.send_otp("alice@example.com")

        profile = await app.sign_in("alice@example.com", outbox.sent[-1].params["otp"])

        assert profile.email == "alice@example.com"
        assert profile.nickname == "alice"
        account = await core.services.account.validate_access_token(profile.access_token)
        assert account.id == profile.id

    @pytest.mark.asyncio
    async def test_otp_is_single_use(self, app, accounts, outbox):
        await app.join("alice@example.com", "alice")
        await app.send_otp("alice@example.com")
        otp = outbox.sent[-1].params["otp"]

        await app.sign_in("alice@example.com", otp)

        assert accounts.docs[0]["otp"] is None
        with pytest.raises(OtpNotFoundError):
            await app.sign_in("alice@example.com", otp)

    @pytest.mark.asyncio
    async def test_no_otp_issued(self, app):
        await app.join("alice@example.com", "alice")
        with pytest.raises(OtpNotFoundError):
            await app.sign_in("alice@example.com", "ABCDEF0123")

    @pytest.mark.asyncio
    async def test_wrong_otp_clears_issued_one(self, app, accounts, outbox):
        """A failed attempt burns the OTP; the right one no longer works afterwards."""
        await app.join("alice@example.com", "alice")
        await app.send_otp("alice@example.com")
        otp = outbox.sent[-1].params["otp"]

        with pytest.raises(InvalidOtpError):
            await app.sign_in("alice@example.com", "WRONG00000")

        assert accounts.docs[0]["otp"] is None
        with pytest.raises(OtpNotFoundError):
            await app.sign_in("alice@example.com", otp)

    @pytest.mark.asyncio
    async def test_expired_otp(self, app, accounts, outbox):
        await app.join("alice@example.com", "alice")
        await app.send_otp("alice@example.com")
        otp = outbox.sent[-1].params["otp"]
        accounts.docs[0]["otp_expires_at"] = now() - timedelta(seconds=1)

        with pytest.raises(ExpiredOtpError):
            await app.sign_in("alice@example.com", otp)
        assert accounts.docs[0]["otp"] is None
        assert accounts.docs[0]["otp_expires_at"] is None

    @pytest.mark.asyncio
    async def test_unknown_email(self, app):
        with pytest.raises(AccountNotFoundError):
            await app.sign_in("ghost@example.com", "ABCDEF0123")

    @pytest.mark.asyncio
    async def test_each_sign_in_creates_a_session(self, app, database, outbox):
        await app.join("alice@example.com", "alice")
        for _ in range(2):
            await app.send_otp("alice@example.com")
            await app.sign_in("alice@example.com", outbox.sent[-1].params["otp"])
        assert len(database.get_collection("signed_sessions").docs) == 2


class TestValidateOtp:
    @pytest.mark.asyncio
    async def test_stale_account_copies_consume_otp_once(self, app, core, outbox):
        """Two sign-ins that loaded the account before either checked the OTP: only one passes."""
        await app.join("alice@example.com", "alice")
        await app.send_otp("alice@example.com")
        otp = outbox.sent[-1].params["otp"]
        account_service = core.services.account
        first = await account_service.get_account_by_email("alice@example.com")
        second = await account_service.get_account_by_email("alice@example.com")

        await account_service.validate_otp(first, otp)

        with pytest.raises(OtpNotFoundError):
            await account_service.validate_otp(second, otp)

    @pytest.mark.asyncio
    async def test_concurrent_sign_ins_with_one_otp(self, app, database, outbox):
        await app.join("alice@example.com", "alice")
        await app.send_otp("alice@example.com")
        otp = outbox.sent[-1].params["otp"]

        results = await asyncio.gather(
            app.sign_in("alice@example.com", otp), app.sign_in("alice@example.com", otp), return_exceptions=True
        )

        assert sum(isinstance(result, OtpNotFoundError) for result in results) == 1
        assert len(database.get_collection("signed_sessions").docs) == 1
