"""Tests for the access token codec."""

import jwt
import pytest

from gatekeep.core.token import InvalidTokenError, TokenClaims, TokenCodec

SECRET = "access-token-signing-secret-" * 3


@pytest.fixture
def codec():
    return TokenCodec(SECRET, "gatekeep")


@pytest.fixture
def claims():
    return TokenClaims(account_id="0b4b4c62-8d1b-4b8e-9a3e-4f1d2a6c9e11", email="alice@example.com")


class TestSign:
    def test_uses_hs512_and_issuer(self, codec, claims):
        token = codec.sign(claims)
        assert jwt.get_unverified_header(token)["alg"] == "HS512"
        payload = jwt.decode(token, options={"verify_signature": False})
        assert payload["iss"] == "gatekeep"
        assert payload["id"] == claims.account_id
        assert payload["email"] == "alice@example.com"

    def test_has_no_expiry_claim(self, codec, claims):
        """Expiry is tracked by the session ledger, not the token."""
        payload = jwt.decode(codec.sign(claims), options={"verify_signature": False})
        assert "exp" not in payload

    def test_two_grants_differ(self, codec):
        first = codec.sign(TokenClaims(account_id="a", email="a@example.com"))
        second = codec.sign(TokenClaims(account_id="a", email="a@example.com"))
        assert first != second

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            TokenCodec("", "gatekeep")


class TestVerify:
    def test_round_trip(self, codec, claims):
        assert codec.verify(codec.sign(claims)) == claims

    def test_wrong_secret(self, codec, claims):
        token = TokenCodec("other-" + SECRET, "gatekeep").sign(claims)
        with pytest.raises(InvalidTokenError):
            codec.verify(token)

    def test_wrong_issuer(self, codec, claims):
        token = TokenCodec(SECRET, "someone-else").sign(claims)
        with pytest.raises(InvalidTokenError):
            codec.verify(token)

    def test_missing_issuer(self, codec):
        token = jwt.encode({"id": "a", "email": "a@example.com"}, SECRET, algorithm="HS512")
        with pytest.raises(InvalidTokenError):
            codec.verify(token)

    def test_other_algorithm_rejected(self, codec):
        token = jwt.encode({"id": "a", "email": "a@example.com", "iss": "gatekeep"}, SECRET, algorithm="HS256")
        with pytest.raises(InvalidTokenError):
            codec.verify(token)

    def test_missing_email_claim(self, codec):
        token = jwt.encode({"id": "a", "iss": "gatekeep"}, SECRET, algorithm="HS512")
        with pytest.raises(InvalidTokenError):
            codec.verify(token)

    @pytest.mark.parametrize("token", ["", "not-a-token", "a.b.c"])
    def test_malformed(self, codec, token):
        with pytest.raises(InvalidTokenError):
            codec.verify(token)
