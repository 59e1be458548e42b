"""Tests for cursor encoding and decoding."""

import base64
import json
import re

import pytest

from gatekeep.core.pagination import decode_cursor, encode_cursor
from gatekeep.errors import InvalidCursorError


def _b64(raw: str) -> str:
    return base64.urlsafe_b64encode(raw.encode()).decode()


class TestEncodeCursor:
    def test_output_is_url_safe(self):
        cursor = encode_cursor(["벨루가1a2b3c4d", "0b4b4c62-8d1b-4b8e-9a3e-4f1d2a6c9e11"])
        assert re.fullmatch(r"[A-Za-z0-9_=-]+", cursor)

    def test_payload_is_uri_encoded_json(self):
        """The base64 payload is the URI-encoded JSON array."""
        cursor = encode_cursor(["a b", 1])
        assert base64.urlsafe_b64decode(cursor).decode() == "%5B%22a%20b%22%2C1%5D"


class TestDecodeCursor:
    @pytest.mark.parametrize(
        "values",
        [
            ("2025-01-01T00:00:00+00:00", "0b4b4c62-8d1b-4b8e-9a3e-4f1d2a6c9e11"),
            ("귀여운벨루가", 42),
            ("emoji 🐳", None, True, 1.5),
            (),
        ],
    )
    def test_round_trip(self, values):
        assert decode_cursor(encode_cursor(values)) == values

    @pytest.mark.parametrize("cursor", ["@@@", "abc", "%%%%"])
    def test_invalid_base64(self, cursor):
        with pytest.raises(InvalidCursorError):
            decode_cursor(cursor)

    def test_invalid_uri_escape(self):
        """Percent escapes must decode to valid UTF-8."""
        with pytest.raises(InvalidCursorError):
            decode_cursor(_b64("%FF%FE"))

    def test_invalid_json(self):
        with pytest.raises(InvalidCursorError):
            decode_cursor(_b64("%5Bnot-json"))

    @pytest.mark.parametrize("payload", [{"a": 1}, "text", 42, None])
    def test_not_an_array(self, payload):
        cursor = _b64(json.dumps(payload))
        with pytest.raises(InvalidCursorError):
            decode_cursor(cursor)
