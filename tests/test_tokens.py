"""
tests/test_tokens.py -- JWT issue/verify and bcrypt helpers.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import bcrypt
import pytest
from jose import jwt

from auth.passwords import dummy_hash, hash_password, verify_password
from auth.tokens import create_access_token, decode_access_token
from core.config import get_settings


class TestAccessTokens:
    def test_round_trip_carries_identity(self):
        payload = decode_access_token(create_access_token(7, "seven@example.com", expire_seconds=60))
        assert payload["user_id"] == 7
        assert payload["sub"] == "seven@example.com"

    def test_tampered_token_rejected(self):
        token = create_access_token(7, "seven@example.com", expire_seconds=60)
        head, body, sig = token.split(".")
        tampered = ".".join([head, body, sig[:-2] + ("AA" if sig[-2:] != "AA" else "BB")])
        assert decode_access_token(tampered) is None

    def test_wrong_key_rejected(self):
        token = jwt.encode({"user_id": 7, "sub": "x"}, "z" * 32, algorithm="HS256")
        assert decode_access_token(token) is None

    def test_expired_token_rejected(self):
        expired = datetime.now(timezone.utc) - timedelta(seconds=5)
        token = jwt.encode(
            {"user_id": 7, "sub": "x", "exp": expired}, get_settings().secret_key, algorithm="HS256"
        )
        assert decode_access_token(token) is None

    def test_token_without_user_id_rejected(self):
        token = jwt.encode({"sub": "x"}, get_settings().secret_key, algorithm="HS256")
        assert decode_access_token(token) is None

    def test_garbage_rejected(self):
        assert decode_access_token("not.a.token") is None


class TestPasswords:
    def test_hash_uses_configured_cost(self):
        hashed = hash_password("open sesame")
        assert hashed != "open sesame"
        assert int(hashed.split("$")[2]) >= 12
        assert bcrypt.checkpw(b"open sesame", hashed.encode())

    def test_verify(self):
        hashed = hash_password("open sesame")
        assert verify_password("open sesame", hashed)
        assert not verify_password("open sesamE", hashed)

    def test_verify_malformed_hash_is_false(self):
        assert verify_password("anything", "not-a-bcrypt-hash") is False

    def test_dummy_hash_never_matches_and_is_stable(self):
        assert dummy_hash() is dummy_hash()
        assert not verify_password("", dummy_hash())

    def test_hash_refuses_input_over_72_bytes(self):
        # 40 characters but 80 bytes
        with pytest.raises(ValueError):
            hash_password("é" * 40)

    def test_verify_never_matches_beyond_72_bytes(self):
        exact = "é" * 36  # 72 bytes
        hashed = hash_password(exact)
        assert verify_password(exact, hashed)
        assert not verify_password(exact + "WRONG", hashed)
