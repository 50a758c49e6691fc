"""
Tests for password hashing, tokens and reset codes.
"""

import pytest
from datetime import timedelta
from jose import jwt

from mufessir.config import get_settings
from mufessir.services.auth import (
    TokenError,
    create_access_token,
    generate_reset_code,
    get_user_id_from_token,
    hash_password,
    hash_reset_code,
    verify_password,
    verify_reset_code,
    verify_token,
)


class TestPasswords:

    @pytest.mark.unit
    def test_hash_and_verify(self):
        hashed = hash_password("CorrectHorse1")
        assert hashed != "CorrectHorse1"
        assert verify_password("CorrectHorse1", hashed)
        assert not verify_password("WrongHorse1", hashed)

    @pytest.mark.unit
    def test_malformed_hash_is_rejected(self):
        assert not verify_password("anything", "not-a-bcrypt-hash")
        assert not verify_password("anything", "")


class TestTokens:

    @pytest.mark.unit
    def test_round_trip(self):
        token = create_access_token("user-1", "a@b.test")
        payload = verify_token(token)
        assert payload["sub"] == "user-1"
        assert payload["email"] == "a@b.test"
        assert get_user_id_from_token(token) == "user-1"

    @pytest.mark.unit
    def test_default_lifetime_is_seven_days(self):
        payload = verify_token(create_access_token("user-1", "a@b.test"))
        assert payload["exp"] - payload["iat"] == int(timedelta(days=7).total_seconds())

    @pytest.mark.unit
    def test_expired_token(self):
        token = create_access_token("user-1", "a@b.test", expires_delta=timedelta(seconds=-10))
        with pytest.raises(TokenError, match="expired"):
            verify_token(token)

    @pytest.mark.unit
    def test_wrong_secret(self):
        token = jwt.encode({"sub": "user-1"}, "another-secret", algorithm="HS256")
        with pytest.raises(TokenError):
            verify_token(token)

    @pytest.mark.unit
    def test_missing_subject(self):
        settings = get_settings()
        token = jwt.encode({"email": "a@b.test"}, settings.jwt_secret, algorithm=settings.jwt_algorithm)
        with pytest.raises(TokenError, match="user ID"):
            verify_token(token)

    @pytest.mark.unit
    def test_garbage_token(self):
        with pytest.raises(TokenError):
            verify_token("not.a.token")


class TestResetCodes:

    @pytest.mark.unit
    def test_codes_are_six_digits(self):
        for _ in range(20):
            code = generate_reset_code()
            assert len(code) == 6
            assert code.isdigit()

    @pytest.mark.unit
    def test_code_hash_round_trip(self):
        hashed = hash_reset_code("012345")
        assert verify_reset_code("012345", hashed)
        assert not verify_reset_code("012346", hashed)
