"""
Tests for the session token codec.
"""

import pytest
from jose import jwt

from service_access.app.tokens.codec import TokenCodec, TokenFailure, TokenPurpose


ACCESS_SECRET = "access-secret"
REFRESH_SECRET = "refresh-secret"


class TestTokenCodec:
    """Test cases for TokenCodec."""

    @pytest.fixture
    def codec(self, clock):
        return TokenCodec(
            ACCESS_SECRET,
            REFRESH_SECRET,
            access_ttl_seconds=3600,
            refresh_ttl_seconds=7200,
            clock=clock,
        )

    def test_access_token_round_trip(self, codec):
        token = codec.issue("acct-1", TokenPurpose.ACCESS)

        result = codec.verify(token, TokenPurpose.ACCESS)

        assert result.ok
        assert result.account_id == "acct-1"

    def test_refresh_token_round_trip(self, codec):
        token = codec.issue("acct-1", TokenPurpose.REFRESH)

        result = codec.verify(token, TokenPurpose.REFRESH)

        assert result.ok
        assert result.account_id == "acct-1"

    def test_claims_carry_purpose_and_expiry(self, codec, clock):
        token = codec.issue("acct-1", TokenPurpose.ACCESS)
        claims = jwt.get_unverified_claims(token)

        issued_at = int(clock().timestamp())
        assert claims["sub"] == "acct-1"
        assert claims["type"] == "access"
        assert claims["iat"] == issued_at
        assert claims["exp"] == issued_at + 3600

    def test_refresh_token_on_access_path_is_wrong_purpose(self, codec):
        token = codec.issue("acct-1", TokenPurpose.REFRESH)

        result = codec.verify(token, TokenPurpose.ACCESS)

        assert not result.ok
        assert result.failure is TokenFailure.WRONG_PURPOSE

    def test_access_token_on_refresh_path_is_wrong_purpose(self, codec):
        token = codec.issue("acct-1", TokenPurpose.ACCESS)

        assert codec.verify(token, TokenPurpose.REFRESH).failure is TokenFailure.WRONG_PURPOSE

    def test_valid_one_second_before_expiry(self, codec, clock):
        token = codec.issue("acct-1", TokenPurpose.ACCESS)
        clock.advance(seconds=3599)

        assert codec.verify(token, TokenPurpose.ACCESS).ok

    def test_expired_at_expiry(self, codec, clock):
        token = codec.issue("acct-1", TokenPurpose.ACCESS)
        clock.advance(seconds=3600)

        result = codec.verify(token, TokenPurpose.ACCESS)

        assert result.failure is TokenFailure.EXPIRED

    def test_refresh_token_outlives_access_token(self, codec, clock):
        pair = codec.issue_pair("acct-1")
        clock.advance(seconds=5000)

        assert codec.verify(pair.access_token, TokenPurpose.ACCESS).failure is TokenFailure.EXPIRED
        assert codec.verify(pair.refresh_token, TokenPurpose.REFRESH).ok
        assert pair.expires_in == 3600

    def test_tampered_signature_is_malformed(self, codec):
        token = codec.issue("acct-1", TokenPurpose.ACCESS)
        header, payload, signature = token.split(".")
        tampered = ".".join([header, payload, signature[::-1]])

        assert codec.verify(tampered, TokenPurpose.ACCESS).failure is TokenFailure.MALFORMED

    def test_token_signed_with_foreign_key_is_malformed(self, codec, clock):
        now = int(clock().timestamp())
        token = jwt.encode(
            {"sub": "acct-1", "type": "access", "iat": now, "exp": now + 60},
            "someone-else",
            algorithm="HS256",
        )

        assert codec.verify(token, TokenPurpose.ACCESS).failure is TokenFailure.MALFORMED

    def test_refresh_token_signed_with_access_key_is_malformed(self, codec, clock):
        now = int(clock().timestamp())
        token = jwt.encode(
            {"sub": "acct-1", "type": "refresh", "iat": now, "exp": now + 60},
            ACCESS_SECRET,
            algorithm="HS256",
        )

        assert codec.verify(token, TokenPurpose.REFRESH).failure is TokenFailure.MALFORMED

    @pytest.mark.parametrize("claims", [
        {"sub": "acct-1"},
        {"sub": "acct-1", "type": "admin"},
        {"type": "access"},
        {"sub": "", "type": "access"},
    ])
    def test_structurally_wrong_claims_are_malformed(self, codec, clock, claims):
        now = int(clock().timestamp())
        token = jwt.encode(dict(claims, iat=now, exp=now + 60), ACCESS_SECRET, algorithm="HS256")

        assert codec.verify(token, TokenPurpose.ACCESS).failure is TokenFailure.MALFORMED

    @pytest.mark.parametrize("token", ["", None, "not-a-token", "a.b.c"])
    def test_garbage_is_malformed(self, codec, token):
        assert codec.verify(token, TokenPurpose.ACCESS).failure is TokenFailure.MALFORMED

    def test_secrets_must_differ(self):
        with pytest.raises(ValueError):
            TokenCodec("same", "same")
