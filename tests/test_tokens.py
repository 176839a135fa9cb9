"""Tests for the token codec"""
import base64
import json
from datetime import timedelta

import jwt
import pytest

from utils.exceptions import InvalidToken, TokenExpired
from utils.tokens import TokenCodec


def _b64(data: dict) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def test_secrets_must_differ(clock):
    with pytest.raises(ValueError):
        TokenCodec("same", "same", timedelta(seconds=60), timedelta(days=7), clock=clock)


def test_secrets_must_be_set(clock):
    with pytest.raises(ValueError):
        TokenCodec("", "refresh", timedelta(seconds=60), timedelta(days=7), clock=clock)


def test_access_token_round_trip(codec, clock):
    token, expires_at = codec.issue_access("u1", "u1@example.com")
    claims = codec.verify_access(token)

    assert claims.principal_id == "u1"
    assert claims.handle == "u1@example.com"
    assert claims.issued_at == clock.now
    assert claims.expires_at == expires_at == clock.now + timedelta(seconds=60)


def test_refresh_token_round_trip(codec, clock):
    token, expires_at = codec.issue_refresh("u1", "session-1")
    claims = codec.verify_refresh(token)

    assert claims.principal_id == "u1"
    assert claims.session_id == "session-1"
    assert claims.expires_at == expires_at == clock.now + timedelta(days=7)


def test_access_tokens_in_the_same_second_differ(codec):
    first, _ = codec.issue_access("u1", "u1@example.com")
    second, _ = codec.issue_access("u1", "u1@example.com")
    assert first != second


def test_token_classes_are_not_interchangeable(codec):
    """A refresh token never passes as an access token, and vice versa"""
    access, _ = codec.issue_access("u1", "u1@example.com")
    refresh, _ = codec.issue_refresh("u1", "session-1")

    with pytest.raises(InvalidToken):
        codec.verify_access(refresh)
    with pytest.raises(InvalidToken):
        codec.verify_refresh(access)


def test_type_claim_is_checked_even_with_the_right_key(codec, clock):
    now = int(clock.now.timestamp())
    forged = jwt.encode(
        {"sub": "u1", "jti": "x", "typ": "refresh", "iat": now, "exp": now + 60, "email": "u1@example.com"},
        "unit-access-secret",
        algorithm="HS256",
    )
    with pytest.raises(InvalidToken):
        codec.verify_access(forged)


def test_tampered_signature_is_rejected(codec):
    token, _ = codec.issue_access("u1", "u1@example.com")
    header, payload, signature = token.split(".")
    tampered_payload = _b64({"sub": "admin", "email": "admin@example.com"})

    with pytest.raises(InvalidToken):
        codec.verify_access(f"{header}.{tampered_payload}.{signature}")
    with pytest.raises(InvalidToken):
        codec.verify_access(f"{header}.{payload}.{signature[::-1]}")


def test_other_algorithms_are_rejected(codec, clock):
    now = int(clock.now.timestamp())
    claims = {"sub": "u1", "jti": "x", "typ": "access", "iat": now, "exp": now + 60, "email": "u1@example.com"}

    hs512 = jwt.encode(claims, "unit-access-secret", algorithm="HS512")
    with pytest.raises(InvalidToken):
        codec.verify_access(hs512)

    unsigned = f"{_b64({'alg': 'none', 'typ': 'JWT'})}.{_b64(claims)}."
    with pytest.raises(InvalidToken):
        codec.verify_access(unsigned)


def test_missing_claims_are_rejected(codec, clock):
    now = int(clock.now.timestamp())
    no_jti = jwt.encode(
        {"sub": "u1", "typ": "refresh", "iat": now, "exp": now + 60},
        "unit-refresh-secret",
        algorithm="HS256",
    )
    with pytest.raises(InvalidToken):
        codec.verify_refresh(no_jti)


@pytest.mark.parametrize("garbage", ["", "not-a-jwt", "a.b.c", None, 42])
def test_garbage_is_rejected(codec, garbage):
    with pytest.raises(InvalidToken):
        codec.verify_access(garbage)
    with pytest.raises(InvalidToken):
        codec.verify_refresh(garbage)


def test_access_token_expiry_follows_the_clock(codec, clock):
    """TTL 60s: valid after 59s, expired after 61s"""
    token, _ = codec.issue_access("u1", "u1@example.com")

    clock.advance(59)
    assert codec.verify_access(token).principal_id == "u1"

    clock.advance(2)
    with pytest.raises(TokenExpired):
        codec.verify_access(token)


def test_expired_is_an_invalid_token(codec, clock):
    token, _ = codec.issue_refresh("u1", "session-1")
    clock.advance(timedelta(days=7).total_seconds())
    with pytest.raises(InvalidToken):
        codec.verify_refresh(token)


def test_leeway_tolerates_small_clock_skew(clock):
    codec = TokenCodec("a-secret", "r-secret", timedelta(seconds=60), timedelta(days=7), clock=clock, leeway=5)
    token, _ = codec.issue_access("u1", "u1@example.com")

    clock.advance(61)
    codec.verify_access(token)

    clock.advance(5)
    with pytest.raises(TokenExpired):
        codec.verify_access(token)
