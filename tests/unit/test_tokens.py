"""Unit tests for token signing and verification."""

import base64
import json
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt
from pydantic import ValidationError

from src.kernel.identity.clock import FrozenClock
from src.kernel.identity.errors import (
    InvalidSignature,
    MalformedToken,
    TokenExpired,
    TokenNotYetValid,
)
from src.kernel.identity.tokens import TokenClaims, TokenCodec

SECRET = "codec-test-secret"


def _b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _unb64(segment: str) -> bytes:
    return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))


def _flip_signature_byte(token: str) -> str:
    header, payload, signature = token.split(".")
    raw = bytearray(_unb64(signature))
    raw[0] ^= 0x01
    return ".".join([header, payload, _b64(bytes(raw))])


@pytest.fixture
def claims(clock: FrozenClock) -> TokenClaims:
    return TokenClaims.issue(
        issuer="test-issuer",
        subject="7a3b1f0e-2c4d-4e5f-8a9b-0c1d2e3f4a5b",
        now=clock.now(),
        lifetime=timedelta(minutes=15),
    )


class TestTokenClaims:
    """Tests for the claims model."""

    def test_issue_sets_window(self, clock: FrozenClock):
        claims = TokenClaims.issue("iss", "sub", clock.now(), timedelta(hours=1))

        assert claims.iat == clock.now()
        assert claims.nbf == claims.iat
        assert claims.exp - claims.iat == timedelta(hours=1)

    def test_issue_truncates_to_seconds(self):
        now = datetime(2026, 1, 1, 0, 0, 0, 987654, tzinfo=timezone.utc)
        claims = TokenClaims.issue("iss", "sub", now, timedelta(minutes=1))

        assert claims.iat.microsecond == 0

    @pytest.mark.parametrize("lifetime", [timedelta(0), timedelta(seconds=-1)])
    def test_exp_must_follow_iat(self, clock: FrozenClock, lifetime: timedelta):
        with pytest.raises(ValidationError):
            TokenClaims.issue("iss", "sub", clock.now(), lifetime)

    def test_naive_datetimes_are_utc(self):
        claims = TokenClaims(
            iss="iss",
            sub="sub",
            iat=datetime(2026, 1, 1, 12, 0),
            nbf=datetime(2026, 1, 1, 12, 0),
            exp=datetime(2026, 1, 1, 13, 0),
        )

        assert claims.iat.tzinfo is not None
        assert claims.to_payload()["iat"] == int(datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc).timestamp())


class TestTokenCodec:
    """Tests for TokenCodec.sign / TokenCodec.verify."""

    def test_round_trip(self, codec: TokenCodec, claims: TokenClaims):
        token = codec.sign(claims, SECRET)

        assert codec.verify(token, SECRET) == claims

    def test_compact_url_safe_encoding(self, codec: TokenCodec, claims: TokenClaims):
        token = codec.sign(claims, SECRET)
        segments = token.split(".")

        assert len(segments) == 3
        for segment in segments:
            assert segment
            assert set(segment) <= set(
                "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"
            )
        assert json.loads(_unb64(segments[0]))["alg"] == "HS256"
        assert json.loads(_unb64(segments[1]))["sub"] == claims.sub

    def test_sign_is_deterministic(self, codec: TokenCodec, claims: TokenClaims):
        assert codec.sign(claims, SECRET) == codec.sign(claims, SECRET)

    def test_payload_is_readable_but_secret_is_not_embedded(self, codec: TokenCodec, claims: TokenClaims):
        token = codec.sign(claims, SECRET)

        assert SECRET not in token
        assert SECRET.encode() not in _unb64(token.split(".")[1])

    def test_altered_signature_byte(self, codec: TokenCodec, claims: TokenClaims):
        token = _flip_signature_byte(codec.sign(claims, SECRET))

        with pytest.raises(InvalidSignature):
            codec.verify(token, SECRET)

    def test_altered_payload(self, codec: TokenCodec, claims: TokenClaims):
        header, payload, signature = codec.sign(claims, SECRET).split(".")
        forged = json.loads(_unb64(payload))
        forged["sub"] = "someone-else"
        token = ".".join([header, _b64(json.dumps(forged).encode()), signature])

        with pytest.raises(InvalidSignature):
            codec.verify(token, SECRET)

    def test_different_secret(self, codec: TokenCodec, claims: TokenClaims):
        token = codec.sign(claims, SECRET)

        with pytest.raises(InvalidSignature):
            codec.verify(token, "another-secret")

    def test_before_not_before(self, clock: FrozenClock, claims: TokenClaims):
        token = TokenCodec(clock=clock).sign(claims, SECRET)
        early = TokenCodec(clock=FrozenClock(claims.nbf - timedelta(seconds=1)))

        with pytest.raises(TokenNotYetValid):
            early.verify(token, SECRET)

    def test_valid_until_just_before_expiry(self, codec: TokenCodec, clock: FrozenClock, claims: TokenClaims):
        token = codec.sign(claims, SECRET)

        clock.current = claims.exp - timedelta(seconds=1)
        assert codec.verify(token, SECRET) == claims

    def test_expired_at_exp(self, codec: TokenCodec, clock: FrozenClock, claims: TokenClaims):
        token = codec.sign(claims, SECRET)

        clock.current = claims.exp
        with pytest.raises(TokenExpired):
            codec.verify(token, SECRET)

    def test_expired_after_exp(self, codec: TokenCodec, clock: FrozenClock, claims: TokenClaims):
        token = codec.sign(claims, SECRET)

        clock.advance(timedelta(days=1))
        with pytest.raises(TokenExpired):
            codec.verify(token, SECRET)

    @pytest.mark.parametrize("token", ["", "garbage", "a.b", "a.b.c", "a.b.c.d", "!!!.???.***", "é.é.é"])
    def test_malformed(self, codec: TokenCodec, token: str):
        with pytest.raises(MalformedToken):
            codec.verify(token, SECRET)

    def test_unsigned_algorithm_rejected(self, codec: TokenCodec, claims: TokenClaims):
        header = _b64(json.dumps({"alg": "none", "typ": "JWT"}).encode())
        payload = _b64(json.dumps(claims.to_payload()).encode())

        with pytest.raises(MalformedToken):
            codec.verify(f"{header}.{payload}.", SECRET)

    def test_signed_but_missing_claims(self, codec: TokenCodec):
        token = jwt.encode({"sub": "only-a-subject"}, SECRET, algorithm="HS256")

        with pytest.raises(MalformedToken):
            codec.verify(token, SECRET)

    def test_signed_but_inverted_window(self, codec: TokenCodec, clock: FrozenClock):
        now = int(clock.now().timestamp())
        token = jwt.encode(
            {"iss": "iss", "sub": "sub", "iat": now, "nbf": now, "exp": now - 60},
            SECRET,
            algorithm="HS256",
        )

        with pytest.raises(MalformedToken):
            codec.verify(token, SECRET)

    def test_non_ascii_inside_valid_token(self, codec: TokenCodec, claims: TokenClaims):
        header, payload, signature = codec.sign(claims, SECRET).split(".")
        token = ".".join([header, payload[:10] + "éé" + payload[10:], signature])

        with pytest.raises(MalformedToken):
            codec.verify(token, SECRET)
