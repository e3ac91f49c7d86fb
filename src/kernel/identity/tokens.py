"""
Signed token encoding and verification.

Tokens are compact JWS strings (``header.payload.signature``, base64url)
signed with HMAC-SHA256 over a shared secret. The issuer and the verifier
are the same service, so a symmetric key is enough.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwk, jws, jwt
from jose.exceptions import JOSEError
from jose.utils import base64url_decode
from pydantic import BaseModel, ValidationError, field_validator, model_validator

from src.kernel.identity.clock import Clock, SystemClock
from src.kernel.identity.errors import (
    InvalidSignature,
    MalformedToken,
    TokenExpired,
    TokenNotYetValid,
)

ALGORITHM = "HS256"


class TokenClaims(BaseModel):
    """Signed payload of a token."""

    iss: str
    sub: str  # Account ID
    iat: datetime
    nbf: datetime
    exp: datetime

    @field_validator("iat", "nbf", "exp")
    @classmethod
    def _as_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @model_validator(mode="after")
    def _check_window(self) -> "TokenClaims":
        if self.exp <= self.iat:
            raise ValueError("exp must be after iat")
        return self

    @classmethod
    def issue(
        cls,
        issuer: str,
        subject: str,
        now: datetime,
        lifetime: timedelta,
    ) -> "TokenClaims":
        """Claims valid from ``now`` for ``lifetime``, truncated to whole seconds."""
        now = now.replace(microsecond=0)
        return cls(iss=issuer, sub=subject, iat=now, nbf=now, exp=now + lifetime)

    def to_payload(self) -> dict:
        return {
            "iss": self.iss,
            "sub": self.sub,
            "iat": int(self.iat.timestamp()),
            "nbf": int(self.nbf.timestamp()),
            "exp": int(self.exp.timestamp()),
        }


class TokenPair(BaseModel):
    """Access and refresh token pair."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # Seconds until access token expires


class TokenCodec:
    """
    Sign claims into tokens and verify tokens back into claims.

    Time checks use the injected clock so expiry can be tested without
    sleeping.
    """

    def __init__(self, clock: Optional[Clock] = None, algorithm: str = ALGORITHM):
        self.clock = clock or SystemClock()
        self.algorithm = algorithm

    def sign(self, claims: TokenClaims, secret: str) -> str:
        """
        Sign claims with the secret.

        Returns:
            Compact dot-delimited token string
        """
        return jwt.encode(claims.to_payload(), secret, algorithm=self.algorithm)

    def verify(self, token: str, secret: str) -> TokenClaims:
        """
        Verify a token and return its claims.

        Raises:
            MalformedToken: Token cannot be split, decoded or validated
            InvalidSignature: Signature does not match the secret
            TokenExpired: Current time is at or past ``exp``
            TokenNotYetValid: Current time is before ``nbf``
        """
        # Compact tokens are plain base64url segments
        if not token.isascii():
            raise MalformedToken("token is not ASCII")

        try:
            header = jws.get_unverified_header(token)
            payload = jws.get_unverified_claims(token)
        except JOSEError as e:
            raise MalformedToken("token could not be decoded") from e

        if header.get("alg") != self.algorithm:
            raise MalformedToken("unexpected token algorithm")

        signing_input, _, encoded_signature = token.rpartition(".")
        try:
            signature = base64url_decode(encoded_signature.encode("ascii"))
        except (ValueError, UnicodeEncodeError) as e:
            raise MalformedToken("token signature could not be decoded") from e

        key = jwk.construct(secret, self.algorithm)
        if not key.verify(signing_input.encode("ascii"), signature):
            raise InvalidSignature("token signature mismatch")

        try:
            claims = TokenClaims.model_validate(json.loads(payload))
        except (ValueError, ValidationError) as e:
            raise MalformedToken("token claims are invalid") from e

        now = self.clock.now()
        if now >= claims.exp:
            raise TokenExpired("token has expired")
        if now < claims.nbf:
            raise TokenNotYetValid("token is not valid yet")

        return claims
