"""
Token codec: signed, expiring JWTs for the two token classes.

Access and refresh tokens are signed with separate secrets so a leaked key
for one class cannot mint the other. The algorithm is pinned to HS256 on both
encode and decode; tokens carrying any other "alg" header are rejected.

Expiry is checked against the codec's own clock rather than PyJWT's, so the
whole lifecycle can be driven by an injected clock in tests.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Tuple

import jwt

from utils.exceptions import InvalidToken, TokenExpired
from utils.security import utcnow

ALGORITHM = "HS256"

ACCESS = "access"
REFRESH = "refresh"

_DECODE_OPTIONS = {
    "verify_signature": True,
    "verify_exp": False,
    "verify_iat": False,
    "verify_nbf": False,
    "require": ["sub", "iat", "exp", "jti", "typ"],
}


@dataclass(frozen=True)
class AccessClaims:
    principal_id: str
    handle: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class RefreshClaims:
    principal_id: str
    session_id: str
    issued_at: datetime
    expires_at: datetime


def _from_ts(value: int) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)


class TokenCodec:
    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_ttl: timedelta,
        refresh_ttl: timedelta,
        clock: Callable[[], datetime] = utcnow,
        leeway: int = 0,
    ):
        if not access_secret or not refresh_secret:
            raise ValueError("both token signing secrets must be set")
        if access_secret == refresh_secret:
            raise ValueError("access and refresh tokens must use different signing secrets")
        self._keys = {ACCESS: access_secret, REFRESH: refresh_secret}
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self._clock = clock
        self._leeway = int(leeway)

    # ---- issuing ----

    def issue_access(self, principal_id: str, handle: str) -> Tuple[str, datetime]:
        # jti keeps two access tokens minted in the same second distinct
        return self._encode(
            ACCESS,
            {"sub": str(principal_id), "email": handle, "jti": uuid.uuid4().hex},
            self.access_ttl,
        )

    def issue_refresh(self, principal_id: str, session_id: str) -> Tuple[str, datetime]:
        return self._encode(
            REFRESH,
            {"sub": str(principal_id), "jti": session_id},
            self.refresh_ttl,
        )

    # ---- verifying ----

    def verify_access(self, token: str) -> AccessClaims:
        payload = self._decode(ACCESS, token)
        handle = payload.get("email")
        if not isinstance(handle, str):
            raise InvalidToken("access token has no email claim")
        return AccessClaims(
            principal_id=payload["sub"],
            handle=handle,
            issued_at=_from_ts(payload["iat"]),
            expires_at=_from_ts(payload["exp"]),
        )

    def verify_refresh(self, token: str) -> RefreshClaims:
        payload = self._decode(REFRESH, token)
        return RefreshClaims(
            principal_id=payload["sub"],
            session_id=payload["jti"],
            issued_at=_from_ts(payload["iat"]),
            expires_at=_from_ts(payload["exp"]),
        )

    # ---- internals ----

    def _encode(self, typ: str, claims: Dict[str, Any], ttl: timedelta) -> Tuple[str, datetime]:
        issued = int(self._clock().timestamp())
        expires = issued + int(ttl.total_seconds())
        payload = dict(claims, typ=typ, iat=issued, exp=expires)
        token = jwt.encode(payload, self._keys[typ], algorithm=ALGORITHM)
        return token, _from_ts(expires)

    def _decode(self, typ: str, token: str) -> Dict[str, Any]:
        if not isinstance(token, str) or not token:
            raise InvalidToken("no token")
        try:
            payload = jwt.decode(
                token,
                self._keys[typ],
                algorithms=[ALGORITHM],
                options=_DECODE_OPTIONS,
            )
        except jwt.InvalidTokenError as exc:
            raise InvalidToken(f"invalid {typ} token: {exc}") from exc

        if payload.get("typ") != typ:
            raise InvalidToken("wrong token type")
        for claim in ("sub", "jti"):
            if not isinstance(payload.get(claim), str):
                raise InvalidToken(f"malformed {claim} claim")
        for claim in ("iat", "exp"):
            if not isinstance(payload.get(claim), int):
                raise InvalidToken(f"malformed {claim} claim")

        now = int(self._clock().timestamp())
        if now - self._leeway >= payload["exp"]:
            raise TokenExpired(f"{typ} token expired")
        return payload
