"""
Session engine: issues, verifies, rotates and revokes token pairs.

The engine owns the lifecycle rules and nothing else. Its collaborators are
injected: a TokenCodec (keys, TTLs), a SessionStore (refresh token records),
a find_principal callable (principal id -> principal or None) and a clock.

Rules it enforces:
- a session record is written before the refresh token that names it is
  returned to anyone
- access tokens are verified without touching the store
- a refresh token rotates at most once; the old record is retired in the
  same transaction that creates its successor, and the store's conditional
  update decides the winner when two requests race on it
- logout never fails from the caller's point of view
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Tuple

from utils.exceptions import (
    InvalidRefreshToken,
    InvalidToken,
    PrincipalNotFound,
    SessionPersistenceError,
    SessionRevoked,
)
from utils.security import generate_session_id, utcnow
from utils.tokens import AccessClaims, TokenCodec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    session_id: str
    access_expires_at: datetime
    refresh_expires_at: datetime
    principal: Any


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timezone-aware columns back naive
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SessionEngine:
    def __init__(
        self,
        codec: TokenCodec,
        store,
        find_principal: Callable[[str], Optional[Any]],
        clock: Callable[[], datetime] = utcnow,
        revoke_family_on_reuse: bool = False,
    ):
        self._codec = codec
        self._store = store
        self._find_principal = find_principal
        self._clock = clock
        self._revoke_family_on_reuse = revoke_family_on_reuse

    # ------------------------------------------------------------------
    # issue
    # ------------------------------------------------------------------

    def issue(self, principal) -> TokenPair:
        """Start a new session for an already authenticated principal.

        Raises SessionPersistenceError if the session record cannot be
        written; no token is handed out in that case.
        """
        pair = self._mint(principal)
        try:
            self._store.create(pair.session_id, str(principal.id), pair.refresh_expires_at)
        except SessionPersistenceError:
            logger.exception("could not persist new session", extra={"principal_id": str(principal.id)})
            raise
        logger.info(
            "issued session %s",
            pair.session_id,
            extra={"principal_id": str(principal.id), "action": "issue"},
        )
        return pair

    def _mint(self, principal) -> TokenPair:
        session_id = generate_session_id()
        access_token, access_exp = self._codec.issue_access(str(principal.id), principal.email)
        refresh_token, refresh_exp = self._codec.issue_refresh(str(principal.id), session_id)
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            session_id=session_id,
            access_expires_at=access_exp,
            refresh_expires_at=refresh_exp,
            principal=principal,
        )

    # ------------------------------------------------------------------
    # verify access
    # ------------------------------------------------------------------

    def authenticate(self, access_token: str) -> Tuple[AccessClaims, Any]:
        """Verify an access token and load its principal.

        Purely cryptographic plus a principal lookup: revoking a session does
        not invalidate access tokens already issued for it.
        """
        claims = self._codec.verify_access(access_token)
        principal = self._find_principal(claims.principal_id)
        if principal is None:
            raise PrincipalNotFound(f"principal {claims.principal_id} no longer exists")
        return claims, principal

    def verify_access(self, access_token: str) -> AccessClaims:
        claims, _ = self.authenticate(access_token)
        return claims

    # ------------------------------------------------------------------
    # rotate
    # ------------------------------------------------------------------

    def rotate(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new pair, retiring the old one.

        Every rejection is an InvalidRefreshToken (SessionRevoked when the
        record was already retired); the reason is only logged.
        """
        try:
            claims = self._codec.verify_refresh(refresh_token)
        except InvalidToken as exc:
            self._reject("undecodable", None, exc)
            raise InvalidRefreshToken("refresh token failed verification") from exc

        session_id = claims.session_id
        record = self._store.find_by_id(session_id)
        if record is None:
            self._reject("unknown", session_id)
            raise InvalidRefreshToken(f"no session {session_id}")

        if record.revoked:
            self._reject("revoked", session_id)
            if self._revoke_family_on_reuse:
                self._revoke_family(record.principal_id, session_id)
            raise SessionRevoked(f"session {session_id} already revoked")

        if _as_utc(record.expires_at) <= self._clock():
            self._reject("expired", session_id)
            raise InvalidRefreshToken(f"session {session_id} expired")

        if str(record.principal_id) != claims.principal_id:
            self._reject("owner-mismatch", session_id)
            raise InvalidRefreshToken(f"session {session_id} belongs to another principal")

        principal = self._find_principal(claims.principal_id)
        if principal is None:
            self._reject("principal-gone", session_id)
            raise InvalidRefreshToken(f"principal {claims.principal_id} no longer exists")

        pair = self._mint(principal)
        try:
            won = self._store.rotate(session_id, pair.session_id, str(principal.id), pair.refresh_expires_at)
        except SessionPersistenceError:
            logger.exception("could not persist rotation of session %s", session_id)
            raise
        if not won:
            # another request retired this record between our read and our write
            self._reject("race-lost", session_id)
            raise SessionRevoked(f"session {session_id} was rotated concurrently")

        logger.info(
            "rotated session %s -> %s",
            session_id,
            pair.session_id,
            extra={"principal_id": str(principal.id), "action": "rotate"},
        )
        return pair

    def _revoke_family(self, principal_id: str, session_id: str) -> None:
        try:
            count = self._store.revoke_all_for_principal(str(principal_id))
        except SessionPersistenceError:
            logger.exception("could not revoke sessions after reuse of %s", session_id)
            return
        logger.warning(
            "refresh token reuse on session %s, revoked %d sessions",
            session_id,
            count,
            extra={"principal_id": str(principal_id), "action": "revoke_family"},
        )

    @staticmethod
    def _reject(reason: str, session_id: Optional[str], exc: Optional[Exception] = None) -> None:
        logger.warning(
            "refresh rejected (%s) for session %s%s",
            reason,
            session_id or "-",
            f": {exc}" if exc else "",
            extra={"reason": reason, "action": "rotate"},
        )

    # ------------------------------------------------------------------
    # revoke
    # ------------------------------------------------------------------

    def revoke_by_refresh_token(self, refresh_token: Optional[str]) -> None:
        """Logout. Never raises: a bad token or a store failure only gets logged."""
        if not refresh_token:
            return
        try:
            claims = self._codec.verify_refresh(refresh_token)
        except InvalidToken as exc:
            logger.info("logout with unusable refresh token: %s", exc)
            return
        try:
            self._store.revoke(claims.session_id)
        except SessionPersistenceError:
            logger.warning("could not revoke session %s during logout", claims.session_id, exc_info=True)
            return
        logger.info(
            "revoked session %s",
            claims.session_id,
            extra={"principal_id": claims.principal_id, "action": "revoke"},
        )

    def revoke_all_for_principal(self, principal_id: str) -> int:
        count = self._store.revoke_all_for_principal(str(principal_id))
        logger.info(
            "revoked %d sessions",
            count,
            extra={"principal_id": str(principal_id), "action": "revoke_all"},
        )
        return count
