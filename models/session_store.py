"""
SessionStore: the read/write contract the session engine needs from the
database, implemented over DBStorage's scoped session.

Every revocation is a single UPDATE statement. The conditional variants
(revoke_if_active, rotate) put "revoked = false" in the WHERE clause and read
the affected row count, so two processes racing on the same session id are
serialised by the database, not by a lock held in this process.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from models.refresh_token import RefreshToken
from utils.exceptions import DuplicateSessionId, SessionPersistenceError

logger = logging.getLogger(__name__)


class SessionStore:
    def __init__(self, storage):
        self._storage = storage

    def _session(self):
        return self._storage.get_session()

    def create(self, session_id: str, principal_id: str, expires_at: datetime) -> RefreshToken:
        """Insert a new, non-revoked session record."""
        session = self._session()
        record = RefreshToken(id=session_id, principal_id=principal_id, expires_at=expires_at, revoked=False)
        try:
            session.add(record)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            if self._exists(session_id):
                raise DuplicateSessionId(f"session id {session_id} already exists") from exc
            raise SessionPersistenceError(f"could not create session {session_id}") from exc
        return record

    def find_by_id(self, session_id: str) -> Optional[RefreshToken]:
        # populate_existing: a committed UPDATE from another request must not be
        # hidden behind the identity map's copy of the row
        try:
            return self._session().get(RefreshToken, session_id, populate_existing=True)
        except SQLAlchemyError as exc:
            self._session().rollback()
            raise SessionPersistenceError(f"could not read session {session_id}") from exc

    def revoke(self, session_id: str) -> None:
        """Idempotent: revoking a revoked or unknown session is a no-op."""
        self._execute_revoke(RefreshToken.id == session_id)

    def revoke_if_active(self, session_id: str) -> bool:
        """Revoke only if currently not revoked. True if this call did it."""
        return self._execute_revoke(RefreshToken.id == session_id, RefreshToken.revoked.is_(False)) == 1

    def revoke_all_for_principal(self, principal_id: str) -> int:
        return self._execute_revoke(RefreshToken.principal_id == principal_id, RefreshToken.revoked.is_(False))

    def rotate(self, old_session_id: str, new_session_id: str, principal_id: str, expires_at: datetime) -> bool:
        """
        Retire old_session_id and create new_session_id in one transaction.

        Returns False, writing nothing, when the old record was already revoked
        (or gone) at update time: somebody else rotated or revoked it first.
        """
        session = self._session()
        try:
            result = session.execute(
                update(RefreshToken)
                .where(RefreshToken.id == old_session_id, RefreshToken.revoked.is_(False))
                .values(revoked=True)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                session.rollback()
                return False
            session.add(RefreshToken(id=new_session_id, principal_id=principal_id, expires_at=expires_at, revoked=False))
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            if self._exists(new_session_id):
                raise DuplicateSessionId(f"session id {new_session_id} already exists") from exc
            raise SessionPersistenceError(f"could not rotate session {old_session_id}") from exc
        return True

    def _execute_revoke(self, *criteria) -> int:
        session = self._session()
        try:
            result = session.execute(
                update(RefreshToken)
                .where(*criteria)
                .values(revoked=True)
                .execution_options(synchronize_session=False)
            )
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise SessionPersistenceError("could not revoke session") from exc
        return result.rowcount

    def _exists(self, session_id: str) -> bool:
        try:
            return self._session().get(RefreshToken, session_id) is not None
        except SQLAlchemyError:
            logger.exception("could not check for session %s after a failed write", session_id)
            return False
