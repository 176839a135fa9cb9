"""
security helpers:
- Argon2 password hashing via argon2-cffi
- session identifier generation
- the UTC clock shared by the codec and the session engine
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

ph = PasswordHasher()

# Verified against when the email is unknown so both login failures cost the same.
_DUMMY_HASH = ph.hash("dummy-password-for-timing")


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    """Verify a plaintext password against an Argon2 digest.

    Never raises: a mismatch, a malformed digest or a missing one all
    return False.
    """
    digest = password_hash or _DUMMY_HASH
    try:
        ok = ph.verify(digest, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False
    return ok and digest is not _DUMMY_HASH


def needs_rehash(password_hash: str) -> bool:
    try:
        return ph.check_needs_rehash(password_hash)
    except ValueError:
        return True


def generate_session_id() -> str:
    """Generate a unique session id, used as the refresh token's jti.
    """
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
