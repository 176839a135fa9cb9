"""
Authentication error taxonomy.

Every failure the session engine can report is one of these. The HTTP layer
(api/errors.py) maps them to responses in one place, so nothing in here knows
about status codes beyond the default hint carried on the class.

    AuthError
    ├── InvalidCredentials
    ├── InvalidToken
    │   ├── TokenExpired
    │   └── InvalidRefreshToken
    │       └── SessionRevoked
    └── PrincipalNotFound
    SessionPersistenceError
    └── DuplicateSessionId

The message passed to the constructor is for logs only; clients always get
the fixed public message of the code.
"""
from __future__ import annotations


class AuthError(Exception):
    code = "UNAUTHORIZED"
    status_code = 401


class InvalidCredentials(AuthError):
    """Unknown email or wrong password; the two are reported identically."""

    code = "INVALID_CREDENTIALS"


class InvalidToken(AuthError):
    code = "INVALID_TOKEN"


class TokenExpired(InvalidToken):
    pass


class InvalidRefreshToken(InvalidToken):
    pass


class SessionRevoked(InvalidRefreshToken):
    pass


class PrincipalNotFound(AuthError):
    """The principal behind a valid token no longer exists."""

    code = "INVALID_TOKEN"


class SessionPersistenceError(Exception):
    """The session store failed during a write the engine cannot skip."""

    code = "SERVER_ERROR"
    status_code = 500


class DuplicateSessionId(SessionPersistenceError):
    pass
