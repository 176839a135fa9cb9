"""
Cookie transport for the token pair.

accessToken  - httpOnly; Secure and SameSite=Lax in production, neither
               outside it (plain-http local development)
refreshToken - httpOnly, always Secure, SameSite=None: refresh is usually
               called from the frontend's origin, not the API's
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


@dataclass(frozen=True)
class CookiePolicy:
    access_max_age: int
    refresh_max_age: int
    production: bool = False
    domain: Optional[str] = None
    path: str = "/"

    @classmethod
    def from_config(cls, config) -> "CookiePolicy":
        return cls(
            access_max_age=_seconds(config["ACCESS_TOKEN_EXPIRES"]),
            refresh_max_age=_seconds(config["REFRESH_TOKEN_EXPIRES"]),
            production=bool(config.get("PRODUCTION", False)),
            domain=config.get("COOKIE_DOMAIN") or None,
        )

    def _access_attrs(self) -> dict:
        return {
            "httponly": True,
            "secure": self.production,
            "samesite": "Lax" if self.production else None,
            "domain": self.domain,
            "path": self.path,
        }

    def _refresh_attrs(self) -> dict:
        return {
            "httponly": True,
            "secure": True,
            "samesite": "None",
            "domain": self.domain,
            "path": self.path,
        }

    def set_auth_cookies(self, response, access_token: str, refresh_token: str) -> None:
        response.set_cookie(ACCESS_COOKIE, access_token, max_age=self.access_max_age, **self._access_attrs())
        response.set_cookie(REFRESH_COOKIE, refresh_token, max_age=self.refresh_max_age, **self._refresh_attrs())

    def clear_auth_cookies(self, response) -> None:
        response.delete_cookie(ACCESS_COOKIE, **self._access_attrs())
        response.delete_cookie(REFRESH_COOKIE, **self._refresh_attrs())


def _seconds(value) -> int:
    if isinstance(value, timedelta):
        return int(value.total_seconds())
    return int(value)


def read_access_token(request) -> Optional[str]:
    """accessToken cookie first, then an Authorization: Bearer header."""
    token = request.cookies.get(ACCESS_COOKIE)
    if token:
        return token
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        return auth.split(" ", 1)[1].strip() or None
    return None


def read_refresh_token(request) -> Optional[str]:
    """refreshToken cookie first, then a JSON body field refresh_token."""
    token = request.cookies.get(REFRESH_COOKIE)
    if token:
        return token
    payload = request.get_json(silent=True) or {}
    token = payload.get("refresh_token") if isinstance(payload, dict) else None
    return token if isinstance(token, str) and token else None
