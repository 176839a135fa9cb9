"""Pytest configuration and fixtures"""
import threading
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Dict, Generator, Optional

import pytest
from flask import Flask
from flask.testing import FlaskClient

from api import create_app
from models.db_storage import DBStorage
from models.session_store import SessionStore
from models.user import User
from utils.exceptions import DuplicateSessionId
from utils.security import hash_password
from utils.sessions import SessionEngine
from utils.tokens import TokenCodec

TEST_PASSWORD = "correct-horse-battery"


class FrozenClock:
    """A clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime.now(timezone.utc).replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class MemorySessionStore:
    """In-process session store honouring the same contract as SessionStore.

    find_by_id returns a snapshot, like a row read from a database would be.
    """

    def __init__(self):
        self.records: Dict[str, SimpleNamespace] = {}
        self._lock = threading.Lock()

    def create(self, session_id, principal_id, expires_at):
        with self._lock:
            if session_id in self.records:
                raise DuplicateSessionId(session_id)
            self.records[session_id] = SimpleNamespace(
                id=session_id, principal_id=principal_id, expires_at=expires_at, revoked=False
            )

    def find_by_id(self, session_id):
        with self._lock:
            record = self.records.get(session_id)
            return SimpleNamespace(**vars(record)) if record else None

    def revoke(self, session_id):
        with self._lock:
            if session_id in self.records:
                self.records[session_id].revoked = True

    def revoke_if_active(self, session_id):
        with self._lock:
            record = self.records.get(session_id)
            if record is None or record.revoked:
                return False
            record.revoked = True
            return True

    def rotate(self, old_session_id, new_session_id, principal_id, expires_at):
        with self._lock:
            record = self.records.get(old_session_id)
            if record is None or record.revoked:
                return False
            record.revoked = True
            self.records[new_session_id] = SimpleNamespace(
                id=new_session_id, principal_id=principal_id, expires_at=expires_at, revoked=False
            )
            return True

    def revoke_all_for_principal(self, principal_id):
        with self._lock:
            count = 0
            for record in self.records.values():
                if record.principal_id == principal_id and not record.revoked:
                    record.revoked = True
                    count += 1
            return count

    def live(self):
        return [r for r in self.records.values() if not r.revoked]


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def codec(clock: FrozenClock) -> TokenCodec:
    return TokenCodec(
        access_secret="unit-access-secret",
        refresh_secret="unit-refresh-secret",
        access_ttl=timedelta(seconds=60),
        refresh_ttl=timedelta(days=7),
        clock=clock,
    )


@pytest.fixture
def principal() -> SimpleNamespace:
    return SimpleNamespace(id="u1", email="u1@example.com", name="User One")


@pytest.fixture
def memory_store() -> MemorySessionStore:
    return MemorySessionStore()


@pytest.fixture
def memory_engine(codec, memory_store, principal, clock) -> SessionEngine:
    """Engine over the in-memory store, knowing a single principal u1"""
    principals = {principal.id: principal}
    return SessionEngine(codec, memory_store, principals.get, clock=clock)


@pytest.fixture
def app(clock: FrozenClock) -> Generator[Flask, None, None]:
    """Fresh app with its own in-memory database for each test"""
    app = create_app("test", clock=clock)
    yield app
    storage: DBStorage = app.extensions["storage"]
    storage.close()
    storage.drop_all()


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    """Test client without a cookie jar: tests send the cookies they mean to"""
    return app.test_client(use_cookies=False)


@pytest.fixture
def storage(app: Flask) -> DBStorage:
    return app.extensions["storage"]


@pytest.fixture
def session_store(app: Flask) -> SessionStore:
    return app.extensions["session_store"]


@pytest.fixture
def engine(app: Flask) -> SessionEngine:
    return app.extensions["session_engine"]


@pytest.fixture
def user(storage: DBStorage) -> User:
    """A registered user with TEST_PASSWORD"""
    user = User(email="alice@example.com", name="Alice", password_hash=hash_password(TEST_PASSWORD))
    storage.new(user)
    storage.save()
    return user


def cookies_from(response) -> Dict[str, str]:
    """name -> value for every Set-Cookie header on a response"""
    jar = {}
    for header in response.headers.getlist("Set-Cookie"):
        name, _, rest = header.partition("=")
        jar[name] = rest.split(";", 1)[0]
    return jar


def set_cookie_header(response, name: str) -> str:
    for header in response.headers.getlist("Set-Cookie"):
        if header.startswith(f"{name}="):
            return header
    raise AssertionError(f"no Set-Cookie for {name}")
