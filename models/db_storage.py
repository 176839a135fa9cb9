from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from models.base_model import Base
from models.refresh_token import RefreshToken
from models.user import User

# Map model names for easy querying
classes = {
    "User": User,
    "RefreshToken": RefreshToken,
}


class DBStorage:
    __engine = None
    __session = None

    def __init__(self, database_url, echo=False):
        """Initialize engine for the given database URL"""
        kwargs = {"echo": echo}
        if database_url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in database_url or database_url == "sqlite://":
                # one shared connection, otherwise every thread sees its own empty database
                kwargs["poolclass"] = StaticPool
        else:
            kwargs["pool_pre_ping"] = True
        self.__engine = create_engine(database_url, **kwargs)

        # Enable SQLite foreign keys (needed for ON DELETE CASCADE)
        if self.__engine.url.get_backend_name() == "sqlite":
            @event.listens_for(self.__engine, "connect")
            def _set_sqlite_pragma(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

    def reload(self):
        """Create tables and start session"""
        Base.metadata.create_all(self.__engine)
        session_factory = sessionmaker(bind=self.__engine, expire_on_commit=False)
        self.__session = scoped_session(session_factory)

    def drop_all(self):
        Base.metadata.drop_all(self.__engine)

    def new(self, obj):
        """Add object to session"""
        self.__session.add(obj)

    def save(self):
        """Commit session"""
        try:
            self.__session.commit()
        except SQLAlchemyError:
            self.__session.rollback()
            raise

    def delete(self, obj=None):
        """Delete object if exists (hard delete)"""
        if obj:
            self.__session.delete(obj)

    def get(self, cls, id):
        """Fetch one object by class and ID"""
        if cls in classes.values() and id is not None:
            return self.__session.get(cls, id)
        return None

    def close(self):
        """Remove session (for API teardown)"""
        if self.__session is not None:
            self.__session.remove()

    # expose the SQLAlchemy session for advanced querying (joins, filters, etc.)
    def get_session(self):
        return self.__session
