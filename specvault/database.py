"""Database configuration and session management."""

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# Create base class for models
Base = declarative_base()


def is_sqlite(url: str) -> bool:
    """Check if the URL points at a SQLite database."""
    return url.startswith("sqlite")


def create_db_engine(database_url: str) -> Engine:
    """Create an engine with database-specific tuning.

    The persistence worker uses the engine from its own thread, so SQLite
    connections must be shareable across threads. In-memory SQLite gets a
    StaticPool so every session sees the same database.
    """
    if not is_sqlite(database_url):
        return create_engine(database_url, pool_pre_ping=True)

    kwargs = {"connect_args": {"check_same_thread": False}}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    engine = create_engine(database_url, **kwargs)

    # SQLite defaults foreign_keys to OFF; enable it on every connection.
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def make_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to *engine*."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Create all tables that do not exist yet."""
    # Import models so they register on Base.metadata.
    from . import models  # noqa: F401
    Base.metadata.create_all(bind=engine)
