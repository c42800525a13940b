from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import get_settings

# Base class for declarative ORM models.
Base = declarative_base()


def create_db_engine(database_url: str):
    """Create the SQLAlchemy engine for ``database_url``."""
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, pool_pre_ping=True)

    kwargs = {"connect_args": {"check_same_thread": False}}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection, otherwise every session sees an empty database.
        kwargs["poolclass"] = StaticPool
    engine = create_engine(database_url, **kwargs)

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def create_session_factory(engine):
    """Create a configured "Session" class for database interactions."""
    return sessionmaker(autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine):
    """Create database tables defined in models.py if they don't exist."""
    from . import models  # noqa: F401  registers the tables on Base.metadata

    Base.metadata.create_all(bind=engine)


def build_session_factory(database_url: str = None):
    engine = create_db_engine(database_url or get_settings().database_url)
    init_db(engine)
    return create_session_factory(engine)
