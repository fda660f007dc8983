from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import get_settings


def make_engine(database_url: str):
    """Create the SQLAlchemy engine.

    SQLite has no row locks, so every SQLite transaction is opened with
    BEGIN IMMEDIATE and holds the write lock from the start. That gives the
    same one-writer-at-a-time behaviour SELECT ... FOR UPDATE gives on
    PostgreSQL/MySQL.
    """
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, pool_pre_ping=True)

    engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def make_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


# Create the SQLAlchemy engine from the process settings.
engine = make_engine(get_settings().database_url)

# Create a configured "Session" class for database interactions.
SessionLocal = make_session_factory(engine)

# Base class for declarative ORM models.
Base = declarative_base()


def get_db():
    """FastAPI dependency to get a DB session for a single request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        # Ensure the session is always closed after the request is finished.
        db.close()
