"""
Database connection and session management.
Provides SQLAlchemy engine, session, and base class for models.
"""
from sqlalchemy import Enum, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from .config import settings


def store_connect_args(database_url: str) -> dict:
    """
    Driver arguments that apply the store-call deadline.

    Args:
        database_url: SQLAlchemy connection string

    Returns:
        dict: connect_args for create_engine
    """
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False, "timeout": settings.store_timeout_seconds}
    if database_url.startswith("postgresql"):
        return {"options": f"-c statement_timeout={settings.store_timeout_seconds * 1000}"}
    return {}


def configure_sqlite(engine: Engine) -> Engine:
    """
    Make SQLite transactions take the write lock up front.

    pysqlite defers BEGIN until the first DML statement, which lets two
    read-then-write transactions deadlock on lock upgrade. Emitting
    BEGIN IMMEDIATE serializes writers instead, and enables foreign keys.

    Args:
        engine: SQLite engine to configure

    Returns:
        Engine: The same engine
    """
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def build_engine(database_url: str, **kwargs) -> Engine:
    """Create an engine for the ledger store with clinic defaults applied."""
    connect_args = store_connect_args(database_url)
    connect_args.update(kwargs.pop("connect_args", {}))
    if not database_url.startswith("sqlite"):
        kwargs.setdefault("pool_timeout", settings.store_timeout_seconds)
        kwargs.setdefault("pool_pre_ping", True)
    engine = create_engine(database_url, connect_args=connect_args, **kwargs)
    if database_url.startswith("sqlite"):
        configure_sqlite(engine)
    return engine


# Create SQLAlchemy engine for database connection
engine = build_engine(settings.database_url)

# Create session factory for database sessions
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

# Create base class for declarative models
Base = declarative_base()

def get_db():
    """
    Database dependency - Creates and yields a database session.

    The session is automatically closed after the request is processed,
    even if an exception occurs during request handling.

    Yields:
        SQLAlchemy Session: Database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def value_enum(enum_cls, name: str) -> Enum:
    """
    Enum column type that stores member values (e.g. "waiting") rather than names.

    Args:
        enum_cls: Python enum class
        name: Database enum type name

    Returns:
        Enum: SQLAlchemy column type
    """
    return Enum(enum_cls, name=name, values_callable=lambda members: [m.value for m in members])
