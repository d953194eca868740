import logging

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlmodel import create_engine, Session
from sportspm.core.config import settings

logger = logging.getLogger(__name__)

_engine = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite leaves foreign key enforcement (and ON DELETE CASCADE) off by default
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _disable_pysqlite_transactions(dbapi_connection, connection_record):
    # pysqlite would otherwise defer BEGIN until the first write
    dbapi_connection.isolation_level = None


def _begin_immediate(conn):
    # Take the write lock up front; SQLite has no row locks to take later
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def _is_file_sqlite(db_url: str) -> bool:
    url = make_url(db_url)
    return url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:")


def build_engine(db_url: str, **overrides):
    """
    Create an engine for the given URL.

    PostgreSQL gets a bounded connection pool: at most
    DB_POOL_SIZE + DB_MAX_OVERFLOW connections, and a checkout fails after
    DB_POOL_TIMEOUT seconds if none is free. SQLite gets the thread check
    disabled and foreign keys switched on.

    SQLite ignores SELECT ... FOR UPDATE. For a file database every
    transaction therefore opens with BEGIN IMMEDIATE, which serialises
    writers the way the row locks do on PostgreSQL. Another writer waits up
    to SQLITE_BUSY_TIMEOUT seconds for the lock.
    """
    if db_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False, "timeout": settings.SQLITE_BUSY_TIMEOUT}}
    else:
        kwargs = {
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
            "pool_timeout": settings.DB_POOL_TIMEOUT,
            "pool_recycle": settings.DB_POOL_RECYCLE,
            "pool_pre_ping": True,
        }
    kwargs.update(overrides)
    engine = create_engine(db_url, **kwargs)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    if _is_file_sqlite(db_url):
        event.listen(engine, "connect", _disable_pysqlite_transactions)
        event.listen(engine, "begin", _begin_immediate)
    return engine


def get_engine():
    global _engine

    if _engine is not None:
        return _engine

    _engine = build_engine(settings.database_url)
    logger.info("Database engine created. dialect=%s", _engine.dialect.name)
    return _engine


engine = get_engine()


def get_db():
    with Session(engine) as session:
        try:
            yield session
        except Exception:
            session.rollback()
            raise
