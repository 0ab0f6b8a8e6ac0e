from __future__ import annotations

from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker, SessionTransaction

from app.core.config import settings


def configure_sqlite_engine(engine: Engine, *, immediate: bool = True) -> Engine:
    """
    Take transaction control away from pysqlite so SAVEPOINT works and, with
    `immediate=True`, every transaction grabs the write lock up front.

    Row locks (`SELECT ... FOR UPDATE`) are a no-op on SQLite; BEGIN IMMEDIATE
    gives the same read-modify-write serialization for counter increments.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_conn, _connection_record):
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE" if immediate else "BEGIN")

    return engine


def build_engine(database_url: str | None = None, **kwargs) -> Engine:
    url = database_url or settings.DATABASE_URL
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", settings.SQLITE_BUSY_TIMEOUT_SEC)
        engine = create_engine(
            url,
            echo=settings.DATABASE_ECHO,
            connect_args=connect_args,
            **kwargs,
        )
        return configure_sqlite_engine(engine)
    return create_engine(url, echo=settings.DATABASE_ECHO, pool_pre_ping=True, **kwargs)


engine = build_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def transaction_scope(db: Session) -> SessionTransaction:
    """
    Outermost call owns the commit; nested calls ride on a savepoint so a
    failure inside them rolls back only their own writes.
    """
    return db.begin_nested() if db.in_transaction() else db.begin()
