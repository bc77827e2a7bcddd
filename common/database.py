"""Engine, session factory and transaction scope shared by every service."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Dict, Generator, Iterator, TypeVar

from circuitbreaker import circuit
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .config import get_settings

settings = get_settings()
T = TypeVar("T")


def _engine_options() -> Dict[str, Any]:
    options: Dict[str, Any] = {"pool_pre_ping": True}
    if settings.database_url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
    if settings.database_isolation_level:
        options["isolation_level"] = settings.database_isolation_level
    return options


engine = create_engine(settings.database_url, **_engine_options())
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


class Base(DeclarativeBase):
    pass


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _claim_sqlite_writer(db: Session) -> None:
    # SQLite ignores FOR UPDATE and pysqlite defers BEGIN until the first
    # write, so take the database's single writer lock before any read.
    connection = db.connection()
    if connection.dialect.name != "sqlite":
        return
    if not connection.connection.dbapi_connection.in_transaction:
        connection.exec_driver_sql("BEGIN IMMEDIATE")


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """Commit everything done in the block, or roll all of it back.

    The session autobegins on its first statement, so reads made before the
    block (such as resolving the caller) join the same transaction.
    """

    try:
        _claim_sqlite_writer(db)
        yield db
        db.commit()
    except BaseException:
        db.rollback()
        raise


def guarded_read(func: Callable[..., T]) -> Callable[..., T]:
    """Open a circuit around ``func`` after repeated store failures.

    While open, calls fail fast with ``CircuitBreakerError`` (rendered as 503)
    until ``store_recovery_timeout`` elapses. Each decorated function gets its
    own breaker.
    """

    breaker = circuit(
        failure_threshold=settings.store_failure_threshold,
        recovery_timeout=settings.store_recovery_timeout,
        expected_exception=SQLAlchemyError,
        name=f"{func.__module__}.{func.__qualname__}",
    )
    return breaker(func)
