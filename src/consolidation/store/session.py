"""Engine, session and transaction management for the relational store."""

from __future__ import annotations

from contextlib import contextmanager
from enum import Enum
from time import perf_counter
from typing import Iterator
from uuid import uuid4

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from consolidation.config.settings import Settings, get_settings
from consolidation.store.models import Base
from consolidation.utils.logging import get_logger


_LOGGER = get_logger(module=__name__)


class TransactionState(str, Enum):
    """Transaction states for tracking."""

    IN_PROGRESS = "in_progress"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:  # pragma: no cover - driver hook
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(url: str, *, echo: bool = False) -> Engine:
    """Create an engine; SQLite connections enforce foreign keys."""

    if url.startswith("sqlite"):
        kwargs = {}
        if url in {"sqlite://", "sqlite:///:memory:"}:
            kwargs = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
        engine = create_engine(url, echo=echo, **kwargs)
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine
    return create_engine(url, echo=echo, pool_pre_ping=True)


def create_session_factory(
    settings: Settings | None = None,
    *,
    engine: Engine | None = None,
) -> sessionmaker[Session]:
    """Build a ``sessionmaker`` bound to the configured database."""

    if engine is None:
        cfg = settings or get_settings()
        engine = create_db_engine(cfg.database.url, echo=cfg.database.echo)
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_schema(engine: Engine) -> None:
    """Create every table known to the ORM metadata."""

    Base.metadata.create_all(engine)
    _LOGGER.info("Database schema ensured", tables=sorted(Base.metadata.tables))


@contextmanager
def transaction(session_factory: sessionmaker[Session], name: str | None = None) -> Iterator[Session]:
    """Yield a session wrapped in one transaction.

    Commits when the block exits normally and rolls back on any exception,
    which is then re-raised to the caller.

    Example:
        with transaction(factory, "merge-jobs-12") as session:
            session.execute(update(Shift).where(...).values(job_id=12))
    """

    transaction_name = name or f"transaction_{uuid4().hex[:8]}"
    session = session_factory()
    start = perf_counter()
    _LOGGER.debug("Started transaction", transaction=transaction_name, state=TransactionState.IN_PROGRESS.value)
    try:
        with session.begin():
            yield session
    except Exception as exc:
        _LOGGER.error(
            "Rolled back transaction",
            transaction=transaction_name,
            state=TransactionState.ROLLED_BACK.value,
            error=str(exc),
        )
        raise
    else:
        _LOGGER.debug(
            "Committed transaction",
            transaction=transaction_name,
            state=TransactionState.COMMITTED.value,
            seconds=round(perf_counter() - start, 3),
        )
    finally:
        session.close()


@contextmanager
def read_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    """Yield a session for the read phase; nothing is committed."""

    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


__all__ = [
    "TransactionState",
    "create_db_engine",
    "create_session_factory",
    "init_schema",
    "transaction",
    "read_session",
]
