"""
Session handling shared by the graph engine components.

Components accept an optional SQLAlchemy session. When one is passed the
caller owns the transaction; otherwise each public call opens its own
session (reads) or transaction (writes) from the configured factory.
"""
from __future__ import annotations

import threading
from collections.abc import Generator
from contextlib import contextmanager
from typing import Optional

from loguru import logger
from sqlalchemy import event, text
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from config import get_settings
from puzzlegraph.db.database import get_session_factory

from .exceptions import StorageUnavailableError

# Serializes edge mutations between threads of one process. Across processes
# the PostgreSQL advisory lock below does the same job.
_GRAPH_LOCK = threading.RLock()


@contextmanager
def storage_errors() -> Generator[None, None, None]:
    """Re-raise driver failures as StorageUnavailableError."""
    try:
        yield
    except IntegrityError:
        # Constraint violations are handled by the services
        raise
    except DBAPIError as exc:
        logger.error(f"Storage failure: {exc.orig!r}")
        raise StorageUnavailableError(str(exc.orig)) from exc


class GraphComponent:
    """Base class giving components read and write session scopes."""

    def __init__(self, session_factory: Optional[sessionmaker[Session]] = None):
        self._session_factory = session_factory

    @property
    def session_factory(self) -> sessionmaker[Session]:
        if self._session_factory is None:
            self._session_factory = get_session_factory()
        return self._session_factory

    @contextmanager
    def _read(self, session: Optional[Session] = None) -> Generator[Session, None, None]:
        """Session for a read-only call."""
        if session is not None:
            yield session
            return
        with storage_errors(), self.session_factory() as new_session:
            yield new_session

    @contextmanager
    def _write(self, session: Optional[Session] = None) -> Generator[Session, None, None]:
        """Transaction for a write; commits on success, rolls back on any error."""
        if session is not None:
            yield session
            session.flush()
            return
        with storage_errors(), self.session_factory.begin() as new_session:
            yield new_session

    @contextmanager
    def _graph_write(self, session: Optional[Session] = None) -> Generator[Session, None, None]:
        """
        Transaction for an edge mutation, serialized for the whole graph.

        The process lock is held until the transaction has ended, so a cycle
        check always sees every edge committed before it. With a caller-owned
        session that is later than this call: the lock is released when the
        caller commits, rolls back or closes the session.
        """
        if session is None:
            with _GRAPH_LOCK, self._write() as write_session:
                lock_graph(write_session)
                yield write_session
            return

        _GRAPH_LOCK.acquire()
        try:
            with self._write(session) as write_session:
                lock_graph(write_session)
                yield write_session
        except BaseException:
            _GRAPH_LOCK.release()
            raise
        hold_until_transaction_end(session)


def hold_until_transaction_end(session: Session) -> None:
    """Release one hold of the graph lock when the session's outer transaction ends."""
    root = session.get_transaction()
    if root is None:
        _GRAPH_LOCK.release()
        return

    def release(_session: Session, transaction) -> None:
        # Savepoints end inside the outer transaction and keep the lock
        if transaction is root:
            _GRAPH_LOCK.release()

    event.listen(session, "after_transaction_end", release)


def lock_graph(session: Session) -> None:
    """
    Take the transaction-scoped PostgreSQL advisory lock guarding the edge set.

    Released automatically on commit or rollback. Other backends rely on the
    process lock alone.
    """
    if session.get_bind().dialect.name == "postgresql":
        session.execute(
            text("SELECT pg_advisory_xact_lock(:key)"),
            {"key": get_settings().graph_lock_key},
        )
